"""
Shared fixtures.

Every test runs against the in-memory backend with explicit settings,
so nothing depends on the environment or a .env file. Failure injection
is done by subclassing the in-memory storages.
"""

from decimal import Decimal
from uuid import UUID

import pytest

from pocket_ledger.config import LedgerSettings
from pocket_ledger.coordinator import create_ledger_components
from pocket_ledger.models.account import (
    CashAccount,
    CreditCardAccount,
    CreditorAccount,
    DebitCardAccount,
    DebtorAccount,
)
from pocket_ledger.services.storage import (
    InMemoryAccountStorage,
    InMemoryAuditStorage,
    InMemoryBudgetStorage,
    InMemoryEntryStorage,
    StaleVersionError,
    StorageError,
)


class FlakyEntryStorage(InMemoryEntryStorage):
    """Entry storage that fails writes for chosen accounts."""

    def __init__(self):
        super().__init__()
        self.fail_save_for: set[UUID] = set()
        self.fail_mark_deleted_for: set[UUID] = set()

    async def save_entry(self, entry):
        if entry.account_id in self.fail_save_for:
            raise StorageError(f"Simulated write failure for account {entry.account_id}")
        return await super().save_entry(entry)

    async def mark_deleted(self, entry_id, deleted_at):
        entry = await self.get_entry(entry_id)
        if entry is not None and entry.account_id in self.fail_mark_deleted_for:
            raise StorageError(f"Simulated delete failure for entry {entry_id}")
        return await super().mark_deleted(entry_id, deleted_at)


class RacingAccountStorage(InMemoryAccountStorage):
    """
    Account storage where another device writes first.

    Each queued delta is applied as a concurrent write just before our
    own balance write, which then fails on the stale version.
    """

    def __init__(self):
        super().__init__()
        self.concurrent_deltas: list[Decimal] = []
        self.always_stale = False

    async def update_balance(self, account_id, new_balance, expected_version):
        if self.always_stale:
            stored = await self.get_account(account_id)
            raise StaleVersionError(account_id, expected_version, stored.version + 1)
        if self.concurrent_deltas:
            delta = self.concurrent_deltas.pop(0)
            stored = await self.get_account(account_id)
            await super().update_balance(
                account_id, stored.current_balance + delta, stored.version
            )
        return await super().update_balance(account_id, new_balance, expected_version)


@pytest.fixture
def settings():
    return LedgerSettings(_env_file=None)


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def entry_storage():
    return FlakyEntryStorage()


@pytest.fixture
def account_storage():
    return RacingAccountStorage()


@pytest.fixture
def budget_storage():
    return InMemoryBudgetStorage()


@pytest.fixture
def components(settings, account_storage, entry_storage, budget_storage, audit_storage):
    return create_ledger_components(
        settings,
        account_storage=account_storage,
        entry_storage=entry_storage,
        budget_storage=budget_storage,
        audit_storage=audit_storage,
    )


@pytest.fixture
def registry(components):
    return components.registry


@pytest.fixture
def ledger(components):
    return components.ledger


@pytest.fixture
def coordinator(components):
    return components.coordinator


@pytest.fixture
async def cash(registry):
    return await registry.create_account(
        CashAccount(name="Wallet", initial_balance=Decimal("200"))
    )


@pytest.fixture
async def debit(registry):
    return await registry.create_account(
        DebitCardAccount(name="Checking", initial_balance=Decimal("100"))
    )


@pytest.fixture
async def card(registry):
    return await registry.create_account(CreditCardAccount(
        name="Visa",
        initial_balance=Decimal("300"),
        credit_limit=Decimal("1000"),
        cut_off_day=15,
        grace_days=20,
    ))


@pytest.fixture
async def debtors(registry):
    return [
        await registry.create_account(DebtorAccount(name=name))
        for name in ("Ana", "Luis")
    ]


@pytest.fixture
async def creditor(registry):
    return await registry.create_account(CreditorAccount(name="Landlord"))


@pytest.fixture
def events_of(audit_storage):
    """Audit events of one type, in the order they were logged."""
    def select(event_type):
        return [e for e in audit_storage.events if e.event_type == event_type]
    return select
