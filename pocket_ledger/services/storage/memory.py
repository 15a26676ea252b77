"""
In-Memory Storage Implementation

Dictionary-backed implementation of the storage interfaces. Used by the
test suite and as the default backend when no spreadsheet is configured.

Models are copied on the way in and on the way out so that callers can
never mutate stored state without going through the interface.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pocket_ledger.models.account import AccountBase, AccountKind, quantize_money, utcnow
from pocket_ledger.models.audit import AuditEvent
from pocket_ledger.models.budget import SharedBudget
from pocket_ledger.models.ledger import LedgerEntry
from pocket_ledger.services.storage.interface import (
    AccountStorageInterface,
    AuditStorageInterface,
    BudgetStorageInterface,
    DuplicateError,
    EntryStorageInterface,
    NotFoundError,
    StaleVersionError,
)


class InMemoryAccountStorage(AccountStorageInterface):

    def __init__(self):
        self._accounts: dict[UUID, AccountBase] = {}

    async def create_account(self, account: AccountBase) -> bool:
        if account.id in self._accounts:
            raise DuplicateError(f"Account already exists: {account.id}")
        self._accounts[account.id] = account.model_copy(deep=True)
        return True

    async def get_account(self, account_id: UUID) -> Optional[AccountBase]:
        account = self._accounts.get(account_id)
        return account.model_copy(deep=True) if account else None

    async def list_accounts(
        self,
        kind: Optional[AccountKind] = None,
    ) -> list[AccountBase]:
        accounts = [
            a.model_copy(deep=True)
            for a in self._accounts.values()
            if kind is None or a.account_kind == kind
        ]
        accounts.sort(key=lambda a: a.created_at)
        return accounts

    async def update_balance(
        self,
        account_id: UUID,
        new_balance: Decimal,
        expected_version: int,
    ) -> AccountBase:
        stored = self._accounts.get(account_id)
        if stored is None:
            raise NotFoundError("Account", account_id)
        if stored.version != expected_version:
            raise StaleVersionError(account_id, expected_version, stored.version)

        updated = stored.model_copy(update={
            "current_balance": quantize_money(new_balance),
            "version": stored.version + 1,
            "updated_at": utcnow(),
        })
        self._accounts[account_id] = updated
        return updated.model_copy(deep=True)


class InMemoryEntryStorage(EntryStorageInterface):

    def __init__(self):
        self._entries: dict[UUID, LedgerEntry] = {}

    async def save_entry(self, entry: LedgerEntry) -> bool:
        if entry.id in self._entries:
            raise DuplicateError(f"Entry already exists: {entry.id}")
        self._entries[entry.id] = entry
        return True

    async def get_entry(self, entry_id: UUID) -> Optional[LedgerEntry]:
        return self._entries.get(entry_id)

    async def list_entries(
        self,
        account_id: UUID,
        include_deleted: bool = False,
    ) -> list[LedgerEntry]:
        entries = [
            e for e in self._entries.values()
            if e.account_id == account_id and (include_deleted or not e.is_deleted)
        ]
        entries.sort(key=lambda e: (e.entry_date, e.created_at))
        return entries

    async def mark_deleted(
        self,
        entry_id: UUID,
        deleted_at: datetime,
    ) -> LedgerEntry:
        entry = self._entries.get(entry_id)
        if entry is None:
            raise NotFoundError("Entry", entry_id)
        # Entries are frozen; the deletion marker replaces the record
        deleted = entry.model_copy(update={"deleted_at": deleted_at})
        self._entries[entry_id] = deleted
        return deleted

    async def remove_entry(self, entry_id: UUID) -> bool:
        return self._entries.pop(entry_id, None) is not None


class InMemoryBudgetStorage(BudgetStorageInterface):

    def __init__(self):
        self._budgets: dict[UUID, SharedBudget] = {}

    async def save_budget(self, budget: SharedBudget) -> bool:
        if budget.id in self._budgets:
            raise DuplicateError(f"Budget already exists: {budget.id}")
        self._budgets[budget.id] = budget.model_copy(deep=True)
        return True

    async def get_budget(self, budget_id: UUID) -> Optional[SharedBudget]:
        budget = self._budgets.get(budget_id)
        return budget.model_copy(deep=True) if budget else None

    async def update_budget(self, budget: SharedBudget) -> bool:
        if budget.id not in self._budgets:
            raise NotFoundError("Budget", budget.id)
        self._budgets[budget.id] = budget.model_copy(deep=True)
        return True

    async def list_budgets(self, include_cancelled: bool = False) -> list[SharedBudget]:
        budgets = [
            b.model_copy(deep=True)
            for b in self._budgets.values()
            if include_cancelled or b.cancelled_at is None
        ]
        budgets.sort(key=lambda b: b.created_at, reverse=True)
        return budgets


class InMemoryAuditStorage(AuditStorageInterface):

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return sorted(self.events, key=lambda e: e.timestamp, reverse=True)[:limit]
