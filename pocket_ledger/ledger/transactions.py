"""
Transaction Ledger

The append-only entry history that justifies every balance.

INVARIANT: for every account,
    current_balance == initial_balance + sum(signed(entry))
over all entries that are not marked deleted.

ORDERING (no multi-row transactions in storage):
- apply:   save the entry, then write the balance. If the balance write
           fails the entry row is removed again.
- reverse: write the inverse balance delta, then mark the entry deleted.
           If marking fails the delta is re-applied.
Either way a single failure never leaves an entry and a balance that
disagree.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

import structlog
from pydantic import ValidationError as PydanticValidationError

from pocket_ledger.audit import AuditLogger
from pocket_ledger.config import LedgerSettings, get_settings
from pocket_ledger.exceptions import (
    CreditLimitExceededError,
    InsufficientBalanceError,
    NotFoundError,
    ValidationError,
)
from pocket_ledger.ledger.registry import AccountRegistry
from pocket_ledger.models.account import AccountBase, AccountKind, utcnow
from pocket_ledger.models.ledger import (
    OUTFLOW_KINDS,
    ChangeKind,
    EntryKind,
    IntegrityReport,
    LedgerChange,
    LedgerEntry,
    signed_delta,
)
from pocket_ledger.services.storage import EntryStorageInterface
from pocket_ledger.validation import EntryValidator


logger = structlog.get_logger("pocket_ledger.ledger")


def new_entry(**fields: Any) -> LedgerEntry:
    """
    Build a LedgerEntry, reporting bad input as a ledger ValidationError.

    Raises:
        ValidationError: With the first offending field
    """
    try:
        return LedgerEntry(**fields)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or None
        raise ValidationError(first["msg"], field=field) from e


def _fold(account: AccountBase, entries: list[LedgerEntry]) -> Decimal:
    return account.initial_balance + sum(
        (entry.signed_amount(account) for entry in entries),
        Decimal("0"),
    )


class TransactionLedger:
    """Applies and reverses entries, keeping balances consistent with them."""

    def __init__(
        self,
        registry: AccountRegistry,
        storage: EntryStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[EntryValidator] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._registry = registry
        self._storage = storage
        self._audit = audit_logger or AuditLogger()
        self._settings = settings or get_settings().ledger
        self._validator = validator or EntryValidator(self._settings)

    @property
    def registry(self) -> AccountRegistry:
        return self._registry

    # -------------------------------------------------------------------------
    # Balance rules
    # -------------------------------------------------------------------------

    def _funds_check(self, entry: LedgerEntry):
        """
        Build the business-rule check run against every fresh balance read.

        Adjustments are exempt: reconciliation records what the real
        world already did.
        """
        def check(account: AccountBase, new_balance: Decimal) -> None:
            if entry.is_adjustment or entry.kind not in OUTFLOW_KINDS:
                return

            if not account.allows_negative_balance and new_balance < 0:
                raise InsufficientBalanceError(
                    account.id, account.current_balance, entry.amount
                )

            if (
                account.account_kind == AccountKind.CREDIT_CARD
                and self._settings.enforce_credit_limit
                and account.credit_limit is not None
                and new_balance > account.credit_limit
            ):
                raise CreditLimitExceededError(
                    account.id, account.available_credit, entry.amount
                )

        return check

    # -------------------------------------------------------------------------
    # Apply / reverse
    # -------------------------------------------------------------------------

    async def apply_entry(self, entry: LedgerEntry) -> AccountBase:
        """
        Apply an entry to its account.

        Re-applying an entry that is already recorded is a no-op, which
        makes saga steps safe to retry.

        Returns:
            The account with its updated balance

        Raises:
            NotFoundError: If the account doesn't exist
            ValidationError: On a bad amount or date, or a re-applied
                entry that was already reversed
            InsufficientBalanceError: If a funds-holding account would go
                below zero (CreditLimitExceededError for cards over limit)
        """
        account = await self._registry.get_account(entry.account_id)

        existing = await self._storage.get_entry(entry.id)
        if existing is not None:
            if existing.is_deleted:
                raise ValidationError(
                    f"Entry {entry.id} was reversed and cannot be re-applied",
                    field="id",
                )
            logger.info("entry_already_applied", entry_id=str(entry.id))
            return account

        check = self._funds_check(entry)
        delta = signed_delta(account.account_kind, entry.kind, entry.amount)
        try:
            self._validator.ensure_valid(
                account,
                entry.kind,
                entry.amount,
                entry.entry_date,
                installments_count=entry.installments_count,
            )
            # Reject before touching storage
            check(account, account.current_balance + delta)
        except (ValidationError, InsufficientBalanceError) as e:
            await self._audit.log_entry_rejected(
                account_id=account.id,
                reason=str(e),
                error_code=e.code,
                correlation_id=entry.correlation_id,
            )
            raise

        await self._storage.save_entry(entry)
        try:
            updated = await self._registry.adjust_balance(account.id, delta, check)
        except BaseException:
            await self._storage.remove_entry(entry.id)
            raise

        await self._audit.log_entry_applied(
            entry_id=entry.id,
            account_id=account.id,
            kind=entry.kind.value,
            amount=entry.amount,
            new_balance=updated.current_balance,
            correlation_id=entry.correlation_id,
        )
        self._registry.notifier.publish(LedgerChange(
            change_kind=ChangeKind.ENTRY_ADDED,
            account_id=account.id,
            entry_id=entry.id,
            balance=updated.current_balance,
        ))
        return updated

    async def record(
        self,
        account_id: UUID,
        kind: EntryKind,
        amount: Decimal,
        entry_date: Optional[date] = None,
        description: str = "",
        **metadata: Any,
    ) -> tuple[LedgerEntry, AccountBase]:
        """
        Build and apply an entry from raw values.

        Returns:
            (the recorded entry, the account with its updated balance)
        """
        if amount is None or Decimal(amount) <= 0:
            raise ValidationError("Amount must be greater than zero", field="amount")
        fields = {
            "account_id": account_id,
            "kind": kind,
            "amount": amount,
            "description": description,
            **metadata,
        }
        if entry_date is not None:
            fields["entry_date"] = entry_date
        entry = new_entry(**fields)
        account = await self.apply_entry(entry)
        return entry, account

    async def reverse_entry(
        self,
        account_id: UUID,
        entry_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> AccountBase:
        """
        Undo an entry: apply the inverse delta, then mark it deleted.

        Reversing an entry that is already deleted is a no-op.

        Raises:
            NotFoundError: If the entry doesn't exist on that account
        """
        entry = await self._storage.get_entry(entry_id)
        if entry is None or entry.account_id != account_id:
            raise NotFoundError("Entry", entry_id)

        account = await self._registry.get_account(account_id)
        if entry.is_deleted:
            logger.info("entry_already_reversed", entry_id=str(entry_id))
            return account

        delta = signed_delta(account.account_kind, entry.kind, entry.amount)
        updated = await self._registry.adjust_balance(account_id, -delta)
        try:
            await self._storage.mark_deleted(entry_id, utcnow())
        except BaseException:
            await self._registry.adjust_balance(account_id, delta)
            raise

        await self._audit.log_entry_reversed(
            entry_id=entry_id,
            account_id=account_id,
            new_balance=updated.current_balance,
            correlation_id=correlation_id,
        )
        self._registry.notifier.publish(LedgerChange(
            change_kind=ChangeKind.ENTRY_REVERSED,
            account_id=account_id,
            entry_id=entry_id,
            balance=updated.current_balance,
        ))
        return updated

    # -------------------------------------------------------------------------
    # Reads and integrity
    # -------------------------------------------------------------------------

    async def get_entry(self, entry_id: UUID) -> LedgerEntry:
        entry = await self._storage.get_entry(entry_id)
        if entry is None:
            raise NotFoundError("Entry", entry_id)
        return entry

    async def list_entries(
        self,
        account_id: UUID,
        include_deleted: bool = False,
    ) -> list[LedgerEntry]:
        """Entry history for one account, oldest first (read-only)."""
        await self._registry.get_account(account_id)
        return await self._storage.list_entries(account_id, include_deleted)

    async def recompute_balance(self, account_id: UUID) -> Decimal:
        """Fold every live entry onto the initial balance."""
        account = await self._registry.get_account(account_id)
        entries = await self._storage.list_entries(account_id)
        return _fold(account, entries)

    async def verify_integrity(self, account_id: UUID) -> IntegrityReport:
        """
        Compare the stored balance with the recomputed one.

        Drift is possible after concurrent writers or a half-finished
        operation; it is reported and audited, never silently fixed.
        """
        account = await self._registry.get_account(account_id)
        entries = await self._storage.list_entries(account_id)
        recomputed = _fold(account, entries)
        report = IntegrityReport(
            account_id=account_id,
            stored_balance=account.current_balance,
            recomputed_balance=recomputed,
            entry_count=len(entries),
        )
        if not report.is_consistent:
            await self._audit.log_integrity_drift(
                account_id=account_id,
                stored_balance=report.stored_balance,
                recomputed_balance=report.recomputed_balance,
            )
        return report


__all__ = ["TransactionLedger", "new_entry"]
