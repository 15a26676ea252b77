"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Add caching layers transparently
4. Keep ledger logic decoupled from storage implementation

IMPORTANT: No implementation is assumed to offer multi-row transactions.
Each method is one round trip that either happens or does not; anything
spanning several rows is coordinated above this layer as a saga.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pocket_ledger.exceptions import LedgerError, NotFoundError
from pocket_ledger.models.account import AccountBase, AccountKind
from pocket_ledger.models.audit import AuditEvent
from pocket_ledger.models.budget import SharedBudget
from pocket_ledger.models.ledger import LedgerEntry


class AccountStorageInterface(ABC):
    """
    Abstract interface for account storage operations.

    Balance writes are guarded by the account's version stamp.
    """

    @abstractmethod
    async def create_account(self, account: AccountBase) -> bool:
        """
        Persist a new account.

        Raises:
            DuplicateError: If an account with the same ID exists
        """
        pass

    @abstractmethod
    async def get_account(self, account_id: UUID) -> Optional[AccountBase]:
        """Retrieve an account by ID, None if absent."""
        pass

    @abstractmethod
    async def list_accounts(
        self,
        kind: Optional[AccountKind] = None,
    ) -> list[AccountBase]:
        """List accounts, optionally only those of one kind."""
        pass

    @abstractmethod
    async def update_balance(
        self,
        account_id: UUID,
        new_balance: Decimal,
        expected_version: int,
    ) -> AccountBase:
        """
        Overwrite current_balance if the stored version still matches.

        Args:
            account_id: Account to update
            new_balance: Balance to store
            expected_version: Version the caller read the balance at

        Returns:
            The updated account with its version bumped by one

        Raises:
            NotFoundError: If the account doesn't exist
            StaleVersionError: If another writer got there first
        """
        pass


class EntryStorageInterface(ABC):
    """
    Abstract interface for ledger entry storage.

    Entries are append-only apart from the deletion marker.
    """

    @abstractmethod
    async def save_entry(self, entry: LedgerEntry) -> bool:
        """
        Append an entry.

        Raises:
            DuplicateError: If an entry with the same ID exists
        """
        pass

    @abstractmethod
    async def get_entry(self, entry_id: UUID) -> Optional[LedgerEntry]:
        """Retrieve an entry by ID (deleted ones included), None if absent."""
        pass

    @abstractmethod
    async def list_entries(
        self,
        account_id: UUID,
        include_deleted: bool = False,
    ) -> list[LedgerEntry]:
        """
        List an account's entries in chronological order.

        Args:
            account_id: Owning account
            include_deleted: Also return entries marked deleted
        """
        pass

    @abstractmethod
    async def mark_deleted(
        self,
        entry_id: UUID,
        deleted_at: datetime,
    ) -> LedgerEntry:
        """
        Set the deletion marker on an entry.

        Raises:
            NotFoundError: If the entry doesn't exist
        """
        pass

    @abstractmethod
    async def remove_entry(self, entry_id: UUID) -> bool:
        """
        Physically remove an entry whose balance write never happened.

        Returns:
            True if a row was removed
        """
        pass


class BudgetStorageInterface(ABC):
    """Abstract interface for shared budget storage."""

    @abstractmethod
    async def save_budget(self, budget: SharedBudget) -> bool:
        """
        Persist a new budget with its participants.

        Raises:
            DuplicateError: If a budget with the same ID exists
        """
        pass

    @abstractmethod
    async def get_budget(self, budget_id: UUID) -> Optional[SharedBudget]:
        pass

    @abstractmethod
    async def update_budget(self, budget: SharedBudget) -> bool:
        """
        Replace a stored budget.

        Raises:
            NotFoundError: If the budget doesn't exist
        """
        pass

    @abstractmethod
    async def list_budgets(self, include_cancelled: bool = False) -> list[SharedBudget]:
        """List budgets, newest first."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one saga).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(LedgerError):
    """Base exception for storage operations."""
    code = "STORAGE_ERROR"


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    code = "DUPLICATE"


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    code = "CONNECTION_ERROR"


class StaleVersionError(StorageError):
    """The row changed since it was read (optimistic concurrency)."""
    code = "STALE_VERSION"

    def __init__(self, account_id: UUID, expected_version: int, actual_version: int):
        self.account_id = account_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Account {account_id} is at version {actual_version}, "
            f"write expected {expected_version}"
        )


__all__ = [
    "AccountStorageInterface",
    "AuditStorageInterface",
    "BudgetStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "EntryStorageInterface",
    "NotFoundError",
    "StaleVersionError",
    "StorageError",
]
