"""Services package."""

from pocket_ledger.services.storage import (
    AccountStorageInterface,
    AuditStorageInterface,
    BudgetStorageInterface,
    ConnectionError,
    DuplicateError,
    EntryStorageInterface,
    NotFoundError,
    StaleVersionError,
    StorageError,
)

__all__ = [
    # Storage interfaces
    "AccountStorageInterface",
    "AuditStorageInterface",
    "BudgetStorageInterface",
    "EntryStorageInterface",
    # Storage exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StaleVersionError",
    "StorageError",
]
