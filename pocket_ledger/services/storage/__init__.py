"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
The in-memory backend is always available; Google Sheets is the persistent
backend, imported on demand so gspread is only touched when configured.
"""

from pocket_ledger.services.storage.interface import (
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
from pocket_ledger.services.storage.memory import (
    InMemoryAccountStorage,
    InMemoryAuditStorage,
    InMemoryBudgetStorage,
    InMemoryEntryStorage,
)

__all__ = [
    # Interfaces
    "AccountStorageInterface",
    "AuditStorageInterface",
    "BudgetStorageInterface",
    "EntryStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StaleVersionError",
    "StorageError",
    # In-memory implementation
    "InMemoryAccountStorage",
    "InMemoryAuditStorage",
    "InMemoryBudgetStorage",
    "InMemoryEntryStorage",
]
