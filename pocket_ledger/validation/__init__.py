"""Entry validation package."""

from pocket_ledger.validation.validator import EntryValidator

__all__ = ["EntryValidator"]
