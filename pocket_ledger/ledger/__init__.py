"""Accounts, entries and the rules that keep them consistent."""

from pocket_ledger.ledger.installments import build_installment_plan
from pocket_ledger.ledger.notifications import ChangeNotifier
from pocket_ledger.ledger.registry import AccountRegistry
from pocket_ledger.ledger.transactions import TransactionLedger, new_entry

__all__ = [
    "AccountRegistry",
    "ChangeNotifier",
    "TransactionLedger",
    "build_installment_plan",
    "new_entry",
]
