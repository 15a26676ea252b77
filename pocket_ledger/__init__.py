"""
Pocket Ledger - Source Package

The ledger consistency and billing-cycle engine behind a personal
money tracker: cash, debit and credit cards, savings, debtors,
creditors and shared expenses.

DESIGN PRINCIPLES:
1. A balance is always explainable by its entries
2. Fail early, fail visibly
3. No silent corrections
4. Multi-account writes are sagas with compensation
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Pocket Ledger Team"
