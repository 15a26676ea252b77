"""Shared budgets split between the user and their debtors."""

from pocket_ledger.budgets.settlement import AppliedPayment, SharedBudgetSettlement

__all__ = ["AppliedPayment", "SharedBudgetSettlement"]
