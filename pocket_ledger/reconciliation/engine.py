"""
Reconciliation Engine

The user looks at the real world (wallet, bank app, card statement),
types the balance they see, and the ledger is corrected to match with
exactly one adjustment entry, or none when the figures already agree.

The comparison is done in the figure the user actually reads for that
kind of account:

- cash / debit / saving   the balance itself
- credit card with limit  the available credit (limit - debt)
- everything else         the amount owed (debtor, creditor, card without limit)

In every view "real > ledger" means the figure has to go up. The plan is
expressed as deposit/withdrawal in that view and translated to the
concrete entry kind per account.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import NamedTuple, Optional
from uuid import UUID

from pocket_ledger.config import LedgerSettings, get_settings
from pocket_ledger.exceptions import ValidationError
from pocket_ledger.models.account import AccountBase, AccountKind, quantize_money
from pocket_ledger.models.ledger import EntryKind, LedgerEntry


class ReconciliationView(str, Enum):
    """Which figure the asserted balance is compared against."""
    BALANCE = "balance"
    AVAILABLE_CREDIT = "available_credit"
    AMOUNT_OWED = "amount_owed"


class ReconciliationPlan(NamedTuple):
    """What reconcile() will do. entry_kind is None for a no-op."""
    difference: Decimal
    entry_kind: Optional[EntryKind]
    amount: Decimal

    @property
    def is_noop(self) -> bool:
        return self.entry_kind is None


class ReconciliationEngine:
    """Pure planning; applying the adjustment is the coordinator's job."""

    def __init__(self, settings: Optional[LedgerSettings] = None):
        self._epsilon = (settings or get_settings().ledger).epsilon

    @staticmethod
    def view_for(account: AccountBase) -> ReconciliationView:
        if account.is_asset:
            return ReconciliationView.BALANCE
        if account.account_kind == AccountKind.CREDIT_CARD and account.credit_limit is not None:
            return ReconciliationView.AVAILABLE_CREDIT
        return ReconciliationView.AMOUNT_OWED

    def ledger_figure(self, account: AccountBase) -> Decimal:
        """The ledger's side of the comparison for this account."""
        if self.view_for(account) == ReconciliationView.AVAILABLE_CREDIT:
            return account.available_credit
        return account.current_balance

    def plan(self, ledger_balance: Decimal, asserted_balance: Decimal) -> ReconciliationPlan:
        """
        Decide the adjustment for two figures in the same view.

        |difference| < epsilon is a no-op. Otherwise one deposit
        (real > ledger) or withdrawal (real < ledger) of |difference|.

            >>> ReconciliationEngine().plan(Decimal("80"), Decimal("100")).entry_kind
            <EntryKind.DEPOSIT: 'deposit'>
        """
        if not Decimal(asserted_balance).is_finite():
            raise ValidationError("Asserted balance must be a finite number", field="asserted_balance")

        difference = Decimal(asserted_balance) - Decimal(ledger_balance)
        if abs(difference) < self._epsilon:
            return ReconciliationPlan(difference, None, Decimal("0"))

        amount = quantize_money(abs(difference))
        kind = EntryKind.DEPOSIT if difference > 0 else EntryKind.WITHDRAWAL
        return ReconciliationPlan(difference, kind, amount)

    def plan_for_account(self, account: AccountBase, asserted_balance: Decimal) -> ReconciliationPlan:
        """
        Plan in the account's own view, with the entry kind translated.

        Owed-amount accounts grow with charges, so "real > ledger"
        becomes a charge and "real < ledger" a payment. Deposits and
        withdrawals already move the balance and the available credit in
        the right direction.
        """
        plan = self.plan(self.ledger_figure(account), asserted_balance)
        if plan.is_noop or self.view_for(account) != ReconciliationView.AMOUNT_OWED:
            return plan

        kind = EntryKind.CHARGE if plan.entry_kind == EntryKind.DEPOSIT else EntryKind.PAYMENT
        return plan._replace(entry_kind=kind)

    def build_adjustment(
        self,
        account: AccountBase,
        plan: ReconciliationPlan,
        correlation_id: Optional[UUID] = None,
        entry_date: Optional[date] = None,
    ) -> Optional[LedgerEntry]:
        """The single adjustment entry for a plan, None for a no-op."""
        if plan.is_noop:
            return None
        return LedgerEntry(
            account_id=account.id,
            kind=plan.entry_kind,
            amount=plan.amount,
            entry_date=entry_date or date.today(),
            description=f"Reconciliation adjustment (difference: {plan.difference:.2f})",
            is_adjustment=True,
            correlation_id=correlation_id,
        )
