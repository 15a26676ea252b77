"""
Shared Budget Settlement

Pure bookkeeping for shared budgets: building the split, recording
repayments and bulk settlement. Nothing here touches storage; the
coordinator pairs every state change with the matching ledger entries.

RULES:
- Equal split divides by participants + 1 (the user pays a share too).
  Shares are rounded down to cents and the user absorbs the remainder,
  so the parts always add up to the total exactly.
- A participant is paid once paid_amount >= share_amount - epsilon.
- A payment may exceed the remaining share by at most epsilon; the
  excess is not credited, so paid_amount never exceeds share_amount.
"""

from decimal import ROUND_DOWN, Decimal
from typing import NamedTuple, Optional
from uuid import UUID

from pocket_ledger.config import LedgerSettings, get_settings
from pocket_ledger.exceptions import NotFoundError, OverpaymentError, ValidationError
from pocket_ledger.models.account import CENT, quantize_money, utcnow
from pocket_ledger.models.budget import (
    BudgetParticipant,
    BudgetStatus,
    SharedBudget,
    SplitType,
)


class AppliedPayment(NamedTuple):
    """A repayment credited to one participant."""
    participant: BudgetParticipant
    amount: Decimal


class SharedBudgetSettlement:
    """Builds splits and tracks repayment against them."""

    def __init__(self, settings: Optional[LedgerSettings] = None):
        self._epsilon = (settings or get_settings().ledger).epsilon

    def create_split(
        self,
        name: str,
        total_amount: Decimal,
        debtor_ids: list[UUID],
        split_type: SplitType = SplitType.EQUAL,
        fixed_amounts: Optional[dict[UUID, Decimal]] = None,
        creditor_id: Optional[UUID] = None,
        description: Optional[str] = None,
    ) -> SharedBudget:
        """
        Split a total between the selected debtors and the user.

        Args:
            name: Budget name
            total_amount: Whole expense
            debtor_ids: Debtor accounts that owe a share
            split_type: EQUAL, or FIXED with fixed_amounts per debtor
            fixed_amounts: {debtor_id: share}; the user keeps the rest
            creditor_id: Who fronted the money, if it was on credit

        Raises:
            ValidationError: On a non-positive total, no participants,
                duplicate participants, or fixed shares that don't fit
        """
        if total_amount is None or Decimal(total_amount) <= 0:
            raise ValidationError("Total amount must be greater than zero", field="total_amount")
        if not debtor_ids:
            raise ValidationError("Select at least one participant", field="participants")
        if len(set(debtor_ids)) != len(debtor_ids):
            raise ValidationError("A participant was selected twice", field="participants")

        total = quantize_money(total_amount)
        split_type = SplitType(split_type)

        if split_type == SplitType.EQUAL:
            share = (total / (len(debtor_ids) + 1)).quantize(CENT, rounding=ROUND_DOWN)
            if share <= 0:
                raise ValidationError(
                    "Total is too small to split between this many people",
                    field="total_amount",
                )
            shares = {debtor_id: share for debtor_id in debtor_ids}
        else:
            shares = self._fixed_shares(total, debtor_ids, fixed_amounts or {})

        user_share = total - sum(shares.values(), Decimal("0"))
        return SharedBudget(
            name=name,
            description=description,
            total_amount=total,
            split_type=split_type,
            user_share=user_share,
            creditor_id=creditor_id,
            participants=[
                BudgetParticipant(debtor_id=debtor_id, share_amount=amount)
                for debtor_id, amount in shares.items()
            ],
        )

    def _fixed_shares(
        self,
        total: Decimal,
        debtor_ids: list[UUID],
        fixed_amounts: dict[UUID, Decimal],
    ) -> dict[UUID, Decimal]:
        if set(fixed_amounts) != set(debtor_ids):
            raise ValidationError(
                "Fixed split needs exactly one amount per participant",
                field="fixed_amounts",
            )

        shares = {}
        for debtor_id in debtor_ids:
            amount = quantize_money(fixed_amounts[debtor_id])
            if amount <= 0:
                raise ValidationError(
                    f"Share for participant {debtor_id} must be greater than zero",
                    field="fixed_amounts",
                )
            shares[debtor_id] = amount

        if sum(shares.values(), Decimal("0")) > total:
            raise ValidationError(
                "Participant shares add up to more than the total",
                field="fixed_amounts",
            )
        return shares

    def record_partial_payment(
        self,
        budget: SharedBudget,
        participant_id: UUID,
        amount: Decimal,
    ) -> tuple[SharedBudget, AppliedPayment]:
        """
        Credit a repayment to one participant.

        Returns:
            (updated copy of the budget, the payment actually credited)

        Raises:
            NotFoundError: If the participant isn't in the budget
            ValidationError: On a non-positive amount or a cancelled budget
            OverpaymentError: If amount exceeds the remaining share + epsilon
        """
        if budget.status == BudgetStatus.CANCELLED:
            raise ValidationError("Budget is cancelled", field="budget_id")
        if amount is None or Decimal(amount) <= 0:
            raise ValidationError("Payment must be greater than zero", field="amount")

        updated = budget.model_copy(deep=True)
        participant = updated.get_participant(participant_id)
        if participant is None:
            raise NotFoundError("Participant", participant_id)

        remaining = participant.remaining_amount
        if amount > remaining + self._epsilon:
            raise OverpaymentError(remaining, amount, f"participant {participant_id}")

        credited = quantize_money(min(Decimal(amount), remaining))
        if credited <= 0:
            raise OverpaymentError(remaining, amount, f"participant {participant_id}")
        participant.paid_amount = participant.paid_amount + credited
        return updated, AppliedPayment(participant, credited)

    def plan_settlement(self, budget: SharedBudget) -> list[AppliedPayment]:
        """
        The exact remaining amount of every participant not yet paid.

        Empty once everyone is paid, which makes bulk settlement idempotent.
        """
        if budget.status == BudgetStatus.CANCELLED:
            return []
        return [
            AppliedPayment(participant, participant.remaining_amount)
            for participant in budget.pending_participants
            if participant.remaining_amount > 0
        ]

    def settle_all(self, budget: SharedBudget) -> tuple[SharedBudget, list[AppliedPayment]]:
        """Mark every participant fully paid."""
        payments = []
        for planned in self.plan_settlement(budget):
            budget, applied = self.record_partial_payment(
                budget, planned.participant.id, planned.amount
            )
            payments.append(applied)
        return budget, payments

    def cancel(self, budget: SharedBudget) -> SharedBudget:
        """
        Raises:
            ValidationError: If the budget is already cancelled
        """
        if budget.status == BudgetStatus.CANCELLED:
            raise ValidationError("Budget is already cancelled", field="budget_id")
        return budget.model_copy(update={"cancelled_at": utcnow()}, deep=True)
