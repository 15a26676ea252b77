"""
Installment Plans

A credit card charge paid "in N months" is recorded as its first
monthly installment (total / N) carrying the original total and count.
The schedule of due dates comes from the card's billing cycle, starting
with the cycle the transaction date falls in.
"""

from datetime import date
from decimal import Decimal

from pocket_ledger.calculations.billing_cycle import installment_due_dates
from pocket_ledger.exceptions import ValidationError
from pocket_ledger.models.account import CreditCardAccount, quantize_money
from pocket_ledger.models.billing import InstallmentPlan


def build_installment_plan(
    card: CreditCardAccount,
    total_amount: Decimal,
    installments_count: int,
    transaction_date: date,
) -> InstallmentPlan:
    """
    Split a charge into monthly installments.

    Raises:
        ValidationError: If the total is not positive or fewer than 2
            installments are requested
    """
    if total_amount <= 0:
        raise ValidationError("Installment total must be greater than zero", field="amount")
    if installments_count < 2:
        raise ValidationError(
            "An installment plan needs at least 2 installments",
            field="installments_count",
        )

    due_dates = installment_due_dates(
        card.cut_off_day, card.grace_days, transaction_date, installments_count
    )
    return InstallmentPlan(
        total_amount=quantize_money(total_amount),
        installments_count=installments_count,
        installment_amount=quantize_money(Decimal(total_amount) / installments_count),
        first_due_date=due_dates[0],
        due_dates=due_dates,
    )
