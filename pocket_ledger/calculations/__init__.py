"""Side-effect-free calculators: expressions and billing cycles."""

from pocket_ledger.calculations.billing_cycle import (
    billing_cycle_for_card,
    collect_due_date_alerts,
    compute_billing_cycle,
    cut_off_for_month,
    due_date_alert_level,
    first_installment_due_date,
    get_upcoming_cut_off,
    get_upcoming_due_date,
    installment_due_dates,
)
from pocket_ledger.calculations.expression import (
    ExpressionEvaluator,
    evaluate_expression,
    parse_amount_input,
)

__all__ = [
    "ExpressionEvaluator",
    "billing_cycle_for_card",
    "collect_due_date_alerts",
    "compute_billing_cycle",
    "cut_off_for_month",
    "due_date_alert_level",
    "evaluate_expression",
    "first_installment_due_date",
    "get_upcoming_cut_off",
    "get_upcoming_due_date",
    "installment_due_dates",
    "parse_amount_input",
]
