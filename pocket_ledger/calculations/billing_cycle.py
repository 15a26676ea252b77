"""
Billing Cycle Calculator

Pure date arithmetic for revolving-credit cards. Everything derives
from two numbers on the card: the cut-off day (1..31) and the grace
days between cut-off and payment due date.

RULES:
- A cut-off day that does not exist in a month (31 in April, 30 in
  February) is clamped to that month's last day.
- The reference date falling exactly on the cut-off day means the cycle
  has NOT rolled over yet.
- A due date equal to the reference date is still payable, not overdue.

All boundaries are inclusive.
"""

from calendar import monthrange
from datetime import date, timedelta
from typing import Iterable, Optional

from pocket_ledger.exceptions import ValidationError
from pocket_ledger.models.account import AccountBase, AccountKind, CreditCardAccount
from pocket_ledger.models.billing import (
    AlertLevel,
    BillingCycle,
    DueDateAlert,
)


def _validate(cut_off_day: int, grace_days: int) -> None:
    if not 1 <= cut_off_day <= 31:
        raise ValidationError("cut_off_day must be between 1 and 31", field="cut_off_day")
    if grace_days < 0:
        raise ValidationError("grace_days cannot be negative", field="grace_days")


def _month_index(day: date) -> int:
    return day.year * 12 + (day.month - 1)


def cut_off_for_month(cut_off_day: int, month_index: int) -> date:
    """Cut-off date in the given month, clamped to the month's length."""
    year, month0 = divmod(month_index, 12)
    last_day = monthrange(year, month0 + 1)[1]
    return date(year, month0 + 1, min(cut_off_day, last_day))


def _upcoming_cut_off_index(cut_off_day: int, reference_date: date) -> int:
    index = _month_index(reference_date)
    if cut_off_for_month(cut_off_day, index) >= reference_date:
        return index
    return index + 1


def get_upcoming_cut_off(cut_off_day: int, reference_date: date) -> date:
    """This month's cut-off if it is on/after the reference date, else next month's."""
    _validate(cut_off_day, 0)
    return cut_off_for_month(
        cut_off_day, _upcoming_cut_off_index(cut_off_day, reference_date)
    )


def get_upcoming_due_date(
    cut_off_day: int,
    grace_days: int,
    reference_date: Optional[date] = None,
) -> date:
    """Upcoming cut-off plus the grace days."""
    _validate(cut_off_day, grace_days)
    reference_date = reference_date or date.today()
    return get_upcoming_cut_off(cut_off_day, reference_date) + timedelta(days=grace_days)


def compute_billing_cycle(
    cut_off_day: int,
    grace_days: int,
    reference_date: Optional[date] = None,
) -> BillingCycle:
    """
    The billing cycle whose debt is currently owed.

    It ends at the most recent cut-off on or before the reference date
    while that statement's due date has not passed. Once it has, the
    cycle rolls forward to the upcoming cut-off. The cycle starts the
    day after the cut-off before its end.

    Example: cut-off 15, 20 grace days, today 2024-01-10. The December
    statement was due 2024-01-04 and has passed, so the relevant cycle
    is 2023-12-16..2024-01-15, due 2024-02-04.
    """
    _validate(cut_off_day, grace_days)
    reference_date = reference_date or date.today()
    grace = timedelta(days=grace_days)

    index = _month_index(reference_date)
    if cut_off_for_month(cut_off_day, index) > reference_date:
        index -= 1
    if cut_off_for_month(cut_off_day, index) + grace < reference_date:
        index = _upcoming_cut_off_index(cut_off_day, reference_date)

    cycle_end = cut_off_for_month(cut_off_day, index)
    cycle_start = cut_off_for_month(cut_off_day, index - 1) + timedelta(days=1)
    return BillingCycle(
        cycle_start=cycle_start,
        cycle_end=cycle_end,
        due_date=cycle_end + grace,
    )


def billing_cycle_for_card(
    card: CreditCardAccount,
    reference_date: Optional[date] = None,
) -> BillingCycle:
    return compute_billing_cycle(card.cut_off_day, card.grace_days, reference_date)


# =============================================================================
# INSTALLMENTS
# =============================================================================

def first_installment_due_date(
    cut_off_day: int,
    grace_days: int,
    transaction_date: date,
) -> date:
    """A charge is billed in the cycle that closes on or after its own date."""
    return get_upcoming_due_date(cut_off_day, grace_days, transaction_date)


def installment_due_dates(
    cut_off_day: int,
    grace_days: int,
    transaction_date: date,
    installments_count: int,
) -> list[date]:
    """Due date of every monthly installment, first one included."""
    _validate(cut_off_day, grace_days)
    if installments_count < 1:
        raise ValidationError("installments_count must be positive", field="installments_count")

    first_index = _upcoming_cut_off_index(cut_off_day, transaction_date)
    grace = timedelta(days=grace_days)
    return [
        cut_off_for_month(cut_off_day, first_index + i) + grace
        for i in range(installments_count)
    ]


# =============================================================================
# NOTIFICATION SUPPORT
# =============================================================================

def due_date_alert_level(days_remaining: int, alert_days: int = 7) -> Optional[AlertLevel]:
    """
    Map days-until-due to an alert level.

    0 -> due today, 1 -> due tomorrow, up to alert_days -> due soon.
    Negative or larger values produce no alert.
    """
    if days_remaining < 0:
        return None
    if days_remaining == 0:
        return AlertLevel.DUE_TODAY
    if days_remaining == 1:
        return AlertLevel.DUE_TOMORROW
    if days_remaining <= alert_days:
        return AlertLevel.DUE_SOON
    return None


def collect_due_date_alerts(
    accounts: Iterable[AccountBase],
    today: Optional[date] = None,
    alert_days: int = 7,
    cut_off_reminder_days: int = 2,
) -> list[DueDateAlert]:
    """
    Alerts for every credit card whose payment or cut-off is close.

    Payment alerts are skipped for cards with no debt.
    """
    today = today or date.today()
    alerts = []

    for account in accounts:
        if account.account_kind != AccountKind.CREDIT_CARD:
            continue

        cycle = billing_cycle_for_card(account, today)
        days_to_due = (cycle.due_date - today).days
        level = due_date_alert_level(days_to_due, alert_days)
        if level is not None and account.current_balance > 0:
            alerts.append(DueDateAlert(
                account_id=account.id,
                account_name=account.name,
                level=level,
                target_date=cycle.due_date,
                days_remaining=days_to_due,
            ))

        cut_off = get_upcoming_cut_off(account.cut_off_day, today)
        days_to_cut_off = (cut_off - today).days
        if days_to_cut_off <= cut_off_reminder_days:
            alerts.append(DueDateAlert(
                account_id=account.id,
                account_name=account.name,
                level=AlertLevel.CUT_OFF_SOON,
                target_date=cut_off,
                days_remaining=days_to_cut_off,
            ))

    return alerts
