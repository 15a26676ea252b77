"""Billing cycle and due-date models for credit cards."""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator


class BillingCycle(BaseModel):
    """
    The statement whose debt is currently owed.

    cycle_end is the cut-off date that closed it; due_date is that
    cut-off plus the card's grace days.
    """
    model_config = ConfigDict(frozen=True)

    cycle_start: date
    cycle_end: date
    due_date: date

    @model_validator(mode="after")
    def validate_order(self) -> "BillingCycle":
        if self.cycle_end < self.cycle_start:
            raise ValueError("Billing cycle end cannot be before start")
        if self.due_date < self.cycle_end:
            raise ValueError("Due date cannot be before the cycle closes")
        return self

    def contains(self, day: date) -> bool:
        return self.cycle_start <= day <= self.cycle_end

    @property
    def cut_off_date(self) -> date:
        """The cut-off that closed this cycle."""
        return self.cycle_end


class InstallmentPlan(BaseModel):
    """Monthly split of a credit card charge."""

    total_amount: Decimal = Field(..., gt=0)
    installments_count: int = Field(..., ge=2)
    installment_amount: Decimal = Field(..., gt=0)
    first_due_date: date
    due_dates: list[date] = Field(default_factory=list)


class AlertLevel(str, Enum):
    """How urgent a due-date alert is."""
    DUE_TODAY = "due_today"        # 0 days left
    DUE_TOMORROW = "due_tomorrow"  # 1 day left
    DUE_SOON = "due_soon"          # within the alert window
    CUT_OFF_SOON = "cut_off_soon"  # cycle about to close


class DueDateAlert(BaseModel):
    """One notification the dispatcher should deliver."""

    account_id: UUID
    account_name: str
    level: AlertLevel
    target_date: date
    days_remaining: int = Field(..., ge=0)
