"""
Shared Budget Models

A shared budget is one expense split between the user and N debtors.
Each debtor's share is charged to their debtor account when the budget
is created and paid back over time, possibly in several instalments.

INVARIANT: for every participant 0 <= paid_amount <= share_amount, and
the participants' shares plus the user's own share add up to the total.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from pocket_ledger.models.account import CENT, utcnow


# Amounts closer than this count as equal when deciding is_paid
PAID_EPSILON = CENT


class SplitType(str, Enum):
    """How the total is divided."""
    EQUAL = "equal"  # total / (participants + 1), the +1 is the user
    FIXED = "fixed"  # explicit amount per participant, user keeps the rest


class BudgetStatus(str, Enum):
    PENDING = "pending"
    SETTLED = "settled"
    CANCELLED = "cancelled"


class BudgetParticipant(BaseModel):
    """One debtor's share of a shared budget."""
    model_config = ConfigDict(validate_assignment=True)

    id: UUID = Field(default_factory=uuid4)
    debtor_id: UUID
    share_amount: Decimal = Field(..., gt=0)
    paid_amount: Decimal = Field(default=Decimal("0"), ge=0)

    @model_validator(mode="after")
    def validate_paid_bound(self) -> "BudgetParticipant":
        if self.paid_amount > self.share_amount:
            raise ValueError("paid_amount cannot exceed share_amount")
        return self

    @computed_field
    @property
    def is_paid(self) -> bool:
        return self.paid_amount >= self.share_amount - PAID_EPSILON

    @property
    def remaining_amount(self) -> Decimal:
        return max(self.share_amount - self.paid_amount, Decimal("0"))


class SharedBudget(BaseModel):
    """
    An expense split across participants.

    If creditor_id is set, the expense was fronted on credit and the
    creditor account was charged the full total at creation time.
    """
    model_config = ConfigDict(str_strip_whitespace=True, validate_assignment=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    total_amount: Decimal = Field(..., gt=0)
    split_type: SplitType = SplitType.EQUAL
    user_share: Decimal = Field(..., ge=0)
    creditor_id: Optional[UUID] = None
    creditor_entry_id: Optional[UUID] = Field(
        default=None,
        description="Charge entry on the creditor account, reversed on cancel"
    )
    participants: list[BudgetParticipant] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=utcnow)
    cancelled_at: Optional[datetime] = None

    @model_validator(mode="after")
    def validate_split_sum(self) -> "SharedBudget":
        shares = sum((p.share_amount for p in self.participants), Decimal("0"))
        if abs(shares + self.user_share - self.total_amount) > PAID_EPSILON:
            raise ValueError(
                "Participant shares plus the user's share must equal the total"
            )
        return self

    @computed_field
    @property
    def status(self) -> BudgetStatus:
        if self.cancelled_at is not None:
            return BudgetStatus.CANCELLED
        if all(p.is_paid for p in self.participants):
            return BudgetStatus.SETTLED
        return BudgetStatus.PENDING

    @property
    def outstanding_amount(self) -> Decimal:
        """What the participants still owe."""
        return sum((p.remaining_amount for p in self.participants), Decimal("0"))

    @property
    def collected_amount(self) -> Decimal:
        return sum((p.paid_amount for p in self.participants), Decimal("0"))

    @property
    def pending_participants(self) -> list[BudgetParticipant]:
        return [p for p in self.participants if not p.is_paid]

    def get_participant(self, participant_id: UUID) -> Optional[BudgetParticipant]:
        for participant in self.participants:
            if participant.id == participant_id:
                return participant
        return None
