"""
Ledger Entry Models

A LedgerEntry is one line in an account's history. The amount is always
a positive magnitude; which way it moves the balance depends on the
entry kind and the owning account's kind (see signed_delta).

CRITICAL: Entries are immutable once created. The only permitted change
is deletion through the undo path, which reverses the balance delta
before the record is marked deleted.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from pocket_ledger.models.account import (
    ASSET_KINDS,
    AccountBase,
    AccountKind,
    quantize_money,
    utcnow,
)


class EntryKind(str, Enum):
    """
    Kinds of ledger entries.

    Reconciliation adjustments are deposits or withdrawals flagged with
    is_adjustment, not a separate kind.
    """
    CHARGE = "charge"
    PAYMENT = "payment"
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"


INFLOW_KINDS = frozenset({EntryKind.PAYMENT, EntryKind.DEPOSIT})
OUTFLOW_KINDS = frozenset({EntryKind.CHARGE, EntryKind.WITHDRAWAL})


def signed_delta(
    account_kind: AccountKind,
    entry_kind: EntryKind,
    amount: Decimal,
) -> Decimal:
    """
    Effect of an entry on current_balance.

    | Account kind              | charge/withdrawal | payment/deposit |
    |---------------------------|-------------------|-----------------|
    | cash / debit / saving     |        -          |        +        |
    | credit / debtor / creditor|        +          |        -        |
    """
    account_kind = AccountKind(account_kind)
    entry_kind = EntryKind(entry_kind)
    if account_kind in ASSET_KINDS:
        return amount if entry_kind in INFLOW_KINDS else -amount
    return -amount if entry_kind in INFLOW_KINDS else amount


def inflow_kind_for(account_kind: AccountKind) -> EntryKind:
    """The entry kind used when money lands in an account."""
    return EntryKind.DEPOSIT if AccountKind(account_kind) in ASSET_KINDS else EntryKind.PAYMENT


def outflow_kind_for(account_kind: AccountKind) -> EntryKind:
    """The entry kind used when money leaves an account."""
    return EntryKind.WITHDRAWAL if AccountKind(account_kind) in ASSET_KINDS else EntryKind.CHARGE


class LedgerEntry(BaseModel):
    """
    One immutable line of an account's history.

    Transfers produce two entries that reference each other through
    linked_entry_id. Installment charges record the monthly amount and
    keep the original total for display.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique entry ID"
    )
    account_id: UUID = Field(
        ...,
        description="Owning account"
    )
    kind: EntryKind
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Magnitude only; direction comes from kind and account"
    )
    entry_date: date = Field(
        default_factory=date.today,
        description="Date the movement happened"
    )
    description: str = Field(
        default="",
        max_length=500
    )
    linked_entry_id: Optional[UUID] = Field(
        default=None,
        description="The other half of a transfer"
    )
    is_adjustment: bool = Field(
        default=False,
        description="Created by reconciliation"
    )
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="Saga that created this entry"
    )

    # Installment metadata (credit card charges only)
    installments_total_amount: Optional[Decimal] = Field(default=None, gt=0)
    installments_count: Optional[int] = Field(default=None, ge=2)
    installment_number: Optional[int] = Field(default=None, ge=1)

    created_at: datetime = Field(default_factory=utcnow)
    deleted_at: Optional[datetime] = None

    @field_validator("amount", "installments_total_amount")
    @classmethod
    def round_to_cents(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        if v is None:
            return v
        rounded = quantize_money(v)
        if rounded <= 0:
            raise ValueError("Amount must be at least 0.01")
        return rounded

    @model_validator(mode="after")
    def validate_installments(self) -> "LedgerEntry":
        has_count = self.installments_count is not None
        has_total = self.installments_total_amount is not None
        if has_count != has_total:
            raise ValueError(
                "installments_count and installments_total_amount go together"
            )
        if has_count:
            if self.kind != EntryKind.CHARGE:
                raise ValueError("Only charges can be split into installments")
            if self.installment_number is None:
                raise ValueError("installment_number is required for installments")
            if self.installment_number > self.installments_count:
                raise ValueError("installment_number exceeds installments_count")
        return self

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def signed_amount(self, account: AccountBase) -> Decimal:
        """Balance delta this entry causes on its account."""
        return signed_delta(account.account_kind, self.kind, self.amount)


# =============================================================================
# OPERATION RESULTS
# =============================================================================

class TransferResult(BaseModel):
    """Both halves of a completed transfer and the resulting balances."""

    source_entry: LedgerEntry
    destination_entry: LedgerEntry
    source_balance: Decimal
    destination_balance: Decimal
    correlation_id: UUID


class ReconciliationResult(BaseModel):
    """
    Outcome of reconciling one account.

    adjustment_created is False when the asserted balance was within
    epsilon of the ledger (a no-op, reported distinctly from an adjustment).
    """

    account_id: UUID
    adjustment_created: bool
    difference: Decimal
    ledger_balance: Decimal
    asserted_balance: Decimal
    entry: Optional[LedgerEntry] = None
    new_balance: Decimal


class IntegrityReport(BaseModel):
    """Stored balance versus the balance re-derived from entries."""

    account_id: UUID
    stored_balance: Decimal
    recomputed_balance: Decimal
    entry_count: int

    @property
    def drift(self) -> Decimal:
        return self.stored_balance - self.recomputed_balance

    @property
    def is_consistent(self) -> bool:
        return self.drift == 0


class ChangeKind(str, Enum):
    """What a change notification is about."""
    ACCOUNT_CREATED = "account_created"
    BALANCE_CHANGED = "balance_changed"
    ENTRY_ADDED = "entry_added"
    ENTRY_REVERSED = "entry_reversed"
    BUDGET_CHANGED = "budget_changed"


class LedgerChange(BaseModel):
    """
    A precise change notification.

    Collaborators subscribe to these instead of refetching everything.
    """
    model_config = ConfigDict(frozen=True)

    change_kind: ChangeKind
    account_id: Optional[UUID] = None
    entry_id: Optional[UUID] = None
    budget_id: Optional[UUID] = None
    balance: Optional[Decimal] = None
    occurred_at: datetime = Field(default_factory=utcnow)
