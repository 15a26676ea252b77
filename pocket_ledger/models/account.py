"""
Account Models

One pydantic model per account kind, joined into a discriminated union
on `kind`. Credit-only fields exist only on CreditCardAccount, so a cash
account with a cut-off day cannot be constructed at all.

DESIGN DECISION: Every variant forbids unknown fields. A row carrying
fields from another kind is a data error, not something to drop quietly.
"""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Annotated, Any, ClassVar, Literal, Optional, Union
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    field_validator,
    model_validator,
)


CENT = Decimal("0.01")


def quantize_money(value: Decimal) -> Decimal:
    """Round a Decimal to cents, half-up."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AccountKind(str, Enum):
    """
    Supported account kinds.

    Asset kinds hold the user's money. The others track debt in one
    direction or the other.
    """
    CASH = "cash"
    DEBIT_CARD = "debit_card"
    CREDIT_CARD = "credit_card"
    DEBTOR = "debtor"        # someone owes the user
    CREDITOR = "creditor"    # the user owes someone
    SAVING = "saving"


ASSET_KINDS = frozenset({AccountKind.CASH, AccountKind.DEBIT_CARD, AccountKind.SAVING})


class AccountBase(BaseModel):
    """Fields shared by every account kind."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        extra="forbid",
    )

    # Whether a debit may drive the balance below zero
    allows_negative_balance: ClassVar[bool] = False

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique account ID"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name"
    )
    initial_balance: Decimal = Field(
        default=Decimal("0"),
        description="Balance when the account was created"
    )
    current_balance: Decimal = Field(
        default=Decimal("0"),
        description="Running balance (initial + signed sum of live entries)"
    )
    version: int = Field(
        default=0,
        ge=0,
        description="Optimistic concurrency stamp, bumped on every balance write"
    )
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="before")
    @classmethod
    def default_current_balance(cls, data: Any) -> Any:
        """A new account starts at its initial balance."""
        if isinstance(data, dict) and data.get("current_balance") is None:
            data = dict(data)
            data["current_balance"] = data.get("initial_balance", Decimal("0"))
        return data

    @field_validator("initial_balance", "current_balance")
    @classmethod
    def round_to_cents(cls, v: Decimal) -> Decimal:
        return quantize_money(v)

    @property
    def account_kind(self) -> AccountKind:
        return AccountKind(self.kind)

    @property
    def is_asset(self) -> bool:
        return self.account_kind in ASSET_KINDS


class CashAccount(AccountBase):
    kind: Literal["cash"] = "cash"


class DebitCardAccount(AccountBase):
    kind: Literal["debit_card"] = "debit_card"

    bank_name: Optional[str] = Field(default=None, max_length=100)
    last_four_digits: Optional[str] = Field(default=None, pattern=r"^\d{4}$")


class SavingAccount(AccountBase):
    kind: Literal["saving"] = "saving"

    target_amount: Optional[Decimal] = Field(
        default=None,
        gt=0,
        description="Savings goal, informational only"
    )


class CreditCardAccount(AccountBase):
    """
    A revolving-credit card.

    current_balance is the DEBT: charges raise it, payments lower it.
    A negative balance means the user overpaid (credit in favour).
    """

    allows_negative_balance: ClassVar[bool] = True

    kind: Literal["credit_card"] = "credit_card"

    bank_name: Optional[str] = Field(default=None, max_length=100)
    last_four_digits: Optional[str] = Field(default=None, pattern=r"^\d{4}$")
    credit_limit: Optional[Decimal] = Field(
        default=None,
        gt=0,
        description="Maximum debt the card allows"
    )
    cut_off_day: int = Field(
        ...,
        ge=1,
        le=31,
        description="Day of month the billing cycle closes"
    )
    grace_days: int = Field(
        ...,
        ge=0,
        description="Days from cut-off to payment due date"
    )

    @property
    def available_credit(self) -> Optional[Decimal]:
        if self.credit_limit is None:
            return None
        return self.credit_limit - self.current_balance


class DebtorAccount(AccountBase):
    """A person who owes the user money. Balance is the amount owed."""

    allows_negative_balance: ClassVar[bool] = True

    kind: Literal["debtor"] = "debtor"


class CreditorAccount(AccountBase):
    """A person or entity the user owes. Balance is the amount owed."""

    allows_negative_balance: ClassVar[bool] = True

    kind: Literal["creditor"] = "creditor"


Account = Annotated[
    Union[
        CashAccount,
        DebitCardAccount,
        SavingAccount,
        CreditCardAccount,
        DebtorAccount,
        CreditorAccount,
    ],
    Field(discriminator="kind"),
]

_account_adapter: TypeAdapter = TypeAdapter(Account)


def parse_account(data: dict) -> AccountBase:
    """Build the right account variant from a plain dict (e.g. a storage row)."""
    return _account_adapter.validate_python(data)
