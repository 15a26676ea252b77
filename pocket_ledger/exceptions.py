"""
Ledger Exception Hierarchy

Every failure the ledger can report has its own type so callers
catch by class rather than by parsing messages.

    LedgerError
    |
    +-- ValidationError            malformed amount/date/selection
    +-- InsufficientBalanceError   business rule, no state changed
    |   +-- CreditLimitExceededError
    +-- OverpaymentError           settlement/payment above what is owed
    +-- NotFoundError              referenced account/entry/budget missing
    +-- PartialFailureError        saga compensation failed (fatal)
    +-- ExpressionSyntaxError      user-typed expression is malformed

Storage failures (StorageError and friends) live beside the storage
interface in pocket_ledger.services.storage.
"""

from decimal import Decimal
from typing import Any, Optional
from uuid import UUID


class LedgerError(Exception):
    """Base exception for every ledger failure."""

    code: str = "LEDGER_ERROR"


class ValidationError(LedgerError):
    """
    Input rejected before any state was touched.

    Carries the field name when the problem is attributable to one input,
    so the UI can re-prompt for exactly that value.
    """

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class InsufficientBalanceError(LedgerError):
    """A debit would drive a funds-holding account below zero."""

    code = "INSUFFICIENT_BALANCE"

    def __init__(
        self,
        account_id: UUID,
        available: Decimal,
        requested: Decimal,
        message: Optional[str] = None,
    ):
        self.account_id = account_id
        self.available = available
        self.requested = requested
        super().__init__(
            message
            or f"Insufficient balance in account {account_id}: "
            f"available {available}, requested {requested}"
        )


class CreditLimitExceededError(InsufficientBalanceError):
    """A charge would push a credit card's debt above its limit."""

    code = "CREDIT_LIMIT_EXCEEDED"

    def __init__(
        self,
        account_id: UUID,
        available: Decimal,
        requested: Decimal,
    ):
        super().__init__(
            account_id,
            available,
            requested,
            message=(
                f"Charge of {requested} exceeds available credit "
                f"{available} on card {account_id}"
            ),
        )


class OverpaymentError(LedgerError):
    """A payment exceeds the amount still owed."""

    code = "OVERPAYMENT"

    def __init__(self, remaining: Decimal, requested: Decimal, target: str):
        self.remaining = remaining
        self.requested = requested
        self.target = target
        super().__init__(
            f"Payment of {requested} exceeds remaining {remaining} for {target}"
        )


class NotFoundError(LedgerError):
    """Referenced account, entry, budget or participant does not exist."""

    code = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: Any):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


class PartialFailureError(LedgerError):
    """
    A saga step failed AND undoing the already-applied steps also failed.

    The accounts named in `applied_steps` are now inconsistent with each
    other and need manual reconciliation. This is never retried.
    """

    code = "PARTIAL_FAILURE"

    def __init__(
        self,
        saga_name: str,
        saga_id: UUID,
        original_error: BaseException,
        applied_steps: list[str],
        failed_compensations: list[tuple[str, str]],
    ):
        self.saga_name = saga_name
        self.saga_id = saga_id
        self.original_error = original_error
        self.applied_steps = applied_steps
        self.failed_compensations = failed_compensations
        failed = ", ".join(name for name, _ in failed_compensations)
        super().__init__(
            f"Saga '{saga_name}' ({saga_id}) failed with {original_error!r} "
            f"and could not compensate: {failed}. Manual reconciliation required."
        )


class ExpressionSyntaxError(LedgerError):
    """The arithmetic expression could not be parsed or evaluated."""

    code = "EXPRESSION_SYNTAX"

    def __init__(self, message: str, position: Optional[int] = None):
        super().__init__(message)
        self.position = position
