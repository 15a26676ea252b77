"""
Audit Models for Pocket Ledger

Every balance-changing action in the system is logged for audit purposes.
This provides:
1. Complete traceability of all operations
2. Debugging information when things go wrong
3. A durable record of sagas that need manual reconciliation
4. Ability to reconstruct history

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from pocket_ledger.models.account import utcnow


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every mutating ledger operation has its own event type.
    """
    # Accounts
    ACCOUNT_CREATED = "account_created"

    # Entries
    ENTRY_APPLIED = "entry_applied"
    ENTRY_REJECTED = "entry_rejected"
    ENTRY_REVERSED = "entry_reversed"

    # Sagas
    SAGA_STARTED = "saga_started"
    SAGA_COMPLETED = "saga_completed"
    SAGA_COMPENSATED = "saga_compensated"
    SAGA_PARTIAL_FAILURE = "saga_partial_failure"
    TRANSFER_COMPLETED = "transfer_completed"

    # Reconciliation
    RECONCILIATION_ADJUSTED = "reconciliation_adjusted"
    RECONCILIATION_NO_OP = "reconciliation_no_op"
    INTEGRITY_DRIFT_DETECTED = "integrity_drift_detected"

    # Shared budgets
    BUDGET_CREATED = "budget_created"
    BUDGET_PAYMENT_RECORDED = "budget_payment_recorded"
    BUDGET_SETTLED = "budget_settled"
    BUDGET_CANCELLED = "budget_cancelled"

    # System events
    SYSTEM_ERROR = "system_error"
    STORAGE_ERROR = "storage_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'account', 'entry', 'budget')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all steps of one saga)"
    )

    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    # Additional data (event-specific)
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    # User action tracking
    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.entry_applied(entry_id, account_id, ...)
        event = AuditEventBuilder.saga_partial_failure(saga_id, ...)
    """

    @staticmethod
    def account_created(
        account_id: UUID,
        kind: str,
        initial_balance: Decimal,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_CREATED,
            entity_type="account",
            entity_id=account_id,
            description=f"Account created: {kind}",
            details={
                "kind": kind,
                "initial_balance": str(initial_balance),
            },
            is_user_action=True,
        )

    @staticmethod
    def entry_applied(
        entry_id: UUID,
        account_id: UUID,
        kind: str,
        amount: Decimal,
        new_balance: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_APPLIED,
            entity_type="entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description=f"Entry applied: {kind} {amount}",
            details={
                "account_id": str(account_id),
                "kind": kind,
                "amount": str(amount),
                "new_balance": str(new_balance),
            },
        )

    @staticmethod
    def entry_rejected(
        account_id: UUID,
        reason: str,
        error_code: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description="Entry rejected",
            error_code=error_code,
            error_message=reason,
        )

    @staticmethod
    def entry_reversed(
        entry_id: UUID,
        account_id: UUID,
        new_balance: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_REVERSED,
            entity_type="entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description="Entry reversed and marked deleted",
            details={
                "account_id": str(account_id),
                "new_balance": str(new_balance),
            },
            is_user_action=correlation_id is None,
        )

    @staticmethod
    def saga_started(
        saga_id: UUID,
        saga_name: str,
        steps: list[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAGA_STARTED,
            severity=AuditSeverity.DEBUG,
            entity_type="saga",
            entity_id=saga_id,
            correlation_id=saga_id,
            description=f"Saga started: {saga_name}",
            details={"steps": steps},
        )

    @staticmethod
    def saga_completed(
        saga_id: UUID,
        saga_name: str,
        steps: list[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAGA_COMPLETED,
            entity_type="saga",
            entity_id=saga_id,
            correlation_id=saga_id,
            description=f"Saga completed: {saga_name}",
            details={"steps": steps},
        )

    @staticmethod
    def saga_compensated(
        saga_id: UUID,
        saga_name: str,
        failed_step: str,
        compensated_steps: list[str],
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAGA_COMPENSATED,
            severity=AuditSeverity.WARNING,
            entity_type="saga",
            entity_id=saga_id,
            correlation_id=saga_id,
            description=f"Saga '{saga_name}' rolled back after '{failed_step}' failed",
            details={
                "failed_step": failed_step,
                "compensated_steps": compensated_steps,
            },
            error_message=error_message,
        )

    @staticmethod
    def saga_partial_failure(
        saga_id: UUID,
        saga_name: str,
        applied_steps: list[str],
        failed_compensations: list[tuple[str, str]],
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAGA_PARTIAL_FAILURE,
            severity=AuditSeverity.CRITICAL,
            entity_type="saga",
            entity_id=saga_id,
            correlation_id=saga_id,
            description=(
                f"Saga '{saga_name}' left accounts inconsistent. "
                "Manual reconciliation required."
            ),
            details={
                "applied_steps": applied_steps,
                "failed_compensations": [
                    {"step": step, "error": err} for step, err in failed_compensations
                ],
            },
            error_code="PARTIAL_FAILURE",
            error_message=error_message,
        )

    @staticmethod
    def transfer_completed(
        saga_id: UUID,
        source_id: UUID,
        destination_id: UUID,
        amount: Decimal,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSFER_COMPLETED,
            entity_type="saga",
            entity_id=saga_id,
            correlation_id=saga_id,
            description=f"Transfer of {amount} completed",
            details={
                "source_id": str(source_id),
                "destination_id": str(destination_id),
                "amount": str(amount),
            },
            is_user_action=True,
        )

    @staticmethod
    def reconciliation(
        account_id: UUID,
        difference: Decimal,
        adjustment_entry_id: Optional[UUID],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        adjusted = adjustment_entry_id is not None
        return AuditEvent(
            event_type=(
                AuditEventType.RECONCILIATION_ADJUSTED
                if adjusted
                else AuditEventType.RECONCILIATION_NO_OP
            ),
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description=(
                f"Reconciliation adjusted balance by {difference}"
                if adjusted
                else "Reconciliation matched, no adjustment needed"
            ),
            details={
                "difference": str(difference),
                "adjustment_entry_id": str(adjustment_entry_id) if adjusted else None,
            },
            is_user_action=True,
        )

    @staticmethod
    def integrity_drift(
        account_id: UUID,
        stored_balance: Decimal,
        recomputed_balance: Decimal,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INTEGRITY_DRIFT_DETECTED,
            severity=AuditSeverity.ERROR,
            entity_type="account",
            entity_id=account_id,
            description="Stored balance differs from the sum of its entries",
            details={
                "stored_balance": str(stored_balance),
                "recomputed_balance": str(recomputed_balance),
            },
        )

    @staticmethod
    def budget_event(
        event_type: AuditEventType,
        budget_id: UUID,
        description: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            entity_type="budget",
            entity_id=budget_id,
            correlation_id=correlation_id,
            description=description,
            details=details or {},
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={
                "operation": operation,
            },
            correlation_id=correlation_id,
        )
