"""
Audit Logger

DESIGN DECISION: Every balance-changing action in the system is logged.
This provides:
1. Complete traceability
2. Debugging capability
3. A durable record of sagas that need manual reconciliation
4. User can see history of their ledger

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from pocket_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from pocket_ledger.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("pocket_ledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        # Always log locally
        log_dict = event.to_log_dict()

        if event.severity == AuditSeverity.CRITICAL:
            self._logger.critical("audit_event", **log_dict)
        elif event.severity == AuditSeverity.ERROR:
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        # Persist to storage if available
        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_account_created(
        self,
        account_id: UUID,
        kind: str,
        initial_balance: Decimal,
    ) -> None:
        await self.log(AuditEventBuilder.account_created(
            account_id=account_id,
            kind=kind,
            initial_balance=initial_balance,
        ))

    async def log_entry_applied(
        self,
        entry_id: UUID,
        account_id: UUID,
        kind: str,
        amount: Decimal,
        new_balance: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.entry_applied(
            entry_id=entry_id,
            account_id=account_id,
            kind=kind,
            amount=amount,
            new_balance=new_balance,
            correlation_id=correlation_id,
        ))

    async def log_entry_rejected(
        self,
        account_id: UUID,
        reason: str,
        error_code: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a business-rule rejection (no state was changed)."""
        await self.log(AuditEventBuilder.entry_rejected(
            account_id=account_id,
            reason=reason,
            error_code=error_code,
            correlation_id=correlation_id,
        ))

    async def log_entry_reversed(
        self,
        entry_id: UUID,
        account_id: UUID,
        new_balance: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.entry_reversed(
            entry_id=entry_id,
            account_id=account_id,
            new_balance=new_balance,
            correlation_id=correlation_id,
        ))

    async def log_saga_started(
        self,
        saga_id: UUID,
        saga_name: str,
        steps: list[str],
    ) -> None:
        await self.log(AuditEventBuilder.saga_started(saga_id, saga_name, steps))

    async def log_saga_completed(
        self,
        saga_id: UUID,
        saga_name: str,
        steps: list[str],
    ) -> None:
        await self.log(AuditEventBuilder.saga_completed(saga_id, saga_name, steps))

    async def log_saga_compensated(
        self,
        saga_id: UUID,
        saga_name: str,
        failed_step: str,
        compensated_steps: list[str],
        error_message: str,
    ) -> None:
        """Log a saga that failed and was fully rolled back."""
        await self.log(AuditEventBuilder.saga_compensated(
            saga_id=saga_id,
            saga_name=saga_name,
            failed_step=failed_step,
            compensated_steps=compensated_steps,
            error_message=error_message,
        ))

    async def log_saga_partial_failure(
        self,
        saga_id: UUID,
        saga_name: str,
        applied_steps: list[str],
        failed_compensations: list[tuple[str, str]],
        error_message: str,
    ) -> None:
        """Log a saga whose rollback failed. Always CRITICAL."""
        await self.log(AuditEventBuilder.saga_partial_failure(
            saga_id=saga_id,
            saga_name=saga_name,
            applied_steps=applied_steps,
            failed_compensations=failed_compensations,
            error_message=error_message,
        ))

    async def log_transfer_completed(
        self,
        saga_id: UUID,
        source_id: UUID,
        destination_id: UUID,
        amount: Decimal,
    ) -> None:
        await self.log(AuditEventBuilder.transfer_completed(
            saga_id=saga_id,
            source_id=source_id,
            destination_id=destination_id,
            amount=amount,
        ))

    async def log_reconciliation(
        self,
        account_id: UUID,
        difference: Decimal,
        adjustment_entry_id: Optional[UUID],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.reconciliation(
            account_id=account_id,
            difference=difference,
            adjustment_entry_id=adjustment_entry_id,
            correlation_id=correlation_id,
        ))

    async def log_integrity_drift(
        self,
        account_id: UUID,
        stored_balance: Decimal,
        recomputed_balance: Decimal,
    ) -> None:
        await self.log(AuditEventBuilder.integrity_drift(
            account_id=account_id,
            stored_balance=stored_balance,
            recomputed_balance=recomputed_balance,
        ))

    async def log_budget_event(
        self,
        event_type: AuditEventType,
        budget_id: UUID,
        description: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.budget_event(
            event_type=event_type,
            budget_id=budget_id,
            description=description,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_storage_error(
        self,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.storage_error(
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a transfer).
    Pass it through all subsequent operations.
    """
    return uuid4()
