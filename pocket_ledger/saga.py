"""
Saga Runner

Storage offers no multi-row transactions, so anything touching more
than one row is an ordered list of steps, each paired with the step
that undoes it.

EXECUTION RULES:
1. Steps run strictly one after another, never concurrently.
2. If a step fails, every step already applied is compensated in
   reverse order and the original error is re-raised.
3. If a compensation fails too, PartialFailureError is raised and a
   CRITICAL audit event names the applied steps and the compensations
   that failed. This is never retried automatically.
4. Cancelling the saga while a step's write is in flight does not
   abandon the write: the step runs to completion, is counted as
   applied, and is compensated with the rest before the cancellation
   propagates. Cancelling between steps is always safe.

Every audit event of one run shares the saga id as correlation id.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional
from uuid import UUID

import structlog

from pocket_ledger.audit import AuditLogger, create_correlation_id
from pocket_ledger.exceptions import PartialFailureError


Action = Callable[[], Awaitable[Any]]
Compensation = Callable[[Any], Awaitable[Any]]

logger = structlog.get_logger("pocket_ledger.saga")


class SagaStep:
    """
    One unit of work plus its undo.

    The compensation receives whatever the action returned.
    """

    def __init__(
        self,
        name: str,
        action: Action,
        compensation: Optional[Compensation] = None,
    ):
        self.name = name
        self.action = action
        self.compensation = compensation

    def __repr__(self) -> str:
        return f"SagaStep({self.name!r})"


class Saga:
    """
    Ordered steps with compensation.

    Usage:
        saga = Saga("transfer", audit_logger)
        saga.add_step("debit_source", apply_a, undo_a)
        saga.add_step("credit_destination", apply_b, undo_b)
        results = await saga.run()
    """

    def __init__(
        self,
        name: str,
        audit_logger: Optional[AuditLogger] = None,
        saga_id: Optional[UUID] = None,
    ):
        self.name = name
        self.saga_id = saga_id or create_correlation_id()
        self._audit = audit_logger or AuditLogger()
        self._steps: list[SagaStep] = []
        self._applied: list[tuple[SagaStep, Any]] = []
        self._started = False

    @property
    def step_names(self) -> list[str]:
        return [step.name for step in self._steps]

    @property
    def applied_steps(self) -> list[str]:
        return [step.name for step, _ in self._applied]

    def add_step(
        self,
        name: str,
        action: Action,
        compensation: Optional[Compensation] = None,
    ) -> "Saga":
        if name in self.step_names:
            raise ValueError(f"Duplicate saga step name: {name}")
        self._steps.append(SagaStep(name, action, compensation))
        return self

    async def run(self) -> dict[str, Any]:
        """
        Execute every step.

        Returns:
            {step name: action result}

        Raises:
            Whatever the failing step raised, after full compensation
            PartialFailureError: If compensation itself failed
        """
        if self._started:
            raise RuntimeError(f"Saga {self.saga_id} has already run")
        self._started = True

        await self._audit.log_saga_started(self.saga_id, self.name, self.step_names)

        current: Optional[SagaStep] = None
        try:
            for step in self._steps:
                current = step
                result = await self._run_step(step)
                self._applied.append((step, result))
        except asyncio.CancelledError as e:
            await self._compensate(current, e)
            raise
        except Exception as e:
            await self._compensate(current, e)
            raise

        await self._audit.log_saga_completed(self.saga_id, self.name, self.step_names)
        return {step.name: result for step, result in self._applied}

    async def _run_step(self, step: SagaStep) -> Any:
        task = asyncio.ensure_future(step.action())
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                raise
            # The write is already issued: wait for it and account for it
            try:
                result = await task
            except Exception as step_error:
                logger.warning(
                    "saga_step_failed_after_cancel",
                    saga_id=str(self.saga_id),
                    step=step.name,
                    error=repr(step_error),
                )
            else:
                self._applied.append((step, result))
            raise

    async def _compensate(self, failed_step: Optional[SagaStep], error: BaseException) -> None:
        """Undo applied steps in reverse order."""
        failed_name = failed_step.name if failed_step else "<before first step>"
        compensated = []
        failed_compensations = []

        for step, result in reversed(self._applied):
            if step.compensation is None:
                continue
            try:
                await step.compensation(result)
                compensated.append(step.name)
            except Exception as compensation_error:
                logger.error(
                    "saga_compensation_failed",
                    saga_id=str(self.saga_id),
                    step=step.name,
                    error=repr(compensation_error),
                )
                failed_compensations.append((step.name, repr(compensation_error)))

        if failed_compensations:
            await self._audit.log_saga_partial_failure(
                saga_id=self.saga_id,
                saga_name=self.name,
                applied_steps=self.applied_steps,
                failed_compensations=failed_compensations,
                error_message=repr(error),
            )
            raise PartialFailureError(
                saga_name=self.name,
                saga_id=self.saga_id,
                original_error=error,
                applied_steps=self.applied_steps,
                failed_compensations=failed_compensations,
            ) from error

        await self._audit.log_saga_compensated(
            saga_id=self.saga_id,
            saga_name=self.name,
            failed_step=failed_name,
            compensated_steps=compensated,
            error_message=repr(error),
        )
