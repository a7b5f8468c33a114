"""Transaction coordinator — ordered steps with reverse-order compensation.

Manifesto:
    The blob store and the record store share no transaction.  A
    multi-step operation that touches both is made safe by pairing every
    forward action with a compensating action and undoing completed steps
    in reverse when a later step fails.  The coordinator owns that loop
    and nothing else: it never decides what a step does.

ARCHITECTURE
────────────
::

    TransactionCoordinator
      ├── add_step(Step) / step(name, forward, compensate)   (IDLE only)
      ├── execute()
      │     IDLE ─► RUNNING ─► for step in steps: await step.forward()
      │                            │ success → executed.append(step)
      │                            │ failure ↓
      │                        rollback() over executed, newest first
      │                            ├─ all compensations ok → ROLLED_BACK
      │                            └─ any failed           → ROLLBACK_FAILED
      │                        raise TransactionError(step, cause, rollback)
      │     all steps ok ─► COMPLETED
      ├── rollback() → RollbackResult        never stops on a failing compensation
      └── reset()                            back to IDLE, steps cleared

    Step              ── name, forward, compensate (zero-arg async callables)
    RollbackResult    ── succeeded, errors: [RollbackFailure(step, error)]
    TransactionState  ── IDLE, RUNNING, COMPLETED, ROLLED_BACK, ROLLBACK_FAILED

BEST PRACTICES
──────────────
- Track what a forward action actually achieved (uploaded paths, realised
  moves) in a closure and have the compensation undo exactly that.
- Use a no-op compensation for the last step; it never needs undoing.
- One coordinator per operation.  Create a new one, or ``reset()``, for
  the next run.

Example::

    uploaded: list[str] = []

    async def upload_files():
        for f in files:
            uploaded.append(await gateway.upload(item.file_path(f.name), f.data))

    tx = TransactionCoordinator()
    tx.step("upload-files", upload_files, lambda: gateway.delete_many(list(uploaded)))
    tx.step("create-record", lambda: records.insert(item), noop)
    await tx.execute()
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from folio.core.errors import TransactionError, TransactionStateError
from folio.core.logging import get_logger
from folio.core.telemetry import NullTelemetry, TelemetrySink

StepAction = Callable[[], Awaitable[Any]]

logger = get_logger(__name__)


async def noop() -> None:
    """Compensation for steps that need no undo."""
    return None


class TransactionState(str, Enum):
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    ROLLED_BACK = "ROLLED_BACK"
    ROLLBACK_FAILED = "ROLLBACK_FAILED"


@dataclass(frozen=True)
class Step:
    """A named forward action paired with its compensation."""

    name: str
    forward: StepAction
    compensate: StepAction = noop


@dataclass(frozen=True)
class RollbackFailure:
    step: str
    error: str
    exception: BaseException | None = field(default=None, repr=False, compare=False)


@dataclass
class RollbackResult:
    """Outcome of compensating the executed steps."""

    succeeded: bool = True
    errors: list[RollbackFailure] = field(default_factory=list)

    def describe(self) -> str:
        if self.succeeded:
            return "All changes have been rolled back successfully."
        details = ", ".join(f"{e.step}: {e.error}" for e in self.errors)
        return f"Rollback completed with errors. Manual cleanup may be required: {details}"


class TransactionCoordinator:
    """Runs steps in order and compensates completed ones on failure.

    Args:
        name: Label used in log events (e.g. ``"rename"``)
        telemetry: Receives the original fault when a rollback is incomplete
    """

    def __init__(self, name: str = "transaction", *, telemetry: TelemetrySink | None = None):
        self.name = name
        self._telemetry = telemetry or NullTelemetry()
        self._steps: list[Step] = []
        self._executed: list[Step] = []
        self._state = TransactionState.IDLE

    # ── Building ─────────────────────────────────────────────────────

    def add_step(self, step: Step) -> TransactionCoordinator:
        if self._state is TransactionState.RUNNING:
            raise TransactionStateError("Cannot add steps while transaction is executing")
        if self._state is not TransactionState.IDLE:
            raise TransactionStateError(
                f"Cannot add steps to a finished transaction (state {self._state.value}); call reset()"
            )
        if any(s.name == step.name for s in self._steps):
            raise TransactionStateError(f"Duplicate step name: {step.name!r}")
        self._steps.append(step)
        return self

    def step(
        self,
        name: str,
        forward: StepAction,
        compensate: StepAction = noop,
    ) -> TransactionCoordinator:
        """Shorthand for ``add_step(Step(name, forward, compensate))``."""
        return self.add_step(Step(name=name, forward=forward, compensate=compensate))

    # ── Introspection ────────────────────────────────────────────────

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def step_names(self) -> list[str]:
        return [s.name for s in self._steps]

    @property
    def executed_step_names(self) -> list[str]:
        return [s.name for s in self._executed]

    # ── Running ──────────────────────────────────────────────────────

    async def execute(self) -> None:
        """Run every step in order.

        Raises:
            TransactionStateError: The coordinator is not IDLE.
            TransactionError: A step failed.  Rollback has already run; the
                error carries the failed step, the original fault as
                ``cause`` and the :class:`RollbackResult`.
            asyncio.CancelledError: Cancelled mid-step, e.g. by a caller
                timeout.  Executed steps were compensated before re-raising.
        """
        if self._state is TransactionState.RUNNING:
            raise TransactionStateError("Transaction is already executing")
        if self._state is not TransactionState.IDLE:
            raise TransactionStateError(
                f"Transaction already ran (state {self._state.value}); call reset() first"
            )

        self._state = TransactionState.RUNNING
        self._executed = []
        logger.debug("transaction.started", transaction=self.name, steps=self.step_names)

        try:
            for step in self._steps:
                try:
                    await step.forward()
                except asyncio.CancelledError:
                    logger.warning(
                        "transaction.cancelled",
                        transaction=self.name,
                        step=step.name,
                        executed=self.executed_step_names,
                    )
                    self._finish(await self.rollback())
                    raise
                except Exception as e:
                    logger.warning(
                        "transaction.step_failed",
                        transaction=self.name,
                        step=step.name,
                        executed=self.executed_step_names,
                        error=str(e),
                    )
                    rollback = await self.rollback()
                    self._finish(rollback)
                    raise TransactionError(
                        f'Transaction failed at step "{step.name}": {e}. {rollback.describe()}',
                        failed_step=step.name,
                        cause=e,
                        rollback=rollback,
                    ) from e
                self._executed.append(step)

            self._state = TransactionState.COMPLETED
            logger.debug(
                "transaction.completed", transaction=self.name, steps=self.executed_step_names
            )
        finally:
            if self._state is TransactionState.RUNNING:
                # Interrupted before or during rollback; completed steps may remain.
                logger.error(
                    "transaction.interrupted",
                    transaction=self.name,
                    executed=self.executed_step_names,
                )
                self._state = TransactionState.ROLLBACK_FAILED

    def _finish(self, rollback: RollbackResult) -> None:
        self._state = (
            TransactionState.ROLLED_BACK if rollback.succeeded else TransactionState.ROLLBACK_FAILED
        )

    async def rollback(self) -> RollbackResult:
        """Compensate executed steps newest first, collecting every failure."""
        errors: list[RollbackFailure] = []

        for step in reversed(self._executed):
            try:
                await step.compensate()
            except Exception as e:
                logger.error(
                    "transaction.compensation_failed",
                    transaction=self.name,
                    step=step.name,
                    error=str(e),
                )
                errors.append(RollbackFailure(step=step.name, error=str(e), exception=e))

        result = RollbackResult(succeeded=not errors, errors=errors)
        if result.succeeded:
            logger.info(
                "transaction.rolled_back",
                transaction=self.name,
                compensated=[s.name for s in reversed(self._executed)],
            )
        else:
            logger.error(
                "transaction.rollback_incomplete",
                transaction=self.name,
                failed_compensations=[e.step for e in errors],
            )
            self._telemetry.capture_exception(
                errors[0].exception or RuntimeError(errors[0].error),
                transaction=self.name,
                rollback_errors=[{"step": e.step, "error": e.error} for e in errors],
            )
        return result

    def reset(self) -> None:
        """Clear steps and history; back to IDLE."""
        if self._state is TransactionState.RUNNING:
            raise TransactionStateError("Cannot reset while transaction is executing")
        self._steps = []
        self._executed = []
        self._state = TransactionState.IDLE
