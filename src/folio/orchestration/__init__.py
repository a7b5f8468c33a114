"""Folio Orchestration — multi-step operations with compensation."""

from folio.orchestration.transaction import (
    RollbackFailure,
    RollbackResult,
    Step,
    TransactionCoordinator,
    TransactionState,
    noop,
)

__all__ = [
    "RollbackFailure",
    "RollbackResult",
    "Step",
    "TransactionCoordinator",
    "TransactionState",
    "noop",
]
