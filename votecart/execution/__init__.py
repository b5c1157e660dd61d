from votecart.execution.audit import AuditEvent, ExecutionAuditLog
from votecart.execution.executor import (
    BatchExecutor,
    ExecutionReport,
    ExecutorState,
    StepOutcome,
    StepProgress,
    take_snapshot,
)
from votecart.execution.redeem import RedeemInstruction, RedeemOrchestrator, RedeemResult

__all__ = [
    "AuditEvent",
    "BatchExecutor",
    "ExecutionAuditLog",
    "ExecutionReport",
    "ExecutorState",
    "RedeemInstruction",
    "RedeemOrchestrator",
    "RedeemResult",
    "StepOutcome",
    "StepProgress",
    "take_snapshot",
]
