from votecart.planning.availability import (
    CurveAvailability,
    CurveFlags,
    availability_for,
    opposite_cart_flags,
    opposite_position_flags,
    resolve_curve_availability,
)
from votecart.planning.dedup import categorize_triples, deduplicate_to_triples, triple_key
from votecart.planning.funds import ensure_sufficient_balance, normalize_amounts, required_total
from votecart.planning.planner import (
    BatchPlanner,
    ExecutionPlan,
    PlannedStep,
    PlanningSnapshot,
    StepKind,
    TransactionCountParams,
    calculate_total_transactions,
    chunk_batch_arrays,
)

__all__ = [
    "BatchPlanner",
    "CurveAvailability",
    "CurveFlags",
    "ExecutionPlan",
    "PlannedStep",
    "PlanningSnapshot",
    "StepKind",
    "TransactionCountParams",
    "availability_for",
    "calculate_total_transactions",
    "categorize_triples",
    "chunk_batch_arrays",
    "deduplicate_to_triples",
    "ensure_sufficient_balance",
    "normalize_amounts",
    "opposite_cart_flags",
    "opposite_position_flags",
    "required_total",
    "resolve_curve_availability",
    "triple_key",
]
