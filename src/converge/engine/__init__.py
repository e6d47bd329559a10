"""Reconciliation engine: diff, schedule, execute."""

from .models import OperationType, PlannedOperation, Plan, ApplyResult
from .differ import diff_resource, diff_destroys, changed_attributes
from .scheduler import schedule, build_operation_graph
from .executor import Executor, call_with_retry, backoff_delay, idempotency_key
from .planner import Planner

__all__ = [
    "OperationType",
    "PlannedOperation",
    "Plan",
    "ApplyResult",
    "diff_resource",
    "diff_destroys",
    "changed_attributes",
    "schedule",
    "build_operation_graph",
    "Executor",
    "call_with_retry",
    "backoff_delay",
    "idempotency_key",
    "Planner",
]
