"""Human-friendly output formatter - converts plans and results to readable text."""

import json
import os
from typing import Dict, List, Optional
from ..engine.models import ApplyResult, OperationType, Plan, PlannedOperation
from ..policy.models import Action, PolicyEvaluationResult
from ..state.models import StateRecord

SYMBOLS = {
    OperationType.CREATE: "+",
    OperationType.UPDATE: "~",
    OperationType.REPLACE: "-/+",
    OperationType.DESTROY: "-",
    OperationType.NO_OP: " ",
}


def _use_ascii(ascii_mode: Optional[bool] = None) -> bool:
    """Resolve whether to use ASCII output (checked at format time)."""
    if ascii_mode is not None:
        return bool(ascii_mode)
    return os.environ.get("CONVERGE_ASCII", "").lower() in ("1", "true", "yes")


def _box(title: str, width: int = 65, ascii_mode: bool = False) -> List[str]:
    """Return box-drawing header lines."""
    b = {"tl": "+", "tr": "+", "bl": "+", "br": "+", "h": "-", "v": "|"} if ascii_mode else \
        {"tl": "┌", "tr": "┐", "bl": "└", "br": "┘", "h": "─", "v": "│"}
    h = b["h"] * (width - 2)
    return [
        b["tl"] + h + b["tr"],
        f"{b['v']} {title:<{width - 4}} {b['v']}",
        b["bl"] + h + b["br"],
        "",
    ]


def _value(value) -> str:
    if isinstance(value, str):
        return json.dumps(value)
    return json.dumps(value, sort_keys=True, default=str)


def _operation_lines(op: PlannedOperation) -> List[str]:
    action = OperationType(op.action)
    header = f"  {SYMBOLS[action]} {op.address}"
    if action == OperationType.REPLACE:
        header += f"  (forces replacement: {', '.join(op.replace_reasons)})"
    if op.drift:
        header += "  [drift]"
    lines = [header]

    if action == OperationType.CREATE and op.node is not None:
        for name in sorted(op.node.attributes):
            lines.append(f"        {name} = {_value(op.node.attributes[name])}")
    elif action in (OperationType.UPDATE, OperationType.REPLACE) and op.node is not None:
        before = op.prior.attributes if op.prior else {}
        for name in op.changed_attributes:
            old = _value(before[name]) if name in before else "(none)"
            new = _value(op.node.attributes[name]) if name in op.node.attributes else "(removed)"
            lines.append(f"        {name}: {old} -> {new}")
    elif action == OperationType.DESTROY and op.prior is not None:
        lines.append(f"        id = {op.prior.provider_id}")
    return lines


def format_plan(plan: Plan, ascii_mode: Optional[bool] = None) -> str:
    """Render a plan the way an operator reviews it before apply."""
    ascii_mode = _use_ascii(ascii_mode)
    title = "Destroy plan" if plan.destroy else "Execution plan"
    lines = _box(title, ascii_mode=ascii_mode)

    if not plan.has_changes:
        lines.append("No changes. Live resources match the desired state.")
        return "\n".join(lines)

    lines.append("Operations, in execution order:")
    lines.append("")
    for op in plan.changes:
        lines.extend(_operation_lines(op))
    lines.append("")

    counts = plan.summary()
    lines.append(
        f"Plan: {counts['create']} to create, {counts['update']} to update, "
        f"{counts['replace']} to replace, {counts['destroy']} to destroy."
    )
    return "\n".join(lines)


def format_apply_result(result: ApplyResult, ascii_mode: Optional[bool] = None) -> str:
    """Render the outcome of an apply."""
    ascii_mode = _use_ascii(ascii_mode)
    ok = "[OK]" if ascii_mode else "✅"
    bad = "[X]" if ascii_mode else "❌"

    lines = []
    for address in result.applied:
        lines.append(f"  {ok} {address}")
    for address, error in result.failed.items():
        lines.append(f"  {bad} {address}: {error}")
    for address in result.skipped:
        lines.append(f"  -  {address}: skipped (dependency failed)")
    for address in result.cancelled:
        lines.append(f"  -  {address}: cancelled")

    if lines:
        lines.append("")
    status = "Apply complete!" if result.success else "Apply finished with errors."
    if result.interrupted:
        status = "Apply interrupted."
    lines.append(
        f"{status} Applied: {len(result.applied)}, failed: {len(result.failed)}, "
        f"skipped: {len(result.skipped)}, cancelled: {len(result.cancelled)}."
    )
    return "\n".join(lines)


def format_state_list(records: Dict[str, StateRecord]) -> str:
    """One address per line."""
    return "\n".join(sorted(records))


def format_record(record: StateRecord) -> str:
    """Render one state record."""
    lines = [
        f"# {record.address}",
        f"id         = {record.provider_id}",
        f"type       = {record.type}",
        f"serial     = {record.serial}",
        f"updated_at = {record.updated_at.isoformat()}",
    ]
    if record.dependencies:
        lines.append(f"depends_on = {', '.join(record.dependencies)}")
    lines.append("")
    for name in sorted(record.attributes):
        lines.append(f"{name} = {_value(record.attributes[name])}")
    return "\n".join(lines)


def format_policy_result(evaluation: PolicyEvaluationResult) -> str:
    """Render matched policies only."""
    lines = []
    for result in evaluation.results:
        if not result.matched:
            continue
        label = Action(result.action).value.upper()
        lines.append(f"[{label}] {result.explanation}")
    if not lines:
        lines.append("All policies passed.")
    return "\n".join(lines)
