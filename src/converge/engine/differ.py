"""Compute one planned operation per resource by comparing desired, prior and live state."""

from typing import Any, Callable, Dict, Iterable, List, Optional
from .models import OperationType, PlannedOperation
from ..ingest.models import ResourceNode
from ..ingest.references import UnresolvedReference, find_references, resolve_references
from ..providers.schema import ResourceSchema
from ..state.models import StateRecord
from ..utils.errors import SchemaViolation
from ..utils.logging import get_logger

logger = get_logger("engine.differ")

Lookup = Callable[[str, str], Any]

_UNKNOWN = object()


def _resolve_or_unknown(value: Any, lookup: Optional[Lookup]) -> Any:
    if not find_references(value):
        return value
    if lookup is None:
        return _UNKNOWN
    try:
        return resolve_references(value, lookup)
    except UnresolvedReference:
        return _UNKNOWN


def changed_attributes(
    desired: Dict[str, Any],
    baseline: Dict[str, Any],
    schema: ResourceSchema,
    lookup: Optional[Lookup] = None
) -> List[str]:
    """
    Names of attributes whose desired value differs from the baseline.

    Values that are only known after apply count as changed. Attributes
    present in the baseline but no longer declared count as changed unless
    the schema marks them computed.
    """
    changed = []
    for name, value in desired.items():
        resolved = _resolve_or_unknown(value, lookup)
        if resolved is _UNKNOWN or name not in baseline or baseline[name] != resolved:
            changed.append(name)

    for name in baseline:
        if name in desired:
            continue
        spec = schema.attributes.get(name)
        if spec is not None and spec.computed:
            continue
        changed.append(name)

    return sorted(changed)


def diff_resource(
    node: ResourceNode,
    prior: Optional[StateRecord],
    schema: ResourceSchema,
    live: Optional[Dict[str, Any]] = None,
    refreshed: bool = False,
    lookup: Optional[Lookup] = None
) -> PlannedOperation:
    """
    Plan the operation for one desired resource.

    Args:
        node: Desired resource node
        prior: Last-applied state record, if any
        schema: Provider schema for the node's type
        live: Freshly read live attributes (None if not read or gone)
        refreshed: Whether ``live`` reflects a provider read
        lookup: Resolves ``(address, attribute)`` for references; raises
            UnresolvedReference for values only known after apply

    Returns:
        PlannedOperation with action create, update, replace or no-op

    Raises:
        SchemaViolation: If the node does not satisfy the schema
    """
    problems = schema.validate_attributes(node.attributes)
    if problems:
        raise SchemaViolation("; ".join(problems), address=node.address)

    if prior is None:
        return PlannedOperation(
            address=node.address,
            action=OperationType.CREATE,
            node=node,
            changed_attributes=sorted(node.attributes),
        )

    if refreshed and live is None:
        logger.info(f"{node.address} no longer exists at the provider; it will be recreated")
        return PlannedOperation(
            address=node.address,
            action=OperationType.CREATE,
            node=node,
            prior=prior,
            changed_attributes=sorted(node.attributes),
            drift=True,
        )

    baseline = live if refreshed else prior.attributes
    drift = refreshed and live != prior.attributes
    if drift:
        logger.info(f"Drift detected on {node.address}")

    changed = changed_attributes(node.attributes, baseline, schema, lookup)
    if not changed:
        return PlannedOperation(address=node.address, action=OperationType.NO_OP, node=node, prior=prior, drift=drift)

    immutable = set(schema.immutable_attributes())
    replace_reasons = [name for name in changed if name in immutable]
    action = OperationType.REPLACE if replace_reasons else OperationType.UPDATE

    return PlannedOperation(
        address=node.address,
        action=action,
        node=node,
        prior=prior,
        changed_attributes=changed,
        replace_reasons=replace_reasons,
        drift=drift,
    )


def diff_destroys(desired_addresses: Iterable[str], records: Dict[str, StateRecord]) -> List[PlannedOperation]:
    """Plan a destroy for every state record absent from the desired state."""
    desired = set(desired_addresses)
    return [
        PlannedOperation(address=address, action=OperationType.DESTROY, prior=record)
        for address, record in sorted(records.items())
        if address not in desired
    ]
