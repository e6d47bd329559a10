"""Build a plan: desired state + state store + live reads -> scheduled operations."""

from typing import Any, Dict, Optional
from .differ import diff_destroys, diff_resource
from .executor import call_with_retry, DEFAULT_MAX_ATTEMPTS, DEFAULT_BASE_DELAY, DEFAULT_MAX_DELAY
from .models import OperationType, Plan, PlannedOperation
from .scheduler import schedule
from ..graph.dependency_graph import DependencyGraph
from ..ingest.models import DesiredState
from ..ingest.references import UnresolvedReference
from ..providers.base import Provider
from ..state.models import StateRecord
from ..state.store import StateStore
from ..utils.errors import SchemaViolation
from ..utils.logging import get_logger

logger = get_logger("engine.planner")


class Planner:
    """Compute plans against one provider and one state store."""

    def __init__(
        self,
        provider: Provider,
        store: StateStore,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY,
        max_delay: float = DEFAULT_MAX_DELAY,
    ):
        self.provider = provider
        self.store = store
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay

    def plan(
        self,
        desired: DesiredState,
        refresh: bool = True,
        destroy: bool = False,
        desired_hash: Optional[str] = None
    ) -> Plan:
        """
        Plan the operations reconciling live resources with ``desired``.

        Args:
            desired: Parsed desired state
            refresh: Read live attributes from the provider for drift detection
            destroy: Plan the destruction of every resource in state instead
            desired_hash: Hash of the source document, stored on the plan

        Returns:
            Scheduled Plan

        Raises:
            SchemaViolation: Invalid resources or dangling references
            CyclicDependency: Cyclic dependency graph
        """
        records = self.store.records()
        serial = self.store.serial

        if destroy:
            operations = diff_destroys([], records)
        else:
            operations = self._diff_desired(desired, records, refresh)
            operations.extend(diff_destroys(desired.addresses(), records))

        plan = Plan(
            operations=schedule(operations),
            state_serial=serial,
            destroy=destroy,
            desired_hash=desired_hash,
        )
        counts = plan.summary()
        logger.info(
            f"Plan: {counts['create']} to create, {counts['update']} to update, "
            f"{counts['replace']} to replace, {counts['destroy']} to destroy, {counts['no-op']} unchanged"
        )
        return plan

    def _diff_desired(self, desired: DesiredState, records: Dict[str, StateRecord], refresh: bool):
        graph = DependencyGraph()
        graph.build_from_resources(desired.resources)

        planned: Dict[str, PlannedOperation] = {}

        def lookup(address: str, attribute: str) -> Any:
            op = planned.get(address)
            if op is not None and op.action in (OperationType.CREATE, OperationType.REPLACE):
                raise UnresolvedReference(address)
            if op is not None and attribute in op.changed_attributes:
                raise UnresolvedReference(f"{address}.{attribute}")
            if op is not None and op.action == OperationType.UPDATE:
                # Computed values are recomputed by the provider on update.
                spec = self.provider.schema(op.resource_type).attributes.get(attribute)
                if spec is not None and spec.computed:
                    raise UnresolvedReference(f"{address}.{attribute}")
            record = records.get(address)
            if record is None:
                raise UnresolvedReference(address)
            if attribute == "id":
                return record.provider_id
            if attribute not in record.attributes:
                raise UnresolvedReference(f"{address}.{attribute}")
            return record.attributes[attribute]

        for address in graph.creation_order():
            node = graph.get_resource(address)
            prior = records.get(address)
            try:
                schema = self.provider.schema(node.type)
            except SchemaViolation as e:
                if e.address is None:
                    e.address = address
                raise
            live = None
            if refresh and prior is not None:
                live = call_with_retry(
                    self.provider.read, prior.type, prior.provider_id,
                    address=address,
                    max_attempts=self.max_attempts,
                    base_delay=self.base_delay,
                    max_delay=self.max_delay,
                )
            planned[address] = diff_resource(
                node, prior, schema,
                live=live,
                refreshed=refresh and prior is not None,
                lookup=lookup,
            )

        return [planned[address] for address in desired.addresses()]
