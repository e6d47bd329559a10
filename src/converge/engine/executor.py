"""Apply planned operations through a provider, with retry and subgraph isolation."""

import hashlib
import json
import random
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Any, Callable, Dict, List, Optional, Set
import networkx as nx
from .models import ApplyResult, OperationType, Plan, PlannedOperation
from .scheduler import Phase, Step, build_operation_graph, operation_steps
from ..ingest.references import UnresolvedReference, resolve_references
from ..providers.base import Provider
from ..state.models import StateRecord
from ..state.store import StateStore
from ..utils.errors import ConvergeError, TransientProviderError
from ..utils.logging import get_logger

logger = get_logger("engine.executor")

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_BASE_DELAY = 0.5
DEFAULT_MAX_DELAY = 30.0
DEFAULT_PARALLELISM = 4


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Exponential backoff with up to 20% jitter for the given (1-based) attempt."""
    backoff = min(base_delay * (2 ** (attempt - 1)), max_delay)
    jitter = random.uniform(0, backoff * 0.2)
    return min(backoff + jitter, max_delay)


def call_with_retry(
    fn: Callable[..., Any],
    *args: Any,
    address: Optional[str] = None,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay: float = DEFAULT_BASE_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
    sleep: Callable[[float], None] = time.sleep,
    **kwargs: Any
) -> Any:
    """
    Call a provider function, retrying TransientProviderError.

    Raises:
        TransientProviderError: When every attempt failed transiently
        Any other exception from ``fn`` immediately
    """
    last_error: Optional[TransientProviderError] = None
    for attempt in range(1, max_attempts + 1):
        try:
            return fn(*args, **kwargs)
        except TransientProviderError as e:
            last_error = e
            if attempt == max_attempts:
                break
            delay = backoff_delay(attempt, base_delay, max_delay)
            logger.warning(
                f"Transient provider error on {address or fn.__name__} "
                f"(attempt {attempt}/{max_attempts}), retrying in {delay:.2f}s: {e}"
            )
            sleep(delay)

    raise TransientProviderError(
        f"Gave up after {max_attempts} attempts",
        address=address,
        cause=last_error
    )


def idempotency_key(address: str, attributes: Dict[str, Any]) -> str:
    """Stable key for a create request: same address and attributes give the same key."""
    payload = json.dumps({"address": address, "attributes": attributes}, sort_keys=True, default=str)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class Executor:
    """
    Execute a scheduled plan.

    Steps whose predecessors have finished run in parallel on a thread
    pool. A failed step skips every operation that transitively waits on
    it; unrelated operations continue. State is committed per step, right
    after the provider call succeeds.
    """

    def __init__(
        self,
        provider: Provider,
        store: StateStore,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY,
        max_delay: float = DEFAULT_MAX_DELAY,
        parallelism: int = DEFAULT_PARALLELISM,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if parallelism < 1:
            raise ValueError("parallelism must be at least 1")
        self.provider = provider
        self.store = store
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.parallelism = parallelism
        self._sleep = sleep
        self._cancel = threading.Event()

    def cancel(self) -> None:
        """Stop starting new operations; in-flight ones finish and commit."""
        self._cancel.set()

    def apply(self, plan: Plan) -> ApplyResult:
        """
        Apply every changing operation of the plan.

        Each operation runs as one or two steps (a replace removes, then
        builds). Steps start once every step they wait on has finished.

        Returns:
            ApplyResult; ``interrupted`` is set when cancelled or interrupted
        """
        self._cancel.clear()
        result = ApplyResult()
        operations = {op.address: op for op in plan.changes}
        if not operations:
            logger.info("No changes to apply")
            return result

        graph = build_operation_graph(plan.changes)
        remaining: Dict[Step, Set[Step]] = {step: set(graph.predecessors(step)) for step in graph}
        pending: List[Step] = [
            step
            for op in plan.operations if op.address in operations
            for step in operation_steps(op)
        ]
        in_flight: Dict[Future, Step] = {}

        with ThreadPoolExecutor(max_workers=self.parallelism, thread_name_prefix="converge-apply") as pool:
            try:
                while pending or in_flight:
                    if not self._cancel.is_set():
                        for step in [s for s in pending if not remaining[s]]:
                            pending.remove(step)
                            address, phase = step
                            in_flight[pool.submit(self._run_step, operations[address], phase)] = step

                    if not in_flight:
                        break

                    done, _ = wait(list(in_flight), return_when=FIRST_COMPLETED)
                    for future in done:
                        step = in_flight.pop(future)
                        self._record_outcome(future, step, operations, graph, remaining, pending, result)
            except KeyboardInterrupt:
                logger.warning("Interrupt received; waiting for in-flight operations to finish")
                self._cancel.set()
                wait(list(in_flight))
                for future, step in list(in_flight.items()):
                    del in_flight[future]
                    self._record_outcome(future, step, operations, graph, remaining, pending, result)

        leftover = []
        for address, _ in pending:
            if address not in leftover and address not in result.skipped and address not in result.failed:
                leftover.append(address)
        if self._cancel.is_set():
            result.interrupted = True
            result.cancelled.extend(leftover)
            if leftover:
                logger.warning(f"Cancelled {len(leftover)} operations not yet started")
        else:
            # Waiting on operations that will never run.
            result.skipped.extend(leftover)

        logger.info(
            f"Apply finished: {len(result.applied)} applied, {len(result.failed)} failed, "
            f"{len(result.skipped)} skipped, {len(result.cancelled)} cancelled"
        )
        return result

    def _record_outcome(
        self,
        future: Future,
        step: Step,
        operations: Dict[str, PlannedOperation],
        graph: nx.DiGraph,
        remaining: Dict[Step, Set[Step]],
        pending: List[Step],
        result: ApplyResult,
    ) -> None:
        address = step[0]
        error = future.exception()
        if error is None:
            if operation_steps(operations[address])[-1] == step:
                result.applied.append(address)
            for successor in graph.successors(step):
                remaining[successor].discard(step)
            return

        result.failed[address] = str(error)
        if address in result.skipped:
            result.skipped.remove(address)
        logger.error(f"Operation on {address} failed: {error}")
        for descendant in sorted(nx.descendants(graph, step)):
            if descendant not in pending:
                continue
            pending.remove(descendant)
            dependent = descendant[0]
            if dependent in result.failed or dependent in result.skipped:
                continue
            result.skipped.append(dependent)
            logger.warning(f"Skipping {dependent}: depends on failed {address}")

    def _retry(self, fn: Callable[..., Any], *args: Any, address: str, **kwargs: Any) -> Any:
        return call_with_retry(
            fn, *args,
            address=address,
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            sleep=self._sleep,
            **kwargs
        )

    def _lookup(self, address: str, attribute: str) -> Any:
        record = self.store.get(address)
        if record is None:
            raise UnresolvedReference(f"{address} has not been applied")
        if attribute == "id":
            return record.provider_id
        if attribute not in record.attributes:
            raise UnresolvedReference(f"{address} has no attribute '{attribute}'")
        return record.attributes[attribute]

    def _resolved_attributes(self, op: PlannedOperation) -> Dict[str, Any]:
        try:
            return resolve_references(op.node.attributes, self._lookup)
        except UnresolvedReference as e:
            raise ConvergeError(f"Cannot resolve reference: {e}", address=op.address)

    def _run_step(self, op: PlannedOperation, phase: Phase) -> None:
        try:
            with self.store.locked(op.address):
                self._dispatch(op, phase)
        except ConvergeError as e:
            if e.address is None:
                e.address = op.address
            raise

    def _dispatch(self, op: PlannedOperation, phase: Phase) -> None:
        action = OperationType(op.action)
        if action == OperationType.REPLACE:
            logger.info(f"{action.value} ({phase.value}): {op.address}")
        else:
            logger.info(f"{action.value}: {op.address}")

        if action == OperationType.DESTROY:
            self._delete(op.prior)
            return

        if action == OperationType.REPLACE:
            if phase == Phase.REMOVE:
                current = self.store.get(op.address)
                if current is not None:
                    self._delete(current)
            else:
                self._create(op)
            return

        if action == OperationType.CREATE:
            # Drifted away at the provider: the old record is stale.
            if op.address in self.store:
                self.store.delete(op.address)
            self._create(op)
            return

        if action == OperationType.UPDATE:
            self._update(op)
            return

    def _create(self, op: PlannedOperation) -> None:
        node = op.node
        attributes = self._resolved_attributes(op)
        key = idempotency_key(op.address, attributes)
        provider_id, applied = self._retry(
            self.provider.create, node.type, attributes,
            address=op.address, idempotency_key=key
        )
        self.store.put(StateRecord(
            address=op.address,
            type=node.type,
            name=node.name,
            provider_id=provider_id,
            attributes=applied,
            dependencies=node.dependencies(),
        ))

    def _update(self, op: PlannedOperation) -> None:
        node = op.node
        current = self.store.get(op.address) or op.prior
        attributes = self._resolved_attributes(op)
        applied = self._retry(
            self.provider.update, node.type, current.provider_id, attributes,
            address=op.address
        )
        self.store.put(current.model_copy(update={
            "attributes": applied,
            "dependencies": node.dependencies(),
        }))

    def _delete(self, record: StateRecord) -> None:
        self._retry(self.provider.delete, record.type, record.provider_id, address=record.address)
        self.store.delete(record.address)
