"""Order planned operations so dependencies are respected."""

import networkx as nx
from enum import Enum
from typing import Dict, List, Tuple
from .models import OperationType, PlannedOperation
from ..graph.dependency_graph import find_cycle_members
from ..utils.errors import CyclicDependency
from ..utils.logging import get_logger

logger = get_logger("engine.scheduler")


class Phase(str, Enum):
    """Half of an operation: tearing down the old resource or building the new one."""
    REMOVE = "remove"
    BUILD = "build"


Step = Tuple[str, Phase]

_BUILDS = (OperationType.CREATE, OperationType.UPDATE, OperationType.REPLACE)
_REMOVES = (OperationType.DESTROY, OperationType.REPLACE)


def operation_steps(op: PlannedOperation) -> List[Step]:
    """Steps of one operation, in execution order. A replace removes, then builds."""
    action = OperationType(op.action)
    steps = []
    if action in _REMOVES:
        steps.append((op.address, Phase.REMOVE))
    if action in _BUILDS:
        steps.append((op.address, Phase.BUILD))
    return steps


def build_operation_graph(operations: List[PlannedOperation]) -> nx.DiGraph:
    """
    Build the step graph: an edge ``a -> b`` means step ``a`` must finish before ``b`` starts.

    - a replace removes the old resource before building the new one
    - builds run after the builds of their desired dependencies
    - removals run before the removals of what they depended on (from state),
      so dependents are torn down first
    - a resource that stops depending on a destroyed one is rebuilt before
      that destroy, unless that would close a cycle
    - no-op operations have no steps
    """
    by_address: Dict[str, PlannedOperation] = {op.address: op for op in operations}
    graph = nx.DiGraph()
    for op in operations:
        steps = operation_steps(op)
        graph.add_nodes_from(steps)
        if len(steps) == 2:
            graph.add_edge(steps[0], steps[1])

    def has(address: str, phase: Phase) -> bool:
        return (address, phase) in graph

    for op in operations:
        if has(op.address, Phase.BUILD) and op.node is not None:
            for dep in op.node.dependencies():
                if has(dep, Phase.BUILD):
                    graph.add_edge((dep, Phase.BUILD), (op.address, Phase.BUILD))

        if has(op.address, Phase.REMOVE) and op.prior is not None:
            for dep in op.prior.dependencies:
                if has(dep, Phase.REMOVE):
                    graph.add_edge((op.address, Phase.REMOVE), (dep, Phase.REMOVE))

    for op in operations:
        if OperationType(op.action) != OperationType.UPDATE or op.prior is None:
            continue
        for dep in op.prior.dependencies:
            dep_op = by_address.get(dep)
            if dep_op is None or OperationType(dep_op.action) != OperationType.DESTROY:
                continue
            build, remove = (op.address, Phase.BUILD), (dep, Phase.REMOVE)
            if nx.has_path(graph, remove, build):
                logger.debug(f"Not ordering {op.address} before destroy of {dep}: would form a cycle")
                continue
            graph.add_edge(build, remove)

    return graph


def schedule(operations: List[PlannedOperation]) -> List[PlannedOperation]:
    """
    Topologically order operations and fill in ``wait_for``.

    Ordering is deterministic: among ready steps, addresses sort
    lexicographically. An operation is placed at its first step.

    Raises:
        CyclicDependency: If the operations cannot be ordered
    """
    graph = build_operation_graph(operations)

    cycle = find_cycle_members(graph)
    if cycle:
        members = []
        for address, _ in cycle:
            if address not in members:
                members.append(address)
        raise CyclicDependency(members)

    for op in operations:
        if not operation_steps(op):
            graph.add_node((op.address, Phase.BUILD))

    by_address = {op.address: op for op in operations}
    ordered = []
    placed = set()
    for address, _ in nx.lexicographical_topological_sort(graph):
        if address in placed:
            continue
        placed.add(address)
        op = by_address[address]
        waits = {
            pred_address
            for step in operation_steps(op)
            for pred_address, _ in graph.predecessors(step)
            if pred_address != address
        }
        ordered.append(op.model_copy(update={"wait_for": sorted(waits)}))

    logger.debug(f"Scheduled {len(ordered)} operations with {graph.number_of_edges()} ordering edges")
    return ordered
