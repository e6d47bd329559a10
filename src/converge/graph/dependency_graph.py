"""Build directed dependency graph from desired resource nodes."""

import networkx as nx
from typing import List, Dict, Set, Optional
from ..ingest.models import ResourceNode
from ..utils.errors import CyclicDependency, SchemaViolation
from ..utils.logging import get_logger

logger = get_logger("graph.dependency_graph")


def find_cycle_members(graph: nx.DiGraph) -> Optional[List[str]]:
    """Return the nodes of one cycle in ``graph``, or None if it is acyclic."""
    try:
        edges = nx.find_cycle(graph)
    except nx.NetworkXNoCycle:
        return None
    return [edge[0] for edge in edges]


class DependencyGraph:
    """Directed dependency graph: nodes=resources, edges=dependent -> dependency."""

    def __init__(self):
        self.graph = nx.DiGraph()
        self._resource_map: Dict[str, ResourceNode] = {}

    def add_resource(self, resource: ResourceNode) -> None:
        """Add a resource to the graph (edges are added by build_from_resources)."""
        if resource.address in self._resource_map:
            raise SchemaViolation(f"Duplicate resource address: {resource.address}", address=resource.address)
        self.graph.add_node(resource.address, resource=resource)
        self._resource_map[resource.address] = resource

    def build_from_resources(self, resources: List[ResourceNode]) -> None:
        """
        Build the complete dependency graph from a list of resources.

        Raises:
            SchemaViolation: If a dependency does not resolve to a node in the graph
            CyclicDependency: If the graph contains a cycle
        """
        for resource in resources:
            self.add_resource(resource)

        for resource in resources:
            for dep_address in resource.dependencies():
                if dep_address not in self._resource_map:
                    raise SchemaViolation(
                        f"Dependency '{dep_address}' is not declared",
                        address=resource.address
                    )
                self.graph.add_edge(resource.address, dep_address)
                logger.debug(f"Added dependency edge: {resource.address} -> {dep_address}")

        cycle = find_cycle_members(self.graph)
        if cycle:
            raise CyclicDependency(cycle)

        logger.info(
            f"Built dependency graph with {self.graph.number_of_nodes()} nodes "
            f"and {self.graph.number_of_edges()} edges"
        )

    def get_downstream_resources(self, address: str) -> Set[str]:
        """Get all resources that (transitively) depend on the given resource."""
        if address not in self.graph:
            return set()
        return set(nx.ancestors(self.graph, address))

    def get_upstream_resources(self, address: str) -> Set[str]:
        """Get all resources the given resource (transitively) depends on."""
        if address not in self.graph:
            return set()
        return set(nx.descendants(self.graph, address))

    def independent_subgraphs(self) -> List[Set[str]]:
        """Groups of resources that share no dependency edges."""
        components = [set(c) for c in nx.weakly_connected_components(self.graph)]
        return sorted(components, key=lambda c: sorted(c)[0])

    def creation_order(self) -> List[str]:
        """Deterministic dependency-first order of all addresses."""
        return list(nx.lexicographical_topological_sort(self.graph.reverse(copy=False)))

    def get_resource(self, address: str) -> Optional[ResourceNode]:
        """Get resource node by address."""
        return self._resource_map.get(address)

