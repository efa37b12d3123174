"""Dependency graph algorithms over service configurations.

All functions are pure: they take service configurations and return new
values without touching processes or global state. Traversals follow the
input order of services and the declaration order of each service's
dependencies, so results are deterministic for a given configuration.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING

import rustworkx as rx

from dpr.exceptions import CircularDependencyError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from dpr.supervisor import ServiceConfig


@dataclass(frozen=True, slots=True)
class DependencyGraph:
    """Service dependency declarations as a directed graph.

    Attributes:
        nodes: Service ids in input order.
        edges: Maps each service id to its dependency ids, in declaration order.
    """

    nodes: tuple[str, ...]
    edges: Mapping[str, tuple[str, ...]]


def build_graph(services: Iterable[ServiceConfig]) -> DependencyGraph:
    """Build a dependency graph from service configurations.

    Args:
        services: Service configurations.

    Returns:
        The graph, with an edge from each service to each of its dependencies.
    """
    nodes: list[str] = []
    edges: dict[str, tuple[str, ...]] = {}
    for service in services:
        if service.id not in edges:
            nodes.append(service.id)
        # dict.fromkeys drops duplicate declarations but keeps their order
        edges[service.id] = tuple(dict.fromkeys(service.depends_on))
    return DependencyGraph(nodes=tuple(nodes), edges=MappingProxyType(edges))


def detect_cycle(graph: DependencyGraph) -> tuple[str, ...] | None:
    """Find the first dependency cycle reachable by depth-first search.

    Nodes are visited in input order and each node's dependencies in
    declaration order. When a dependency is found that is still on the
    recursion stack, the path from that dependency back to itself is
    returned, e.g. ``("a", "b", "c", "a")``.

    Only the first cycle encountered is reported; with several independent
    cycles, which one that is depends on declaration order.

    Args:
        graph: The dependency graph to check.

    Returns:
        The cycle path, or None if the graph is acyclic.
    """
    visited: set[str] = set()
    on_stack: set[str] = set()
    path: list[str] = []

    def visit(node: str) -> tuple[str, ...] | None:
        visited.add(node)
        on_stack.add(node)
        path.append(node)

        for dep in graph.edges.get(node, ()):
            if dep not in visited:
                cycle = visit(dep)
                if cycle is not None:
                    return cycle
            elif dep in on_stack:
                start = path.index(dep)
                return (*path[start:], dep)

        path.pop()
        on_stack.discard(node)
        return None

    for node in graph.nodes:
        if node not in visited:
            cycle = visit(node)
            if cycle is not None:
                return cycle
    return None


# Longer alias
detect_circular_dependencies = detect_cycle


def topological_sort(services: Sequence[ServiceConfig]) -> list[ServiceConfig]:
    """Order services so that every dependency precedes its dependents.

    Args:
        services: Service configurations.

    Returns:
        The services, dependencies first.

    Raises:
        CircularDependencyError: If the dependencies contain a cycle.
    """
    graph = build_graph(services)
    cycle = detect_cycle(graph)
    if cycle is not None:
        raise CircularDependencyError(cycle)

    by_id = {service.id: service for service in services}
    visited: set[str] = set()
    ordered: list[ServiceConfig] = []

    def visit(node: str) -> None:
        if node in visited:
            return
        visited.add(node)
        for dep in graph.edges.get(node, ()):
            visit(dep)
        service = by_id.get(node)
        if service is not None:
            ordered.append(service)

    for node in graph.nodes:
        visit(node)
    return ordered


def get_start_order(
    service_ids: Iterable[str],
    services: Sequence[ServiceConfig],
) -> list[str]:
    """Return the requested ids in dependency-first order.

    Args:
        service_ids: Ids of the services to start.
        services: All service configurations.

    Returns:
        The requested ids in their relative topological order. Ids that do
        not name a configured service are dropped.

    Raises:
        CircularDependencyError: If the dependencies contain a cycle.
    """
    wanted = set(service_ids)
    return [s.id for s in topological_sort(services) if s.id in wanted]


def get_service_dependents(
    service_id: str,
    services: Iterable[ServiceConfig],
) -> list[str]:
    """Return the ids of services that directly depend on a service."""
    return [s.id for s in services if service_id in s.depends_on]


def get_transitive_dependents(
    service_id: str,
    services: Sequence[ServiceConfig],
) -> list[str]:
    """Return every service that directly or indirectly depends on a service.

    Args:
        service_id: The dependency to look up.
        services: All service configurations.

    Returns:
        Dependent ids in start order, or an empty list for an unknown id.

    Raises:
        CircularDependencyError: If the dependencies contain a cycle.
    """
    order = [s.id for s in topological_sort(services)]
    graph, node_indices = _build_rx_graph(order, services)
    if service_id not in node_indices:
        return []

    dependents = {graph[idx] for idx in rx.descendants(graph, node_indices[service_id])}
    return [node for node in order if node in dependents]


def get_transitive_dependencies(
    service_id: str,
    services: Sequence[ServiceConfig],
) -> list[str]:
    """Return every service that a service directly or indirectly depends on.

    Args:
        service_id: The dependent to look up.
        services: All service configurations.

    Returns:
        Dependency ids in start order, or an empty list for an unknown id.

    Raises:
        CircularDependencyError: If the dependencies contain a cycle.
    """
    order = [s.id for s in topological_sort(services)]
    graph, node_indices = _build_rx_graph(order, services)
    if service_id not in node_indices:
        return []

    dependencies = {graph[idx] for idx in rx.ancestors(graph, node_indices[service_id])}
    return [node for node in order if node in dependencies]


def _build_rx_graph(
    order: Sequence[str],
    services: Iterable[ServiceConfig],
) -> tuple[rx.PyDiGraph[str, None], dict[str, int]]:
    graph: rx.PyDiGraph[str, None] = rx.PyDiGraph(check_cycle=False)
    node_indices = {node: graph.add_node(node) for node in order}

    # A depends on B means edge B -> A, so descendants are dependents
    for service in services:
        for dep in service.depends_on:
            if dep in node_indices and service.id in node_indices:
                _ = graph.add_edge(node_indices[dep], node_indices[service.id], None)
    return graph, node_indices
