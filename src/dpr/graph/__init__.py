"""Dependency graph functions for service start ordering.

Example:
    >>> from dpr.graph import get_start_order
    >>> get_start_order(["web", "api"], services)
    ['api', 'web']
"""

from ._graph import (
    DependencyGraph,
    build_graph,
    detect_circular_dependencies,
    detect_cycle,
    get_service_dependents,
    get_start_order,
    get_transitive_dependencies,
    get_transitive_dependents,
    topological_sort,
)

__all__ = [
    "DependencyGraph",
    "build_graph",
    "detect_circular_dependencies",
    "detect_cycle",
    "get_service_dependents",
    "get_start_order",
    "get_transitive_dependencies",
    "get_transitive_dependents",
    "topological_sort",
]
