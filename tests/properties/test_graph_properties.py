"""Property-based tests for dependency graph invariants.

- Start order: every dependency precedes its dependents
- Subsets: get_start_order returns exactly the subset, in full-order position
- Cycles: a detected cycle is a real closed walk through declared edges
- Dependents and dependencies mirror each other
"""

from hypothesis import given, strategies as st

from dpr.exceptions import CircularDependencyError
from dpr.graph import (
    build_graph,
    detect_cycle,
    get_start_order,
    get_transitive_dependencies,
    get_transitive_dependents,
    topological_sort,
)
from dpr.supervisor import ServiceConfig

# =============================================================================
# Strategies
# =============================================================================

_IDS = [f"svc{i}" for i in range(8)]


@st.composite
def acyclic_services(draw: st.DrawFn) -> list[ServiceConfig]:
    """Services that may only depend on services earlier in a hidden order."""
    count = draw(st.integers(min_value=1, max_value=len(_IDS)))
    ids = draw(st.permutations(_IDS))[:count]
    services: list[ServiceConfig] = []
    for index, service_id in enumerate(ids):
        deps = draw(st.lists(st.sampled_from(ids[:index]), unique=True)) if index else []
        services.append(ServiceConfig(id=service_id, start="true", depends_on=tuple(deps)))
    return draw(st.permutations(services))


@st.composite
def any_services(draw: st.DrawFn) -> list[ServiceConfig]:
    """Services with arbitrary edges between them, cycles included."""
    count = draw(st.integers(min_value=1, max_value=6))
    ids = _IDS[:count]
    return [
        ServiceConfig(
            id=service_id,
            start="true",
            depends_on=tuple(draw(st.lists(st.sampled_from(ids), unique=True, max_size=3))),
        )
        for service_id in ids
    ]


# =============================================================================
# Properties
# =============================================================================


@given(services=acyclic_services())
def test_dependencies_precede_dependents(services: list[ServiceConfig]) -> None:
    order = [s.id for s in topological_sort(services)]
    position = {service_id: index for index, service_id in enumerate(order)}

    assert sorted(order) == sorted(s.id for s in services)
    for service in services:
        for dep in service.depends_on:
            assert position[dep] < position[service.id]


@given(services=acyclic_services(), data=st.data())
def test_start_order_is_filtered_full_order(
    services: list[ServiceConfig], data: st.DataObject
) -> None:
    ids = [s.id for s in services]
    subset = data.draw(st.lists(st.sampled_from(ids), unique=True))
    full = [s.id for s in topological_sort(services)]

    assert get_start_order(subset, services) == [i for i in full if i in set(subset)]


@given(services=any_services())
def test_detected_cycle_is_closed_walk(services: list[ServiceConfig]) -> None:
    graph = build_graph(services)
    cycle = detect_cycle(graph)

    if cycle is None:
        _ = topological_sort(services)
        return

    assert cycle[0] == cycle[-1]
    for node, dep in zip(cycle, cycle[1:], strict=False):
        assert dep in graph.edges[node]


@given(services=any_services())
def test_sort_raises_exactly_when_cycle_exists(services: list[ServiceConfig]) -> None:
    cycle = detect_cycle(build_graph(services))
    try:
        _ = topological_sort(services)
    except CircularDependencyError as e:
        assert e.cycle == cycle
    else:
        assert cycle is None


@given(services=acyclic_services())
def test_dependents_mirror_dependencies(services: list[ServiceConfig]) -> None:
    for service in services:
        for dependent in get_transitive_dependents(service.id, services):
            assert service.id in get_transitive_dependencies(dependent, services)
