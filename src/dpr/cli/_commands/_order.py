"""dpr order command - shows the dependency-first start order."""

from dpr.graph import get_service_dependents, get_start_order, get_transitive_dependents

from ._shared import ConfigOption, load_config_or_exit


def _join(ids: list[str] | tuple[str, ...]) -> str:
    return ", ".join(ids) if ids else "-"


def order(*, config: ConfigOption = None) -> None:
    """Print the start order with each service's dependencies and dependents."""
    loaded = load_config_or_exit(config)
    by_id = {service.id: service for service in loaded.services}

    for index, service_id in enumerate(
        get_start_order(loaded.service_ids, loaded.services), start=1
    ):
        service = by_id[service_id]
        print(f"{index}. {service.display_name} ({service_id})")
        print(f"     depends on: {_join(service.depends_on)}")
        print(f"     needed by: {_join(get_service_dependents(service_id, loaded.services))}")
        print(
            "     all dependents: "
            f"{_join(get_transitive_dependents(service_id, loaded.services))}"
        )
