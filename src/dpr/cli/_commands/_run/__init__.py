# pyright: reportUnusedCallResult=false
"""dpr run command - starts services and supervises them until interrupted."""

from functools import partial
from typing import Annotated

import anyio
from cyclopts import Parameter

from dpr.graph import get_start_order, get_transitive_dependencies
from dpr.supervisor import DEFAULT_SHUTDOWN_TIMEOUT
from dpr.utils import create_logger

from .._shared import ConfigOption, ExitCode, exit_with_error, load_config_or_exit
from ._runner import run_services, select_services

LOG_FILE_NAME = "dpr.log"


def run(
    *services: Annotated[str, Parameter(help="Services to start.")],
    config: ConfigOption = None,
    shutdown_timeout: Annotated[
        float,
        Parameter(help="Seconds to wait for services to stop before killing them."),
    ] = DEFAULT_SHUTDOWN_TIMEOUT,
    log_level: Annotated[
        str | None,
        Parameter(help="Log level for the dpr log file (debug, info, warning, error)."),
    ] = None,
) -> None:
    """Start services and supervise them until SIGINT or SIGTERM.

    Named services are started together with everything they depend on.
    Without names, the services marked autostart are started, or all
    services when none are.
    """
    loaded = load_config_or_exit(config)

    unknown = [s for s in services if s not in loaded.service_ids]
    if unknown:
        exit_with_error(
            f"Unknown service(s): {', '.join(unknown)}", ExitCode.VALIDATION_ERROR
        )

    selected = select_services(loaded, services)
    wanted = set(selected)
    for service_id in selected:
        wanted.update(get_transitive_dependencies(service_id, loaded.services))
    start_order = get_start_order(wanted, loaded.services)

    title = loaded.global_.name or str(loaded.path)
    print(f"Starting {title}: {' → '.join(start_order)}")

    logger = create_logger(loaded.global_.logs_dir / LOG_FILE_NAME, level=log_level)
    anyio.run(
        partial(
            run_services,
            loaded,
            start_order,
            logger=logger,
            shutdown_timeout=shutdown_timeout,
        )
    )
