"""Async runner for the run command.

This module provides the async entry point that starts the orchestrator,
waits for a shutdown signal and then stops every service.
"""

from __future__ import annotations

import signal
from typing import TYPE_CHECKING

import anyio
from rich.console import Console

from dpr.supervisor import DEFAULT_SHUTDOWN_TIMEOUT, ConcatenatedOutputSink, Orchestrator
from dpr.utils import create_null_logger

if TYPE_CHECKING:
    from collections.abc import Sequence

    from structlog.typing import FilteringBoundLogger

    from dpr.config import Config


def select_services(config: Config, requested: Sequence[str]) -> list[str]:
    """Pick the services a run starts.

    Args:
        config: The loaded configuration.
        requested: Service ids named on the command line.

    Returns:
        The requested ids, else the autostart services, else every service.
    """
    if requested:
        return list(dict.fromkeys(requested))
    autostart = [s.id for s in config.services if s.autostart]
    return autostart or list(config.service_ids)


async def _wait_for_signal(
    shutdown_event: anyio.Event, logger: FilteringBoundLogger
) -> None:
    with anyio.open_signal_receiver(signal.SIGINT, signal.SIGTERM) as signals:
        async for signum in signals:
            logger.info("shutdown_requested", signal=signal.Signals(signum).name)
            shutdown_event.set()
            return


async def run_services(
    config: Config,
    service_ids: Sequence[str],
    *,
    console: Console | None = None,
    logger: FilteringBoundLogger | None = None,
    shutdown_event: anyio.Event | None = None,
    shutdown_timeout: float = DEFAULT_SHUTDOWN_TIMEOUT,
) -> dict[str, dict[str, object]]:
    """Run services until a shutdown is requested.

    Args:
        config: The loaded configuration.
        service_ids: Services to start, in start order.
        console: Console for service output. Defaults to stdout.
        logger: Logger for orchestration diagnostics.
        shutdown_event: Set to stop the run without a signal.
        shutdown_timeout: Seconds to wait for services to stop before
            killing them.

    Returns:
        The final status of every service.
    """
    logger = logger or create_null_logger()
    shutdown_event = shutdown_event or anyio.Event()
    sink = ConcatenatedOutputSink(console or Console(), colors=config.colors)

    async with Orchestrator(
        config.services,
        sink=sink,
        logs_dir=config.global_.logs_dir,
        logger=logger,
    ) as orchestrator:
        async with anyio.create_task_group() as tg:
            tg.start_soon(_wait_for_signal, shutdown_event, logger)

            logger.info("run_started", services=list(service_ids))
            orchestrator.start_services(service_ids)

            await shutdown_event.wait()
            await orchestrator.shutdown(shutdown_timeout)
            tg.cancel_scope.cancel()

        status = orchestrator.get_status()

    logger.info("run_finished")
    return status
