"""Dependency-aware coordinator for multiple services.

This module provides the Orchestrator class that owns one ProcessSupervisor
per service, holds services back until their dependencies are ready, and
performs bulk shutdown with a bounded wait.
"""

from __future__ import annotations

import contextlib
from types import MappingProxyType
from typing import TYPE_CHECKING, Self, final

import anyio
import pendulum

from dpr.exceptions import CircularDependencyError, ServiceNotFoundError
from dpr.graph import build_graph, detect_cycle, get_start_order
from dpr.utils import ServiceLogFile, create_null_logger

from ._models import (
    ErrorEvent,
    LogEvent,
    ReadyEvent,
    ServiceRuntimeState,
    ServiceStatus,
    StatusChangeEvent,
)
from ._supervisor import ProcessSupervisor

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping, Sequence
    from pathlib import Path
    from types import TracebackType

    import anyio.abc
    from structlog.typing import FilteringBoundLogger

    from ._models import ServiceConfig, SupervisorEvent
    from ._protocol import OutputSink

# Seconds stop_all_and_wait() waits for services before killing them
DEFAULT_SHUTDOWN_TIMEOUT = 15.0
# Seconds to wait after killing stragglers before reporting completion
KILL_GRACE_PERIOD = 0.5


@final
class Orchestrator:
    """Coordinates supervisors for a set of interdependent services.

    Supervisors are created lazily on first start and reused afterwards.
    A service whose dependencies are not all ready is parked in the
    pending set with status WAITING; every ready event re-scans the
    pending set and starts whatever has become unblocked.

    Use as an async context manager. The task group opened on entry runs
    all process I/O, timers and shutdown coordination; leaving the block
    disposes every supervisor.

    Example:
        >>> async with Orchestrator(services, sink=ConcatenatedOutputSink()) as orch:
        ...     orch.start_all()
        ...     await orch.shutdown()
    """

    __slots__ = (
        "_configs",
        "_exit_stack",
        "_log_files",
        "_logger",
        "_logs_dir",
        "_pending",
        "_sink",
        "_start_order",
        "_states",
        "_supervisors",
        "_task_group",
        "_wait_scopes",
    )

    def __init__(
        self,
        services: Sequence[ServiceConfig],
        *,
        sink: OutputSink | None = None,
        logs_dir: str | Path | None = None,
        logger: FilteringBoundLogger | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            services: Configurations for all services that may be started.
            sink: Receives output lines, state changes and errors.
            logs_dir: Directory for per-service log files. Services with
                ``logs`` enabled are only persisted when this is set.
            logger: Logger for orchestration diagnostics.

        Raises:
            CircularDependencyError: If the service dependencies form a cycle.
        """
        cycle = detect_cycle(build_graph(services))
        if cycle is not None:
            raise CircularDependencyError(cycle)

        self._configs: dict[str, ServiceConfig] = {s.id: s for s in services}
        self._start_order: tuple[str, ...] = tuple(
            get_start_order(list(self._configs), services)
        )
        self._states: dict[str, ServiceRuntimeState] = {
            service_id: ServiceRuntimeState() for service_id in self._configs
        }
        self._sink = sink
        self._logs_dir = logs_dir
        self._logger = logger or create_null_logger()
        self._supervisors: dict[str, ProcessSupervisor] = {}
        self._log_files: dict[str, ServiceLogFile] = {}
        self._pending: set[str] = set()
        self._wait_scopes: set[anyio.CancelScope] = set()
        self._task_group: anyio.abc.TaskGroup | None = None
        self._exit_stack: contextlib.AsyncExitStack | None = None

    async def __aenter__(self) -> Self:
        self._exit_stack = contextlib.AsyncExitStack()
        self._task_group = await self._exit_stack.enter_async_context(
            anyio.create_task_group()
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> bool | None:
        self.dispose()
        if self._task_group is not None:
            self._task_group.cancel_scope.cancel()
        exit_stack, self._exit_stack = self._exit_stack, None
        self._task_group = None
        if exit_stack is None:
            return None
        return await exit_stack.__aexit__(exc_type, exc_val, exc_tb)

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    @property
    def services(self) -> Mapping[str, ServiceConfig]:
        """Return the configured services by id."""
        return MappingProxyType(self._configs)

    @property
    def supervisors(self) -> Mapping[str, ProcessSupervisor]:
        """Return the supervisors created so far, by service id."""
        return MappingProxyType(self._supervisors)

    @property
    def pending(self) -> frozenset[str]:
        """Return the ids of services waiting on their dependencies."""
        return frozenset(self._pending)

    def get_state(self, service_id: str) -> ServiceRuntimeState:
        """Get the runtime state of a service.

        Raises:
            ServiceNotFoundError: If no service exists with that id.
        """
        state = self._states.get(service_id)
        if state is None:
            msg = f"Service '{service_id}' not found"
            raise ServiceNotFoundError(msg, service_id=service_id)
        return state

    def get_status(self) -> dict[str, dict[str, object]]:
        """Get status summary for all services.

        Returns:
            Dictionary mapping service ids to status dictionaries.
        """
        return {
            service_id: {
                "status": state.status.value,
                "pid": state.pid,
                "exit_code": state.exit_code,
                "started_at": state.started_at,
                "waiting_for": list(state.waiting_for),
                "pending": service_id in self._pending,
            }
            for service_id, state in self._states.items()
        }

    # -------------------------------------------------------------------------
    # Start
    # -------------------------------------------------------------------------

    def start_service(self, service_id: str) -> None:
        """Start a service, or park it until its dependencies are ready.

        Args:
            service_id: Id of the service to start.

        Raises:
            ServiceNotFoundError: If no service exists with that id.
            RuntimeError: If called outside the ``async with`` block.
        """
        config = self._get_config(service_id)
        supervisor = self._ensure_supervisor(config)
        if supervisor.is_attached:
            if supervisor.is_terminal:
                # Survived SIGKILL; a new process is only spawned once it exits
                self._logger.warning(
                    "service_start_ignored",
                    service=service_id,
                    reason="process_still_attached",
                )
            return

        self._logger.debug("service_start_requested", service=service_id)
        waiting_for = self._not_ready_dependencies(config)
        if waiting_for:
            self._pending.add(service_id)
            self._logger.info(
                "service_waiting", service=service_id, waiting_for=list(waiting_for)
            )
            self._update_state(
                service_id,
                status=ServiceStatus.WAITING,
                pid=None,
                started_at=None,
                waiting_for=waiting_for,
            )
            return

        self._pending.discard(service_id)
        supervisor.start()

    def start_services(self, service_ids: Iterable[str]) -> None:
        """Start the given services in dependency order.

        Raises:
            ServiceNotFoundError: If any id is unknown.
        """
        ids = list(service_ids)
        for service_id in ids:
            _ = self._get_config(service_id)
        for service_id in get_start_order(ids, list(self._configs.values())):
            self.start_service(service_id)

    def start_all(self) -> None:
        """Start every configured service in dependency order."""
        self.start_services(self._configs)

    def autostart(self) -> None:
        """Start every service configured with ``autostart``."""
        self.start_services(
            service_id for service_id, config in self._configs.items() if config.autostart
        )

    def _reconcile(self) -> None:
        for service_id in self._start_order:
            if service_id not in self._pending:
                continue
            config = self._configs[service_id]
            waiting_for = self._not_ready_dependencies(config)
            if waiting_for:
                self._update_state(service_id, waiting_for=waiting_for)
                continue
            self._pending.discard(service_id)
            self._logger.info("service_unblocked", service=service_id)
            self._supervisors[service_id].start()

    def _not_ready_dependencies(self, config: ServiceConfig) -> tuple[str, ...]:
        return tuple(
            dep
            for dep in config.depends_on
            if (supervisor := self._supervisors.get(dep)) is None
            or supervisor.status is not ServiceStatus.READY
        )

    # -------------------------------------------------------------------------
    # Stop
    # -------------------------------------------------------------------------

    def stop_service(self, service_id: str) -> None:
        """Stop a service gracefully. Does nothing if it was never started."""
        if self._cancel_pending(service_id):
            return
        supervisor = self._supervisors.get(service_id)
        if supervisor is not None:
            supervisor.stop()

    def kill_service(self, service_id: str) -> None:
        """Kill a service immediately. Does nothing if it was never started."""
        if self._cancel_pending(service_id):
            return
        supervisor = self._supervisors.get(service_id)
        if supervisor is not None:
            supervisor.kill()

    def _cancel_pending(self, service_id: str) -> bool:
        if service_id not in self._pending:
            return False
        self._pending.discard(service_id)
        self._logger.info("service_start_cancelled", service=service_id)
        self._update_state(service_id, status=ServiceStatus.STOPPED, waiting_for=())
        return True

    def stop_all(self) -> None:
        """Stop every service except those configured with ``keep_running``."""
        for service_id in self._stoppable_ids():
            self.stop_service(service_id)

    def stop_all_and_wait(
        self,
        on_complete: Callable[[], None],
        timeout: float = DEFAULT_SHUTDOWN_TIMEOUT,
    ) -> None:
        """Stop all stoppable services and report when they are down.

        Services still running after ``timeout`` seconds are killed, and
        ``on_complete`` is called KILL_GRACE_PERIOD seconds later. The
        callback runs exactly once; synchronously if nothing is running.

        Args:
            on_complete: Called once every stoppable service is down.
            timeout: Seconds to wait before killing stragglers.
        """
        supervisors = self._begin_stop_all()
        if not supervisors:
            on_complete()
            return
        self._require_task_group().start_soon(
            self._wait_then_complete, supervisors, on_complete, timeout
        )

    async def shutdown(self, timeout: float = DEFAULT_SHUTDOWN_TIMEOUT) -> None:
        """Stop all stoppable services and wait until they are down.

        Args:
            timeout: Seconds to wait before killing stragglers.
        """
        supervisors = self._begin_stop_all()
        if supervisors:
            await self._wait_for_stop(supervisors, timeout)

    def _stoppable_ids(self) -> list[str]:
        return [
            service_id
            for service_id, config in self._configs.items()
            if not config.keep_running
        ]

    def _begin_stop_all(self) -> list[ProcessSupervisor]:
        stoppable = [
            supervisor
            for service_id in self._stoppable_ids()
            if (supervisor := self._supervisors.get(service_id)) is not None
        ]
        self.stop_all()
        return [supervisor for supervisor in stoppable if not supervisor.is_terminal]

    async def _wait_then_complete(
        self,
        supervisors: list[ProcessSupervisor],
        on_complete: Callable[[], None],
        timeout: float,
    ) -> None:
        with anyio.CancelScope() as scope:
            self._wait_scopes.add(scope)
            try:
                await self._wait_for_stop(supervisors, timeout)
            finally:
                self._wait_scopes.discard(scope)
        # Cancelled by dispose()
        if scope.cancel_called:
            return
        on_complete()

    async def _wait_for_stop(
        self, supervisors: list[ProcessSupervisor], timeout: float
    ) -> None:
        with anyio.move_on_after(timeout) as waited:
            async with anyio.create_task_group() as tg:
                for supervisor in supervisors:
                    tg.start_soon(supervisor.wait_terminal)

        if not waited.cancelled_caught:
            return

        stragglers = [s.service_id for s in supervisors if not s.is_terminal]
        self._logger.warning("shutdown_timed_out", timeout=timeout, services=stragglers)
        for supervisor in supervisors:
            if not supervisor.is_terminal:
                supervisor.kill()
        await anyio.sleep(KILL_GRACE_PERIOD)

    # -------------------------------------------------------------------------
    # Teardown
    # -------------------------------------------------------------------------

    def dispose(self) -> None:
        """Dispose every supervisor and close all service log files.

        Pending stop_all_and_wait() coordination is cancelled, so its
        callback is not called.
        """
        for scope in tuple(self._wait_scopes):
            scope.cancel()
        self._wait_scopes.clear()
        for supervisor in self._supervisors.values():
            supervisor.dispose()
        for log_file in self._log_files.values():
            log_file.close()
        self._supervisors.clear()
        self._log_files.clear()
        self._pending.clear()

    # -------------------------------------------------------------------------
    # Supervisor wiring
    # -------------------------------------------------------------------------

    def _get_config(self, service_id: str) -> ServiceConfig:
        config = self._configs.get(service_id)
        if config is None:
            msg = f"Service '{service_id}' not found"
            raise ServiceNotFoundError(msg, service_id=service_id)
        return config

    def _require_task_group(self) -> anyio.abc.TaskGroup:
        if self._task_group is None:
            msg = "Orchestrator is not running; use 'async with Orchestrator(...)'"
            raise RuntimeError(msg)
        return self._task_group

    def _ensure_supervisor(self, config: ServiceConfig) -> ProcessSupervisor:
        supervisor = self._supervisors.get(config.id)
        if supervisor is not None:
            return supervisor

        supervisor = ProcessSupervisor(
            config, self._require_task_group(), logger=self._logger
        )
        _ = supervisor.subscribe(self._handle_event)
        self._supervisors[config.id] = supervisor
        if config.logs and self._logs_dir is not None:
            self._log_files[config.id] = ServiceLogFile(self._logs_dir, config.id)
        return supervisor

    def _handle_event(self, event: SupervisorEvent) -> None:
        match event:
            case StatusChangeEvent(service_id=service_id, status=status):
                self._on_status_change(service_id, status, event.exit_code)
            case LogEvent(service_id=service_id, line=line):
                supervisor = self._supervisors.get(service_id)
                if self._sink is not None:
                    pid = supervisor.pid if supervisor is not None else None
                    self._sink.write_line(service_id, pid, line)
                log_file = self._log_files.get(service_id)
                if log_file is not None:
                    log_file.write(line)
            case ReadyEvent():
                self._reconcile()
            case ErrorEvent(service_id=service_id, error=error):
                self._logger.error(
                    "service_error", service=service_id, error=str(error)
                )
                if self._sink is not None:
                    self._sink.write_error(service_id, error)

    def _on_status_change(
        self, service_id: str, status: ServiceStatus, exit_code: int | None
    ) -> None:
        supervisor = self._supervisors.get(service_id)
        previous = self._states[service_id]
        started_at: str | None = None
        if status is ServiceStatus.STARTING:
            # STARTING is announced again once the pid is known
            started_at = (
                previous.started_at
                if previous.status is ServiceStatus.STARTING
                and previous.started_at is not None
                else pendulum.now("UTC").to_iso8601_string()
            )
        self._update_state(
            service_id,
            status=status,
            pid=supervisor.pid if supervisor is not None else None,
            exit_code=exit_code,
            started_at=started_at,
            waiting_for=(),
        )

    def _update_state(self, service_id: str, **changes: object) -> None:
        state = self._states[service_id]
        for name, value in changes.items():
            setattr(state, name, value)
        if self._sink is not None:
            self._sink.write_state(service_id, state)
