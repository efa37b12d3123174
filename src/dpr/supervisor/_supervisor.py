"""Process supervisor for a single service.

This module provides the ProcessSupervisor class that spawns a service's
shell command, streams its output, detects readiness, and walks the
signal-escalation ladder when the service is stopped.
"""

from __future__ import annotations

import contextlib
import os
import re
import signal
import subprocess
from typing import TYPE_CHECKING, Literal, final

import anyio
import pendulum
from anyio.streams.text import TextReceiveStream

from dpr.exceptions import ServiceSpawnError, ServiceTerminationError
from dpr.utils import create_null_logger

from ._models import (
    ErrorEvent,
    LogEvent,
    LogLine,
    ReadyEvent,
    ServiceStatus,
    StatusChangeEvent,
)
from ._timer import TimerSlot

if TYPE_CHECKING:
    from collections.abc import Callable

    import anyio.abc
    from structlog.typing import FilteringBoundLogger

    from ._models import EventListener, ServiceConfig, StreamName, SupervisorEvent

# Seconds to wait after SIGINT (or the stop command) and after SIGTERM
SIGTERM_TIMEOUT = 5.0
# Seconds to wait after SIGKILL before giving up on the process
SIGKILL_TIMEOUT = 2.0
# Seconds to keep reading output after exit, for lines still in the pipes
STREAM_DRAIN_TIMEOUT = 0.5

_StopMode = Literal["stop", "kill"]


def _get_timestamp() -> pendulum.DateTime:
    return pendulum.now("UTC")


@final
class ProcessSupervisor:
    """Owns one service's OS process and its lifecycle state.

    Public operations are synchronous and never raise for process-level
    failures: they schedule work on the task group and report outcomes
    to listeners as events.

    Attributes:
        config: Immutable configuration for this service.
    """

    __slots__ = (
        "_attached",
        "_escalation",
        "_exit_code",
        "_listeners",
        "_logger",
        "_process",
        "_ready_pattern",
        "_ready_timer",
        "_run_scope",
        "_status",
        "_status_waiters",
        "_stop_mode",
        "_task_group",
        "config",
    )

    def __init__(
        self,
        config: ServiceConfig,
        task_group: anyio.abc.TaskGroup,
        *,
        logger: FilteringBoundLogger | None = None,
    ) -> None:
        """Initialize the supervisor.

        Args:
            config: Configuration for the service.
            task_group: Task group that runs process I/O and timers.
            logger: Logger for lifecycle diagnostics.
        """
        self.config = config
        self._task_group = task_group
        self._logger = (logger or create_null_logger()).bind(service=config.id)
        self._status = ServiceStatus.STOPPED
        self._exit_code: int | None = None
        self._process: anyio.abc.Process | None = None
        self._attached = False
        self._stop_mode: _StopMode | None = None
        self._run_scope: anyio.CancelScope | None = None
        self._listeners: list[EventListener] = []
        self._status_waiters: list[anyio.Event] = []
        self._ready_timer = TimerSlot(task_group)
        self._escalation = TimerSlot(task_group)
        self._ready_pattern: re.Pattern[str] | None = (
            re.compile(config.ready_pattern) if config.ready_pattern else None
        )

    @property
    def service_id(self) -> str:
        """Return the id of the supervised service."""
        return self.config.id

    @property
    def status(self) -> ServiceStatus:
        """Return the current lifecycle state."""
        return self._status

    @property
    def pid(self) -> int | None:
        """Return the process ID while starting, ready or stopping."""
        if self._process is None or self._status.is_terminal:
            return None
        return self._process.pid

    @property
    def exit_code(self) -> int | None:
        """Return the exit code recorded by the last stopped/crashed transition."""
        return self._exit_code

    @property
    def is_attached(self) -> bool:
        """Return True from start() until the process exits or fails to spawn."""
        return self._attached

    @property
    def is_terminal(self) -> bool:
        """Return True when the status is stopped or crashed."""
        return self._status.is_terminal

    # -------------------------------------------------------------------------
    # Listeners
    # -------------------------------------------------------------------------

    def subscribe(self, listener: EventListener) -> Callable[[], None]:
        """Register a listener for supervisor events.

        Args:
            listener: Called synchronously with every event.

        Returns:
            A function that removes the listener again.
        """
        self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: EventListener) -> None:
        """Remove a listener. Unknown listeners are ignored."""
        with contextlib.suppress(ValueError):
            self._listeners.remove(listener)

    def _emit(self, event: SupervisorEvent) -> None:
        for listener in tuple(self._listeners):
            try:
                listener(event)
            except Exception:  # noqa: BLE001
                # Listener errors should not break the state machine
                self._logger.exception("listener_failed", event=type(event).__name__)

    def _transition(self, status: ServiceStatus, exit_code: int | None = None) -> None:
        if status is self._status and exit_code is None:
            return
        self._status = status
        if status.is_terminal:
            self._exit_code = exit_code
        self._logger.debug("status_changed", status=status.value, exit_code=exit_code)
        self._emit(StatusChangeEvent(self.service_id, status, exit_code))
        waiters, self._status_waiters = self._status_waiters, []
        for waiter in waiters:
            waiter.set()

    async def wait_terminal(self) -> None:
        """Wait until the status is stopped or crashed."""
        while not self.is_terminal:
            waiter = anyio.Event()
            self._status_waiters.append(waiter)
            await waiter.wait()

    # -------------------------------------------------------------------------
    # Start
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Spawn the service process.

        Does nothing while a process is attached. Transitions to STARTING
        at once; spawn failures are reported as a CRASHED status and an
        error event.
        """
        if self._attached:
            return

        self._attached = True
        self._stop_mode = None
        self._exit_code = None
        self._transition(ServiceStatus.STARTING)
        self._task_group.start_soon(self._run, name=f"dpr:{self.service_id}")

    def _build_env(self) -> dict[str, str]:
        return {**os.environ, **self.config.env}

    async def _run(self) -> None:
        with anyio.CancelScope() as scope:
            self._run_scope = scope
            try:
                process = await anyio.open_process(
                    self.config.start,
                    cwd=self.config.cwd,
                    env=self._build_env(),
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                )
            except OSError as e:
                self._handle_spawn_error(e)
                return

            async with process:
                self._process = process
                self._logger.info(
                    "process_spawned", pid=process.pid, command=self.config.start
                )

                if self._status is ServiceStatus.STARTING:
                    # Re-announce STARTING now that the pid is known
                    self._emit(StatusChangeEvent(self.service_id, self._status))
                # stop() or kill() arrived while the spawn was in flight
                elif self._stop_mode == "stop":
                    self._begin_stop()
                elif self._stop_mode == "kill":
                    self._begin_kill()

                returncode = await self._pump_until_exit(process)
                self._handle_exit(returncode)

    async def _pump_until_exit(self, process: anyio.abc.Process) -> int:
        async with anyio.create_task_group() as tg:
            stdout_done = anyio.Event()
            stderr_done = anyio.Event()
            if process.stdout is not None:
                tg.start_soon(self._pump, process.stdout, "stdout", stdout_done)
            else:
                stdout_done.set()
            if process.stderr is not None:
                tg.start_soon(self._pump, process.stderr, "stderr", stderr_done)
            else:
                stderr_done.set()

            returncode = await process.wait()

            # Grandchildren may hold the pipes open; don't wait on them forever
            with anyio.move_on_after(STREAM_DRAIN_TIMEOUT):
                await stdout_done.wait()
                await stderr_done.wait()
            tg.cancel_scope.cancel()

        return returncode

    async def _pump(
        self,
        stream: anyio.abc.ByteReceiveStream,
        stream_name: StreamName,
        done: anyio.Event,
    ) -> None:
        pending = ""
        with contextlib.suppress(anyio.ClosedResourceError, anyio.BrokenResourceError):
            async for chunk in TextReceiveStream(stream, errors="replace"):
                lines = (pending + chunk).split("\n")
                pending = lines.pop()
                for line in lines:
                    self._handle_line(line, stream_name)
        if pending:
            self._handle_line(pending, stream_name)
        done.set()

    def _handle_line(self, raw_line: str, stream_name: StreamName) -> None:
        content = raw_line.rstrip("\r")
        if not content:
            return

        line = LogLine(timestamp=_get_timestamp(), content=content, stream=stream_name)
        self._emit(LogEvent(self.service_id, line))

        if self._status is not ServiceStatus.STARTING:
            return

        if self._ready_pattern is not None:
            if stream_name == "stdout" and self._ready_pattern.search(content):
                self._mark_ready()
        elif not self._ready_timer.armed:
            self._ready_timer.arm(self.config.ready_delay, self._on_ready_delay)

    def _on_ready_delay(self) -> None:
        if self._status is ServiceStatus.STARTING:
            self._mark_ready()

    def _mark_ready(self) -> None:
        self._ready_timer.cancel()
        self._logger.info("service_ready")
        self._transition(ServiceStatus.READY)
        self._emit(ReadyEvent(self.service_id))

    def _handle_exit(self, returncode: int) -> None:
        self._clear_timers()
        self._process = None
        self._attached = False
        self._stop_mode = None

        if self._status is ServiceStatus.STOPPING:
            self._logger.info("process_exited", exit_code=returncode)
            self._transition(ServiceStatus.STOPPED, returncode)
            return

        self._logger.warning("process_exited_unexpectedly", exit_code=returncode)
        self._transition(ServiceStatus.CRASHED, returncode)

    def _handle_spawn_error(self, error: OSError) -> None:
        self._clear_timers()
        self._process = None
        self._attached = False
        self._stop_mode = None

        msg = f"Failed to start service '{self.service_id}': {error}"
        self._logger.error("spawn_failed", error=str(error))
        self._transition(ServiceStatus.CRASHED, None)
        self._emit(
            ErrorEvent(
                self.service_id,
                ServiceSpawnError(msg, service_id=self.service_id, cause=error),
            )
        )

    # -------------------------------------------------------------------------
    # Stop / kill ladder
    # -------------------------------------------------------------------------

    def stop(self) -> None:
        """Stop the service gracefully.

        Runs the stop command if one is configured, otherwise sends SIGINT.
        Escalates to SIGTERM after SIGTERM_TIMEOUT seconds and to SIGKILL
        after another SIGTERM_TIMEOUT. If the process is still alive
        SIGKILL_TIMEOUT seconds later, the service is marked CRASHED and an
        error event is emitted. Such a process stays attached, so start()
        keeps doing nothing until it finally exits.

        Does nothing when no process is attached or a stop is already running.
        """
        if not self._attached or self._status is ServiceStatus.STOPPING:
            return

        self._clear_timers()
        self._stop_mode = "stop"
        self._transition(ServiceStatus.STOPPING)
        if self._process is not None:
            self._begin_stop()

    def kill(self) -> None:
        """Send SIGKILL at once.

        If the process is still alive SIGKILL_TIMEOUT seconds later, the
        service is marked CRASHED and an error event is emitted. The
        process stays attached until it exits, and start() does nothing
        meanwhile. Does nothing when no process is attached.
        """
        if not self._attached:
            return

        self._clear_timers()
        self._stop_mode = "kill"
        self._transition(ServiceStatus.STOPPING)
        if self._process is not None:
            self._begin_kill()

    def _begin_stop(self) -> None:
        if self.config.stop is not None:
            # The stop command runs outside the escalation slot so that
            # clearing timers never cancels (and kills) it.
            done = anyio.Event()
            self._task_group.start_soon(self._run_stop_command, self.config.stop, done)
            self._escalation.after(done.wait, self._escalate_to_sigterm)
            return

        self._send_signal(signal.SIGINT)
        self._escalation.arm(SIGTERM_TIMEOUT, self._escalate_to_sigterm)

    def _begin_kill(self) -> None:
        self._send_signal(signal.SIGKILL)
        self._escalation.arm(SIGKILL_TIMEOUT, self._fail_termination)

    async def _run_stop_command(self, command: str, done: anyio.Event) -> None:
        self._logger.info("stop_command_started", command=command)
        try:
            async with await anyio.open_process(
                command,
                cwd=self.config.cwd,
                env=self._build_env(),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            ) as stop_process:
                returncode = await stop_process.wait()
        except OSError as e:
            self._logger.warning("stop_command_failed", error=str(e))
            return
        finally:
            done.set()
        self._logger.info("stop_command_exited", exit_code=returncode)

    def _is_alive(self) -> bool:
        return self._process is not None and self._process.returncode is None

    def _escalate_to_sigterm(self) -> None:
        if self._status is not ServiceStatus.STOPPING or not self._is_alive():
            return
        self._send_signal(signal.SIGTERM)
        self._escalation.arm(SIGTERM_TIMEOUT, self._escalate_to_sigkill)

    def _escalate_to_sigkill(self) -> None:
        if not self._is_alive():
            return
        self._send_signal(signal.SIGKILL)
        self._escalation.arm(SIGKILL_TIMEOUT, self._fail_termination)

    def _fail_termination(self) -> None:
        if not self._is_alive() or self._process is None:
            return
        msg = f"Service '{self.service_id}' process did not terminate after SIGKILL"
        self._logger.error("escalation_failed", pid=self._process.pid)
        self._transition(ServiceStatus.CRASHED, None)
        self._emit(
            ErrorEvent(
                self.service_id,
                ServiceTerminationError(msg, service_id=self.service_id),
            )
        )

    def _send_signal(self, sig: signal.Signals) -> bool:
        if not self._is_alive() or self._process is None:
            return False
        try:
            self._process.send_signal(sig)
        except ProcessLookupError:
            # Process already exited
            return False
        self._logger.info("signal_sent", signal=sig.name, pid=self._process.pid)
        return True

    def _clear_timers(self) -> None:
        self._ready_timer.cancel()
        self._escalation.cancel()

    # -------------------------------------------------------------------------
    # Teardown
    # -------------------------------------------------------------------------

    def dispose(self) -> None:
        """Release the supervisor for good.

        Clears timers, sends SIGKILL to an attached process without
        escalation, cancels background work and detaches all listeners.
        """
        self._clear_timers()
        if self._process is not None:
            self._send_signal(signal.SIGKILL)
            self._process = None
        if self._run_scope is not None:
            self._run_scope.cancel()
            self._run_scope = None
        self._attached = False
        self._stop_mode = None
        self._listeners.clear()
        waiters, self._status_waiters = self._status_waiters, []
        for waiter in waiters:
            waiter.set()
