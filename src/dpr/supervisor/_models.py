"""Data models for the supervisor system.

This module defines the core data types for service orchestration:
- ServiceStatus: Lifecycle states for managed services
- ServiceConfig: Immutable service configuration
- ServiceRuntimeState: Mutable runtime view of a service
- LogLine: One line of captured process output
- LogEvent, StatusChangeEvent, ReadyEvent, ErrorEvent: Supervisor events
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path  # noqa: TC003 - Used in runtime type annotations
from types import MappingProxyType
from typing import Literal

from pendulum import DateTime  # noqa: TC002 - Used in runtime type annotations

DEFAULT_READY_DELAY = 0.5

StreamName = Literal["stdout", "stderr"]


class ServiceStatus(StrEnum):
    """Service lifecycle states.

    - STOPPED: Not running (initial state, or stopped on request)
    - WAITING: Start requested but dependencies are not ready yet
    - STARTING: Process spawned, ready condition not met yet
    - READY: Ready condition met, dependents may start
    - STOPPING: Shutdown ladder in progress
    - CRASHED: Exited on its own, failed to spawn, or survived the ladder
    """

    STOPPED = "stopped"
    WAITING = "waiting"
    STARTING = "starting"
    READY = "ready"
    STOPPING = "stopping"
    CRASHED = "crashed"

    @property
    def is_terminal(self) -> bool:
        """Return True for states with no process expected to be running."""
        return self in (ServiceStatus.STOPPED, ServiceStatus.CRASHED)


@dataclass(frozen=True, slots=True)
class ServiceConfig:
    """Configuration for a managed service.

    Attributes:
        id: Unique identifier for the service.
        start: Shell command that runs the service.
        stop: Optional shell command that asks the service to shut down.
        cwd: Working directory for the process.
        env: Environment overrides merged over the current environment.
            Stored as a read-only copy and left out of the hash.
        depends_on: Ids of services that must be ready first, in declaration order.
        ready_pattern: Regex; the first matching stdout line marks the service ready.
        ready_delay: Seconds after the first output line before the service
            counts as ready, used when no ready_pattern is configured.
        autostart: Whether the service starts with the session.
        keep_running: Whether bulk stops leave the service alone.
        name: Display name. Defaults to the id.
        logs: Whether output lines are persisted to a log file.
        color: Console colour for the service prefix.
    """

    id: str
    start: str
    stop: str | None = None
    cwd: Path | None = None
    env: Mapping[str, str] = field(default_factory=dict, hash=False)
    depends_on: tuple[str, ...] = ()
    ready_pattern: str | None = None
    ready_delay: float = DEFAULT_READY_DELAY
    autostart: bool = False
    keep_running: bool = False
    name: str | None = None
    logs: bool = False
    color: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "env", MappingProxyType(dict(self.env)))

    @property
    def display_name(self) -> str:
        """Return the name shown to users."""
        return self.name or self.id


@dataclass(slots=True)
class ServiceRuntimeState:
    """Mutable runtime state of a service as seen by the orchestrator.

    Attributes:
        status: Current lifecycle state.
        pid: Process ID while starting, ready or stopping.
        exit_code: Exit code recorded by the last stopped/crashed transition.
        started_at: ISO 8601 timestamp of entering STARTING, cleared otherwise.
        waiting_for: Dependency ids that are not ready, only while WAITING.
    """

    status: ServiceStatus = ServiceStatus.STOPPED
    pid: int | None = None
    exit_code: int | None = None
    started_at: str | None = None
    waiting_for: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class LogLine:
    """A single line of process output.

    Attributes:
        timestamp: When the line was received.
        content: The line text without its trailing newline.
        stream: Which output stream the line came from.
    """

    timestamp: DateTime
    content: str
    stream: StreamName


@dataclass(frozen=True, slots=True)
class LogEvent:
    """A process produced a line of output."""

    service_id: str
    line: LogLine


@dataclass(frozen=True, slots=True)
class StatusChangeEvent:
    """The supervisor changed status.

    ``exit_code`` is only set for transitions caused by a process exit.
    """

    service_id: str
    status: ServiceStatus
    exit_code: int | None = None


@dataclass(frozen=True, slots=True)
class ReadyEvent:
    """The service met its ready condition."""

    service_id: str


@dataclass(frozen=True, slots=True)
class ErrorEvent:
    """The supervisor hit a failure it cannot report through status alone."""

    service_id: str
    error: Exception


type SupervisorEvent = LogEvent | StatusChangeEvent | ReadyEvent | ErrorEvent

type EventListener = Callable[[SupervisorEvent], None]
