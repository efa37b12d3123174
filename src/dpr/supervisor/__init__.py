"""Supervisor package for running interdependent local services.

This package starts services dependencies-first, detects when each one
becomes ready, and shuts them down with a signal-escalation ladder.

Key Components:
    - ServiceConfig: Configuration for managed services
    - ServiceStatus: Lifecycle state enumeration
    - ServiceRuntimeState: Runtime status tracking
    - LogLine: One line of captured output
    - LogEvent, StatusChangeEvent, ReadyEvent, ErrorEvent: Supervisor events
    - OutputSink: Protocol for output consumption
    - ConcatenatedOutputSink: Console output implementation
    - TimerSlot: Single-slot cancellable timer
    - ProcessSupervisor: Single service lifecycle manager
    - Orchestrator: Multi-service coordinator

Example:
    >>> from dpr.supervisor import Orchestrator, ServiceConfig
    >>> services = [
    ...     ServiceConfig(id="db", start="postgres -D data", ready_pattern="ready"),
    ...     ServiceConfig(id="api", start="npm run dev", depends_on=("db",)),
    ... ]
    >>> async with Orchestrator(services) as orchestrator:
    ...     orchestrator.start_all()
"""

from ._models import (
    DEFAULT_READY_DELAY,
    ErrorEvent,
    EventListener,
    LogEvent,
    LogLine,
    ReadyEvent,
    ServiceConfig,
    ServiceRuntimeState,
    ServiceStatus,
    StatusChangeEvent,
    StreamName,
    SupervisorEvent,
)
from ._orchestrator import DEFAULT_SHUTDOWN_TIMEOUT, KILL_GRACE_PERIOD, Orchestrator
from ._output import ConcatenatedOutputSink
from ._protocol import OutputSink
from ._supervisor import SIGKILL_TIMEOUT, SIGTERM_TIMEOUT, ProcessSupervisor
from ._timer import TimerSlot

__all__ = [
    "DEFAULT_READY_DELAY",
    "DEFAULT_SHUTDOWN_TIMEOUT",
    "KILL_GRACE_PERIOD",
    "SIGKILL_TIMEOUT",
    "SIGTERM_TIMEOUT",
    "ConcatenatedOutputSink",
    "ErrorEvent",
    "EventListener",
    "LogEvent",
    "LogLine",
    "Orchestrator",
    "OutputSink",
    "ProcessSupervisor",
    "ReadyEvent",
    "ServiceConfig",
    "ServiceRuntimeState",
    "ServiceStatus",
    "StatusChangeEvent",
    "StreamName",
    "SupervisorEvent",
    "TimerSlot",
]
