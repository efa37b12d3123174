"""Protocol definitions for the supervisor system.

This module defines the interface between the orchestration core and
whatever presents its state (a console, a TUI store, a test recorder):
- OutputSink: Protocol for consuming service output, state and errors
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ._models import LogLine, ServiceRuntimeState


@runtime_checkable
class OutputSink(Protocol):
    """Protocol for consuming orchestrator output.

    Methods are called synchronously from the orchestrator's event
    handlers, so implementations must not block.
    """

    def write_line(self, service_id: str, pid: int | None, line: LogLine) -> None:
        """Write a line of service output.

        Args:
            service_id: Id of the service that produced the output.
            pid: Process ID of the service, if known.
            line: The output line.
        """
        ...

    def write_state(self, service_id: str, state: ServiceRuntimeState) -> None:
        """Record a change of a service's runtime state.

        Args:
            service_id: Id of the service whose state changed.
            state: Snapshot of the new runtime state.
        """
        ...

    def write_error(self, service_id: str, error: Exception) -> None:
        """Record a supervisor error.

        Args:
            service_id: Id of the service that failed.
            error: The spawn or termination error.
        """
        ...
