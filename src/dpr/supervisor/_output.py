"""Output sink implementations for the supervisor system.

This module provides concrete implementations of the OutputSink protocol
for consuming and displaying service output and state changes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, final

from rich.console import Console
from rich.style import Style
from rich.text import Text

from ._models import ServiceStatus

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ._models import LogLine, ServiceRuntimeState

DEFAULT_PREFIX_COLOR = "blue"


@final
class ConcatenatedOutputSink:
    """Output sink that writes to the console with formatted prefixes.

    Formats service output as `[id:pid] line` with color coding:
    - stdout: Default styling
    - stderr: Dim red styling
    - State changes: Styling based on the new status
    """

    __slots__ = (
        "_colors",
        "_console",
        "_status_styles",
        "_stderr_style",
        "_stdout_style",
    )

    def __init__(
        self,
        console: Console | None = None,
        colors: Mapping[str, str] | None = None,
    ) -> None:
        """Initialize the output sink.

        Args:
            console: Rich Console instance for output. If None, creates a new one.
            colors: Prefix colour per service id. Unlisted services use blue.
        """
        self._console = console or Console()
        self._colors: dict[str, str] = dict(colors or {})
        self._stdout_style = Style()
        self._stderr_style = Style(color="red", dim=True)
        self._status_styles: dict[ServiceStatus, Style] = {
            ServiceStatus.STOPPED: Style(color="yellow"),
            ServiceStatus.WAITING: Style(color="cyan", dim=True),
            ServiceStatus.STARTING: Style(color="cyan"),
            ServiceStatus.READY: Style(color="green", bold=True),
            ServiceStatus.STOPPING: Style(color="magenta"),
            ServiceStatus.CRASHED: Style(color="red", bold=True),
        }

    def write_line(self, service_id: str, pid: int | None, line: LogLine) -> None:
        """Write a line of service output with prefix.

        Args:
            service_id: Id of the service that produced the output.
            pid: Process ID of the service, if known.
            line: The output line.
        """
        prefix = f"[{service_id}:{pid}]" if pid is not None else f"[{service_id}]"
        style = self._stderr_style if line.stream == "stderr" else self._stdout_style

        text = Text()
        _ = text.append(prefix, style=self._prefix_style(service_id))
        _ = text.append(" ")
        _ = text.append(line.content, style=style)

        self._console.print(text)

    def write_state(self, service_id: str, state: ServiceRuntimeState) -> None:
        """Write a state change with special formatting.

        Args:
            service_id: Id of the service whose state changed.
            state: Snapshot of the new runtime state.
        """
        style = self._status_styles.get(state.status, Style())

        text = Text()
        _ = text.append(f"[{service_id}]", style=self._prefix_style(service_id))
        _ = text.append(" ")
        _ = text.append(state.status.value.upper(), style=style)

        if state.pid is not None:
            _ = text.append(f" (pid={state.pid})", style=Style(dim=True))

        if state.exit_code is not None:
            _ = text.append(f" exit_code={state.exit_code}", style=Style(dim=True))

        if state.waiting_for:
            waiting = ", ".join(state.waiting_for)
            _ = text.append(f" - waiting for {waiting}", style=style)

        self._console.print(text)

    def write_error(self, service_id: str, error: Exception) -> None:
        """Write a supervisor error.

        Args:
            service_id: Id of the service that failed.
            error: The spawn or termination error.
        """
        text = Text()
        _ = text.append(f"[{service_id}]", style=self._prefix_style(service_id))
        _ = text.append(" ")
        _ = text.append("ERROR", style=Style(color="red", bold=True))
        _ = text.append(f" - {error}", style=Style(color="red"))

        self._console.print(text)

    def _prefix_style(self, service_id: str) -> Style:
        return Style(color=self._colors.get(service_id, DEFAULT_PREFIX_COLOR), bold=True)
