"""Append-only log files for service output.

Each service with logging enabled gets ``<logs_dir>/<service_id>.log``.
Lines are written as ``[<iso timestamp>] content``, with an ``[ERR] ``
marker in front of stderr content.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, TextIO, final

if TYPE_CHECKING:
    from dpr.supervisor import LogLine


def format_log_line(line: LogLine) -> str:
    """Format a log line for a service log file, including the newline."""
    stream_prefix = "[ERR] " if line.stream == "stderr" else ""
    return f"[{line.timestamp.to_iso8601_string()}] {stream_prefix}{line.content}\n"


@final
class ServiceLogFile:
    """Persists one service's log lines to disk."""

    __slots__ = ("_handle", "path")

    def __init__(self, logs_dir: str | Path, service_id: str) -> None:
        """Open the log file, creating the logs directory if needed.

        Args:
            logs_dir: Directory for log files. ``~`` is expanded.
            service_id: Service id, used as the file name.
        """
        directory = Path(logs_dir).expanduser()
        directory.mkdir(parents=True, exist_ok=True)
        self.path: Path = directory / f"{service_id}.log"
        self._handle: TextIO | None = self.path.open("a", encoding="utf-8")

    @property
    def closed(self) -> bool:
        """Return True once the file has been closed."""
        return self._handle is None

    def write(self, line: LogLine) -> None:
        """Append a line. Writes after close are ignored."""
        if self._handle is None:
            return
        _ = self._handle.write(format_log_line(line))
        self._handle.flush()

    def close(self) -> None:
        """Close the underlying file."""
        if self._handle is not None:
            self._handle.close()
            self._handle = None
