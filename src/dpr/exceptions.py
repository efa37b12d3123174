"""dpr exceptions."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path


class DprError(Exception):
    """Base exception for dpr errors."""


# =============================================================================
# Configuration Exceptions
# =============================================================================


class ConfigError(DprError):
    """Base exception for configuration errors."""


class ConfigNotFoundError(ConfigError):
    """Raised when no configuration file exists at any searched location.

    Attributes:
        searched_paths: Every path that was checked, in search order.
    """

    def __init__(self, searched_paths: Sequence[Path]) -> None:
        """Initialize with the list of searched paths."""
        joined = ", ".join(str(p) for p in searched_paths)
        super().__init__(f"Config file not found. Searched: {joined}")
        self.searched_paths: tuple[Path, ...] = tuple(searched_paths)


class ConfigLoadError(ConfigError):
    """Raised when configuration cannot be read or parsed."""

    def __init__(
        self,
        message: str,
        *,
        path: Path | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize with error message and optional location context."""
        super().__init__(message)
        self.path: Path | None = path
        self.cause: Exception | None = cause


class ConfigValidationError(ConfigError):
    """Raised when configuration fails schema validation.

    Attributes:
        issues: Human-readable issues, each formatted as ``path: message``.
    """

    def __init__(self, issues: Sequence[str]) -> None:
        """Initialize with the validation issues."""
        lines = "\n".join(f"  - {issue}" for issue in issues)
        super().__init__(f"Config validation failed:\n{lines}")
        self.issues: tuple[str, ...] = tuple(issues)


# =============================================================================
# Dependency Exceptions
# =============================================================================


class DependencyError(DprError):
    """Base exception for dependency graph errors."""


class CircularDependencyError(DependencyError):
    """Raised when service dependencies form a cycle.

    Attributes:
        cycle: The cycle path, starting and ending with the same service id.
    """

    def __init__(self, cycle: Sequence[str]) -> None:
        """Initialize with the discovered cycle path."""
        super().__init__(f"Circular dependency detected: {' → '.join(cycle)}")
        self.cycle: tuple[str, ...] = tuple(cycle)


# =============================================================================
# Supervisor Exceptions
# =============================================================================


class SupervisorError(DprError):
    """Base exception for supervisor errors."""


class ServiceNotFoundError(SupervisorError, KeyError):
    """Raised when a service cannot be found by id.

    Attributes:
        service_id: The id of the service that was not found.
    """

    def __init__(self, message: str, *, service_id: str | None = None) -> None:
        """Initialize with error message and service context.

        Args:
            message: Human-readable error message.
            service_id: The id of the service that was not found.
        """
        super().__init__(message)
        self.service_id: str | None = service_id

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class ServiceSpawnError(SupervisorError):
    """Raised when the OS fails to create a service process.

    Delivered through the supervisor's error event, never raised from
    ``start()``.

    Attributes:
        service_id: The id of the service that failed to spawn.
        cause: The underlying OS error.
    """

    def __init__(
        self,
        message: str,
        *,
        service_id: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize with error message and service context.

        Args:
            message: Human-readable error message.
            service_id: The id of the service that failed to spawn.
            cause: The underlying exception that caused the failure.
        """
        super().__init__(message)
        self.service_id: str | None = service_id
        self.cause: Exception | None = cause


class ServiceTerminationError(SupervisorError):
    """Raised when a process survives the whole stop/kill signal ladder.

    Attributes:
        service_id: The id of the service that did not terminate.
    """

    def __init__(self, message: str, *, service_id: str | None = None) -> None:
        """Initialize with error message and service context."""
        super().__init__(message)
        self.service_id: str | None = service_id
