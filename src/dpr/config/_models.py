"""Configuration models.

The raw Pydantic models mirror the YAML file, including its camelCase keys.
Config and GlobalConfig are the resolved values handed to the rest of dpr.
"""

import re
from dataclasses import dataclass
from pathlib import Path  # noqa: TC003 - Used in runtime type annotations
from typing import Annotated, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from dpr.supervisor import ServiceConfig  # noqa: TC001 - Used in runtime type annotations

MIN_SERVICES = 2
MAX_SERVICES = 6
DEFAULT_READY_DELAY_MS = 500
DEFAULT_LOGS_DIR = "~/.dpr/logs"

ServiceColor = Literal["green", "blue", "yellow", "magenta", "cyan", "red"]

DEFAULT_COLORS: tuple[str, ...] = ("green", "blue", "yellow", "magenta", "cyan", "red")

_SERVICE_ID_PATTERN = re.compile(r"[\w-]+")


class RawServiceConfig(BaseModel):
    """One entry of the ``services`` list, as written in the config file."""

    model_config: ClassVar[ConfigDict] = ConfigDict(
        frozen=True, extra="ignore", populate_by_name=True
    )

    id: Annotated[str, Field(min_length=1)]
    name: str | None = None
    dir: str | None = None
    start: Annotated[str, Field(min_length=1)]
    stop: str | None = None
    autostart: bool = False
    color: ServiceColor | None = None
    logs: bool | None = None
    env: dict[str, str] = Field(default_factory=dict)
    depends_on: list[str] = Field(default_factory=list, alias="dependsOn")
    ready_pattern: str | None = Field(default=None, alias="readyPattern")
    ready_delay: float = Field(default=DEFAULT_READY_DELAY_MS, gt=0, alias="readyDelay")
    keep_running: bool = Field(default=False, alias="keepRunning")

    @field_validator("id")
    @classmethod
    def _check_id(cls, value: str) -> str:
        if not _SERVICE_ID_PATTERN.fullmatch(value):
            msg = (
                "Service ID must contain only alphanumeric characters, "
                "underscores, or hyphens"
            )
            raise ValueError(msg)
        return value

    @field_validator("ready_pattern")
    @classmethod
    def _check_ready_pattern(cls, value: str | None) -> str | None:
        if value is not None:
            try:
                _ = re.compile(value)
            except re.error as e:
                msg = f"Invalid regular expression: {e}"
                raise ValueError(msg) from e
        return value


class RawConfig(BaseModel):
    """Top level of the config file."""

    model_config: ClassVar[ConfigDict] = ConfigDict(
        frozen=True, extra="ignore", populate_by_name=True
    )

    name: str | None = None
    logs: bool = False
    logs_dir: str = Field(default=DEFAULT_LOGS_DIR, alias="logsDir")
    services: list[RawServiceConfig]


@dataclass(frozen=True, slots=True)
class GlobalConfig:
    """Settings that apply to the whole session.

    Attributes:
        name: Optional session name.
        logs: Whether services persist log lines unless they override it.
        logs_dir: Directory for per-service log files, with ``~`` expanded.
    """

    name: str | None
    logs: bool
    logs_dir: Path


@dataclass(frozen=True, slots=True)
class Config:
    """A loaded and validated configuration.

    Attributes:
        global_: Session-wide settings.
        services: Service configurations in file order.
        path: The file the configuration was loaded from.
    """

    global_: GlobalConfig
    services: tuple[ServiceConfig, ...]
    path: Path

    @property
    def service_ids(self) -> tuple[str, ...]:
        """Return the service ids in file order."""
        return tuple(service.id for service in self.services)

    @property
    def colors(self) -> dict[str, str]:
        """Return the console colour of every service."""
        return {
            service.id: service.color
            for service in self.services
            if service.color is not None
        }
