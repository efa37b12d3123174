# pyright: reportAny=false, reportExplicitAny=false
"""Config file loading.

This module reads the YAML config file, validates it and resolves it into
ServiceConfig values: relative service directories are resolved against
the config file's directory, ``readyDelay`` milliseconds become seconds,
and unset colours and log flags take their defaults.
"""

from pathlib import Path
from typing import Any

import yaml

from dpr.exceptions import (
    CircularDependencyError,
    ConfigLoadError,
    ConfigNotFoundError,
    ConfigValidationError,
    DprError,
)
from dpr.graph import build_graph, detect_cycle
from dpr.supervisor import ServiceConfig

from ._discovery import resolve_config_path
from ._models import DEFAULT_COLORS, Config, GlobalConfig, RawConfig
from ._validation import parse_config


def read_yaml_file(path: Path) -> Any:
    """Read and parse a YAML file.

    Args:
        path: Path to the YAML file.

    Returns:
        The parsed document. An empty file yields None.

    Raises:
        ConfigLoadError: If the file cannot be read or is not valid YAML.
    """
    try:
        content = path.read_text(encoding="utf-8")
        return yaml.safe_load(content)
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
        msg = f'Failed to parse config file "{path}": {e}'
        raise ConfigLoadError(msg, path=path, cause=e) from e


def _resolve_dir(config_dir: Path, directory: str | None) -> Path:
    if directory is None:
        return config_dir
    return (config_dir / Path(directory).expanduser()).resolve()


def transform_config(raw: RawConfig, path: Path) -> Config:
    """Resolve a validated raw config into a Config.

    Args:
        raw: The validated raw configuration.
        path: The file the configuration came from.
    """
    config_dir = path.parent
    services = tuple(
        ServiceConfig(
            id=s.id,
            name=s.name or s.id,
            start=s.start,
            stop=s.stop,
            cwd=_resolve_dir(config_dir, s.dir),
            env=s.env,
            depends_on=tuple(s.depends_on),
            ready_pattern=s.ready_pattern,
            ready_delay=s.ready_delay / 1000,
            autostart=s.autostart,
            keep_running=s.keep_running,
            logs=s.logs if s.logs is not None else raw.logs,
            color=s.color or DEFAULT_COLORS[index % len(DEFAULT_COLORS)],
        )
        for index, s in enumerate(raw.services)
    )
    global_config = GlobalConfig(
        name=raw.name,
        logs=raw.logs,
        logs_dir=Path(raw.logs_dir).expanduser(),
    )
    return Config(global_=global_config, services=services, path=path)


def load_config(path: str | Path | None = None, *, cwd: Path | None = None) -> Config:
    """Load, validate and resolve the config file.

    Args:
        path: Explicit config file path. If None, the default locations
            are searched.
        cwd: Directory used for relative paths and the search.

    Returns:
        The loaded configuration.

    Raises:
        ConfigNotFoundError: If no config file exists.
        ConfigLoadError: If the file cannot be read or parsed.
        ConfigValidationError: If the file fails validation.
        CircularDependencyError: If the service dependencies form a cycle.
    """
    resolved = resolve_config_path(path, cwd=cwd)
    raw = parse_config(read_yaml_file(resolved))
    config = transform_config(raw, resolved)

    cycle = detect_cycle(build_graph(config.services))
    if cycle is not None:
        raise CircularDependencyError(cycle)

    return config


def validate_config_file(
    path: str | Path | None = None, *, cwd: Path | None = None
) -> tuple[bool, list[str]]:
    """Validate the config file without raising.

    Args:
        path: Explicit config file path. If None, the default locations
            are searched.
        cwd: Directory used for relative paths and the search.

    Returns:
        Tuple of (valid, errors). ``errors`` is empty when valid.
    """
    try:
        _ = load_config(path, cwd=cwd)
    except ConfigNotFoundError as e:
        searched = ", ".join(str(p) for p in e.searched_paths)
        return False, [f"Config not found: {searched}"]
    except ConfigValidationError as e:
        return False, list(e.issues)
    except DprError as e:
        return False, [str(e)]
    return True, []
