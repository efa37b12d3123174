"""Shared test fixtures for dpr tests."""

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import anyio
import pytest
from rich.console import Console


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def console() -> Console:
    return Console(
        width=70,
        force_terminal=True,
        highlight=False,
        color_system=None,
        legacy_windows=False,
    )


@dataclass(frozen=True, slots=True)
class DprProject:
    """Paths for a test project with a dpr config file."""

    root: Path
    config_path: Path
    logs_dir: Path


def write_config(path: Path, content: str) -> Path:
    """Write a YAML config file, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    _ = path.write_text(content)
    return path


@pytest.fixture
def dpr_project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> DprProject:
    """Create a project directory with a three-service dpr.yaml.

    Structure:
        tmp_path/
            project/
                dpr.yaml       # db <- api <- web
                api/
            logs/
    """
    root = tmp_path / "project"
    (root / "api").mkdir(parents=True)
    logs_dir = tmp_path / "logs"

    config_path = write_config(
        root / "dpr.yaml",
        f"""\
name: test-stack
logsDir: {logs_dir}
services:
  - id: db
    start: echo db up
    autostart: true
    readyPattern: "db up"
  - id: api
    dir: ./api
    start: echo api up
    dependsOn: [db]
    readyDelay: 50
    autostart: true
  - id: web
    name: Web
    start: echo web up
    dependsOn: [api]
    color: cyan
    logs: true
""",
    )

    monkeypatch.chdir(root)
    return DprProject(root=root, config_path=config_path, logs_dir=logs_dir)


async def wait_for(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Poll ``predicate`` until it holds, failing after ``timeout`` seconds."""
    with anyio.fail_after(timeout):
        while not predicate():
            await anyio.sleep(0.001)
