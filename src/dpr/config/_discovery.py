"""Config file discovery.

Without an explicit path, dpr looks for ``dpr.yaml`` and ``dpr.config.yaml``
in the working directory, then for ``config.yaml`` in the user config
directory.
"""

from pathlib import Path

import platformdirs

from dpr.exceptions import ConfigNotFoundError

CONFIG_FILE_NAMES: tuple[str, ...] = ("dpr.yaml", "dpr.config.yaml")


def get_user_config_path() -> Path:
    """Get the platform-specific user config file path.

    - Linux: ``~/.config/dpr/config.yaml``
    - macOS: ``~/Library/Application Support/dpr/config.yaml``

    The path is returned regardless of whether the file exists.
    """
    return platformdirs.user_config_path("dpr") / "config.yaml"


def get_search_paths(cwd: Path | None = None) -> list[Path]:
    """Return the config file candidates in search order.

    Args:
        cwd: Directory to search first. Defaults to the working directory.
    """
    base = (cwd or Path.cwd()).resolve()
    return [base / name for name in CONFIG_FILE_NAMES] + [get_user_config_path()]


def _file_exists(path: Path) -> bool:
    try:
        return path.is_file()
    except OSError:
        return False


def resolve_config_path(path: str | Path | None = None, *, cwd: Path | None = None) -> Path:
    """Find the config file to load.

    Args:
        path: Explicit config file path. ``~`` is expanded and relative
            paths are resolved against ``cwd``.
        cwd: Directory used for relative paths and the search.

    Returns:
        Absolute path to an existing config file.

    Raises:
        ConfigNotFoundError: If the explicit path does not exist, or no
            candidate in the search order exists.
    """
    base = (cwd or Path.cwd()).resolve()

    if path is not None:
        resolved = (base / Path(path).expanduser()).resolve()
        if not _file_exists(resolved):
            raise ConfigNotFoundError([resolved])
        return resolved

    searched = get_search_paths(base)
    for candidate in searched:
        if _file_exists(candidate):
            return candidate

    raise ConfigNotFoundError(searched)
