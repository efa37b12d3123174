"""dpr validate command - checks a config file without running anything."""

from dpr.config import load_config
from dpr.exceptions import (
    CircularDependencyError,
    ConfigLoadError,
    ConfigNotFoundError,
    ConfigValidationError,
)

from ._shared import ConfigOption, ExitCode, exit_with_error


def _print_issues(issues: list[str] | tuple[str, ...]) -> None:
    print("Config is invalid:")
    for issue in issues:
        print(f"  - {issue}")


def validate(*, config: ConfigOption = None) -> None:
    """Validate the config file.

    Prints every issue found and exits with code 2 when the file is
    invalid, or 1 when it cannot be found or parsed.
    """
    try:
        loaded = load_config(config)
    except (ConfigNotFoundError, ConfigLoadError) as e:
        exit_with_error(str(e), ExitCode.LOAD_ERROR)
    except ConfigValidationError as e:
        _print_issues(e.issues)
        raise SystemExit(ExitCode.VALIDATION_ERROR) from e
    except CircularDependencyError as e:
        _print_issues([str(e)])
        raise SystemExit(ExitCode.VALIDATION_ERROR) from e

    print(f"Config is valid: {len(loaded.services)} services in {loaded.path}")
