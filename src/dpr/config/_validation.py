# pyright: reportAny=false, reportExplicitAny=false
"""Configuration validation.

Schema errors come from Pydantic; rules that span several services
(service count, unique ids, dependency references) are checked here.
Every issue is reported as ``path: message``, where ``path`` is the
dotted location in the config file (e.g. ``services.1.dependsOn``).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from dpr.exceptions import ConfigValidationError

from ._models import MAX_SERVICES, MIN_SERVICES, RawConfig

if TYPE_CHECKING:
    from pydantic_core import ErrorDetails


def _format_issue(path: str, message: str) -> str:
    return f"{path}: {message}" if path else message


def _pydantic_error_to_issue(error: ErrorDetails) -> str:
    """Convert a Pydantic error dict to a ``path: message`` string."""
    loc = error.get("loc", ())
    key = ".".join(str(part) for part in loc)
    return _format_issue(key, str(error.get("msg", "Validation error")))


def check_services(config: RawConfig) -> list[str]:
    """Check the rules that span several services.

    Args:
        config: A config that passed schema validation.

    Returns:
        Issues found, in file order. Empty list indicates a valid config.
    """
    issues: list[str] = []
    services = config.services

    if len(services) < MIN_SERVICES:
        issues.append(
            _format_issue("services", f"At least {MIN_SERVICES} services are required")
        )
    if len(services) > MAX_SERVICES:
        issues.append(
            _format_issue("services", f"Maximum {MAX_SERVICES} services are allowed")
        )

    ids = [service.id for service in services]
    duplicates = list(dict.fromkeys(i for n, i in enumerate(ids) if i in ids[:n]))
    if duplicates:
        issues.append(
            _format_issue("services", f"Duplicate service IDs: {', '.join(duplicates)}")
        )

    known = set(ids)
    for index, service in enumerate(services):
        path = f"services.{index}.dependsOn"
        for dep in service.depends_on:
            if dep not in known:
                issues.append(
                    _format_issue(
                        path,
                        f'Service "{service.id}" depends on unknown service "{dep}"',
                    )
                )
            if dep == service.id:
                issues.append(
                    _format_issue(path, f'Service "{service.id}" cannot depend on itself')
                )

    return issues


def parse_config(data: Any) -> RawConfig:
    """Validate parsed YAML data.

    Args:
        data: The document returned by the YAML parser.

    Returns:
        The validated raw configuration.

    Raises:
        ConfigValidationError: With every issue found.
    """
    try:
        config = RawConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigValidationError(
            [_pydantic_error_to_issue(err) for err in e.errors()]
        ) from e

    issues = check_services(config)
    if issues:
        raise ConfigValidationError(issues)
    return config
