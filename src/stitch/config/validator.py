"""Conversion of pydantic validation failures into ConfigError."""

from __future__ import annotations

from collections.abc import Sequence

from pydantic import ValidationError as PydanticValidationError

from stitch.lib.errors import ConfigError


def field_location(prefix: str, loc: Sequence[int | str]) -> str:
    """Render a pydantic error location as a dotted config path.

    List indexes are rendered in brackets, so ``("services", 0, "title")``
    becomes ``services[0].title``.
    """
    path = prefix
    for part in loc:
        if isinstance(part, int):
            path = f"{path}[{part}]"
        else:
            path = f"{path}.{part}" if path else part
    return path or "config"


def config_error_from_validation(
    exc: PydanticValidationError, prefix: str = ""
) -> ConfigError:
    """Build a ConfigError that names the first failing field.

    Every failure is listed in the message on its own line as
    ``path: message``.

    Args:
        exc: The pydantic validation error
        prefix: Config path of the validated document (e.g. ``services[2]``)
    """
    problems = [
        (field_location(prefix, error["loc"]), error["msg"]) for error in exc.errors()
    ]
    if not problems:
        return ConfigError(prefix or "config", "Validation failed")

    message = "\n".join(f"{path}: {msg}" for path, msg in problems)
    return ConfigError(problems[0][0], message)
