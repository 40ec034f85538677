"""``loopauth config`` -- inspect and edit the stored listener defaults.

The file behind these commands is :class:`~loopauth.models.GlobalConfig`
serialised as JSON in :func:`~loopauth.config.get_config_dir`. Keys are the
model's field names; ``output.format`` reaches into the nested
:class:`~loopauth.models.OutputConfig`.
"""

from __future__ import annotations

from typing import Any, Optional

import typer
from pydantic import BaseModel, ValidationError

from loopauth.exceptions import InvalidUsageError, LoopauthError
from loopauth.models import GlobalConfig
from loopauth.output import error, format_response, info, success

config_app = typer.Typer(no_args_is_help=True)

_CLEAR = ("none", "null", "")


def _field_path(key: str) -> list[str]:
    """Split *key* on dots, checking each part against the config models."""
    model: type[BaseModel] = GlobalConfig
    parts = key.split(".")
    for depth, part in enumerate(parts):
        field = model.model_fields.get(part)
        if field is None:
            raise InvalidUsageError(f"Unknown config key: {key}")
        nested = isinstance(field.annotation, type) and issubclass(field.annotation, BaseModel)
        last = depth == len(parts) - 1
        if nested == last:
            # a section named on its own, or a plain field with more parts after it
            raise InvalidUsageError(f"Unknown config key: {key}")
        if nested:
            model = field.annotation
    return parts


def _with_value(config: GlobalConfig, path: list[str], raw: str) -> GlobalConfig:
    data = config.model_dump()
    section = data
    for part in path[:-1]:
        section = section[part]
    value: Optional[Any] = None if raw.lower() in _CLEAR else raw
    section[path[-1]] = value
    try:
        return GlobalConfig.model_validate(data)
    except ValidationError as exc:
        problem = exc.errors()[0]["msg"]
        raise InvalidUsageError(f"Invalid value for {'.'.join(path)}: {problem}") from exc


@config_app.command("show")
def config_show() -> None:
    """Print the stored defaults.

    Example::

        loopauth --json config show
    """
    from loopauth.config import get_config_dir, load_global_config

    try:
        config = load_global_config()
    except LoopauthError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    info(f"Config directory: {get_config_dir()}")
    format_response(config.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Field name, e.g. 'port', 'open_browser' or 'output.format'."),
    value: str = typer.Argument(help="New value; 'none' clears port or timeout."),
) -> None:
    """Change one stored default.

    The value is coerced and checked by the config model before anything is
    written, so ``loopauth config set port 0`` leaves the file untouched.

    Example::

        loopauth config set port 8765
        loopauth config set open_browser false
    """
    from loopauth.config import load_global_config, save_global_config

    try:
        path = _field_path(key)
        updated = _with_value(load_global_config(), path, value)
        save_global_config(updated)
    except LoopauthError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    section: Any = updated
    for part in path:
        section = getattr(section, part)
    success(f"Set {key} = {section}")


@config_app.command("reset")
def config_reset(ctx: typer.Context) -> None:
    """Forget every stored default. Asks first unless ``--force`` is given."""
    from loopauth.config import save_global_config

    if not (ctx.obj or {}).get("force", False):
        if not typer.confirm("Reset all config to defaults?"):
            info("Cancelled.")
            raise typer.Exit()
    save_global_config(GlobalConfig())
    success("Configuration reset to defaults.")
