"""Config commands -- view and modify global configuration.

Provides the ``apicache config`` sub-command group for reading, updating,
and resetting the user's global configuration file
(:class:`~apicache.models.GlobalConfig`). Settings are persisted in the
apicache config directory and control the caching switch, the upstream
timeout, and the store layout.
"""

from __future__ import annotations

import typer

from apicache.output import error, format_response, info, success


config_app = typer.Typer(no_args_is_help=True)

_OPTIONAL_STR_KEYS = {"store.root_dir", "backup.domain"}


@config_app.command("show")
def config_show() -> None:
    """Show current configuration.

    Prints the config directory path to stderr, then the persisted
    configuration. Environment overrides are not applied here.

    Example::

        apicache config show --json
    """
    from apicache.config import get_config_dir, load_global_config

    config = load_global_config()
    info(f"Config directory: {get_config_dir()}")
    format_response(config.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g., 'caching.enabled')."
    ),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a configuration value.

    Uses dot notation for nested keys. The value is coerced to match the
    existing field's type (bool, int, float, or str) and the result is
    validated against :class:`~apicache.models.GlobalConfig` before saving.
    Hosts are managed with ``apicache hosts`` instead.

    Raises:
        typer.Exit: With code 2 if the key path is invalid, the value
            cannot be coerced, or Pydantic validation fails.

    Example::

        apicache config set caching.enabled true
        apicache config set caching.timeout 2.5
        apicache config set store.ttl_seconds 600
    """
    from apicache.config import load_global_config, save_global_config
    from apicache.models import GlobalConfig

    config = load_global_config()
    data = config.model_dump(mode="json")

    keys = key.split(".")
    if keys[0] == "hosts":
        error("Use 'apicache hosts add' to register hosts.")
        raise typer.Exit(code=2)

    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=2)
        target = target[k]

    final_key = keys[-1]
    if final_key not in target or isinstance(target[final_key], dict):
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=2)

    current = target[final_key]
    coerced: object
    if isinstance(current, bool):
        coerced = value.lower() in ("true", "1", "yes", "on")
    elif isinstance(current, (int, float)):
        kind = type(current)
        try:
            coerced = kind(value)
        except ValueError:
            error(f"Expected {kind.__name__} for {key}, got: {value}")
            raise typer.Exit(code=2) from None
    elif key in _OPTIONAL_STR_KEYS and value.lower() in ("", "none", "null"):
        coerced = None
    else:
        coerced = value

    target[final_key] = coerced

    try:
        new_config = GlobalConfig.model_validate(data)
    except Exception as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None

    save_global_config(new_config)
    success(f"Set {key} = {coerced}")


@config_app.command("reset")
def config_reset(ctx: typer.Context) -> None:
    """Reset configuration to defaults.

    Registered hosts are removed as well. Asks for confirmation unless
    ``--force`` is active.

    Example::

        apicache --force config reset
    """
    from apicache.config import save_global_config
    from apicache.models import GlobalConfig

    force = ctx.obj.get("force", False) if ctx.obj else False
    if not force:
        confirmed = typer.confirm("Reset all config to defaults?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    save_global_config(GlobalConfig())
    success("Configuration reset to defaults.")
