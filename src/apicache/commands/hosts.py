"""Host commands -- register API hosts whose responses may be cached.

Registrations are persisted in the ``hosts`` section of the global config
and loaded into a :class:`~apicache.registry.HostRegistry` whenever an
engine is built.
"""

from __future__ import annotations

import typer

from apicache.config import load_global_config, save_global_config
from apicache.exceptions import RegistrationError
from apicache.output import error, info, print_table, success, suggest
from apicache.registry import HostRegistry


hosts_app = typer.Typer(no_args_is_help=True)


@hosts_app.command("list")
def hosts_list() -> None:
    """List registered hosts."""
    config = load_global_config()
    if not config.hosts:
        info("No hosts registered.")
        suggest("apicache hosts add <host> --expire-in N --key-name NAME")
        return
    rows = [
        [policy.host, str(policy.expire_in), policy.key_name]
        for policy in HostRegistry(config.hosts.values()).policies()
    ]
    print_table(["host", "expire_in", "key_name"], rows, title="Registered hosts")


@hosts_app.command("add")
def hosts_add(
    host: str = typer.Argument(help="Host name, or a base URL to take the host from."),
    expire_in: int = typer.Option(..., "--expire-in", help="Freshness window in seconds."),
    key_name: str = typer.Option(..., "--key-name", help="Label used in logs and callbacks."),
) -> None:
    """Register HOST for caching.

    Example::

        apicache hosts add api.twitter.com --expire-in 600 --key-name api-cache:twitter
    """
    registry = HostRegistry()
    options = {"expire_in": expire_in, "key_name": key_name}
    try:
        if "://" in host:
            policy = registry.register_base_url(host, options)
        else:
            policy = registry.register(host, options)
    except RegistrationError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    config = load_global_config()
    config.hosts[policy.host] = policy
    save_global_config(config)
    success(f"Registered {policy.host}")


@hosts_app.command("remove")
def hosts_remove(host: str = typer.Argument(help="Host name to unregister.")) -> None:
    """Unregister HOST."""
    config = load_global_config()
    if config.hosts.pop(host.lower(), None) is None:
        error(f"Host not registered: {host}")
        raise typer.Exit(code=2)
    save_global_config(config)
    success(f"Removed {host.lower()}")
