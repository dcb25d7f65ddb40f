"""
cachestack CLI
Inspect and manipulate a configured cache stack from the shell.
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Optional

import click
from rich.console import Console
from rich.table import Table

from cachestack.config import settings
from cachestack.exceptions import CacheError
from cachestack.factory import create_cache_service
from cachestack.logging_config import configure_logging
from cachestack.service import CacheService

console = Console()


def load_service(config_path: Optional[str]) -> CacheService:
    """Create a service from a JSON config file, or from the environment."""
    if config_path is None:
        return create_cache_service()
    data = json.loads(Path(config_path).read_text(encoding="utf-8"))
    return create_cache_service(data)


def run(ctx: click.Context, operation: Any) -> Any:
    """Run an async operation against the service and close it afterwards."""
    service: CacheService = ctx.obj["service"]

    async def runner():
        try:
            return await operation(service)
        finally:
            await service.close()

    return asyncio.run(runner())


@click.group()
@click.option("--config", "-c", "config_path", type=click.Path(exists=True, dir_okay=False),
              help="JSON file with namespace/encoder/layers")
@click.option("--namespace", "-n", help="Override the configured namespace")
@click.option("--log-level", default=None, help="Logging level (default from CACHESTACK_LOG_LEVEL)")
@click.pass_context
def cli(ctx, config_path: Optional[str], namespace: Optional[str], log_level: Optional[str]):
    """cachestack - multi-tier cache inspection tool."""
    configure_logging(log_level or settings.log_level)
    ctx.ensure_object(dict)
    try:
        service = load_service(config_path)
    except (CacheError, json.JSONDecodeError) as e:
        console.print(f"❌ [red]Invalid configuration: {e}[/red]")
        sys.exit(2)
    if namespace is not None:
        service.set_namespace(namespace)
    ctx.obj["service"] = service


@cli.command()
@click.pass_context
def layers(ctx):
    """Show the layer stack."""
    service: CacheService = ctx.obj["service"]

    table = Table(title=f"Layer stack (namespace '{service.namespace}', encoder {service.encoder.name})")
    table.add_column("#", style="dim", width=4)
    table.add_column("Layer", style="cyan")
    table.add_column("Negative caching", justify="center")

    for level, layer in enumerate(service.layer_stack):
        table.add_row(
            str(level),
            layer.name,
            "[green]yes[/green]" if layer.supports_negative_caching() else "no",
        )

    console.print(table)


@cli.command()
@click.argument("key")
@click.pass_context
def get(ctx, key: str):
    """Get a value and print it as JSON."""

    async def lookup(service: CacheService) -> tuple[Any, bool]:
        # Before get, which may write a miss marker; a stored null also decodes to None
        if not await service.contains(key):
            return None, False
        return await service.get(key), True

    value, present = run(ctx, lookup)
    if not present:
        console.print(f"[yellow]{key}: not found[/yellow]")
        sys.exit(1)
    console.print(json.dumps(value, indent=2, default=str), markup=False, highlight=False)


@cli.command("set")
@click.argument("key")
@click.argument("value")
@click.option("--json", "as_json", is_flag=True, help="Parse VALUE as JSON")
@click.pass_context
def set_(ctx, key: str, value: str, as_json: bool):
    """Store a value in every layer."""
    try:
        parsed = json.loads(value) if as_json else value
    except json.JSONDecodeError as e:
        console.print(f"❌ [red]VALUE is not valid JSON: {e}[/red]")
        sys.exit(2)

    if run(ctx, lambda service: service.set(key, parsed)):
        console.print(f"✅ [green]Stored {key}[/green]")
    else:
        console.print(f"❌ [red]Authoritative layer rejected {key}[/red]")
        sys.exit(1)


@cli.command()
@click.argument("key")
@click.pass_context
def contains(ctx, key: str):
    """Exit 0 if any layer has KEY, 1 otherwise."""
    if run(ctx, lambda service: service.contains(key)):
        console.print(f"[green]{key}: present[/green]")
    else:
        console.print(f"[yellow]{key}: absent[/yellow]")
        sys.exit(1)


@cli.command()
@click.argument("keys", nargs=-1, required=True)
@click.pass_context
def delete(ctx, keys: tuple[str, ...]):
    """Delete KEYS from every layer."""
    run(ctx, lambda service: service.delete_multi(list(keys)))
    console.print(f"✅ [green]Deleted {len(keys)} key(s)[/green]")


@cli.command()
@click.confirmation_option(prompt="Flush the namespace from every layer?")
@click.pass_context
def flush(ctx):
    """Clear the namespace from every layer."""
    run(ctx, lambda service: service.flush())
    console.print("✅ [green]Flushed[/green]")


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def health(ctx, as_json: bool):
    """Show per-layer health."""
    report = run(ctx, lambda service: service.health_check())

    if as_json:
        console.print(json.dumps(report, indent=2, default=str), markup=False, highlight=False)
        return

    table = Table(title=f"Cache health (namespace '{report['namespace']}')")
    table.add_column("#", style="dim", width=4)
    table.add_column("Layer", style="cyan")
    table.add_column("Details")

    for level, layer in enumerate(report["layers"]):
        details = ", ".join(f"{k}={v}" for k, v in layer.items() if k != "layer")
        table.add_row(str(level), layer["layer"], details)

    console.print(table)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
