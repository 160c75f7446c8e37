"""healthdeck CLI entry point."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

if TYPE_CHECKING:
    from healthdeck.config.models import HealthdeckConfig
    from healthdeck.registry.models import HealthCheckRun, ServiceStatus

app = typer.Typer(
    name="healthdeck",
    help="healthdeck: service registry admin and health checks",
    no_args_is_help=True,
)
console = Console()

STATE_STYLES = {
    "pending": ("dim", "Waiting..."),
    "testing": ("blue", "Testing..."),
    "up": ("green", "Online"),
    "down": ("red", "Offline"),
    "error": ("red", "Error"),
}


@app.callback()
def main_options(
    log_level: str = typer.Option("WARNING", "--log-level", help="Python logging level"),
) -> None:
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load(path: Path | None = None) -> HealthdeckConfig:
    import yaml

    from healthdeck.config.loader import load_config

    try:
        return load_config(path=path)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(1)


def _state_label(status: ServiceStatus) -> str:
    style, text = STATE_STYLES[status.state.value]
    return f"[{style}]{text}[/{style}]"


def _print_progress(index: int, status: ServiceStatus) -> None:
    name = escape(status.service.name)
    if status.state.value == "testing":
        console.print(f"[blue]…[/blue] Testing {name} ({status.service.url})")
        return
    icon = "[green]✓[/green]" if status.state.value == "up" else "[red]✗[/red]"
    detail = f" [red]{escape(status.error_message)}[/red]" if status.error_message else ""
    console.print(f"{icon} {name} {status.response_time_ms}ms{detail}")


def _results_table(run: HealthCheckRun) -> Table:
    table = Table(title="Service Health Check")
    table.add_column("Service", style="bold")
    table.add_column("URL")
    table.add_column("Status")
    table.add_column("Response")
    table.add_column("Error")
    for status in run.statuses:
        latency = f"{status.response_time_ms}ms" if status.response_time_ms is not None else "—"
        table.add_row(
            status.service.name,
            status.service.url,
            _state_label(status),
            latency,
            status.error_message or "",
        )
    return table


@app.command()
def check(
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only print the results table"),
) -> None:
    """Health-check every registered service, one at a time."""
    from healthdeck.events.emitter import create_cli_emitter
    from healthdeck.registry.client import RegistryClient
    from healthdeck.registry.errors import InvalidServiceError, RegistryError, RegistryUnavailableError
    from healthdeck.registry.orchestrator import HealthCheckOrchestrator

    config = _load()
    registry = RegistryClient.from_config(config.registry)
    emitter = create_cli_emitter(config)
    orchestrator = HealthCheckOrchestrator(config.probe, emitter=emitter)

    async def _run() -> HealthCheckRun:
        services = await registry.list_services()
        try:
            return await orchestrator.run(services, on_update=None if quiet else _print_progress)
        finally:
            if emitter is not None:
                await emitter.drain()

    try:
        run = asyncio.run(_run())
    except (InvalidServiceError, RegistryError, RegistryUnavailableError) as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        console.print("[yellow]Health check cancelled.[/yellow]")
        raise typer.Exit(130)

    summary = run.summary()
    if summary.nothing_to_test:
        console.print("[yellow]No services to test[/yellow]")
        return

    console.print(_results_table(run))
    console.print(f"\n[bold]Service tests completed:[/bold] {summary.up} up, {summary.down} down")
    if summary.down:
        raise typer.Exit(1)


services_app = typer.Typer(name="services", help="Manage registered services")
app.add_typer(services_app)


@services_app.command("list")
def services_list() -> None:
    """List services known to the registry."""
    from healthdeck.registry.client import RegistryClient
    from healthdeck.registry.errors import RegistryError, RegistryUnavailableError

    config = _load()
    registry = RegistryClient.from_config(config.registry)
    try:
        services = asyncio.run(registry.list_services(skip_invalid=True))
    except (RegistryError, RegistryUnavailableError) as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(1)

    if not services:
        console.print("[dim]No services registered.[/dim]")
        return

    table = Table(title="Services")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="bold")
    table.add_column("URL")
    table.add_column("Metadata")
    table.add_column("Updated")
    for s in services:
        meta = ", ".join(f"{k}={v}" for k, v in s.metadata.items())
        updated = s.updated_at.strftime("%b %d, %Y %H:%M") if s.updated_at else "—"
        table.add_row(s.id, s.name, s.url, meta, updated)
    console.print(table)


@services_app.command("add")
def services_add(
    name: str = typer.Argument(help="Display name of the service"),
    url: str = typer.Argument(help="URL probed by health checks"),
    meta: Optional[list[str]] = typer.Option(None, "--meta", "-m", help="Metadata as key=value (repeatable)"),
) -> None:
    """Register a new service."""
    from healthdeck.registry.client import RegistryClient, build_metadata, parse_metadata_options
    from healthdeck.registry.errors import (
        MetadataValidationError,
        RegistryError,
        RegistryUnavailableError,
        ServiceValidationError,
    )

    try:
        metadata = build_metadata(parse_metadata_options(meta or []))
    except MetadataValidationError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(1)

    config = _load()
    registry = RegistryClient.from_config(config.registry)
    try:
        asyncio.run(registry.create_service(name, url, metadata))
    except ServiceValidationError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(1)
    except (RegistryError, RegistryUnavailableError) as exc:
        console.print(f"[red]Failed to create service: {escape(str(exc))}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] {name} has been added to your services.")


@services_app.command("remove")
def services_remove(
    service_id: str = typer.Argument(help="Registry ID of the service"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
) -> None:
    """Remove a service from the registry."""
    from healthdeck.registry.client import RegistryClient
    from healthdeck.registry.errors import RegistryError, RegistryUnavailableError

    config = _load()
    if not yes and not typer.confirm(f"Are you sure you want to delete {service_id!r}?"):
        raise typer.Exit(0)

    registry = RegistryClient.from_config(config.registry)
    try:
        asyncio.run(registry.delete_service(service_id))
    except (RegistryError, RegistryUnavailableError) as exc:
        console.print(f"[red]Failed to delete service: {escape(str(exc))}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Removed {service_id}")


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind host"),
    port: int = typer.Option(8000, help="Bind port"),
) -> None:
    """Start the healthdeck API server."""
    import uvicorn

    console.print(f"[bold]healthdeck[/bold] starting on http://{host}:{port}")
    uvicorn.run("healthdeck.api.app:app", host=host, port=port, reload=False)


config_app = typer.Typer(name="config", help="Configuration commands")
app.add_typer(config_app)


@config_app.command("validate")
def config_validate(
    path: Path | None = typer.Option(None, "--path", "-p", help="Path to .healthdeck.yaml"),
) -> None:
    """Validate configuration file."""
    import yaml

    from healthdeck.config.loader import load_config
    from healthdeck.events.emitter import EVENT_TYPES
    from healthdeck.registry.models import is_valid_url

    try:
        config = load_config(path=path)
        console.print("[green]✓[/green] YAML parses correctly")
        console.print("[green]✓[/green] Pydantic validation passes")
    except FileNotFoundError as exc:
        console.print(f"[red]✗ {escape(str(exc))}[/red]")
        raise typer.Exit(1)
    except yaml.YAMLError as exc:
        console.print(f"[red]✗ YAML parsing failed: {escape(str(exc))}[/red]")
        raise typer.Exit(1)
    except ValueError as exc:
        console.print("[green]✓[/green] YAML parses correctly")
        console.print(f"[red]✗ Pydantic validation failed: {escape(str(exc))}[/red]")
        raise typer.Exit(1)

    errors: list[str] = []
    warnings: list[str] = []

    if is_valid_url(config.registry.base_url):
        console.print("[green]✓[/green] Registry URL is valid")
    else:
        errors.append(f"Registry: invalid URL '{config.registry.base_url}'")

    if config.registry.api_key_env:
        import os

        if not os.environ.get(config.registry.api_key_env):
            warnings.append(f"Registry: ${config.registry.api_key_env} is not set")

    for i, wh in enumerate(config.webhooks):
        if not is_valid_url(wh.url):
            errors.append(f"Webhook {i}: invalid URL '{wh.url}'")
        for evt in wh.events:
            if evt != "*" and evt not in EVENT_TYPES:
                warnings.append(f"Webhook {i}: unrecognized event type '{evt}'")

    if errors:
        for err in errors:
            console.print(f"[red]✗ {err}[/red]")
        console.print(f"\n[red bold]{len(errors)} validation error(s) found.[/red bold]")
        raise typer.Exit(1)

    if config.webhooks:
        console.print(f"[green]✓[/green] {len(config.webhooks)} webhook(s) configured")
    for w in warnings:
        console.print(f"[yellow]! {w}[/yellow]")
    console.print("\n[green bold]Configuration is valid.[/green bold]")


@config_app.command("show")
def config_show(
    path: Path | None = typer.Option(None, "--path", "-p", help="Path to .healthdeck.yaml"),
) -> None:
    """Print resolved configuration."""
    config = _load(path)

    console.print(f"[bold]{config.healthdeck.name}[/bold] v{config.healthdeck.version}\n")

    console.print("[bold]Registry:[/bold]")
    console.print(f"  URL: {config.registry.base_url}")
    console.print(f"  Timeout: {config.registry.timeout}s")
    if config.registry.api_key_env:
        console.print(f"  API key from: ${config.registry.api_key_env}")

    console.print("\n[bold]Probe:[/bold]")
    console.print(f"  Timeout: {config.probe.timeout_ms}ms")
    console.print(f"  Pause between services: {config.probe.pacing_ms}ms")

    console.print("\n[bold]Webhooks:[/bold]")
    for wh in config.webhooks:
        console.print(f"  {wh.url} {escape('[' + ', '.join(wh.events) + ']')}")
    if not config.webhooks:
        console.print("  none")


def main() -> None:
    app()
