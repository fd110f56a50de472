"""Command-line entry point: ``trace-bridge gateway|terminal|show-config``."""

from __future__ import annotations

import asyncio
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from trace_bridge.config.settings import BridgeConfig, DownstreamProtocol, load_bridge_config
from trace_bridge.errors import ConfigError
from trace_bridge.telemetry.logger import configure_logging

console = Console(stderr=True)
app = typer.Typer(help="W3C trace-context propagation testbed (HTTP edge ↔ CoAP devices)")

ProtocolOption = typer.Option(
    None, "--protocol", "-p", help="Downstream protocol (overrides BRIDGE_DOWNSTREAM_PROTOCOL)"
)
LogLevelOption = typer.Option(
    None, "--log-level", help="Console log level (overrides APP_LOG_LEVEL)"
)


def _load(protocol: DownstreamProtocol | None, log_level: str | None) -> BridgeConfig:
    """Load configuration or exit with status 1 before anything is bound."""
    try:
        settings = load_bridge_config(downstream_protocol=protocol, log_level=log_level)
    except ConfigError as e:
        console.print("[red]Configuration errors:[/red]")
        for error in str(e).split("; "):
            console.print(f"  - {error}")
        raise typer.Exit(1) from None
    configure_logging(settings.log_level, settings.log_dir)
    return settings


@app.command()
def gateway(
    protocol: Optional[DownstreamProtocol] = ProtocolOption,
    log_level: Optional[str] = LogLevelOption,
) -> None:
    """Run the gateway: HTTP ingress, downstream bridge and span relay."""
    from trace_bridge.gateway.server import run_gateway  # noqa: PLC0415

    settings = _load(protocol, log_level)
    try:
        asyncio.run(run_gateway(settings))
    except KeyboardInterrupt:
        console.print("[yellow]Gateway stopped[/yellow]")


@app.command()
def terminal(
    protocol: Optional[DownstreamProtocol] = ProtocolOption,
    log_level: Optional[str] = LogLevelOption,
) -> None:
    """Run the terminal server for the configured downstream protocol."""
    from trace_bridge.terminal.server import run_terminal  # noqa: PLC0415

    settings = _load(protocol, log_level)
    try:
        asyncio.run(run_terminal(settings))
    except KeyboardInterrupt:
        console.print("[yellow]Terminal server stopped[/yellow]")


@app.command("show-config")
def show_config(protocol: Optional[DownstreamProtocol] = ProtocolOption) -> None:
    """Validate the configuration and print the resolved network targets."""
    settings = _load(protocol, None)

    table = Table(title="trace-bridge configuration")
    table.add_column("Setting")
    table.add_column("Value")
    table.add_row("environment", settings.environment.value)
    downstream = f"{settings.server_host}:{settings.server_port}"
    table.add_row("downstream", f"{settings.downstream_protocol.value}://{downstream}")
    table.add_row("tracing backend", settings.tracing_backend_url)
    table.add_row("gateway http", f"{settings.listen_host}:{settings.gateway_http_port}")
    table.add_row("gateway span relay", f"{settings.gateway_host}:{settings.gateway_span_port}")
    table.add_row("traceparent option", str(settings.traceparent_option))
    table.add_row("tracestate option", str(settings.tracestate_option))
    table.add_row("terminal report target", settings.terminal_report_target.value)
    table.add_row("downstream timeout", f"{settings.downstream_timeout_seconds}s")
    Console().print(table)


if __name__ == "__main__":
    app()
