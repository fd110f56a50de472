"""Process runner for the gateway.

Binds the HTTP ingress and the span relay once at startup and serves both
from one event loop until interrupted.
"""

import asyncio

from aiocoap import Context

from trace_bridge.coap.options import build_option_table
from trace_bridge.config.settings import BridgeConfig, DownstreamProtocol
from trace_bridge.gateway.app import create_gateway_app
from trace_bridge.gateway.downstream import build_forwarder
from trace_bridge.gateway.relay import build_relay_site, create_relay_app
from trace_bridge.runtime import build_cpu_monitor, uvicorn_server
from trace_bridge.telemetry.events import LISTENER_STARTED, LISTENER_STOPPED
from trace_bridge.telemetry.logger import get_logger
from trace_bridge.telemetry.reporter import HttpSpanReporter

log = get_logger(__name__)


async def run_gateway(settings: BridgeConfig) -> None:
    """Run the gateway until the servers exit.

    Args:
        settings: Validated configuration.
    """
    option_table = build_option_table(settings)
    forwarder = build_forwarder(settings, option_table)
    reporter = HttpSpanReporter(settings.tracing_backend_url)
    cpu_monitor = build_cpu_monitor(settings, "Gateway")

    ingress = uvicorn_server(
        create_gateway_app(forwarder, reporter), settings.listen_host, settings.gateway_http_port
    )
    coap_relay: Context | None = None

    await forwarder.start()
    try:
        if settings.downstream_protocol is DownstreamProtocol.COAP:
            coap_relay = await Context.create_server_context(
                build_relay_site(reporter),
                bind=(settings.listen_host, settings.gateway_span_port),
            )
            servers = [ingress]
        else:
            servers = [
                ingress,
                uvicorn_server(
                    create_relay_app(reporter), settings.listen_host, settings.gateway_span_port
                ),
            ]

        log.info(
            LISTENER_STARTED,
            role="gateway",
            http_port=settings.gateway_http_port,
            span_relay_port=settings.gateway_span_port,
            span_relay_protocol=settings.downstream_protocol.value,
            downstream=f"{settings.server_host}:{settings.server_port}",
            option_table=repr(option_table),
        )
        if cpu_monitor:
            cpu_monitor.start()

        await asyncio.gather(*(server.serve() for server in servers))
    finally:
        if cpu_monitor:
            await cpu_monitor.stop()
        if coap_relay is not None:
            await coap_relay.shutdown()
        await forwarder.aclose()
        await reporter.aclose()
        log.info(LISTENER_STOPPED, role="gateway")
