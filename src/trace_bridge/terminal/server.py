"""Process runner for the terminal server."""

import asyncio

from aiocoap import Context

from trace_bridge.coap.options import build_option_table
from trace_bridge.config.settings import BridgeConfig, DownstreamProtocol, ReportTarget
from trace_bridge.runtime import build_cpu_monitor, uvicorn_server
from trace_bridge.telemetry.events import LISTENER_STARTED, LISTENER_STOPPED
from trace_bridge.telemetry.logger import get_logger
from trace_bridge.telemetry.reporter import CoapSpanReporter, HttpSpanReporter, SpanReporter
from trace_bridge.terminal.app import build_terminal_site, create_terminal_app

log = get_logger(__name__)


def build_terminal_reporter(settings: BridgeConfig) -> SpanReporter:
    """Span sink of the terminal server.

    Reports go straight to the tracing backend by default. With the
    ``gateway`` target they go through the gateway's span relay, using the
    downstream protocol.
    """
    if settings.terminal_report_target is ReportTarget.BACKEND:
        return HttpSpanReporter(settings.tracing_backend_url)
    if settings.downstream_protocol is DownstreamProtocol.COAP:
        return CoapSpanReporter(settings.gateway_host, settings.gateway_span_port)
    return HttpSpanReporter(f"http://{settings.gateway_host}:{settings.gateway_span_port}/span")


async def run_terminal(settings: BridgeConfig) -> None:
    """Run the terminal server for the configured protocol until interrupted.

    Args:
        settings: Validated configuration.
    """
    reporter = build_terminal_reporter(settings)
    cpu_monitor = build_cpu_monitor(settings, "IoT-Server")
    coap_server: Context | None = None

    if isinstance(reporter, CoapSpanReporter):
        await reporter.start()
    try:
        log.info(
            LISTENER_STARTED,
            role="terminal",
            protocol=settings.downstream_protocol.value,
            port=settings.server_port,
            report_target=settings.terminal_report_target.value,
        )
        if cpu_monitor:
            cpu_monitor.start()

        if settings.downstream_protocol is DownstreamProtocol.COAP:
            site = build_terminal_site(
                build_option_table(settings),
                reporter,
                settings.terminal_path_list,
                operation_name=settings.terminal_operation_name,
                payload=settings.terminal_payload,
            )
            coap_server = await Context.create_server_context(
                site, bind=(settings.listen_host, settings.server_port)
            )
            await asyncio.Event().wait()
        else:
            app = create_terminal_app(
                reporter,
                operation_name=settings.terminal_operation_name,
                payload=settings.terminal_payload,
            )
            await uvicorn_server(app, settings.listen_host, settings.server_port).serve()
    finally:
        if cpu_monitor:
            await cpu_monitor.stop()
        if coap_server is not None:
            await coap_server.shutdown()
        await reporter.aclose()
        log.info(LISTENER_STOPPED, role="terminal")
