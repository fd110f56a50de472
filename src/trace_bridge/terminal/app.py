"""Terminal server: the last hop of a bridged request.

It re-derives its own span from the inbound trace context, answers with a
static payload, completes the span and reports it if sampled. It never
forwards. The HTTP variant reads the ``traceparent`` header; the CoAP variant
reads the registered private options.
"""

from aiocoap import Message, resource
from aiocoap.numbers.codes import Code
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from starlette.background import BackgroundTask

from trace_bridge.coap.options import CoapOptionTable
from trace_bridge.telemetry.events import REQUEST_RECEIVED
from trace_bridge.telemetry.logger import get_logger
from trace_bridge.telemetry.reporter import (
    SpanReporter,
    complete_and_report,
    report_if_sampled,
)
from trace_bridge.telemetry.span import Span
from trace_bridge.telemetry.trace import TRACEPARENT_HEADER, TRACESTATE_HEADER

log = get_logger(__name__)

TERMINAL_OPERATION = "IoT-Server-A"
DEFAULT_PAYLOAD = "Hello http client!"
# Matches the gateway's BRIDGED_METHODS.
SERVED_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]


def create_terminal_app(
    reporter: SpanReporter,
    operation_name: str = TERMINAL_OPERATION,
    payload: str = DEFAULT_PAYLOAD,
) -> FastAPI:
    """Build the HTTP terminal server.

    Args:
        reporter: Sink for completed spans.
        operation_name: Operation name of the spans this server creates.
        payload: Static response body.

    Returns:
        The FastAPI application answering every bridged method on any path.
    """
    app = FastAPI(
        title="Trace Bridge Terminal Server",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    @app.api_route("/{path:path}", methods=SERVED_METHODS)
    async def serve(request: Request) -> PlainTextResponse:
        span = Span.create(operation_name, request.headers.get(TRACEPARENT_HEADER))
        tracestate = request.headers.get(TRACESTATE_HEADER)
        if tracestate:
            span.add_tag(TRACESTATE_HEADER, tracestate)
        log.debug(
            REQUEST_RECEIVED,
            method=request.method,
            path=request.url.path,
            trace_id=span.trace_id,
            parent_span_id=span.parent_span_id,
        )
        return PlainTextResponse(
            payload, background=BackgroundTask(complete_and_report, reporter, span)
        )

    return app


class TraceEchoResource(resource.Resource):
    """CoAP terminal resource answering with a static payload.

    GET, POST, PUT and DELETE are all served the same way, so a bridged
    request keeps its method on the CoAP hop.

    Args:
        option_table: Trace option bindings shared with the gateway.
        reporter: Sink for completed spans.
        operation_name: Operation name of the spans this resource creates.
        payload: Static response body.
    """

    def __init__(  # noqa: D107
        self,
        option_table: CoapOptionTable,
        reporter: SpanReporter,
        operation_name: str = TERMINAL_OPERATION,
        payload: str = DEFAULT_PAYLOAD,
    ) -> None:
        super().__init__()
        self.option_table = option_table
        self.reporter = reporter
        self.operation_name = operation_name
        self.payload = payload.encode("utf-8")

    def span_for(self, request: Message) -> Span:
        """Derive this hop's span from the request's trace options."""
        headers = self.option_table.extract(request)
        span = Span.create(self.operation_name, headers.get(TRACEPARENT_HEADER))
        if TRACESTATE_HEADER in headers:
            span.add_tag(TRACESTATE_HEADER, headers[TRACESTATE_HEADER])
        return span

    async def render_get(self, request: Message) -> Message:
        return self._echo(request)

    async def render_post(self, request: Message) -> Message:
        return self._echo(request)

    async def render_put(self, request: Message) -> Message:
        return self._echo(request)

    async def render_delete(self, request: Message) -> Message:
        return self._echo(request)

    def _echo(self, request: Message) -> Message:
        span = self.span_for(request)
        log.debug(
            REQUEST_RECEIVED,
            method=str(request.code),
            path="/" + "/".join(request.opt.uri_path),
            trace_id=span.trace_id,
            parent_span_id=span.parent_span_id,
        )
        response = Message(code=Code.CONTENT, payload=self.payload)
        span.complete()
        # The send is detached, so the response goes out without waiting on it.
        report_if_sampled(self.reporter, span)
        return response


def build_terminal_site(
    option_table: CoapOptionTable,
    reporter: SpanReporter,
    paths: list[str],
    operation_name: str = TERMINAL_OPERATION,
    payload: str = DEFAULT_PAYLOAD,
) -> resource.Site:
    """CoAP site serving one TraceEchoResource at every configured path."""
    echo = TraceEchoResource(option_table, reporter, operation_name, payload)
    site = resource.Site()
    for path in paths:
        segments = [s for s in path.split("/") if s]
        site.add_resource(segments, echo)
    return site
