"""HTTP ingress of the gateway.

Every request, whatever its method or path, is bridged to the terminal
server:

1. a "Gateway-HTTP" span is derived from the inbound traceparent;
2. the request is forwarded with that span as the next hop's parent and the
   inbound tracestate copied verbatim;
3. the downstream body is relayed with status 200;
4. after the response has been sent, the span is completed and, if sampled,
   handed to the span reporter.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.background import BackgroundTask

from trace_bridge.errors import DownstreamError
from trace_bridge.gateway.downstream import DownstreamForwarder, DownstreamRequest
from trace_bridge.telemetry.events import DOWNSTREAM_FAILED, REPLY_READY, REQUEST_RECEIVED
from trace_bridge.telemetry.logger import get_logger
from trace_bridge.telemetry.reporter import SpanReporter, complete_and_report
from trace_bridge.telemetry.span import Span
from trace_bridge.telemetry.trace import TRACEPARENT_HEADER, TRACESTATE_HEADER

log = get_logger(__name__)

GATEWAY_OPERATION = "Gateway-HTTP"

BRIDGED_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]


def _request_path(request: Request) -> str:
    path = request.url.path or "/"
    if request.url.query:
        path = f"{path}?{request.url.query}"
    return path


def create_gateway_app(
    forwarder: DownstreamForwarder,
    reporter: SpanReporter,
    operation_name: str = GATEWAY_OPERATION,
) -> FastAPI:
    """Build the gateway's ingress application.

    The forwarder and reporter are owned by the caller, which starts and
    closes them around the server's lifetime.

    Args:
        forwarder: Outbound transport towards the terminal server.
        reporter: Sink for completed gateway spans.
        operation_name: Operation name of gateway spans.

    Returns:
        The FastAPI application.
    """
    app = FastAPI(
        title="Trace Bridge Gateway",
        description="Bridges HTTP requests to the device tier, propagating W3C trace context",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    @app.exception_handler(DownstreamError)
    async def downstream_error_handler(request: Request, exc: DownstreamError) -> JSONResponse:
        log.error(
            DOWNSTREAM_FAILED,
            target=exc.target,
            reason=exc.reason,
            detail=exc.detail,
            path=request.url.path,
        )
        return JSONResponse(status_code=502, content={"error": str(exc)})

    @app.api_route("/{path:path}", methods=BRIDGED_METHODS)
    async def bridge(request: Request) -> PlainTextResponse:
        span = Span.create(operation_name, request.headers.get(TRACEPARENT_HEADER))
        log.debug(
            REQUEST_RECEIVED,
            method=request.method,
            path=request.url.path,
            trace_id=span.trace_id,
            parent_span_id=span.parent_span_id,
        )

        downstream_request = DownstreamRequest(
            method=request.method,
            path=_request_path(request),
            traceparent=span.traceparent(),
            tracestate=request.headers.get(TRACESTATE_HEADER),
            body=await request.body(),
        )
        response = await forwarder.forward(downstream_request)

        log.debug(REPLY_READY, trace_id=span.trace_id, downstream_status=response.status)
        return PlainTextResponse(
            response.body,
            status_code=200,
            background=BackgroundTask(complete_and_report, reporter, span),
        )

    return app
