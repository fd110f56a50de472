"""Span relay listener of the gateway.

Devices that cannot reach the tracing backend post their spans here. Each
span is forwarded unmodified to the backend: one span in, one POST out, no
buffering, deduplication or retry. The relay speaks the downstream protocol,
so HTTP devices post over HTTP and CoAP devices over CoAP.
"""

from typing import Any

import orjson
from aiocoap import Message, resource
from aiocoap.numbers.codes import Code
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from trace_bridge.errors import SpanPayloadError
from trace_bridge.telemetry.events import SPAN_RELAY_RECEIVED, SPAN_RELAY_REJECTED
from trace_bridge.telemetry.logger import get_logger
from trace_bridge.telemetry.reporter import SPAN_PATH, SpanReporter

log = get_logger(__name__)


class SpanRecord(BaseModel):
    """Minimal shape a relayed span must have.

    Only used for validation; the relay forwards the original object so that
    unknown fields reach the backend untouched.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    trace_id: str = Field(alias="traceId", min_length=1)
    span_id: str = Field(alias="spanId", min_length=1)
    operation_name: str = Field(alias="operationName")
    parent_span_id: str | None = Field(default=None, alias="parentSpanId")
    start_time: int | None = Field(default=None, alias="startTime")
    end_time: int | None = Field(default=None, alias="endTime")


def decode_span_payload(raw: bytes) -> dict[str, Any]:
    """Parse and validate a relayed span report.

    Args:
        raw: Request body.

    Returns:
        The decoded JSON object, unmodified.

    Raises:
        SpanPayloadError: If the body is not JSON, not an object, or lacks
            the span identity fields.
    """
    try:
        payload = orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        raise SpanPayloadError(f"Invalid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise SpanPayloadError(f"Span must be a JSON object, got {type(payload).__name__}")
    try:
        SpanRecord.model_validate(payload)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise SpanPayloadError(f"Invalid span fields: {fields}") from e
    return payload


def relay_span(reporter: SpanReporter, raw: bytes, source: str) -> dict[str, Any]:
    """Validate one relayed span and hand it to the reporter.

    Raises:
        SpanPayloadError: If the payload is rejected.
    """
    try:
        payload = decode_span_payload(raw)
    except SpanPayloadError as e:
        log.warning(SPAN_RELAY_REJECTED, source=source, error=str(e))
        raise
    log.debug(
        SPAN_RELAY_RECEIVED,
        source=source,
        trace_id=payload["traceId"],
        span_id=payload["spanId"],
        operation=payload["operationName"],
    )
    reporter.submit(payload)
    return payload


def create_relay_app(reporter: SpanReporter) -> FastAPI:
    """Build the HTTP span relay (``POST /span``).

    Args:
        reporter: Sink towards the tracing backend.

    Returns:
        The FastAPI application. Unknown paths answer 404.
    """
    app = FastAPI(
        title="Trace Bridge Span Relay",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    @app.post(SPAN_PATH)
    async def receive_span(request: Request) -> JSONResponse:
        try:
            relay_span(reporter, await request.body(), source="http")
        except SpanPayloadError as e:
            return JSONResponse(status_code=400, content={"error": str(e)})
        return JSONResponse(content={"status": "ok"})

    return app


class SpanRelayResource(resource.Resource):
    """CoAP span relay (``POST /span``)."""

    def __init__(self, reporter: SpanReporter) -> None:  # noqa: D107
        super().__init__()
        self.reporter = reporter

    async def render_post(self, request: Message) -> Message:
        try:
            relay_span(self.reporter, request.payload, source="coap")
        except SpanPayloadError as e:
            return Message(code=Code.BAD_REQUEST, payload=str(e).encode("utf-8"))
        return Message(code=Code.CHANGED)


def build_relay_site(reporter: SpanReporter) -> resource.Site:
    """CoAP site serving the span relay at /span."""
    site = resource.Site()
    site.add_resource([SPAN_PATH.strip("/")], SpanRelayResource(reporter))
    return site
