"""Tests for the gateway's span relay."""

import httpx
import orjson
import pytest
from aiocoap import Message
from aiocoap.numbers.codes import Code

from trace_bridge.errors import SpanPayloadError
from trace_bridge.gateway.relay import (
    SpanRelayResource,
    create_relay_app,
    decode_span_payload,
    relay_span,
)

SPAN = {
    "traceId": "4bf92f3577b34da6a3ce929d0e0e4736",
    "spanId": "53995c3f42cd8ad8",
    "parentSpanId": "b7ad6b7169203331",
    "operationName": "IoT-Server-A",
    "startTime": 1700000000000,
    "endTime": 1700000000005,
    "flag": "01",
    "tags": {"tracestate": "k1=v001"},
    "logs": [],
}


class TestDecodeSpanPayload:
    """Test relayed payload validation."""

    def test_valid_span_is_returned_unmodified(self) -> None:
        assert decode_span_payload(orjson.dumps(SPAN)) == SPAN

    def test_unknown_fields_survive(self) -> None:
        """Test that the relay does not strip fields the backend may use."""
        payload = {**SPAN, "serviceName": "device-7"}
        assert decode_span_payload(orjson.dumps(payload))["serviceName"] == "device-7"

    def test_root_span_without_parent(self) -> None:
        payload = {k: v for k, v in SPAN.items() if k != "parentSpanId"}
        assert decode_span_payload(orjson.dumps(payload)) == payload

    @pytest.mark.parametrize(
        ("raw", "message"),
        [
            (b"{not json", "Invalid JSON"),
            (b"[1, 2]", "JSON object"),
            (orjson.dumps({"spanId": "53995c3f42cd8ad8", "operationName": "x"}), "traceId"),
            (orjson.dumps({**SPAN, "spanId": ""}), "spanId"),
            (orjson.dumps({**SPAN, "startTime": "yesterday"}), "startTime"),
        ],
    )
    def test_invalid_payload(self, raw: bytes, message: str) -> None:
        with pytest.raises(SpanPayloadError, match=message):
            decode_span_payload(raw)


class TestRelaySpan:
    """Test handing relayed spans to the reporter."""

    def test_one_span_in_one_report_out(self, reporter) -> None:
        relay_span(reporter, orjson.dumps(SPAN), source="coap")
        assert reporter.payloads == [SPAN]

    def test_rejected_span_is_not_reported(self, reporter) -> None:
        with pytest.raises(SpanPayloadError):
            relay_span(reporter, b"garbage", source="http")
        assert reporter.payloads == []


class TestHttpRelay:
    """Test the HTTP relay endpoint."""

    @pytest.mark.asyncio
    async def test_post_span(self, reporter) -> None:
        app = create_relay_app(reporter)
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
            response = await client.post("/span", content=orjson.dumps(SPAN))

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
        assert reporter.payloads == [SPAN]

    @pytest.mark.asyncio
    async def test_post_invalid_span(self, reporter) -> None:
        app = create_relay_app(reporter)
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
            response = await client.post("/span", content=b"{}")

        assert response.status_code == 400
        assert "traceId" in response.json()["error"]
        assert reporter.payloads == []

    @pytest.mark.asyncio
    async def test_other_paths_not_served(self, reporter) -> None:
        app = create_relay_app(reporter)
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
            response = await client.post("/spans", content=orjson.dumps(SPAN))

        assert response.status_code == 404


class TestCoapRelay:
    """Test the CoAP relay resource."""

    @pytest.mark.asyncio
    async def test_post_span(self, reporter) -> None:
        resource = SpanRelayResource(reporter)
        request = Message(code=Code.POST, uri_path=("span",), payload=orjson.dumps(SPAN))

        response = await resource.render_post(request)

        assert response.code == Code.CHANGED
        assert reporter.payloads == [SPAN]

    @pytest.mark.asyncio
    async def test_post_invalid_span(self, reporter) -> None:
        resource = SpanRelayResource(reporter)
        request = Message(code=Code.POST, uri_path=("span",), payload=b"nope")

        response = await resource.render_post(request)

        assert response.code == Code.BAD_REQUEST
        assert b"Invalid JSON" in response.payload
        assert reporter.payloads == []

