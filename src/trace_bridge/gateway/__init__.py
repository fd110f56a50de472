"""Protocol bridge: HTTP ingress, HTTP/CoAP egress and the span relay."""

from trace_bridge.gateway.app import GATEWAY_OPERATION, create_gateway_app
from trace_bridge.gateway.downstream import (
    CoapForwarder,
    DownstreamForwarder,
    DownstreamRequest,
    DownstreamResponse,
    HttpForwarder,
    build_forwarder,
)
from trace_bridge.gateway.relay import (
    SpanRelayResource,
    build_relay_site,
    create_relay_app,
    decode_span_payload,
)

__all__ = [
    "GATEWAY_OPERATION",
    "create_gateway_app",
    "create_relay_app",
    "build_relay_site",
    "SpanRelayResource",
    "decode_span_payload",
    "DownstreamForwarder",
    "DownstreamRequest",
    "DownstreamResponse",
    "HttpForwarder",
    "CoapForwarder",
    "build_forwarder",
]
