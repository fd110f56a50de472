"""Outbound half of the bridge.

A forwarder carries one inbound request to the terminal server, re-encoding
the trace context for the downstream protocol: HTTP headers for HTTP, the
registered private options for CoAP. The protocol is chosen by configuration,
never negotiated.

Failures (transport errors, timeouts, non-success codes) raise DownstreamError
and fail only the request in flight; there is no retry.
"""

import asyncio
from dataclasses import dataclass
from typing import Protocol

import httpx
from aiocoap import Context, Message
from aiocoap.error import Error as CoapError
from aiocoap.numbers.codes import Code

from trace_bridge.coap.options import CoapOptionTable
from trace_bridge.config.settings import BridgeConfig, DownstreamProtocol
from trace_bridge.errors import DownstreamError
from trace_bridge.telemetry.events import REQUEST_FORWARDED
from trace_bridge.telemetry.logger import get_logger
from trace_bridge.telemetry.trace import TRACEPARENT_HEADER, TRACESTATE_HEADER

log = get_logger(__name__)

_COAP_METHODS = {
    "GET": Code.GET,
    "POST": Code.POST,
    "PUT": Code.PUT,
    "DELETE": Code.DELETE,
}


@dataclass(frozen=True)
class DownstreamRequest:
    """A request re-addressed to the terminal server.

    Attributes:
        method: Inbound HTTP method.
        path: Path plus query string, always starting with "/".
        traceparent: Header naming this hop's span as the next hop's parent.
        tracestate: Inbound tracestate, copied verbatim, or None.
        body: Inbound request body.
    """

    method: str
    path: str
    traceparent: str
    tracestate: str | None = None
    body: bytes = b""

    def trace_headers(self) -> dict[str, str]:
        headers = {TRACEPARENT_HEADER: self.traceparent}
        if self.tracestate:
            headers[TRACESTATE_HEADER] = self.tracestate
        return headers


@dataclass(frozen=True)
class DownstreamResponse:
    """The terminal server's answer.

    Attributes:
        status: Protocol status ("200", "2.05 Content", ...), kept for logging.
        body: Response payload relayed to the client.
    """

    status: str
    body: bytes


class DownstreamForwarder(Protocol):
    """Sends a DownstreamRequest and returns the response or raises DownstreamError."""

    async def start(self) -> None: ...

    async def forward(self, request: DownstreamRequest) -> DownstreamResponse: ...

    async def aclose(self) -> None: ...


class HttpForwarder:
    """Forwards over HTTP, carrying trace context as headers.

    Args:
        base_url: Terminal server root, e.g. "http://10.0.0.3:8080".
        timeout_seconds: Bound on one downstream call.
        client: Optional pre-built httpx client (tests inject a MockTransport).
    """

    def __init__(  # noqa: D107
        self,
        base_url: str,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    async def start(self) -> None:
        """Nothing to do: the HTTP client connects lazily."""

    async def forward(self, request: DownstreamRequest) -> DownstreamResponse:
        url = f"{self.base_url}{request.path}"
        try:
            response = await self._client.request(
                request.method,
                url,
                headers=request.trace_headers(),
                content=request.body or None,
            )
        except httpx.TimeoutException as e:
            raise DownstreamError(url, "timeout", str(e)) from e
        except httpx.HTTPError as e:
            raise DownstreamError(url, "unreachable", str(e) or type(e).__name__) from e

        if not response.is_success:
            raise DownstreamError(url, "status", str(response.status_code))

        log.debug(REQUEST_FORWARDED, target=url, status=response.status_code)
        return DownstreamResponse(status=str(response.status_code), body=response.content)

    async def aclose(self) -> None:
        await self._client.aclose()


class CoapForwarder:
    """Forwards over CoAP, carrying trace context as private options.

    HTTP methods without a CoAP equivalent are sent as GET.

    Args:
        host: Terminal server host.
        port: Terminal server UDP port.
        option_table: Trace option bindings shared with the terminal server.
        timeout_seconds: Bound on one downstream exchange, retransmissions included.
        context: Optional aiocoap client context; created by start() otherwise.
    """

    def __init__(  # noqa: D107
        self,
        host: str,
        port: int,
        option_table: CoapOptionTable,
        timeout_seconds: float = 10.0,
        context: Context | None = None,
    ) -> None:
        self.host = host
        self.port = port
        self.option_table = option_table
        self.timeout_seconds = timeout_seconds
        self._context = context
        self._owns_context = context is None

    async def start(self) -> None:
        """Create the client context if one was not injected."""
        if self._context is None:
            self._context = await Context.create_client_context()

    def build_message(self, request: DownstreamRequest) -> Message:
        """Translate a DownstreamRequest into a CoAP message."""
        code = _COAP_METHODS.get(request.method.upper(), Code.GET)
        message = Message(
            code=code,
            uri=f"coap://{self.host}:{self.port}{request.path}",
            payload=request.body,
        )
        return self.option_table.apply(message, request.trace_headers())

    async def forward(self, request: DownstreamRequest) -> DownstreamResponse:
        if self._context is None:
            raise RuntimeError("CoapForwarder.start() was not awaited")

        message = self.build_message(request)
        uri = f"coap://{self.host}:{self.port}{request.path}"
        try:
            response = await asyncio.wait_for(
                self._context.request(message).response, self.timeout_seconds
            )
        except asyncio.TimeoutError as e:
            raise DownstreamError(uri, "timeout", f"no response in {self.timeout_seconds}s") from e
        except (CoapError, OSError) as e:
            raise DownstreamError(uri, "unreachable", str(e) or type(e).__name__) from e

        if not response.code.is_successful():
            raise DownstreamError(uri, "status", str(response.code))

        log.debug(REQUEST_FORWARDED, target=uri, status=str(response.code))
        return DownstreamResponse(status=str(response.code), body=response.payload)

    async def aclose(self) -> None:
        if self._context is not None and self._owns_context:
            await self._context.shutdown()
        self._context = None


def build_forwarder(settings: BridgeConfig, option_table: CoapOptionTable) -> DownstreamForwarder:
    """Create the forwarder selected by ``settings.downstream_protocol``."""
    if settings.downstream_protocol is DownstreamProtocol.HTTP:
        return HttpForwarder(
            f"http://{settings.server_host}:{settings.server_port}",
            timeout_seconds=settings.downstream_timeout_seconds,
        )
    return CoapForwarder(
        settings.server_host,
        settings.server_port,
        option_table,
        timeout_seconds=settings.downstream_timeout_seconds,
    )
