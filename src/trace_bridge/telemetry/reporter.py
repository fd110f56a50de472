"""Fire-and-forget span reporting.

Reporters hand a completed span to a collector without ever blocking the
request that produced it: submit() schedules a detached task and returns at
once. Delivery is at-most-once and best-effort; failures are logged and
dropped, never retried.
"""

import asyncio
from typing import Any, Protocol

import httpx
import orjson
from aiocoap import Context, Message
from aiocoap.numbers.codes import Code
from aiocoap.numbers.types import Type

from trace_bridge.telemetry.events import SPAN_NOT_SAMPLED, SPAN_REPORT_FAILED, SPAN_REPORTED
from trace_bridge.telemetry.logger import get_logger
from trace_bridge.telemetry.span import Span

log = get_logger(__name__)

SPAN_PATH = "/span"


class SpanReporter(Protocol):
    """Anything that can take a span payload off the request path."""

    def submit(self, payload: dict[str, Any]) -> None: ...

    async def aclose(self) -> None: ...


class _DetachedReporter:
    """Runs each send as its own task.

    Tasks are referenced only so the event loop does not garbage-collect them
    mid-flight; nothing on the request path awaits them.
    """

    def __init__(self, target: str) -> None:  # noqa: D107
        self.target = target
        self._tasks: set[asyncio.Task[None]] = set()

    def submit(self, payload: dict[str, Any]) -> None:
        """Schedule delivery of ``payload`` and return immediately.

        Must be called from within the running event loop.
        """
        task = asyncio.get_running_loop().create_task(self._deliver(payload))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _deliver(self, payload: dict[str, Any]) -> None:
        try:
            await self._send(payload)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.warning(
                SPAN_REPORT_FAILED,
                target=self.target,
                trace_id=payload.get("traceId"),
                span_id=payload.get("spanId"),
                error=str(e),
                error_type=type(e).__name__,
            )

    async def _send(self, payload: dict[str, Any]) -> None:
        raise NotImplementedError

    @property
    def pending(self) -> int:
        """Number of reports still in flight."""
        return len(self._tasks)

    async def _cancel_pending(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)


class HttpSpanReporter(_DetachedReporter):
    """Posts span JSON to an HTTP collector (``POST /span``).

    Args:
        url: Full collector URL, e.g. "http://10.0.0.5:3001/span".
        client: Optional pre-built httpx client (tests inject a MockTransport).
        timeout_seconds: Upper bound on one delivery.
    """

    def __init__(  # noqa: D107
        self,
        url: str,
        client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        super().__init__(url)
        self.url = url
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    async def _send(self, payload: dict[str, Any]) -> None:
        response = await self._client.post(
            self.url,
            content=orjson.dumps(payload),
            headers={"Content-Type": "application/json"},
        )
        response.raise_for_status()
        # The collector answers with JSON; anything else counts as a failed report.
        try:
            orjson.loads(response.content)
        except orjson.JSONDecodeError as e:
            raise ValueError(f"Failed to parse collector response: {e}") from e
        log.debug(
            SPAN_REPORTED,
            target=self.url,
            trace_id=payload.get("traceId"),
            span_id=payload.get("spanId"),
            status_code=response.status_code,
        )

    async def aclose(self) -> None:
        """Abandon in-flight reports and close the HTTP client."""
        await self._cancel_pending()
        await self._client.aclose()


class CoapSpanReporter(_DetachedReporter):
    """Sends span JSON as a non-confirmable CoAP ``POST /span``.

    Used by CoAP devices that cannot reach the tracing backend and report
    through the gateway's span relay instead.

    Args:
        host: Relay host.
        port: Relay UDP port.
        context: Optional aiocoap client context; created by start() otherwise.
        timeout_seconds: How long to wait for the relay's acknowledgement.
    """

    def __init__(  # noqa: D107
        self,
        host: str,
        port: int,
        context: Context | None = None,
        timeout_seconds: float = 5.0,
    ) -> None:
        super().__init__(f"coap://{host}:{port}{SPAN_PATH}")
        self.uri = self.target
        self.timeout_seconds = timeout_seconds
        self._context = context
        self._owns_context = context is None

    async def start(self) -> None:
        """Create the client context if one was not injected."""
        if self._context is None:
            self._context = await Context.create_client_context()

    async def _send(self, payload: dict[str, Any]) -> None:
        if self._context is None:
            raise RuntimeError("CoapSpanReporter.start() was not awaited")
        request = Message(
            code=Code.POST, mtype=Type.NON, uri=self.uri, payload=orjson.dumps(payload)
        )
        response = await asyncio.wait_for(
            self._context.request(request).response, self.timeout_seconds
        )
        if not response.code.is_successful():
            raise ValueError(f"span relay answered {response.code}")
        log.debug(
            SPAN_REPORTED,
            target=self.uri,
            trace_id=payload.get("traceId"),
            span_id=payload.get("spanId"),
        )

    async def aclose(self) -> None:
        """Abandon in-flight reports and shut down an owned context."""
        await self._cancel_pending()
        if self._context is not None and self._owns_context:
            await self._context.shutdown()
        self._context = None


def report_if_sampled(reporter: SpanReporter, span: Span) -> bool:
    """Submit a finished span, honoring its sampling flag.

    Args:
        reporter: Destination of the span.
        span: A completed span.

    Returns:
        True if the span was handed to the reporter.
    """
    if not span.is_sampled():
        log.debug(SPAN_NOT_SAMPLED, trace_id=span.trace_id, span_id=span.span_id)
        return False
    reporter.submit(span.to_wire())
    return True


async def complete_and_report(reporter: SpanReporter, span: Span) -> None:
    """Finish a span once the client has its response.

    Used as a Starlette background task. It is a coroutine so that it runs on
    the event loop, where the reporter can schedule its detached send.
    """
    span.complete()
    report_if_sampled(reporter, span)
