"""Span model for one hop of a bridged request.

A span derives its identity from the inbound traceparent header rather than
from a tracer: the trace-id and sampling flag are carried over, the inbound
span-id becomes the parent, and a fresh span-id is minted for this hop.
"""

import time
from dataclasses import dataclass, field
from typing import Any

from trace_bridge.telemetry.trace import SAMPLED, TraceContext


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


@dataclass
class Span:
    """One unit of work performed by one service hop.

    The only mutation after creation is the end timestamp written by
    complete(); tags and logs are auxiliary and unused by the measured path.

    Attributes:
        trace_id: Trace identifier carried from the inbound header or minted.
        span_id: Identifier of this hop, always freshly minted.
        parent_span_id: Inbound span-id, or None for a root span.
        operation_name: Static label of the hop (e.g. "Gateway-HTTP").
        start_time: Wall-clock start in epoch milliseconds.
        end_time: Wall-clock end in epoch milliseconds, None until complete().
        flag: Sampling flag; "01" means the span is reported.
        tags: Free-form key/value annotations.
        logs: Timestamped messages.
    """

    trace_id: str
    span_id: str
    parent_span_id: str | None
    operation_name: str
    start_time: int = field(default_factory=_now_ms)
    end_time: int | None = None
    flag: str = SAMPLED
    tags: dict[str, Any] = field(default_factory=dict)
    logs: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def create(cls, operation_name: str, inbound_header: str | None = None) -> "Span":
        """Start a span for a request that arrived with ``inbound_header``.

        Args:
            operation_name: Static label of the hop.
            inbound_header: Inbound traceparent value, or None.

        Returns:
            A started span. Without a valid header it is a sampled root span.
        """
        inbound = TraceContext.from_header(inbound_header)
        if inbound is None:
            context, parent_span_id = TraceContext.new_trace(), None
        else:
            context, parent_span_id = inbound.child(), inbound.span_id
        return cls(
            trace_id=context.trace_id,
            span_id=context.span_id,
            parent_span_id=parent_span_id,
            operation_name=operation_name,
            flag=context.flags,
        )

    def complete(self) -> "Span":
        """Stamp the end time. Calling it again moves the end time forward."""
        self.end_time = _now_ms()
        return self

    @property
    def completed(self) -> bool:
        return self.end_time is not None

    @property
    def context(self) -> TraceContext:
        """This hop's trace context, always at the current version."""
        return TraceContext(self.trace_id, self.span_id, self.flag)

    def is_sampled(self) -> bool:
        """Whether this span should be reported."""
        return self.context.is_sampled()

    def traceparent(self) -> str:
        """The traceparent header that makes this span the next hop's parent."""
        return self.context.to_header()

    def add_tag(self, key: str, value: Any) -> None:
        self.tags[key] = value

    def add_log(self, message: str) -> None:
        self.logs.append({"timestamp": _now_ms(), "message": message})

    def to_wire(self) -> dict[str, Any]:
        """Serialize for a span collector.

        Returns:
            JSON-ready dict using the collector's camelCase field names.
        """
        return {
            "traceId": self.trace_id,
            "spanId": self.span_id,
            "parentSpanId": self.parent_span_id,
            "operationName": self.operation_name,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "flag": self.flag,
            "tags": dict(self.tags),
            "logs": list(self.logs),
        }
