"""W3C trace-context codec.

Parses and renders ``traceparent`` headers of the form
``{version:02x}-{trace-id:032x}-{span-id:016x}-{flags:02x}`` and mints the
random identifiers that go into them. Every hop keeps the trace-id and mints
a new span-id.
"""

import re
import secrets
from dataclasses import dataclass

TRACE_ID_BYTES = 16
SPAN_ID_BYTES = 8

VERSION = "00"
SAMPLED = "01"
NOT_SAMPLED = "00"

TRACEPARENT_HEADER = "traceparent"
TRACESTATE_HEADER = "tracestate"

_TRACEPARENT_RE = re.compile(
    r"^(?P<version>[0-9a-f]{2})-(?P<trace_id>[0-9a-f]{32})-"
    r"(?P<span_id>[0-9a-f]{16})-(?P<flags>[0-9a-f]{2})$"
)
_INVALID_TRACE_ID = "0" * 32
_INVALID_SPAN_ID = "0" * 16


def mint_id(n_bytes: int) -> str:
    """Generate a random identifier.

    Args:
        n_bytes: Number of random bytes (16 for a trace-id, 8 for a span-id).

    Returns:
        ``2 * n_bytes`` lowercase hex characters from a CSPRNG.
    """
    return secrets.token_hex(n_bytes)


def _hex_field(value: str | bytes | int, n_bytes: int) -> str:
    """Render one traceparent field as fixed-width lowercase hex."""
    width = 2 * n_bytes
    if isinstance(value, bytes):
        value = value.hex()
    if isinstance(value, int):
        return f"{value:0{width}x}"
    return value.lower().rjust(width, "0")


def format_traceparent(
    trace_id: str | bytes | int,
    span_id: str | bytes | int,
    flag: str | bytes | int,
    version: str | bytes | int = VERSION,
) -> str:
    """Render a canonical traceparent header.

    Every field is zero-padded to its fixed width, so short identifiers
    (e.g. integers with leading zero bytes) keep their byte length.

    Args:
        trace_id: 16-byte trace identifier (hex string, bytes or int).
        span_id: 8-byte span identifier (hex string, bytes or int).
        flag: 1-byte trace flags.
        version: 1-byte version, "00" by default.

    Returns:
        The traceparent string.
    """
    return "-".join(
        (
            _hex_field(version, 1),
            _hex_field(trace_id, TRACE_ID_BYTES),
            _hex_field(span_id, SPAN_ID_BYTES),
            _hex_field(flag, 1),
        )
    )


def _match(header: str | None) -> re.Match[str] | None:
    if not header:
        return None
    match = _TRACEPARENT_RE.match(header.strip())
    if match is None:
        return None
    if match["version"] == "ff":
        return None
    if match["trace_id"] == _INVALID_TRACE_ID or match["span_id"] == _INVALID_SPAN_ID:
        return None
    return match


def is_valid_traceparent(header: str | None) -> bool:
    """Check whether a header is a well-formed traceparent."""
    return _match(header) is not None


def parse_traceparent(header: str | None) -> tuple[str, str | None, str]:
    """Extract (trace_id, parent_span_id, flag) from an inbound header.

    A malformed or missing header is not an error: it starts a new trace.
    The new trace is sampled ("01") so the first hop can be observed.

    Args:
        header: Inbound traceparent value, or None.

    Returns:
        Tuple of trace-id, the inbound span-id (this hop's parent, or None for
        a root span) and the sampling flag.
    """
    match = _match(header)
    if match is None:
        return mint_id(TRACE_ID_BYTES), None, SAMPLED
    return match["trace_id"], match["span_id"], match["flags"]


@dataclass(frozen=True)
class TraceContext:
    """One hop's view of a W3C trace context.

    Frozen: a hop never modifies its context. Use child() to derive the
    context handed to the next hop.

    Attributes:
        trace_id: 32 hex characters shared by every hop of the trace.
        span_id: 16 hex characters identifying this hop.
        flags: 2 hex characters; only "01" means sampled.
        version: 2 hex characters, "00".
    """

    trace_id: str
    span_id: str
    flags: str = SAMPLED
    version: str = VERSION

    @classmethod
    def new_trace(cls) -> "TraceContext":
        """Start a new sampled trace with fresh identifiers."""
        return cls(trace_id=mint_id(TRACE_ID_BYTES), span_id=mint_id(SPAN_ID_BYTES))

    @classmethod
    def from_header(cls, header: str | None) -> "TraceContext | None":
        """Decode a traceparent header.

        Returns:
            The decoded context, or None when the header is missing or malformed.
        """
        match = _match(header)
        if match is None:
            return None
        return cls(
            trace_id=match["trace_id"],
            span_id=match["span_id"],
            flags=match["flags"],
            version=match["version"],
        )

    def to_header(self) -> str:
        """Encode as a traceparent header."""
        return format_traceparent(self.trace_id, self.span_id, self.flags, self.version)

    def is_sampled(self) -> bool:
        """Whether the flags are exactly "01". Any other value is not reported."""
        return self.flags == SAMPLED

    def child(self, span_id: str | None = None) -> "TraceContext":
        """Derive the context of the next hop: same trace, new span-id."""
        return TraceContext(
            trace_id=self.trace_id,
            span_id=span_id or mint_id(SPAN_ID_BYTES),
            flags=self.flags,
            version=self.version,
        )
