"""Error hierarchy for the trace bridge.

Malformed trace headers are deliberately absent here: they are not errors and
simply start a new root trace.
"""


class BridgeError(Exception):
    """Base exception for all trace bridge errors."""

    pass


class ConfigError(BridgeError):
    """Raised when startup configuration is missing or invalid."""

    pass


class DownstreamError(BridgeError):
    """Raised when the downstream server cannot serve a forwarded request.

    Covers transport failures, timeouts and non-success responses.

    Attributes:
        target: Address of the downstream server (e.g. "coap://10.0.0.3:5683/").
        reason: Short machine-readable reason ("timeout", "unreachable", "status").
    """

    def __init__(self, target: str, reason: str, detail: str = "") -> None:  # noqa: D107
        self.target = target
        self.reason = reason
        self.detail = detail
        message = f"downstream {target} failed: {reason}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class SpanPayloadError(BridgeError):
    """Raised when a relayed span report is not a valid span JSON object."""

    pass
