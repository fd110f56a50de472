"""Terminal server: HTTP or CoAP responder at the end of the bridged path."""

from trace_bridge.terminal.app import (
    TERMINAL_OPERATION,
    TraceEchoResource,
    build_terminal_site,
    create_terminal_app,
)

__all__ = ["TERMINAL_OPERATION", "TraceEchoResource", "build_terminal_site", "create_terminal_app"]
