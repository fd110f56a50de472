"""CoAP support: the trace-context option table shared by every CoAP peer."""

from trace_bridge.coap.options import (
    DEFAULT_TRACE_OPTIONS,
    CoapOptionTable,
    TraceOption,
    build_option_table,
)

__all__ = ["CoapOptionTable", "TraceOption", "DEFAULT_TRACE_OPTIONS", "build_option_table"]
