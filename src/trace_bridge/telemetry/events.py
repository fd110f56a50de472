"""Semantic event constants for structured logging.

All log events should use these constants rather than magic strings to ensure
consistency and enable reliable querying of measurement runs.
"""

# Request path events
REQUEST_RECEIVED = "request_received"
REQUEST_FORWARDED = "request_forwarded"
REPLY_READY = "reply_ready"
DOWNSTREAM_FAILED = "downstream_failed"

# Span events
SPAN_NOT_SAMPLED = "span_not_sampled"
SPAN_REPORTED = "span_reported"
SPAN_REPORT_FAILED = "span_report_failed"

# Span relay events
SPAN_RELAY_RECEIVED = "span_relay_received"
SPAN_RELAY_REJECTED = "span_relay_rejected"

# Lifecycle events
LISTENER_STARTED = "listener_started"
LISTENER_STOPPED = "listener_stopped"

# Measurement events
CPU_SAMPLE = "cpu_sample"
CPU_SUMMARY = "cpu_summary"
