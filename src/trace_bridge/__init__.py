"""Trace-context propagation bridge between an HTTP edge and a CoAP device tier."""

__version__ = "0.1.0"
