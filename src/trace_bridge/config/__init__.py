"""Configuration management for the trace bridge.

A single BridgeConfig, built from environment variables, .env files and
defaults, describes every network target of a testbed node.
"""

from trace_bridge.config.env_loader import Environment, get_environment
from trace_bridge.config.settings import (
    BridgeConfig,
    DownstreamProtocol,
    ReportTarget,
    load_bridge_config,
)

__all__ = [
    "BridgeConfig",
    "DownstreamProtocol",
    "ReportTarget",
    "Environment",
    "get_environment",
    "load_bridge_config",
]
