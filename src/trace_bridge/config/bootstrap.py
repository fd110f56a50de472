"""Bootstrap configuration helpers (pre-settings).

These helpers exist for "chicken-and-egg" situations where we need a small amount
of configuration before the full Pydantic settings can be loaded.

Keep this module dependency-light (no telemetry imports) to avoid circular imports.
"""

from __future__ import annotations

import os
from pathlib import Path

from trace_bridge.config.validators import resolve_path, validate_log_level


def get_bootstrap_log_level(default: str = "INFO") -> str:
    """Get logging level from environment without importing settings.

    Args:
        default: Default log level if not set or invalid.

    Returns:
        Uppercased, validated log level string.
    """
    value = os.getenv("APP_LOG_LEVEL", default)
    try:
        return validate_log_level(value)
    except ValueError:
        return validate_log_level(default)


def get_bootstrap_log_dir(default: str = "logs") -> Path:
    """Get log directory from environment without importing settings.

    Args:
        default: Directory used when BRIDGE_LOG_DIR is not set.

    Returns:
        Absolute log directory path.
    """
    return resolve_path(os.getenv("BRIDGE_LOG_DIR", default))
