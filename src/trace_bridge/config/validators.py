"""Custom Pydantic validators for configuration.

This module provides validators for network addresses, CoAP option numbers
and logging settings.
"""

from pathlib import Path


def validate_log_level(value: str) -> str:
    """Validate log level is one of the standard levels.

    Args:
        value: Log level string.

    Returns:
        Validated log level.

    Raises:
        ValueError: If log level is not valid.
    """
    valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
    if value.upper() not in valid_levels:
        raise ValueError(f"log_level must be one of {valid_levels}, got {value}")
    return value.upper()


def validate_host(value: str) -> str:
    """Validate a host name or IP address is present.

    Args:
        value: Host string.

    Returns:
        Stripped host string.

    Raises:
        ValueError: If the host is empty.
    """
    host = value.strip()
    if not host:
        raise ValueError("host must not be empty")
    return host


def validate_port(value: int) -> int:
    """Validate a TCP/UDP port number.

    Args:
        value: Port number.

    Returns:
        Validated port.

    Raises:
        ValueError: If port is outside 1..65535.
    """
    if not 1 <= value <= 65535:
        raise ValueError(f"port must be between 1 and 65535, got {value}")
    return value


def validate_option_number(value: int) -> int:
    """Validate a private CoAP option number used for trace context.

    Trace options must be elective (even numbers) so peers that do not know
    them ignore the option instead of rejecting the whole message.

    Args:
        value: CoAP option number.

    Returns:
        Validated option number.

    Raises:
        ValueError: If the number is out of range or critical (odd).
    """
    if not 0 < value <= 65535:
        raise ValueError(f"CoAP option number must be between 1 and 65535, got {value}")
    if value % 2:
        raise ValueError(f"CoAP option number must be elective (even), got {value}")
    return value


def resolve_path(value: Path | str) -> Path:
    """Resolve relative paths against the current working directory.

    Args:
        value: Path value (can be string or Path).

    Returns:
        Resolved Path object.
    """
    path = Path(value) if isinstance(value, str) else value
    if not path.is_absolute():
        path = Path.cwd() / path
    return path.resolve()
