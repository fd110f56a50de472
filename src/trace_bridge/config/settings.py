"""Testbed configuration settings.

This module provides the BridgeConfig class and its loader. Every
network target (downstream server, tracing backend, gateway) is resolved once
at process start; invalid values are fatal.
"""

from enum import Enum
from pathlib import Path
from typing import Any

import structlog
from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from trace_bridge.config.env_loader import Environment, get_environment, load_env_files
from trace_bridge.config.validators import (
    resolve_path,
    validate_host,
    validate_log_level,
    validate_option_number,
    validate_port,
)
from trace_bridge.errors import ConfigError

log = structlog.get_logger(__name__)


class DownstreamProtocol(str, Enum):
    """Protocol spoken between the gateway and the terminal server."""

    HTTP = "http"
    COAP = "coap"


class ReportTarget(str, Enum):
    """Where the terminal server sends its completed spans."""

    BACKEND = "backend"
    GATEWAY = "gateway"


class BridgeConfig(BaseSettings):
    """Unified testbed configuration.

    Loads configuration from environment variables (prefix ``BRIDGE_``),
    layered .env files and defaults. Validates all values using Pydantic.
    """

    model_config = SettingsConfigDict(
        env_prefix="BRIDGE_",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    environment: Environment = Field(
        default_factory=get_environment, description="Current environment"
    )

    # Downstream (terminal) server
    server_host: str = Field(default="127.0.0.1", description="Terminal server address")
    server_port: int = Field(default=5683, description="Terminal server port (CoAP default)")

    # Tracing backend (span collector)
    tracing_backend_host: str = Field(default="127.0.0.1", description="Span collector address")
    tracing_backend_port: int = Field(default=3001, description="Span collector port")

    # Gateway
    gateway_host: str = Field(
        default="127.0.0.1", description="Gateway address as seen by terminal servers"
    )
    gateway_http_port: int = Field(default=3000, description="Gateway HTTP ingress port")
    gateway_span_port: int = Field(default=3002, description="Gateway span relay port")
    listen_host: str = Field(default="0.0.0.0", description="Interface every listener binds to")

    # Bridging behaviour
    downstream_protocol: DownstreamProtocol = Field(
        default=DownstreamProtocol.COAP, description="Protocol used towards the terminal server"
    )
    downstream_timeout_seconds: float = Field(
        default=10.0, gt=0, description="Bound on a single downstream call"
    )
    traceparent_option: int = Field(default=2076, description="CoAP option carrying traceparent")
    tracestate_option: int = Field(default=2104, description="CoAP option carrying tracestate")

    # Terminal server
    terminal_operation_name: str = Field(
        default="IoT-Server-A", description="Operation name of terminal server spans"
    )
    terminal_payload: str = Field(
        default="Hello http client!", description="Static response body of the terminal server"
    )
    terminal_paths: str = Field(
        default="/,/test", description="Comma-separated CoAP paths served by the terminal server"
    )
    terminal_report_target: ReportTarget = Field(
        default=ReportTarget.BACKEND, description="Span sink used by the terminal server"
    )

    # Telemetry
    log_dir: Path = Field(default=Path("logs"), description="Log directory path")
    log_level: str = Field(
        default="INFO",
        alias="APP_LOG_LEVEL",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    cpu_monitor_enabled: bool = Field(default=True, description="Sample process CPU usage")
    cpu_monitor_interval_seconds: float = Field(
        default=1.0, gt=0, description="CPU sampling interval"
    )
    cpu_monitor_log_to_file: bool = Field(
        default=False, description="Write the CPU summary to data_dir on shutdown"
    )
    data_dir: Path = Field(default=Path("data"), description="Directory for measurement dumps")

    @field_validator("server_host", "tracing_backend_host", "gateway_host", "listen_host")
    @classmethod
    def validate_hosts(cls, v: str) -> str:
        """Validate host fields."""
        return validate_host(v)

    @field_validator("server_port", "tracing_backend_port", "gateway_http_port", "gateway_span_port")
    @classmethod
    def validate_ports(cls, v: int) -> int:
        """Validate port fields."""
        return validate_port(v)

    @field_validator("traceparent_option", "tracestate_option")
    @classmethod
    def validate_options(cls, v: int) -> int:
        """Validate CoAP option numbers."""
        return validate_option_number(v)

    @field_validator("downstream_protocol", "terminal_report_target", mode="before")
    @classmethod
    def normalize_enum(cls, v: Any) -> Any:
        """Accept enum values in any case."""
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        return validate_log_level(v)

    @field_validator("log_dir", "data_dir", mode="before")
    @classmethod
    def resolve_paths(cls, v: Path | str) -> Path:
        """Resolve relative paths to absolute."""
        return resolve_path(v)

    @model_validator(mode="after")
    def check_distinct_options(self) -> "BridgeConfig":
        """Both trace options need their own number or headers collide on the wire."""
        if self.traceparent_option == self.tracestate_option:
            raise ValueError(
                f"traceparent_option and tracestate_option must differ, "
                f"both are {self.traceparent_option}"
            )
        return self

    @property
    def terminal_path_list(self) -> list[str]:
        """Terminal server CoAP paths, normalized to start with a slash."""
        paths = []
        for raw in self.terminal_paths.split(","):
            path = raw.strip()
            if not path:
                continue
            paths.append(path if path.startswith("/") else f"/{path}")
        return paths or ["/"]

    @property
    def tracing_backend_url(self) -> str:
        """Span sink URL of the tracing backend."""
        return f"http://{self.tracing_backend_host}:{self.tracing_backend_port}/span"



def load_bridge_config(**overrides: Any) -> BridgeConfig:
    """Load and validate testbed configuration.

    This function:
    1. Loads .env files in priority order (via env_loader)
    2. Creates BridgeConfig (environment variables, then overrides)
    3. Converts validation failures into ConfigError

    Args:
        **overrides: Field values taking precedence over the environment
            (e.g. from command-line options). ``None`` values are ignored.

    Returns:
        Validated BridgeConfig instance.

    Raises:
        ConfigError: If configuration validation fails.
    """
    log.info("loading_bridge_config", environment=get_environment().value)

    load_env_files()

    values = {k: v for k, v in overrides.items() if v is not None}
    try:
        config = BridgeConfig(**values)
    except ValidationError as e:
        errors = [
            f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
            for err in e.errors()
        ]
        log.error("bridge_config_invalid", errors=errors)
        raise ConfigError("; ".join(errors)) from e

    log.info(
        "bridge_config_loaded",
        environment=config.environment.value,
        downstream_protocol=config.downstream_protocol.value,
        downstream=f"{config.server_host}:{config.server_port}",
        tracing_backend=f"{config.tracing_backend_host}:{config.tracing_backend_port}",
    )
    return config

