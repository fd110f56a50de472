"""Helpers shared by the gateway and terminal process runners."""

import uvicorn
from fastapi import FastAPI

from trace_bridge.config.settings import BridgeConfig
from trace_bridge.telemetry.cpu_monitor import CpuMonitor


def uvicorn_server(app: FastAPI, host: str, port: int) -> uvicorn.Server:
    """Build a uvicorn server whose logging stays with structlog."""
    config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_config=None,
        access_log=False,
        lifespan="off",
    )
    return uvicorn.Server(config)


def build_cpu_monitor(settings: BridgeConfig, service_name: str) -> CpuMonitor | None:
    """CPU monitor for this process, or None when monitoring is disabled."""
    if not settings.cpu_monitor_enabled:
        return None
    return CpuMonitor(
        service_name,
        interval_seconds=settings.cpu_monitor_interval_seconds,
        data_dir=settings.data_dir,
        log_to_file=settings.cpu_monitor_log_to_file,
    )
