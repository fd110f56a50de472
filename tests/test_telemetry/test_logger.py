"""Tests for structured logging configuration."""

import json
import logging
import pathlib

import structlog

from trace_bridge.telemetry.events import SPAN_REPORTED
from trace_bridge.telemetry.logger import configure_logging, get_logger


def _read_entries(log_dir: pathlib.Path) -> list[dict]:
    for handler in logging.root.handlers:
        handler.flush()
    with open(log_dir / "current.jsonl", encoding="utf-8") as f:
        return [json.loads(line) for line in f if line.strip()]


class TestLoggerConfiguration:
    """Test logger configuration and setup."""

    def test_get_logger_returns_bound_logger(self) -> None:
        """Test that get_logger returns a logger that can be used."""
        log = get_logger(__name__)
        assert hasattr(log, "info")
        assert hasattr(log, "error")
        assert hasattr(log, "warning")

    def test_get_logger_configures_on_first_call(self, monkeypatch, tmp_path) -> None:
        """Test that get_logger configures logging on first call."""
        monkeypatch.setenv("BRIDGE_LOG_DIR", str(tmp_path / "lazy"))
        structlog.reset_defaults()

        get_logger("test.module1")
        assert structlog.is_configured()
        assert (tmp_path / "lazy" / "current.jsonl").exists()

        log2 = get_logger("test.module2")
        assert hasattr(log2, "info")

    def test_logger_emits_structured_logs(self, tmp_path: pathlib.Path) -> None:
        """Test that logger emits structured JSON logs to file."""
        log_dir = tmp_path / "logs"
        structlog.reset_defaults()
        configure_logging("DEBUG", log_dir)

        log = get_logger("trace_bridge.telemetry.reporter_test")
        log.info(SPAN_REPORTED, trace_id="4bf92f3577b34da6a3ce929d0e0e4736", status_code=200)

        entry = _read_entries(log_dir)[-1]
        assert entry["event"] == "span_reported"
        assert entry["trace_id"] == "4bf92f3577b34da6a3ce929d0e0e4736"
        assert entry["status_code"] == 200
        assert entry["level"] == "info"
        assert entry["component"] == "reporter_test"
        assert "timestamp" in entry

    def test_file_keeps_info_when_console_is_quiet(self, tmp_path: pathlib.Path) -> None:
        """Test that the JSON file captures INFO even with an ERROR console."""
        log_dir = tmp_path / "logs"
        structlog.reset_defaults()
        configure_logging("ERROR", log_dir)

        get_logger("test.quiet").info("cpu_sample", cpu_percent=1.5)

        events = [e["event"] for e in _read_entries(log_dir)]
        assert "cpu_sample" in events

    def test_file_skips_debug(self, tmp_path: pathlib.Path) -> None:
        """Test that per-request debug events stay out of the measurement log."""
        log_dir = tmp_path / "logs"
        structlog.reset_defaults()
        configure_logging("DEBUG", log_dir)

        get_logger("test.debug").debug("request_received")
        get_logger("test.debug").info("marker")

        events = [e["event"] for e in _read_entries(log_dir)]
        assert "request_received" not in events
        assert "marker" in events

    def test_stdlib_records_are_rendered(self, tmp_path: pathlib.Path) -> None:
        """Test that third-party stdlib logging goes through the same pipeline."""
        log_dir = tmp_path / "logs"
        structlog.reset_defaults()
        configure_logging("INFO", log_dir)

        logging.getLogger("uvicorn.error").warning("server shutting down")

        entry = _read_entries(log_dir)[-1]
        assert entry["event"] == "server shutting down"
        assert entry["component"] == "error"

    def test_noisy_loggers_are_quieted(self, tmp_path: pathlib.Path) -> None:
        """Test that transport libraries only log warnings and above."""
        structlog.reset_defaults()
        configure_logging("DEBUG", tmp_path / "logs")

        for name in ("httpx", "httpcore", "aiocoap", "uvicorn.access"):
            assert logging.getLogger(name).level == logging.WARNING
