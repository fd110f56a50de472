"""Tests for the process CPU monitor."""

import asyncio
import json
from types import SimpleNamespace

import pytest

from trace_bridge.telemetry.cpu_monitor import CpuMonitor


class FakeProcess:
    """psutil.Process stand-in whose CPU time advances by a fixed step per read."""

    def __init__(self, step: float = 0.01) -> None:
        self.step = step
        self.user = 0.0

    def cpu_times(self) -> SimpleNamespace:
        self.user += self.step
        return SimpleNamespace(user=self.user, system=0.0)


class TestCpuMonitor:
    """Test sampling and summaries."""

    def test_measure_records_interval(self) -> None:
        """Test that a measurement captures the CPU used since the last one."""
        monitor = CpuMonitor("Gateway", process=FakeProcess())
        record = monitor.measure()

        assert record.service_name == "Gateway"
        assert record.cpu_percent >= 0
        assert record.elapsed_sec >= 0
        assert monitor.records == [record]
        assert monitor.total_cpu_seconds == pytest.approx(0.01)

    def test_summary_without_records(self) -> None:
        """Test that an idle monitor summarizes to zeros."""
        summary = CpuMonitor("Gateway", process=FakeProcess()).summary()

        assert summary.total_records == 0
        assert summary.average_cpu_usage == 0.0
        assert summary.peak_cpu_usage == 0.0
        assert summary.min_cpu_usage == 0.0

    def test_summary_peak_and_min(self) -> None:
        """Test aggregation over several samples."""
        monitor = CpuMonitor("Gateway", process=FakeProcess())
        for _ in range(3):
            monitor.measure()
        percents = [r.cpu_percent for r in monitor.records]
        summary = monitor.summary()

        assert summary.total_records == 3
        assert summary.peak_cpu_usage == max(percents)
        assert summary.min_cpu_usage == min(percents)
        assert len(summary.records) == 3

    @pytest.mark.asyncio
    async def test_start_and_stop(self) -> None:
        """Test the sampling loop collects records until stopped."""
        monitor = CpuMonitor("IoT-Server-A", interval_seconds=0.01, process=FakeProcess())
        monitor.start()
        assert monitor.running
        await asyncio.sleep(0.05)

        summary = await monitor.stop()

        assert summary is not None
        assert not monitor.running
        assert summary.total_records >= 2
        assert summary.service_name == "IoT-Server-A"

    @pytest.mark.asyncio
    async def test_stop_without_start(self) -> None:
        """Test that stop() on an idle monitor is a no-op."""
        assert await CpuMonitor("Gateway", process=FakeProcess()).stop() is None

    @pytest.mark.asyncio
    async def test_stop_writes_dump(self, tmp_path) -> None:
        """Test the JSON dump written on shutdown."""
        monitor = CpuMonitor(
            "Gateway Node",
            interval_seconds=0.01,
            data_dir=tmp_path / "data",
            log_to_file=True,
            process=FakeProcess(),
        )
        monitor.start()
        await asyncio.sleep(0.03)
        summary = await monitor.stop()

        [dump] = list((tmp_path / "data").glob("cpu-monitor-gateway-node-*.json"))
        content = json.loads(dump.read_text(encoding="utf-8"))
        assert summary is not None
        assert content["summary"]["total_records"] == summary.total_records
        assert len(content["records"]) == summary.total_records
        assert "records" not in content["summary"]

    def test_write_failure_returns_none(self, tmp_path) -> None:
        """Test that an unwritable data dir does not raise."""
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory", encoding="utf-8")
        monitor = CpuMonitor("Gateway", data_dir=blocker / "data", process=FakeProcess())

        assert monitor.write_to_file(monitor.summary()) is None
