"""Process CPU usage sampling for out-of-band measurement.

Each testbed node samples its own CPU time at a fixed interval so the cost of
trace propagation can be compared across runs. The monitor only observes; it
never influences request handling.
"""

import asyncio
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import orjson
import psutil  # type: ignore[import-untyped]

from trace_bridge.telemetry.events import CPU_SAMPLE, CPU_SUMMARY
from trace_bridge.telemetry.logger import get_logger

log = get_logger(__name__)


@dataclass
class CpuRecord:
    """One sampling interval.

    Attributes:
        timestamp: UTC ISO timestamp of the sample.
        cpu_percent: CPU used during the interval, percent of a single core.
        elapsed_sec: Interval length in seconds.
        service_name: Name of the sampled service.
    """

    timestamp: str
    cpu_percent: float
    elapsed_sec: float
    service_name: str


@dataclass
class CpuSummary:
    """Aggregate of a monitoring session."""

    service_name: str
    total_running_time: float
    average_cpu_usage: float
    peak_cpu_usage: float
    min_cpu_usage: float
    total_records: int
    records: list[CpuRecord] = field(default_factory=list, repr=False)


class CpuMonitor:
    """Samples this process's CPU time at a fixed interval.

    Args:
        service_name: Label attached to every sample (e.g. "Gateway").
        interval_seconds: Sampling period.
        data_dir: Where stop() writes the JSON dump when log_to_file is set.
        log_to_file: Persist summary and records on stop().
        process: psutil process to sample (defaults to the current process).
    """

    def __init__(  # noqa: D107
        self,
        service_name: str = "Unknown Service",
        interval_seconds: float = 1.0,
        data_dir: Path | None = None,
        log_to_file: bool = False,
        process: psutil.Process | None = None,
    ) -> None:
        self.service_name = service_name
        self.interval_seconds = interval_seconds
        self.data_dir = data_dir or Path("data")
        self.log_to_file = log_to_file
        self._process = process or psutil.Process()
        self._last_cpu = self._cpu_seconds()
        self._last_time = time.monotonic()
        self.total_cpu_seconds = 0.0
        self.total_elapsed_seconds = 0.0
        self.records: list[CpuRecord] = []
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _cpu_seconds(self) -> float:
        times = self._process.cpu_times()
        return float(times.user + times.system)

    def measure(self, final: bool = False) -> CpuRecord:
        """Record the CPU used since the previous measurement.

        Args:
            final: Skip the per-interval log line (used by stop()).

        Returns:
            The new record.
        """
        cpu_now = self._cpu_seconds()
        time_now = time.monotonic()
        cpu_used = cpu_now - self._last_cpu
        elapsed = time_now - self._last_time
        cpu_percent = (cpu_used / elapsed) * 100 if elapsed > 0 else 0.0

        record = CpuRecord(
            timestamp=datetime.now(timezone.utc).isoformat(),
            cpu_percent=round(cpu_percent, 2),
            elapsed_sec=round(elapsed, 2),
            service_name=self.service_name,
        )
        self.records.append(record)
        self.total_cpu_seconds += cpu_used
        self.total_elapsed_seconds += elapsed
        self._last_cpu = cpu_now
        self._last_time = time_now

        if not final:
            log.info(
                CPU_SAMPLE,
                service=self.service_name,
                cpu_percent=record.cpu_percent,
                interval_seconds=record.elapsed_sec,
            )
        return record

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            self.measure()

    def start(self) -> None:
        """Begin periodic sampling on the running event loop."""
        if self.running:
            log.warning("cpu_monitor_already_running", service=self.service_name)
            return
        log.info("cpu_monitor_started", service=self.service_name)
        self._last_cpu = self._cpu_seconds()
        self._last_time = time.monotonic()
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> CpuSummary | None:
        """Stop sampling, take a final measurement and summarize.

        Returns:
            The session summary, or None if the monitor was not running.
        """
        if self._task is None:
            return None
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

        self.measure(final=True)
        summary = self.summary()
        log.info(
            CPU_SUMMARY,
            service=summary.service_name,
            total_running_time=summary.total_running_time,
            average_cpu_usage=summary.average_cpu_usage,
            peak_cpu_usage=summary.peak_cpu_usage,
            min_cpu_usage=summary.min_cpu_usage,
            total_records=summary.total_records,
        )
        if self.log_to_file:
            self.write_to_file(summary)
        return summary

    def summary(self) -> CpuSummary:
        """Aggregate the records collected so far."""
        percents = [r.cpu_percent for r in self.records]
        average = (
            self.total_cpu_seconds / self.total_elapsed_seconds * 100
            if self.total_elapsed_seconds > 0
            else 0.0
        )
        return CpuSummary(
            service_name=self.service_name,
            total_running_time=round(self.total_elapsed_seconds, 2),
            average_cpu_usage=round(average, 2),
            peak_cpu_usage=max(percents, default=0.0),
            min_cpu_usage=min(percents, default=0.0),
            total_records=len(self.records),
            records=list(self.records),
        )

    def write_to_file(self, summary: CpuSummary) -> Path | None:
        """Dump summary and records as JSON into data_dir.

        Returns:
            Path of the written file, or None if writing failed.
        """
        stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%f")
        slug = "-".join(self.service_name.lower().split())
        path = self.data_dir / f"cpu-monitor-{slug}-{stamp}.json"
        data: dict[str, Any] = asdict(summary)
        records = data.pop("records")
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            path.write_bytes(
                orjson.dumps({"summary": data, "records": records}, option=orjson.OPT_INDENT_2)
            )
        except OSError as e:
            log.error("cpu_monitor_write_failed", path=str(path), error=str(e))
            return None
        log.info("cpu_monitor_written", path=str(path))
        return path
