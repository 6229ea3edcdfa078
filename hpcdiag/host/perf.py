"""Local performance counters."""

import platform
import socket
import time
from dataclasses import dataclass
from datetime import datetime

import psutil

from ..utils import get_logger

logger = get_logger(__name__)


@dataclass
class PerfSample:
    """One sample of the headline counters."""
    cpu_percent: float
    available_memory_mb: float
    network_bytes_per_sec: float


@dataclass
class HostFacts:
    """Static facts about this machine."""
    hostname: str
    os: str
    cpu_count: int
    total_memory_mb: float
    boot_time: datetime
    python_version: str


class PerfCounterAdapter:
    """
    Samples CPU, memory and network throughput with psutil.
    """

    def __init__(self, interval: float = 1.0):
        self.interval = interval

    def sample_cpu_percent(self) -> float:
        return psutil.cpu_percent(interval=self.interval)

    def sample_available_memory_mb(self) -> float:
        return psutil.virtual_memory().available / (1024 * 1024)

    def sample_network_bytes_per_sec(self) -> float:
        """Bytes sent plus received per second over one sampling interval."""
        before = psutil.net_io_counters()
        start = time.monotonic()
        time.sleep(self.interval)
        after = psutil.net_io_counters()
        elapsed = time.monotonic() - start

        transferred = (after.bytes_sent - before.bytes_sent) + (after.bytes_recv - before.bytes_recv)
        return transferred / elapsed if elapsed > 0 else 0.0

    def host_facts(self) -> HostFacts:
        return HostFacts(
            hostname=socket.gethostname(),
            os=platform.platform(),
            cpu_count=psutil.cpu_count() or 0,
            total_memory_mb=psutil.virtual_memory().total / (1024 * 1024),
            boot_time=datetime.fromtimestamp(psutil.boot_time()),
            python_version=platform.python_version(),
        )

    def sample(self) -> PerfSample:
        result = PerfSample(
            cpu_percent=self.sample_cpu_percent(),
            available_memory_mb=self.sample_available_memory_mb(),
            network_bytes_per_sec=self.sample_network_bytes_per_sec(),
        )
        logger.info(f"Perf sample: {result}")
        return result
