"""Bounded parallel reachability sweep over cluster nodes."""

import math
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout, as_completed
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ..network import PingResult
from ..utils import get_logger
from .context import CheckContext

logger = get_logger(__name__)


@dataclass
class SweepResult:
    """Aggregate of one sweep. Only counts and sets, so completion order is irrelevant."""
    requested: int
    reachable: List[PingResult] = field(default_factory=list)
    unreachable: List[PingResult] = field(default_factory=list)
    skipped: bool = False
    cancelled: bool = False

    @property
    def avg_latency_ms(self) -> Optional[float]:
        latencies = [r.latency_ms for r in self.reachable if r.latency_ms is not None]
        return sum(latencies) / len(latencies) if latencies else None

    @property
    def max_latency_ms(self) -> Optional[float]:
        latencies = [r.latency_ms for r in self.reachable if r.latency_ms is not None]
        return max(latencies) if latencies else None


def sweep_nodes(ctx: CheckContext, hosts: Sequence[str]) -> SweepResult:
    """
    Ping every host in parallel, each ping with its own timeout.

    Skipped entirely when there are more than ``max_sweep_nodes`` hosts.
    The whole sweep is bounded by one ping timeout per batch of workers.
    """
    result = SweepResult(requested=len(hosts))
    cap = ctx.config.max_sweep_nodes
    if len(hosts) > cap:
        result.skipped = True
        return result
    if not hosts:
        return result

    workers = max(1, min(ctx.config.sweep_workers, len(hosts)))
    per_ping = ctx.config.reachability_timeout + 2
    deadline = per_ping * math.ceil(len(hosts) / workers) + per_ping

    network = ctx.adapters.network
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {executor.submit(network.ping, host): host for host in hosts}
        pending = set(futures)
        try:
            for future in as_completed(futures, timeout=deadline):
                pending.discard(future)
                host = futures[future]
                try:
                    ping = future.result()
                except Exception as e:
                    logger.debug(f"Ping {host} raised: {e}")
                    ping = PingResult(host=host, is_reachable=False, error=str(e))
                (result.reachable if ping.is_reachable else result.unreachable).append(ping)

                if ctx.cancelled:
                    result.cancelled = True
                    break
        except FuturesTimeout:
            logger.warning(f"Sweep deadline of {deadline:.0f}s exceeded, {len(pending)} hosts pending")

        for future in pending:
            future.cancel()
            if not result.cancelled:
                result.unreachable.append(PingResult(host=futures[future], is_reachable=False, error="Timeout"))

    result.reachable.sort(key=lambda r: r.host.lower())
    result.unreachable.sort(key=lambda r: r.host.lower())
    return result
