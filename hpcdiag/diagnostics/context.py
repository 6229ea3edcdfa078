"""Per-invocation context handed to every check module."""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional

from ..cluster import ClusterApi, PowerShellRunner
from ..errors import AdapterUnavailable, ProbeTimeout, ProbeUnreachable
from ..host import (
    CertificateStore,
    ConfigStore,
    DiagnosticBinary,
    PerfCounterAdapter,
    ServiceManager,
    SqlProbe,
)
from ..network import ConnectivityTester, DNSTester, NamingEndpointClient
from ..utils import Config, get_logger
from .models import CheckStatus, ProbeOutcome, ProbeTarget, RunOptions, VerbosityMode
from .render import Reporter

logger = get_logger(__name__)


@dataclass
class ProbeAdapters:
    """Every external collaborator a check may call."""
    network: ConnectivityTester
    dns: DNSTester
    cluster: ClusterApi
    certificates: CertificateStore
    https: NamingEndpointClient
    sql: SqlProbe
    perf: PerfCounterAdapter
    services: ServiceManager
    config_store: ConfigStore
    diagnostic_binary: DiagnosticBinary

    @classmethod
    def create(cls, config: Config, scheduler: Optional[str] = None) -> "ProbeAdapters":
        """Build the real adapters. Nothing is probed here."""
        runner = PowerShellRunner(config.powershell_executable, timeout=config.cluster_timeout)
        return cls(
            network=ConnectivityTester(timeout=config.reachability_timeout,
                                       command_timeout=config.cluster_timeout),
            dns=DNSTester(timeout=config.dns_timeout),
            cluster=ClusterApi(runner, scheduler=scheduler, module_name=config.hpc_module_name),
            certificates=CertificateStore(runner),
            https=NamingEndpointClient(timeout=config.http_timeout),
            sql=SqlProbe(timeout=config.sql_timeout),
            perf=PerfCounterAdapter(interval=config.perf_sample_interval),
            services=ServiceManager(),
            config_store=ConfigStore(),
            diagnostic_binary=DiagnosticBinary(config.diagnostic_binary, timeout=config.cluster_timeout),
        )


@dataclass
class CheckContext:
    """
    Everything a check reads: target, options, verbosity, adapters and
    output. Read-only for the duration of one invocation.
    """
    target: ProbeTarget
    options: RunOptions
    verbosity: VerbosityMode
    config: Config
    adapters: Optional[ProbeAdapters]
    out: Reporter
    cancel_event: threading.Event
    confirm: Optional[Callable[[str], bool]] = None

    @property
    def verbose(self) -> bool:
        return self.verbosity is VerbosityMode.VERBOSE

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def probe(self, label: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> ProbeOutcome:
        """
        Run one external call with fault isolation.

        On failure a WARN line (unavailable facility, timeout, unreachable)
        or ERROR line (anything else) is printed and the error is returned
        in the outcome instead of raised, so the caller moves on to its
        next probe.
        """
        try:
            return ProbeOutcome(label=label, value=fn(*args, **kwargs))
        except (AdapterUnavailable, ProbeTimeout, ProbeUnreachable) as e:
            logger.warning(f"{label}: {e}")
            self.out.result(label, CheckStatus.WARN, str(e))
            return ProbeOutcome(label=label, error=e)
        except Exception as e:
            logger.error(f"{label} failed: {e}", exc_info=logger.isEnabledFor(logging.DEBUG))
            self.out.result(label, CheckStatus.ERROR, f"{type(e).__name__}: {e}")
            return ProbeOutcome(label=label, error=e)
