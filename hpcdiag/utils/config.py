"""Application configuration for the HPC Pack diagnostic tool."""

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import List, Optional

from .logging_config import get_logger

logger = get_logger(__name__)

# Reachability sweeps above this many nodes are skipped with a notice
MAX_SWEEP_NODES = 50


@dataclass
class Config:
    """Application configuration settings."""

    # Timeouts (seconds)
    reachability_timeout: float = 2.0   # ping / TCP connect
    dns_timeout: float = 5.0
    http_timeout: float = 15.0
    cluster_timeout: float = 60.0       # one cluster-management command
    sql_timeout: float = 15.0

    # HPC Pack inbound ports (used by PortTest and the NetworkFix repair)
    hpc_ports: List[int] = field(default_factory=lambda: [
        443,    # HTTPS / REST, naming service
        5800,   # Scheduler
        5801,   # Remote node service
        5802,   # Node manager
        5969,   # Scheduler client
        5970,   # Node manager (HA)
        5974,   # Diagnostics
        5999,   # Monitoring
        6729,   # Management
        6730,   # Reporting
        7997,   # SOA broker
        8677,   # Broker launcher
        9087,   # SOA session
        9090,   # SOA session (HTTP)
        9091,   # Service registration
        9092,   # Session launcher
        9094,   # Broker
        9095,   # Broker worker
        9096,   # Node manager (Linux)
        9794,   # Service Fabric client
    ])

    # Names resolved by the NetworkFix DNS probe
    dns_probe_names: List[str] = field(default_factory=lambda: [
        "www.microsoft.com",
        "management.azure.com",
    ])

    # Service name substrings shown by ServicesStatus
    service_filters: List[str] = field(default_factory=lambda: [
        "Hpc",
        "MSMPI",
        "MSSQL",
        "SQLBrowser",
        "FabricHostSvc",
    ])

    # Cluster management
    powershell_executable: str = "powershell.exe"
    hpc_module_name: str = "Microsoft.Hpc"
    job_count: int = 20

    # Certificates and the naming service
    cert_subject_pattern: str = "HPC"
    cert_stores: List[str] = field(default_factory=lambda: [
        "LocalMachine\\My",
        "CurrentUser\\My",
    ])
    naming_endpoint_path: str = "/HpcNaming/api/fabric/resolve/singleton/SchedulerStatefulService"
    naming_endpoint_port: int = 443
    diagnostic_binary: str = "HpcDiagnosticHost.exe"
    diagnostic_cert_test_args: List[str] = field(default_factory=lambda: ["-certtest"])

    # Health thresholds
    max_sweep_nodes: int = MAX_SWEEP_NODES
    sweep_workers: int = 16
    cpu_warning_percent: float = 90.0
    memory_warning_mb: float = 2048.0
    perf_sample_interval: float = 1.0

    # Output
    sample_rows: int = 5

    @classmethod
    def load(cls, filepath: Optional[Path] = None) -> "Config":
        """Load configuration from file, falling back to defaults."""
        if filepath is None:
            filepath = cls._default_config_path()
        filepath = Path(filepath)

        if filepath.exists():
            try:
                with open(filepath, 'r', encoding='utf-8') as f:
                    data = json.load(f)
                if not isinstance(data, dict):
                    raise TypeError(f"expected a JSON object, got {type(data).__name__}")
                known = {f.name for f in fields(cls)}
                unknown = set(data) - known
                if unknown:
                    logger.warning(f"Ignoring unknown config keys in {filepath}: {sorted(unknown)}")
                return cls(**{k: v for k, v in data.items() if k in known})
            except (OSError, json.JSONDecodeError, TypeError) as e:
                logger.warning(f"Invalid config file {filepath}, using defaults: {e}")

        return cls()

    @staticmethod
    def _default_config_path() -> Path:
        """Get the default configuration file path."""
        return Path.home() / ".hpcdiag" / "config.json"
