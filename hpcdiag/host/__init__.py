"""Probes of the local host: certificates, SQL, counters, services, registry."""

from .certificates import CertificateInfo, CertificateStore, client_pem_files
from .config_store import ClusterConfig, ConfigStore, mask_secrets
from .perf import HostFacts, PerfCounterAdapter, PerfSample
from .services import ServiceInfo, ServiceManager
from .sql import SqlProbe, SqlServerInfo, extract_instance_name
from .tools import DiagnosticBinary, ToolRunResult

__all__ = [
    "CertificateInfo",
    "CertificateStore",
    "client_pem_files",
    "ClusterConfig",
    "ConfigStore",
    "mask_secrets",
    "HostFacts",
    "PerfCounterAdapter",
    "PerfSample",
    "ServiceInfo",
    "ServiceManager",
    "SqlProbe",
    "SqlServerInfo",
    "extract_instance_name",
    "DiagnosticBinary",
    "ToolRunResult",
]
