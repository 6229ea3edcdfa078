"""Run modes, verbosity, probe targets and check results."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from ..errors import AdapterUnavailable, ValidationError


class RunMode(Enum):
    """Every independently invocable run mode."""
    SYSTEM_INFO = "SystemInfo"
    SERVICES_STATUS = "ServicesStatus"
    SQL_TRACE = "SQLTrace"
    NETWORK_FIX = "NetworkFix"
    PORT_TEST = "PortTest"
    COMMAND_TEST = "CommandTest"
    NODE_VALIDATION = "NodeValidation"
    CLUSTER_METADATA = "ClusterMetadata"
    NODE_TEMPLATES = "NodeTemplates"
    JOB_HISTORY = "JobHistory"
    NODE_HISTORY = "NodeHistory"
    CLUSTER_METRICS = "ClusterMetrics"
    METRIC_VALUE_HISTORY = "MetricValueHistory"
    CLUSTER_TOPOLOGY = "ClusterTopology"
    DIAGNOSTIC_TESTS = "DiagnosticTests"
    NODE_CONFIG = "NodeConfig"
    COMMUNICATION_TEST = "CommunicationTest"
    ADVANCED_HEALTH = "AdvancedHealth"
    JOB_DETAILS = "JobDetails"
    NODE_DETAILS = "NodeDetails"
    ALL = "All"
    LIST_MODULES = "ListModules"


# Modes that do not map to a single check module
COMPOSITE_MODES = (RunMode.ALL, RunMode.LIST_MODULES)

# Later checks assume the connectivity and module-import checks before them ran
ALL_SEQUENCE: Tuple[RunMode, ...] = (
    RunMode.SYSTEM_INFO,
    RunMode.SERVICES_STATUS,
    RunMode.SQL_TRACE,
    RunMode.NETWORK_FIX,
    RunMode.PORT_TEST,
    RunMode.COMMAND_TEST,
    RunMode.NODE_VALIDATION,
    RunMode.CLUSTER_METADATA,
    RunMode.NODE_TEMPLATES,
    RunMode.JOB_HISTORY,
    RunMode.NODE_HISTORY,
    RunMode.CLUSTER_METRICS,
    RunMode.METRIC_VALUE_HISTORY,
    RunMode.CLUSTER_TOPOLOGY,
    RunMode.DIAGNOSTIC_TESTS,
    RunMode.NODE_CONFIG,
    RunMode.COMMUNICATION_TEST,
    RunMode.ADVANCED_HEALTH,
)


class VerbosityMode(Enum):
    """How much a check prints."""
    CONCISE = "concise"
    VERBOSE = "verbose"
    TIPS_ONLY = "tips"


class CheckStatus(Enum):
    """Status of a single probe step."""
    OK = "ok"
    WARN = "warn"
    ERROR = "error"
    SKIPPED = "skipped"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class RunModeDescriptor:
    """Registry entry for a run mode."""
    name: str
    description: str
    source_tag: str


@dataclass(frozen=True)
class CheckResult:
    """One rendered probe step. Printed immediately, never stored."""
    label: str
    status: CheckStatus
    detail: str = ""
    metric: Optional[float] = None


@dataclass(frozen=True)
class ProbeTarget:
    """What the checks point at. Built once from the command line."""
    scheduler: str = "localhost"
    ports: Tuple[int, ...] = ()
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    job_id: Optional[int] = None
    node_name: Optional[str] = None
    days_back: int = 7
    job_count: int = 20
    metric_output_path: str = "MetricValueHistory.csv"

    def __post_init__(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValidationError(
                f"MetricStartDate ({self.start_date:%Y-%m-%d %H:%M}) is after "
                f"MetricEndDate ({self.end_date:%Y-%m-%d %H:%M})"
            )
        if self.days_back < 0:
            raise ValidationError("DaysBack must not be negative")
        if self.job_count <= 0:
            raise ValidationError("JobCount must be positive")
        for port in self.ports:
            if not 1 <= port <= 65535:
                raise ValidationError(f"Port out of range: {port}")

    def metric_window(self, now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
        """[start, end] for metric history, defaulting to the last 7 days."""
        end = self.end_date or now or datetime.now()
        start = self.start_date or end - timedelta(days=7)
        if start > end:
            raise ValidationError("Metric start date is after end date")
        return start, end

    def history_window(self, now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
        end = now or datetime.now()
        return end - timedelta(days=self.days_back), end


@dataclass(frozen=True)
class RunOptions:
    """Behavioural switches that are not part of the target."""
    fix_network_issues: bool = False
    test_node_ports: bool = False
    force: bool = False
    client_cert_thumbprint: Optional[str] = None
    client_cert_pfx_path: Optional[str] = None
    client_cert_pfx_password: Optional[str] = field(default=None, repr=False)


@dataclass
class ProbeOutcome:
    """Value or error of one guarded probe."""
    label: str
    value: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def unavailable(self) -> bool:
        return isinstance(self.error, AdapterUnavailable)


@dataclass
class ModuleSummary:
    """Per-module tally kept by the dispatcher for the closing summary."""
    mode: RunMode
    counts: Dict[CheckStatus, int] = field(default_factory=lambda: {s: 0 for s in CheckStatus})
    duration_ms: Optional[float] = None
    crashed: bool = False

    def record(self, status: CheckStatus) -> None:
        self.counts[status] += 1

    @property
    def worst(self) -> CheckStatus:
        if self.crashed or self.counts[CheckStatus.ERROR]:
            return CheckStatus.ERROR
        if self.counts[CheckStatus.WARN]:
            return CheckStatus.WARN
        if self.counts[CheckStatus.OK]:
            return CheckStatus.OK
        return CheckStatus.SKIPPED


__all__ = [
    "RunMode",
    "COMPOSITE_MODES",
    "ALL_SEQUENCE",
    "VerbosityMode",
    "CheckStatus",
    "RunModeDescriptor",
    "CheckResult",
    "ProbeTarget",
    "RunOptions",
    "ProbeOutcome",
    "ModuleSummary",
]
