"""Check modules, one per run mode."""

from .base import CheckModule
from .cluster import (
    ClusterMetadataCheck,
    ClusterTopologyCheck,
    CommandTestCheck,
    NodeDetailsCheck,
    NodeTemplatesCheck,
    NodeValidationCheck,
)
from .health import AdvancedHealthCheck
from .history import JobDetailsCheck, JobHistoryCheck, NodeHistoryCheck
from .metrics import ClusterMetricsCheck, MetricValueHistoryCheck
from .network import NetworkFixCheck, PortTestCheck
from .security import CommunicationTestCheck, DiagnosticTestsCheck
from .sql import SqlTraceCheck
from .system import NodeConfigCheck, ServicesStatusCheck, SystemInfoCheck

ALL_CHECKS = [
    SystemInfoCheck,
    ServicesStatusCheck,
    SqlTraceCheck,
    NetworkFixCheck,
    PortTestCheck,
    CommandTestCheck,
    NodeValidationCheck,
    ClusterMetadataCheck,
    NodeTemplatesCheck,
    JobHistoryCheck,
    NodeHistoryCheck,
    ClusterMetricsCheck,
    MetricValueHistoryCheck,
    ClusterTopologyCheck,
    DiagnosticTestsCheck,
    NodeConfigCheck,
    CommunicationTestCheck,
    AdvancedHealthCheck,
    JobDetailsCheck,
    NodeDetailsCheck,
]

__all__ = ["CheckModule", "ALL_CHECKS"] + [cls.__name__ for cls in ALL_CHECKS]
