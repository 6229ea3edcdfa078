"""Cluster management API."""

from .api import ClusterApi
from .models import (
    ClusterJob,
    ClusterNode,
    ClusterOverview,
    ClusterProperty,
    ClusterTask,
    MetricInfo,
    MetricSample,
    NodeGroup,
    NodeStateEvent,
    NodeTemplate,
)
from .powershell import PowerShellRunner
from .roles import NodeRole, ROLE_RULES, classify_node, role_breakdown

__all__ = [
    "ClusterApi",
    "PowerShellRunner",
    "ClusterJob",
    "ClusterNode",
    "ClusterOverview",
    "ClusterProperty",
    "ClusterTask",
    "MetricInfo",
    "MetricSample",
    "NodeGroup",
    "NodeStateEvent",
    "NodeTemplate",
    "NodeRole",
    "ROLE_RULES",
    "classify_node",
    "role_breakdown",
]
