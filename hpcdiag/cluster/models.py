"""Typed records returned by the cluster management API."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from .powershell import parse_ps_datetime


def _str(record: Dict[str, Any], key: str, default: str = "") -> str:
    value = record.get(key)
    return default if value is None else str(value)


def _int(record: Dict[str, Any], key: str) -> Optional[int]:
    value = record.get(key)
    try:
        return int(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None


def _float(record: Dict[str, Any], key: str) -> Optional[float]:
    value = record.get(key)
    try:
        return float(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None


@dataclass
class ClusterNode:
    """A node known to the scheduler."""
    name: str
    state: str = "Unknown"
    health: str = "Unknown"
    roles: str = ""
    template: str = ""
    groups: str = ""
    cores: Optional[int] = None
    memory_mb: Optional[int] = None

    @property
    def is_online(self) -> bool:
        return self.state.lower() == "online"

    @property
    def is_healthy(self) -> bool:
        return self.health.lower() == "ok"

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "ClusterNode":
        return cls(
            name=_str(record, "Name"),
            state=_str(record, "State", "Unknown"),
            health=_str(record, "Health", "Unknown"),
            roles=_str(record, "Roles"),
            template=_str(record, "Template"),
            groups=_str(record, "Groups"),
            cores=_int(record, "Cores"),
            memory_mb=_int(record, "MemoryMb"),
        )


@dataclass
class ClusterJob:
    """A scheduler job."""
    id: int
    name: str = ""
    owner: str = ""
    state: str = "Unknown"
    priority: str = ""
    submit_time: Optional[datetime] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "ClusterJob":
        return cls(
            id=_int(record, "Id") or 0,
            name=_str(record, "Name"),
            owner=_str(record, "Owner"),
            state=_str(record, "State", "Unknown"),
            priority=_str(record, "Priority"),
            submit_time=parse_ps_datetime(record.get("SubmitTime")),
            start_time=parse_ps_datetime(record.get("StartTime")),
            end_time=parse_ps_datetime(record.get("EndTime")),
        )


@dataclass
class ClusterTask:
    """A task within a job."""
    task_id: str
    name: str = ""
    state: str = "Unknown"
    command_line: str = ""
    exit_code: Optional[int] = None
    error_message: str = ""
    nodes: str = ""

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "ClusterTask":
        return cls(
            task_id=_str(record, "TaskId"),
            name=_str(record, "Name"),
            state=_str(record, "State", "Unknown"),
            command_line=_str(record, "CommandLine"),
            exit_code=_int(record, "ExitCode"),
            error_message=_str(record, "ErrorMessage"),
            nodes=_str(record, "Nodes"),
        )


@dataclass
class MetricInfo:
    """A metric definition."""
    name: str
    type: str = ""
    unit: str = ""

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "MetricInfo":
        return cls(name=_str(record, "Name"), type=_str(record, "Type"), unit=_str(record, "Unit"))


@dataclass
class MetricSample:
    """One metric value for a node at a point in time."""
    node_name: str
    metric: str
    counter: str = ""
    value: Optional[float] = None
    time: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "MetricSample":
        return cls(
            node_name=_str(record, "NodeName"),
            metric=_str(record, "Metric"),
            counter=_str(record, "Counter"),
            value=_float(record, "Value"),
            time=parse_ps_datetime(record.get("Time")),
        )


@dataclass
class ClusterOverview:
    """Headline counters for the cluster."""
    name: str = ""
    version: str = ""
    total_nodes: Optional[int] = None
    online_nodes: Optional[int] = None
    offline_nodes: Optional[int] = None
    running_jobs: Optional[int] = None
    queued_jobs: Optional[int] = None
    extra: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "ClusterOverview":
        known = {"ClusterName", "Version", "TotalNodeCount", "OnlineNodeCount",
                 "OfflineNodeCount", "RunningJobCount", "QueuedJobCount"}
        return cls(
            name=_str(record, "ClusterName"),
            version=_str(record, "Version"),
            total_nodes=_int(record, "TotalNodeCount"),
            online_nodes=_int(record, "OnlineNodeCount"),
            offline_nodes=_int(record, "OfflineNodeCount"),
            running_jobs=_int(record, "RunningJobCount"),
            queued_jobs=_int(record, "QueuedJobCount"),
            extra={k: str(v) for k, v in record.items() if k not in known and v is not None},
        )


@dataclass
class ClusterProperty:
    """A cluster-wide scheduler property."""
    name: str
    value: str = ""

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "ClusterProperty":
        return cls(name=_str(record, "Name"), value=_str(record, "Value"))


@dataclass
class NodeTemplate:
    """A node template."""
    name: str
    type: str = ""
    description: str = ""

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "NodeTemplate":
        return cls(name=_str(record, "Name"), type=_str(record, "Type"),
                   description=_str(record, "Description"))


@dataclass
class NodeGroup:
    """A node group."""
    name: str
    description: str = ""

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "NodeGroup":
        return cls(name=_str(record, "Name"), description=_str(record, "Description"))


@dataclass
class NodeStateEvent:
    """A node state or health transition."""
    node_name: str
    event: str
    time: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "NodeStateEvent":
        return cls(
            node_name=_str(record, "NodeName"),
            event=_str(record, "Event"),
            time=parse_ps_datetime(record.get("Time")),
        )


__all__ = [
    "ClusterNode",
    "ClusterJob",
    "ClusterTask",
    "MetricInfo",
    "MetricSample",
    "ClusterOverview",
    "ClusterProperty",
    "NodeTemplate",
    "NodeGroup",
    "NodeStateEvent",
]
