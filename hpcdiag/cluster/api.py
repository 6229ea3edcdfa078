"""HPC Pack cluster management API over the HPC PowerShell cmdlets."""

from datetime import datetime
from typing import List, Optional

from ..errors import AdapterUnavailable, ProbeError
from ..utils import get_logger
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
from .powershell import PowerShellRunner, ps_quote

logger = get_logger(__name__)

_PS_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"


def _ps_date(value: datetime) -> str:
    return f"[datetime]::Parse({ps_quote(value.strftime(_PS_DATE_FORMAT))})"


class ClusterApi:
    """
    Queries the HPC Pack scheduler.

    Every call runs one cmdlet pipeline through PowerShell with the cluster
    timeout; records come back typed.
    """

    def __init__(self, runner: PowerShellRunner, scheduler: Optional[str] = None,
                 module_name: str = "Microsoft.Hpc"):
        self.runner = runner
        self.scheduler = scheduler
        self.module_name = module_name

    def _prelude(self) -> str:
        module = ps_quote(self.module_name)
        return (
            "$ErrorActionPreference = 'Stop'; "
            f"if (Get-Module -ListAvailable -Name {module}) {{ Import-Module {module} }} "
            "else { Add-PSSnapin Microsoft.HPC }; "
        )

    def _scheduler_arg(self) -> str:
        return f" -Scheduler {ps_quote(self.scheduler)}" if self.scheduler else ""

    def _query(self, pipeline: str):
        return self.runner.run_json(self._prelude() + pipeline)

    def check_available(self) -> str:
        """
        Verify the HPC PowerShell module can be imported.

        Returns:
            The module version string

        Raises:
            AdapterUnavailable: module or PowerShell missing
        """
        try:
            output = self.runner.run(
                self._prelude()
                + f"(Get-Module -Name {ps_quote(self.module_name)}).Version.ToString()"
            )
        except AdapterUnavailable:
            raise
        except ProbeError as e:
            raise AdapterUnavailable("HPC PowerShell module", str(e))
        return output.strip() or "snap-in"

    def list_nodes(self) -> List[ClusterNode]:
        records = self._query(
            f"Get-HpcNode{self._scheduler_arg()} | Select-Object "
            "@{n='Name';e={$_.NetBiosName}}, "
            "@{n='State';e={\"$($_.NodeState)\"}}, "
            "@{n='Health';e={\"$($_.NodeHealth)\"}}, "
            "@{n='Roles';e={\"$($_.NodeRole)\"}}, "
            "@{n='Template';e={\"$($_.Template)\"}}, "
            "@{n='Groups';e={\"$($_.Groups)\"}}, "
            "@{n='Cores';e={$_.ProcessorCores}}, "
            "@{n='MemoryMb';e={$_.Memory}}"
        )
        nodes = [ClusterNode.from_record(r) for r in records]
        logger.info(f"Fetched {len(nodes)} nodes")
        return nodes

    def list_jobs(self, count: int) -> List[ClusterJob]:
        """Most recent jobs by submit time, newest first."""
        records = self._query(
            f"Get-HpcJob -State All{self._scheduler_arg()} | "
            f"Sort-Object SubmitTime -Descending | Select-Object -First {int(count)} "
            "Id, Name, Owner, @{n='State';e={\"$($_.State)\"}}, "
            "@{n='Priority';e={\"$($_.Priority)\"}}, SubmitTime, StartTime, EndTime"
        )
        jobs = [ClusterJob.from_record(r) for r in records]
        jobs.sort(key=lambda j: j.submit_time or datetime.min, reverse=True)
        return jobs

    def get_job(self, job_id: int) -> Optional[ClusterJob]:
        records = self._query(
            f"Get-HpcJob -Id {int(job_id)}{self._scheduler_arg()} | Select-Object "
            "Id, Name, Owner, @{n='State';e={\"$($_.State)\"}}, "
            "@{n='Priority';e={\"$($_.Priority)\"}}, SubmitTime, StartTime, EndTime"
        )
        return ClusterJob.from_record(records[0]) if records else None

    def list_tasks(self, job_id: int) -> List[ClusterTask]:
        records = self._query(
            f"Get-HpcTask -JobId {int(job_id)}{self._scheduler_arg()} | Select-Object "
            "@{n='TaskId';e={\"$($_.TaskId)\"}}, Name, "
            "@{n='State';e={\"$($_.State)\"}}, CommandLine, ExitCode, ErrorMessage, "
            "@{n='Nodes';e={\"$($_.AllocatedNodes)\"}}"
        )
        return [ClusterTask.from_record(r) for r in records]

    def list_metrics(self) -> List[MetricInfo]:
        records = self._query(
            f"Get-HpcMetric{self._scheduler_arg()} | Select-Object "
            "Name, @{n='Type';e={\"$($_.Type)\"}}, @{n='Unit';e={\"$($_.Unit)\"}}"
        )
        return [MetricInfo.from_record(r) for r in records]

    def get_metric_value(self, metric: Optional[str] = None) -> List[MetricSample]:
        name_arg = f" -Name {ps_quote(metric)}" if metric else ""
        records = self._query(
            f"Get-HpcMetricValue{name_arg}{self._scheduler_arg()} | Select-Object "
            "NodeName, Metric, Counter, Value, Time"
        )
        return [MetricSample.from_record(r) for r in records]

    def get_metric_value_history(self, start: datetime, end: datetime) -> List[MetricSample]:
        records = self._query(
            f"Get-HpcMetricValueHistory -StartDate {_ps_date(start)} -EndDate {_ps_date(end)}"
            f"{self._scheduler_arg()} | Select-Object NodeName, Metric, Counter, Value, Time"
        )
        return [MetricSample.from_record(r) for r in records]

    def get_cluster_overview(self) -> ClusterOverview:
        records = self._query(f"Get-HpcClusterOverview{self._scheduler_arg()}")
        if not records:
            raise ProbeError("Get-HpcClusterOverview returned nothing")
        return ClusterOverview.from_record(records[0])

    def get_cluster_properties(self) -> List[ClusterProperty]:
        records = self._query(
            f"Get-HpcClusterProperty{self._scheduler_arg()} | Select-Object "
            "Name, @{n='Value';e={\"$($_.Value)\"}}"
        )
        return [ClusterProperty.from_record(r) for r in records]

    def get_node_templates(self) -> List[NodeTemplate]:
        records = self._query(
            f"Get-HpcNodeTemplate{self._scheduler_arg()} | Select-Object "
            "Name, @{n='Type';e={\"$($_.Type)\"}}, Description"
        )
        return [NodeTemplate.from_record(r) for r in records]

    def get_groups(self) -> List[NodeGroup]:
        records = self._query(f"Get-HpcGroup{self._scheduler_arg()} | Select-Object Name, Description")
        return [NodeGroup.from_record(r) for r in records]

    def get_node_state_history(self, start: datetime, end: datetime,
                               node_name: Optional[str] = None) -> List[NodeStateEvent]:
        name_arg = f" -Name {ps_quote(node_name)}" if node_name else ""
        records = self._query(
            f"Get-HpcNodeStateHistory{name_arg} -StartDate {_ps_date(start)} -EndDate {_ps_date(end)}"
            f"{self._scheduler_arg()} | Select-Object "
            "@{n='NodeName';e={$_.NodeName}}, @{n='Event';e={\"$($_.Event)\"}}, Time"
        )
        events = [NodeStateEvent.from_record(r) for r in records]
        events.sort(key=lambda e: e.time or datetime.min, reverse=True)
        return events
