"""Cluster metric checks and the metric history export."""

import csv
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, Sequence

from ...cluster import MetricSample
from ..context import CheckContext
from ..models import CheckStatus, RunMode
from .base import CheckModule

CSV_COLUMNS = ["NodeName", "Metric", "Counter", "Value", "Time"]


def resolve_output_path(path: str) -> Path:
    """Absolute output path; relative paths are taken from the working directory."""
    resolved = Path(path).expanduser()
    if not resolved.is_absolute():
        resolved = Path.cwd() / resolved
    return resolved


def write_metric_csv(path: Path, samples: Sequence[MetricSample]) -> int:
    """Write samples as CSV, creating parent directories. Returns rows written."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', newline='', encoding='utf-8') as f:
        writer = csv.writer(f)
        writer.writerow(CSV_COLUMNS)
        for s in samples:
            writer.writerow([
                s.node_name,
                s.metric,
                s.counter,
                "" if s.value is None else s.value,
                s.time.isoformat(sep=' ') if s.time else "",
            ])
    return len(samples)


def _by_metric(samples: Sequence[MetricSample]) -> Dict[str, List[float]]:
    values: Dict[str, List[float]] = defaultdict(list)
    for s in samples:
        if s.value is not None:
            values[s.metric].append(s.value)
    return dict(sorted(values.items()))


class ClusterMetricsCheck(CheckModule):
    mode = RunMode.CLUSTER_METRICS
    description = "Current metric values aggregated across nodes"
    source_tag = "HPC PowerShell"
    tips = [
        ("Get-HpcMetric", "Metrics collected by the cluster"),
        ("Get-HpcMetricValue -Name HPCCpuUsage", "Current value of one metric per node"),
    ]

    def execute(self, ctx: CheckContext) -> None:
        out = ctx.out
        cluster = ctx.adapters.cluster

        metrics = ctx.probe("Get-HpcMetric", cluster.list_metrics)
        if metrics.unavailable:
            return
        if metrics.ok:
            out.line(f"{len(metrics.value)} metrics defined")
            rows = [(m.name, m.type, m.unit) for m in metrics.value]
            out.detail_table(["Metric", "Type", "Unit"], rows, [32, 16, 12])

        values = ctx.probe("Get-HpcMetricValue", cluster.get_metric_value)
        if not values.ok:
            return
        samples = values.value
        if not samples:
            out.result("Metric values", CheckStatus.WARN, "no current values")
            return

        nodes = {s.node_name for s in samples}
        out.result("Metric values", CheckStatus.OK, f"{len(samples)} values from {len(nodes)} nodes")
        rows = [
            (name, len(vals), f"{sum(vals) / len(vals):.2f}", f"{min(vals):.2f}", f"{max(vals):.2f}")
            for name, vals in _by_metric(samples).items()
        ]
        out.table(["Metric", "Samples", "Avg", "Min", "Max"], rows, [32, 8, 10, 10, 10])


class MetricValueHistoryCheck(CheckModule):
    mode = RunMode.METRIC_VALUE_HISTORY
    description = "Exports metric history for a date window to CSV"
    source_tag = "HPC PowerShell"
    tips = [
        ("Get-HpcMetricValueHistory -StartDate <start> -EndDate <end> | Export-Csv history.csv",
         "Export metric history for a window"),
        ("Get-HpcMetricValueHistory -StartDate (Get-Date).AddDays(-1) | Measure-Object",
         "Count samples of the last day"),
    ]

    def execute(self, ctx: CheckContext) -> None:
        out = ctx.out
        window = ctx.probe("Metric window", ctx.target.metric_window)
        if not window.ok:
            return
        start, end = window.value
        out.line(f"Window: {start:%Y-%m-%d %H:%M} to {end:%Y-%m-%d %H:%M}")

        history = ctx.probe("Get-HpcMetricValueHistory",
                            ctx.adapters.cluster.get_metric_value_history, start, end)
        if not history.ok:
            return

        samples = history.value
        path = resolve_output_path(ctx.target.metric_output_path)
        written = ctx.probe("Write CSV", write_metric_csv, path, samples)
        if not written.ok:
            return

        status = CheckStatus.OK if written.value else CheckStatus.WARN
        out.result("Metric history", status, f"{written.value} rows written to {path}")
        for name, vals in _by_metric(samples).items():
            out.detail(f"{name}: {len(vals)} samples")
