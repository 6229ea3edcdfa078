"""Overall health verdict with prioritized recommendations."""

from typing import List

from ..context import CheckContext
from ..models import CheckStatus, RunMode
from .base import CheckModule, render_sweep
from .cluster import fetch_nodes


def health_verdict(issues: List[str], warnings: List[str]) -> str:
    if issues:
        return "[ATTENTION]"
    if warnings:
        return "[GOOD]"
    return "[EXCELLENT]"


class AdvancedHealthCheck(CheckModule):
    mode = RunMode.ADVANCED_HEALTH
    description = "Performance counters, node reachability and an overall verdict"
    source_tag = "psutil, HPC PowerShell, ping"
    tips = [
        ("Get-Counter '\\Processor(_Total)\\% Processor Time','\\Memory\\Available MBytes'",
         "CPU and available memory of this host"),
        ("Get-HpcNode | Where-Object { $_.NodeState -ne 'Online' }", "Nodes that are not online"),
        ("Invoke-HpcDiagnosticTest", "Run the built-in cluster diagnostics"),
    ]

    def execute(self, ctx: CheckContext) -> None:
        out = ctx.out
        config = ctx.config
        issues: List[str] = []
        warnings: List[str] = []

        sample = ctx.probe("Performance counters", ctx.adapters.perf.sample)
        if sample.ok:
            perf = sample.value
            out.line(f"CPU: {perf.cpu_percent:.0f}%, available memory: {perf.available_memory_mb:.0f} MB")
            out.detail(f"Network: {perf.network_bytes_per_sec / 1024:.1f} KB/s")
            if perf.cpu_percent > config.cpu_warning_percent:
                warnings.append(f"CPU at {perf.cpu_percent:.0f}%, above {config.cpu_warning_percent:.0f}%")
            if perf.available_memory_mb < config.memory_warning_mb:
                warnings.append(f"Only {perf.available_memory_mb:.0f} MB memory available, "
                                f"below {config.memory_warning_mb:.0f} MB")

        if ctx.verbose:
            nodes = fetch_nodes(ctx)
            if nodes:
                sweep = render_sweep(ctx, [n.name for n in nodes])
                for ping in sweep.unreachable:
                    issues.append(f"Node {ping.host} is unreachable")

        verdict = health_verdict(issues, warnings)
        status = {"[EXCELLENT]": CheckStatus.OK, "[GOOD]": CheckStatus.WARN}.get(verdict, CheckStatus.ERROR)
        out.result("Health verdict", status,
                   f"{verdict} {len(issues)} issues, {len(warnings)} warnings")

        recommendations = [f"Investigate: {i}" for i in issues] + [f"Review: {w}" for w in warnings]
        if recommendations:
            out.section("Recommendations")
            for number, text in enumerate(recommendations, start=1):
                out.line(f"{number}. {text}")
