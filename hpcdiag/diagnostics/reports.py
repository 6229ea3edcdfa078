"""Run summary printed after a multi-module run."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from .models import CheckStatus, ModuleSummary
from .render import STATUS_TAGS, Console, format_row


@dataclass
class RunReport:
    """Per-module tallies of one dispatcher invocation."""
    timestamp: datetime
    scheduler: str
    modules: List[ModuleSummary] = field(default_factory=list)
    cancelled: bool = False
    declined: bool = False
    duration_ms: Optional[float] = None

    @property
    def summary(self) -> Dict[str, int]:
        totals = {'passed': 0, 'failed': 0, 'warnings': 0, 'skipped': 0}
        for module in self.modules:
            worst = module.worst
            if worst == CheckStatus.OK:
                totals['passed'] += 1
            elif worst == CheckStatus.ERROR:
                totals['failed'] += 1
            elif worst == CheckStatus.WARN:
                totals['warnings'] += 1
            else:
                totals['skipped'] += 1
        return totals

    @property
    def overall_status(self) -> str:
        summary = self.summary
        if summary['failed'] > 0:
            return "problems_detected"
        elif summary['warnings'] > 0:
            return "minor_issues"
        return "healthy"


class ReportGenerator:
    """
    Renders a RunReport as the closing block of console output.
    """

    WIDTHS = (22, 8, 6, 6, 7, 6, 10)

    def __init__(self, console: Console):
        self.console = console

    def render(self, report: RunReport) -> None:
        write = self.console.write_line
        write()
        write("=== Summary ===")
        write("    " + format_row(["Module", "Status", "OK", "WARN", "ERROR", "SKIP", "Time"], self.WIDTHS))
        write("    " + format_row(["-" * w for w in self.WIDTHS], self.WIDTHS))
        for module in report.modules:
            counts = module.counts
            duration = f"{module.duration_ms / 1000:.1f}s" if module.duration_ms is not None else "-"
            write("    " + format_row([
                module.mode.value,
                STATUS_TAGS[module.worst],
                counts[CheckStatus.OK],
                counts[CheckStatus.WARN],
                counts[CheckStatus.ERROR],
                counts[CheckStatus.SKIPPED],
                duration,
            ], self.WIDTHS))

        summary = report.summary
        write()
        write(f"  {len(report.modules)} modules: {summary['passed']} passed, "
              f"{summary['warnings']} with warnings, {summary['failed']} failed, "
              f"{summary['skipped']} skipped")
        if report.cancelled:
            write("  Run cancelled before all modules completed")
        write(f"  Overall status: {report.overall_status}")
        if report.duration_ms is not None:
            write(f"  Total time: {report.duration_ms / 1000:.1f}s")
