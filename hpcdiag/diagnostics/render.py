"""Text rendering of check output."""

import sys
import threading
from typing import List, Optional, Sequence, TextIO

from .models import CheckResult, CheckStatus, ModuleSummary, VerbosityMode

STATUS_TAGS = {
    CheckStatus.OK: "[OK]",
    CheckStatus.WARN: "[WARN]",
    CheckStatus.ERROR: "[ERROR]",
    CheckStatus.SKIPPED: "[SKIP]",
    CheckStatus.UNKNOWN: "[????]",
}


def truncate(text: object, width: int) -> str:
    """Collapse whitespace and cut text to width, marking the cut with '...'."""
    value = " ".join(str("" if text is None else text).split())
    if width <= 3 or len(value) <= width:
        return value[:max(width, 0)]
    return value[:width - 3] + "..."


def format_row(cells: Sequence[object], widths: Sequence[int]) -> str:
    return "  ".join(truncate(c, w).ljust(w) for c, w in zip(cells, widths)).rstrip()


class Console:
    """
    Line-oriented output shared by every check.

    Writes go to stdout and to every registered sink (the transcript)
    under one lock, so parallel sweeps never interleave partial lines.
    """

    def __init__(self, stream: Optional[TextIO] = None):
        self._stream = stream
        self._sinks: List[TextIO] = []
        self._lock = threading.Lock()

    @property
    def stream(self) -> TextIO:
        return self._stream or sys.stdout

    def add_sink(self, sink: TextIO) -> None:
        with self._lock:
            self._sinks.append(sink)

    def remove_sink(self, sink: TextIO) -> None:
        with self._lock:
            if sink in self._sinks:
                self._sinks.remove(sink)

    def write_line(self, text: str = "") -> None:
        with self._lock:
            for target in [self.stream] + self._sinks:
                target.write(text + "\n")
                target.flush()


class Reporter:
    """
    Output handle given to one check module.

    ``line``/``result``/``table`` print at every tier; ``detail`` and
    ``detail_table`` print only at Verbose, which keeps Verbose a superset
    of Concise.
    """

    def __init__(self, console: Console, verbosity: VerbosityMode,
                 summary: Optional[ModuleSummary] = None, sample_rows: int = 5):
        self.console = console
        self.verbosity = verbosity
        self.summary = summary
        self.sample_rows = sample_rows

    @property
    def verbose(self) -> bool:
        return self.verbosity is VerbosityMode.VERBOSE

    def header(self, title: str) -> None:
        self.console.write_line()
        self.console.write_line(f"=== {title} ===")

    def section(self, title: str) -> None:
        self.console.write_line(f"-- {title}")

    def line(self, text: str = "") -> None:
        self.console.write_line(f"  {text}" if text else "")

    def detail(self, text: str) -> None:
        if self.verbose:
            self.console.write_line(f"    {text}")

    def result(self, label: str, status: CheckStatus, detail: str = "",
               metric: Optional[float] = None) -> CheckResult:
        result = CheckResult(label=label, status=status, detail=detail, metric=metric)
        text = f"  {STATUS_TAGS[status]:<8}{label}"
        if detail:
            text += f": {detail}"
        self.console.write_line(text)
        if self.summary is not None:
            self.summary.record(status)
        return result

    def table(self, headers: Sequence[str], rows: Sequence[Sequence[object]],
              widths: Sequence[int]) -> None:
        """
        Print a fixed-width table: the first sample_rows rows at Concise,
        every row at Verbose.
        """
        if not rows:
            return
        shown = rows if self.verbose else rows[:self.sample_rows]
        self.console.write_line("    " + format_row(headers, widths))
        self.console.write_line("    " + format_row(["-" * w for w in widths], widths))
        for row in shown:
            self.console.write_line("    " + format_row(row, widths))

    def detail_table(self, headers: Sequence[str], rows: Sequence[Sequence[object]],
                     widths: Sequence[int]) -> None:
        if self.verbose:
            self.table(headers, rows, widths)

    def tip(self, command: str, description: str) -> None:
        self.console.write_line(f"  {command}")
        self.console.write_line(f"      {description}")
