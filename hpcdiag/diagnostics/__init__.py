"""Diagnostic run modes, dispatch and output."""

from .context import CheckContext, ProbeAdapters
from .help import HelpSystem
from .models import (
    ALL_SEQUENCE,
    CheckResult,
    CheckStatus,
    ProbeTarget,
    RunMode,
    RunModeDescriptor,
    RunOptions,
    VerbosityMode,
)
from .registry import RunModeRegistry
from .render import Console, Reporter
from .reports import ReportGenerator, RunReport
from .runner import Dispatcher, resolve_mode
from .transcript import TranscriptExporter, TranscriptSession

__all__ = [
    "CheckContext",
    "ProbeAdapters",
    "HelpSystem",
    "ALL_SEQUENCE",
    "CheckResult",
    "CheckStatus",
    "ProbeTarget",
    "RunMode",
    "RunModeDescriptor",
    "RunOptions",
    "VerbosityMode",
    "RunModeRegistry",
    "Console",
    "Reporter",
    "ReportGenerator",
    "RunReport",
    "Dispatcher",
    "resolve_mode",
    "TranscriptExporter",
    "TranscriptSession",
]
