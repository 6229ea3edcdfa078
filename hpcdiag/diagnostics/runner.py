"""Dispatcher: resolves a run mode and runs its check modules."""

import threading
import time
from datetime import datetime
from typing import Callable, Optional

from ..errors import ConfirmationDeclined, ValidationError
from ..utils import Config, get_logger
from .context import CheckContext, ProbeAdapters
from .help import HelpSystem
from .models import (
    ALL_SEQUENCE,
    CheckStatus,
    ModuleSummary,
    ProbeTarget,
    RunMode,
    RunOptions,
    VerbosityMode,
)
from .registry import RunModeRegistry
from .render import Console, Reporter
from .reports import ReportGenerator, RunReport

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1

# Command-line flag that supplies each ProbeTarget field
REQUIRED_FLAGS = {
    "job_id": "-JobId",
    "node_name": "-NodeName",
}


def resolve_mode(name: Optional[str], target: ProbeTarget) -> RunMode:
    """
    Run mode for a command line.

    Without a mode, -JobId selects JobDetails, -NodeName selects NodeDetails
    and anything else runs All.
    """
    if name:
        return RunModeRegistry.resolve(name)
    if target.job_id is not None:
        return RunMode.JOB_DETAILS
    if target.node_name:
        return RunMode.NODE_DETAILS
    return RunMode.ALL


class Dispatcher:
    """
    Runs one run mode, or the fixed All sequence, with per-module isolation.
    """

    def __init__(
        self,
        config: Config,
        registry: Optional[RunModeRegistry] = None,
        adapters: Optional[ProbeAdapters] = None,
        console: Optional[Console] = None,
        confirm: Optional[Callable[[str], bool]] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.config = config
        self.registry = registry or RunModeRegistry()
        self.adapters = adapters
        self.console = console or Console()
        self.confirm = confirm
        self.cancel_event = cancel_event or threading.Event()
        self.last_report: Optional[RunReport] = None

    def cancel(self) -> None:
        """Stop after the module currently running."""
        self.cancel_event.set()

    def validate(self, mode: RunMode, target: ProbeTarget) -> None:
        """Raise ValidationError when a single-target mode lacks its input."""
        if mode is RunMode.ALL or mode is RunMode.LIST_MODULES:
            return
        for field_name in self.registry.handler(mode).requires:
            if getattr(target, field_name) in (None, ""):
                flag = REQUIRED_FLAGS.get(field_name, field_name)
                raise ValidationError(f"{mode.value} requires {flag}")

    def run(
        self,
        mode: RunMode,
        target: ProbeTarget,
        verbosity: VerbosityMode = VerbosityMode.CONCISE,
        options: Optional[RunOptions] = None,
    ) -> int:
        """
        Run a mode and return the process exit code.

        Raises:
            ValidationError: required input for the mode is missing
        """
        if mode is RunMode.LIST_MODULES:
            for text in HelpSystem(self.registry).list_modes_text().splitlines():
                self.console.write_line(text)
            return EXIT_OK

        tips_only = verbosity is VerbosityMode.TIPS_ONLY
        if not tips_only:
            self.validate(mode, target)

        options = options or RunOptions()
        adapters = None
        if not tips_only:
            if self.adapters is None:
                self.adapters = ProbeAdapters.create(self.config, target.scheduler)
            adapters = self.adapters

        sequence = ALL_SEQUENCE if mode is RunMode.ALL else (mode,)
        report = RunReport(timestamp=datetime.now(), scheduler=target.scheduler)
        self.last_report = report
        start = time.perf_counter()

        logger.info(f"Running {mode.value} against {target.scheduler} ({verbosity.value})")
        for step in sequence:
            if self.cancel_event.is_set():
                report.cancelled = True
                break

            summary = ModuleSummary(mode=step)
            report.modules.append(summary)
            out = Reporter(self.console, verbosity, summary, sample_rows=self.config.sample_rows)
            ctx = CheckContext(
                target=target,
                options=options,
                verbosity=verbosity,
                config=self.config,
                adapters=adapters,
                out=out,
                cancel_event=self.cancel_event,
                confirm=self.confirm,
            )

            module_start = time.perf_counter()
            try:
                self.registry.handler(step).run(ctx)
            except ConfirmationDeclined as e:
                logger.warning(f"{step.value}: {e}")
                report.declined = True
            except Exception as e:
                logger.error(f"Module {step.value} failed: {e}", exc_info=True)
                summary.crashed = True
                out.result(step.value, CheckStatus.ERROR, f"module failed: {type(e).__name__}: {e}")
            finally:
                summary.duration_ms = (time.perf_counter() - module_start) * 1000

        if self.cancel_event.is_set():
            report.cancelled = True
        report.duration_ms = (time.perf_counter() - start) * 1000

        if mode is RunMode.ALL and not tips_only:
            ReportGenerator(self.console).render(report)

        if report.cancelled:
            self.console.write_line()
            self.console.write_line("Cancelled by user")
            logger.info("Run cancelled")
            return EXIT_FAILURE
        if report.declined:
            return EXIT_FAILURE

        logger.info(f"{mode.value} complete: {report.overall_status}")
        return EXIT_OK
