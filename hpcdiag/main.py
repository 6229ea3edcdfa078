"""
HPC Pack Cluster Diagnostic Tool

Runs read-only diagnostics against an HPC Pack cluster: host, services,
database, network, scheduler, jobs, metrics, certificates and health.

Usage:
    hpcdiag [-RunMode <mode>] [-SchedulerNode <host>] [options]

Or:
    python -m hpcdiag <mode> [<host>] [options]
"""

import signal
import sys
import threading
from pathlib import Path
from typing import List, Optional

from .cli import build_options, build_target, parse_args, verbosity_for
from .diagnostics import (
    Console,
    Dispatcher,
    HelpSystem,
    RunModeRegistry,
    TranscriptExporter,
    resolve_mode,
)
from .errors import UnknownRunMode, ValidationError
from .utils import Config, get_logger, setup_logging

logger = get_logger(__name__)

USAGE_HINT = "Run 'hpcdiag -ShowHelp' for usage."


def confirm_prompt(prompt: str) -> bool:
    """Ask on the terminal; anything but yes, or no terminal at all, declines."""
    if not sys.stdin or not sys.stdin.isatty():
        return False
    try:
        answer = input(f"{prompt} [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ('y', 'yes')


def _install_interrupt_handler(dispatcher: Dispatcher):
    """First Ctrl+C cancels after the current module, a second one aborts."""
    if threading.current_thread() is not threading.main_thread():
        return None

    def handler(signum, frame):
        print("\nCancelling after the current check, press Ctrl+C again to abort", file=sys.stderr)
        dispatcher.cancel()
        signal.signal(signal.SIGINT, signal.default_int_handler)

    return signal.signal(signal.SIGINT, handler)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point. Returns the process exit code."""
    try:
        args = parse_args(argv)
    except ValidationError as e:
        print(f"Error: {e}", file=sys.stderr)
        print(USAGE_HINT, file=sys.stderr)
        return 1

    try:
        setup_logging(args.log_level, args.log_file)
    except (ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    config = Config.load(args.config_file)
    registry = RunModeRegistry()
    help_system = HelpSystem(registry)

    if args.deep_help:
        print(help_system.deep_help())
        return 0
    if args.show_help:
        print(help_system.usage())
        return 0

    try:
        target = build_target(args, config)
        mode = resolve_mode(args.mode_name, target)
    except UnknownRunMode as e:
        print(f"Error: {e}", file=sys.stderr)
        print(help_system.list_modes_text(), file=sys.stderr)
        return 1
    except ValidationError as e:
        print(f"Error: {e}", file=sys.stderr)
        print(USAGE_HINT, file=sys.stderr)
        return 1

    console = Console()
    dispatcher = Dispatcher(config, registry, console=console, confirm=confirm_prompt)
    previous_handler = _install_interrupt_handler(dispatcher)
    exporter = TranscriptExporter(console)
    report_path = Path(args.report_file) if args.export_to_file else None

    try:
        with exporter.session(report_path):
            exit_code = dispatcher.run(mode, target, verbosity_for(args), build_options(args))
    except ValidationError as e:
        print(f"Error: {e}", file=sys.stderr)
        print(USAGE_HINT, file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error: cannot write report: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nAborted", file=sys.stderr)
        return 1
    finally:
        if previous_handler is not None:
            signal.signal(signal.SIGINT, previous_handler)

    if report_path is not None:
        print(f"Report saved to {report_path.resolve()}", file=sys.stderr)
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
