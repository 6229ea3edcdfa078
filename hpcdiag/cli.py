"""Command-line parsing."""

import argparse
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Mapping, Optional, Tuple

from .diagnostics import ProbeTarget, RunOptions, VerbosityMode
from .errors import ValidationError
from .utils import Config

DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M",
    "%Y-%m-%dT%H:%M:%S",
    "%m/%d/%Y",
    "%m/%d/%Y %H:%M",
)


class ArgumentParser(argparse.ArgumentParser):
    """Raises ValidationError instead of exiting the process."""

    def error(self, message):
        raise ValidationError(message)


def parse_date(value: str) -> datetime:
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value.strip(), fmt)
        except ValueError:
            continue
    raise argparse.ArgumentTypeError(f"invalid date '{value}', use YYYY-MM-DD or 'YYYY-MM-DD HH:MM'")


def parse_ports(tokens: Iterable[str]) -> Tuple[int, ...]:
    """
    Expand port tokens such as '443', '80,443' and '9000-9010'.

    Order is preserved and duplicates dropped.
    """
    ports: List[int] = []
    for token in tokens:
        for part in str(token).split(','):
            part = part.strip()
            if not part:
                continue
            try:
                if '-' in part:
                    low, high = (int(p) for p in part.split('-', 1))
                    if low > high:
                        raise ValidationError(f"Invalid port range {part}")
                    values = range(low, high + 1)
                else:
                    values = [int(part)]
            except ValueError:
                raise ValidationError(f"Invalid port '{part}'")
            for port in values:
                if not 1 <= port <= 65535:
                    raise ValidationError(f"Port out of range: {port}")
                if port not in ports:
                    ports.append(port)
    return tuple(ports)


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(
        prog="hpcdiag",
        description="HPC Pack cluster diagnostics",
        add_help=False,
        allow_abbrev=False,
    )
    parser.add_argument("mode", nargs="?", help="Run mode")
    parser.add_argument("host", nargs="?", help="Scheduler node")

    parser.add_argument("-RunMode", dest="run_mode")
    parser.add_argument("-SchedulerNode", dest="scheduler")
    parser.add_argument("-ListModules", "-ListRunModes", dest="list_modules", action="store_true")

    parser.add_argument("-FixNetworkIssues", dest="fix_network_issues", action="store_true")
    parser.add_argument("-Force", dest="force", action="store_true")
    parser.add_argument("-TestHpcNodePorts", dest="test_node_ports", action="store_true")
    parser.add_argument("-Port", dest="port", type=int)
    parser.add_argument("-Ports", dest="ports", nargs="+")

    parser.add_argument("-JobId", dest="job_id", type=int)
    parser.add_argument("-NodeName", dest="node_name")
    parser.add_argument("-DaysBack", dest="days_back", type=int, default=7)
    parser.add_argument("-JobCount", dest="job_count", type=int)

    parser.add_argument("-MetricStartDate", dest="metric_start", type=parse_date)
    parser.add_argument("-MetricEndDate", dest="metric_end", type=parse_date)
    parser.add_argument("-MetricOutputPath", dest="metric_output_path", default="MetricValueHistory.csv")

    parser.add_argument("-ClientCertThumbprint", dest="client_cert_thumbprint")
    parser.add_argument("-ClientCertPfxPath", dest="client_cert_pfx_path")
    parser.add_argument("-ClientCertPfxPassword", dest="client_cert_pfx_password")

    parser.add_argument("-ExportToFile", dest="export_to_file", action="store_true")
    parser.add_argument("-ReportFile", dest="report_file", default="report.log")

    parser.add_argument("-CliTips", dest="cli_tips", action="store_true")
    parser.add_argument("-Detailed", dest="detailed", action="store_true")
    parser.add_argument("-ShowHelp", "-h", "-?", dest="show_help", action="store_true")
    parser.add_argument("-DeepHelp", dest="deep_help", action="store_true")

    parser.add_argument("-ConfigFile", dest="config_file", type=Path)
    parser.add_argument("-LogLevel", dest="log_level", default="WARNING")
    parser.add_argument("-LogFile", dest="log_file", type=Path)
    return parser


def _flag_names(parser: argparse.ArgumentParser) -> Mapping[str, str]:
    names = {}
    for action in parser._actions:
        for option in action.option_strings:
            names[option.lower()] = option
    return names


def normalize_flags(argv: Iterable[str], parser: argparse.ArgumentParser) -> List[str]:
    """Match '-detailed' or '--Detailed' to the declared '-Detailed'."""
    names = _flag_names(parser)
    result = []
    for token in argv:
        if token.startswith('-') and not token[1:2].isdigit():
            key = '-' + token.lstrip('-').lower()
            token = names.get(key, token)
        result.append(token)
    return result


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Raises:
        ValidationError: unknown option or malformed value
    """
    parser = build_parser()
    if argv is None:
        argv = sys.argv[1:]
    args = parser.parse_args(normalize_flags(argv, parser))

    if args.run_mode and args.mode and args.host is None:
        # "-RunMode X host" leaves the host in the mode slot
        args.host, args.mode = args.mode, None
    if args.run_mode and args.mode:
        raise ValidationError(f"Run mode given twice: {args.mode} and {args.run_mode}")
    args.mode_name = args.run_mode or args.mode
    if args.list_modules and not args.mode_name:
        args.mode_name = "ListModules"
    return args


def resolve_scheduler(args: argparse.Namespace, environ: Mapping[str, str] = os.environ) -> str:
    return args.scheduler or args.host or environ.get("CCP_SCHEDULER") or "localhost"


def build_target(args: argparse.Namespace, config: Config,
                 environ: Mapping[str, str] = os.environ) -> ProbeTarget:
    """
    Raises:
        ValidationError: inconsistent dates, ports or counts
    """
    ports = parse_ports(args.ports or [])
    if args.port is not None:
        ports = parse_ports([str(args.port)]) + tuple(p for p in ports if p != args.port)

    target = ProbeTarget(
        scheduler=resolve_scheduler(args, environ),
        ports=ports,
        start_date=args.metric_start,
        end_date=args.metric_end,
        job_id=args.job_id,
        node_name=args.node_name,
        days_back=args.days_back,
        job_count=args.job_count if args.job_count is not None else config.job_count,
        metric_output_path=args.metric_output_path,
    )
    # A lone -MetricStartDate is checked against the default end date (now)
    target.metric_window()
    return target


def build_options(args: argparse.Namespace) -> RunOptions:
    return RunOptions(
        fix_network_issues=args.fix_network_issues,
        test_node_ports=args.test_node_ports,
        force=args.force,
        client_cert_thumbprint=args.client_cert_thumbprint,
        client_cert_pfx_path=args.client_cert_pfx_path,
        client_cert_pfx_password=args.client_cert_pfx_password,
    )


def verbosity_for(args: argparse.Namespace) -> VerbosityMode:
    if args.cli_tips:
        return VerbosityMode.TIPS_ONLY
    if args.detailed:
        return VerbosityMode.VERBOSE
    return VerbosityMode.CONCISE
