"""Usage text, deep help and the run-mode listing."""

from typing import TYPE_CHECKING

from .models import ALL_SEQUENCE

if TYPE_CHECKING:
    from .registry import RunModeRegistry

PROG = "hpcdiag"

OPTIONS = [
    ("-RunMode <mode>", "Run mode to execute (default All, see -ListModules)"),
    ("-SchedulerNode <host>", "Scheduler to target (default CCP_SCHEDULER or localhost)"),
    ("-Detailed", "Verbose output: full tables, timings and reachability sweeps"),
    ("-CliTips", "Print reference commands for each mode without probing"),
    ("-FixNetworkIssues", "NetworkFix: reset the stack, flush DNS and open HPC ports"),
    ("-Force", "Skip the confirmation prompt for -FixNetworkIssues"),
    ("-TestHpcNodePorts", "NetworkFix: also test the HPC ports"),
    ("-Port <n>", "Single port for PortTest"),
    ("-Ports <list>", "Ports for PortTest, e.g. 443,5800 or 9090-9096"),
    ("-JobId <n>", "Job for JobDetails (runs JobDetails when no mode is given)"),
    ("-NodeName <name>", "Node for NodeDetails (runs NodeDetails when no mode is given)"),
    ("-DaysBack <n>", "Node history window in days (default 7)"),
    ("-JobCount <n>", "Jobs shown by JobHistory (default 20)"),
    ("-MetricStartDate <date>", "Metric history start (default 7 days ago)"),
    ("-MetricEndDate <date>", "Metric history end (default now)"),
    ("-MetricOutputPath <path>", "CSV written by MetricValueHistory"),
    ("-ClientCertThumbprint <tp>", "Client certificate for CommunicationTest"),
    ("-ClientCertPfxPath <path>", "PFX file with the client certificate"),
    ("-ClientCertPfxPassword <pw>", "Password of the PFX file"),
    ("-ExportToFile", "Mirror all output to -ReportFile"),
    ("-ReportFile <path>", "Transcript path (default report.log)"),
    ("-ConfigFile <path>", "JSON settings file (default ~/.hpcdiag/config.json)"),
    ("-LogLevel <level>", "Diagnostic log level on stderr (default WARNING)"),
    ("-LogFile <path>", "Also write diagnostic logs to a file"),
    ("-ShowHelp", "Show this help"),
    ("-DeepHelp", "Show every run mode with examples"),
]

EXAMPLES = [
    (f"{PROG}", "Run every check against the default scheduler"),
    (f"{PROG} NodeValidation headnode01 -Detailed", "Validate nodes with a reachability sweep"),
    (f"{PROG} -RunMode PortTest -SchedulerNode headnode01 -Ports 443,5800-5802", "Test selected ports"),
    (f"{PROG} -JobId 1234", "Show the tasks of job 1234"),
    (f"{PROG} -RunMode MetricValueHistory -MetricStartDate 2024-01-01 -MetricEndDate 2024-01-07",
     "Export one week of metric history"),
    (f"{PROG} All -CliTips", "Print reference commands only"),
    (f"{PROG} All -ExportToFile -ReportFile C:\\Temp\\hpc.log", "Save the run to a file"),
]


class HelpSystem:
    """Help text built from the registry. Never probes anything."""

    def __init__(self, registry: "RunModeRegistry"):
        self.registry = registry

    def usage(self) -> str:
        lines = [
            f"Usage: {PROG} [-RunMode <mode>] [-SchedulerNode <host>] [options]",
            f"       {PROG} <mode> [<host>] [options]",
            "",
            "Options:",
        ]
        lines += [f"  {flag:<30}{text}" for flag, text in OPTIONS]
        lines += ["", f"Run '{PROG} -ListModules' for the run modes or '{PROG} -DeepHelp' for details."]
        return "\n".join(lines)

    def list_modes_text(self) -> str:
        lines = ["Run modes:"]
        for descriptor in self.registry.list_modes():
            lines.append(f"  {descriptor.name:<20}{descriptor.description} [{descriptor.source_tag}]")
        return "\n".join(lines)

    def deep_help(self) -> str:
        lines = [self.usage(), "", "Run modes in detail:"]
        for descriptor in self.registry.list_modes():
            lines.append("")
            lines.append(f"  {descriptor.name}")
            lines.append(f"      {descriptor.description}")
            lines.append(f"      Sources: {descriptor.source_tag}")

        lines += ["", "All runs, in order:"]
        lines.append("  " + ", ".join(mode.value for mode in ALL_SEQUENCE))
        lines += [
            "",
            "Output tiers:",
            "  default     counts, pass/fail lines and up to 5 sample rows",
            "  -Detailed   everything above plus full tables, timings and sweeps",
            "  (the All summary counts only the lines printed at the chosen tier)",
            "  -CliTips    reference commands only, nothing is probed",
            "",
            "Exit codes:",
            "  0  success or help",
            "  1  unknown mode, missing or invalid input, declined confirmation, cancelled",
            "",
            "Examples:",
        ]
        for command, text in EXAMPLES:
            lines.append(f"  {command}")
            lines.append(f"      {text}")
        return "\n".join(lines)
