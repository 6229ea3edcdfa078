"""Local host checks: system facts, services and node configuration."""

from collections import Counter

from ...host import ConfigStore, mask_secrets
from ..context import CheckContext
from ..models import CheckStatus, RunMode
from .base import CheckModule, fmt_counts, fmt_time


class SystemInfoCheck(CheckModule):
    mode = RunMode.SYSTEM_INFO
    description = "Host facts, installed HPC Pack role and PowerShell module availability"
    source_tag = "psutil, registry, HPC PowerShell"
    tips = [
        ("Get-ComputerInfo | Select-Object OsName, OsVersion, CsProcessors",
         "Operating system, version and processors of this host"),
        ("Get-ItemProperty HKLM:\\SOFTWARE\\Microsoft\\HPC",
         "Installed HPC Pack role, install directory and cluster name"),
        ("Get-Module -ListAvailable Microsoft.Hpc",
         "Confirm the HPC PowerShell module is installed"),
        ("$env:CCP_SCHEDULER",
         "Scheduler the HPC tools target by default"),
    ]

    def execute(self, ctx: CheckContext) -> None:
        out = ctx.out
        adapters = ctx.adapters

        facts = ctx.probe("Host facts", adapters.perf.host_facts)
        if facts.ok:
            host = facts.value
            out.result("Host", CheckStatus.OK, f"{host.hostname} ({host.os})")
            out.line(f"Processors: {host.cpu_count}, Memory: {host.total_memory_mb / 1024:.1f} GB")
            out.detail(f"Last boot: {fmt_time(host.boot_time)}")
            out.detail(f"Python: {host.python_version}")

        cluster_config = ctx.probe("HPC Pack registry", adapters.config_store.read_cluster_config)
        if cluster_config.ok:
            roles = ConfigStore.installed_roles(cluster_config.value)
            if roles:
                out.result("Installed role", CheckStatus.OK, ", ".join(roles))
            else:
                out.result("Installed role", CheckStatus.WARN, "no HPC Pack role recorded in the registry")
            out.detail(f"Install directory: {cluster_config.value.install_dir or '-'}")
            out.detail(f"Cluster name: {cluster_config.value.scheduler or '-'}")

        out.line(f"Target scheduler: {ctx.target.scheduler}")

        module = ctx.probe("HPC PowerShell module", adapters.cluster.check_available)
        if module.ok:
            out.result("HPC PowerShell module", CheckStatus.OK, f"version {module.value}")


class ServicesStatusCheck(CheckModule):
    mode = RunMode.SERVICES_STATUS
    description = "State and start mode of HPC Pack, MS-MPI and SQL services"
    source_tag = "Windows service manager"
    tips = [
        ("Get-Service -Name Hpc* | Sort-Object Status",
         "List HPC Pack services with their state"),
        ("Get-CimInstance Win32_Service -Filter \"Name LIKE 'Hpc%'\" | Select-Object Name, StartMode, State",
         "Start mode of each HPC Pack service"),
        ("Start-Service -Name HpcScheduler",
         "Start a stopped service (run elevated)"),
    ]

    def execute(self, ctx: CheckContext) -> None:
        out = ctx.out
        outcome = ctx.probe("Service enumeration", ctx.adapters.services.find, ctx.config.service_filters)
        if not outcome.ok:
            return

        services = outcome.value
        if not services:
            out.result("Services", CheckStatus.WARN,
                       f"no services matching {', '.join(ctx.config.service_filters)}")
            return

        running = [s for s in services if s.is_running]
        stopped = [s for s in services if not s.is_running]
        out.line(f"{len(services)} services: {len(running)} running, {len(stopped)} stopped")
        out.line(f"Start modes: {fmt_counts(Counter(s.start_type for s in services))}")

        stalled = [s for s in stopped if s.start_type == "automatic"]
        if stalled:
            names = ", ".join(s.name for s in stalled[:ctx.config.sample_rows])
            out.result("Automatic services", CheckStatus.WARN, f"{len(stalled)} not running ({names})")
        else:
            out.result("Automatic services", CheckStatus.OK, "all running")

        rows = [(s.name, s.status, s.start_type, s.display_name) for s in services]
        out.table(["Name", "Status", "Start", "Display name"], rows, [28, 12, 10, 40])

        for start_type, count in sorted(Counter(s.start_type for s in stopped).items()):
            out.detail(f"Stopped with start mode {start_type}: {count}")


class NodeConfigCheck(CheckModule):
    mode = RunMode.NODE_CONFIG
    description = "Local cluster settings from the registry and network interfaces"
    source_tag = "registry, psutil"
    tips = [
        ("Get-ItemProperty HKLM:\\SOFTWARE\\Microsoft\\HPC",
         "Cluster name, install directory and SSL thumbprint"),
        ("Get-ItemProperty HKLM:\\SOFTWARE\\Microsoft\\HPC\\Security",
         "Scheduler database connection strings"),
        ("Get-NetIPAddress | Format-Table InterfaceAlias, IPAddress",
         "Addresses bound on each interface"),
    ]

    def execute(self, ctx: CheckContext) -> None:
        out = ctx.out

        outcome = ctx.probe("HPC Pack registry", ctx.adapters.config_store.read_cluster_config)
        if outcome.ok:
            config = outcome.value
            out.line(f"Installed role: {config.installed_role or '-'}")
            out.line(f"Cluster name: {config.scheduler or '-'}")
            out.line(f"Install directory: {config.install_dir or '-'}")
            if config.cert_thumbprint:
                out.result("SSL thumbprint", CheckStatus.OK, config.cert_thumbprint)
            else:
                out.result("SSL thumbprint", CheckStatus.WARN, "not configured")
            if config.connection_string:
                out.result("Scheduler database", CheckStatus.OK, "connection string configured")
                out.detail(f"Connection string: {mask_secrets(config.connection_string)}")
            else:
                out.result("Scheduler database", CheckStatus.WARN, "no connection string")

        interfaces = ctx.probe("Network interfaces", ctx.adapters.network.local_addresses)
        if interfaces.ok:
            bound = {name: addrs for name, addrs in interfaces.value.items() if addrs}
            out.line(f"{len(bound)} interfaces with addresses")
            rows = [(name, ", ".join(addrs)) for name, addrs in bound.items()]
            out.detail_table(["Interface", "Addresses"], rows, [30, 60])
