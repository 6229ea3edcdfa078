"""Scheduler database reachability and trace guidance."""

from ...host import extract_instance_name, mask_secrets
from ..context import CheckContext
from ..models import CheckStatus, RunMode
from .base import CheckModule


class SqlTraceCheck(CheckModule):
    mode = RunMode.SQL_TRACE
    description = "Scheduler database instance, edition and deep-trace guidance"
    source_tag = "registry, SQL Server"
    tips = [
        ("Get-ItemProperty HKLM:\\SOFTWARE\\Microsoft\\HPC\\Security | Select-Object *ConnectionString",
         "Connection strings the scheduler uses"),
        ("sqlcmd -S <instance> -Q \"SELECT SERVERPROPERTY('Edition'), @@VERSION\"",
         "Confirm the instance answers and report its edition"),
        ("Get-Service -Name MSSQL*, SQLBrowser",
         "SQL Server services on the database host"),
    ]

    def execute(self, ctx: CheckContext) -> None:
        out = ctx.out

        outcome = ctx.probe("HPC Pack registry", ctx.adapters.config_store.read_cluster_config)
        if not outcome.ok:
            return

        connection_string = outcome.value.connection_string
        if not connection_string:
            out.result("Scheduler database", CheckStatus.WARN, "no connection string in the registry")
            return
        out.detail(f"Connection string: {mask_secrets(connection_string)}")

        instance = extract_instance_name(connection_string)
        if instance is None:
            out.result("SQL instance", CheckStatus.WARN, "no server in the connection string")
            return
        out.result("SQL instance", CheckStatus.OK, instance)

        info = ctx.probe("SQL Server query", ctx.adapters.sql.server_info, connection_string)
        if info.ok:
            out.result("SQL Server", CheckStatus.OK, info.value.edition)
            out.detail(f"Version: {info.value.version}")

        out.section("Deep trace")
        out.line(f"Capture a trace of {instance} with SQL Server Profiler or an Extended Events session")
        out.line("filtered to the HPC databases, then review long-running statements and deadlocks")
        out.detail(f"ODBC driver: {ctx.adapters.sql.driver}")
