"""Network connectivity, repair and port checks."""

from typing import Sequence

from ...errors import ConfirmationDeclined
from ..context import CheckContext
from ..models import CheckStatus, RunMode
from .base import CheckModule


def probe_ports(ctx: CheckContext, host: str, ports: Sequence[int]) -> None:
    """
    One result line per port, in the order given.

    Ports left when the run is cancelled are reported as skipped.
    """
    out = ctx.out
    open_count = 0
    for port in ports:
        label = f"TCP {host}:{port}"
        if ctx.cancelled:
            out.result(label, CheckStatus.SKIPPED, "cancelled")
            continue

        try:
            scan = ctx.adapters.network.test_tcp_port(host, port)
        except Exception as e:
            out.result(label, CheckStatus.ERROR, f"{type(e).__name__}: {e}")
            continue

        if scan.is_open:
            open_count += 1
            out.result(label, CheckStatus.OK, "open")
            if scan.response_time_ms is not None:
                out.detail(f"connected in {scan.response_time_ms:.1f} ms")
        else:
            out.result(label, CheckStatus.ERROR, f"closed ({scan.error or 'no answer'})")

    out.line(f"{len(ports)} ports tested: {open_count} open, {len(ports) - open_count} closed")


class NetworkFixCheck(CheckModule):
    mode = RunMode.NETWORK_FIX
    description = "Gateway, ping and DNS checks with optional stack repair and firewall rules"
    source_tag = "ping, route, DNS, netsh"
    tips = [
        ("Get-NetRoute -DestinationPrefix 0.0.0.0/0",
         "Default gateway of this host"),
        ("Test-Connection <gateway> -Count 2",
         "Ping the gateway"),
        ("Resolve-DnsName <scheduler>",
         "Check name resolution of the scheduler"),
        ("netsh winsock reset; netsh int ip reset",
         "Reset the network stack (elevated, restart afterwards)"),
        ("New-NetFirewallRule -DisplayName 'HPC Pack TCP <port>' -Direction Inbound -Protocol TCP -LocalPort <port> -Action Allow",
         "Open an inbound HPC Pack port"),
    ]

    def execute(self, ctx: CheckContext) -> None:
        out = ctx.out
        network = ctx.adapters.network

        gateway = ctx.probe("Default gateway", network.resolve_default_gateway)
        if gateway.ok:
            if gateway.value is None:
                out.result("Default gateway", CheckStatus.WARN, "no default route")
            else:
                out.result("Default gateway", CheckStatus.OK,
                           f"{gateway.value.address} ({gateway.value.family})")
                ping = ctx.probe("Gateway ping", network.ping, gateway.value.address)
                if ping.ok:
                    if ping.value.is_reachable:
                        out.result("Gateway ping", CheckStatus.OK, "reply received")
                        if ping.value.latency_ms is not None:
                            out.detail(f"Latency: {ping.value.latency_ms:.1f} ms")
                    else:
                        out.result("Gateway ping", CheckStatus.ERROR, ping.value.error or "no reply")

        for name in ctx.config.dns_probe_names:
            lookup = ctx.probe(f"DNS {name}", ctx.adapters.dns.resolve_dns, name)
            if not lookup.ok:
                continue
            if lookup.value.success:
                out.result(f"DNS {name}", CheckStatus.OK, ", ".join(lookup.value.answers[:3]))
            else:
                out.result(f"DNS {name}", CheckStatus.ERROR, lookup.value.error or "no answer")

        servers = ctx.probe("DNS servers", ctx.adapters.dns.get_system_dns_servers)
        if servers.ok:
            out.detail(f"DNS servers: {', '.join(servers.value) or 'none'}")

        if ctx.options.fix_network_issues:
            self._repair(ctx)

        if ctx.options.test_node_ports:
            out.section(f"HPC ports on {ctx.target.scheduler}")
            probe_ports(ctx, ctx.target.scheduler, ctx.target.ports or ctx.config.hpc_ports)

    def _repair(self, ctx: CheckContext) -> None:
        out = ctx.out
        network = ctx.adapters.network
        ports = list(ctx.target.ports or ctx.config.hpc_ports)

        out.section("Repair")
        if not ctx.options.force:
            prompt = (f"Reset the network stack, flush DNS and open {len(ports)} inbound ports? "
                      "This changes system state")
            if ctx.confirm is None or not ctx.confirm(prompt):
                out.result("Repair", CheckStatus.SKIPPED, "declined")
                raise ConfirmationDeclined("network repair declined")

        reset = ctx.probe("Network stack reset", network.reset_stack)
        if reset.ok:
            out.result("Network stack reset", CheckStatus.OK, "restart required")
            for command in reset.value:
                out.detail(f"Ran: {command}")

        flush = ctx.probe("DNS cache flush", network.flush_dns)
        if flush.ok:
            out.result("DNS cache flush", CheckStatus.OK, "flushed")

        opened = 0
        for port in ports:
            rule = ctx.probe(f"Firewall rule TCP {port}", network.open_inbound_port, port)
            if rule.ok:
                opened += 1
                out.detail(f"Rule added: {rule.value}")
        out.result("Firewall rules", CheckStatus.OK if opened == len(ports) else CheckStatus.WARN,
                   f"{opened}/{len(ports)} inbound ports opened")


class PortTestCheck(CheckModule):
    mode = RunMode.PORT_TEST
    description = "TCP connect test of each HPC Pack port on the scheduler"
    source_tag = "TCP sockets"
    tips = [
        ("Test-NetConnection <scheduler> -Port 443",
         "Test one TCP port"),
        ("5800, 5802, 5969, 5970, 6729, 9087, 9090-9096 | ForEach-Object { Test-NetConnection <scheduler> -Port $_ }",
         "Test the main HPC Pack ports"),
        ("Get-NetFirewallRule -DisplayName *HPC* | Format-Table DisplayName, Enabled, Direction",
         "Firewall rules for HPC Pack"),
    ]

    def execute(self, ctx: CheckContext) -> None:
        ports = ctx.target.ports or ctx.config.hpc_ports
        probe_ports(ctx, ctx.target.scheduler, ports)
