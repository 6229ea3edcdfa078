"""Cluster-wide checks through the scheduler management API."""

import time
from collections import Counter
from typing import List, Optional

from ...cluster import ClusterNode, NodeRole, classify_node, role_breakdown
from ..context import CheckContext
from ..models import CheckStatus, RunMode
from .base import CheckModule, fmt_counts, fmt_time, render_sweep


def fetch_nodes(ctx: CheckContext) -> Optional[List[ClusterNode]]:
    """Node list, or None when the scheduler could not be queried."""
    outcome = ctx.probe("Get-HpcNode", ctx.adapters.cluster.list_nodes)
    return outcome.value if outcome.ok else None


def _short(name: str) -> str:
    return name.split('.')[0].lower()


class CommandTestCheck(CheckModule):
    mode = RunMode.COMMAND_TEST
    description = "Runs each read-only HPC cmdlet once and reports pass or fail"
    source_tag = "HPC PowerShell"
    tips = [
        ("Import-Module Microsoft.Hpc", "Load the HPC PowerShell module"),
        ("Get-HpcClusterOverview -Scheduler <scheduler>", "Headline cluster counters"),
        ("Get-HpcNode -Scheduler <scheduler>", "All nodes with state and health"),
        ("Get-HpcJob -State All -Scheduler <scheduler>", "Jobs in every state"),
        ("Get-HpcNodeTemplate; Get-HpcGroup; Get-HpcMetric", "Templates, groups and metrics"),
    ]

    def execute(self, ctx: CheckContext) -> None:
        out = ctx.out
        cluster = ctx.adapters.cluster

        module = ctx.probe("HPC PowerShell module", cluster.check_available)
        if not module.ok:
            return
        out.result("HPC PowerShell module", CheckStatus.OK, f"version {module.value}")

        commands = [
            ("Get-HpcClusterOverview", cluster.get_cluster_overview, ()),
            ("Get-HpcNode", cluster.list_nodes, ()),
            ("Get-HpcJob", cluster.list_jobs, (1,)),
            ("Get-HpcNodeTemplate", cluster.get_node_templates, ()),
            ("Get-HpcGroup", cluster.get_groups, ()),
            ("Get-HpcMetric", cluster.list_metrics, ()),
            ("Get-HpcClusterProperty", cluster.get_cluster_properties, ()),
        ]

        passed = 0
        for name, fn, args in commands:
            if ctx.cancelled:
                break
            start = time.perf_counter()
            outcome = ctx.probe(name, fn, *args)
            elapsed = (time.perf_counter() - start) * 1000
            if outcome.ok:
                passed += 1
                value = outcome.value
                count = len(value) if isinstance(value, list) else 1
                out.result(name, CheckStatus.OK, f"{count} records")
            out.detail(f"{name} took {elapsed:.0f} ms")

        out.line(f"{passed}/{len(commands)} commands succeeded")


class NodeValidationCheck(CheckModule):
    mode = RunMode.NODE_VALIDATION
    description = "Node count, state, health and roles with a verbose reachability sweep"
    source_tag = "HPC PowerShell, ping"
    tips = [
        ("Get-HpcNode | Group-Object NodeState", "Nodes per state"),
        ("Get-HpcNode -HealthState Error,Warning", "Nodes that are not healthy"),
        ("Set-HpcNodeState -Name <node> -State online", "Bring a node online"),
    ]

    def execute(self, ctx: CheckContext) -> None:
        out = ctx.out
        nodes = fetch_nodes(ctx)
        if nodes is None:
            return

        out.line(f"{len(nodes)} nodes")
        if not nodes:
            out.result("Nodes", CheckStatus.WARN, "scheduler returned no nodes")
            return

        online = [n for n in nodes if n.is_online]
        healthy = [n for n in nodes if n.is_healthy]
        sample = ctx.config.sample_rows

        offline = [n.name for n in nodes if not n.is_online]
        if offline:
            out.result("Online", CheckStatus.WARN,
                       f"{len(online)}/{len(nodes)} online, offline: {', '.join(offline[:sample])}")
        else:
            out.result("Online", CheckStatus.OK, f"{len(online)}/{len(nodes)} online")

        unhealthy = [n.name for n in nodes if not n.is_healthy]
        if unhealthy:
            out.result("Health", CheckStatus.WARN,
                       f"{len(healthy)}/{len(nodes)} healthy, unhealthy: {', '.join(unhealthy[:sample])}")
        else:
            out.result("Health", CheckStatus.OK, f"{len(healthy)}/{len(nodes)} healthy")

        scheduler = ctx.target.scheduler
        roles = Counter(classify_node(n, scheduler).value for n in nodes)
        out.line(f"Roles: {fmt_counts(roles)}")

        rows = [(n.name, n.state, n.health, classify_node(n, scheduler).value) for n in nodes]
        out.table(["Name", "State", "Health", "Role"], rows, [24, 12, 10, 12])

        if ctx.verbose:
            render_sweep(ctx, [n.name for n in nodes])


class ClusterMetadataCheck(CheckModule):
    mode = RunMode.CLUSTER_METADATA
    description = "Cluster overview counters, scheduler properties and node groups"
    source_tag = "HPC PowerShell"
    tips = [
        ("Get-HpcClusterOverview", "Cluster name, version and counters"),
        ("Get-HpcClusterProperty", "Scheduler configuration properties"),
        ("Get-HpcGroup", "Node groups"),
    ]

    def execute(self, ctx: CheckContext) -> None:
        out = ctx.out
        cluster = ctx.adapters.cluster

        overview = ctx.probe("Get-HpcClusterOverview", cluster.get_cluster_overview)
        if overview.unavailable:
            return
        if overview.ok:
            o = overview.value
            out.result("Cluster", CheckStatus.OK, f"{o.name or ctx.target.scheduler} version {o.version or '?'}")
            out.line(f"Nodes: {o.total_nodes} total, {o.online_nodes} online, {o.offline_nodes} offline")
            out.line(f"Jobs: {o.running_jobs} running, {o.queued_jobs} queued")
            for key, value in sorted(o.extra.items()):
                out.detail(f"{key}: {value}")

        properties = ctx.probe("Get-HpcClusterProperty", cluster.get_cluster_properties)
        if properties.ok:
            out.line(f"{len(properties.value)} scheduler properties")
            rows = [(p.name, p.value) for p in properties.value]
            out.table(["Property", "Value"], rows, [36, 50])

        groups = ctx.probe("Get-HpcGroup", cluster.get_groups)
        if groups.ok:
            names = [g.name for g in groups.value]
            out.line(f"{len(names)} node groups")
            for group in groups.value:
                out.detail(f"{group.name}: {group.description or '-'}")


class NodeTemplatesCheck(CheckModule):
    mode = RunMode.NODE_TEMPLATES
    description = "Node templates defined on the cluster"
    source_tag = "HPC PowerShell"
    tips = [
        ("Get-HpcNodeTemplate", "List node templates"),
        ("Export-HpcNodeTemplate -Name <template> -Path template.xml", "Export a template for review"),
    ]

    def execute(self, ctx: CheckContext) -> None:
        out = ctx.out
        outcome = ctx.probe("Get-HpcNodeTemplate", ctx.adapters.cluster.get_node_templates)
        if not outcome.ok:
            return

        templates = outcome.value
        if not templates:
            out.result("Node templates", CheckStatus.WARN, "none defined")
            return
        out.result("Node templates", CheckStatus.OK, f"{len(templates)} defined")
        out.line(f"Types: {fmt_counts(Counter(t.type or 'Unknown' for t in templates))}")
        rows = [(t.name, t.type, t.description) for t in templates]
        out.table(["Name", "Type", "Description"], rows, [30, 18, 40])


class ClusterTopologyCheck(CheckModule):
    mode = RunMode.CLUSTER_TOPOLOGY
    description = "Nodes grouped into head, broker and compute roles"
    source_tag = "HPC PowerShell, ping"
    tips = [
        ("Get-HpcNode -GroupName HeadNodes", "Head nodes"),
        ("Get-HpcNode -GroupName WCFBrokerNodes", "Broker nodes"),
        ("Get-HpcNode -GroupName ComputeNodes", "Compute nodes"),
    ]

    def execute(self, ctx: CheckContext) -> None:
        out = ctx.out
        nodes = fetch_nodes(ctx)
        if nodes is None:
            return
        if not nodes:
            out.result("Topology", CheckStatus.WARN, "no nodes found")
            return

        groups = role_breakdown(nodes, ctx.target.scheduler)
        heads = groups[NodeRole.HEAD]
        if heads:
            out.result("Head nodes", CheckStatus.OK, ", ".join(n.name for n in heads))
        else:
            out.result("Head nodes", CheckStatus.WARN, "no head node identified")

        sample = ctx.config.sample_rows
        for role in (NodeRole.BROKER, NodeRole.COMPUTE, NodeRole.UNKNOWN):
            members = groups[role]
            names = ", ".join(n.name for n in members[:sample])
            out.line(f"{role.value}: {len(members)}" + (f" ({names})" if names else ""))
            if len(members) > sample:
                for node in members[sample:]:
                    out.detail(f"{role.value}: {node.name}")

        out.line(f"Templates: {fmt_counts(Counter(n.template or 'None' for n in nodes))}")

        if ctx.verbose:
            # The node cap applies to the whole cluster, not to each role
            sweep = render_sweep(ctx, [n.name for n in nodes])
            if not sweep.skipped:
                reached = {r.host for r in sweep.reachable}
                for role in NodeRole:
                    members = groups[role]
                    if members:
                        up = sum(1 for n in members if n.name in reached)
                        out.detail(f"{role.value} reachability: {up}/{len(members)}")


class NodeDetailsCheck(CheckModule):
    mode = RunMode.NODE_DETAILS
    description = "Properties, name resolution and recent history of one node"
    source_tag = "HPC PowerShell, DNS, ping"
    requires = ("node_name",)
    tips = [
        ("Get-HpcNode -Name <node> | Format-List *", "Every property of a node"),
        ("Resolve-DnsName <node>", "Forward lookup of the node name"),
        ("Get-HpcNodeStateHistory -Name <node>", "State changes of the node"),
    ]

    def execute(self, ctx: CheckContext) -> None:
        out = ctx.out
        name = ctx.target.node_name

        nodes = fetch_nodes(ctx)
        if nodes is None:
            return
        node = next((n for n in nodes if _short(n.name) == _short(name)), None)
        if node is None:
            out.result(f"Node {name}", CheckStatus.ERROR, "not known to the scheduler")
            return

        status = CheckStatus.OK if node.is_online and node.is_healthy else CheckStatus.WARN
        out.result(f"Node {node.name}", status, f"{node.state}, health {node.health}")
        out.line(f"Role: {classify_node(node, ctx.target.scheduler).value}")
        out.line(f"Template: {node.template or '-'}, Groups: {node.groups or '-'}")
        out.line(f"Cores: {node.cores if node.cores is not None else '?'}, "
                 f"Memory: {node.memory_mb if node.memory_mb is not None else '?'} MB")

        lookup = ctx.probe("DNS lookup", ctx.adapters.dns.resolve_dns, node.name)
        if lookup.ok:
            if lookup.value.success:
                out.result("DNS lookup", CheckStatus.OK, ", ".join(lookup.value.answers))
                if ctx.verbose:
                    for address in lookup.value.answers:
                        reverse = ctx.probe(f"Reverse {address}", ctx.adapters.dns.reverse_lookup, address)
                        if reverse.ok:
                            out.detail(f"{address} -> {', '.join(reverse.value.answers) or reverse.value.error}")
            else:
                out.result("DNS lookup", CheckStatus.ERROR, lookup.value.error or "no answer")

        ping = ctx.probe("Ping", ctx.adapters.network.ping, node.name)
        if ping.ok:
            if ping.value.is_reachable:
                out.result("Ping", CheckStatus.OK, "reply received")
            else:
                out.result("Ping", CheckStatus.ERROR, ping.value.error or "no reply")

        start, end = ctx.target.history_window()
        history = ctx.probe("Get-HpcNodeStateHistory", ctx.adapters.cluster.get_node_state_history,
                            start, end, node.name)
        if history.ok:
            events = history.value
            out.line(f"{len(events)} state changes in the last {ctx.target.days_back} days")
            out.table(["Time", "Event"], [(fmt_time(e.time), e.event) for e in events], [18, 40])
