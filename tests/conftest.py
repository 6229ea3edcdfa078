import io
import os
import sys
from datetime import datetime

import pytest
from unittest.mock import MagicMock

# Ensure project root is on sys.path so hpcdiag.* imports work without install
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from hpcdiag.cluster import (  # noqa: E402
    ClusterApi,
    ClusterJob,
    ClusterNode,
    ClusterOverview,
    ClusterProperty,
    ClusterTask,
    MetricInfo,
    MetricSample,
    NodeGroup,
    NodeStateEvent,
    NodeTemplate,
)
from hpcdiag.diagnostics import Console, Dispatcher, ProbeAdapters, ProbeTarget, VerbosityMode  # noqa: E402
from hpcdiag.host import (  # noqa: E402
    CertificateStore,
    ClusterConfig,
    ConfigStore,
    DiagnosticBinary,
    HostFacts,
    PerfCounterAdapter,
    PerfSample,
    ServiceInfo,
    ServiceManager,
    SqlProbe,
    SqlServerInfo,
)
from hpcdiag.network import (  # noqa: E402
    ConnectivityTester,
    DNSLookupResult,
    DNSTester,
    GatewayInfo,
    HTTPSProbeResult,
    NamingEndpointClient,
    PingResult,
    PortScanResult,
)
from hpcdiag.utils import Config  # noqa: E402

OPEN_PORTS = {80, 443}
NOW = datetime(2024, 3, 1, 12, 0)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: mark test as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "network: mark test as requiring network access"
    )


def _tcp(host, port, timeout=None):
    if port in OPEN_PORTS:
        return PortScanResult(host=host, port=port, is_open=True, response_time_ms=1.5)
    return PortScanResult(host=host, port=port, is_open=False, error="Connection refused")


def _ping(host, timeout=None):
    return PingResult(host=host, is_reachable=True, latency_ms=0.8)


def _resolve(hostname, record_type='A'):
    return DNSLookupResult(query=hostname, query_type=record_type, success=True,
                           answers=["10.0.0.10"], response_time_ms=3.0)


def sample_nodes():
    return [
        ClusterNode(name="HEAD01", state="Online", health="OK", roles="HeadNode", template="Default"),
        ClusterNode(name="BROKER01", state="Online", health="OK", roles="BrokerNode", template="Broker"),
        ClusterNode(name="CN001", state="Online", health="OK", roles="ComputeNode", template="Compute"),
        ClusterNode(name="CN002", state="Offline", health="Error", roles="ComputeNode", template="Compute"),
    ]


def make_adapters(nodes=None):
    """Fake adapters with deterministic answers for every probe."""
    network = MagicMock(spec=ConnectivityTester)
    network.test_tcp_port.side_effect = _tcp
    network.ping.side_effect = _ping
    network.resolve_default_gateway.return_value = GatewayInfo(address="10.0.0.1", family="IPv4")
    network.local_addresses.return_value = {"eth0": ["10.0.0.5"], "lo": ["127.0.0.1"]}
    network.reset_stack.return_value = ["netsh winsock reset", "netsh int ip reset"]
    network.flush_dns.return_value = "ipconfig /flushdns"
    network.open_inbound_port.side_effect = lambda port, rule_name=None: f"HPC Pack TCP {port}"

    dns = MagicMock(spec=DNSTester)
    dns.resolve_dns.side_effect = _resolve
    dns.reverse_lookup.side_effect = lambda ip: DNSLookupResult(
        query=ip, query_type="PTR", success=True, answers=["head01.contoso.local"])
    dns.get_system_dns_servers.return_value = ["10.0.0.2"]

    cluster = MagicMock(spec=ClusterApi)
    cluster.check_available.return_value = "5.1.0.0"
    cluster.list_nodes.return_value = sample_nodes() if nodes is None else nodes
    cluster.list_jobs.return_value = [
        ClusterJob(id=12, name="render", owner="CONTOSO\\alice", state="Finished",
                   submit_time=datetime(2024, 2, 29, 9, 0), start_time=datetime(2024, 2, 29, 9, 1),
                   end_time=datetime(2024, 2, 29, 9, 31)),
        ClusterJob(id=11, name="sweep", owner="CONTOSO\\bob", state="Failed",
                   submit_time=datetime(2024, 2, 28, 9, 0)),
    ]
    cluster.get_job.return_value = ClusterJob(id=12, name="render", owner="CONTOSO\\alice", state="Failed")
    cluster.list_tasks.return_value = [
        ClusterTask(task_id="12.1", state="Finished", command_line="render.exe -f 1", exit_code=0),
        ClusterTask(task_id="12.2", state="Failed", command_line="render.exe -f 2", exit_code=3,
                    error_message="Frame 2 could not be written", nodes="CN001"),
    ]
    cluster.list_metrics.return_value = [MetricInfo(name="HPCCpuUsage", type="Node", unit="%")]
    cluster.get_metric_value.return_value = [
        MetricSample(node_name="CN001", metric="HPCCpuUsage", value=40.0, time=NOW),
        MetricSample(node_name="CN002", metric="HPCCpuUsage", value=60.0, time=NOW),
    ]
    cluster.get_metric_value_history.return_value = [
        MetricSample(node_name="CN001", metric="HPCCpuUsage", counter="_Total", value=40.0, time=NOW),
    ]
    cluster.get_cluster_overview.return_value = ClusterOverview(
        name="CONTOSO-HPC", version="5.1", total_nodes=4, online_nodes=3, offline_nodes=1,
        running_jobs=1, queued_jobs=0)
    cluster.get_cluster_properties.return_value = [ClusterProperty(name="HeartbeatInterval", value="30")]
    cluster.get_node_templates.return_value = [NodeTemplate(name="Compute", type="ComputeNode")]
    cluster.get_groups.return_value = [NodeGroup(name="ComputeNodes")]
    cluster.get_node_state_history.return_value = [
        NodeStateEvent(node_name="CN002", event="Offline", time=datetime(2024, 2, 29, 8, 0)),
    ]

    certificates = MagicMock(spec=CertificateStore)
    certificates.find_by_subject_substring.return_value = []
    certificates.find_by_thumbprint.return_value = None
    certificates.export_key_material.side_effect = lambda cert: cert

    https = MagicMock(spec=NamingEndpointClient)
    https.get.side_effect = lambda url, trust, client_cert=None: HTTPSProbeResult(
        url=url, is_accessible=True, status_code=200, response_time_ms=12.0,
        client_cert_used=client_cert is not None, body="{}")

    sql = MagicMock(spec=SqlProbe)
    sql.driver = "ODBC Driver 18 for SQL Server"
    sql.server_info.return_value = SqlServerInfo(instance="HEAD01\\COMPUTECLUSTER",
                                                 edition="Express Edition (64-bit)", version="15.0.2000.5")

    perf = MagicMock(spec=PerfCounterAdapter)
    perf.sample.return_value = PerfSample(cpu_percent=12.0, available_memory_mb=8192.0,
                                          network_bytes_per_sec=2048.0)
    perf.host_facts.return_value = HostFacts(hostname="HEAD01", os="Windows-10", cpu_count=8,
                                             total_memory_mb=16384.0, boot_time=NOW,
                                             python_version="3.11.4")

    services = MagicMock(spec=ServiceManager)
    services.find.return_value = [
        ServiceInfo(name="HpcScheduler", display_name="HPC Job Scheduler Service",
                    status="running", start_type="automatic"),
        ServiceInfo(name="HpcNodeManager", display_name="HPC Node Manager Service",
                    status="running", start_type="automatic"),
    ]

    config_store = MagicMock(spec=ConfigStore)
    config_store.read_cluster_config.return_value = ClusterConfig(
        installed_role="HN, CN",
        cert_thumbprint="ABCDEF0123456789",
        connection_string="Data Source=HEAD01\\COMPUTECLUSTER;Initial Catalog=HPCScheduler;"
                          "Integrated Security=True",
        install_dir="C:\\Program Files\\Microsoft HPC Pack 2019",
        scheduler="HEAD01",
    )

    diagnostic_binary = MagicMock(spec=DiagnosticBinary)
    diagnostic_binary.locate.return_value = None

    return ProbeAdapters(
        network=network,
        dns=dns,
        cluster=cluster,
        certificates=certificates,
        https=https,
        sql=sql,
        perf=perf,
        services=services,
        config_store=config_store,
        diagnostic_binary=diagnostic_binary,
    )


@pytest.fixture
def config():
    return Config()


@pytest.fixture
def adapters():
    return make_adapters()


@pytest.fixture
def target(tmp_path):
    return ProbeTarget(
        scheduler="HEAD01",
        start_date=datetime(2024, 2, 1),
        end_date=datetime(2024, 2, 8),
        metric_output_path=str(tmp_path / "out" / "metrics.csv"),
    )


@pytest.fixture
def run_mode(config):
    """Run one mode against fake adapters; returns (exit_code, output)."""
    def _run(mode, target, adapters, verbosity=VerbosityMode.CONCISE, options=None, confirm=None):
        stream = io.StringIO()
        dispatcher = Dispatcher(config, adapters=adapters, console=Console(stream), confirm=confirm)
        code = dispatcher.run(mode, target, verbosity, options)
        return code, stream.getvalue()
    return _run
