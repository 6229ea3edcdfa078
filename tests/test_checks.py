"""Tests for individual check modules against fake adapters."""

import csv

from hpcdiag.diagnostics import ProbeTarget, RunMode, RunOptions, VerbosityMode
from hpcdiag.errors import AdapterUnavailable, ProbeTimeout
from hpcdiag.host import CertificateInfo
from hpcdiag.host.perf import PerfSample
from hpcdiag.network import TrustPolicy

from conftest import make_adapters


class TestPortTest:
    def test_one_line_per_port(self, run_mode, adapters):
        target = ProbeTarget(scheduler="HEAD01", ports=(80, 443, 9999))
        code, output = run_mode(RunMode.PORT_TEST, target, adapters)

        port_lines = [line for line in output.splitlines() if "TCP HEAD01:" in line]
        assert code == 0
        assert len(port_lines) == 3
        assert sum("open" in line for line in port_lines) == 2
        assert sum("closed" in line for line in port_lines) == 1
        assert "TCP HEAD01:9999: closed (Connection refused)" in output

    def test_defaults_to_configured_ports(self, run_mode, config, adapters):
        _, output = run_mode(RunMode.PORT_TEST, ProbeTarget(scheduler="HEAD01"), adapters)

        assert adapters.network.test_tcp_port.call_count == len(config.hpc_ports)
        assert f"{len(config.hpc_ports)} ports tested" in output

    def test_adapter_error_still_yields_a_line(self, run_mode, adapters):
        adapters.network.test_tcp_port.side_effect = OSError("network is down")
        _, output = run_mode(RunMode.PORT_TEST, ProbeTarget(scheduler="HEAD01", ports=(80, 81)), adapters)

        assert output.count("OSError: network is down") == 2


class TestCommunicationTest:
    def test_without_certificate_still_sends_request(self, run_mode, target, adapters):
        code, output = run_mode(RunMode.COMMUNICATION_TEST, target, adapters)

        assert code == 0
        assert "proceeding without client certificate" in output
        adapters.https.get.assert_called_once()
        url, trust, client_cert = adapters.https.get.call_args.args
        assert url == "https://HEAD01:443/HpcNaming/api/fabric/resolve/singleton/SchedulerStatefulService"
        assert trust == TrustPolicy.relaxed()
        assert client_cert is None
        assert "Naming service: HTTP 200" in output

    def test_prefers_certificate_with_private_key(self, run_mode, target):
        adapters = make_adapters()
        no_key = CertificateInfo(thumbprint="AA", subject="CN=HPC Pack A", has_private_key=False,
                                 source="LocalMachine\\My")
        with_key = CertificateInfo(thumbprint="BB", subject="CN=HPC Pack B", has_private_key=True,
                                   source="LocalMachine\\My", cert_pem=b"cert", key_pem=b"key")
        adapters.certificates.find_by_subject_substring.return_value = [no_key, with_key]

        _, output = run_mode(RunMode.COMMUNICATION_TEST, target, adapters)

        assert "Client certificate: CN=HPC Pack B" in output
        client_cert = adapters.https.get.call_args.args[2]
        assert client_cert is not None
        assert client_cert[0].endswith("client.crt")

    def test_unknown_thumbprint_falls_back_to_no_certificate(self, run_mode, target, adapters):
        options = RunOptions(client_cert_thumbprint="DEADBEEF")
        _, output = run_mode(RunMode.COMMUNICATION_TEST, target, adapters, options=options)

        assert "thumbprint DEADBEEF not found" in output
        assert "proceeding without client certificate" in output
        adapters.certificates.find_by_subject_substring.assert_not_called()


class TestMetricValueHistory:
    def test_writes_csv_and_creates_directories(self, run_mode, target, adapters, tmp_path):
        code, output = run_mode(RunMode.METRIC_VALUE_HISTORY, target, adapters)

        path = tmp_path / "out" / "metrics.csv"
        assert code == 0
        assert path.exists()
        with open(path, newline='', encoding='utf-8') as f:
            rows = list(csv.reader(f))
        assert rows[0] == ["NodeName", "Metric", "Counter", "Value", "Time"]
        assert rows[1][:4] == ["CN001", "HPCCpuUsage", "_Total", "40.0"]
        assert f"1 rows written to {path}" in output

        start, end = adapters.cluster.get_metric_value_history.call_args.args
        assert start < end


class TestCheckBehaviour:
    def test_unavailable_adapter_is_a_warning(self, run_mode, target, adapters):
        adapters.services.find.side_effect = AdapterUnavailable("Service control manager", "requires Windows")
        code, output = run_mode(RunMode.SERVICES_STATUS, target, adapters)

        assert code == 0
        assert "[WARN]  Service enumeration: Service control manager unavailable: requires Windows" in output

    def test_timeout_is_a_warning_and_module_continues(self, run_mode, target, adapters):
        adapters.cluster.get_cluster_overview.side_effect = ProbeTimeout("Get-HpcClusterOverview", 60)
        _, output = run_mode(RunMode.CLUSTER_METADATA, target, adapters)

        assert "timed out after 60s" in output
        assert "1 scheduler properties" in output

    def test_job_details_truncates_long_text(self, run_mode, adapters):
        adapters.cluster.list_tasks.return_value[1].command_line = "render.exe " + "x" * 200
        _, output = run_mode(RunMode.JOB_DETAILS, ProbeTarget(job_id=12), adapters)

        assert "Failed tasks: 1 of 2" in output
        assert "x" * 100 not in output
        assert "..." in output

    def test_node_details_unknown_node(self, run_mode, adapters):
        _, output = run_mode(RunMode.NODE_DETAILS, ProbeTarget(node_name="nosuch"), adapters)

        assert "Node nosuch: not known to the scheduler" in output
        adapters.dns.resolve_dns.assert_not_called()

    def test_node_details_matches_short_name(self, run_mode, adapters):
        _, output = run_mode(RunMode.NODE_DETAILS, ProbeTarget(node_name="cn001.contoso.local"), adapters)

        assert "Node CN001: Online, health OK" in output
        adapters.cluster.get_node_state_history.assert_called_once()

    def test_advanced_health_warnings(self, run_mode, target, adapters):
        adapters.perf.sample.return_value = PerfSample(cpu_percent=97.0, available_memory_mb=512.0,
                                                       network_bytes_per_sec=0.0)
        _, output = run_mode(RunMode.ADVANCED_HEALTH, target, adapters)

        assert "[GOOD] 0 issues, 2 warnings" in output
        assert "1. Review: CPU at 97%" in output

    def test_advanced_health_unreachable_nodes_need_attention(self, run_mode, target, adapters):
        from hpcdiag.network import PingResult

        adapters.network.ping.side_effect = lambda host, timeout=None: PingResult(
            host=host, is_reachable=host != "CN002", latency_ms=1.0 if host != "CN002" else None,
            error=None if host != "CN002" else "No reply")
        _, output = run_mode(RunMode.ADVANCED_HEALTH, target, adapters, VerbosityMode.VERBOSE)

        assert "[ATTENTION] 1 issues" in output
        assert "1. Investigate: Node CN002 is unreachable" in output

    def test_topology_roles(self, run_mode, target, adapters):
        _, output = run_mode(RunMode.CLUSTER_TOPOLOGY, target, adapters)

        assert "Head nodes: HEAD01" in output
        assert "BrokerNode: 1 (BROKER01)" in output
        assert "ComputeNode: 2 (CN001, CN002)" in output

    def test_topology_sweep_cap_counts_the_whole_cluster(self, run_mode, target):
        from hpcdiag.cluster import ClusterNode

        nodes = ([ClusterNode(name=f"CN{i:03d}", state="Online", health="OK", roles="ComputeNode")
                  for i in range(40)]
                 + [ClusterNode(name=f"BR{i:03d}", state="Online", health="OK", roles="BrokerNode")
                    for i in range(20)])
        adapters = make_adapters(nodes)

        _, output = run_mode(RunMode.CLUSTER_TOPOLOGY, target, adapters, VerbosityMode.VERBOSE)

        assert adapters.network.ping.call_count == 0
        assert output.count("exceeds the sweep limit") == 1
        assert "60 nodes exceeds the sweep limit of 50" in output

    def test_topology_sweep_splits_reachability_by_role(self, run_mode, target, adapters):
        _, output = run_mode(RunMode.CLUSTER_TOPOLOGY, target, adapters, VerbosityMode.VERBOSE)

        assert adapters.network.ping.call_count == 4
        assert "4/4 nodes reachable" in output
        assert "ComputeNode reachability: 2/2" in output

    def test_metric_window_error_is_reported_not_raised(self, run_mode, adapters, tmp_path):
        from datetime import datetime, timedelta

        target = ProbeTarget(scheduler="HEAD01", start_date=datetime.now() + timedelta(days=30),
                             metric_output_path=str(tmp_path / "m.csv"))
        code, output = run_mode(RunMode.METRIC_VALUE_HISTORY, target, adapters)

        assert code == 0
        assert "Metric window: ValidationError: Metric start date is after end date" in output
        assert "module failed" not in output
        adapters.cluster.get_metric_value_history.assert_not_called()
