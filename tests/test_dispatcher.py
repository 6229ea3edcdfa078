"""Tests for run-mode dispatch, verbosity tiers and module isolation."""

import io
from datetime import datetime

import pytest

from hpcdiag.diagnostics import ALL_SEQUENCE, Console, Dispatcher, ProbeTarget, RunMode, RunOptions, VerbosityMode
from hpcdiag.diagnostics.checks import SystemInfoCheck
from hpcdiag.diagnostics.runner import resolve_mode
from hpcdiag.errors import ValidationError

from conftest import make_adapters


def _headers(output):
    return [line[4:-4] for line in output.splitlines()
            if line.startswith("=== ") and line != "=== Summary ==="]


def _before_summary(output):
    lines = output.splitlines()
    if "=== Summary ===" in lines:
        lines = lines[:lines.index("=== Summary ===")]
    return lines


def _is_subsequence(short, long):
    remaining = iter(long)
    return all(any(line == candidate for candidate in remaining) for line in short)


class TestTipsOnly:
    def test_tips_never_touch_adapters(self, run_mode, target, adapters):
        code, output = run_mode(RunMode.ALL, target, adapters, VerbosityMode.TIPS_ONLY)

        assert code == 0
        for name in ("network", "dns", "cluster", "certificates", "https",
                     "sql", "perf", "services", "config_store", "diagnostic_binary"):
            assert getattr(adapters, name).method_calls == [], name
        assert "[OK]" not in output
        assert "[ERROR]" not in output

    def test_tips_cover_every_module_in_order(self, run_mode, target, adapters):
        _, output = run_mode(RunMode.ALL, target, adapters, VerbosityMode.TIPS_ONLY)

        assert _headers(output) == [m.value for m in ALL_SEQUENCE]
        assert "Get-HpcNode -Scheduler <scheduler>" in output

    def test_tips_need_no_quick_query_input(self, run_mode, adapters):
        code, output = run_mode(RunMode.JOB_DETAILS, ProbeTarget(), adapters, VerbosityMode.TIPS_ONLY)

        assert code == 0
        assert "Get-HpcTask -JobId <job>" in output


class TestVerbosity:
    @pytest.mark.parametrize("mode", list(ALL_SEQUENCE) + [RunMode.JOB_DETAILS, RunMode.NODE_DETAILS, RunMode.ALL])
    def test_concise_lines_appear_in_verbose(self, run_mode, tmp_path, mode):
        target = ProbeTarget(
            scheduler="HEAD01",
            job_id=12,
            node_name="CN001",
            start_date=datetime(2024, 2, 1),
            end_date=datetime(2024, 2, 8),
            metric_output_path=str(tmp_path / "metrics.csv"),
        )

        _, concise = run_mode(mode, target, make_adapters(), VerbosityMode.CONCISE)
        _, verbose = run_mode(mode, target, make_adapters(), VerbosityMode.VERBOSE)

        # The All summary tallies the lines of its own tier
        assert _is_subsequence(_before_summary(concise), _before_summary(verbose))

    def test_verbose_adds_reachability_sweep(self, run_mode, target, adapters):
        _, concise = run_mode(RunMode.NODE_VALIDATION, target, adapters, VerbosityMode.CONCISE)
        assert adapters.network.ping.call_count == 0

        _, verbose = run_mode(RunMode.NODE_VALIDATION, target, adapters, VerbosityMode.VERBOSE)
        assert adapters.network.ping.call_count == 4
        assert "Reachability: 4/4 nodes reachable" in verbose
        assert "Reachability" not in concise


class TestAllSequence:
    def test_runs_every_module_in_fixed_order(self, run_mode, target, adapters):
        code, output = run_mode(RunMode.ALL, target, adapters)

        assert code == 0
        assert _headers(output) == [m.value for m in ALL_SEQUENCE]
        assert "=== Summary ===" in output

    def test_failing_module_does_not_stop_the_rest(self, run_mode, target, adapters, monkeypatch):
        def boom(self, ctx):
            raise RuntimeError("registry hive corrupt")

        monkeypatch.setattr(SystemInfoCheck, "execute", boom)
        code, output = run_mode(RunMode.ALL, target, adapters)

        assert code == 0
        assert _headers(output) == [m.value for m in ALL_SEQUENCE]
        assert "module failed: RuntimeError: registry hive corrupt" in output
        assert "Overall status: problems_detected" in output
        adapters.perf.sample.assert_called_once()

    def test_zero_nodes(self, run_mode, target):
        adapters = make_adapters(nodes=[])
        code, output = run_mode(RunMode.ALL, target, adapters)

        assert code == 0
        assert "0 nodes" in output
        assert "no nodes found" in output
        assert "[EXCELLENT]" in output

    def test_cancel_between_modules(self, config, target, adapters):
        stream = io.StringIO()
        dispatcher = Dispatcher(config, adapters=adapters, console=Console(stream))

        def cancel_during_services(substrings):
            dispatcher.cancel()
            return []

        adapters.services.find.side_effect = cancel_during_services
        code = dispatcher.run(RunMode.ALL, target, VerbosityMode.CONCISE)

        assert code == 1
        assert _headers(stream.getvalue()) == ["SystemInfo", "ServicesStatus"]
        assert "Cancelled by user" in stream.getvalue()


class TestConfirmation:
    def test_declined_repair_exits_with_failure(self, run_mode, target, adapters):
        options = RunOptions(fix_network_issues=True)
        code, output = run_mode(RunMode.NETWORK_FIX, target, adapters, options=options,
                                confirm=lambda prompt: False)

        assert code == 1
        assert "declined" in output
        adapters.network.reset_stack.assert_not_called()

    def test_force_skips_confirmation(self, run_mode, config, target, adapters):
        prompts = []
        options = RunOptions(fix_network_issues=True, force=True)
        code, output = run_mode(RunMode.NETWORK_FIX, target, adapters, options=options,
                                confirm=prompts.append)

        assert code == 0
        assert prompts == []
        adapters.network.reset_stack.assert_called_once()
        adapters.network.flush_dns.assert_called_once()
        assert adapters.network.open_inbound_port.call_count == len(config.hpc_ports)


class TestQuickQueries:
    def test_job_id_selects_job_details(self):
        assert resolve_mode(None, ProbeTarget(job_id=5)) is RunMode.JOB_DETAILS

    def test_node_name_selects_node_details(self):
        assert resolve_mode(None, ProbeTarget(node_name="CN001")) is RunMode.NODE_DETAILS

    def test_no_mode_runs_all(self):
        assert resolve_mode(None, ProbeTarget()) is RunMode.ALL

    def test_missing_job_id_is_a_validation_error(self, run_mode, adapters):
        with pytest.raises(ValidationError, match="-JobId"):
            run_mode(RunMode.JOB_DETAILS, ProbeTarget(), adapters)
        assert adapters.cluster.method_calls == []

    def test_list_modules_probes_nothing(self, run_mode, target, adapters):
        code, output = run_mode(RunMode.LIST_MODULES, target, adapters)

        assert code == 0
        assert "PortTest" in output
        assert "ListModules" in output
        assert adapters.cluster.method_calls == []
