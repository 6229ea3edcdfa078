"""Tests for command-line parsing and the main entry point."""

from datetime import datetime, timedelta

import pytest

from hpcdiag.cli import build_options, build_target, parse_args, parse_date, parse_ports, verbosity_for
from hpcdiag.diagnostics import VerbosityMode
from hpcdiag.errors import ValidationError
from hpcdiag.main import main
from hpcdiag.utils import Config


class TestParsePorts:
    def test_single_list_and_range(self):
        assert parse_ports(["80", "443,5800", "9000-9002"]) == (80, 443, 5800, 9000, 9001, 9002)

    def test_duplicates_dropped(self):
        assert parse_ports(["443", "443,80"]) == (443, 80)

    @pytest.mark.parametrize("token", ["0", "70000", "abc", "9010-9000", "1-x"])
    def test_invalid(self, token):
        with pytest.raises(ValidationError):
            parse_ports([token])


class TestParseArgs:
    def test_positional_mode_and_host(self):
        args = parse_args(["PortTest", "head01", "-Ports", "443", "5800-5801"])
        target = build_target(args, Config(), environ={})

        assert args.mode_name == "PortTest"
        assert target.scheduler == "head01"
        assert target.ports == (443, 5800, 5801)

    def test_named_mode_with_trailing_host(self):
        args = parse_args(["-RunMode", "NodeValidation", "head02"])

        assert args.mode_name == "NodeValidation"
        assert args.host == "head02"

    def test_flags_are_case_insensitive(self):
        args = parse_args(["-runmode", "All", "-DETAILED", "--clitips"])

        assert args.mode_name == "All"
        assert args.detailed
        assert verbosity_for(args) is VerbosityMode.TIPS_ONLY

    def test_scheduler_precedence(self):
        config = Config()
        env = {"CCP_SCHEDULER": "envhead"}

        assert build_target(parse_args([]), config, environ={}).scheduler == "localhost"
        assert build_target(parse_args([]), config, environ=env).scheduler == "envhead"
        assert build_target(parse_args(["All", "poshead"]), config, environ=env).scheduler == "poshead"
        assert build_target(parse_args(["-SchedulerNode", "flaghead"]), config, environ=env).scheduler == "flaghead"

    def test_port_goes_first(self):
        args = parse_args(["-Port", "5800", "-Ports", "443,5800"])
        assert build_target(args, Config(), environ={}).ports == (5800, 443)

    def test_defaults(self):
        args = parse_args([])
        target = build_target(args, Config(), environ={})
        options = build_options(args)

        assert args.mode_name is None
        assert target.days_back == 7
        assert target.job_count == 20
        assert target.metric_output_path == "MetricValueHistory.csv"
        assert args.report_file == "report.log"
        assert not options.fix_network_issues
        assert verbosity_for(args) is VerbosityMode.CONCISE

    def test_metric_start_after_end(self):
        args = parse_args(["-MetricStartDate", "2024-02-01", "-MetricEndDate", "2024-01-01"])
        with pytest.raises(ValidationError, match="after"):
            build_target(args, Config(), environ={})

    def test_future_start_date_alone(self):
        start = (datetime.now() + timedelta(days=30)).strftime("%Y-%m-%d")
        args = parse_args(["-MetricStartDate", start])
        with pytest.raises(ValidationError, match="after"):
            build_target(args, Config(), environ={})

    def test_unknown_option(self):
        with pytest.raises(ValidationError):
            parse_args(["-NoSuchFlag"])

    def test_mode_given_twice(self):
        with pytest.raises(ValidationError, match="twice"):
            parse_args(["PortTest", "head01", "-RunMode", "All"])

    def test_parse_date_formats(self):
        assert parse_date("2024-01-05") == datetime(2024, 1, 5)
        assert parse_date("2024-01-05 13:30") == datetime(2024, 1, 5, 13, 30)
        assert parse_date("01/05/2024") == datetime(2024, 1, 5)


class TestMain:
    @pytest.fixture
    def no_config(self, tmp_path):
        return ["-ConfigFile", str(tmp_path / "missing.json")]

    def test_help_exits_zero(self, no_config, capsys):
        assert main(["-ShowHelp"] + no_config) == 0
        assert "Usage: hpcdiag" in capsys.readouterr().out

    def test_deep_help_exits_zero(self, no_config, capsys):
        assert main(["-DeepHelp"] + no_config) == 0
        assert "Exit codes:" in capsys.readouterr().out

    def test_unknown_mode_exits_one(self, no_config, capsys):
        assert main(["Bogus"] + no_config) == 1
        assert "Unknown run mode: Bogus" in capsys.readouterr().err

    def test_quick_query_without_input_exits_one(self, no_config, capsys):
        assert main(["JobDetails"] + no_config) == 1
        err = capsys.readouterr().err
        assert "requires -JobId" in err
        assert "-ShowHelp" in err

    def test_invalid_dates_exit_one(self, no_config):
        argv = ["MetricValueHistory", "-MetricStartDate", "2024-02-01", "-MetricEndDate", "2024-01-01"]
        assert main(argv + no_config) == 1

    def test_list_modules(self, no_config, capsys):
        assert main(["-ListRunModes"] + no_config) == 0
        assert "MetricValueHistory" in capsys.readouterr().out

    def test_tips_with_transcript(self, no_config, tmp_path, capsys):
        report = tmp_path / "logs" / "run.log"
        code = main(["All", "-CliTips", "-ExportToFile", "-ReportFile", str(report)] + no_config)

        assert code == 0
        text = report.read_text(encoding='utf-8')
        assert "=== SystemInfo ===" in text
        assert "Transcript ended" in text

    def test_future_start_date_alone_exits_one(self, no_config, capsys):
        start = (datetime.now() + timedelta(days=30)).strftime("%Y-%m-%d")
        assert main(["MetricValueHistory", "-MetricStartDate", start] + no_config) == 1

        captured = capsys.readouterr()
        assert "after" in captured.err
        assert "-ShowHelp" in captured.err
        assert "module failed" not in captured.out
