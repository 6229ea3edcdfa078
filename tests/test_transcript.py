"""Tests for transcript mirroring and console rendering."""

import io

import pytest

from hpcdiag.diagnostics import Console, Reporter, TranscriptExporter, VerbosityMode
from hpcdiag.diagnostics.models import CheckStatus, ModuleSummary, RunMode
from hpcdiag.diagnostics.render import truncate


class TestTranscript:
    def test_mirrors_console_lines(self, tmp_path):
        stream = io.StringIO()
        console = Console(stream)
        exporter = TranscriptExporter(console)
        path = tmp_path / "nested" / "report.log"

        session = exporter.start(path)
        console.write_line("=== SystemInfo ===")
        exporter.stop(session)
        console.write_line("after stop")

        text = path.read_text(encoding='utf-8')
        assert "=== SystemInfo ===" in text
        assert "after stop" not in text
        assert "after stop" in stream.getvalue()

    def test_closes_when_run_raises(self, tmp_path):
        console = Console(io.StringIO())
        exporter = TranscriptExporter(console)
        path = tmp_path / "report.log"

        with pytest.raises(RuntimeError):
            with exporter.session(path) as session:
                console.write_line("partial output")
                raise RuntimeError("boom")

        assert session.closed
        assert session.stream.closed
        text = path.read_text(encoding='utf-8')
        assert "partial output" in text
        assert "Transcript ended" in text

    def test_stop_twice_is_harmless(self, tmp_path):
        exporter = TranscriptExporter(Console(io.StringIO()))
        session = exporter.start(tmp_path / "report.log")
        exporter.stop(session)
        exporter.stop(session)

    def test_no_path_is_a_no_op(self):
        with TranscriptExporter(Console(io.StringIO())).session(None) as session:
            assert session is None


class TestReporter:
    def test_concise_table_shows_sample_rows(self):
        stream = io.StringIO()
        out = Reporter(Console(stream), VerbosityMode.CONCISE, sample_rows=2)
        out.table(["Name"], [["a"], ["b"], ["c"]], [4])

        lines = stream.getvalue().splitlines()
        assert len(lines) == 4  # header, rule, two rows

    def test_verbose_table_shows_all_rows(self):
        stream = io.StringIO()
        out = Reporter(Console(stream), VerbosityMode.VERBOSE, sample_rows=2)
        out.table(["Name"], [["a"], ["b"], ["c"]], [4])

        assert len(stream.getvalue().splitlines()) == 5

    def test_detail_only_at_verbose(self):
        stream = io.StringIO()
        Reporter(Console(stream), VerbosityMode.CONCISE).detail("hidden")
        assert stream.getvalue() == ""

    def test_results_are_counted(self):
        summary = ModuleSummary(mode=RunMode.PORT_TEST)
        out = Reporter(Console(io.StringIO()), VerbosityMode.CONCISE, summary)
        out.result("a", CheckStatus.OK)
        out.result("b", CheckStatus.WARN)

        assert summary.counts[CheckStatus.OK] == 1
        assert summary.worst is CheckStatus.WARN

    @pytest.mark.parametrize("text, width, expected", [
        ("short", 10, "short"),
        ("exactly10!", 10, "exactly10!"),
        ("this is far too long", 10, "this is..."),
        ("multi\nline   text", 20, "multi line text"),
        (None, 5, ""),
    ])
    def test_truncate(self, text, width, expected):
        assert truncate(text, width) == expected
