"""Tests for the run-mode registry and help text."""

import pytest

from hpcdiag.diagnostics import HelpSystem, RunMode, RunModeRegistry
from hpcdiag.diagnostics.checks import ALL_CHECKS, PortTestCheck
from hpcdiag.errors import RegistryError, UnknownRunMode


class TestRegistry:
    def test_every_mode_has_one_descriptor(self):
        registry = RunModeRegistry()
        names = [d.name for d in registry.list_modes()]

        assert sorted(names) == sorted(m.value for m in RunMode)
        assert len(names) == len(set(names))

    def test_missing_handler_fails_at_construction(self):
        with pytest.raises(RegistryError, match="PortTest"):
            RunModeRegistry([c for c in ALL_CHECKS if c is not PortTestCheck])

    def test_duplicate_handler_fails_at_construction(self):
        with pytest.raises(RegistryError, match="registered twice"):
            RunModeRegistry(list(ALL_CHECKS) + [PortTestCheck])

    def test_composite_mode_cannot_have_a_handler(self):
        class AllCheck(PortTestCheck):
            mode = RunMode.ALL

        with pytest.raises(RegistryError, match="composite"):
            RunModeRegistry(list(ALL_CHECKS) + [AllCheck])

    @pytest.mark.parametrize("name, expected", [
        ("PortTest", RunMode.PORT_TEST),
        ("porttest", RunMode.PORT_TEST),
        ("SQLTRACE", RunMode.SQL_TRACE),
        ("ListRunModes", RunMode.LIST_MODULES),
        ("all", RunMode.ALL),
    ])
    def test_resolve_is_case_insensitive(self, name, expected):
        assert RunModeRegistry.resolve(name) is expected

    def test_resolve_unknown(self):
        with pytest.raises(UnknownRunMode, match="Unknown run mode: Bogus"):
            RunModeRegistry.resolve("Bogus")

    def test_quick_queries_declare_their_input(self):
        registry = RunModeRegistry()
        assert registry.handler(RunMode.JOB_DETAILS).requires == ("job_id",)
        assert registry.handler(RunMode.NODE_DETAILS).requires == ("node_name",)


class TestHelp:
    def test_listing_names_every_mode(self):
        text = HelpSystem(RunModeRegistry()).list_modes_text()
        for mode in RunMode:
            assert mode.value in text

    def test_deep_help_has_usage_and_exit_codes(self):
        text = HelpSystem(RunModeRegistry()).deep_help()

        assert text.startswith("Usage: hpcdiag")
        assert "Exit codes:" in text
        assert "SystemInfo, ServicesStatus, SQLTrace" in text
