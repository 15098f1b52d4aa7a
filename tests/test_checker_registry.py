"""Tests for checker registration, ordering and page-level aggregation."""

import asyncio
from typing import Any

import pytest

from a11y_audit.checkers.base import BaseChecker
from a11y_audit.checkers.registry import CheckerRegistry, summarize_checks
from a11y_audit.models.checks import GenericPayload
from a11y_audit.models.results import CheckResult


# ============================================================================
# Helpers
# ============================================================================


class StubChecker(BaseChecker):
    """Checker with scripted behaviour: pass, fail, or raise."""

    def __init__(self, config, name, priority=10, outcome="pass", delay=0.0, log=None):
        super().__init__(config)
        self.name = name
        self.priority = priority
        self.outcome = outcome
        self.delay = delay
        self.log = log if log is not None else []

    async def execute_check(self, page: Any, page_name: str, options: dict[str, Any]):
        self.log.append(self.name)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.outcome == "raise":
            raise RuntimeError(f"{self.name} exploded")
        return GenericPayload(passed=self.outcome == "pass", score=100.0 if self.outcome == "pass" else 0.0)


class BrokenRunChecker(BaseChecker):
    name = "broken"

    async def run(self, page, page_name, options=None):
        raise RuntimeError("run itself failed")


# ============================================================================
# Tests
# ============================================================================


class TestBaseChecker:
    @pytest.mark.asyncio
    async def test_exception_becomes_error_result(self, audit_config, mock_page):
        checker = StubChecker(audit_config, "x", outcome="raise")
        result = await checker.run(mock_page, "Home")
        assert result.success is False
        assert result.error == "x exploded"
        assert result.data is None

    @pytest.mark.asyncio
    async def test_payload_passed_drives_success(self, audit_config, mock_page):
        result = await StubChecker(audit_config, "x", outcome="fail").run(mock_page, "Home")
        assert result.success is False
        assert result.error is None
        assert result.score == 0.0

    def test_enabled_follows_settings(self, audit_config):
        cfg = audit_config.with_updates(checkers={"zoom": {"enabled": False}})
        assert StubChecker(cfg, "zoom").is_enabled() is False
        assert StubChecker(cfg, "contrast").is_enabled() is True
        assert StubChecker(cfg, "custom").is_enabled() is True


class TestCheckerRegistry:
    @pytest.mark.asyncio
    async def test_aggregates_pass_fail_error(self, audit_config, mock_page):
        """One passing, one failing, one raising checker: 1/1/1 and 33%."""
        registry = CheckerRegistry(audit_config)
        registry.register(StubChecker(audit_config, "a", priority=1, outcome="pass"))
        registry.register(StubChecker(audit_config, "b", priority=2, outcome="fail"))
        registry.register(StubChecker(audit_config, "c", priority=3, outcome="raise"))

        results = await registry.run_all_checks(mock_page, "Home")
        assert results.page_name == "Home"
        assert results.summary.total_checks == 3
        assert results.summary.passed == 1
        assert results.summary.failed == 1
        assert results.summary.errors == 1
        assert results.summary.success_rate == 33
        assert results.checks["c"].error == "c exploded"

    @pytest.mark.asyncio
    async def test_sequential_runs_in_priority_order(self, audit_config, mock_page):
        log = []
        registry = CheckerRegistry(audit_config)
        registry.register(StubChecker(audit_config, "late", priority=5, log=log))
        registry.register(StubChecker(audit_config, "early", priority=1, log=log))
        registry.register(StubChecker(audit_config, "tie", priority=5, log=log))
        await registry.run_all_checks(mock_page, "Home")
        assert log == ["early", "late", "tie"]

    @pytest.mark.asyncio
    async def test_concurrent_mode_keeps_every_result(self, audit_config, mock_page):
        cfg = audit_config.with_updates(max_concurrency=3)
        registry = CheckerRegistry(cfg)
        for i, delay in enumerate([0.03, 0.01, 0.02]):
            registry.register(StubChecker(cfg, f"c{i}", priority=i, delay=delay))
        results = await registry.run_all_checks(mock_page, "Home")
        assert list(results.checks) == ["c0", "c1", "c2"]
        assert results.summary.passed == 3

    @pytest.mark.asyncio
    async def test_concurrency_argument_overrides_config(self, audit_config, mock_page):
        cfg = audit_config.with_updates(max_concurrency=3)
        in_flight = {"now": 0, "peak": 0}

        class CountingChecker(StubChecker):
            async def execute_check(self, page, page_name, options):
                in_flight["now"] += 1
                in_flight["peak"] = max(in_flight["peak"], in_flight["now"])
                await asyncio.sleep(0.01)
                in_flight["now"] -= 1
                return GenericPayload(passed=True, score=100.0)

        registry = CheckerRegistry(cfg)
        for i in range(3):
            registry.register(CountingChecker(cfg, f"c{i}", priority=i))

        await registry.run_all_checks(mock_page, "Home", concurrency=1)
        assert in_flight["peak"] == 1

        await registry.run_all_checks(mock_page, "Home")
        assert in_flight["peak"] == 3

    @pytest.mark.asyncio
    async def test_disabled_checkers_skipped(self, audit_config, mock_page):
        cfg = audit_config.with_updates(checkers={"zoom": {"enabled": False}})
        registry = CheckerRegistry(cfg)
        registry.register(StubChecker(cfg, "zoom"))
        registry.register(StubChecker(cfg, "custom"))
        results = await registry.run_all_checks(mock_page, "Home")
        assert list(results.checks) == ["custom"]

    @pytest.mark.asyncio
    async def test_safety_net_for_raising_run(self, audit_config, mock_page):
        registry = CheckerRegistry(audit_config)
        registry.register(BrokenRunChecker(audit_config))
        results = await registry.run_all_checks(mock_page, "Home")
        assert results.checks["broken"].error == "run itself failed"
        assert results.summary.errors == 1

    @pytest.mark.asyncio
    async def test_no_checkers(self, audit_config, mock_page):
        results = await CheckerRegistry(audit_config).run_all_checks(mock_page, "Home")
        assert results.summary.total_checks == 0
        assert results.summary.success_rate == 0

    @pytest.mark.asyncio
    async def test_run_specific_checks(self, audit_config, mock_page):
        log = []
        registry = CheckerRegistry(audit_config)
        registry.register(StubChecker(audit_config, "a", priority=2, log=log))
        registry.register(StubChecker(audit_config, "b", priority=1, log=log))
        registry.register(StubChecker(audit_config, "c", priority=3, log=log))
        results = await registry.run_specific_checks(["a", "b", "unknown"], mock_page, "Home")
        assert log == ["b", "a"]
        assert set(results.checks) == {"a", "b"}

    @pytest.mark.asyncio
    async def test_run_specific_checks_no_match(self, audit_config, mock_page):
        with pytest.raises(ValueError, match="No registered checkers"):
            await CheckerRegistry(audit_config).run_specific_checks(["x"], mock_page, "Home")

    def test_register_unregister_get(self, audit_config):
        registry = CheckerRegistry(audit_config)
        checker = StubChecker(audit_config, "a")
        registry.register(checker)
        assert registry.get("a") is checker
        assert registry.unregister("a") is True
        assert registry.unregister("a") is False
        assert registry.get("a") is None

    def test_defaults_registered_in_priority_order(self, audit_config):
        registry = CheckerRegistry.with_defaults(audit_config)
        names = [c.name for c in registry.enabled_checkers()]
        assert names == ["contrast", "keyboard_focus", "zoom", "accessibility_tree"]
        assert all(i["enabled"] for i in registry.available_checkers())


class TestSummarizeChecks:
    def test_rounding(self):
        results = [
            CheckResult(checker_name=str(i), page_name="p", success=i < 2) for i in range(3)
        ]
        summary = summarize_checks(results)
        assert summary.passed == 2
        assert summary.failed == 1
        assert summary.success_rate == 67
