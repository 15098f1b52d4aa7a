"""Tests for report orchestration, statistics and summaries."""

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from a11y_audit.models.checks import RuleEnginePayload, ZoomPayload
from a11y_audit.models.results import CheckResult, ErrorRecord, PageCheckResults
from a11y_audit.reporter.base import BaseReporter
from a11y_audit.reporter.reporter import ReportManager, generate_basic_summary
from a11y_audit.reporter.statistics import checker_stats, rule_engine_stats, run_statistics

from conftest import make_run, make_scan_result, make_violation


class ExplodingReporter(BaseReporter):
    format = "html"
    extension = ".html"

    def render(self, run):
        raise RuntimeError("template broken")


# ============================================================================
# Statistics
# ============================================================================


class TestStatistics:
    def test_rule_engine_stats(self):
        run = make_run(pages=0)
        run.rule_engine_results.append(make_scan_result("A", [
            make_violation("color-contrast", "serious"),
            make_violation("label", "critical"),
        ]))
        run.rule_engine_results.append(make_scan_result("B", [make_violation("color-contrast", "serious")],
                                                        used_legacy_fallback=True))
        run.rule_engine_results.append(make_scan_result("C", []))
        run.rule_engine_results.append(CheckResult(
            checker_name="rule_engine", page_name="D", error="engine missing",
            data=RuleEnginePayload(failed_fallback=True, error="engine missing"),
        ))

        stats = rule_engine_stats(run)
        assert stats["total_pages"] == 4
        assert stats["total_violations"] == 3
        assert stats["violations_by_impact"] == {"serious": 2, "critical": 1}
        assert list(stats["violations_by_rule"]) == ["color-contrast", "label"]
        assert stats["pages_with_violations"] == 2
        assert stats["pages_without_violations"] == 2
        assert stats["average_violations_per_page"] == 0.75
        assert stats["legacy_fallback_pages"] == 1
        assert stats["failed_scan_pages"] == 1

    def test_empty_run(self):
        stats = rule_engine_stats(make_run(pages=0))
        assert stats["total_pages"] == 0
        assert stats["average_violations_per_page"] == 0

    def test_checker_stats(self):
        run = make_run(pages=0)
        for name, success, error, score in [
            ("A", True, None, 100.0), ("B", False, None, 50.0), ("C", False, "boom", None),
        ]:
            run.extra_check_results.append(PageCheckResults(page_name=name, checks={
                "zoom": CheckResult(
                    checker_name="zoom", page_name=name, success=success, error=error,
                    data=ZoomPayload(score=score) if score is not None else None,
                ),
            }))
        zoom = checker_stats(run)["zoom"]
        assert (zoom["total"], zoom["successful"], zoom["failed"], zoom["errors"]) == (3, 1, 1, 1)
        assert zoom["success_rate"] == 33
        assert zoom["average_score"] == 75.0

    def test_run_statistics_shape(self):
        stats = run_statistics(make_run(pages=2))
        assert stats["rule_engine"]["total_pages"] == 2
        assert stats["success"] is True
        assert stats["duration_seconds"] == 12.5


# ============================================================================
# Summaries
# ============================================================================


class TestSummaries:
    def test_basic_summary(self):
        run = make_run(pages=2)
        run.errors.append(ErrorRecord(phase="page_processing", message="nav failed"))
        summary = generate_basic_summary(run)
        assert "Scanned 2 page(s)" in summary
        assert "2 rule violation(s)" in summary
        assert "color-contrast" in summary
        assert "1 error(s)" in summary

    @pytest.mark.asyncio
    async def test_ai_summary_used_when_writer_present(self, audit_config):
        writer = MagicMock()
        writer.summarize = AsyncMock(return_value="The app has two contrast failures.")
        manager = ReportManager(audit_config, summary_writer=writer)

        summary = await manager.write_summary(make_run(pages=1))

        assert summary == "The app has two contrast failures."
        statistics, pages = writer.summarize.await_args.args
        assert statistics["rule_engine"]["total_pages"] == 1
        assert [p["page"] for p in pages] == ["Page 1"]

    @pytest.mark.asyncio
    async def test_ai_failure_falls_back(self, audit_config):
        writer = MagicMock()
        writer.summarize = AsyncMock(side_effect=RuntimeError("rate limited"))
        manager = ReportManager(audit_config, summary_writer=writer)
        assert (await manager.write_summary(make_run(pages=1))).startswith("Scanned 1 page(s)")

    def test_missing_api_key_disables_ai(self, audit_config, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        manager = ReportManager(audit_config.with_updates(ai_summary=True))
        assert manager.summary_writer is None


# ============================================================================
# ReportManager
# ============================================================================


class TestReportManager:
    @pytest.mark.asyncio
    async def test_generates_all_formats_and_summary(self, audit_config):
        manager = ReportManager(audit_config)
        run = make_run(pages=2)

        outcomes = await manager.generate_all_reports(run)

        assert [(o.format, o.success) for o in outcomes] == [("html", True), ("json", True)]
        assert run.reports == outcomes
        for outcome in outcomes:
            assert Path(outcome.path).exists()
            assert Path(outcome.path).parent == Path(audit_config.report_dir)
        assert run.ai_summary.startswith("Scanned 2 page(s)")
        summary = json.loads(Path(run.summary_report).read_text())
        assert [p["page"] for p in summary["pages"]] == ["Page 1", "Page 2"]

    @pytest.mark.asyncio
    async def test_unknown_format(self, audit_config):
        manager = ReportManager(audit_config)
        outcomes = await manager.generate_all_reports(make_run(), ["pdf", "json"], generate_summary=False)
        assert outcomes[0].success is False
        assert "Unknown report format" in outcomes[0].error
        assert outcomes[1].success is True

    @pytest.mark.asyncio
    async def test_failing_reporter_does_not_stop_others(self, audit_config):
        manager = ReportManager(audit_config)
        manager.register(ExplodingReporter(audit_config.report_dir))
        run = make_run()

        outcomes = await manager.generate_all_reports(run, ["html", "json"], generate_summary=False)

        assert outcomes[0].success is False
        assert outcomes[0].error == "template broken"
        assert outcomes[1].success is True
        assert run.summary_report is None

    @pytest.mark.asyncio
    async def test_existing_summary_kept(self, audit_config):
        run = make_run()
        run.ai_summary = "Already written."
        await ReportManager(audit_config).generate_all_reports(run, ["json"], generate_summary=False)
        assert run.ai_summary == "Already written."

    @pytest.mark.asyncio
    async def test_summary_report_failure_is_an_outcome(self, audit_config):
        manager = ReportManager(audit_config)
        manager.reporters["json"].generate_summary_report = AsyncMock(side_effect=OSError("disk full"))
        run = make_run()

        outcomes = await manager.generate_all_reports(run, ["json"])

        assert [(o.format, o.success) for o in outcomes] == [("json", True), ("json-summary", False)]
        assert outcomes[1].error == "disk full"
        assert run.reports == outcomes
        assert run.summary_report is None
