"""Report generation orchestration."""

from __future__ import annotations

import logging
from typing import Optional

from a11y_audit.ai.client import SummaryWriter
from a11y_audit.models.config import AuditConfig
from a11y_audit.models.results import ReportOutcome, RunResult
from a11y_audit.reporter.base import BaseReporter
from a11y_audit.reporter.html_report import HtmlReporter
from a11y_audit.reporter.json_report import JsonReporter, build_summary_report
from a11y_audit.reporter.statistics import rule_engine_stats, run_statistics
from a11y_audit.utils.async_utils import run_with_concurrency

logger = logging.getLogger(__name__)

REPORT_CONCURRENCY = 2
SUMMARY_REPORT_FORMAT = "json-summary"


class ReportManager:
    """Generates every requested report format for a run. Never raises per format."""

    def __init__(self, config: AuditConfig, summary_writer: Optional[SummaryWriter] = None):
        self.config = config
        self.summary_writer = summary_writer
        if summary_writer is None and config.ai_summary:
            try:
                self.summary_writer = SummaryWriter(model=config.ai_model)
            except EnvironmentError as e:
                logger.warning("AI summary unavailable: %s. Using basic summary.", e)
        self.reporters: dict[str, BaseReporter] = {}
        self.register(HtmlReporter(config.report_dir))
        self.register(JsonReporter(config.report_dir))

    def register(self, reporter: BaseReporter) -> None:
        self.reporters[reporter.format] = reporter

    async def _generate_one(self, fmt: str, run: RunResult) -> ReportOutcome:
        reporter = self.reporters.get(fmt)
        if reporter is None:
            logger.warning("Unknown report format: %s", fmt)
            return ReportOutcome(format=fmt, success=False, error=f"Unknown report format: {fmt}")
        try:
            logger.debug("Generating %s report...", fmt.upper())
            path = await reporter.generate(run)
            logger.info("%s report: %s", fmt.upper(), path)
            return ReportOutcome(format=fmt, success=True, path=str(path))
        except Exception as e:
            logger.error("%s report failed: %s", fmt.upper(), e)
            return ReportOutcome(format=fmt, success=False, error=str(e))

    async def generate_all_reports(
        self,
        run: RunResult,
        formats: Optional[list[str]] = None,
        generate_summary: bool = True,
    ) -> list[ReportOutcome]:
        """Generate all requested formats. Outcomes are stored on ``run.reports``.

        A failed summary-only JSON report is appended as a ``json-summary`` outcome.
        """
        formats = formats or self.config.report_formats
        if not run.ai_summary:
            run.ai_summary = await self.write_summary(run)

        outcomes = await run_with_concurrency(
            [(lambda f=f: self._generate_one(f, run)) for f in formats],
            REPORT_CONCURRENCY,
        )
        run.reports = list(outcomes)

        if generate_summary and isinstance(self.reporters.get("json"), JsonReporter):
            try:
                path = await self.reporters["json"].generate_summary_report(run)
                run.summary_report = str(path)
                logger.info("Summary report: %s", path)
            except Exception as e:
                logger.error("Summary report failed: %s", e)
                run.reports.append(ReportOutcome(
                    format=SUMMARY_REPORT_FORMAT, success=False, error=str(e) or type(e).__name__,
                ))
        return run.reports

    async def write_summary(self, run: RunResult) -> str:
        """AI-written summary when available, otherwise the basic one."""
        if not self.summary_writer:
            return generate_basic_summary(run)
        try:
            return await self.summary_writer.summarize(
                run_statistics(run), build_summary_report(run)["pages"],
            )
        except Exception as e:
            logger.warning("AI summary generation failed: %s", e)
            return generate_basic_summary(run)


def generate_basic_summary(run: RunResult) -> str:
    """Deterministic one-paragraph summary."""
    stats = rule_engine_stats(run)
    parts = [
        f"Scanned {stats['total_pages']} page(s) of {run.target or 'the application'}: "
        f"{stats['total_violations']} rule violation(s), {stats['total_passes']} passing rule(s).",
    ]
    if stats["violations_by_impact"]:
        impacts = ", ".join(f"{v} {k}" for k, v in sorted(stats["violations_by_impact"].items()))
        parts.append(f"By impact: {impacts}.")
    top_rules = list(stats["violations_by_rule"])[:5]
    if top_rules:
        parts.append(f"Most frequent: {', '.join(top_rules)}.")
    if run.errors:
        parts.append(f"{len(run.errors)} error(s) occurred during the run.")
    return " ".join(parts)
