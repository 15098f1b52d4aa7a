"""JSON report output."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

from a11y_audit.models.results import RunResult
from a11y_audit.reporter.base import BaseReporter
from a11y_audit.reporter.statistics import run_statistics
from a11y_audit.utils.file_utils import timestamp_slug

REPORT_VERSION = "1.0"


def build_json_report(run: RunResult) -> dict[str, Any]:
    report = run.model_dump()
    report["_metadata"] = {
        "generator": "a11y-audit",
        "version": REPORT_VERSION,
        "generated_at": timestamp_slug(),
    }
    report["summary"] = run_statistics(run)
    return report


def build_summary_report(run: RunResult) -> dict[str, Any]:
    """Compact variant: statistics and per-page headline numbers only."""
    pages = []
    for scan, checks in zip(run.rule_engine_results, run.extra_check_results):
        pages.append({
            "page": scan.page_name,
            "violations": len(getattr(scan.data, "violations", []) or []),
            "scan_error": scan.error,
            "checks_passed": checks.summary.passed,
            "checks_total": checks.summary.total_checks,
            "check_success_rate": checks.summary.success_rate,
        })
    return {
        "started_at": run.started_at,
        "completed_at": run.completed_at,
        "target": run.target,
        "success": run.success,
        "statistics": run_statistics(run),
        "pages": pages,
        "errors": [{"phase": e.phase, "page": e.page, "message": e.message} for e in run.errors],
        "ai_summary": run.ai_summary,
    }


class JsonReporter(BaseReporter):
    format = "json"
    extension = ".json"

    def render(self, run: RunResult) -> str:
        return json.dumps(build_json_report(run), indent=2, default=str)

    async def generate_summary_report(self, run: RunResult) -> Path:
        path = self.output_path("accessibility-summary")
        content = json.dumps(build_summary_report(run), indent=2, default=str)
        await asyncio.to_thread(path.write_text, content, "utf-8")
        return path
