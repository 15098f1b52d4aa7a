"""Aggregate statistics over a run's scan and checker results."""

from __future__ import annotations

from collections import Counter
from typing import Any

from a11y_audit.models.checks import RuleEnginePayload
from a11y_audit.models.results import RunResult


def rule_engine_stats(run: RunResult) -> dict[str, Any]:
    pages = len(run.rule_engine_results)
    by_impact: Counter = Counter()
    by_rule: Counter = Counter()
    total_violations = 0
    total_passes = 0
    total_incomplete = 0
    pages_with_violations = 0
    fallback_pages = 0
    failed_pages = 0

    for result in run.rule_engine_results:
        data = result.data
        if not isinstance(data, RuleEnginePayload):
            continue
        if data.used_legacy_fallback:
            fallback_pages += 1
        if data.failed_fallback:
            failed_pages += 1
        if data.violations:
            pages_with_violations += 1
        total_violations += len(data.violations)
        total_passes += len(data.passes)
        total_incomplete += len(data.incomplete)
        for v in data.violations:
            by_impact[v.impact or "unknown"] += 1
            by_rule[v.id] += 1

    return {
        "total_pages": pages,
        "total_violations": total_violations,
        "total_passes": total_passes,
        "total_incomplete": total_incomplete,
        "violations_by_impact": dict(by_impact),
        "violations_by_rule": dict(by_rule.most_common()),
        "pages_with_violations": pages_with_violations,
        "pages_without_violations": pages - pages_with_violations,
        "average_violations_per_page": round(total_violations / pages, 2) if pages else 0,
        "average_passes_per_page": round(total_passes / pages, 2) if pages else 0,
        "legacy_fallback_pages": fallback_pages,
        "failed_scan_pages": failed_pages,
    }


def checker_stats(run: RunResult) -> dict[str, dict[str, Any]]:
    stats: dict[str, dict[str, Any]] = {}
    scores: dict[str, list[float]] = {}
    for page in run.extra_check_results:
        for name, result in page.checks.items():
            entry = stats.setdefault(name, {
                "total": 0, "successful": 0, "failed": 0, "errors": 0,
            })
            entry["total"] += 1
            if result.success:
                entry["successful"] += 1
            elif result.error:
                entry["errors"] += 1
            else:
                entry["failed"] += 1
            if result.score is not None:
                scores.setdefault(name, []).append(result.score)

    for name, entry in stats.items():
        entry["success_rate"] = round(entry["successful"] / entry["total"] * 100) if entry["total"] else 0
        values = scores.get(name, [])
        entry["average_score"] = round(sum(values) / len(values), 1) if values else None
    return stats


def run_statistics(run: RunResult) -> dict[str, Any]:
    return {
        "rule_engine": rule_engine_stats(run),
        "checkers": checker_stats(run),
        "errors": len(run.errors),
        "warnings": len(run.warnings),
        "screenshots": len(run.screenshots),
        "success": run.success,
        "duration_seconds": run.duration_seconds,
    }
