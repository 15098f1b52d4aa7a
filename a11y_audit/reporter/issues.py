"""Turn a JSON audit report into per-issue Markdown files and a CSV index."""

from __future__ import annotations

import csv
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from a11y_audit.utils.file_utils import ensure_dir, latest_file, safe_filename

logger = logging.getLogger(__name__)

REPORT_PATTERN = "accessibility-report-*.json"
CSV_NAME = "a11y-issues.csv"
CSV_FIELDS = ["id", "summary", "category", "severity", "page", "rule", "file"]

IMPACT_SEVERITY = {"critical": "Critical", "serious": "Serious"}
KEYBOARD_SEVERITY = {"critical": "Critical", "high": "Serious"}


@dataclass
class Issue:
    summary: str
    category: str
    severity: str
    page: str
    rule: str = ""
    details: list[str] = field(default_factory=list)
    help_url: str = ""


def impact_severity(impact: Optional[str]) -> str:
    return IMPACT_SEVERITY.get((impact or "").lower(), "Moderate")


def _contrast_issues(page: str, data: dict[str, Any]) -> list[Issue]:
    issues = []
    for bucket, label in (("violations", "Low color contrast"),
                          ("incomplete", "Color contrast needs review")):
        for rule in data.get(bucket) or []:
            if rule.get("id") != "color-contrast":
                continue
            for node in rule.get("nodes") or []:
                target = ", ".join(str(t) for t in node.get("target") or [])
                issues.append(Issue(
                    summary=f"{label} on {page}: {target or 'element'}",
                    category="contrast",
                    severity=impact_severity(node.get("impact") or rule.get("impact")),
                    page=page,
                    rule="color-contrast",
                    details=[d for d in (node.get("failure_summary"), node.get("html")) if d],
                    help_url=rule.get("help_url", ""),
                ))
    return issues


def _lang_issue(page: str, data: dict[str, Any]) -> list[Issue]:
    for rule in data.get("violations") or []:
        if rule.get("id") == "html-has-lang":
            return [Issue(
                summary=f"Missing document language on {page}",
                category="lang",
                severity="Serious",
                page=page,
                rule="html-has-lang",
                details=[rule.get("help") or rule.get("description") or ""],
                help_url=rule.get("help_url", ""),
            )]
    return []


def _keyboard_issues(page: str, data: dict[str, Any]) -> list[Issue]:
    issues = []
    for problem in data.get("problems") or []:
        element = problem.get("element") or {}
        selector = element.get("selector") or element.get("tag_name") or "element"
        issues.append(Issue(
            summary=f"Keyboard focus issue on {page}: {selector}",
            category="keyboard",
            severity=KEYBOARD_SEVERITY.get(problem.get("severity", ""), "Moderate"),
            page=page,
            rule=", ".join(problem.get("issues") or []),
            details=[f"Element text: {element.get('text', '')}"],
        ))
    return issues


def _zoom_issues(page: str, data: dict[str, Any]) -> list[Issue]:
    issues = []
    for level in data.get("zoom_tests") or []:
        if level.get("ok"):
            continue
        zoom = level.get("zoom_level", 0)
        reason = level.get("error") or ("content overflows" if level.get("overflow") else "layout breaks")
        issues.append(Issue(
            summary=f"Layout fails at {zoom * 100:.0f}% zoom on {page}",
            category="zoom",
            severity="Moderate",
            page=page,
            rule="zoom",
            details=[reason],
        ))
    return issues


def extract_issues(report: dict[str, Any]) -> list[Issue]:
    """Flatten a JSON report into individual, de-duplicated issues."""
    issues: list[Issue] = []
    for scan in report.get("rule_engine_results") or []:
        page = scan.get("page_name", "")
        data = scan.get("data") or {}
        issues.extend(_contrast_issues(page, data))
        issues.extend(_lang_issue(page, data))

    for page_checks in report.get("extra_check_results") or []:
        page = page_checks.get("page_name", "")
        checks = page_checks.get("checks") or {}
        keyboard = (checks.get("keyboard_focus") or {}).get("data") or {}
        zoom = (checks.get("zoom") or {}).get("data") or {}
        issues.extend(_keyboard_issues(page, keyboard))
        issues.extend(_zoom_issues(page, zoom))

    seen = set()
    unique = []
    for issue in issues:
        key = (issue.summary, issue.rule)
        if key not in seen:
            seen.add(key)
            unique.append(issue)
    return unique


def _render_markdown(number: int, issue: Issue) -> str:
    lines = [
        f"# {number:02d}. {issue.summary}",
        "",
        f"- **Category:** {issue.category}",
        f"- **Severity:** {issue.severity}",
        f"- **Page:** {issue.page}",
    ]
    if issue.rule:
        lines.append(f"- **Rule:** {issue.rule}")
    if issue.help_url:
        lines.append(f"- **Reference:** {issue.help_url}")
    if issue.details:
        lines += ["", "## Details", ""]
        lines += [f"```\n{d}\n```" for d in issue.details if d]
    return "\n".join(lines) + "\n"


def write_issue_outputs(issues: list[Issue], output_dir: str | Path) -> Path:
    """Write ``md/NN_<summary>.md`` per issue plus a CSV index. Returns the CSV path."""
    output_dir = ensure_dir(output_dir)
    md_dir = ensure_dir(output_dir / "md")
    csv_path = output_dir / CSV_NAME
    with open(csv_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=CSV_FIELDS)
        writer.writeheader()
        for number, issue in enumerate(issues, 1):
            md_path = md_dir / f"{number:02d}_{safe_filename(issue.summary)}.md"
            md_path.write_text(_render_markdown(number, issue), encoding="utf-8")
            writer.writerow({
                "id": number,
                "summary": issue.summary,
                "category": issue.category,
                "severity": issue.severity,
                "page": issue.page,
                "rule": issue.rule,
                "file": str(md_path.relative_to(output_dir)),
            })
    logger.info("Wrote %d issue(s) to %s", len(issues), output_dir)
    return csv_path


def extract_from_latest_report(report_dir: str | Path, output_dir: str | Path) -> tuple[list[Issue], Path]:
    report_path = latest_file(report_dir, REPORT_PATTERN)
    if report_path is None:
        raise FileNotFoundError(f"No JSON report found in {report_dir}")
    logger.info("Extracting issues from %s", report_path)
    with open(report_path, encoding="utf-8") as f:
        report = json.load(f)
    issues = extract_issues(report)
    return issues, write_issue_outputs(issues, output_dir)
