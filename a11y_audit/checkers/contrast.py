"""Color contrast checker built on a targeted rule engine scan."""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

from a11y_audit.checkers.base import BaseChecker
from a11y_audit.models.checks import ContrastIssue, ContrastPayload, RuleResult
from a11y_audit.models.config import AuditConfig
from a11y_audit.scanner.rule_engine import RuleEngineScanner

logger = logging.getLogger(__name__)

CONTRAST_RUN_ONLY = {"type": "rule", "values": ["color-contrast"]}

_RATIO_RE = re.compile(r"contrast (?:ratio )?of ([\d.]+)", re.IGNORECASE)


def parse_contrast_ratio(text: Optional[str]) -> Optional[float]:
    if not text:
        return None
    match = _RATIO_RE.search(text)
    if not match:
        return None
    try:
        return float(match.group(1).rstrip("."))
    except ValueError:
        return None


def contrast_severity(ratio: Optional[float]) -> str:
    if ratio is None:
        return "medium"
    if ratio < 3.0:
        return "critical"
    if ratio < 4.5:
        return "high"
    return "medium"


def violation_ratio(violation: RuleResult) -> Optional[float]:
    """Lowest ratio reported across the violation's nodes, else from its description."""
    ratios = [
        r for r in (parse_contrast_ratio(n.failure_summary) for n in violation.nodes)
        if r is not None
    ]
    if ratios:
        return min(ratios)
    return parse_contrast_ratio(violation.description)


class ContrastChecker(BaseChecker):
    name = "contrast"
    description = "Text and background color contrast ratios"
    priority = 1

    def __init__(self, config: AuditConfig, scanner: Optional[RuleEngineScanner] = None):
        super().__init__(config)
        self.scanner = scanner or RuleEngineScanner(config)

    async def execute_check(
        self, page: Any, page_name: str, options: dict[str, Any],
    ) -> ContrastPayload:
        results = await self.scanner.scan_targeted(page, CONTRAST_RUN_ONLY, page_name)

        issues = []
        for v in results.violations:
            ratio = violation_ratio(v)
            issues.append(ContrastIssue(
                rule_id=v.id,
                impact=v.impact,
                description=v.description,
                contrast_ratio=ratio,
                severity=contrast_severity(ratio),
                node_count=len(v.nodes),
                targets=[n.target for n in v.nodes],
            ))

        nodes_failed = sum(len(v.nodes) for v in results.violations)
        nodes_passed = sum(len(p.nodes) for p in results.passes)
        evaluated = nodes_failed + nodes_passed
        score = round(nodes_passed / evaluated * 100, 1) if evaluated else 100.0

        return ContrastPayload(
            issues=issues,
            nodes_evaluated=evaluated,
            nodes_failed=nodes_failed,
            incomplete=sum(len(i.nodes) for i in results.incomplete),
            score=score,
            passed=not issues,
        )
