"""Checker registration and page-level execution."""

from __future__ import annotations

import logging
import time
from typing import Any, Iterable, Optional

from a11y_audit.checkers.accessibility_tree import AccessibilityTreeChecker
from a11y_audit.checkers.base import BaseChecker
from a11y_audit.checkers.contrast import ContrastChecker
from a11y_audit.checkers.keyboard_focus import KeyboardFocusChecker
from a11y_audit.checkers.zoom import ZoomChecker
from a11y_audit.models.config import AuditConfig
from a11y_audit.models.results import CheckResult, CheckSummary, PageCheckResults
from a11y_audit.scanner.rule_engine import RuleEngineScanner
from a11y_audit.utils.async_utils import run_with_concurrency

logger = logging.getLogger(__name__)


def summarize_checks(checks: Iterable[CheckResult], duration_seconds: float = 0.0) -> CheckSummary:
    results = list(checks)
    total = len(results)
    passed = sum(1 for r in results if r.success)
    errors = sum(1 for r in results if not r.success and r.error)
    failed = sum(1 for r in results if not r.success and not r.error)
    return CheckSummary(
        total_checks=total,
        passed=passed,
        failed=failed,
        errors=errors,
        success_rate=round(passed / total * 100) if total else 0,
        duration_seconds=round(duration_seconds, 3),
    )


class CheckerRegistry:
    """Holds checkers in registration order and runs them against a page."""

    def __init__(self, config: AuditConfig, scanner: Optional[RuleEngineScanner] = None):
        self.config = config
        self._checkers: dict[str, BaseChecker] = {}
        self.scanner = scanner or RuleEngineScanner(config)

    @classmethod
    def with_defaults(
        cls, config: AuditConfig, scanner: Optional[RuleEngineScanner] = None,
    ) -> "CheckerRegistry":
        registry = cls(config, scanner)
        registry.register(ContrastChecker(config, registry.scanner))
        registry.register(KeyboardFocusChecker(config))
        registry.register(ZoomChecker(config))
        registry.register(AccessibilityTreeChecker(config))
        return registry

    def register(self, checker: BaseChecker) -> None:
        if checker.name in self._checkers:
            logger.warning("Replacing registered checker: %s", checker.name)
        self._checkers[checker.name] = checker

    def unregister(self, name: str) -> bool:
        return self._checkers.pop(name, None) is not None

    def get(self, name: str) -> Optional[BaseChecker]:
        return self._checkers.get(name)

    def available_checkers(self) -> list[dict[str, Any]]:
        return [c.info() for c in self._checkers.values()]

    def enabled_checkers(self) -> list[BaseChecker]:
        enabled = [c for c in self._checkers.values() if c.is_enabled()]
        return sorted(enabled, key=lambda c: c.priority)

    async def _run_single_check(
        self, checker: BaseChecker, page: Any, page_name: str, options: dict[str, Any],
    ) -> CheckResult:
        try:
            return await checker.run(page, page_name, options.get(checker.name, {}))
        except Exception as e:
            logger.error("Checker %s raised outside its run wrapper: %s", checker.name, e)
            return CheckResult(
                checker_name=checker.name, page_name=page_name,
                success=False, error=str(e) or type(e).__name__,
            )

    async def _execute(
        self,
        checkers: list[BaseChecker],
        page: Any,
        page_name: str,
        options: dict[str, Any],
        concurrency: int,
    ) -> PageCheckResults:
        start = time.time()
        if concurrency > 1:
            results = await run_with_concurrency(
                [
                    (lambda c=c: self._run_single_check(c, page, page_name, options))
                    for c in checkers
                ],
                concurrency,
            )
        else:
            results = []
            for checker in checkers:
                results.append(await self._run_single_check(checker, page, page_name, options))

        duration = time.time() - start
        summary = summarize_checks(results, duration)
        logger.info(
            "Checks on %s: %d passed, %d failed, %d errors (%d%%) in %.1fs",
            page_name, summary.passed, summary.failed, summary.errors,
            summary.success_rate, duration,
        )
        return PageCheckResults(
            page_name=page_name,
            checks={r.checker_name: r for r in results},
            summary=summary,
        )

    async def run_all_checks(
        self,
        page: Any,
        page_name: str,
        options: dict[str, Any] | None = None,
        concurrency: Optional[int] = None,
    ) -> PageCheckResults:
        """Run every enabled checker in priority order.

        ``options`` maps checker name to that checker's per-call options.
        ``concurrency`` overrides ``config.max_concurrency``; 1 runs checkers one at a time.
        """
        checkers = self.enabled_checkers()
        logger.debug("Running %d checkers on %s", len(checkers), page_name)
        return await self._execute(
            checkers, page, page_name, options or {},
            concurrency or self.config.max_concurrency,
        )

    async def run_specific_checks(
        self,
        names: list[str],
        page: Any,
        page_name: str,
        options: dict[str, Any] | None = None,
    ) -> PageCheckResults:
        """Run the named checkers sequentially, regardless of their enabled flag."""
        checkers = sorted(
            (self._checkers[n] for n in names if n in self._checkers),
            key=lambda c: c.priority,
        )
        if not checkers:
            raise ValueError(f"No registered checkers match: {', '.join(names)}")
        return await self._execute(checkers, page, page_name, options or {}, concurrency=1)
