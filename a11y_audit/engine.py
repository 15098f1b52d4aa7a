"""Audit engine: coordinates setup, page scanning, reporting and cleanup."""

from __future__ import annotations

import asyncio
import logging
import time
import traceback
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from a11y_audit.app.lifecycle import AppManager
from a11y_audit.checkers.registry import CheckerRegistry
from a11y_audit.models.checks import KeyboardFocusPayload, RuleEnginePayload
from a11y_audit.models.config import AuditConfig, PageConfig
from a11y_audit.models.results import (
    CheckResult,
    ErrorRecord,
    PageCheckResults,
    RunResult,
    WarningRecord,
    now_iso,
)
from a11y_audit.reporter.reporter import ReportManager
from a11y_audit.scanner.legacy import LegacyScanner
from a11y_audit.scanner.rule_engine import RuleEngineScanner
from a11y_audit.utils.async_utils import run_with_concurrency, safe_click, wait_for_page_ready
from a11y_audit.utils.file_utils import clean_old_files

logger = logging.getLogger(__name__)

NAVIGATION_SETTLE_SECONDS = 0.5


class SuiteAborted(RuntimeError):
    """Raised inside the engine when a page failure stops the suite."""


@dataclass
class SuiteOptions:
    concurrency: Optional[int] = None
    continue_on_error: bool = True
    skip_reports: bool = False
    skip_extra_checks: bool = False
    report_formats: Optional[list[str]] = None
    clean_old_files: bool = False
    generate_summary: bool = True
    checker_options: dict[str, Any] = field(default_factory=dict)


class AuditEngine:
    """Runs one audit suite at a time against the configured application."""

    def __init__(
        self,
        config: AuditConfig,
        app: Optional[AppManager] = None,
        scanner: Optional[RuleEngineScanner] = None,
        legacy_scanner: Optional[LegacyScanner] = None,
        registry: Optional[CheckerRegistry] = None,
        report_manager: Optional[ReportManager] = None,
    ):
        self.config = config
        self.app = app or AppManager(config)
        self.scanner = scanner or RuleEngineScanner(config)
        self.legacy_scanner = legacy_scanner or LegacyScanner(config)
        self.registry = registry or CheckerRegistry.with_defaults(config, self.scanner)
        self.report_manager = report_manager or ReportManager(config)
        self.run: Optional[RunResult] = None
        self._running = False
        self._stop_requested = False
        self._phase = "idle"
        self._started = 0.0

    # ------------------------------------------------------------------
    # Validation & status
    # ------------------------------------------------------------------

    def validate_configuration(self) -> list[str]:
        """Problems that would prevent a run. Empty when the config is usable."""
        problems = []
        if not Path(self.config.exe_path).exists():
            problems.append(f"Executable not found: {self.config.exe_path}")
        if not Path(self.config.rule_engine.script_path).exists():
            problems.append(f"Rule engine script not found: {self.config.rule_engine.script_path}")
        if not self.config.pages:
            problems.append("No pages configured")
        return problems

    def request_stop(self) -> None:
        """Prevent any page or phase that has not started yet from starting."""
        if self._running:
            logger.warning("Stop requested; finishing the current step")
            self._stop_requested = True

    def get_status(self) -> dict[str, Any]:
        run = self.run
        return {
            "running": self._running,
            "phase": self._phase,
            "stop_requested": self._stop_requested,
            "pages_scanned": run.pages_scanned if run else 0,
            "errors": len(run.errors) if run else 0,
            "warnings": len(run.warnings) if run else 0,
            "app": self.app.info(),
        }

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def _record_error(
        self,
        phase: str,
        error: BaseException,
        page: Optional[PageConfig] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        self.run.errors.append(ErrorRecord(
            phase=phase,
            message=str(error) or type(error).__name__,
            error_type=type(error).__name__,
            stack=stack,
            page=page.name if page else None,
            selector=page.selector if page else None,
            context=context or {},
        ))
        logger.error("[%s] %s%s", phase, f"{page.name}: " if page else "", error)
        if self.config.debug:
            logger.debug("%s", stack)

    def _record_warning(
        self, type_: str, message: str, page: Optional[str] = None, file: Optional[str] = None,
    ) -> None:
        self.run.warnings.append(WarningRecord(type=type_, message=message, page=page, file=file))
        logger.warning("%s", message)

    # ------------------------------------------------------------------
    # Suite
    # ------------------------------------------------------------------

    async def run_suite(self, options: Optional[SuiteOptions] = None) -> RunResult:
        """Run setup, scanning and reporting. Always returns the run aggregate."""
        if self._running:
            raise RuntimeError("An audit suite is already running")
        options = options or SuiteOptions()
        self._running = True
        self._stop_requested = False
        self.run = RunResult(target=self.config.exe_path)
        start = self._started = time.time()
        logger.info("=== Starting accessibility audit of %s (%d pages) ===",
                    self.config.exe_path, len(self.config.pages))

        try:
            self._phase = "setup"
            logger.info("--- Phase 1: Setup ---")
            stage_start = time.time()
            await self._setup(options)
            logger.info("--- Phase 1 complete in %.1fs ---", time.time() - stage_start)

            self._phase = "scanning"
            logger.info("--- Phase 2: Scan (%d pages) ---", len(self.config.pages))
            stage_start = time.time()
            await self._scan_pages(options)
            logger.info("--- Phase 2 complete: %d pages scanned in %.1fs ---",
                        self.run.pages_scanned, time.time() - stage_start)

            if not options.skip_reports and not self._stop_requested:
                self._phase = "reporting"
                logger.info("--- Phase 3: Report ---")
                stage_start = time.time()
                await self._generate_reports(options)
                logger.info("--- Phase 3 complete in %.1fs ---", time.time() - stage_start)
        except SuiteAborted as e:
            logger.error("Suite aborted: %s", e)
        except Exception as e:
            self._record_error(self._phase, e)
        finally:
            self._phase = "cleanup"
            await self._cleanup()
            self.run.completed_at = now_iso()
            self.run.duration_seconds = round(time.time() - start, 2)
            self.run.success = not self.run.errors
            self._phase = "idle"
            self._running = False

        logger.info("=== Audit %s in %.1fs: %d pages, %d errors, %d warnings ===",
                    "succeeded" if self.run.success else "failed",
                    self.run.duration_seconds, self.run.pages_scanned,
                    len(self.run.errors), len(self.run.warnings))
        return self.run

    async def _setup(self, options: SuiteOptions) -> None:
        if not self.config.pages:
            raise ValueError("No pages configured for scanning")
        if options.clean_old_files:
            removed = clean_old_files(self.config.report_dir, self.config.report_retention_days)
            removed += clean_old_files(self.config.screenshots_dir,
                                       self.config.screenshot_retention_days)
            logger.info("Removed %d old report/screenshot files", len(removed))
        await self.app.cleanup_processes()
        await self.app.launch_app()
        await self.app.get_main_window()
        self.scanner.reset()

    def _concurrency(self, options: SuiteOptions) -> int:
        return options.concurrency or self.config.max_concurrency

    async def _cleanup(self) -> None:
        try:
            await self.app.close_app()
        except Exception as e:
            logger.warning("Cleanup failed: %s", e)

    async def _scan_pages(self, options: SuiteOptions) -> None:
        pages = list(self.config.pages)
        concurrency = self._concurrency(options)
        if concurrency <= 1 or len(pages) <= 1:
            for page in pages:
                if self._stop_requested:
                    logger.info("Stop requested, skipping remaining pages")
                    break
                try:
                    await self.process_page(page, options)
                except Exception as e:
                    if not options.continue_on_error:
                        raise SuiteAborted(f"Page '{page.name}' failed: {e}") from e
            return

        failures: list[str] = []

        async def _guarded(page: PageConfig) -> None:
            if self._stop_requested:
                return
            try:
                await self.process_page(page, options)
            except Exception:
                failures.append(page.name)

        await run_with_concurrency([(lambda p=p: _guarded(p)) for p in pages], concurrency)
        if failures and not options.continue_on_error:
            raise SuiteAborted(f"Pages failed: {', '.join(failures)}")

    # ------------------------------------------------------------------
    # Page processing
    # ------------------------------------------------------------------

    async def process_page(self, page: PageConfig, options: Optional[SuiteOptions] = None) -> None:
        """Navigate, scan and check one page. Records and re-raises any failure."""
        options = options or SuiteOptions()
        window = self.app.window
        logger.info("Processing page: %s", page.name)
        try:
            await self.navigate_to_page(page)
            scan = await self.run_rule_engine_scan(window, page)
            self.run.rule_engine_results.append(scan)

            if options.skip_extra_checks:
                checks = PageCheckResults(page_name=page.name)
            else:
                checks = await self.registry.run_all_checks(
                    window, page.name, options.checker_options,
                    concurrency=self._concurrency(options),
                )
            self.run.extra_check_results.append(checks)
            self._collect_screenshots(checks)
        except Exception as e:
            self._record_error("page_processing", e, page)
            raise

    async def navigate_to_page(self, page: PageConfig) -> None:
        window = self.app.window
        if window is None:
            raise RuntimeError("No application window available")
        timeout_ms = page.options.timeout_ms or self.config.timeout_ms
        try:
            await safe_click(
                window.locator(page.selector),
                timeout_ms=timeout_ms,
                retries=max(1, self.config.retry_attempts),
                retry_delay=1.0,
                wait_for_visible=True,
            )
            if page.options.wait_for_navigation:
                await wait_for_page_ready(window, timeout_ms=timeout_ms)
            await asyncio.sleep(NAVIGATION_SETTLE_SECONDS)
        except Exception:
            shot = await self.app.emergency_screenshot(f"navigation-{page.name}")
            if shot:
                self._record_warning(
                    "navigation_screenshot",
                    f"Navigation to '{page.name}' failed; screenshot saved",
                    page=page.name, file=shot,
                )
                self.run.screenshots.append(shot)
            raise

    async def run_rule_engine_scan(self, window: Any, page: PageConfig) -> CheckResult:
        """Primary scan, then the legacy path. A double failure yields an empty tagged result."""
        start = time.time()
        try:
            payload = await self.scanner.scan_page(window, page.name)
            return CheckResult(
                checker_name="rule_engine", page_name=page.name, success=True,
                data=payload, duration_seconds=round(time.time() - start, 3),
            )
        except Exception as primary_error:
            logger.warning("Primary scan failed on %s (%s), trying legacy scan",
                           page.name, primary_error)

        try:
            payload = await self.legacy_scanner.scan_page(window, page.name)
            return CheckResult(
                checker_name="rule_engine", page_name=page.name, success=True,
                data=payload, duration_seconds=round(time.time() - start, 3),
            )
        except Exception as legacy_error:
            self._record_error("page_scan", legacy_error, page)
            return CheckResult(
                checker_name="rule_engine", page_name=page.name,
                error=str(legacy_error) or type(legacy_error).__name__,
                data=RuleEnginePayload(failed_fallback=True, error=str(legacy_error)),
                duration_seconds=round(time.time() - start, 3),
            )

    def _collect_screenshots(self, checks: PageCheckResults) -> None:
        for result in checks.checks.values():
            if isinstance(result.data, KeyboardFocusPayload):
                self.run.screenshots.extend(result.data.screenshots)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    async def _generate_reports(self, options: SuiteOptions) -> None:
        formats = options.report_formats or self.config.report_formats
        self.run.completed_at = now_iso()
        self.run.duration_seconds = round(time.time() - self._started, 2)
        self.run.success = not self.run.errors
        try:
            outcomes = await self.report_manager.generate_all_reports(
                self.run, formats, generate_summary=options.generate_summary,
            )
        except Exception as e:
            self._record_warning("report_generation", f"Report generation failed: {e}")
            return
        for outcome in outcomes:
            if not outcome.success:
                self._record_warning(
                    "report_generation", f"{outcome.format} report failed: {outcome.error}",
                )
