"""axe-core rule engine scanner: injection, readiness and guarded execution."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, Optional

from a11y_audit.models.checks import RuleEnginePayload
from a11y_audit.models.config import AuditConfig
from a11y_audit.utils.async_utils import poll, wait_for_page_ready, with_timeout

logger = logging.getLogger(__name__)

AXE_PRESENT_JS = "() => !!window.axe"
AXE_RUN_JS = "async (options) => await window.axe.run(document, options)"
AXE_INFO_JS = """() => window.axe ? {
  version: window.axe.version,
  rules: window.axe.getRules().map(r => r.ruleId)
} : null"""

INJECTION_TIMEOUT = 5.0


class RuleEngineScanner:
    """Primary scan path.

    Injects the engine once per window, verifies it before every scan and
    races each run against ``timeout_ms``.
    """

    def __init__(self, config: AuditConfig):
        self.config = config
        self.script_path = Path(config.rule_engine.script_path)
        self._injected = False

    def reset(self) -> None:
        """Forget the injected state, e.g. after the window was replaced."""
        self._injected = False

    async def _is_present(self, page: Any) -> bool:
        try:
            return bool(await page.evaluate(AXE_PRESENT_JS))
        except Exception:
            return False

    async def ensure_injected(self, page: Any) -> None:
        if self._injected and await self._is_present(page):
            return
        if not self.script_path.exists():
            raise FileNotFoundError(f"Rule engine script not found: {self.script_path}")

        logger.debug("Injecting rule engine from %s", self.script_path)
        await page.add_script_tag(path=str(self.script_path))
        await poll(
            lambda: self._is_present(page),
            interval=0.1,
            timeout=INJECTION_TIMEOUT,
            message="Rule engine did not become available after injection",
        )
        self._injected = True

    def build_options(self, run_only: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        options = self.config.rule_engine.to_run_options()
        if run_only:
            options["runOnly"] = run_only
        return options

    async def scan_page(
        self, page: Any, page_name: str = "", run_only: Optional[dict[str, Any]] = None,
    ) -> RuleEnginePayload:
        """Run the rule engine against the current document. Raises on any failure."""
        start = time.time()
        await self.ensure_injected(page)
        await wait_for_page_ready(page, min_wait_ms=self.config.wait_timeout_ms,
                                  timeout_ms=self.config.timeout_ms)

        options = self.build_options(run_only)
        raw = await with_timeout(
            page.evaluate(AXE_RUN_JS, options),
            self.config.timeout_ms / 1000,
            f"Rule engine scan timed out after {self.config.timeout_ms}ms",
        )
        if not isinstance(raw, dict):
            raise RuntimeError("Rule engine returned no results")

        payload = RuleEnginePayload.from_raw(raw)
        logger.debug("Scan of %s: %d violations, %d passes in %.1fs",
                     page_name or "page", len(payload.violations),
                     len(payload.passes), time.time() - start)
        return payload

    async def scan_targeted(
        self, page: Any, run_only: dict[str, Any], page_name: str = "",
    ) -> RuleEnginePayload:
        return await self.scan_page(page, page_name, run_only=run_only)

    async def engine_info(self, page: Any) -> Optional[dict[str, Any]]:
        try:
            await self.ensure_injected(page)
            return await page.evaluate(AXE_INFO_JS)
        except Exception as e:
            logger.debug("Could not read rule engine info: %s", e)
            return None
