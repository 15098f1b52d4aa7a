"""Fallback scanner with fixed waits and no timeout race."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

from a11y_audit.models.checks import RuleEnginePayload
from a11y_audit.models.config import AuditConfig
from a11y_audit.scanner.rule_engine import AXE_PRESENT_JS

logger = logging.getLogger(__name__)

SETTLE_SECONDS = 3.0
INJECT_SETTLE_SECONDS = 0.1


class LegacyScanner:
    """Tolerant scan path used when the primary scanner fails."""

    def __init__(self, config: AuditConfig):
        self.config = config
        self.script_path = Path(config.rule_engine.script_path)

    async def scan_page(self, page: Any, page_name: str = "") -> RuleEnginePayload:
        logger.info("Running legacy scan on %s", page_name or "page")
        await page.wait_for_load_state("domcontentloaded")
        await asyncio.sleep(SETTLE_SECONDS)

        if not await page.evaluate(AXE_PRESENT_JS):
            await page.add_script_tag(path=str(self.script_path))
            await asyncio.sleep(INJECT_SETTLE_SECONDS)

        raw = await page.evaluate(
            "async () => await window.axe.run(document, {})"
        )
        if not isinstance(raw, dict):
            raise RuntimeError("Legacy rule engine run returned no results")
        return RuleEnginePayload.from_raw(raw, used_legacy_fallback=True)
