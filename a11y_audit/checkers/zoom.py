"""Zoom checker: layout overflow and breakage at increasing zoom levels."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from a11y_audit.checkers.base import BaseChecker
from a11y_audit.models.checks import (
    LayoutMetrics,
    ZoomLevelResult,
    ZoomPayload,
    ZoomRecommendation,
)

logger = logging.getLogger(__name__)

OVERFLOW_TOLERANCE_PX = 10
BROKEN_LAYOUT_THRESHOLD = 5
WCAG_ZOOM = 2.0

SET_ZOOM_JS = "(zoom) => { document.body.style.zoom = String(zoom); }"
RESET_ZOOM_JS = "() => { document.body.style.zoom = ''; }"

MEASURE_JS = """() => {
  const body = document.body;
  const viewportWidth = window.innerWidth;
  const viewportHeight = window.innerHeight;
  const offScreen = [];
  for (const el of document.querySelectorAll('*')) {
    const style = window.getComputedStyle(el);
    if (style.display === 'none' || style.visibility === 'hidden') continue;
    const rect = el.getBoundingClientRect();
    const offX = rect.right < -50 || rect.left > viewportWidth + 50;
    const offY = rect.bottom < -50 || rect.top > viewportHeight + 50;
    if (offX || offY) offScreen.push(el);
  }
  return {
    layout: {
      bodyScrollWidth: body.scrollWidth,
      bodyScrollHeight: body.scrollHeight,
      bodyClientWidth: body.clientWidth,
      bodyClientHeight: body.clientHeight,
      windowInnerWidth: viewportWidth,
      windowInnerHeight: viewportHeight,
    },
    offScreenCount: offScreen.length,
    offScreenSample: offScreen.slice(0, 10).map(el => {
      const rect = el.getBoundingClientRect();
      return {
        tagName: el.tagName.toLowerCase(),
        id: el.id,
        className: typeof el.className === 'string' ? el.className : '',
        left: rect.left, top: rect.top, width: rect.width, height: rect.height,
      };
    }),
  };
}"""


def evaluate_zoom_level(
    zoom_level: float,
    layout: LayoutMetrics,
    off_screen_count: int = 0,
    check_vertical_overflow: bool = True,
) -> ZoomLevelResult:
    """Classify a measured layout at ``zoom_level``."""
    excess_width = max(0, layout.body_scroll_width - layout.window_inner_width)
    excess_height = max(0, layout.body_scroll_height - layout.window_inner_height)
    overflow = excess_width > OVERFLOW_TOLERANCE_PX
    if check_vertical_overflow and excess_height > OVERFLOW_TOLERANCE_PX:
        overflow = True
    broken = off_screen_count > BROKEN_LAYOUT_THRESHOLD
    return ZoomLevelResult(
        zoom_level=zoom_level,
        success=True,
        layout=layout,
        overflow=overflow,
        excess_width=excess_width if overflow else 0,
        excess_height=excess_height if overflow else 0,
        layout_broken=broken,
        off_screen_count=off_screen_count,
        ok=not overflow and not broken,
    )


def recommend_zoom(results: list[ZoomLevelResult]) -> ZoomRecommendation:
    supported = [r.zoom_level for r in results if r.ok]
    max_supported = max(supported) if supported else 1.0
    return ZoomRecommendation(
        max_supported_zoom=max_supported,
        supports_125=max_supported >= 1.25,
        supports_150=max_supported >= 1.5,
        supports_200=max_supported >= WCAG_ZOOM,
        meets_wcag=max_supported >= WCAG_ZOOM,
    )


class ZoomChecker(BaseChecker):
    name = "zoom"
    description = "Layout reflow at 125%, 150% and 200% zoom"
    priority = 3

    async def execute_check(
        self, page: Any, page_name: str, options: dict[str, Any],
    ) -> ZoomPayload:
        levels = self.option(options, "zoom_levels", [1.0, 1.25, 1.5, 2.0])
        max_zoom = self.option(options, "max_zoom", WCAG_ZOOM)
        settle = self.option(options, "settle_ms", 500) / 1000
        vertical = self.option(options, "check_vertical_overflow", True)

        tested = [z for z in levels if z <= max_zoom]
        results = []
        for level in tested:
            results.append(await self._test_level(page, level, settle, vertical))

        recommendation = recommend_zoom(results)
        ok_count = sum(1 for r in results if r.ok)
        return ZoomPayload(
            zoom_tests=results,
            layout_issues=[r.zoom_level for r in results if r.layout_broken],
            overflow_issues=[r.zoom_level for r in results if r.overflow],
            max_zoom_tested=max(tested) if tested else 0.0,
            recommendation=recommendation,
            score=round(ok_count / len(results) * 100, 1) if results else 100.0,
            passed=recommendation.meets_wcag,
        )

    async def _test_level(
        self, page: Any, level: float, settle: float, vertical: bool,
    ) -> ZoomLevelResult:
        try:
            await page.evaluate(SET_ZOOM_JS, level)
            await asyncio.sleep(settle)
            measured = await page.evaluate(MEASURE_JS)
            raw = measured["layout"]
            layout = LayoutMetrics(
                body_scroll_width=raw.get("bodyScrollWidth", 0),
                body_scroll_height=raw.get("bodyScrollHeight", 0),
                body_client_width=raw.get("bodyClientWidth", 0),
                body_client_height=raw.get("bodyClientHeight", 0),
                window_inner_width=raw.get("windowInnerWidth", 0),
                window_inner_height=raw.get("windowInnerHeight", 0),
            )
            result = evaluate_zoom_level(
                level, layout, measured.get("offScreenCount", 0), vertical,
            )
            if result.layout_broken:
                result.off_screen_sample = measured.get("offScreenSample") or []
            return result
        except Exception as e:
            logger.debug("Zoom level %.2f failed: %s", level, e)
            return ZoomLevelResult(zoom_level=level, success=False, error=str(e))
        finally:
            try:
                await page.evaluate(RESET_ZOOM_JS)
            except Exception as e:
                logger.debug("Could not reset zoom: %s", e)
