"""Keyboard focus checker: focusability, visible focus indicators and labels."""

from __future__ import annotations

import logging
import re
import time
from pathlib import Path
from typing import Any, Optional

from a11y_audit.checkers.base import BaseChecker
from a11y_audit.models.checks import FocusElement, FocusProblem, KeyboardFocusPayload
from a11y_audit.utils.file_utils import ensure_dir, safe_filename

logger = logging.getLogger(__name__)

INTERACTIVE_SELECTOR = (
    'a[href], button, input:not([type="hidden"]), textarea, select, '
    '[role="button"], [role="link"], [role="tab"], [role="menuitem"], '
    '[tabindex]:not([tabindex="-1"])'
)

FOCUS_CHECK_JS = """({ selector, maxElements }) => {
  const uniqueSelector = (el) => {
    if (el.id) return '#' + CSS.escape(el.id);
    const parts = [];
    let current = el;
    while (current && current.nodeType === 1 && current.tagName.toLowerCase() !== 'html') {
      let part = current.tagName.toLowerCase();
      const classes = (typeof current.className === 'string' ? current.className : '')
        .trim().split(/\\s+/).filter(Boolean);
      if (classes.length) part += '.' + classes.map(c => CSS.escape(c)).join('.');
      const siblings = current.parentNode ? Array.from(current.parentNode.children) : [];
      if (siblings.length > 1) part += ':nth-child(' + (siblings.indexOf(current) + 1) + ')';
      parts.unshift(part);
      current = current.parentNode;
      if (parts.length > 5) break;
    }
    return parts.join(' > ');
  };

  const elements = Array.from(document.querySelectorAll(selector))
    .slice(0, maxElements)
    .filter(el => {
      const rect = el.getBoundingClientRect();
      const style = window.getComputedStyle(el);
      return rect.width > 0 && rect.height > 0 && style.display !== 'none'
        && style.visibility !== 'hidden' && style.opacity !== '0';
    });

  return elements.map((el, index) => {
    const originalOutline = el.style.outline;
    const originalBoxShadow = el.style.boxShadow;
    try {
      el.focus();
      const style = window.getComputedStyle(el);
      return {
        index,
        tagName: el.tagName.toLowerCase(),
        role: el.getAttribute('role'),
        ariaLabel: el.getAttribute('aria-label') || el.getAttribute('aria-labelledby'),
        text: (el.textContent || el.value || '').trim().substring(0, 100),
        visible: true,
        focused: document.activeElement === el,
        outline: style.outline,
        boxShadow: style.boxShadow,
        selector: uniqueSelector(el),
      };
    } catch (e) {
      return { index, tagName: el.tagName.toLowerCase(), error: String(e), visible: false, focused: null };
    } finally {
      el.style.outline = originalOutline;
      el.style.boxShadow = originalBoxShadow;
      if (typeof el.blur === 'function') el.blur();
    }
  });
}"""

SEVERITY_BY_ISSUE = {
    "not-focusable": "critical",
    "no-visible-focus": "high",
    "missing-label": "medium",
}
_SEVERITY_ORDER = ["critical", "high", "medium", "low"]

_ZERO_WIDTH_RE = re.compile(r"^0(\.0+)?(px)?$")
_LENGTH_RE = re.compile(r"^-?\d*\.?\d+(px|em|rem)?$")


def _without_colors(value: Optional[str]) -> list[str]:
    return re.sub(r"\([^)]*\)", "", value or "").replace(",", " ").split()


def has_visible_focus_indicator(outline: Optional[str], box_shadow: Optional[str]) -> bool:
    """Whether computed ``outline`` or ``box-shadow`` values draw something."""
    # Computed shorthand looks like "rgb(16, 16, 16) none 0px"
    tokens = _without_colors(outline)
    if tokens and "none" not in tokens and not any(_ZERO_WIDTH_RE.match(t) for t in tokens):
        return True
    # "rgb(0, 0, 0) 0px 0px 0px 0px" has every offset, blur and spread at zero
    tokens = _without_colors(box_shadow)
    if not tokens or "none" in tokens:
        return False
    lengths = [t for t in tokens if _LENGTH_RE.match(t)]
    return any(not _ZERO_WIDTH_RE.match(t) for t in lengths)


def issue_severity(issues: list[str]) -> str:
    severities = [SEVERITY_BY_ISSUE.get(i, "low") for i in issues]
    for level in _SEVERITY_ORDER:
        if level in severities:
            return level
    return "low"


def identify_problems(elements: list[FocusElement]) -> list[FocusProblem]:
    problems = []
    for el in elements:
        issues = []
        if el.focused is False:
            issues.append("not-focusable")
        if el.focused is True and not el.has_visible_focus:
            issues.append("no-visible-focus")
        if not el.aria_label and not el.text:
            issues.append("missing-label")
        if issues:
            problems.append(FocusProblem(
                index=el.index, element=el, issues=issues, severity=issue_severity(issues),
            ))
    return problems


def _to_element(raw: dict[str, Any]) -> FocusElement:
    outline = raw.get("outline") or ""
    box_shadow = raw.get("boxShadow") or ""
    return FocusElement(
        index=raw.get("index", 0),
        tag_name=raw.get("tagName") or "",
        role=raw.get("role"),
        aria_label=raw.get("ariaLabel"),
        text=raw.get("text") or "",
        visible=bool(raw.get("visible", False)),
        focused=raw.get("focused"),
        has_visible_focus=has_visible_focus_indicator(outline, box_shadow),
        outline=outline,
        box_shadow=box_shadow,
        selector=raw.get("selector") or "",
        error=raw.get("error"),
    )


class KeyboardFocusChecker(BaseChecker):
    name = "keyboard_focus"
    description = "Keyboard focusability and visible focus indicators"
    priority = 2

    async def execute_check(
        self, page: Any, page_name: str, options: dict[str, Any],
    ) -> KeyboardFocusPayload:
        max_elements = self.option(options, "max_elements", 50)
        raw = await page.evaluate(
            FOCUS_CHECK_JS, {"selector": INTERACTIVE_SELECTOR, "maxElements": max_elements},
        )
        elements = [_to_element(r) for r in (raw or [])]
        problems = identify_problems(elements)

        screenshots: list[str] = []
        if problems and self.option(options, "take_screenshots", True):
            screenshots = await self._screenshot_problems(
                page, problems, page_name, self.option(options, "max_screenshots", 10),
            )

        total = len(elements)
        flagged = len(problems)
        return KeyboardFocusPayload(
            elements=elements,
            total_elements=total,
            focusable_elements=sum(1 for e in elements if e.focused is not None),
            visible_focusable_elements=sum(1 for e in elements if e.visible),
            problems=problems,
            screenshots=screenshots,
            score=round((total - flagged) / total * 100, 1) if total else 100.0,
            passed=not problems,
        )

    async def _screenshot_problems(
        self, page: Any, problems: list[FocusProblem], page_name: str, limit: int,
    ) -> list[str]:
        out_dir = ensure_dir(Path(self.config.screenshots_dir))
        paths = []
        for problem in problems[:limit]:
            selector = problem.element.selector
            if not selector:
                continue
            path = out_dir / (
                f"keyboard-{safe_filename(page_name)}-{problem.index}-"
                f"{int(time.time() * 1000)}.png"
            )
            try:
                await page.locator(selector).first.screenshot(path=str(path), timeout=2000)
                paths.append(str(path))
            except Exception as e:
                logger.debug("Could not screenshot %s: %s", selector, e)
        return paths
