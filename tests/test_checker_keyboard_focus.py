"""Tests for the keyboard focus checker."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from a11y_audit.checkers.keyboard_focus import (
    INTERACTIVE_SELECTOR,
    KeyboardFocusChecker,
    has_visible_focus_indicator,
    identify_problems,
    issue_severity,
)
from a11y_audit.models.checks import FocusElement


def _raw(index, focused=True, outline="rgb(0, 95, 204) auto 1px", box_shadow="none",
         text="Save", label=None, selector=None):
    return {
        "index": index, "tagName": "button", "role": None, "ariaLabel": label,
        "text": text, "visible": True, "focused": focused,
        "outline": outline, "boxShadow": box_shadow,
        "selector": selector if selector is not None else f"#btn-{index}",
    }


class TestFocusIndicator:
    @pytest.mark.parametrize("outline,box_shadow,expected", [
        ("rgb(0, 95, 204) auto 1px", "none", True),
        ("2px solid red", None, True),
        ("rgb(16, 16, 16) none 0px", "none", False),
        ("none", "none", False),
        ("", "", False),
        (None, None, False),
        ("rgb(0, 0, 0) solid 0px", "rgb(0, 0, 255) 0px 0px 0px 3px", True),
        ("rgb(0, 0, 0) none 0px", "rgb(0, 0, 0) 0px 0px 0px 0px", False),
        ("none", "rgba(0, 0, 0, 0.5) 0px 0px, rgb(0, 0, 0) 0px 0px 0px 0px", False),
        ("none", "rgb(0, 0, 0) 0px 0px 0px 0px, rgb(0, 95, 204) 0px 0px 0px 2px", True),
        ("none", "inset 0 0 0 2px blue", True),
    ])
    def test_has_visible_focus_indicator(self, outline, box_shadow, expected):
        assert has_visible_focus_indicator(outline, box_shadow) is expected


class TestProblems:
    def test_identify_problems(self):
        elements = [
            FocusElement(index=0, focused=True, has_visible_focus=True, text="OK"),
            FocusElement(index=1, focused=False, text="Hidden"),
            FocusElement(index=2, focused=True, has_visible_focus=False, text="Plain"),
            FocusElement(index=3, focused=True, has_visible_focus=True, text=""),
        ]
        problems = identify_problems(elements)
        assert [(p.index, p.issues, p.severity) for p in problems] == [
            (1, ["not-focusable"], "critical"),
            (2, ["no-visible-focus"], "high"),
            (3, ["missing-label"], "medium"),
        ]

    def test_severity_takes_worst(self):
        assert issue_severity(["missing-label", "no-visible-focus"]) == "high"
        assert issue_severity(["something-else"]) == "low"


class TestKeyboardFocusChecker:
    @pytest.mark.asyncio
    async def test_run_scores_and_screenshots(self, audit_config, mock_page):
        mock_page.evaluate = AsyncMock(return_value=[
            _raw(0),
            _raw(1, outline="rgb(16, 16, 16) none 0px"),
            _raw(2),
            _raw(3, text="", label=None, selector=""),
        ])
        result = await KeyboardFocusChecker(audit_config).run(mock_page, "Home Screen")

        args = mock_page.evaluate.await_args.args
        assert args[1] == {"selector": INTERACTIVE_SELECTOR, "maxElements": 50}
        data = result.data
        assert result.success is False
        assert data.total_elements == 4
        assert [p.index for p in data.problems] == [1, 3]
        assert data.score == 50.0
        # element 3 has no selector, so only one screenshot is attempted
        assert len(data.screenshots) == 1
        assert Path(data.screenshots[0]).parent == Path(audit_config.screenshots_dir)
        mock_page.locator.assert_called_once_with("#btn-1")

    @pytest.mark.asyncio
    async def test_screenshot_failures_are_skipped(self, audit_config, mock_page):
        mock_page.evaluate = AsyncMock(return_value=[_raw(0, outline="none")])
        mock_page.locator.return_value.first.screenshot = AsyncMock(side_effect=RuntimeError("gone"))
        result = await KeyboardFocusChecker(audit_config).run(mock_page, "Home")
        assert result.error is None
        assert result.data.screenshots == []
        assert len(result.data.problems) == 1

    @pytest.mark.asyncio
    async def test_options_override_settings(self, audit_config, mock_page):
        mock_page.evaluate = AsyncMock(return_value=[_raw(i, outline="none") for i in range(3)])
        result = await KeyboardFocusChecker(audit_config).run(
            mock_page, "Home", {"max_elements": 10, "max_screenshots": 1},
        )
        assert mock_page.evaluate.await_args.args[1]["maxElements"] == 10
        assert len(result.data.screenshots) == 1

    @pytest.mark.asyncio
    async def test_screenshots_disabled(self, audit_config, mock_page):
        mock_page.evaluate = AsyncMock(return_value=[_raw(0, outline="none")])
        result = await KeyboardFocusChecker(audit_config).run(
            mock_page, "Home", {"take_screenshots": False},
        )
        assert result.data.screenshots == []
        mock_page.locator.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_elements_passes(self, audit_config, mock_page):
        mock_page.evaluate = AsyncMock(return_value=[])
        result = await KeyboardFocusChecker(audit_config).run(mock_page, "Home")
        assert result.success is True
        assert result.data.score == 100.0
