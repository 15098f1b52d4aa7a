"""Pytest configuration and shared fixtures."""

from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Page

from a11y_audit.models.checks import RuleEnginePayload
from a11y_audit.models.config import AuditConfig, PageConfig
from a11y_audit.models.results import CheckResult, PageCheckResults, RunResult


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def fake_exe(tmp_path: Path) -> Path:
    """Create a placeholder executable file."""
    exe = tmp_path / "app" / "MyApp.exe"
    exe.parent.mkdir(parents=True)
    exe.write_text("binary")
    return exe


@pytest.fixture
def axe_script(tmp_path: Path) -> Path:
    """Create a placeholder rule engine script."""
    script = tmp_path / "axe.min.js"
    script.write_text("window.axe = { run: async () => ({}) };")
    return script


@pytest.fixture
def audit_config(tmp_path: Path, fake_exe: Path, axe_script: Path) -> AuditConfig:
    """Create a test audit configuration with no settle delays."""
    return AuditConfig(
        exe_path=str(fake_exe),
        report_dir=str(tmp_path / "reports"),
        screenshots_dir=str(tmp_path / "screenshots"),
        timeout_ms=2000,
        wait_timeout_ms=0,
        cleanup_settle_ms=0,
        close_timeout_ms=500,
        window_ready_timeout_ms=500,
        max_concurrency=1,
        retry_attempts=1,
        rule_engine={"script_path": str(axe_script)},
        checkers={"zoom": {"settle_ms": 0}},
        pages=[
            PageConfig(name="Home", selector="#nav-home"),
            PageConfig(name="Settings", selector="#nav-settings"),
        ],
    )


@pytest.fixture
def temp_config_file(audit_config: AuditConfig, tmp_path: Path) -> Path:
    """Create a temporary config file."""
    config_file = tmp_path / "a11y-config.json"
    audit_config.save(config_file)
    return config_file


# ============================================================================
# Mock Fixtures
# ============================================================================


def make_locator() -> MagicMock:
    locator = MagicMock()
    locator.wait_for = AsyncMock()
    locator.click = AsyncMock()
    locator.first = MagicMock()
    locator.first.screenshot = AsyncMock()
    return locator


@pytest.fixture
def mock_page() -> AsyncMock:
    """Create a mock Playwright page (the application window)."""
    page = AsyncMock(spec=Page)
    page.title.return_value = "My App"
    page.evaluate = AsyncMock(return_value=None)
    page.add_script_tag = AsyncMock()
    page.wait_for_load_state = AsyncMock()
    page.screenshot = AsyncMock()
    page.locator = MagicMock(return_value=make_locator())
    return page


# ============================================================================
# Result Helpers
# ============================================================================


def make_violation(rule_id: str = "color-contrast", impact: str = "serious",
                   nodes: int = 1, summary: str = "") -> dict[str, Any]:
    return {
        "id": rule_id,
        "impact": impact,
        "description": f"{rule_id} description",
        "help": f"{rule_id} help",
        "helpUrl": f"https://dequeuniversity.com/rules/axe/4.8/{rule_id}",
        "tags": ["wcag2aa"],
        "nodes": [
            {"target": [f"#el-{i}"], "html": f"<div id='el-{i}'></div>",
             "failureSummary": summary, "impact": impact}
            for i in range(nodes)
        ],
    }


def make_axe_results(violations=None, passes=None, incomplete=None) -> dict[str, Any]:
    return {
        "url": "app://index.html",
        "violations": violations or [],
        "passes": passes or [],
        "incomplete": incomplete or [],
        "inapplicable": [],
    }


def make_scan_result(page_name: str = "Home", violations=None, **extra) -> CheckResult:
    return CheckResult(
        checker_name="rule_engine",
        page_name=page_name,
        success=True,
        data=RuleEnginePayload.from_raw(make_axe_results(violations=violations), **extra),
    )


def make_run(pages: int = 1, violations_per_page=None) -> RunResult:
    run = RunResult(target="/opt/app/MyApp.exe", success=True, duration_seconds=12.5)
    for i in range(pages):
        name = f"Page {i + 1}"
        violations = violations_per_page if violations_per_page is not None else [make_violation()]
        run.rule_engine_results.append(make_scan_result(name, violations))
        run.extra_check_results.append(PageCheckResults(page_name=name))
    return run
