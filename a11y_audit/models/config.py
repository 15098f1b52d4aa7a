"""Configuration models for the accessibility audit suite."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

ENV_PREFIX = "A11Y_"


def _resolve_env(v: Any) -> Any:
    if isinstance(v, str) and v.startswith("env:"):
        env_var = v[4:]
        resolved = os.environ.get(env_var)
        if resolved is None:
            raise ValueError(f"Environment variable '{env_var}' not set")
        return resolved
    return v


class PageOptions(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    timeout_ms: Optional[int] = Field(default=None, alias="timeout", ge=0)
    wait_for_navigation: bool = Field(default=True, alias="waitForNavigation")


class PageConfig(BaseModel):
    """A screen of the application, reached by clicking ``selector``."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    selector: str
    options: PageOptions = Field(default_factory=PageOptions)

    @field_validator("name", "selector")
    @classmethod
    def non_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must be a non-empty string")
        return v


class RuleEngineOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    script_path: str = "axe.min.js"
    rules: dict[str, Any] = Field(default_factory=dict)
    run_only: Optional[dict[str, Any]] = None
    disabled_rules: list[str] = Field(default_factory=list)
    reporter: str = "v2"

    def to_run_options(self) -> dict[str, Any]:
        """Options object handed to ``axe.run``."""
        rules = dict(self.rules)
        for rule_id in self.disabled_rules:
            rules[rule_id] = {"enabled": False}
        options: dict[str, Any] = {"reporter": self.reporter}
        if rules:
            options["rules"] = rules
        if self.run_only:
            options["runOnly"] = self.run_only
        return options


class ContrastSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = True


class KeyboardFocusSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    take_screenshots: bool = True
    max_elements: int = Field(default=50, ge=1)
    max_screenshots: int = Field(default=10, ge=0)


class ZoomSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    zoom_levels: list[float] = Field(default_factory=lambda: [1.0, 1.25, 1.5, 2.0])
    max_zoom: float = 2.0
    settle_ms: int = 500
    check_vertical_overflow: bool = True


class AccessibilityTreeSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    check_landmarks: bool = True
    check_headings: bool = True
    check_language: bool = True


class CheckerSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    contrast: ContrastSettings = Field(default_factory=ContrastSettings)
    keyboard_focus: KeyboardFocusSettings = Field(default_factory=KeyboardFocusSettings)
    zoom: ZoomSettings = Field(default_factory=ZoomSettings)
    accessibility_tree: AccessibilityTreeSettings = Field(default_factory=AccessibilityTreeSettings)

    def for_checker(self, name: str) -> Optional[BaseModel]:
        return getattr(self, name, None)


class AuditConfig(BaseModel):
    """Immutable run configuration. Use ``with_updates`` to derive variants."""

    model_config = ConfigDict(frozen=True)

    # Application
    exe_path: str
    process_name: str = ""
    launch_args: list[str] = Field(default_factory=lambda: ["--no-sandbox", "--disable-gpu"])
    debug_launch_args: list[str] = Field(default_factory=lambda: ["--enable-logging"])
    remote_debugging_port: int = 9222

    # Output
    report_dir: str = "axe-reports"
    screenshots_dir: str = "a11y-issues/screenshots"
    report_formats: list[str] = Field(default_factory=lambda: ["html", "json"])
    report_retention_days: int = 30
    screenshot_retention_days: int = 7

    # Timing
    timeout_ms: int = Field(default=60000, gt=0)
    wait_timeout_ms: int = Field(default=3000, ge=0)
    cleanup_settle_ms: int = Field(default=2000, ge=0)
    close_timeout_ms: int = Field(default=10000, gt=0)
    window_ready_timeout_ms: int = Field(default=10000, gt=0)

    # Execution
    max_concurrency: int = Field(default=3, ge=1)
    retry_attempts: int = Field(default=2, ge=0)
    debug: bool = False

    rule_engine: RuleEngineOptions = Field(default_factory=RuleEngineOptions)
    checkers: CheckerSettings = Field(default_factory=CheckerSettings)
    pages: list[PageConfig] = Field(default_factory=list)

    # AI summary
    ai_summary: bool = False
    ai_model: str = "claude-sonnet-4-5"

    @field_validator("exe_path", mode="before")
    @classmethod
    def resolve_env_exe_path(cls, v: Any) -> Any:
        return _resolve_env(v)

    @model_validator(mode="before")
    @classmethod
    def derive_process_name(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("process_name") and data.get("exe_path"):
            exe = _resolve_env(data["exe_path"])
            data = {**data, "process_name": Path(str(exe).replace("\\", "/")).name}
        return data

    @model_validator(mode="after")
    def unique_page_names(self) -> "AuditConfig":
        seen: set[str] = set()
        for page in self.pages:
            if page.name in seen:
                raise ValueError(f"Duplicate page name: {page.name}")
            seen.add(page.name)
        return self

    def with_updates(self, **changes: Any) -> "AuditConfig":
        """Return a new validated config with ``changes`` applied."""
        data = self.model_dump()
        data.update(changes)
        return type(self).model_validate(data)

    @classmethod
    def from_env(cls, data: dict[str, Any], environ: Optional[dict[str, str]] = None) -> dict[str, Any]:
        """Overlay ``A11Y_*`` environment variables onto raw config data."""
        env = os.environ if environ is None else environ
        data = dict(data)
        mapping = {
            "EXE_PATH": ("exe_path", str),
            "PROCESS_NAME": ("process_name", str),
            "REPORT_DIR": ("report_dir", str),
            "SCREENSHOTS_DIR": ("screenshots_dir", str),
            "TIMEOUT": ("timeout_ms", int),
            "MAX_CONCURRENCY": ("max_concurrency", int),
            "RETRY_ATTEMPTS": ("retry_attempts", int),
            "WAIT_TIMEOUT": ("wait_timeout_ms", int),
        }
        for suffix, (key, cast) in mapping.items():
            raw = env.get(ENV_PREFIX + suffix)
            if raw:
                try:
                    data[key] = cast(raw)
                except ValueError as e:
                    raise ValueError(f"Invalid value for {ENV_PREFIX}{suffix}: {raw!r}") from e
        launch_args = env.get(ENV_PREFIX + "LAUNCH_ARGS")
        if launch_args:
            data["launch_args"] = [a for a in launch_args.split(",") if a]
        debug = env.get(ENV_PREFIX + "DEBUG")
        if debug:
            data["debug"] = debug.lower() in ("1", "true", "yes")
        return data

    @classmethod
    def load(cls, path: str | Path | None = None, pages_path: str | Path | None = None) -> "AuditConfig":
        """Load config from a JSON file, then apply environment overrides.

        With no ``path``, the config is built from the environment alone.
        """
        data: dict[str, Any] = {}
        if path is not None:
            path = Path(path)
            if not path.exists():
                raise FileNotFoundError(f"Config file not found: {path}")
            with open(path) as f:
                data = json.load(f)
        data = cls.from_env(data)
        if pages_path is not None:
            data["pages"] = [p.model_dump() for p in load_pages(pages_path)]
        return cls(**data)

    def save(self, path: str | Path) -> None:
        """Save config to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(), f, indent=2)


def load_pages(path: str | Path) -> list[PageConfig]:
    """Load page definitions from ``{"pages": [...]}`` or a bare JSON list."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Pages file not found: {path}")
    with open(path) as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("pages", [])
    if not isinstance(data, list):
        raise ValueError(f"Pages file must contain a list of pages: {path}")
    return [PageConfig.model_validate(p) for p in data]
