"""Payload models produced by the rule engine scan and the built-in checkers."""

from __future__ import annotations

from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Rule engine (axe-core) output
# ---------------------------------------------------------------------------


class RuleNode(BaseModel):
    target: list[Any] = Field(default_factory=list)
    html: str = ""
    failure_summary: Optional[str] = Field(default=None, alias="failureSummary")
    impact: Optional[str] = None

    model_config = {"populate_by_name": True, "extra": "allow"}


class RuleResult(BaseModel):
    id: str
    impact: Optional[str] = None
    description: str = ""
    help: str = ""
    help_url: str = Field(default="", alias="helpUrl")
    tags: list[str] = Field(default_factory=list)
    nodes: list[RuleNode] = Field(default_factory=list)

    model_config = {"populate_by_name": True, "extra": "allow"}


class RuleEnginePayload(BaseModel):
    kind: Literal["rule_engine"] = "rule_engine"
    url: str = ""
    violations: list[RuleResult] = Field(default_factory=list)
    passes: list[RuleResult] = Field(default_factory=list)
    incomplete: list[RuleResult] = Field(default_factory=list)
    inapplicable: list[RuleResult] = Field(default_factory=list)
    used_legacy_fallback: bool = False
    failed_fallback: bool = False
    error: Optional[str] = None

    @classmethod
    def from_raw(cls, raw: dict[str, Any], **extra: Any) -> "RuleEnginePayload":
        """Build a payload from the object returned by ``axe.run``."""
        raw = raw or {}
        return cls(
            url=raw.get("url") or "",
            violations=raw.get("violations") or [],
            passes=raw.get("passes") or [],
            incomplete=raw.get("incomplete") or [],
            inapplicable=raw.get("inapplicable") or [],
            **extra,
        )


# ---------------------------------------------------------------------------
# Contrast
# ---------------------------------------------------------------------------


class ContrastIssue(BaseModel):
    rule_id: str
    impact: Optional[str] = None
    description: str = ""
    contrast_ratio: Optional[float] = None
    severity: str = "medium"
    node_count: int = 0
    targets: list[Any] = Field(default_factory=list)


class ContrastPayload(BaseModel):
    kind: Literal["contrast"] = "contrast"
    issues: list[ContrastIssue] = Field(default_factory=list)
    nodes_evaluated: int = 0
    nodes_failed: int = 0
    incomplete: int = 0
    score: float = 100.0
    passed: bool = True


# ---------------------------------------------------------------------------
# Keyboard focus
# ---------------------------------------------------------------------------


class FocusElement(BaseModel):
    index: int
    tag_name: str = ""
    role: Optional[str] = None
    aria_label: Optional[str] = None
    text: str = ""
    visible: bool = True
    focused: Optional[bool] = None
    has_visible_focus: bool = False
    outline: str = ""
    box_shadow: str = ""
    selector: str = ""
    error: Optional[str] = None


class FocusProblem(BaseModel):
    index: int
    element: FocusElement
    issues: list[str] = Field(default_factory=list)
    severity: str = "low"


class KeyboardFocusPayload(BaseModel):
    kind: Literal["keyboard_focus"] = "keyboard_focus"
    elements: list[FocusElement] = Field(default_factory=list)
    total_elements: int = 0
    focusable_elements: int = 0
    visible_focusable_elements: int = 0
    problems: list[FocusProblem] = Field(default_factory=list)
    screenshots: list[str] = Field(default_factory=list)
    score: float = 100.0
    passed: bool = True


# ---------------------------------------------------------------------------
# Zoom
# ---------------------------------------------------------------------------


class LayoutMetrics(BaseModel):
    body_scroll_width: int = 0
    body_scroll_height: int = 0
    body_client_width: int = 0
    body_client_height: int = 0
    window_inner_width: int = 0
    window_inner_height: int = 0


class ZoomLevelResult(BaseModel):
    zoom_level: float
    success: bool = True
    error: Optional[str] = None
    layout: Optional[LayoutMetrics] = None
    overflow: bool = False
    excess_width: int = 0
    excess_height: int = 0
    layout_broken: bool = False
    off_screen_count: int = 0
    off_screen_sample: list[dict[str, Any]] = Field(default_factory=list)
    ok: bool = False


class ZoomRecommendation(BaseModel):
    max_supported_zoom: float = 1.0
    supports_125: bool = False
    supports_150: bool = False
    supports_200: bool = False
    meets_wcag: bool = False


class ZoomPayload(BaseModel):
    kind: Literal["zoom"] = "zoom"
    zoom_tests: list[ZoomLevelResult] = Field(default_factory=list)
    layout_issues: list[float] = Field(default_factory=list)
    overflow_issues: list[float] = Field(default_factory=list)
    max_zoom_tested: float = 0.0
    recommendation: ZoomRecommendation = Field(default_factory=ZoomRecommendation)
    score: float = 100.0
    passed: bool = True


# ---------------------------------------------------------------------------
# Accessibility tree
# ---------------------------------------------------------------------------


class TreeNode(BaseModel):
    role: str = ""
    name: str = ""
    level: Optional[int] = None
    children: list["TreeNode"] = Field(default_factory=list)


class LanguageInfo(BaseModel):
    lang: str = ""
    has_lang: bool = False
    is_valid: bool = False
    score: float = 0.0


class LandmarkIssue(BaseModel):
    type: str
    role: str
    severity: str


class LandmarkAnalysis(BaseModel):
    landmarks: list[dict[str, Any]] = Field(default_factory=list)
    missing: list[str] = Field(default_factory=list)
    duplicates: list[str] = Field(default_factory=list)
    issues: list[LandmarkIssue] = Field(default_factory=list)
    score: float = 100.0


class HeadingIssue(BaseModel):
    type: str = "heading-order"
    previous_level: int
    level: int
    name: str = ""


class HeadingAnalysis(BaseModel):
    headings: list[dict[str, Any]] = Field(default_factory=list)
    has_h1: bool = False
    order_issues: list[HeadingIssue] = Field(default_factory=list)
    skipped_levels: list[int] = Field(default_factory=list)
    score: float = 100.0


class AccessibilityTreePayload(BaseModel):
    kind: Literal["accessibility_tree"] = "accessibility_tree"
    language: LanguageInfo = Field(default_factory=LanguageInfo)
    landmarks: LandmarkAnalysis = Field(default_factory=LandmarkAnalysis)
    headings: HeadingAnalysis = Field(default_factory=HeadingAnalysis)
    issues: list[str] = Field(default_factory=list)
    overall_score: float = 0.0
    score: float = 0.0
    passed: bool = True


class GenericPayload(BaseModel):
    """Free-form payload for custom checkers."""

    kind: Literal["generic"] = "generic"
    details: dict[str, Any] = Field(default_factory=dict)
    score: Optional[float] = None
    passed: bool = True


CheckPayload = Union[
    RuleEnginePayload,
    ContrastPayload,
    KeyboardFocusPayload,
    ZoomPayload,
    AccessibilityTreePayload,
    GenericPayload,
]
