"""Accessibility tree checker: document language, landmarks and heading structure."""

from __future__ import annotations

import logging
import re
from typing import Any, Iterator, Optional

from a11y_audit.checkers.base import BaseChecker
from a11y_audit.models.checks import (
    AccessibilityTreePayload,
    HeadingAnalysis,
    HeadingIssue,
    LandmarkAnalysis,
    LandmarkIssue,
    LanguageInfo,
    TreeNode,
)

logger = logging.getLogger(__name__)

LANG_PATTERN = re.compile(r"^[a-z]{2,3}(-[A-Z]{2})?$")
LANDMARK_ROLES = {
    "banner", "main", "navigation", "complementary",
    "contentinfo", "region", "search", "form",
}
REQUIRED_LANDMARKS = ["banner", "main", "navigation", "complementary", "contentinfo"]


def _clamp(score: float) -> float:
    return float(max(0, min(100, score)))


def _ax_value(field: Optional[dict[str, Any]]) -> Any:
    if not field:
        return None
    return field.get("value")


def build_tree(ax_nodes: list[dict[str, Any]]) -> Optional[TreeNode]:
    """Rebuild a nested tree from ``Accessibility.getFullAXTree`` nodes.

    Ignored nodes are dropped and their children lifted into the parent.
    """
    if not ax_nodes:
        return None
    by_id = {n["nodeId"]: n for n in ax_nodes if "nodeId" in n}
    root = next((n for n in ax_nodes if not n.get("parentId")), ax_nodes[0])

    def convert(node: dict[str, Any]) -> list[TreeNode]:
        children: list[TreeNode] = []
        for child_id in node.get("childIds", []):
            child = by_id.get(child_id)
            if child is not None:
                children.extend(convert(child))
        if node.get("ignored"):
            return children
        level = None
        for prop in node.get("properties", []):
            if prop.get("name") == "level":
                level = _ax_value(prop.get("value"))
        return [TreeNode(
            role=_ax_value(node.get("role")) or "",
            name=_ax_value(node.get("name")) or "",
            level=int(level) if level is not None else None,
            children=children,
        )]

    converted = convert(root)
    if len(converted) == 1:
        return converted[0]
    return TreeNode(role="RootWebArea", children=converted)


def walk(node: Optional[TreeNode]) -> Iterator[TreeNode]:
    if node is None:
        return
    yield node
    for child in node.children:
        yield from walk(child)


def check_language(lang: Optional[str]) -> LanguageInfo:
    lang = (lang or "").strip()
    if not lang:
        return LanguageInfo(lang="", has_lang=False, is_valid=False, score=0.0)
    valid = bool(LANG_PATTERN.match(lang))
    return LanguageInfo(lang=lang, has_lang=True, is_valid=valid, score=100.0 if valid else 50.0)


def analyze_landmarks(tree: Optional[TreeNode]) -> LandmarkAnalysis:
    landmarks = [n for n in walk(tree) if n.role in LANDMARK_ROLES]
    roles = [n.role for n in landmarks]

    issues = []
    for node in landmarks:
        if not node.name.strip():
            issues.append(LandmarkIssue(type="missing-name", role=node.role, severity="high"))
        if node.role == "main" and not node.children:
            issues.append(LandmarkIssue(type="empty-main", role="main", severity="medium"))

    duplicates = sorted({r for r in roles if roles.count(r) > 1 and r != "navigation"})
    missing = [r for r in REQUIRED_LANDMARKS if r not in roles]

    return LandmarkAnalysis(
        landmarks=[{"role": n.role, "name": n.name} for n in landmarks],
        missing=missing,
        duplicates=duplicates,
        issues=issues,
        score=landmark_score(len(missing), len(issues), len(landmarks)),
    )


def landmark_score(missing: int, issues: int, landmark_count: int) -> float:
    score = 100 - 20 * missing - 10 * issues
    if landmark_count >= 3:
        score += 10
    return _clamp(score)


def analyze_heading_levels(levels: list[int], names: Optional[list[str]] = None) -> HeadingAnalysis:
    names = names or [""] * len(levels)
    order_issues = []
    for i in range(1, len(levels)):
        if levels[i] > levels[i - 1] + 1:
            order_issues.append(HeadingIssue(
                previous_level=levels[i - 1], level=levels[i], name=names[i],
            ))

    present = set(levels)
    skipped = sorted(
        lvl for lvl in present
        if lvl > 1 and not any(p < lvl for p in present)
    )
    has_h1 = 1 in present

    score = 100 - 15 * len(order_issues) - 10 * len(skipped)
    if not has_h1:
        score -= 30
    if len(levels) >= 3 and not order_issues:
        score += 10
    return HeadingAnalysis(
        headings=[{"level": lvl, "name": name} for lvl, name in zip(levels, names)],
        has_h1=has_h1,
        order_issues=order_issues,
        skipped_levels=skipped,
        score=_clamp(score),
    )


def analyze_headings(tree: Optional[TreeNode]) -> HeadingAnalysis:
    headings = [n for n in walk(tree) if n.role == "heading" and n.level]
    return analyze_heading_levels([n.level for n in headings], [n.name for n in headings])


def summarize_tree(
    language: LanguageInfo, landmarks: LandmarkAnalysis, headings: HeadingAnalysis,
) -> AccessibilityTreePayload:
    issues = []
    if not language.has_lang:
        issues.append("Document language is not set")
    elif not language.is_valid:
        issues.append(f"Document language '{language.lang}' is not a valid language tag")
    for role in landmarks.missing:
        issues.append(f"Missing {role} landmark")
    for issue in landmarks.issues:
        issues.append(f"Landmark {issue.role}: {issue.type}")
    for role in landmarks.duplicates:
        issues.append(f"Multiple {role} landmarks")
    if not headings.has_h1:
        issues.append("No h1 heading")
    for issue in headings.order_issues:
        issues.append(f"Heading level jumps from h{issue.previous_level} to h{issue.level}")

    overall = round((language.score + landmarks.score + headings.score) / 3, 1)
    return AccessibilityTreePayload(
        language=language,
        landmarks=landmarks,
        headings=headings,
        issues=issues,
        overall_score=overall,
        score=overall,
        passed=not issues,
    )


class AccessibilityTreeChecker(BaseChecker):
    name = "accessibility_tree"
    description = "Document language, landmark regions and heading hierarchy"
    priority = 4

    async def snapshot(self, page: Any) -> Optional[TreeNode]:
        session = await page.context.new_cdp_session(page)
        try:
            response = await session.send("Accessibility.getFullAXTree")
        finally:
            await session.detach()
        return build_tree(response.get("nodes", []))

    async def execute_check(
        self, page: Any, page_name: str, options: dict[str, Any],
    ) -> AccessibilityTreePayload:
        tree = await self.snapshot(page)
        lang = await page.evaluate("() => document.documentElement.lang")

        language = check_language(lang) if self.option(options, "check_language", True) \
            else LanguageInfo(has_lang=True, is_valid=True, score=100.0)
        landmarks = analyze_landmarks(tree) if self.option(options, "check_landmarks", True) \
            else LandmarkAnalysis()
        headings = analyze_headings(tree) if self.option(options, "check_headings", True) \
            else HeadingAnalysis(has_h1=True)
        return summarize_tree(language, landmarks, headings)
