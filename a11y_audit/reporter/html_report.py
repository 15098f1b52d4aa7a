"""HTML report generator: a self-contained page with per-page scan and checker detail."""

from __future__ import annotations

import base64
import html
import logging
from pathlib import Path

from a11y_audit.models.checks import (
    AccessibilityTreePayload,
    ContrastPayload,
    KeyboardFocusPayload,
    RuleEnginePayload,
    ZoomPayload,
)
from a11y_audit.models.results import CheckResult, PageCheckResults, RunResult
from a11y_audit.reporter.base import BaseReporter
from a11y_audit.reporter.statistics import run_statistics

logger = logging.getLogger(__name__)

IMPACT_COLORS = {
    "critical": "#dc2626",
    "serious": "#ea580c",
    "moderate": "#ca8a04",
    "minor": "#2563eb",
}


def _embed_image(path: str) -> str:
    """Read an image file and return a base64 data URI, or empty string on failure."""
    try:
        p = Path(path)
        if not p.exists() or p.stat().st_size == 0:
            return ""
        with open(p, "rb") as f:
            data = base64.b64encode(f.read()).decode()
        suffix = p.suffix.lower()
        mime = "image/png" if suffix == ".png" else "image/jpeg" if suffix in (".jpg", ".jpeg") else "image/webp"
        return f"data:{mime};base64,{data}"
    except Exception:
        return ""


def _status_badge(result: CheckResult) -> str:
    if result.error:
        return '<span class="badge error">ERROR</span>'
    if result.success:
        return '<span class="badge pass">PASS</span>'
    return '<span class="badge fail">FAIL</span>'


def _score(value) -> str:
    return "&mdash;" if value is None else f"{value:.0f}"


def _build_violations(data: RuleEnginePayload) -> str:
    if data.failed_fallback:
        return f'<div class="failure-banner"><strong>Scan failed:</strong> {html.escape(data.error or "unknown error")}</div>'
    if not data.violations:
        return '<p class="ok">No rule violations found.</p>'
    rows = ""
    for v in data.violations:
        color = IMPACT_COLORS.get(v.impact or "", "#64748b")
        targets = ", ".join(html.escape(str(t)) for n in v.nodes[:5] for t in n.target)
        rows += f'''
        <tr>
          <td><span class="impact" style="background:{color}">{html.escape(v.impact or "unknown")}</span></td>
          <td><code>{html.escape(v.id)}</code></td>
          <td>{html.escape(v.help or v.description)}</td>
          <td>{len(v.nodes)}</td>
          <td class="targets">{targets}</td>
        </tr>'''
    legacy = '<p class="note">Scanned with the legacy fallback scanner.</p>' if data.used_legacy_fallback else ""
    return f'''{legacy}
    <table class="violations">
      <thead><tr><th>Impact</th><th>Rule</th><th>Description</th><th>Nodes</th><th>Targets</th></tr></thead>
      <tbody>{rows}</tbody>
    </table>'''


def _build_check_detail(result: CheckResult) -> str:
    data = result.data
    if result.error:
        return f'<div class="check-error">{html.escape(result.error[:300])}</div>'
    items = ""
    if isinstance(data, ContrastPayload):
        for issue in data.issues:
            ratio = f"{issue.contrast_ratio:.2f}:1" if issue.contrast_ratio else "unknown ratio"
            items += f"<li><strong>{issue.severity}</strong> {ratio} &middot; {issue.node_count} element(s)</li>"
    elif isinstance(data, KeyboardFocusPayload):
        for p in data.problems:
            items += (f"<li><strong>{p.severity}</strong> <code>{html.escape(p.element.selector)}</code> "
                      f"{html.escape(', '.join(p.issues))}</li>")
    elif isinstance(data, ZoomPayload):
        for z in data.zoom_tests:
            state = "ok" if z.ok else ("error" if z.error else "overflow" if z.overflow else "broken layout")
            items += f"<li>{z.zoom_level * 100:.0f}%: {state}</li>"
    elif isinstance(data, AccessibilityTreePayload):
        for issue in data.issues:
            items += f"<li>{html.escape(issue)}</li>"
    return f'<ul class="check-items">{items}</ul>' if items else ""


def _build_page_card(scan: CheckResult, checks: PageCheckResults | None) -> str:
    data = scan.data if isinstance(scan.data, RuleEnginePayload) else RuleEnginePayload()
    border = "#ef4444" if data.violations or scan.error else "#22c55e"
    card = f'''
    <div class="page-card" id="page-{html.escape(scan.page_name)}">
      <div class="page-header" style="border-left: 4px solid {border};" onclick="this.parentElement.classList.toggle('expanded')">
        <div class="page-header-left">
          {_status_badge(scan)}
          <strong>{html.escape(scan.page_name)}</strong>
          <span class="page-meta">{len(data.violations)} violations &middot; {len(data.passes)} passes &middot; {scan.duration_seconds:.1f}s</span>
        </div>
        <span class="expand-arrow">&#9660;</span>
      </div>
      <div class="page-body">
        <div class="section"><h4>Rule Engine</h4>{_build_violations(data)}</div>'''

    if checks and checks.checks:
        card += '<div class="section"><h4>Additional Checks</h4>'
        for name, result in checks.checks.items():
            card += f'''
          <div class="check-row">
            {_status_badge(result)} <span class="check-name">{html.escape(name)}</span>
            <span class="check-score">score {_score(result.score)}</span>
            {_build_check_detail(result)}
          </div>'''
        card += '</div>'

    card += '</div></div>'
    return card


def _build_screenshots(paths: list[str]) -> str:
    items = ""
    for p in paths:
        uri = _embed_image(p)
        if uri:
            items += f'''
        <div class="screenshot-item">
          <img src="{uri}" alt="screenshot" onclick="this.classList.toggle('zoomed')"/>
          <div class="screenshot-label">{html.escape(Path(p).name)}</div>
        </div>'''
    if not items:
        return ""
    return f'<div class="section"><h2>Screenshots</h2><div class="screenshots-grid">{items}</div></div>'


def render_html_report(run: RunResult) -> str:
    """Render a self-contained HTML report for ``run``."""
    stats = run_statistics(run)
    engine = stats["rule_engine"]

    ai_section = ""
    if run.ai_summary:
        formatted_summary = html.escape(run.ai_summary).replace("\n", "<br>")
        ai_section = f'<div class="ai-summary"><h2>Summary</h2><div class="summary-content">{formatted_summary}</div></div>'

    errors_section = ""
    if run.errors:
        items = "".join(
            f"<li><strong>{html.escape(e.phase)}</strong>"
            f"{' (' + html.escape(e.page) + ')' if e.page else ''}: {html.escape(e.message)}</li>"
            for e in run.errors
        )
        errors_section = f'<div class="errors"><h2>&#9888; Errors ({len(run.errors)})</h2><ul>{items}</ul></div>'

    checks_by_page = {c.page_name: c for c in run.extra_check_results}
    page_cards = "".join(
        _build_page_card(scan, checks_by_page.get(scan.page_name))
        for scan in run.rule_engine_results
    ) or '<p class="note">No pages were scanned.</p>'

    checker_rows = "".join(
        f"<tr><td>{html.escape(name)}</td><td>{s['successful']}/{s['total']}</td>"
        f"<td>{s['success_rate']}%</td><td>{_score(s['average_score'])}</td></tr>"
        for name, s in stats["checkers"].items()
    )
    checker_table = (
        '<table class="checker-table"><thead><tr><th>Checker</th><th>Passed</th>'
        f'<th>Success rate</th><th>Avg score</th></tr></thead><tbody>{checker_rows}</tbody></table>'
        if checker_rows else ""
    )

    impact_stats = "".join(
        f'<div class="stat"><div class="value" style="color:{IMPACT_COLORS.get(k, "#64748b")}">{v}</div>'
        f'<div class="label">{html.escape(k)}</div></div>'
        for k, v in engine["violations_by_impact"].items()
    )

    return f'''<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>Accessibility Report &mdash; {html.escape(run.started_at)}</title>
<style>
  :root {{ --pass: #22c55e; --fail: #ef4444; --error: #f97316; --bg: #f8fafc; --card: white; --border: #e2e8f0; --text: #1e293b; --muted: #64748b; --accent: #6366f1; }}
  * {{ margin: 0; padding: 0; box-sizing: border-box; }}
  body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; background: var(--bg); color: var(--text); line-height: 1.6; padding: 1.5rem; }}
  .container {{ max-width: 1400px; margin: 0 auto; }}
  h1 {{ font-size: 1.8rem; margin-bottom: 0.3rem; }}
  h2 {{ font-size: 1.1rem; margin: 1rem 0 0.6rem; }}
  .meta {{ color: var(--muted); margin-bottom: 1.5rem; font-size: 0.9rem; }}
  .summary {{ display: grid; grid-template-columns: repeat(auto-fit, minmax(130px, 1fr)); gap: 0.8rem; margin-bottom: 1.5rem; }}
  .stat {{ background: var(--card); border-radius: 8px; padding: 1rem; box-shadow: 0 1px 3px rgba(0,0,0,0.08); text-align: center; }}
  .stat .value {{ font-size: 1.8rem; font-weight: 700; }}
  .stat .label {{ font-size: 0.8rem; color: var(--muted); }}
  .stat.pass .value {{ color: var(--pass); }}
  .stat.fail .value {{ color: var(--fail); }}
  .badge {{ display: inline-block; padding: 0.15rem 0.55rem; border-radius: 9999px; font-size: 0.7rem; font-weight: 600; text-transform: uppercase; white-space: nowrap; }}
  .badge.pass {{ background: #dcfce7; color: #166534; }}
  .badge.fail {{ background: #fecaca; color: #991b1b; }}
  .badge.error {{ background: #fed7aa; color: #9a3412; }}
  .impact {{ color: white; padding: 0.1rem 0.5rem; border-radius: 4px; font-size: 0.75rem; text-transform: uppercase; }}
  .ai-summary {{ background: var(--card); border-radius: 8px; padding: 1.2rem; margin-bottom: 1.5rem; box-shadow: 0 1px 3px rgba(0,0,0,0.08); border-left: 4px solid var(--accent); }}
  .ai-summary h2 {{ font-size: 1rem; color: var(--accent); margin: 0 0 0.8rem; }}
  .summary-content {{ font-size: 0.9rem; line-height: 1.7; }}
  .errors {{ background: #fef2f2; border-radius: 8px; padding: 1.2rem; margin-bottom: 1.5rem; border-left: 4px solid var(--fail); }}
  .errors h2 {{ color: var(--fail); font-size: 1rem; margin: 0 0 0.4rem; }}
  .errors ul {{ margin-left: 1.2rem; font-size: 0.9rem; }}
  .page-card {{ background: var(--card); border-radius: 8px; margin-bottom: 0.6rem; box-shadow: 0 1px 3px rgba(0,0,0,0.08); overflow: hidden; }}
  .page-header {{ display: flex; justify-content: space-between; align-items: center; padding: 0.7rem 1rem; cursor: pointer; user-select: none; }}
  .page-header:hover {{ background: #f8fafc; }}
  .page-header-left {{ display: flex; align-items: center; gap: 0.5rem; flex-wrap: wrap; }}
  .page-meta {{ font-size: 0.78rem; color: var(--muted); }}
  .expand-arrow {{ color: var(--muted); font-size: 0.7rem; transition: transform 0.2s; }}
  .page-card.expanded .expand-arrow {{ transform: rotate(180deg); }}
  .page-body {{ display: none; padding: 0 1rem 1rem 1rem; }}
  .page-card.expanded .page-body {{ display: block; }}
  .failure-banner {{ background: #fef2f2; border: 1px solid #fecaca; color: #991b1b; border-radius: 6px; padding: 0.6rem 0.8rem; margin-bottom: 0.8rem; font-size: 0.88rem; }}
  .section {{ margin-bottom: 1rem; }}
  .section h4 {{ font-size: 0.85rem; color: var(--muted); text-transform: uppercase; letter-spacing: 0.05em; margin-bottom: 0.4rem; padding-bottom: 0.25rem; border-bottom: 1px solid var(--border); }}
  table {{ width: 100%; border-collapse: collapse; font-size: 0.85rem; background: var(--card); }}
  th, td {{ text-align: left; padding: 0.4rem 0.5rem; border-bottom: 1px solid #f1f5f9; vertical-align: top; }}
  td.targets {{ font-family: monospace; font-size: 0.78rem; color: var(--muted); }}
  code {{ background: #f1f5f9; padding: 0.1rem 0.3rem; border-radius: 3px; font-size: 0.8rem; }}
  .ok {{ color: var(--pass); font-size: 0.88rem; }}
  .note {{ color: var(--muted); font-size: 0.82rem; font-style: italic; }}
  .check-row {{ padding: 0.4rem 0; border-bottom: 1px solid #f1f5f9; font-size: 0.85rem; }}
  .check-name {{ font-weight: 600; }}
  .check-score {{ color: var(--muted); font-size: 0.8rem; margin-left: 0.5rem; }}
  .check-items {{ margin: 0.3rem 0 0 1.4rem; color: var(--muted); font-size: 0.82rem; }}
  .check-error {{ color: var(--fail); font-size: 0.82rem; margin-top: 0.15rem; }}
  .screenshots-grid {{ display: grid; grid-template-columns: repeat(auto-fill, minmax(200px, 1fr)); gap: 0.6rem; }}
  .screenshot-item {{ text-align: center; }}
  .screenshot-item img {{ width: 100%; border-radius: 6px; border: 1px solid var(--border); cursor: pointer; }}
  .screenshot-item img.zoomed {{ position: fixed; top: 5%; left: 5%; width: 90%; height: 90%; object-fit: contain; z-index: 1000; background: rgba(0,0,0,0.85); border: none; border-radius: 8px; padding: 1rem; }}
  .screenshot-label {{ font-size: 0.75rem; color: var(--muted); margin-top: 0.2rem; }}
</style>
</head>
<body>
<div class="container">
  <h1>Accessibility Report</h1>
  <p class="meta">Target: {html.escape(run.target)} &middot; {html.escape(run.started_at)} &middot; Duration: {run.duration_seconds}s</p>
  <div class="summary">
    <div class="stat"><div class="value">{engine["total_pages"]}</div><div class="label">Pages</div></div>
    <div class="stat fail"><div class="value">{engine["total_violations"]}</div><div class="label">Violations</div></div>
    <div class="stat pass"><div class="value">{engine["total_passes"]}</div><div class="label">Passes</div></div>
    <div class="stat"><div class="value">{engine["pages_with_violations"]}</div><div class="label">Pages with violations</div></div>
    <div class="stat fail"><div class="value">{len(run.errors)}</div><div class="label">Errors</div></div>
    {impact_stats}
  </div>
  {ai_section}
  {errors_section}
  {checker_table}
  <h2>Pages</h2>
  {page_cards}
  {_build_screenshots(run.screenshots)}
</div>
</body>
</html>'''


class HtmlReporter(BaseReporter):
    format = "html"
    extension = ".html"

    def render(self, run: RunResult) -> str:
        return render_html_report(run)
