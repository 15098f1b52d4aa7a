"""System prompt for AI-generated audit summaries."""

SUMMARY_SYSTEM_PROMPT = """You are an accessibility specialist. Given the results of an automated accessibility audit of a desktop application, produce a concise, actionable natural-language summary. Focus on:

1. Overall health: pages scanned, total rule violations and their impact levels
2. Most frequent violations: which rules fail most and on which screens
3. Additional checks: color contrast, keyboard focus, zoom support and page structure
4. Run problems: screens that could not be reached or scanned
5. Recommendations: what to fix first for the biggest accessibility gain

Be concise but specific. Reference screen names and rule ids where relevant. Write 3-8 sentences."""


def build_summary_prompt(statistics_json: str, pages_json: str) -> str:
    """Build the user message for the summary AI call."""
    return (
        f"## Audit Statistics\n\n```json\n{statistics_json}\n```\n\n"
        f"## Per-Screen Results\n\n```json\n{pages_json}\n```\n\n"
        f"Generate a concise, actionable summary of this accessibility audit."
    )
