"""Prose summaries of finished audit runs, written by Claude."""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Optional

import anthropic

from a11y_audit.ai.prompts.summary import SUMMARY_SYSTEM_PROMPT, build_summary_prompt

logger = logging.getLogger(__name__)

MAX_PAGES_IN_PROMPT = 30


class SummaryWriter:
    """Asks Claude for a short summary of the statistics and per-screen results of a run."""

    def __init__(
        self,
        model: str = "claude-sonnet-4-5",
        max_tokens: int = 500,
        api_key: Optional[str] = None,
        timeout_seconds: float = 60.0,
    ):
        api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        if not api_key:
            raise EnvironmentError(
                "ANTHROPIC_API_KEY is not set; AI-written report summaries are disabled"
            )
        self._client = anthropic.AsyncAnthropic(api_key=api_key, timeout=timeout_seconds)
        self.model = model
        self.max_tokens = max_tokens
        self.summaries_written = 0

    async def summarize(self, statistics: dict[str, Any], pages: list[dict[str, Any]]) -> str:
        """Return the summary text. API errors and empty answers propagate."""
        message = build_summary_prompt(
            json.dumps(statistics, indent=2, default=str),
            json.dumps(pages[:MAX_PAGES_IN_PROMPT], indent=2, default=str),
        )
        logger.info("Requesting AI summary for %d screen(s) from %s", len(pages), self.model)
        response = await self._client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=0.2,
            system=SUMMARY_SYSTEM_PROMPT,
            messages=[{"role": "user", "content": message}],
        )
        text = "".join(
            block.text for block in response.content if block.type == "text"
        ).strip()
        if response.stop_reason == "max_tokens":
            logger.warning("AI summary cut off at %d tokens", self.max_tokens)
        if not text:
            raise ValueError("Claude returned an empty summary")
        self.summaries_written += 1
        return text
