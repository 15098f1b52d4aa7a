"""Reporter interface."""

from __future__ import annotations

import asyncio
from pathlib import Path

from a11y_audit.models.results import RunResult
from a11y_audit.utils.file_utils import ensure_dir, timestamp_slug


class BaseReporter:
    """Writes one output format for a run. ``generate`` returns the written path."""

    format: str = ""
    extension: str = ""

    def __init__(self, output_dir: str | Path):
        self.output_dir = Path(output_dir)

    def output_path(self, prefix: str = "accessibility-report") -> Path:
        ensure_dir(self.output_dir)
        return self.output_dir / f"{prefix}-{timestamp_slug()}{self.extension}"

    def render(self, run: RunResult) -> str:
        raise NotImplementedError

    async def generate(self, run: RunResult) -> Path:
        path = self.output_path()
        content = self.render(run)
        await asyncio.to_thread(path.write_text, content, "utf-8")
        return path
