"""Filesystem helpers for report and screenshot output."""

from __future__ import annotations

import logging
import re
import time
from pathlib import Path

logger = logging.getLogger(__name__)


def ensure_dir(path: str | Path) -> Path:
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def timestamp_slug() -> str:
    """Filesystem-safe timestamp, e.g. ``2025-01-01T10-30-00-123Z``."""
    now = time.time()
    millis = int((now % 1) * 1000)
    return time.strftime("%Y-%m-%dT%H-%M-%S", time.gmtime(now)) + f"-{millis:03d}Z"


def safe_filename(text: str, max_length: int = 60) -> str:
    """Reduce ``text`` to lowercase alphanumerics and dashes."""
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    return slug[:max_length].rstrip("-") or "item"


def clean_old_files(
    directory: str | Path,
    max_age_days: float,
    exclude_patterns: list[str] | None = None,
) -> list[Path]:
    """Delete files in ``directory`` older than ``max_age_days``. Returns removed paths."""
    directory = Path(directory)
    if not directory.exists():
        return []
    cutoff = time.time() - max_age_days * 86400
    excludes = exclude_patterns or []
    removed: list[Path] = []
    for entry in directory.iterdir():
        if not entry.is_file() or any(p in entry.name for p in excludes):
            continue
        try:
            if entry.stat().st_mtime < cutoff:
                entry.unlink()
                removed.append(entry)
                logger.debug("Cleaned old file: %s", entry)
        except OSError as e:
            logger.warning("Failed to clean file %s: %s", entry, e)
    return removed


def latest_file(directory: str | Path, pattern: str) -> Path | None:
    """Most recently modified file in ``directory`` matching ``pattern``."""
    directory = Path(directory)
    if not directory.exists():
        return None
    candidates = sorted(directory.glob(pattern), key=lambda p: p.stat().st_mtime)
    return candidates[-1] if candidates else None
