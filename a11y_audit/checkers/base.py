"""Base class for pluggable accessibility checkers."""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

from pydantic import BaseModel

from a11y_audit.models.checks import CheckPayload
from a11y_audit.models.config import AuditConfig
from a11y_audit.models.results import CheckResult

logger = logging.getLogger(__name__)


class BaseChecker:
    """One audit dimension run against the current window.

    Subclasses set ``name``, ``description`` and ``priority`` and implement
    ``execute_check``. ``run`` never raises: any exception is folded into an
    errored ``CheckResult``.
    """

    name: str = "base"
    description: str = ""
    priority: int = 100

    def __init__(self, config: AuditConfig):
        self.config = config

    @property
    def settings(self) -> Optional[BaseModel]:
        return self.config.checkers.for_checker(self.name)

    def is_enabled(self) -> bool:
        settings = self.settings
        if settings is None:
            return True
        return bool(getattr(settings, "enabled", True))

    def option(self, options: dict[str, Any] | None, key: str, default: Any = None) -> Any:
        """Per-call option, falling back to configured settings, then ``default``."""
        if options and key in options:
            return options[key]
        return getattr(self.settings, key, default)

    async def execute_check(
        self, page: Any, page_name: str, options: dict[str, Any],
    ) -> CheckPayload:
        raise NotImplementedError

    async def run(
        self, page: Any, page_name: str, options: dict[str, Any] | None = None,
    ) -> CheckResult:
        start = time.time()
        logger.debug("Running %s on %s", self.name, page_name)
        try:
            payload = await self.execute_check(page, page_name, options or {})
        except Exception as e:
            logger.warning("%s check failed on %s: %s", self.name, page_name, e)
            return CheckResult(
                checker_name=self.name,
                page_name=page_name,
                success=False,
                error=str(e) or type(e).__name__,
                duration_seconds=round(time.time() - start, 3),
            )
        return CheckResult(
            checker_name=self.name,
            page_name=page_name,
            success=bool(getattr(payload, "passed", True)),
            data=payload,
            duration_seconds=round(time.time() - start, 3),
        )

    def info(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "priority": self.priority,
            "enabled": self.is_enabled(),
        }
