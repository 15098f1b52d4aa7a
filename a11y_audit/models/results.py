"""Result and run aggregate data structures."""

from __future__ import annotations

import time
from typing import Annotated, Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from a11y_audit.models.checks import CheckPayload


def now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


class CheckResult(BaseModel):
    """Uniform outcome of one checker (or the rule engine scan) on one page."""

    model_config = ConfigDict(frozen=True)

    checker_name: str
    page_name: str
    timestamp: str = Field(default_factory=now_iso)
    success: bool = False
    error: Optional[str] = None
    duration_seconds: float = 0.0
    data: Optional[Annotated[CheckPayload, Field(discriminator="kind")]] = None

    @model_validator(mode="before")
    @classmethod
    def error_means_failure(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("error"):
            data = {**data, "success": False}
        return data

    @property
    def errored(self) -> bool:
        return self.error is not None

    @property
    def score(self) -> Optional[float]:
        if self.data is None:
            return None
        return getattr(self.data, "score", None)


class CheckSummary(BaseModel):
    total_checks: int = 0
    passed: int = 0
    failed: int = 0
    errors: int = 0
    success_rate: int = 0
    duration_seconds: float = 0.0


class PageCheckResults(BaseModel):
    page_name: str
    timestamp: str = Field(default_factory=now_iso)
    checks: dict[str, CheckResult] = Field(default_factory=dict)
    summary: CheckSummary = Field(default_factory=CheckSummary)


class ErrorRecord(BaseModel):
    phase: str
    message: str
    error_type: str = "Exception"
    stack: str = ""
    timestamp: str = Field(default_factory=now_iso)
    page: Optional[str] = None
    selector: Optional[str] = None
    context: dict[str, Any] = Field(default_factory=dict)


class WarningRecord(BaseModel):
    type: str
    message: str
    timestamp: str = Field(default_factory=now_iso)
    page: Optional[str] = None
    file: Optional[str] = None


class ReportOutcome(BaseModel):
    format: str
    success: bool
    path: Optional[str] = None
    error: Optional[str] = None


class RunResult(BaseModel):
    """Aggregate of everything produced during one suite run."""

    started_at: str = Field(default_factory=now_iso)
    completed_at: str = ""
    target: str = ""
    rule_engine_results: list[CheckResult] = Field(default_factory=list)
    extra_check_results: list[PageCheckResults] = Field(default_factory=list)
    screenshots: list[str] = Field(default_factory=list)
    errors: list[ErrorRecord] = Field(default_factory=list)
    warnings: list[WarningRecord] = Field(default_factory=list)
    reports: list[ReportOutcome] = Field(default_factory=list)
    summary_report: Optional[str] = None
    ai_summary: str = ""
    success: bool = False
    duration_seconds: float = 0.0

    @property
    def pages_scanned(self) -> int:
        return len(self.rule_engine_results)

    @property
    def total_violations(self) -> int:
        total = 0
        for r in self.rule_engine_results:
            if r.data is not None:
                total += len(getattr(r.data, "violations", []))
        return total
