"""Capture, fingerprint and regression result data structures."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CaptureResult(BaseModel):
    """Raw output of rendering one story. Never persisted."""
    screenshot: bytes
    markup: str
    style: str


class Fingerprint(BaseModel):
    """Compact, durable representation of one story's rendered state."""

    model_config = ConfigDict(frozen=True)

    component: str  # story id, e.g. "atoms-button--primary"
    viewport: str
    visual_hash: str  # block-mean perceptual hash, hex
    dom_hash: str  # md5 of the root element markup
    style_hash: str  # sha1 of the first stylesheet rule
    captured_at: str = ""  # ISO timestamp

    @property
    def key(self) -> str:
        return f"{self.component}__{self.viewport}"

    def diff_fields(self, other: "Fingerprint") -> list[str]:
        """Names of the hash fields that differ from ``other``."""
        return [
            field
            for field in ("visual_hash", "dom_hash", "style_hash")
            if getattr(self, field) != getattr(other, field)
        ]

    def matches(self, other: "Fingerprint") -> bool:
        return not self.diff_fields(other)


class RegressionStatus(str, Enum):
    CREATED = "created"
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


class RegressionResult(BaseModel):
    status: RegressionStatus
    story_id: str
    component_name: str
    story_name: str
    current: Optional[Fingerprint] = None
    baseline: Optional[Fingerprint] = None
    changed: list[str] = Field(default_factory=list)


class StoryError(BaseModel):
    """A capture failure that stays attributable to its story."""
    story_id: str
    component_name: str
    story_name: str
    kind: str  # capture, timeout, fingerprint, error
    message: str


class RunReport(BaseModel):
    run_id: str
    started_at: str
    completed_at: str = ""
    base_url: str
    project_root: str
    duration_seconds: float = 0.0
    results: list[RegressionResult] = Field(default_factory=list)
    errors: list[StoryError] = Field(default_factory=list)

    def count(self, status: RegressionStatus) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def total(self) -> int:
        return len(self.results) + len(self.errors)

    @property
    def success(self) -> bool:
        return not self.errors and self.count(RegressionStatus.FAILED) == 0
