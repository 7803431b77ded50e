"""Comparator: turns a fresh fingerprint and an optional baseline into a verdict."""

from __future__ import annotations

from typing import Optional

from visage.models.fingerprint import Fingerprint, RegressionResult, RegressionStatus
from visage.models.story import Story


def compare(story: Story, current: Fingerprint, baseline: Optional[Fingerprint]) -> RegressionResult:
    """Decide created / passed / failed for one captured story.

    With no baseline the current fingerprint is reported as its own
    baseline. Otherwise all three hashes must match exactly to pass.
    """
    if baseline is None:
        return RegressionResult(
            status=RegressionStatus.CREATED,
            story_id=story.story_id,
            component_name=story.component_name,
            story_name=story.name,
            current=current,
            baseline=current,
        )

    changed = current.diff_fields(baseline)
    return RegressionResult(
        status=RegressionStatus.FAILED if changed else RegressionStatus.PASSED,
        story_id=story.story_id,
        component_name=story.component_name,
        story_name=story.name,
        current=current,
        baseline=baseline,
        changed=changed,
    )


def skip(story: Story, baseline: Optional[Fingerprint] = None) -> RegressionResult:
    """Result for a story excluded from comparison. Nothing is captured."""
    return RegressionResult(
        status=RegressionStatus.SKIPPED,
        story_id=story.story_id,
        component_name=story.component_name,
        story_name=story.name,
        baseline=baseline,
    )
