"""Exception types raised by the visage pipeline."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from visage.models.fingerprint import RunReport, StoryError


class VisageError(Exception):
    """Base class for all visage errors."""


class ConfigError(VisageError):
    """Missing or invalid configuration. Fatal before any run starts."""


class ManifestNotFoundError(ConfigError):
    def __init__(self, project_root: str):
        super().__init__(f"package.json not found in {project_root}")
        self.project_root = project_root


class DiscoveryError(VisageError):
    """Story discovery failed; no partial catalog is produced."""


class ServerStartError(VisageError):
    """The configured Storybook command could not be started or never answered."""


class CaptureError(VisageError):
    """One step of a capture session failed."""

    def __init__(self, step: str, story_id: str, reason: str):
        super().__init__(f"{step} failed for {story_id}: {reason}")
        self.step = step
        self.story_id = story_id
        self.reason = reason


class CaptureTimeoutError(CaptureError):
    def __init__(self, story_id: str, timeout_seconds: float):
        super().__init__("capture", story_id, f"timed out after {timeout_seconds:g}s")
        self.timeout_seconds = timeout_seconds


class FingerprintError(VisageError):
    """A capture could not be reduced to a fingerprint."""


class BaselineStoreError(VisageError):
    """The baseline registry could not be read or written."""


class AggregateCaptureError(VisageError):
    """One or more stories failed to capture during a run."""

    def __init__(self, errors: list[StoryError], report: RunReport | None = None):
        lines = [f"{len(errors)} of the stories failed to capture:"]
        lines.extend(f"  {e.story_id}: [{e.kind}] {e.message}" for e in errors)
        super().__init__("\n".join(lines))
        self.errors = errors
        self.report = report
