"""Pipeline orchestrator: coordinates discovery, capture, comparison and baselines."""

from __future__ import annotations

import asyncio
import fnmatch
import logging
import time
import uuid
from pathlib import Path

from visage.baseline.comparator import compare, skip
from visage.baseline.store import BaselineStoreManager
from visage.catalog.catalog import get_all_stories
from visage.environment import Environment
from visage.errors import AggregateCaptureError, ManifestNotFoundError
from visage.executor.executor import CaptureExecutor
from visage.models.config import VisageConfig
from visage.models.fingerprint import RegressionResult, RegressionStatus, RunReport
from visage.models.story import Story
from visage.reporter.json_report import generate_json_report
from visage.server import running_server

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "package.json"


class Orchestrator:
    """Coordinates a full regression check for one project."""

    def __init__(self, config: VisageConfig, environment: Environment):
        self.config = config
        self.environment = environment
        self.project_root = environment.project_root
        self.state_dir = self.project_root / config.state_dir
        self.reports_dir = self.state_dir / "reports"
        self.baseline_manager = BaselineStoreManager(
            registry_path=self.state_dir / "baselines.json",
            base_url=config.base_url,
        )

    def check_manifest(self) -> Path:
        manifest = self.project_root / MANIFEST_FILENAME
        if not manifest.is_file():
            raise ManifestNotFoundError(str(self.project_root))
        return manifest

    def list_stories(self) -> list[Story]:
        """Discover stories without capturing anything."""
        return get_all_stories(self.project_root, self.config.story_suffixes)

    def is_skipped(self, story: Story) -> bool:
        return any(
            fnmatch.fnmatchcase(candidate, pattern)
            for pattern in self.config.skip
            for candidate in (story.story_id, story.component_name, story.name)
        )

    def run_check(self, update_baselines: bool = False) -> RunReport:
        """Run a full check synchronously."""
        return asyncio.run(self.check(update_baselines=update_baselines))

    async def check(self, update_baselines: bool = False) -> RunReport:
        """Capture every story, compare against baselines and update the store.

        Raises AggregateCaptureError after the report is written if any story
        failed to capture. The error carries the report, so the stories that
        did succeed are still available to the caller.
        """
        run_id = f"run_{uuid.uuid4().hex[:8]}"
        start = time.time()
        started_at = time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())
        logger.info("=== Starting visual regression check %s for %s ===",
                    run_id, self.project_root)

        self.check_manifest()
        stories = self.list_stories()

        registry = self.baseline_manager.load()
        # Verdicts are made against the baselines that existed before this run.
        previous = registry.model_copy(deep=True)
        viewport = self.config.viewport.name

        to_capture: list[Story] = []
        results: list[RegressionResult] = []
        for story in stories:
            if self.is_skipped(story):
                logger.info("Skipping %s", story.story_id)
                baseline = self.baseline_manager.get_baseline(previous, story.story_id, viewport)
                results.append(skip(story, baseline))
            else:
                to_capture.append(story)

        async with running_server(self.config, self.project_root):
            batch = await CaptureExecutor(self.config).run(to_capture)

        changed = False
        for story, fingerprint in batch.captured:
            baseline = self.baseline_manager.get_baseline(previous, fingerprint.component, viewport)
            result = compare(story, fingerprint, baseline)
            logger.debug("%s: %s", story.story_id, result.status.value)
            changed |= self.baseline_manager.apply_result(registry, result)
            if update_baselines:
                changed |= self.baseline_manager.promote(registry, result)
            results.append(result)

        if changed:
            self.baseline_manager.save(registry)

        results.sort(key=lambda r: (r.story_id, r.story_name))
        errors = sorted(batch.errors, key=lambda e: e.story_id)
        duration = time.time() - start
        report = RunReport(
            run_id=run_id,
            started_at=started_at,
            completed_at=time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            base_url=self.config.base_url,
            project_root=str(self.project_root),
            duration_seconds=round(duration, 2),
            results=results,
            errors=errors,
        )
        self._save_report(report)

        logger.info(
            "=== Check complete: %d created, %d passed, %d failed, %d skipped, %d errors (%.1fs) ===",
            report.count(RegressionStatus.CREATED), report.count(RegressionStatus.PASSED),
            report.count(RegressionStatus.FAILED), report.count(RegressionStatus.SKIPPED),
            len(errors), duration,
        )

        if errors:
            raise AggregateCaptureError(errors, report)
        return report

    def _save_report(self, report: RunReport) -> Path:
        path = self.reports_dir / f"report_{report.run_id}.json"
        logger.debug("Saving run report to %s", path)
        generate_json_report(report, path)
        return path
