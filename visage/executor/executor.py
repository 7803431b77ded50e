"""Capture executor: runs story captures on a bounded pool of isolated browsers."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field

from playwright.async_api import Playwright, async_playwright

from visage.capture.browser import create_capture_context, launch_browser
from visage.capture.session import capture_story
from visage.errors import CaptureError, CaptureTimeoutError, FingerprintError
from visage.fingerprint.hashing import fingerprint_capture
from visage.models.config import VisageConfig
from visage.models.fingerprint import Fingerprint, StoryError
from visage.models.story import Story

logger = logging.getLogger(__name__)


@dataclass
class CaptureBatch:
    """Everything one executor run produced, in completion order."""
    captured: list[tuple[Story, Fingerprint]] = field(default_factory=list)
    errors: list[StoryError] = field(default_factory=list)


def _story_error(story: Story, kind: str, error: BaseException) -> StoryError:
    return StoryError(
        story_id=story.story_id,
        component_name=story.component_name,
        story_name=story.name,
        kind=kind,
        message=str(error) or type(error).__name__,
    )


class CaptureExecutor:
    """Captures and fingerprints stories, at most ``max_threads`` at a time."""

    def __init__(self, config: VisageConfig):
        self.config = config

    async def run(self, stories: list[Story]) -> CaptureBatch:
        """Capture every story and collect fingerprints and per-story errors.

        Each story runs in its own Chromium process and context under its
        own deadline. A failing or slow story never stops its siblings; all
        stories finish before this returns. Cancelling the caller cancels
        every in-flight capture, and each one still closes its browser.
        """
        batch = CaptureBatch()
        if not stories:
            return batch

        total = len(stories)
        timeout = self.config.capture_timeout_seconds
        start_time = time.time()
        logger.info("Capturing %d stories (max %d in parallel, %gs timeout each)",
                    total, self.config.max_threads, timeout)

        # Acquired before a browser is launched, released after it is closed.
        semaphore = asyncio.Semaphore(self.config.max_threads)

        async with async_playwright() as p:

            async def _run_one(index: int, story: Story) -> None:
                async with semaphore:
                    logger.debug("Capturing [%d/%d]: %s", index + 1, total, story.story_id)
                    story_start = time.time()
                    try:
                        fingerprint = await asyncio.wait_for(
                            self._capture_one(p, story), timeout=timeout,
                        )
                    except asyncio.TimeoutError:
                        err = CaptureTimeoutError(story.story_id, timeout)
                        logger.warning("%s", err)
                        batch.errors.append(_story_error(story, "timeout", err))
                    except CaptureError as e:
                        logger.warning("%s", e)
                        batch.errors.append(_story_error(story, "capture", e))
                    except FingerprintError as e:
                        logger.warning("Fingerprint failed for %s: %s", story.story_id, e)
                        batch.errors.append(_story_error(story, "fingerprint", e))
                    except Exception as e:
                        logger.error("Unexpected error capturing %s: %s",
                                     story.story_id, e, exc_info=True)
                        batch.errors.append(_story_error(story, "error", e))
                    else:
                        logger.debug("Captured %s in %.1fs (visual %s)", story.story_id,
                                     time.time() - story_start, fingerprint.visual_hash)
                        batch.captured.append((story, fingerprint))

            await asyncio.gather(*(_run_one(i, s) for i, s in enumerate(stories)))

        logger.info("Capture complete: %d captured, %d errors (%.1fs)",
                    len(batch.captured), len(batch.errors), time.time() - start_time)
        return batch

    async def _capture_one(self, playwright: Playwright, story: Story) -> Fingerprint:
        viewport = self.config.viewport
        browser = await launch_browser(playwright, headless=self.config.headless)
        try:
            context = await create_capture_context(
                browser, viewport, timeout_ms=self.config.capture_timeout_seconds * 1000,
            )
            try:
                page = await context.new_page()
                capture = await capture_story(page, story, self.config)
            finally:
                await context.close()
        finally:
            await browser.close()
        return fingerprint_capture(story, capture, viewport.name)
