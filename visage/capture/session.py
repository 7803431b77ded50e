"""Capture session: renders one story in isolation and extracts its output."""

from __future__ import annotations

import logging
from urllib.parse import urlsplit, urlunsplit

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from visage.errors import CaptureError
from visage.models.config import VisageConfig
from visage.models.fingerprint import CaptureResult
from visage.models.story import Story

logger = logging.getLogger(__name__)

MARKUP_QUERY = "(selector) => document.querySelector(selector).outerHTML"
STYLE_QUERY = "() => document.styleSheets[0].cssRules[0].cssText"


def story_url(base_url: str, story: Story) -> str:
    """Build the isolated-render iframe URL for a story."""
    parts = urlsplit(base_url)
    path = parts.path.rstrip("/") + "/iframe.html"
    query = f"globals=viewport:full&args=&id={story.story_id}&viewMode=story"
    return urlunsplit((parts.scheme, parts.netloc, path, query, ""))


async def _evaluate_text(page: Page, step: str, story: Story, expression: str, arg=None) -> str:
    try:
        value = await page.evaluate(expression, arg)
    except PlaywrightError as e:
        raise CaptureError(step, story.story_id, str(e)) from e
    if not isinstance(value, str) or not value:
        raise CaptureError(step, story.story_id, f"expected non-empty text, got {value!r}")
    return value


async def capture_story(page: Page, story: Story, config: VisageConfig) -> CaptureResult:
    """Navigate to ``story`` and extract screenshot, markup and style text.

    Steps run strictly in order and each one gates the next. The first
    failure raises CaptureError naming the step; nothing partial is returned.
    """
    url = story_url(config.base_url, story)
    selector = config.root_selector
    logger.info("Checking %s %s %s", story.component_name, story.name, url)

    try:
        await page.goto(url)
    except PlaywrightError as e:
        raise CaptureError("navigate", story.story_id, str(e)) from e

    try:
        await page.wait_for_selector(selector, state="attached")
    except PlaywrightError as e:
        raise CaptureError("wait_attached", story.story_id, str(e)) from e

    try:
        await page.wait_for_selector(selector, state="visible")
    except PlaywrightError as e:
        raise CaptureError("wait_visible", story.story_id, str(e)) from e

    # Let transitions and animations finish.
    try:
        await page.wait_for_timeout(config.settle_ms)
    except PlaywrightError as e:
        raise CaptureError("settle", story.story_id, str(e)) from e

    try:
        screenshot = await page.locator(selector).screenshot(type="png")
    except PlaywrightError as e:
        raise CaptureError("screenshot", story.story_id, str(e)) from e

    markup = await _evaluate_text(page, "extract_markup", story, MARKUP_QUERY, selector)
    style = await _evaluate_text(page, "extract_style", story, STYLE_QUERY)

    logger.debug("Captured %s: %d byte screenshot, %d chars markup, %d chars style",
                 story.story_id, len(screenshot), len(markup), len(style))
    return CaptureResult(screenshot=screenshot, markup=markup, style=style)
