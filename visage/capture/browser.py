"""Browser utilities: isolated Chromium processes and contexts for captures."""

from __future__ import annotations

from playwright.async_api import Browser, BrowserContext, Playwright

from visage.models.config import ViewportConfig

# Pinned so the same story renders identically across machines and runs.
_CONTEXT_DEFAULTS: dict = {
    "locale": "en-US",
    "timezone_id": "UTC",
    "device_scale_factor": 1,
    "color_scheme": "light",
    "reduced_motion": "reduce",
}


async def launch_browser(playwright: Playwright, headless: bool = True) -> Browser:
    """Launch a dedicated Chromium process."""
    return await playwright.chromium.launch(
        headless=headless,
        args=[
            "--disable-gpu",
            "--font-render-hinting=none",
            "--hide-scrollbars",
        ],
    )


async def create_capture_context(
    browser: Browser,
    viewport: ViewportConfig,
    timeout_ms: float | None = None,
) -> BrowserContext:
    """Create a fresh browser context sized to ``viewport``.

    Args:
        timeout_ms: Default timeout for every navigation and wait in the
            context. Playwright's own default (30s) applies when omitted.
    """
    context = await browser.new_context(
        viewport={"width": viewport.width, "height": viewport.height},
        **_CONTEXT_DEFAULTS,
    )
    if timeout_ms is not None:
        context.set_default_timeout(timeout_ms)
    return context
