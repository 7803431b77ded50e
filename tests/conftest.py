"""Pytest configuration and shared fixtures."""

import io
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest
from PIL import Image, ImageDraw

from visage.environment import Environment
from visage.models.config import ViewportConfig, VisageConfig
from visage.models.fingerprint import CaptureResult, Fingerprint
from visage.models.story import Category, Story


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def visage_config() -> VisageConfig:
    """Create a test configuration with a fast settle time."""
    return VisageConfig(
        base_url="http://localhost:6006",
        root_element="#storybook-root",
        max_threads=2,
        capture_timeout_seconds=30,
        settle_ms=0,
        viewport=ViewportConfig(width=1920, height=1080, name="full"),
    )


@pytest.fixture
def environment(tmp_path: Path) -> Environment:
    """An environment rooted in a temporary project with a manifest."""
    project = tmp_path / "project"
    project.mkdir()
    (project / "package.json").write_text('{"name": "component-library"}')
    config_path = tmp_path / "visage.json"
    config_path.write_text('{"base_url": "http://localhost:6006"}')
    return Environment(
        cwd=tmp_path,
        home=tmp_path / "home",
        config_path=config_path,
        project_root=project,
    )


# ============================================================================
# Story / Fingerprint Fixtures
# ============================================================================


@pytest.fixture
def story() -> Story:
    """Create a test story."""
    return Story(
        path="/project/src/10-atoms/Button/Button.stories.tsx",
        name="PrimaryLarge",
        component_name="Button",
        category=Category.ATOM,
    )


@pytest.fixture
def fingerprint(story: Story) -> Fingerprint:
    """Create a test fingerprint for the story fixture."""
    return Fingerprint(
        component=story.story_id,
        viewport="full",
        visual_hash="f" * 64,
        dom_hash="0" * 32,
        style_hash="1" * 40,
        captured_at="2025-01-01T00:00:00Z",
    )


# ============================================================================
# Image Helpers
# ============================================================================


def make_png(size: tuple[int, int] = (64, 64), box: tuple[int, int, int, int] | None = None) -> bytes:
    """Render a white PNG, optionally with a black rectangle."""
    img = Image.new("RGB", size, "white")
    if box:
        ImageDraw.Draw(img).rectangle(box, fill="black")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def png_factory():
    """Fixture that provides the make_png function."""
    return make_png


@pytest.fixture
def capture_result() -> CaptureResult:
    return CaptureResult(
        screenshot=make_png(box=(8, 8, 40, 40)),
        markup='<div id="storybook-root"><button class="btn">Click</button></div>',
        style=".btn { color: red; }",
    )


# ============================================================================
# Project Tree Helpers
# ============================================================================


def write_story_file(root: Path, relative: str, *names: str) -> Path:
    """Write a story module exporting ``names`` below ``root``."""
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    body = ["import type { Meta, StoryObj } from '@storybook/react';", ""]
    body += [f"export const {name}: Story = {{ args: {{}} }};" for name in names]
    path.write_text("\n".join(body) + "\n")
    return path


@pytest.fixture
def story_file_writer():
    """Fixture that provides the write_story_file function."""
    return write_story_file


# ============================================================================
# Mock Fixtures
# ============================================================================


@pytest.fixture
def mock_page(capture_result: CaptureResult) -> AsyncMock:
    """Create a mock Playwright page that renders ``capture_result``."""
    page = AsyncMock()
    page.goto = AsyncMock()
    page.wait_for_selector = AsyncMock()
    page.wait_for_timeout = AsyncMock()
    locator = Mock()
    locator.screenshot = AsyncMock(return_value=capture_result.screenshot)
    page.locator = Mock(return_value=locator)
    page.evaluate = AsyncMock(side_effect=[capture_result.markup, capture_result.style])
    return page


@pytest.fixture
def mock_context(mock_page: AsyncMock) -> AsyncMock:
    """Create a mock Playwright browser context."""
    context = AsyncMock()
    context.new_page = AsyncMock(return_value=mock_page)
    context.set_default_timeout = Mock()
    return context


@pytest.fixture
def mock_browser(mock_context: AsyncMock) -> AsyncMock:
    """Create a mock Playwright browser."""
    browser = AsyncMock()
    browser.new_context = AsyncMock(return_value=mock_context)
    return browser
