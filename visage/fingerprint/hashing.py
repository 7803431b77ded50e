"""Fingerprint functions: reduce a capture to perceptual and content hashes."""

from __future__ import annotations

import hashlib
import io
import time

import imagehash
from PIL import Image, UnidentifiedImageError

from visage.errors import FingerprintError
from visage.models.fingerprint import CaptureResult, Fingerprint
from visage.models.story import Story

# 16x16 blocks -> 256 bits -> 64 hex characters. Changing this invalidates every stored baseline.
HASH_SIZE = 16


def perceptual_hash(screenshot: bytes, hash_size: int = HASH_SIZE) -> str:
    """Block-mean perceptual hash of an encoded image, as a fixed-width hex string."""
    try:
        with Image.open(io.BytesIO(screenshot)) as img:
            img.load()
            return str(imagehash.average_hash(img, hash_size=hash_size))
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise FingerprintError(f"Could not decode screenshot: {e}") from e


def markup_hash(markup: str) -> str:
    # Change detection only, not security.
    return hashlib.md5(markup.encode("utf-8")).hexdigest()


def style_hash(style: str) -> str:
    return hashlib.sha1(style.encode("utf-8")).hexdigest()


def fingerprint_capture(story: Story, capture: CaptureResult, viewport: str) -> Fingerprint:
    """Build the fingerprint for one story from its raw capture."""
    return Fingerprint(
        component=story.story_id,
        viewport=viewport,
        visual_hash=perceptual_hash(capture.screenshot),
        dom_hash=markup_hash(capture.markup),
        style_hash=style_hash(capture.style),
        captured_at=time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
    )
