"""Story catalog: walks a project tree and extracts story declarations."""

from __future__ import annotations

import fnmatch
import logging
import os
import re
from pathlib import Path
from typing import Iterable

from visage.errors import DiscoveryError
from visage.models.story import Story, category_for_path

logger = logging.getLogger(__name__)

DEFAULT_IGNORES = (
    "patches",
    "node_modules",
    ".DS_Store",
    ".idea",
    ".vscode",
    "dist",
    "build",
    "coverage",
    "out",
    "tmp",
    "temp",
    "*.log",
    "*.tmp",
)

DEFAULT_STORY_SUFFIXES = (".stories.ts", ".stories.tsx", ".stories.js", ".stories.jsx")

STORY_PATTERN = re.compile(r"export const (\w+): Story")


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise DiscoveryError(f"Failed to read {path}: {e}") from e


def parse_ignore_file(content: str) -> list[str]:
    """Parse gitignore-style lines into ignore tokens.

    Blank lines, comments and negations are dropped; surrounding slashes are
    stripped so ``/dist`` and ``dist/`` both become ``dist``.
    """
    tokens = []
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or line.startswith("!"):
            continue
        line = line.strip("/")
        if line:
            tokens.append(line)
    return tokens


def get_ignores(root: str | Path) -> list[str]:
    """Built-in ignore tokens merged with the nearest .gitignore (root, then parent)."""
    root = Path(root)
    ignores = set(DEFAULT_IGNORES)
    for candidate in (root / ".gitignore", root.parent / ".gitignore"):
        if candidate.is_file():
            ignores.update(parse_ignore_file(_read_text(candidate)))
            logger.debug("Loaded ignore tokens from %s", candidate)
            break
    return sorted(ignores)


def is_ignored(relative: str | Path, ignores: Iterable[str]) -> bool:
    """True if any segment of ``relative`` (a path below the root) matches a token."""
    parts = Path(relative).parts
    joined = "/" + "/".join(parts) + "/"
    for token in ignores:
        if "/" in token:
            if f"/{token}/" in joined:
                return True
        elif any(fnmatch.fnmatchcase(part, token) for part in parts):
            return True
    return False


def walk_files(root: str | Path, ignores: Iterable[str]) -> list[Path]:
    """List non-ignored files below ``root`` in a stable, sorted order."""
    root = Path(root)
    ignores = list(ignores)
    files: list[Path] = []

    def _raise(err: OSError) -> None:
        raise DiscoveryError(f"Failed to walk {err.filename}: {err}") from err

    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise):
        rel_dir = Path(dirpath).relative_to(root)
        dirnames[:] = sorted(d for d in dirnames if not is_ignored(rel_dir / d, ignores))
        for name in sorted(filenames):
            if not is_ignored(rel_dir / name, ignores):
                files.append(Path(dirpath) / name)
    return files


def component_name_for(path: Path) -> str:
    """Component name is the file name up to its first dot."""
    component = path.name.split(".")[0]
    if not component:
        raise DiscoveryError(f"Invalid file name, no component name: {path}")
    return component


def extract_stories(path: Path, content: str, root: Path | None = None) -> list[Story]:
    """Extract every exported story declared in ``content``."""
    names = STORY_PATTERN.findall(content)
    if not names:
        return []

    component = component_name_for(path)
    relative = path.relative_to(root) if root else path
    category = category_for_path(relative)
    return [
        Story(path=str(path), name=name, component_name=component, category=category)
        for name in names
    ]


def get_all_stories(
    root: str | Path,
    suffixes: Iterable[str] = DEFAULT_STORY_SUFFIXES,
) -> list[Story]:
    """Discover all stories below ``root``.

    Fails fast on any unreadable file and on two declarations that resolve
    to the same story id.
    """
    root = Path(root)
    if not root.is_dir():
        raise DiscoveryError(f"Project root is not a directory: {root}")

    suffixes = tuple(suffixes)
    ignores = get_ignores(root)
    stories: list[Story] = []
    seen: dict[str, Story] = {}

    for path in walk_files(root, ignores):
        if not path.name.endswith(suffixes):
            continue
        found = extract_stories(path, _read_text(path), root)
        for story in found:
            logger.debug("Found story: %s %s %s %s",
                         story.component_name, story.name, path, story.category.value)
            # Baselines are keyed by story id, so it must be unique across the tree.
            if story.story_id in seen:
                raise DiscoveryError(
                    f"Duplicate story id {story.story_id}: "
                    f"{seen[story.story_id].path} and {story.path}"
                )
            seen[story.story_id] = story
        stories.extend(found)

    logger.info("Discovered %d stories under %s", len(stories), root)
    return stories
