"""Story data structures produced by the catalog builder."""

from __future__ import annotations

import re
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict


class Category(str, Enum):
    DRAFT = "draft"
    FOUNDATION = "foundation"
    ATOM = "atom"
    MOLECULE = "molecule"
    ORGANISM = "organism"
    TEMPLATE = "template"
    PAGE = "page"

    @property
    def plural(self) -> str:
        return f"{self.value}s"


# Checked in order; first marker contained in the path wins.
CATEGORY_MARKERS: tuple[tuple[str, Category], ...] = (
    ("99-drafts", Category.DRAFT),
    ("00-foundations", Category.FOUNDATION),
    ("10-atoms", Category.ATOM),
    ("20-molecules", Category.MOLECULE),
    ("30-organisms", Category.ORGANISM),
    ("40-templates", Category.TEMPLATE),
    ("50-pages", Category.PAGE),
)

_CAMEL_WORD = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|\d+")


def category_for_path(path: str | Path) -> Category:
    """Infer a story category from directory markers; unknown paths are drafts."""
    text = Path(path).as_posix()
    for marker, category in CATEGORY_MARKERS:
        if marker in text:
            return category
    return Category.DRAFT


def split_camel_case(name: str) -> list[str]:
    """Split ``PrimaryLargeButton`` into ``["Primary", "Large", "Button"]``.

    Characters that are not letters or digits separate words and are dropped,
    so ``Primary_Large`` gives ``["Primary", "Large"]``. Storybook sanitizes
    story ids the same way, which keeps the slug addressable in ``iframe.html``.
    """
    return _CAMEL_WORD.findall(name)


class Story(BaseModel):
    """A single renderable variant of a component."""

    model_config = ConfigDict(frozen=True)

    path: str
    name: str
    component_name: str
    category: Category = Category.DRAFT

    @property
    def slug(self) -> str:
        return "-".join(word.lower() for word in split_camel_case(self.name))

    @property
    def story_id(self) -> str:
        return f"{self.category.plural}-{self.component_name.lower()}--{self.slug}"

    def __str__(self) -> str:
        return f"{self.component_name}/{self.name}"
