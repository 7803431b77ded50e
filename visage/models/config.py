"""Configuration models for visage."""

from __future__ import annotations

import json
import re
import shlex
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from visage.errors import ConfigError

CONFIG_FILENAME = "visage.json"

_ELEMENT_ID = re.compile(r"[A-Za-z_][\w-]*")


class ViewportConfig(BaseModel):
    width: int = 1920
    height: int = 1080
    name: str = "full"


class VisageConfig(BaseModel):
    # Storybook server
    base_url: str
    root_element: str = "storybook-root"
    start_command: Optional[str] = None  # e.g. "npm run storybook"; unset means already running
    server_start_timeout_seconds: float = Field(default=120.0, gt=0)

    # Execution limits
    max_threads: int = Field(default=4, ge=1)
    capture_timeout_seconds: float = Field(default=30.0, gt=0)
    settle_ms: int = Field(default=1000, ge=0)
    headless: bool = True

    viewport: ViewportConfig = Field(default_factory=ViewportConfig)

    # Discovery
    project_root: Optional[str] = None
    story_suffixes: list[str] = Field(
        default_factory=lambda: [".stories.ts", ".stories.tsx", ".stories.js", ".stories.jsx"]
    )
    skip: list[str] = Field(default_factory=list)  # fnmatch patterns on story id / component / name

    # Where baselines and reports live, relative to the project root
    state_dir: str = ".visage"

    @field_validator("base_url")
    @classmethod
    def require_base_url(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("base_url is required")
        return v.rstrip("/")

    @field_validator("start_command")
    @classmethod
    def parse_start_command(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        try:
            shlex.split(v)
        except ValueError as e:
            raise ValueError(f"start_command is not a valid command line: {e}") from e
        return v.strip()

    @field_validator("root_element")
    @classmethod
    def strip_id_prefix(cls, v: str) -> str:
        v = v.strip()
        if v.startswith("#") and (v == "#" or _ELEMENT_ID.fullmatch(v[1:])):
            v = v[1:]
        if not v:
            raise ValueError("root_element must not be empty")
        return v

    @property
    def root_selector(self) -> str:
        """A bare identifier is an element id; anything else is a CSS selector."""
        if _ELEMENT_ID.fullmatch(self.root_element):
            return f"#{self.root_element}"
        return self.root_element

    @property
    def start_args(self) -> list[str]:
        return shlex.split(self.start_command) if self.start_command else []

    @classmethod
    def load(cls, path: str | Path) -> "VisageConfig":
        """Load config from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        try:
            with open(path) as f:
                data = json.load(f)
            return cls.model_validate(data)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Config file {path} is not valid JSON: {e}") from e
        except ValidationError as e:
            raise ConfigError(f"Invalid config file {path}:\n{e}") from e

    def save(self, path: str | Path) -> None:
        """Save config to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(exclude_none=True), f, indent=2)
