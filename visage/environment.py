"""Process environment resolution: built once at startup and passed into the core."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from pydantic import BaseModel

from visage.errors import ConfigError
from visage.models.config import CONFIG_FILENAME

logger = logging.getLogger(__name__)


class Environment(BaseModel):
    cwd: Path
    home: Path
    config_path: Path
    project_root: Path


def find_config(cwd: Path, home: Path) -> Path | None:
    """Return the project-local config, else the user-global one, else None."""
    for candidate in (cwd / CONFIG_FILENAME, home / ".config" / CONFIG_FILENAME):
        if candidate.is_file():
            return candidate
    return None


def resolve_environment(
    cwd: Optional[Path] = None,
    home: Optional[Path] = None,
    config_path: Optional[Path] = None,
    project_root: Optional[Path] = None,
) -> Environment:
    """Resolve working directory, home directory, config file and project root.

    Anything not passed explicitly is read from the process once, here.
    ``project_root`` defaults to the working directory; a config file's own
    ``project_root`` setting is applied later by the CLI.
    """
    cwd = Path(cwd) if cwd else Path.cwd()
    home = Path(home) if home else Path.home()

    if config_path is not None:
        config_path = Path(config_path)
        if not config_path.is_file():
            raise ConfigError(f"Config file not found: {config_path}")
    else:
        config_path = find_config(cwd, home)
        if config_path is None:
            raise ConfigError(
                f"No config file found (looked for {cwd / CONFIG_FILENAME} "
                f"and {home / '.config' / CONFIG_FILENAME})"
            )

    env = Environment(
        cwd=cwd,
        home=home,
        config_path=config_path,
        project_root=Path(project_root) if project_root else cwd,
    )
    logger.debug("Environment: cwd=%s home=%s config=%s project=%s",
                 env.cwd, env.home, env.config_path, env.project_root)
    return env
