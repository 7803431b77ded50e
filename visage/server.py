"""Storybook dev server lifecycle for projects configured with a start command."""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from visage.errors import ServerStartError
from visage.models.config import VisageConfig

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 0.5
REQUEST_TIMEOUT_MS = 5000
STOP_GRACE_SECONDS = 10.0


async def start_server(args: list[str], cwd: Path) -> asyncio.subprocess.Process:
    """Spawn the server in its own process group so the whole tree can be stopped."""
    logger.info("Starting Storybook: %s (in %s)", " ".join(args), cwd)
    try:
        return await asyncio.create_subprocess_exec(
            *args,
            cwd=str(cwd),
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
            start_new_session=True,
        )
    except OSError as e:
        raise ServerStartError(f"Failed to start {' '.join(args)}: {e}") from e


async def wait_until_ready(
    base_url: str,
    timeout_seconds: float,
    process: Optional[asyncio.subprocess.Process] = None,
    interval: float = POLL_INTERVAL_SECONDS,
) -> None:
    """Poll ``base_url`` until it answers with a non-5xx status.

    Raises ServerStartError if ``process`` exits first or the deadline passes.
    """
    deadline = time.monotonic() + timeout_seconds
    async with async_playwright() as p:
        request = await p.request.new_context()
        try:
            while True:
                if process is not None and process.returncode is not None:
                    raise ServerStartError(
                        f"Storybook exited with code {process.returncode} "
                        f"before {base_url} answered"
                    )
                try:
                    response = await request.get(base_url, timeout=REQUEST_TIMEOUT_MS)
                    if response.status < 500:
                        logger.info("Storybook is up at %s", base_url)
                        return
                    logger.debug("%s answered %d", base_url, response.status)
                except PlaywrightError as e:
                    logger.debug("%s not ready: %s", base_url, e)

                if time.monotonic() >= deadline:
                    raise ServerStartError(
                        f"{base_url} did not answer within {timeout_seconds:g}s"
                    )
                await asyncio.sleep(interval)
        finally:
            await request.dispose()


def _signal_group(process: asyncio.subprocess.Process, sig: signal.Signals) -> None:
    try:
        os.killpg(os.getpgid(process.pid), sig)
    except ProcessLookupError:
        logger.debug("Storybook process group %d already gone", process.pid)


async def stop_server(
    process: asyncio.subprocess.Process,
    grace_seconds: float = STOP_GRACE_SECONDS,
) -> None:
    """SIGTERM the server's process group, escalating to SIGKILL after ``grace_seconds``."""
    if process.returncode is not None:
        return
    logger.info("Stopping Storybook (pid %d)", process.pid)
    _signal_group(process, signal.SIGTERM)
    try:
        await asyncio.wait_for(process.wait(), grace_seconds)
    except asyncio.TimeoutError:
        logger.warning("Storybook ignored SIGTERM for %gs, killing it", grace_seconds)
        _signal_group(process, signal.SIGKILL)
        await process.wait()


@asynccontextmanager
async def running_server(config: VisageConfig, cwd: Path) -> AsyncIterator[None]:
    """Keep Storybook running for the duration of the block.

    Without a ``start_command`` the server is assumed to be running already
    and nothing is started or stopped.
    """
    if not config.start_args:
        yield
        return

    process = await start_server(config.start_args, cwd)
    try:
        await wait_until_ready(config.base_url, config.server_start_timeout_seconds, process)
        yield
    finally:
        await stop_server(process)
