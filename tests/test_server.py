"""Tests for starting, probing and stopping a configured Storybook server."""

import asyncio
import signal
from pathlib import Path
from unittest.mock import AsyncMock, Mock, patch

import pytest
from playwright.async_api import Error as PlaywrightError

from visage.errors import ServerStartError
from visage.models.config import VisageConfig
from visage.server import running_server, start_server, stop_server, wait_until_ready

CREATE_SUBPROCESS = "visage.server.asyncio.create_subprocess_exec"
ASYNC_PW = "visage.server.async_playwright"
KILLPG = "visage.server.os.killpg"
GETPGID = "visage.server.os.getpgid"

BASE_URL = "http://localhost:6006"


def _process(returncode=None, pid=4321) -> Mock:
    process = Mock(pid=pid, returncode=returncode)
    process.wait = AsyncMock(return_value=0)
    return process


def _patch_playwright(mock_pw_cls, request: AsyncMock) -> None:
    p = Mock()
    p.request.new_context = AsyncMock(return_value=request)
    mock_pw_cls.return_value.__aenter__ = AsyncMock(return_value=p)
    mock_pw_cls.return_value.__aexit__ = AsyncMock(return_value=False)


def _request(*responses) -> AsyncMock:
    request = AsyncMock()
    request.get = AsyncMock(side_effect=list(responses))
    return request


class TestStartServer:
    @pytest.mark.asyncio
    async def test_spawns_in_own_session(self, tmp_path: Path):
        process = _process()
        with patch(CREATE_SUBPROCESS, AsyncMock(return_value=process)) as create:
            result = await start_server(["npm", "run", "storybook"], tmp_path)

        assert result is process
        assert create.call_args.args == ("npm", "run", "storybook")
        kwargs = create.call_args.kwargs
        assert kwargs["cwd"] == str(tmp_path)
        assert kwargs["start_new_session"] is True

    @pytest.mark.asyncio
    async def test_missing_executable(self, tmp_path: Path):
        with patch(CREATE_SUBPROCESS, AsyncMock(side_effect=FileNotFoundError("npm"))):
            with pytest.raises(ServerStartError, match="Failed to start npm start"):
                await start_server(["npm", "start"], tmp_path)


class TestWaitUntilReady:
    """Tests for polling the base URL."""

    @pytest.mark.asyncio
    async def test_retries_until_server_answers(self):
        request = _request(PlaywrightError("connect ECONNREFUSED"), Mock(status=503), Mock(status=200))
        with patch(ASYNC_PW) as mock_pw_cls:
            _patch_playwright(mock_pw_cls, request)
            await wait_until_ready(BASE_URL, timeout_seconds=30, process=_process(), interval=0)

        assert request.get.await_count == 3
        assert request.get.call_args.args == (BASE_URL,)
        request.dispose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_process_exit_aborts_wait(self):
        request = _request(Mock(status=200))
        with patch(ASYNC_PW) as mock_pw_cls:
            _patch_playwright(mock_pw_cls, request)
            with pytest.raises(ServerStartError, match="exited with code 1"):
                await wait_until_ready(BASE_URL, 30, process=_process(returncode=1), interval=0)

        request.get.assert_not_called()
        request.dispose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_deadline(self):
        request = AsyncMock()
        request.get = AsyncMock(side_effect=PlaywrightError("connect ECONNREFUSED"))
        with patch(ASYNC_PW) as mock_pw_cls:
            _patch_playwright(mock_pw_cls, request)
            with pytest.raises(ServerStartError, match="did not answer within 0s"):
                await wait_until_ready(BASE_URL, timeout_seconds=0, interval=0)

        request.dispose.assert_awaited_once()


class TestStopServer:
    @pytest.mark.asyncio
    async def test_sigterm_to_process_group(self):
        process = _process()
        with patch(KILLPG) as killpg, patch(GETPGID, return_value=4321):
            await stop_server(process)

        killpg.assert_called_once_with(4321, signal.SIGTERM)
        process.wait.assert_awaited()

    @pytest.mark.asyncio
    async def test_already_exited(self):
        process = _process(returncode=0)
        with patch(KILLPG) as killpg, patch(GETPGID, return_value=4321):
            await stop_server(process)
        killpg.assert_not_called()

    @pytest.mark.asyncio
    async def test_vanished_group_is_tolerated(self):
        process = _process()
        with patch(KILLPG, side_effect=ProcessLookupError), patch(GETPGID, return_value=4321):
            await stop_server(process)
        process.wait.assert_awaited()

    @pytest.mark.asyncio
    async def test_escalates_to_sigkill(self):
        process = _process()
        calls = 0

        async def wait():
            nonlocal calls
            calls += 1
            if calls == 1:
                await asyncio.sleep(10)
            return -9

        process.wait = wait
        with patch(KILLPG) as killpg, patch(GETPGID, return_value=4321):
            await stop_server(process, grace_seconds=0.01)

        assert [c.args[1] for c in killpg.call_args_list] == [signal.SIGTERM, signal.SIGKILL]
        assert calls == 2


class TestRunningServer:
    """Tests for the start/wait/stop lifecycle around a run."""

    def _config(self, **overrides) -> VisageConfig:
        return VisageConfig(base_url=BASE_URL, **overrides)

    @pytest.mark.asyncio
    async def test_no_command_starts_nothing(self, tmp_path: Path):
        with patch("visage.server.start_server") as start:
            async with running_server(self._config(), tmp_path):
                pass
        start.assert_not_called()

    @pytest.mark.asyncio
    async def test_lifecycle(self, tmp_path: Path):
        process = _process()
        config = self._config(start_command="npm run storybook", server_start_timeout_seconds=60)
        with patch("visage.server.start_server", AsyncMock(return_value=process)) as start, \
             patch("visage.server.wait_until_ready", AsyncMock()) as ready, \
             patch("visage.server.stop_server", AsyncMock()) as stop:
            async with running_server(config, tmp_path):
                stop.assert_not_called()

        start.assert_awaited_once_with(["npm", "run", "storybook"], tmp_path)
        ready.assert_awaited_once_with(BASE_URL, 60, process)
        stop.assert_awaited_once_with(process)

    @pytest.mark.asyncio
    async def test_stopped_when_body_raises(self, tmp_path: Path):
        process = _process()
        config = self._config(start_command="npm start")
        with patch("visage.server.start_server", AsyncMock(return_value=process)), \
             patch("visage.server.wait_until_ready", AsyncMock()), \
             patch("visage.server.stop_server", AsyncMock()) as stop:
            with pytest.raises(RuntimeError):
                async with running_server(config, tmp_path):
                    raise RuntimeError("capture crashed")

        stop.assert_awaited_once_with(process)

    @pytest.mark.asyncio
    async def test_stopped_when_never_ready(self, tmp_path: Path):
        process = _process()
        config = self._config(start_command="npm start")
        body = Mock()
        with patch("visage.server.start_server", AsyncMock(return_value=process)), \
             patch("visage.server.wait_until_ready",
                   AsyncMock(side_effect=ServerStartError("never answered"))), \
             patch("visage.server.stop_server", AsyncMock()) as stop:
            with pytest.raises(ServerStartError):
                async with running_server(config, tmp_path):
                    body()

        body.assert_not_called()
        stop.assert_awaited_once_with(process)
