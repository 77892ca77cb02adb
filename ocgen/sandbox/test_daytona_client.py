import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from daytona import DaytonaError

from ocgen.sandbox.client import Sandbox, SandboxProviderError
from ocgen.sandbox.daytona_client import DaytonaSandboxClient, session_command


def _remote(sandbox_id, state="started"):
    remote = MagicMock()
    remote.id = sandbox_id
    remote.state = SimpleNamespace(value=state)
    return remote


@pytest.fixture
def daytona():
    with patch("ocgen.sandbox.daytona_client.AsyncDaytona") as factory, patch(
        "ocgen.sandbox.daytona_client.DaytonaConfig"
    ) as config_cls:
        instance = factory.return_value
        instance.create = AsyncMock()
        instance.close = AsyncMock()
        instance.config_cls = config_cls
        yield instance


@pytest.fixture
def client(daytona, pipeline_config):
    return DaytonaSandboxClient(pipeline_config)


def _sandbox(process=None):
    handle = MagicMock()
    handle.process = process or MagicMock()
    return Sandbox(id="sbx-1", root_dir="/home/daytona", handle=handle)


def _session_process(emit):
    process = MagicMock()
    process.create_session = AsyncMock()
    process.execute_session_command = AsyncMock(
        return_value=SimpleNamespace(cmd_id="cmd-1")
    )
    process.delete_session = AsyncMock()
    process.get_session_command_logs_async = emit
    return process


@pytest.mark.asyncio
async def test_list_iterates_the_sdk_generator(client, daytona):
    async def remotes():
        yield _remote("a")
        yield _remote("b", state="stopped")

    daytona.list = MagicMock(return_value=remotes())

    sandboxes = await client.list()

    assert [s.id for s in sandboxes] == ["a", "b"]
    assert [s.state for s in sandboxes] == ["started", "stopped"]
    assert daytona.config_cls.call_args.kwargs["api_key"] == "dtn_test_key"


@pytest.mark.asyncio
async def test_list_error_becomes_provider_error(client, daytona):
    async def remotes():
        yield _remote("a")
        raise DaytonaError("page fetch failed", status_code=503)

    daytona.list = MagicMock(return_value=remotes())

    with pytest.raises(SandboxProviderError, match="page fetch failed"):
        await client.list()


@pytest.mark.asyncio
async def test_create_uses_image_and_public_flag(client, daytona):
    daytona.create.return_value = _remote("new")

    sandbox = await client.create("node:20", public=True)

    params = daytona.create.call_args.args[0]
    assert params.image == "node:20"
    assert params.public is True
    assert sandbox.id == "new"


@pytest.mark.asyncio
async def test_create_error_becomes_provider_error(client, daytona):
    daytona.create.side_effect = DaytonaError("quota exceeded")

    with pytest.raises(SandboxProviderError, match="quota exceeded"):
        await client.create("node:20")


@pytest.mark.asyncio
async def test_root_dir(client):
    sandbox = _sandbox()
    sandbox.handle.get_user_root_dir = AsyncMock(return_value="/home/daytona")

    assert await client.root_dir(sandbox) == "/home/daytona"

    sandbox.handle.get_user_root_dir.side_effect = DaytonaError("stopped")
    with pytest.raises(SandboxProviderError):
        await client.root_dir(sandbox)


@pytest.mark.asyncio
async def test_execute_command_rounds_timeout_up(client):
    sandbox = _sandbox()
    sandbox.handle.process.exec = AsyncMock(
        return_value=SimpleNamespace(exit_code=2, result=None)
    )

    result = await client.execute_command(
        sandbox, "oc build .", "/home/daytona/card", env={"A": "1"}, timeout=2.5
    )

    assert (result.exit_code, result.output) == (2, "")
    sandbox.handle.process.exec.assert_awaited_once_with(
        "oc build .", cwd="/home/daytona/card", env={"A": "1"}, timeout=3
    )

    await client.execute_command(sandbox, "ls", "/home/daytona")
    assert sandbox.handle.process.exec.call_args.kwargs["timeout"] is None


@pytest.mark.asyncio
async def test_execute_command_error_becomes_provider_error(client):
    sandbox = _sandbox()
    sandbox.handle.process.exec = AsyncMock(side_effect=DaytonaError("toolbox down"))

    with pytest.raises(SandboxProviderError, match="toolbox down"):
        await client.execute_command(sandbox, "ls", "/home/daytona")


def test_session_command_folds_cwd_and_env():
    assert session_command("node gen.js", "/home/daytona/my card", {"KEY": "a b"}) == (
        "cd '/home/daytona/my card' && export KEY='a b' && node gen.js"
    )


@pytest.mark.asyncio
async def test_stream_command_yields_lines_as_chunks_arrive(client):
    async def emit(session_id, command_id, on_stdout, on_stderr):
        on_stdout("line one\nline ")
        on_stdout("two\n")
        on_stderr("tail")

    process = _session_process(emit)
    sandbox = _sandbox(process)

    lines = [
        line
        async for line in client.stream_command(
            sandbox, "node gen.js", "/home/daytona/card", env={"ANTHROPIC_API_KEY": "sk"}
        )
    ]

    assert lines == ["line one", "line two", "tail"]
    session_id, request = process.execute_session_command.call_args.args
    assert request.run_async is True
    assert request.command == (
        "cd /home/daytona/card && export ANTHROPIC_API_KEY=sk && node gen.js"
    )
    process.create_session.assert_awaited_once_with(session_id)
    process.delete_session.assert_awaited_once_with(session_id)


@pytest.mark.asyncio
async def test_closing_the_stream_deletes_the_session(client):
    followed = {}

    async def emit(session_id, command_id, on_stdout, on_stderr):
        on_stdout("first event\n")
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            followed["cancelled"] = True
            raise

    process = _session_process(emit)
    stream = client.stream_command(_sandbox(process), "node gen.js", "/home/daytona/card")

    assert await stream.__anext__() == "first event"
    await stream.aclose()

    assert followed["cancelled"] is True
    process.delete_session.assert_awaited_once()


@pytest.mark.asyncio
async def test_stream_start_failure_becomes_provider_error(client):
    async def emit(session_id, command_id, on_stdout, on_stderr):
        return None

    process = _session_process(emit)
    process.execute_session_command.side_effect = DaytonaError("no toolbox")

    with pytest.raises(SandboxProviderError, match="no toolbox"):
        async for _ in client.stream_command(_sandbox(process), "node gen.js", "/tmp"):
            pass
    process.delete_session.assert_awaited_once()


@pytest.mark.asyncio
async def test_lost_log_stream_becomes_provider_error(client):
    async def emit(session_id, command_id, on_stdout, on_stderr):
        on_stdout("partial\n")
        raise DaytonaError("websocket closed")

    process = _session_process(emit)
    received = []

    with pytest.raises(SandboxProviderError, match="websocket closed"):
        async for line in client.stream_command(_sandbox(process), "node gen.js", "/tmp"):
            received.append(line)

    assert received == ["partial"]
    process.delete_session.assert_awaited_once()


@pytest.mark.asyncio
async def test_close_releases_sdk_client(client, daytona):
    daytona.list = MagicMock(return_value=_empty())
    await client.list()

    await client.close()

    daytona.close.assert_awaited_once()


async def _empty():
    return
    yield
