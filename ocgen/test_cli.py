import io
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from ocgen import cli
from ocgen.models import (
    DEFAULT_PROMPT,
    FailureDetail,
    GenerationEvent,
    PipelineResult,
    PipelineStage,
    PipelineState,
)

SANDBOX_ID = "0B6F1A52-4D3E-4C1F-9A8B-7E6D5C4B3A21"


def _success():
    return PipelineResult(
        success=True,
        state=PipelineState.COMPLETED,
        sandbox_id="sbx-1",
        component_name="create-a-button-component",
        component_directory="/home/daytona/create-a-button-component",
        component_url="http://host.docker.internal:3030/create-a-button-component",
        registry_url="http://host.docker.internal:3030/",
    )


def _failure():
    return PipelineResult(
        success=False,
        state=PipelineState.FAILED,
        sandbox_id="sbx-1",
        component_name="create-a-button-component",
        registry_url="http://host.docker.internal:3030/",
        error=FailureDetail(
            stage=PipelineStage.BUILD,
            code="build_failed",
            message="Component build failed with exit code 1",
            command="oc build .",
            output="SyntaxError",
            debug_info="/home/daytona",
        ),
    )


@pytest.fixture
def credentials(monkeypatch):
    monkeypatch.setenv("DAYTONA_API_KEY", "dtn")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant")
    monkeypatch.setattr(cli, "load_dotenv", lambda: None)


def test_parse_invocation_with_sandbox_id():
    request = cli.parse_invocation([SANDBOX_ID, "Add", "a", "dark", "variant"])

    assert request.sandbox_id == SANDBOX_ID
    assert request.prompt == "Add a dark variant"


def test_parse_invocation_prompt_only():
    request = cli.parse_invocation(["Create", "a", "button", "component"])

    assert request.sandbox_id is None
    assert request.prompt == "Create a button component"


def test_parse_invocation_defaults():
    assert cli.parse_invocation([]).prompt == DEFAULT_PROMPT
    only_id = cli.parse_invocation([SANDBOX_ID])
    assert only_id.sandbox_id == SANDBOX_ID
    assert only_id.prompt == DEFAULT_PROMPT


def test_non_uuid_first_word_is_part_of_prompt():
    request = cli.parse_invocation(["1234", "cards"])

    assert request.sandbox_id is None
    assert request.prompt == "1234 cards"


def test_render_summary_lists_urls():
    text = cli.render_summary(_success())
    url = "http://host.docker.internal:3030/create-a-button-component"

    assert f"Component URL: {url}" in text
    assert f"With parameters: {url}?param=value" in text
    assert f"As JSON: {url}?format=json" in text
    assert f"<script src='{url}'></script>" in text
    assert "oc publish . http://host.docker.internal:3030/" in text


def test_render_failure_names_stage_command_and_output():
    text = cli.render_failure(_failure())

    assert "ERROR [build] build_failed" in text
    assert "Command: oc build ." in text
    assert "SyntaxError" in text
    assert "Sandbox ID: sbx-1" in text
    assert "still running" in text


@pytest.mark.asyncio
async def test_console_observer_prints_events():
    out = io.StringIO()
    observer = cli.ConsoleObserver(out)

    await observer.stage_started(PipelineStage.BUILD, None)
    await observer.generation_event(
        GenerationEvent.tool_invocation("Write", {"file_path": "view.js"})
    )
    await observer.warning(PipelineStage.VERIFY, "not reachable")

    printed = out.getvalue()
    assert "5. Building OpenComponent..." in printed
    assert "[tool_invocation] Write view.js" in printed
    assert "not reachable" in printed


def test_main_requires_credentials(monkeypatch, capsys):
    monkeypatch.delenv("DAYTONA_API_KEY", raising=False)
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    monkeypatch.setattr(cli, "load_dotenv", lambda: None)

    assert cli.main(["Create a card"]) == 1
    assert "DAYTONA_API_KEY and ANTHROPIC_API_KEY must be set" in capsys.readouterr().err


def test_main_success_exit_code(credentials, capsys):
    pipeline = MagicMock()
    pipeline.run = AsyncMock(return_value=_success())
    pipeline.close = AsyncMock()

    with patch("ocgen.cli.ComponentPipeline", return_value=pipeline) as factory:
        code = cli.main(["--registry-url", "http://localhost:3030", "Create", "a", "button"])

    assert code == 0
    config = factory.call_args.args[0]
    assert config.registry_url == "http://localhost:3030/"
    request = pipeline.run.call_args.args[0]
    assert request.prompt == "Create a button"
    pipeline.close.assert_awaited_once()
    assert "SUCCESS!" in capsys.readouterr().out


def test_main_failure_exit_code(credentials, capsys):
    pipeline = MagicMock()
    pipeline.run = AsyncMock(return_value=_failure())
    pipeline.close = AsyncMock()

    with patch("ocgen.cli.ComponentPipeline", return_value=pipeline):
        code = cli.main(["Create a button"])

    assert code == 1
    assert "build_failed" in capsys.readouterr().out


def test_main_interrupted_exit_code(credentials, capsys):
    async def cancelled_run(request, observer, cancel_token):
        cancel_token.set()
        return _failure()

    pipeline = MagicMock()
    pipeline.run = cancelled_run
    pipeline.close = AsyncMock()

    with patch("ocgen.cli.ComponentPipeline", return_value=pipeline):
        code = cli.main(["Create a button"])

    assert code == 130
    assert "The sandbox will continue running" in capsys.readouterr().out


def test_main_json_output(credentials, capsys):
    pipeline = MagicMock()
    pipeline.run = AsyncMock(return_value=_success())
    pipeline.close = AsyncMock()

    with patch("ocgen.cli.ComponentPipeline", return_value=pipeline):
        code = cli.main(["--json", "Create a button"])

    assert code == 0
    assert '"component_name": "create-a-button-component"' in capsys.readouterr().out
