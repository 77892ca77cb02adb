import pytest

from ocgen.errors import ToolInstallFailed
from ocgen.models import PipelineStage, PipelineState
from ocgen.pipeline.context import StageFailure
from ocgen.pipeline.tooling import DependencyInstaller
from ocgen.utils_tests.contexts import make_context


@pytest.mark.asyncio
async def test_installs_cli_and_sdk_in_root_dir(fake_client, pipeline_config):
    context = make_context(pipeline_config, state=PipelineState.CREATED)

    outcome = await DependencyInstaller(fake_client, pipeline_config).run(context)

    assert outcome.state == PipelineState.TOOLING_READY
    assert [c.command for c in fake_client.commands] == [
        "npm install -g oc",
        "npm install @anthropic-ai/claude-code@latest",
    ]
    assert all(c.cwd == "/home/daytona" for c in fake_client.commands)
    assert all(c.timeout == pipeline_config.install_timeout for c in fake_client.commands)


@pytest.mark.asyncio
async def test_failed_install_captures_command_and_output(fake_client, pipeline_config):
    fake_client.on("npm install -g oc", exit_code=1, output="npm ERR! network")
    context = make_context(pipeline_config, state=PipelineState.CREATED)

    with pytest.raises(ToolInstallFailed) as exc_info:
        await DependencyInstaller(fake_client, pipeline_config).ensure_tooling(
            context.sandbox
        )

    assert exc_info.value.command == "npm install -g oc"
    assert "npm ERR! network" in exc_info.value.output
    assert not fake_client.ran("claude-code")


@pytest.mark.asyncio
async def test_install_timeout_is_a_stage_failure(fake_client, pipeline_config):
    fake_client.on("claude-code", delay=1)
    config = pipeline_config.with_overrides(install_timeout=0.05)
    context = make_context(config, state=PipelineState.CREATED)

    outcome = await DependencyInstaller(fake_client, config).run(context)

    assert isinstance(outcome, StageFailure)
    assert outcome.stage == PipelineStage.INSTALL_TOOLING
    assert outcome.code == "tool_install_failed"
    assert "timed out" in outcome.message
