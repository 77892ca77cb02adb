import logging
from typing import Tuple

from ocgen.errors import ToolInstallFailed
from ocgen.models import PipelineStage, PipelineState
from ocgen.pipeline.context import PipelineContext
from ocgen.pipeline.stage import PipelineStep
from ocgen.sandbox.client import Sandbox, run_command
from ocgen.utils import trim_output

logger = logging.getLogger("ocgen")

# (label, command); the agent SDK is installed locally so the generation
# script can resolve it through NODE_PATH.
TOOLING_COMMANDS: Tuple[Tuple[str, str], ...] = (
    ("OpenComponents CLI", "npm install -g oc"),
    ("Claude Code SDK", "npm install @anthropic-ai/claude-code@latest"),
)


class DependencyInstaller(PipelineStep):
    stage = PipelineStage.INSTALL_TOOLING

    async def ensure_tooling(self, sandbox: Sandbox) -> None:
        for label, command in TOOLING_COMMANDS:
            result = await run_command(
                self.client,
                sandbox,
                command,
                sandbox.root_dir,
                timeout=self.config.install_timeout,
            )
            if not result.ok:
                reason = (
                    f"timed out after {self.config.install_timeout}s"
                    if result.timed_out
                    else f"exited with {result.exit_code}"
                )
                raise ToolInstallFailed(
                    f"Failed to install {label}: {reason}",
                    command=command,
                    output=trim_output(result.output),
                )
            logger.info(f"[DependencyInstaller] {label} installed")

    async def advance(self, context: PipelineContext) -> PipelineContext:
        await self.ensure_tooling(context.sandbox)
        return context.advance(PipelineState.TOOLING_READY)
