import logging
import posixpath

from ocgen.errors import ScaffoldFailed
from ocgen.models import PipelineStage, PipelineState
from ocgen.pipeline.context import PipelineContext
from ocgen.pipeline.stage import PipelineStep
from ocgen.sandbox.client import Sandbox, run_command
from ocgen.utils import trim_output

logger = logging.getLogger("ocgen")


class ComponentScaffolder(PipelineStep):
    """Creates the component skeleton with ``oc init`` under the sandbox root."""

    stage = PipelineStage.SCAFFOLD

    async def scaffold(self, sandbox: Sandbox, component_name: str) -> str:
        command = f"oc init {component_name}"
        result = await run_command(
            self.client,
            sandbox,
            command,
            sandbox.root_dir,
            timeout=self.config.scaffold_timeout,
        )
        if not result.ok:
            raise ScaffoldFailed(
                f"Failed to initialize component {component_name}",
                command=command,
                output=trim_output(result.output),
            )
        directory = posixpath.join(sandbox.root_dir, component_name)
        logger.info(f"[ComponentScaffolder] Component scaffolded: {directory}")
        return directory

    async def advance(self, context: PipelineContext) -> PipelineContext:
        directory = await self.scaffold(context.sandbox, context.component_name)
        return context.advance(PipelineState.SCAFFOLDED, component_dir=directory)
