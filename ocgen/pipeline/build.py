import logging

from ocgen.errors import BuildFailed, IncompleteArtifact
from ocgen.models import PipelineStage, PipelineState
from ocgen.pipeline.context import BuiltArtifact, ComponentArtifact, PipelineContext
from ocgen.pipeline.stage import PipelineStep
from ocgen.sandbox.client import Sandbox, run_command
from ocgen.utils import trim_output

logger = logging.getLogger("ocgen")

BUILD_COMMAND = "oc build ."
VERBOSE_BUILD_COMMAND = "oc build . --verbose"


class BuildStage(PipelineStep):
    stage = PipelineStage.BUILD

    async def build(self, sandbox: Sandbox, artifact: ComponentArtifact) -> BuiltArtifact:
        if artifact is None or not artifact.complete:
            missing = artifact.missing if artifact is not None else ("view.js", "package.json")
            raise IncompleteArtifact(
                f"Refusing to build: component is missing {', '.join(missing)}",
                missing=missing,
            )

        result = await run_command(
            self.client,
            sandbox,
            BUILD_COMMAND,
            artifact.directory,
            timeout=self.config.build_timeout,
        )
        if result.ok:
            logger.info(f"[BuildStage] Component built in {artifact.directory}")
            return BuiltArtifact(directory=artifact.directory, output=result.output)

        logger.warning(
            f"[BuildStage] Build exited with {result.exit_code}, re-running verbosely"
        )
        verbose = await run_command(
            self.client,
            sandbox,
            VERBOSE_BUILD_COMMAND,
            artifact.directory,
            timeout=self.config.build_timeout,
        )
        raise BuildFailed(
            f"Component build failed with exit code {result.exit_code}",
            command=BUILD_COMMAND,
            output=(
                f"{trim_output(result.output)}\n"
                f"--- {VERBOSE_BUILD_COMMAND} ---\n"
                f"{trim_output(verbose.output)}"
            ),
        )

    async def advance(self, context: PipelineContext) -> PipelineContext:
        built = await self.build(context.sandbox, context.artifact)
        return context.advance(PipelineState.BUILT, built=built)
