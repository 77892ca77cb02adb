import logging
from typing import Optional

from ocgen.models import FailureDetail, PipelineResult, PipelineState
from ocgen.pipeline.context import PipelineContext, StageFailure
from ocgen.sandbox.client import SandboxClient, run_command
from ocgen.utils import trim_output
from ocgen.utils.exception_logging import log_exception_with_details

logger = logging.getLogger("ocgen")

DEBUG_SNAPSHOT_TIMEOUT = 30


def debug_snapshot_command(component_name: str) -> str:
    return (
        f"pwd && echo '---' && ls -la && echo '---' && "
        f"ls -la {component_name} 2>/dev/null || echo 'No component dir'"
    )


class ReportBuilder:
    """
    Turns the final context of a run into a ``PipelineResult``.

    On failure it adds a best-effort listing of the sandbox so the report
    shows what was on disk when the run stopped. The sandbox itself is left
    running.
    """

    def __init__(self, client: SandboxClient):
        self.client = client

    async def finalize(
        self, context: PipelineContext, failure: Optional[StageFailure] = None
    ) -> PipelineResult:
        published = context.published
        result = PipelineResult(
            success=failure is None,
            state=PipelineState.FAILED if failure else context.state,
            sandbox_id=context.sandbox_id,
            component_name=context.component_name,
            component_directory=context.component_dir,
            component_url=published.component_url if published else None,
            registry_url=context.registry_url,
            verification=context.verification,
            event_count=len(context.events),
            warnings=list(context.warnings),
        )
        if failure is None:
            return result

        error = failure.error
        detail = FailureDetail(
            stage=failure.stage,
            code=error.code,
            message=error.message,
            command=error.command,
            output=error.output,
            debug_info=await self._debug_snapshot(context),
        )
        logger.error(
            f"[ReportBuilder] Run failed at {failure.stage.value} ({error.code}); "
            f"sandbox {context.sandbox_id or '<none>'} is still running"
        )
        return result.model_copy(update={"error": detail})

    async def _debug_snapshot(self, context: PipelineContext) -> Optional[str]:
        sandbox = context.sandbox
        if sandbox is None or not sandbox.root_dir:
            return None
        try:
            result = await run_command(
                self.client,
                sandbox,
                debug_snapshot_command(context.component_name),
                sandbox.root_dir,
                timeout=DEBUG_SNAPSHOT_TIMEOUT,
            )
        except Exception as exc:
            log_exception_with_details(logger, "[ReportBuilder] Debug snapshot", exc)
            return None
        return trim_output(result.output)

