from typing import TYPE_CHECKING

from ocgen.models import GenerationEvent, PipelineStage

if TYPE_CHECKING:
    from ocgen.pipeline.context import PipelineContext, StageFailure


class PipelineObserver:
    """
    Receives progress notifications while a pipeline runs.

    The default implementation ignores everything; the CLI prints staged
    progress and the SSE route forwards notifications to the client.
    """

    async def stage_started(self, stage: PipelineStage, context: "PipelineContext") -> None:
        return None

    async def stage_completed(
        self, stage: PipelineStage, context: "PipelineContext"
    ) -> None:
        return None

    async def stage_failed(self, failure: "StageFailure") -> None:
        return None

    async def generation_event(self, event: GenerationEvent) -> None:
        return None

    async def warning(self, stage: PipelineStage, message: str) -> None:
        return None
