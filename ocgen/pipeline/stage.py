import logging
from abc import ABC, abstractmethod

from opentelemetry import trace

from ocgen.config import PipelineConfig
from ocgen.errors import ComponentPipelineError, UnexpectedStageError
from ocgen.models import PipelineStage
from ocgen.pipeline.context import PipelineContext, StageFailure, StageOutcome
from ocgen.sandbox.client import SandboxClient
from ocgen.utils.exception_logging import (
    format_exception_message,
    log_exception_with_details,
)
from ocgen.utils.tracing import traced_stage

logger = logging.getLogger("ocgen")
tracer = trace.get_tracer(__name__)


class PipelineStep(ABC):
    """
    One stage of the pipeline.

    Subclasses implement ``advance`` and raise ``ComponentPipelineError``
    subclasses from it; ``run`` turns the outcome into either the next context
    or a ``StageFailure`` value, so the runner composes stages without
    catching anything itself.
    """

    stage: PipelineStage

    def __init__(self, client: SandboxClient, config: PipelineConfig):
        self.client = client
        self.config = config

    @abstractmethod
    async def advance(self, context: PipelineContext) -> PipelineContext:
        pass  # pragma: no cover

    @property
    def _prefix(self) -> str:
        return f"[{type(self).__name__}]"

    async def run(self, context: PipelineContext) -> StageOutcome:
        await context.observer.stage_started(self.stage, context)
        with traced_stage(
            tracer,
            operation=f"pipeline.{self.stage.value}",
            sandbox_id=context.sandbox_id,
            component_name=context.component_name,
            start_message=f"{self._prefix} Starting stage {self.stage.value}",
            extra_attrs={"pipeline.stage": self.stage.value},
        ) as span:
            try:
                next_context = await self.advance(context)
            except ComponentPipelineError as exc:
                span.set_attribute("pipeline.error", exc.code)
                logger.error(f"{self._prefix} {exc.code}: {exc.message}")
                failure = StageFailure(stage=self.stage, error=exc)
            except Exception as exc:
                log_exception_with_details(logger, self._prefix, exc)
                span.set_attribute("pipeline.error", UnexpectedStageError.code)
                failure = StageFailure(
                    stage=self.stage,
                    error=UnexpectedStageError(
                        f"Unexpected error during {self.stage.value}: "
                        f"{format_exception_message(exc)}"
                    ),
                )
            else:
                span.set_attribute("pipeline.state", next_context.state.value)
                await context.observer.stage_completed(self.stage, next_context)
                return next_context

        await context.observer.stage_failed(failure)
        return failure
