import asyncio
import logging
from typing import List, Optional

from opentelemetry import trace

from ocgen.config import PipelineConfig
from ocgen.errors import PipelineCancelled
from ocgen.models import (
    ComponentRequest,
    PipelineResult,
    PipelineStage,
    PipelineState,
    VerificationOutcome,
)
from ocgen.pipeline.build import BuildStage
from ocgen.pipeline.context import PipelineContext, StageFailure
from ocgen.pipeline.generation import GenerationDriver
from ocgen.pipeline.observer import PipelineObserver
from ocgen.pipeline.publish import PublishStage
from ocgen.pipeline.report import ReportBuilder
from ocgen.pipeline.scaffold import ComponentScaffolder
from ocgen.pipeline.session import GenerationSession
from ocgen.pipeline.stage import PipelineStep
from ocgen.pipeline.tooling import DependencyInstaller
from ocgen.pipeline.verify import VerificationStage
from ocgen.registry.probe import RegistryProbe, build_registry_probe
from ocgen.sandbox.client import SandboxClient
from ocgen.sandbox.provisioner import SandboxProvisioner

logger = logging.getLogger("ocgen")
tracer = trace.get_tracer(__name__)


def _default_client(config: PipelineConfig) -> SandboxClient:
    # Imported here so the pipeline can be used with other providers without
    # loading the Daytona SDK.
    from ocgen.sandbox.daytona_client import DaytonaSandboxClient

    return DaytonaSandboxClient(config)


class ComponentPipeline:
    """
    Runs provision, tooling, scaffold, generate, build, publish and verify in order.

    Each stage returns the next context or a ``StageFailure``; the first
    failure ends the run, except a failed verification which is only recorded
    as a warning. Sandboxes are never torn down by the pipeline.
    """

    def __init__(
        self,
        config: PipelineConfig,
        client: Optional[SandboxClient] = None,
        session: Optional[GenerationSession] = None,
        probe: Optional[RegistryProbe] = None,
    ):
        self.config = config
        self.client = client or _default_client(config)
        probe = probe or build_registry_probe(config, self.client)
        self.steps: List[PipelineStep] = [
            SandboxProvisioner(self.client, config),
            DependencyInstaller(self.client, config),
            ComponentScaffolder(self.client, config),
            GenerationDriver(self.client, config, session=session),
            BuildStage(self.client, config),
            PublishStage(self.client, config, probe=probe),
            VerificationStage(self.client, config, probe=probe),
        ]
        self.reporter = ReportBuilder(self.client)

    async def run(
        self,
        request: ComponentRequest,
        *,
        observer: Optional[PipelineObserver] = None,
        cancel_token: Optional[asyncio.Event] = None,
    ) -> PipelineResult:
        context = PipelineContext.start(
            request, self.config, observer=observer, cancel_token=cancel_token
        )
        logger.info(
            f"[ComponentPipeline] Starting run for component {context.component_name} "
            f"(sandbox: {request.sandbox_id or 'new'})"
        )
        with tracer.start_as_current_span("pipeline.run") as span:
            span.set_attribute("component.name", context.component_name)
            failure: Optional[StageFailure] = None
            for step in self.steps:
                if context.cancel_token.is_set() and step.stage == PipelineStage.VERIFY:
                    # Publishing already happened; a late cancel only skips the check
                    context = self._verification_skipped(
                        context, "run was cancelled after publishing"
                    )
                    await context.observer.warning(step.stage, context.warnings[-1])
                    break
                if context.cancel_token.is_set():
                    failure = StageFailure(
                        stage=step.stage,
                        error=PipelineCancelled(
                            f"Run cancelled before {step.stage.value}"
                        ),
                    )
                    await context.observer.stage_failed(failure)
                    break

                outcome = await step.run(context)
                if not isinstance(outcome, StageFailure):
                    context = outcome
                    continue
                if outcome.stage == PipelineStage.VERIFY:
                    context = self._verification_skipped(context, outcome.message)
                    await context.observer.warning(outcome.stage, outcome.message)
                    continue
                failure = outcome
                break

            result = await self.reporter.finalize(context, failure)
            span.set_attribute("pipeline.success", result.success)
            if context.sandbox_id:
                span.set_attribute("sandbox.id", context.sandbox_id)

        if result.success:
            logger.info(
                f"[ComponentPipeline] Component {result.component_name} published at {result.component_url}"
            )
        return result

    @staticmethod
    def _verification_skipped(
        context: PipelineContext, reason: str
    ) -> PipelineContext:
        warning = f"Verification could not run: {reason}"
        logger.warning(f"[ComponentPipeline] {warning}")
        url = context.published.component_url if context.published else ""
        return context.advance(
            PipelineState.COMPLETED,
            verification=VerificationOutcome(url=url, reachable=False, warning=warning),
        ).with_warning(warning)

    async def close(self) -> None:
        await self.client.close()
