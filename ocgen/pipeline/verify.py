import logging
from typing import Optional

from ocgen.errors import VerificationWarning
from ocgen.models import PipelineStage, PipelineState, VerificationOutcome
from ocgen.pipeline.context import PipelineContext, PublishedLocation
from ocgen.pipeline.stage import PipelineStep
from ocgen.registry.probe import RegistryProbe, build_registry_probe
from ocgen.sandbox.client import Sandbox

logger = logging.getLogger("ocgen")


class VerificationStage(PipelineStep):
    """
    Best-effort check that the published component is served.

    Never fails the run: an unreachable or erroring component URL is recorded
    as a warning on the result.
    """

    stage = PipelineStage.VERIFY

    def __init__(self, client, config, probe: Optional[RegistryProbe] = None):
        super().__init__(client, config)
        self.probe = probe or build_registry_probe(config, client)

    async def verify(
        self, sandbox: Sandbox, published: PublishedLocation
    ) -> VerificationOutcome:
        url = published.component_url
        check = await self.probe.probe(url, sandbox=sandbox, accept_json=True)
        if check.ok:
            logger.info(f"[VerificationStage] {url} answered with {check.status_code}")
            return VerificationOutcome(
                url=url, reachable=True, status_code=check.status_code
            )

        if check.reachable:
            detail = f"HTTP {check.status_code}"
        else:
            detail = check.error or "no response"
        warning = VerificationWarning(f"Component not accessible at {url}: {detail}")
        logger.warning(f"[VerificationStage] {warning.code}: {warning.message}")
        return VerificationOutcome(
            url=url,
            reachable=check.reachable,
            status_code=check.status_code,
            detail=detail,
            warning=warning.message,
        )

    async def advance(self, context: PipelineContext) -> PipelineContext:
        outcome = await self.verify(context.sandbox, context.published)
        next_context = context.advance(PipelineState.COMPLETED, verification=outcome)
        if outcome.warning:
            next_context = next_context.with_warning(outcome.warning)
            await context.observer.warning(self.stage, outcome.warning)
        return next_context
