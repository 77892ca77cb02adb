import logging
from typing import Optional

from ocgen.errors import PublishRejected, RegistryUnreachable
from ocgen.models import PipelineStage, PipelineState
from ocgen.pipeline.context import BuiltArtifact, PipelineContext, PublishedLocation
from ocgen.pipeline.stage import PipelineStep
from ocgen.registry.probe import RegistryProbe, build_registry_probe
from ocgen.sandbox.client import Sandbox, run_command
from ocgen.utils import trim_output

logger = logging.getLogger("ocgen")


class PublishStage(PipelineStep):
    """Publishes a built component and tells an unreachable registry apart from a rejection."""

    stage = PipelineStage.PUBLISH

    def __init__(self, client, config, probe: Optional[RegistryProbe] = None):
        super().__init__(client, config)
        self.probe = probe or build_registry_probe(config, client)

    async def publish(
        self,
        sandbox: Sandbox,
        built: BuiltArtifact,
        registry_url: str,
        component_name: str,
    ) -> PublishedLocation:
        command = f"oc publish . {registry_url}"
        result = await run_command(
            self.client,
            sandbox,
            command,
            built.directory,
            timeout=self.config.publish_timeout,
        )
        if result.ok:
            logger.info(f"[PublishStage] Published {component_name} to {registry_url}")
            return PublishedLocation(
                registry_url=registry_url,
                component_name=component_name,
                output=result.output,
            )

        check = await self.probe.probe(registry_url, sandbox=sandbox)
        output = trim_output(result.output)
        if not check.reachable:
            raise RegistryUnreachable(
                f"Registry at {registry_url} is not reachable"
                + (f": {check.error}" if check.error else ""),
                command=command,
                output=output,
            )
        raise PublishRejected(
            f"Registry at {registry_url} rejected the component "
            f"(registry answered with HTTP {check.status_code})",
            command=command,
            output=output,
        )

    async def advance(self, context: PipelineContext) -> PipelineContext:
        published = await self.publish(
            context.sandbox, context.built, context.registry_url, context.component_name
        )
        return context.advance(PipelineState.PUBLISHED, published=published)
