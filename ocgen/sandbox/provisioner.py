import logging
from typing import Optional

from ocgen.errors import SandboxCreateFailed, SandboxNotFound
from ocgen.models import PipelineStage, PipelineState
from ocgen.pipeline.context import PipelineContext
from ocgen.pipeline.stage import PipelineStep
from ocgen.sandbox.client import Sandbox, SandboxProviderError

logger = logging.getLogger("ocgen")


class SandboxProvisioner(PipelineStep):
    """Acquires the sandbox a run works in: a new one, or an existing one by id.

    Sandboxes are never destroyed here or anywhere else in the pipeline; a
    failed run leaves its sandbox running for inspection.
    """

    stage = PipelineStage.PROVISION

    async def acquire(self, existing_id: Optional[str] = None) -> Sandbox:
        if existing_id:
            sandbox = await self._find(existing_id)
            logger.info(f"[SandboxProvisioner] Reattached to sandbox {sandbox.id}")
        else:
            try:
                sandbox = await self.client.create(
                    self.config.sandbox_image, public=self.config.sandbox_public
                )
            except SandboxProviderError as exc:
                raise SandboxCreateFailed(
                    f"Could not create sandbox from image {self.config.sandbox_image}: {exc}"
                ) from exc
            logger.info(f"[SandboxProvisioner] Created sandbox {sandbox.id}")

        try:
            sandbox.root_dir = await self.client.root_dir(sandbox)
        except SandboxProviderError as exc:
            raise SandboxCreateFailed(
                f"Sandbox {sandbox.id} is not usable: {exc}"
            ) from exc
        logger.info(f"[SandboxProvisioner] Working directory: {sandbox.root_dir}")
        return sandbox

    async def _find(self, sandbox_id: str) -> Sandbox:
        try:
            known = await self.client.list()
        except SandboxProviderError as exc:
            raise SandboxNotFound(
                f"Sandbox {sandbox_id} could not be looked up: {exc}"
            ) from exc
        for sandbox in known:
            if sandbox.id == sandbox_id:
                return sandbox
        raise SandboxNotFound(f"Sandbox {sandbox_id} not found")

    async def advance(self, context: PipelineContext) -> PipelineContext:
        sandbox = await self.acquire(context.request.sandbox_id)
        return context.advance(PipelineState.CREATED, sandbox=sandbox)
