import asyncio
import logging
import posixpath
from typing import AsyncIterator, Awaitable, Callable, Optional

from ocgen.errors import (
    GenerationCancelled,
    GenerationTimeout,
    IncompleteArtifact,
)
from ocgen.models import GenerationEvent, GenerationEventType, PipelineStage, PipelineState
from ocgen.pipeline.context import ComponentArtifact, PipelineContext
from ocgen.pipeline.event_log import EventLog
from ocgen.pipeline.instructions import ALLOWED_TOOLS, build_instruction
from ocgen.pipeline.session import (
    GenerationRequest,
    GenerationSession,
    SandboxGenerationSession,
)
from ocgen.pipeline.stage import PipelineStep
from ocgen.sandbox.client import Sandbox, run_command

logger = logging.getLogger("ocgen")

EventCallback = Callable[[GenerationEvent], Awaitable[None]]

MAX_TURNS_SUBTYPE = "error_max_turns"


class GenerationDriver(PipelineStep):
    """
    Drives the coding agent over the scaffolded component.

    The session's event stream is consumed by a single reader that races
    every ``__anext__`` against the cancellation token, so a raised token stops
    consumption without waiting for the agent's next message. Files the agent
    already wrote are left in place on cancellation and on timeout.
    """

    stage = PipelineStage.GENERATE

    def __init__(self, client, config, session: Optional[GenerationSession] = None):
        super().__init__(client, config)
        self.session = session or SandboxGenerationSession(client)

    def build_request(self, sandbox: Sandbox, directory: str, prompt: str) -> GenerationRequest:
        env = {"NODE_PATH": posixpath.join(sandbox.root_dir, "node_modules")}
        if self.config.anthropic_api_key:
            env["ANTHROPIC_API_KEY"] = self.config.anthropic_api_key
        return GenerationRequest(
            prompt=build_instruction(prompt),
            allowed_tools=ALLOWED_TOOLS,
            max_turns=self.config.max_turns,
            working_dir=directory,
            env=env,
            timeout=self.config.generation_timeout,
        )

    async def generate(
        self,
        sandbox: Sandbox,
        directory: str,
        prompt: str,
        *,
        events: EventLog,
        cancel_token: asyncio.Event,
        on_event: Optional[EventCallback] = None,
    ) -> ComponentArtifact:
        request = self.build_request(sandbox, directory, prompt)
        logger.info(
            f"[GenerationDriver] Running agent in {directory} "
            f"(max {request.max_turns} turns, timeout {self.config.generation_timeout}s)"
        )
        try:
            await asyncio.wait_for(
                self._consume(
                    self.session.stream(sandbox, request), events, cancel_token, on_event
                ),
                timeout=self.config.generation_timeout,
            )
        except asyncio.TimeoutError as exc:
            raise GenerationTimeout(
                f"Generation did not finish within {self.config.generation_timeout} seconds; "
                f"partial files are kept in {directory}",
                command="node generate-component.js",
            ) from exc
        logger.info(f"[GenerationDriver] Session finished after {len(events)} events")
        return await self.inspect(sandbox, directory)

    async def _consume(
        self,
        stream: AsyncIterator[GenerationEvent],
        events: EventLog,
        cancel_token: asyncio.Event,
        on_event: Optional[EventCallback],
    ) -> None:
        cancelled = asyncio.ensure_future(cancel_token.wait())
        pending: Optional[asyncio.Future] = None
        try:
            while True:
                if cancel_token.is_set():
                    raise GenerationCancelled(
                        f"Generation cancelled after {len(events)} events"
                    )
                pending = asyncio.ensure_future(stream.__anext__())
                done, _ = await asyncio.wait(
                    {pending, cancelled}, return_when=asyncio.FIRST_COMPLETED
                )
                if pending not in done:
                    continue
                next_event, pending = pending, None
                try:
                    event = next_event.result()
                except StopAsyncIteration:
                    return
                stamped = events.append(event)
                if on_event is not None:
                    await on_event(stamped)
        finally:
            cancelled.cancel()
            if pending is not None:
                pending.cancel()
                await asyncio.wait({pending})
                if not pending.cancelled() and pending.exception() is not None:
                    logger.debug(
                        f"[GenerationDriver] Stream error after abort: {pending.exception()}"
                    )
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

    async def inspect(self, sandbox: Sandbox, directory: str) -> ComponentArtifact:
        result = await run_command(
            self.client, sandbox, "ls -1A", directory, timeout=self.config.probe_timeout
        )
        if not result.ok:
            logger.warning(
                f"[GenerationDriver] Could not list {directory}: {result.output}"
            )
            return ComponentArtifact(directory=directory)
        files = tuple(line.strip() for line in result.output.splitlines() if line.strip())
        return ComponentArtifact(directory=directory, files=files)

    @staticmethod
    def turn_budget_exhausted(events: EventLog) -> bool:
        return any(
            event.type == GenerationEventType.TOOL_RESULT
            and event.payload.get("final")
            and event.payload.get("subtype") == MAX_TURNS_SUBTYPE
            for event in events
        )

    async def advance(self, context: PipelineContext) -> PipelineContext:
        sandbox = context.sandbox
        if self.config.event_log_dir:
            context.events.attach_file(
                self.config.event_log_dir, f"{sandbox.id}-{context.component_name}.jsonl"
            )

        try:
            artifact = await self.generate(
                sandbox,
                context.component_dir,
                context.request.prompt,
                events=context.events,
                cancel_token=context.cancel_token,
                on_event=context.observer.generation_event,
            )
        finally:
            context.events.close()
        next_context = context.advance(PipelineState.GENERATED, artifact=artifact)

        if self.turn_budget_exhausted(context.events):
            message = f"Agent stopped at the turn budget of {self.config.max_turns}"
            logger.warning(f"[GenerationDriver] {message}")
            next_context = next_context.with_warning(message)
            await context.observer.warning(self.stage, message)

        if not artifact.complete:
            message = (
                f"Component in {artifact.directory} is missing "
                f"{', '.join(artifact.missing)}"
            )
            if self.config.fail_on_incomplete_artifact:
                raise IncompleteArtifact(message, missing=artifact.missing)
            logger.warning(f"[GenerationDriver] {message}")
            next_context = next_context.with_warning(message)
            await context.observer.warning(self.stage, message)
        return next_context
