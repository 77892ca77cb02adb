"""
SSE streaming of pipeline runs.

A run executes in a background task while a ``QueueObserver`` turns its
notifications into events that are sent to the client as they happen.

Event Types:
    - progress: a stage started or completed (progress = stage number, total = stage count)
    - log: a generation event from the agent, or a warning
    - result: the final ``PipelineResult``, for successful and failed runs alike
    - error: the run itself crashed before producing a result

SSE Format:
    data: {"type": "progress", "progress": 4, "total": 7, "message": "generate started"}

    data: {"type": "result", "data": {"success": true, "component_name": "..."}}

When the client disconnects, the run's cancellation token is raised and the
background task is cancelled. The sandbox keeps running.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncGenerator, Awaitable, Callable, Optional

from fastapi.responses import StreamingResponse

from ocgen.models import (
    ComponentRequest,
    GenerationEvent,
    PipelineResult,
    PipelineStage,
)
from ocgen.pipeline.context import PipelineContext, StageFailure
from ocgen.pipeline.observer import PipelineObserver

logger = logging.getLogger("ocgen")

STAGE_ORDER = list(PipelineStage)

RunFunc = Callable[..., Awaitable[PipelineResult]]


class SSEEventType(str, Enum):
    PROGRESS = "progress"
    LOG = "log"
    RESULT = "result"
    ERROR = "error"


@dataclass
class SSEEvent:
    """
    Represents a Server-Sent Event for streaming to clients.

    Attributes:
        type: The type of event (progress, log, result, error)
        progress: Stage number (for progress events)
        total: Number of stages (for progress events)
        message: Human-readable message (for progress events, optional)
        level: Log level (for log events)
        data: Event payload data (for log, result, and error events)
        logger_name: Source of a log event ("agent" or "pipeline")
    """

    type: SSEEventType
    progress: Optional[float] = None
    total: Optional[float] = None
    message: Optional[str] = None
    level: Optional[str] = None
    data: Optional[Any] = None
    logger_name: Optional[str] = None

    def to_sse_string(self) -> str:
        """Convert the event to SSE wire format."""
        event_dict = {"type": self.type.value}
        for key in ("progress", "total", "message", "level", "data", "logger_name"):
            value = getattr(self, key)
            if value is not None:
                event_dict[key] = value
        return f"data: {json.dumps(event_dict)}\n\n"

    @classmethod
    def progress_event(
        cls,
        progress: float,
        total: Optional[float] = None,
        message: Optional[str] = None,
    ) -> "SSEEvent":
        return cls(
            type=SSEEventType.PROGRESS,
            progress=progress,
            total=total,
            message=message,
        )

    @classmethod
    def log_event(
        cls,
        level: str,
        data: Any,
        logger_name: Optional[str] = None,
    ) -> "SSEEvent":
        return cls(
            type=SSEEventType.LOG,
            level=level,
            data=data,
            logger_name=logger_name,
        )

    @classmethod
    def result_event(cls, data: Any) -> "SSEEvent":
        return cls(type=SSEEventType.RESULT, data=data)

    @classmethod
    def error_event(cls, message: str, details: Optional[Any] = None) -> "SSEEvent":
        error_data = {"message": message}
        if details is not None:
            error_data["details"] = details
        return cls(type=SSEEventType.ERROR, data=error_data)


class QueueObserver(PipelineObserver):
    """Pushes pipeline notifications onto a queue as SSE events."""

    def __init__(self, event_queue: asyncio.Queue):
        self.event_queue = event_queue

    @staticmethod
    def _position(stage: PipelineStage) -> int:
        return STAGE_ORDER.index(stage) + 1

    async def stage_started(self, stage: PipelineStage, context: PipelineContext) -> None:
        await self.event_queue.put(
            SSEEvent.progress_event(
                self._position(stage) - 1, len(STAGE_ORDER), f"{stage.value} started"
            )
        )

    async def stage_completed(
        self, stage: PipelineStage, context: PipelineContext
    ) -> None:
        await self.event_queue.put(
            SSEEvent.progress_event(
                self._position(stage), len(STAGE_ORDER), f"{stage.value} completed"
            )
        )

    async def stage_failed(self, failure: StageFailure) -> None:
        await self.event_queue.put(
            SSEEvent.log_event(
                "error",
                {"stage": failure.stage.value, "code": failure.code, "message": failure.message},
                "pipeline",
            )
        )

    async def generation_event(self, event: GenerationEvent) -> None:
        await self.event_queue.put(
            SSEEvent.log_event("info", event.model_dump(mode="json"), "agent")
        )

    async def warning(self, stage: PipelineStage, message: str) -> None:
        await self.event_queue.put(
            SSEEvent.log_event("warning", {"stage": stage.value, "message": message}, "pipeline")
        )


async def stream_pipeline_run(
    run_func: RunFunc,
    request: ComponentRequest,
) -> AsyncGenerator[str, None]:
    """
    Run the pipeline and stream its progress as SSE strings.

    Args:
        run_func: ``ComponentPipeline.run`` or a compatible callable accepting
                  ``(request, observer=..., cancel_token=...)``
        request: The component request to run

    Yields:
        SSE-formatted strings for each event
    """
    event_queue: asyncio.Queue[Optional[SSEEvent]] = asyncio.Queue()
    observer = QueueObserver(event_queue)
    cancel_token = asyncio.Event()

    async def run_pipeline() -> None:
        try:
            result = await run_func(
                request, observer=observer, cancel_token=cancel_token
            )
            await event_queue.put(SSEEvent.result_event(result.model_dump(mode="json")))
        except Exception as e:
            logger.exception(f"[SSE] Pipeline run crashed: {e}")
            await event_queue.put(SSEEvent.error_event(str(e)))
        finally:
            await event_queue.put(None)

    task = asyncio.create_task(run_pipeline())

    try:
        while True:
            event = await event_queue.get()
            if event is None:
                break
            yield event.to_sse_string()
    finally:
        if not task.done():
            # Client went away
            logger.info("[SSE] Client disconnected, cancelling pipeline run")
            cancel_token.set()
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass


def create_sse_response(
    event_generator: AsyncGenerator[str, None],
) -> StreamingResponse:
    """Create a FastAPI StreamingResponse for SSE."""
    return StreamingResponse(
        event_generator,
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable buffering in nginx
        },
    )
