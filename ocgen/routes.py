import logging
from contextlib import contextmanager
from functools import lru_cache
from typing import AsyncGenerator, Optional, Set

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from opentelemetry import trace
from pydantic import BaseModel

from ocgen.config import PipelineConfig
from ocgen.errors import ConfigurationError
from ocgen.models import ComponentRequest
from ocgen.pipeline.runner import ComponentPipeline
from ocgen.sse.streaming import create_sse_response, stream_pipeline_run
from ocgen.utils.exception_logging import log_exception_with_details
from ocgen.vars import API_BASE_PATH

router = APIRouter()

logger = logging.getLogger("ocgen")

tracer = trace.get_tracer(__name__)

if API_BASE_PATH:
    router.prefix = API_BASE_PATH
    logger.info(f"Using API_BASE_PATH: {API_BASE_PATH}")

# Sandbox ids with a run in flight; a second run against the same sandbox is refused
_active_sandboxes: Set[str] = set()


class ComponentCreateRequest(BaseModel):
    prompt: Optional[str] = None
    sandbox_id: Optional[str] = None

    def to_request(self) -> ComponentRequest:
        return ComponentRequest.from_input(self.prompt, self.sandbox_id)


@lru_cache(maxsize=1)
def get_pipeline() -> ComponentPipeline:
    config = PipelineConfig.from_env().validate()
    logger.info(f"[Components] Pipeline configured: {config.describe()}")
    return ComponentPipeline(config)


def _pipeline_dependency() -> ComponentPipeline:
    try:
        return get_pipeline()
    except ConfigurationError as e:
        logger.error(f"[Components] Pipeline is not configured: {e.message}")
        raise HTTPException(status_code=500, detail=e.message)


def _claim_sandbox(sandbox_id: Optional[str]) -> None:
    if not sandbox_id:
        return
    if sandbox_id in _active_sandboxes:
        raise HTTPException(
            status_code=409,
            detail=f"Sandbox {sandbox_id} already has an active run",
        )
    _active_sandboxes.add(sandbox_id)


def _release_sandbox(sandbox_id: Optional[str]) -> None:
    if sandbox_id:
        _active_sandboxes.discard(sandbox_id)


@contextmanager
def _sandbox_claim(sandbox_id: Optional[str]):
    _claim_sandbox(sandbox_id)
    try:
        yield
    finally:
        _release_sandbox(sandbox_id)


@router.get("/health")
async def health():
    return {"status": "ok"}


@router.post("/components")
async def create_component(
    body: ComponentCreateRequest,
    pipeline: ComponentPipeline = Depends(_pipeline_dependency),
):
    request = body.to_request()
    with _sandbox_claim(request.sandbox_id):
        with tracer.start_as_current_span("create_component") as span:
            span.set_attribute("sandbox.requested", request.sandbox_id or "new")
            try:
                result = await pipeline.run(request)
            except Exception as e:
                log_exception_with_details(logger, "[Components]", e)
                raise HTTPException(status_code=500, detail="Internal server error")
            span.set_attribute("pipeline.success", result.success)
    return JSONResponse(
        status_code=200 if result.success else 502,
        content=result.model_dump(mode="json"),
    )


@router.post("/components/stream")
async def create_component_stream(
    body: ComponentCreateRequest,
    pipeline: ComponentPipeline = Depends(_pipeline_dependency),
):
    request = body.to_request()
    # Held from here until the event stream ends
    _claim_sandbox(request.sandbox_id)

    async def events() -> AsyncGenerator[str, None]:
        try:
            async for chunk in stream_pipeline_run(pipeline.run, request):
                yield chunk
        finally:
            _release_sandbox(request.sandbox_id)

    logger.info(
        f"[Components] Streaming run for sandbox {request.sandbox_id or 'new'}"
    )
    return create_sse_response(events())
