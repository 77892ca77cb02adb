import asyncio
from dataclasses import dataclass, field, replace
from typing import Optional, Tuple, Union

from ocgen.config import PipelineConfig
from ocgen.errors import ComponentPipelineError
from ocgen.models import (
    ComponentRequest,
    PipelineStage,
    PipelineState,
    VerificationOutcome,
)
from ocgen.naming import component_name_from_prompt
from ocgen.pipeline.event_log import EventLog
from ocgen.pipeline.observer import PipelineObserver
from ocgen.registry.urls import component_url
from ocgen.sandbox.client import Sandbox

VIEW_FILES = ("view.js", "view.jsx", "view.ts", "view.tsx")
MANIFEST_FILE = "package.json"


@dataclass(frozen=True)
class ComponentArtifact:
    directory: str
    files: Tuple[str, ...] = ()

    @property
    def view_file(self) -> Optional[str]:
        return next((name for name in VIEW_FILES if name in self.files), None)

    @property
    def has_manifest(self) -> bool:
        return MANIFEST_FILE in self.files

    @property
    def missing(self) -> Tuple[str, ...]:
        missing = []
        if self.view_file is None:
            missing.append("view.js")
        if not self.has_manifest:
            missing.append(MANIFEST_FILE)
        return tuple(missing)

    @property
    def complete(self) -> bool:
        return not self.missing


@dataclass(frozen=True)
class BuiltArtifact:
    directory: str
    output: str = ""


@dataclass(frozen=True)
class PublishedLocation:
    registry_url: str
    component_name: str
    output: str = ""

    @property
    def component_url(self) -> str:
        return component_url(self.registry_url, self.component_name)


@dataclass(frozen=True)
class PipelineContext:
    """State handed from one stage to the next during a single run."""

    request: ComponentRequest
    component_name: str
    registry_url: str
    state: PipelineState = PipelineState.PENDING
    sandbox: Optional[Sandbox] = None
    component_dir: Optional[str] = None
    artifact: Optional[ComponentArtifact] = None
    built: Optional[BuiltArtifact] = None
    published: Optional[PublishedLocation] = None
    verification: Optional[VerificationOutcome] = None
    warnings: Tuple[str, ...] = ()
    events: EventLog = field(default_factory=EventLog, compare=False)
    observer: PipelineObserver = field(default_factory=PipelineObserver, compare=False)
    cancel_token: asyncio.Event = field(default_factory=asyncio.Event, compare=False)

    @classmethod
    def start(
        cls,
        request: ComponentRequest,
        config: PipelineConfig,
        *,
        observer: Optional[PipelineObserver] = None,
        cancel_token: Optional[asyncio.Event] = None,
    ) -> "PipelineContext":
        return cls(
            request=request,
            component_name=component_name_from_prompt(request.prompt),
            registry_url=config.registry_url,
            observer=observer or PipelineObserver(),
            cancel_token=cancel_token or asyncio.Event(),
        )

    @property
    def sandbox_id(self) -> Optional[str]:
        return self.sandbox.id if self.sandbox else None

    def advance(self, state: PipelineState, **changes) -> "PipelineContext":
        return replace(self, state=state, **changes)

    def with_warning(self, warning: str) -> "PipelineContext":
        return replace(self, warnings=self.warnings + (warning,))


@dataclass(frozen=True)
class StageFailure:
    stage: PipelineStage
    error: ComponentPipelineError

    @property
    def message(self) -> str:
        return self.error.message

    @property
    def code(self) -> str:
        return self.error.code


StageOutcome = Union[PipelineContext, StageFailure]
