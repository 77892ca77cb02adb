from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_PROMPT = (
    "Create a beautiful, modern button component with multiple variants "
    "(primary, secondary, outline) and different sizes. Include hover effects "
    "and proper accessibility features."
)


class PipelineStage(str, Enum):
    PROVISION = "provision"
    INSTALL_TOOLING = "install_tooling"
    SCAFFOLD = "scaffold"
    GENERATE = "generate"
    BUILD = "build"
    PUBLISH = "publish"
    VERIFY = "verify"


class PipelineState(str, Enum):
    PENDING = "pending"
    CREATED = "created"
    TOOLING_READY = "tooling_ready"
    SCAFFOLDED = "scaffolded"
    GENERATED = "generated"
    BUILT = "built"
    PUBLISHED = "published"
    COMPLETED = "completed"
    FAILED = "failed"


class ComponentRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    prompt: str = DEFAULT_PROMPT
    sandbox_id: Optional[str] = None

    @classmethod
    def from_input(
        cls, prompt: Optional[str], sandbox_id: Optional[str] = None
    ) -> "ComponentRequest":
        prompt = (prompt or "").strip()
        return cls(prompt=prompt or DEFAULT_PROMPT, sandbox_id=sandbox_id or None)


class GenerationEventType(str, Enum):
    ASSISTANT_TEXT = "assistant_text"
    TOOL_INVOCATION = "tool_invocation"
    TOOL_RESULT = "tool_result"


class GenerationEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: GenerationEventType
    payload: Dict[str, Any] = Field(default_factory=dict)
    sequence: int = 0
    received_at: Optional[datetime] = None

    @classmethod
    def assistant_text(cls, text: str) -> "GenerationEvent":
        return cls(type=GenerationEventType.ASSISTANT_TEXT, payload={"text": text})

    @classmethod
    def tool_invocation(
        cls, name: str, tool_input: Optional[Dict[str, Any]] = None
    ) -> "GenerationEvent":
        return cls(
            type=GenerationEventType.TOOL_INVOCATION,
            payload={"name": name, "input": tool_input or {}},
        )

    @classmethod
    def tool_result(cls, result: Any, **extra: Any) -> "GenerationEvent":
        return cls(
            type=GenerationEventType.TOOL_RESULT,
            payload={"result": result, **extra},
        )

    def summary(self, limit: int = 80) -> str:
        """One-line description for progress output."""
        if self.type == GenerationEventType.ASSISTANT_TEXT:
            text = str(self.payload.get("text") or "").replace("\n", " ")
            return text if len(text) <= limit else text[:limit] + "..."
        if self.type == GenerationEventType.TOOL_INVOCATION:
            tool_input = self.payload.get("input") or {}
            target = tool_input.get("file_path") or tool_input.get("command") or ""
            return f"{self.payload.get('name', '?')} {target}".strip()
        if self.payload.get("final"):
            return f"session finished ({self.payload.get('subtype', 'done')})"
        return "tool result" + (" (error)" if self.payload.get("is_error") else "")


class FailureDetail(BaseModel):
    stage: PipelineStage
    code: str
    message: str
    command: Optional[str] = None
    output: Optional[str] = None
    debug_info: Optional[str] = None


class VerificationOutcome(BaseModel):
    url: str
    reachable: bool
    status_code: Optional[int] = None
    detail: Optional[str] = None
    warning: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.warning is None


class PipelineResult(BaseModel):
    success: bool
    state: PipelineState
    sandbox_id: Optional[str] = None
    component_name: str
    component_directory: Optional[str] = None
    component_url: Optional[str] = None
    registry_url: str
    verification: Optional[VerificationOutcome] = None
    event_count: int = 0
    warnings: List[str] = Field(default_factory=list)
    error: Optional[FailureDetail] = None
