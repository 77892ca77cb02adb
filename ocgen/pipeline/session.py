import base64
import json
import logging
import posixpath
import shlex
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from typing import AsyncIterator, Deque, Dict, Optional, Tuple

from ocgen.errors import GenerationFailed
from ocgen.models import GenerationEvent
from ocgen.pipeline.generation_script import (
    ASSISTANT_MARKER,
    EXIT_MARKER,
    GENERATION_SCRIPT,
    REQUEST_NAME,
    SCRIPT_NAME,
    TOOL_RESULT_MARKER,
    TOOL_USE_MARKER,
)
from ocgen.sandbox.client import (
    Sandbox,
    SandboxClient,
    SandboxProviderError,
    run_command,
)
from ocgen.utils import trim_output

logger = logging.getLogger("ocgen")

TRANSCRIPT_TAIL_LINES = 200


@dataclass(frozen=True)
class GenerationRequest:
    prompt: str
    allowed_tools: Tuple[str, ...]
    max_turns: int
    working_dir: str
    env: Dict[str, str] = field(default_factory=dict)
    timeout: Optional[float] = None


class GenerationSession(ABC):
    """One agentic coding session, exposed as an ordered stream of events."""

    @abstractmethod
    def stream(
        self, sandbox: Sandbox, request: GenerationRequest
    ) -> AsyncIterator[GenerationEvent]:
        """Yield events in arrival order until the session ends.

        Raises ``GenerationFailed`` when the session ends abnormally.
        """


def parse_event_line(line: str) -> Optional[GenerationEvent]:
    """Decode one marker-prefixed output line, or return None for plain output."""
    marker, _, raw = line.strip().partition(" ")
    if marker not in (ASSISTANT_MARKER, TOOL_USE_MARKER, TOOL_RESULT_MARKER):
        return None
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"[GenerationSession] Undecodable {marker} line: {raw[:200]}")
        return None
    if not isinstance(payload, dict):
        return None

    if marker == ASSISTANT_MARKER:
        return GenerationEvent.assistant_text(str(payload.get("content") or ""))
    if marker == TOOL_USE_MARKER:
        return GenerationEvent.tool_invocation(
            str(payload.get("name") or "unknown"), payload.get("input") or {}
        )
    extra = {k: v for k, v in payload.items() if k not in ("type", "result")}
    return GenerationEvent.tool_result(payload.get("result"), **extra)


def parse_exit_line(line: str) -> Optional[int]:
    marker, _, raw = line.strip().partition(" ")
    if marker != EXIT_MARKER:
        return None
    try:
        return int(raw.strip())
    except ValueError:
        return -1


def _write_file_command(name: str, content: str) -> str:
    encoded = base64.b64encode(content.encode("utf-8")).decode("ascii")
    return f"printf '%s' {shlex.quote(encoded)} | base64 -d > {shlex.quote(name)}"


class SandboxGenerationSession(GenerationSession):
    """
    Runs the agent SDK through a Node script inside the sandbox.

    The script and its request are written into the working directory, then
    executed through ``SandboxClient.stream_command``. The shell wrapper
    appends an exit marker so a session that dies without reporting a result
    can be told apart from one that finished.
    """

    def __init__(self, client: SandboxClient, write_timeout: float = 60):
        self.client = client
        self.write_timeout = write_timeout

    async def _write(self, sandbox: Sandbox, directory: str, name: str, content: str):
        command = _write_file_command(name, content)
        result = await run_command(
            self.client, sandbox, command, directory, timeout=self.write_timeout
        )
        if not result.ok:
            raise GenerationFailed(
                f"Could not write {name} into {directory}",
                command=f"<write {posixpath.join(directory, name)}>",
                output=trim_output(result.output),
            )

    async def stream(
        self, sandbox: Sandbox, request: GenerationRequest
    ) -> AsyncIterator[GenerationEvent]:
        await self._write(sandbox, request.working_dir, SCRIPT_NAME, GENERATION_SCRIPT)
        await self._write(
            sandbox,
            request.working_dir,
            REQUEST_NAME,
            json.dumps(
                {
                    "prompt": request.prompt,
                    "allowedTools": list(request.allowed_tools),
                    "maxTurns": request.max_turns,
                }
            ),
        )

        inner = f'node {SCRIPT_NAME} 2>&1; echo "{EXIT_MARKER} $?"'
        command = f"sh -c {shlex.quote(inner)}"
        transcript: Deque[str] = deque(maxlen=TRANSCRIPT_TAIL_LINES)
        exit_code: Optional[int] = None

        lines = self.client.stream_command(
            sandbox,
            command,
            request.working_dir,
            env=request.env,
            timeout=request.timeout,
        )
        try:
            async for line in lines:
                code = parse_exit_line(line)
                if code is not None:
                    exit_code = code
                    continue
                transcript.append(line)
                event = parse_event_line(line)
                if event is None:
                    logger.debug(f"[GenerationSession] {line}")
                    continue
                yield event
        except SandboxProviderError as exc:
            raise GenerationFailed(
                f"Generation session could not run: {exc}",
                command=command,
                output=trim_output("\n".join(transcript)),
            ) from exc
        finally:
            await lines.aclose()

        if exit_code is None:
            raise GenerationFailed(
                "Generation session ended without reporting an exit status",
                command=command,
                output=trim_output("\n".join(transcript)),
            )
        if exit_code != 0:
            raise GenerationFailed(
                f"Generation session exited with {exit_code}",
                command=command,
                output=trim_output("\n".join(transcript)),
            )
