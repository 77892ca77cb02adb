import asyncio
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, Dict, List, Optional, Sequence, Tuple

from ocgen.models import GenerationEvent
from ocgen.pipeline.session import GenerationRequest, GenerationSession
from ocgen.sandbox.client import (
    CommandResult,
    Sandbox,
    SandboxClient,
    SandboxProviderError,
)

DEFAULT_LISTING = "package.json\nview.js\nserver.js\npublic\nnode_modules\n"
SUCCESS_CURL = "{}\n__HTTP_STATUS__200"


@dataclass
class CommandRule:
    fragment: str
    exit_code: int = 0
    output: str = ""
    delay: float = 0.0
    lines: Optional[Sequence[str]] = None


@dataclass
class RecordedCommand:
    command: str
    cwd: str
    env: Optional[Dict[str, str]] = None
    timeout: Optional[float] = None


@dataclass
class FakeSandboxClient(SandboxClient):
    """
    In-memory SandboxClient.

    Commands are answered by the most recently added rule whose fragment is
    contained in the command; unmatched commands succeed with empty output.
    ``ls -1A`` and ``curl`` get happy-path defaults so a full run succeeds
    without any setup.
    """

    sandboxes: List[Sandbox] = field(default_factory=list)
    root: str = "/home/daytona"
    create_error: Optional[str] = None
    commands: List[RecordedCommand] = field(default_factory=list)
    rules: List[CommandRule] = field(default_factory=list)
    created: List[Sandbox] = field(default_factory=list)
    closed: bool = False

    def __post_init__(self):
        self.rules = [
            CommandRule("ls -1A", output=DEFAULT_LISTING),
            CommandRule("curl", output=SUCCESS_CURL),
        ] + list(self.rules)

    def on(self, fragment: str, exit_code: int = 0, output: str = "", delay: float = 0.0, lines=None):
        self.rules.append(CommandRule(fragment, exit_code, output, delay, lines))
        return self

    def _rule_for(self, command: str) -> Optional[CommandRule]:
        for rule in reversed(self.rules):
            if rule.fragment in command:
                return rule
        return None

    def ran(self, fragment: str) -> bool:
        return any(fragment in recorded.command for recorded in self.commands)

    def commands_matching(self, fragment: str) -> List[RecordedCommand]:
        return [recorded for recorded in self.commands if fragment in recorded.command]

    async def list(self) -> List[Sandbox]:
        return list(self.sandboxes)

    async def create(self, image: str, public: bool = True) -> Sandbox:
        if self.create_error:
            raise SandboxProviderError(self.create_error)
        sandbox = Sandbox(id=f"sbx-{len(self.created) + 1}", state="started")
        self.created.append(sandbox)
        self.sandboxes.append(sandbox)
        return sandbox

    async def root_dir(self, sandbox: Sandbox) -> str:
        return self.root

    async def execute_command(self, sandbox, command, cwd, env=None, timeout=None) -> CommandResult:
        self.commands.append(RecordedCommand(command, cwd, env, timeout))
        rule = self._rule_for(command)
        if rule is None:
            return CommandResult(exit_code=0, output="")
        if rule.delay:
            await asyncio.sleep(rule.delay)
        output = rule.output
        if rule.lines is not None:
            output = "\n".join(rule.lines)
        return CommandResult(exit_code=rule.exit_code, output=output)

    async def stream_command(self, sandbox, command, cwd, env=None, timeout=None) -> AsyncIterator[str]:
        self.commands.append(RecordedCommand(command, cwd, env, timeout))
        rule = self._rule_for(command)
        if rule is None:
            return
        for line in rule.lines if rule.lines is not None else rule.output.splitlines():
            if rule.delay:
                await asyncio.sleep(rule.delay)
            yield line

    async def close(self) -> None:
        self.closed = True


class FakeGenerationSession(GenerationSession):
    """Replays scripted events, optionally pausing between them."""

    def __init__(
        self,
        events: Sequence[GenerationEvent] = (),
        delay: float = 0.0,
        error: Optional[Exception] = None,
        on_finish: Optional[Callable[[], None]] = None,
        hang: bool = False,
    ):
        self.events = list(events)
        self.delay = delay
        self.error = error
        self.on_finish = on_finish
        self.hang = hang
        self.requests: List[Tuple[Sandbox, GenerationRequest]] = []
        self.yielded = 0
        self.closed = False

    async def stream(self, sandbox: Sandbox, request: GenerationRequest) -> AsyncIterator[GenerationEvent]:
        self.requests.append((sandbox, request))
        try:
            for event in self.events:
                if self.delay:
                    await asyncio.sleep(self.delay)
                self.yielded += 1
                yield event
            if self.hang:
                await asyncio.Event().wait()
            if self.error is not None:
                raise self.error
            if self.on_finish is not None:
                self.on_finish()
        finally:
            self.closed = True


def default_events() -> List[GenerationEvent]:
    return [
        GenerationEvent.assistant_text("I'll create the button component."),
        GenerationEvent.tool_invocation("Write", {"file_path": "view.js"}),
        GenerationEvent.tool_result("File written"),
        GenerationEvent.tool_result("Done", final=True, subtype="success", num_turns=3),
    ]
