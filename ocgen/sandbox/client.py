import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional

logger = logging.getLogger("ocgen")

# Extra wall-clock allowance on top of a command's own timeout, so the
# provider gets to report its timeout before we cancel the call locally.
COMMAND_GRACE_SECONDS = 5.0


class SandboxProviderError(Exception):
    """Raised by a SandboxClient when the provider call itself fails."""


@dataclass
class Sandbox:
    id: str
    root_dir: str = ""
    state: str = "unknown"
    handle: Any = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class CommandResult:
    exit_code: int
    output: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and not self.timed_out


class SandboxClient(ABC):
    """Control boundary for remote execution environments."""

    @abstractmethod
    async def list(self) -> List[Sandbox]:
        """Return the sandboxes known to the provider."""

    @abstractmethod
    async def create(self, image: str, public: bool = True) -> Sandbox:
        """Create a new sandbox from ``image``."""

    @abstractmethod
    async def root_dir(self, sandbox: Sandbox) -> str:
        """Return the user root directory inside the sandbox."""

    @abstractmethod
    async def execute_command(
        self,
        sandbox: Sandbox,
        command: str,
        cwd: str,
        env: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        """Run ``command`` in ``cwd`` and wait for it to finish."""

    async def stream_command(
        self,
        sandbox: Sandbox,
        command: str,
        cwd: str,
        env: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> AsyncIterator[str]:
        """Yield the output of ``command`` line by line.

        Providers without live log streaming fall back to running the command
        to completion and replaying its output.
        """
        result = await self.execute_command(
            sandbox, command, cwd, env=env, timeout=timeout
        )
        for line in result.output.splitlines():
            yield line

    async def close(self) -> None:
        return None


async def run_command(
    client: SandboxClient,
    sandbox: Sandbox,
    command: str,
    cwd: str,
    *,
    env: Optional[Dict[str, str]] = None,
    timeout: Optional[float] = None,
) -> CommandResult:
    """Run a command with a bounded wait.

    A timeout or provider error becomes a failed ``CommandResult`` so the
    calling stage can raise its own typed error with the captured output.
    Only this call is abandoned on timeout; the sandbox keeps running.
    """
    logger.debug(f"[Sandbox {sandbox.id}] $ {command} (cwd={cwd})")
    try:
        call = client.execute_command(sandbox, command, cwd, env=env, timeout=timeout)
        if timeout is None:
            return await call
        return await asyncio.wait_for(call, timeout=timeout + COMMAND_GRACE_SECONDS)
    except asyncio.TimeoutError:
        logger.warning(
            f"[Sandbox {sandbox.id}] Command timed out after {timeout}s: {command}"
        )
        return CommandResult(
            exit_code=-1,
            output=f"Command timed out after {timeout} seconds: {command}",
            timed_out=True,
        )
    except SandboxProviderError as exc:
        logger.warning(f"[Sandbox {sandbox.id}] Command failed to run: {exc}")
        return CommandResult(exit_code=-1, output=str(exc))
