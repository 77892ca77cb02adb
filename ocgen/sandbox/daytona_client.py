import asyncio
import logging
import math
import shlex
import uuid
from typing import AsyncIterator, Dict, List, Optional

from daytona import (
    AsyncDaytona,
    CreateSandboxFromImageParams,
    DaytonaConfig,
    DaytonaError,
    SessionExecuteRequest,
)

from ocgen.config import PipelineConfig
from ocgen.sandbox.client import (
    CommandResult,
    Sandbox,
    SandboxClient,
    SandboxProviderError,
)

logger = logging.getLogger("ocgen")


def session_command(command: str, cwd: str, env: Optional[Dict[str, str]] = None) -> str:
    """Session commands take no cwd or env, so both are folded into the shell line."""
    parts = [f"cd {shlex.quote(cwd)}"]
    parts += [f"export {name}={shlex.quote(value)}" for name, value in (env or {}).items()]
    parts.append(command)
    return " && ".join(parts)


class DaytonaSandboxClient(SandboxClient):
    """SandboxClient backed by the Daytona async SDK."""

    def __init__(self, config: PipelineConfig):
        self._config = config
        self._daytona: Optional[AsyncDaytona] = None

    def _client(self) -> AsyncDaytona:
        if self._daytona is None:
            self._daytona = AsyncDaytona(
                DaytonaConfig(
                    api_key=self._config.daytona_api_key,
                    api_url=self._config.daytona_api_url,
                    target=self._config.daytona_target,
                )
            )
        return self._daytona

    @staticmethod
    def _wrap(remote) -> Sandbox:
        state = getattr(remote, "state", None)
        return Sandbox(
            id=remote.id,
            state=str(getattr(state, "value", state) or "unknown"),
            handle=remote,
        )

    async def list(self) -> List[Sandbox]:
        try:
            return [self._wrap(remote) async for remote in self._client().list()]
        except DaytonaError as exc:
            raise SandboxProviderError(f"Failed to list sandboxes: {exc}") from exc

    async def create(self, image: str, public: bool = True) -> Sandbox:
        params = CreateSandboxFromImageParams(image=image, public=public)
        try:
            remote = await self._client().create(params)
        except DaytonaError as exc:
            raise SandboxProviderError(f"Failed to create sandbox: {exc}") from exc
        logger.info(f"[DaytonaSandboxClient] Created sandbox {remote.id} from {image}")
        return self._wrap(remote)

    async def root_dir(self, sandbox: Sandbox) -> str:
        try:
            return await sandbox.handle.get_user_root_dir()
        except DaytonaError as exc:
            raise SandboxProviderError(
                f"Failed to resolve root directory of {sandbox.id}: {exc}"
            ) from exc

    async def execute_command(
        self,
        sandbox: Sandbox,
        command: str,
        cwd: str,
        env: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        remote_timeout = max(1, math.ceil(timeout)) if timeout else None
        try:
            response = await sandbox.handle.process.exec(
                command, cwd=cwd, env=env, timeout=remote_timeout
            )
        except DaytonaError as exc:
            raise SandboxProviderError(f"Command failed in {sandbox.id}: {exc}") from exc
        return CommandResult(
            exit_code=int(response.exit_code), output=response.result or ""
        )

    async def stream_command(
        self,
        sandbox: Sandbox,
        command: str,
        cwd: str,
        env: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> AsyncIterator[str]:
        """Yield output lines while the command runs in a dedicated session.

        The session is deleted when the stream ends or is closed early, which
        stops the remote process on timeout or cancellation. Callers bound the
        wall-clock time themselves.
        """
        process = sandbox.handle.process
        session_id = f"ocgen-{uuid.uuid4().hex[:12]}"
        chunks: asyncio.Queue = asyncio.Queue()
        follower: Optional[asyncio.Task] = None
        try:
            await process.create_session(session_id)
            started = await process.execute_session_command(
                session_id,
                SessionExecuteRequest(
                    command=session_command(command, cwd, env), run_async=True
                ),
            )
        except DaytonaError as exc:
            await self._delete_session(sandbox, session_id)
            raise SandboxProviderError(
                f"Could not start streamed command in {sandbox.id}: {exc}"
            ) from exc
        logger.info(
            f"[DaytonaSandboxClient] Streaming command {started.cmd_id} in session {session_id}"
        )

        try:
            follower = asyncio.ensure_future(
                process.get_session_command_logs_async(
                    session_id, started.cmd_id, chunks.put_nowait, chunks.put_nowait
                )
            )
            follower.add_done_callback(lambda _: chunks.put_nowait(None))
            buffered = ""
            while True:
                chunk = await chunks.get()
                if chunk is None:
                    break
                buffered += chunk
                *complete, buffered = buffered.split("\n")
                for line in complete:
                    yield line.rstrip("\r")
            if buffered:
                yield buffered.rstrip("\r")
            if not follower.cancelled() and follower.exception() is not None:
                raise SandboxProviderError(
                    f"Lost output of streamed command in {sandbox.id}: {follower.exception()}"
                ) from follower.exception()
        finally:
            if follower is not None and not follower.done():
                follower.cancel()
                await asyncio.wait({follower})
            await self._delete_session(sandbox, session_id)

    async def _delete_session(self, sandbox: Sandbox, session_id: str) -> None:
        try:
            await sandbox.handle.process.delete_session(session_id)
        except DaytonaError as exc:
            logger.warning(
                f"[DaytonaSandboxClient] Could not delete session {session_id} "
                f"in {sandbox.id}: {exc}"
            )

    async def close(self) -> None:
        if self._daytona is not None:
            await self._daytona.close()
            self._daytona = None
