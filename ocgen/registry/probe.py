"""
Reachability probes against the component registry.

The pipeline probes from inside the sandbox by default, because that is where
``oc publish`` runs and the registry address (``host.docker.internal``) is only
meaningful from there. ``HttpRegistryProbe`` probes from this process instead,
for registries that are reachable from both sides.
"""

import logging
import shlex
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import httpx

from ocgen.config import PipelineConfig
from ocgen.sandbox.client import Sandbox, SandboxClient, run_command

logger = logging.getLogger("ocgen")

_STATUS_MARKER = "__HTTP_STATUS__"


@dataclass(frozen=True)
class ProbeResult:
    url: str
    reachable: bool
    status_code: Optional[int] = None
    body: str = ""
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.reachable and self.status_code is not None and self.status_code < 400


class RegistryProbe(ABC):
    @abstractmethod
    async def probe(
        self, url: str, *, sandbox: Optional[Sandbox] = None, accept_json: bool = False
    ) -> ProbeResult:
        """Issue a GET against ``url``; any HTTP response counts as reachable."""


class SandboxRegistryProbe(RegistryProbe):
    def __init__(self, client: SandboxClient, timeout: float = 30):
        self.client = client
        self.timeout = timeout

    def _command(self, url: str, accept_json: bool) -> str:
        parts = ["curl", "-sS", "--max-time", str(int(self.timeout))]
        if accept_json:
            parts += ["-H", "Accept: application/json"]
        parts += ["-w", f"\\n{_STATUS_MARKER}%{{http_code}}", url]
        return " ".join(shlex.quote(part) for part in parts)

    async def probe(
        self, url: str, *, sandbox: Optional[Sandbox] = None, accept_json: bool = False
    ) -> ProbeResult:
        if sandbox is None:
            raise ValueError("SandboxRegistryProbe needs a sandbox to probe from")
        result = await run_command(
            self.client,
            sandbox,
            self._command(url, accept_json),
            sandbox.root_dir,
            timeout=self.timeout,
        )
        return parse_curl_output(url, result.output)


def parse_curl_output(url: str, output: str) -> ProbeResult:
    body, marker, status = (output or "").rpartition(_STATUS_MARKER)
    if not marker:
        return ProbeResult(url=url, reachable=False, error=(output or "").strip() or None)
    code_text = status.strip().splitlines()[0] if status.strip() else ""
    try:
        status_code = int(code_text)
    except ValueError:
        status_code = 0
    if status_code == 0:
        # curl reports 000 when no HTTP response arrived at all
        return ProbeResult(url=url, reachable=False, error=body.strip() or None)
    return ProbeResult(
        url=url,
        reachable=True,
        status_code=status_code,
        body=body[:-1] if body.endswith("\n") else body,
    )


class HttpRegistryProbe(RegistryProbe):
    def __init__(self, timeout: float = 30, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = timeout
        self._transport = transport

    async def probe(
        self, url: str, *, sandbox: Optional[Sandbox] = None, accept_json: bool = False
    ) -> ProbeResult:
        headers = {"Accept": "application/json"} if accept_json else {}
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
                follow_redirects=True,
            ) as client:
                response = await client.get(url, headers=headers)
        except httpx.TimeoutException as e:
            logger.warning(f"[HttpRegistryProbe] Timeout probing {url}: {e}")
            return ProbeResult(url=url, reachable=False, error="timeout")
        except httpx.TransportError as e:
            logger.warning(f"[HttpRegistryProbe] Cannot connect to {url}: {e}")
            return ProbeResult(url=url, reachable=False, error=str(e))
        return ProbeResult(
            url=url,
            reachable=True,
            status_code=response.status_code,
            body=response.text,
        )


def build_registry_probe(config: PipelineConfig, client: SandboxClient) -> RegistryProbe:
    if config.registry_probe == "host":
        return HttpRegistryProbe(timeout=config.probe_timeout)
    return SandboxRegistryProbe(client, timeout=config.probe_timeout)
