import httpx
import pytest

from ocgen.registry.probe import (
    HttpRegistryProbe,
    SandboxRegistryProbe,
    parse_curl_output,
)
from ocgen.sandbox.client import Sandbox
from ocgen.utils_tests.fake_sandbox import FakeSandboxClient

URL = "http://registry.test:3030/card"


def test_parse_curl_output_with_status():
    result = parse_curl_output(URL, '{"name": "card"}\n__HTTP_STATUS__200')

    assert result.reachable is True
    assert result.status_code == 200
    assert result.body == '{"name": "card"}'
    assert result.ok


def test_parse_curl_output_error_status_is_reachable_but_not_ok():
    result = parse_curl_output(URL, "Not found\n__HTTP_STATUS__404")

    assert result.reachable is True
    assert result.ok is False


def test_parse_curl_output_without_response():
    assert parse_curl_output(URL, "curl: (7) Failed\n__HTTP_STATUS__000").reachable is False
    missing = parse_curl_output(URL, "sh: curl: not found")
    assert missing.reachable is False
    assert missing.error == "sh: curl: not found"


@pytest.mark.asyncio
async def test_sandbox_probe_runs_curl_in_root_dir():
    client = FakeSandboxClient()
    sandbox = Sandbox(id="sbx", root_dir="/home/daytona")

    result = await SandboxRegistryProbe(client, timeout=7).probe(
        URL, sandbox=sandbox, accept_json=True
    )

    assert result.ok
    recorded = client.commands[0]
    assert recorded.cwd == "/home/daytona"
    assert recorded.command.startswith("curl -sS --max-time 7 -H 'Accept: application/json'")
    assert recorded.command.endswith(URL)


@pytest.mark.asyncio
async def test_sandbox_probe_requires_sandbox():
    with pytest.raises(ValueError):
        await SandboxRegistryProbe(FakeSandboxClient()).probe(URL)


@pytest.mark.asyncio
async def test_http_probe_reports_status():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["accept"] = request.headers.get("accept")
        return httpx.Response(200, json={"name": "card"})

    probe = HttpRegistryProbe(timeout=1, transport=httpx.MockTransport(handler))

    result = await probe.probe(URL, accept_json=True)

    assert result.ok
    assert seen["accept"] == "application/json"


@pytest.mark.asyncio
async def test_http_probe_connection_error_is_unreachable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    probe = HttpRegistryProbe(timeout=1, transport=httpx.MockTransport(handler))

    result = await probe.probe(URL)

    assert result.reachable is False
    assert "connection refused" in result.error


@pytest.mark.asyncio
async def test_http_probe_timeout_is_unreachable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    probe = HttpRegistryProbe(timeout=1, transport=httpx.MockTransport(handler))

    result = await probe.probe(URL)

    assert result.reachable is False
    assert result.error == "timeout"
