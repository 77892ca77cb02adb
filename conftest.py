# Ensure tests import the `ocgen` package from this checkout first.
import os
import sys

import pytest

SERVICE_ROOT = os.path.dirname(__file__)

if SERVICE_ROOT not in sys.path:
    sys.path.insert(0, SERVICE_ROOT)

from ocgen.config import PipelineConfig  # noqa: E402
from ocgen.utils_tests.fake_sandbox import FakeSandboxClient  # noqa: E402


@pytest.fixture
def pipeline_config():
    """Config with credentials set and short timeouts for fast tests."""
    return PipelineConfig(
        daytona_api_key="dtn_test_key",
        anthropic_api_key="sk-ant-test-key",
        registry_url="http://registry.test:3030",
        install_timeout=2,
        scaffold_timeout=2,
        generation_timeout=2,
        build_timeout=2,
        publish_timeout=2,
        probe_timeout=2,
    )


@pytest.fixture
def fake_client():
    return FakeSandboxClient()


@pytest.fixture(autouse=True)
def no_command_grace(monkeypatch):
    """Command timeouts fire exactly at the configured limit."""
    monkeypatch.setattr("ocgen.sandbox.client.COMMAND_GRACE_SECONDS", 0)
