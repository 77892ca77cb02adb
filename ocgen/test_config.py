import pytest

from ocgen.config import (
    DEFAULT_REGISTRY_URL,
    PipelineConfig,
    normalize_registry_url,
)
from ocgen.errors import ConfigurationError


def test_from_env_defaults():
    config = PipelineConfig.from_env({})

    assert config.registry_url == DEFAULT_REGISTRY_URL
    assert config.sandbox_image == "node:20"
    assert config.install_timeout == 180
    assert config.generation_timeout == 600
    assert config.max_turns == 15
    assert config.fail_on_incomplete_artifact is True
    assert config.registry_probe == "sandbox"
    assert config.event_log_dir is None


def test_from_env_reads_overrides():
    config = PipelineConfig.from_env(
        {
            "DAYTONA_API_KEY": "dtn",
            "ANTHROPIC_API_KEY": "sk-ant",
            "OC_REGISTRY_URL": "http://localhost:3030",
            "OCGEN_GENERATION_TIMEOUT": "90.5",
            "OCGEN_MAX_TURNS": "5",
            "OCGEN_INCOMPLETE_ARTIFACT_POLICY": "WARN",
            "OCGEN_REGISTRY_PROBE": "host",
            "OCGEN_EVENT_LOG_DIR": "/tmp/events",
        }
    )

    assert config.registry_url == "http://localhost:3030/"
    assert config.generation_timeout == 90.5
    assert config.max_turns == 5
    assert config.fail_on_incomplete_artifact is False
    assert config.registry_probe == "host"
    assert config.event_log_dir == "/tmp/events"


def test_from_env_rejects_non_numeric_timeout():
    with pytest.raises(ConfigurationError, match="OCGEN_BUILD_TIMEOUT"):
        PipelineConfig.from_env({"OCGEN_BUILD_TIMEOUT": "soon"})


def test_invalid_policy_is_rejected():
    with pytest.raises(ConfigurationError, match="incomplete_artifact_policy"):
        PipelineConfig(incomplete_artifact_policy="ignore")


def test_validate_names_every_missing_key():
    with pytest.raises(ConfigurationError) as exc_info:
        PipelineConfig().validate()
    assert exc_info.value.message == (
        "DAYTONA_API_KEY and ANTHROPIC_API_KEY must be set"
    )

    with pytest.raises(ConfigurationError, match="^ANTHROPIC_API_KEY must be set$"):
        PipelineConfig(daytona_api_key="dtn").validate()


def test_validate_returns_config_when_complete(pipeline_config):
    assert pipeline_config.validate() is pipeline_config


def test_registry_url_normalization():
    assert normalize_registry_url("http://r:3030") == "http://r:3030/"
    assert normalize_registry_url(" http://r:3030/ ") == "http://r:3030/"
    with pytest.raises(ConfigurationError):
        normalize_registry_url("   ")


def test_with_overrides_renormalizes(pipeline_config):
    updated = pipeline_config.with_overrides(registry_url="http://other:4000")
    assert updated.registry_url == "http://other:4000/"
    assert pipeline_config.registry_url == "http://registry.test:3030/"


def test_describe_masks_secrets(pipeline_config):
    described = pipeline_config.describe()

    assert described["daytona_api_key"] == "dtn_****"
    assert described["anthropic_api_key"] == "sk-a****"
    assert described["registry_url"] == "http://registry.test:3030/"
