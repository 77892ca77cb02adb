"""
Pipeline configuration.

``PipelineConfig`` is the single place credentials, registry location and
stage timeouts come from. It is built once at startup, usually through
``PipelineConfig.from_env()``, and handed to ``ComponentPipeline``; nothing in
the stages reads the environment on its own.
"""

import os
from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, Mapping, Optional

from ocgen.errors import ConfigurationError
from ocgen.utils import mask_token

DEFAULT_REGISTRY_URL = "http://host.docker.internal:3030/"
DEFAULT_SANDBOX_IMAGE = "node:20"

INCOMPLETE_ARTIFACT_POLICIES = ("fail", "warn")
REGISTRY_PROBE_MODES = ("sandbox", "host")

_SECRET_FIELDS = ("daytona_api_key", "anthropic_api_key")


def normalize_registry_url(url: str) -> str:
    url = (url or "").strip()
    if not url:
        raise ConfigurationError("Registry URL must not be empty")
    return url if url.endswith("/") else f"{url}/"


@dataclass(frozen=True)
class PipelineConfig:
    daytona_api_key: Optional[str] = None
    daytona_api_url: Optional[str] = None
    daytona_target: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    registry_url: str = DEFAULT_REGISTRY_URL
    sandbox_image: str = DEFAULT_SANDBOX_IMAGE
    sandbox_public: bool = True
    # Seconds
    install_timeout: float = 180
    scaffold_timeout: float = 120
    generation_timeout: float = 600
    build_timeout: float = 180
    publish_timeout: float = 180
    probe_timeout: float = 30
    max_turns: int = 15
    incomplete_artifact_policy: str = "fail"
    registry_probe: str = "sandbox"
    event_log_dir: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(
            self, "registry_url", normalize_registry_url(self.registry_url)
        )
        if self.incomplete_artifact_policy not in INCOMPLETE_ARTIFACT_POLICIES:
            raise ConfigurationError(
                f"incomplete_artifact_policy must be one of {INCOMPLETE_ARTIFACT_POLICIES}, "
                f"got {self.incomplete_artifact_policy!r}"
            )
        if self.registry_probe not in REGISTRY_PROBE_MODES:
            raise ConfigurationError(
                f"registry_probe must be one of {REGISTRY_PROBE_MODES}, "
                f"got {self.registry_probe!r}"
            )
        if self.max_turns < 1:
            raise ConfigurationError("max_turns must be at least 1")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "PipelineConfig":
        env = os.environ if environ is None else environ

        def _float(name: str, default: float) -> float:
            raw = env.get(name)
            if raw in (None, ""):
                return default
            try:
                return float(raw)
            except ValueError as exc:
                raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc

        def _int(name: str, default: int) -> int:
            raw = env.get(name)
            if raw in (None, ""):
                return default
            try:
                return int(raw)
            except ValueError as exc:
                raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc

        return cls(
            daytona_api_key=env.get("DAYTONA_API_KEY") or None,
            daytona_api_url=env.get("DAYTONA_API_URL") or None,
            daytona_target=env.get("DAYTONA_TARGET") or None,
            anthropic_api_key=env.get("ANTHROPIC_API_KEY") or None,
            registry_url=env.get("OC_REGISTRY_URL", DEFAULT_REGISTRY_URL),
            sandbox_image=env.get("OCGEN_SANDBOX_IMAGE", DEFAULT_SANDBOX_IMAGE),
            sandbox_public=env.get("OCGEN_SANDBOX_PUBLIC", "true").lower() == "true",
            install_timeout=_float("OCGEN_INSTALL_TIMEOUT", 180),
            scaffold_timeout=_float("OCGEN_SCAFFOLD_TIMEOUT", 120),
            generation_timeout=_float("OCGEN_GENERATION_TIMEOUT", 600),
            build_timeout=_float("OCGEN_BUILD_TIMEOUT", 180),
            publish_timeout=_float("OCGEN_PUBLISH_TIMEOUT", 180),
            probe_timeout=_float("OCGEN_PROBE_TIMEOUT", 30),
            max_turns=_int("OCGEN_MAX_TURNS", 15),
            incomplete_artifact_policy=env.get(
                "OCGEN_INCOMPLETE_ARTIFACT_POLICY", "fail"
            ).lower(),
            registry_probe=env.get("OCGEN_REGISTRY_PROBE", "sandbox").lower(),
            event_log_dir=env.get("OCGEN_EVENT_LOG_DIR") or None,
        )

    def validate(self) -> "PipelineConfig":
        """Fail fast when the credentials a real run needs are missing."""
        missing = []
        if not self.daytona_api_key:
            missing.append("DAYTONA_API_KEY")
        if not self.anthropic_api_key:
            missing.append("ANTHROPIC_API_KEY")
        if missing:
            raise ConfigurationError(f"{' and '.join(missing)} must be set")
        return self

    @property
    def fail_on_incomplete_artifact(self) -> bool:
        return self.incomplete_artifact_policy == "fail"

    def with_overrides(self, **changes: Any) -> "PipelineConfig":
        return replace(self, **changes)

    def describe(self) -> Dict[str, Any]:
        """Configuration as a dict that is safe to log."""
        data = asdict(self)
        for name in _SECRET_FIELDS:
            data[name] = mask_token(data[name], data[name]) if data[name] else None
        return data
