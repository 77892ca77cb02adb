from .urls import component_url
from .probe import (
    HttpRegistryProbe,
    ProbeResult,
    RegistryProbe,
    SandboxRegistryProbe,
    build_registry_probe,
)

__all__ = [
    "component_url",
    "HttpRegistryProbe",
    "ProbeResult",
    "RegistryProbe",
    "SandboxRegistryProbe",
    "build_registry_probe",
]
