from .client import (
    CommandResult,
    Sandbox,
    SandboxClient,
    SandboxProviderError,
    run_command,
)

__all__ = [
    "CommandResult",
    "Sandbox",
    "SandboxClient",
    "SandboxProviderError",
    "run_command",
]
