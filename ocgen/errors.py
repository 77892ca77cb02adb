"""
Failure taxonomy for the component pipeline.

Every stage failure is a ``ComponentPipelineError`` carrying a stable ``code``
plus the command and captured output that produced it, so a failure report can
name the stage, the underlying command and what it printed.
"""

from typing import Optional


class ComponentPipelineError(Exception):
    """Base class for all pipeline failures."""

    code = "pipeline_error"
    fatal = True

    def __init__(
        self,
        message: str,
        *,
        command: Optional[str] = None,
        output: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.command = command
        self.output = output

    def __repr__(self):
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class ConfigurationError(ComponentPipelineError):
    code = "configuration_error"


class SandboxNotFound(ComponentPipelineError):
    code = "sandbox_not_found"


class SandboxCreateFailed(ComponentPipelineError):
    code = "sandbox_create_failed"


class ToolInstallFailed(ComponentPipelineError):
    code = "tool_install_failed"


class ScaffoldFailed(ComponentPipelineError):
    code = "scaffold_failed"


class GenerationFailed(ComponentPipelineError):
    code = "generation_failed"


class GenerationTimeout(ComponentPipelineError):
    code = "generation_timeout"


class PipelineCancelled(ComponentPipelineError):
    code = "cancelled"


class GenerationCancelled(PipelineCancelled):
    code = "generation_cancelled"


class IncompleteArtifact(ComponentPipelineError):
    code = "incomplete_artifact"

    def __init__(self, message: str, *, missing=(), **kwargs):
        super().__init__(message, **kwargs)
        self.missing = tuple(missing)


class BuildFailed(ComponentPipelineError):
    code = "build_failed"


class RegistryUnreachable(ComponentPipelineError):
    code = "registry_unreachable"


class PublishRejected(ComponentPipelineError):
    code = "publish_rejected"


class UnexpectedStageError(ComponentPipelineError):
    code = "unexpected_error"


class VerificationWarning(ComponentPipelineError):
    """Advisory only: recorded on the result, never fails the run."""

    code = "verification_warning"
    fatal = False


__all__ = [
    "ComponentPipelineError",
    "ConfigurationError",
    "SandboxNotFound",
    "SandboxCreateFailed",
    "ToolInstallFailed",
    "ScaffoldFailed",
    "GenerationFailed",
    "GenerationTimeout",
    "PipelineCancelled",
    "GenerationCancelled",
    "IncompleteArtifact",
    "BuildFailed",
    "RegistryUnreachable",
    "PublishRejected",
    "UnexpectedStageError",
    "VerificationWarning",
]
