from .context import (
    BuiltArtifact,
    ComponentArtifact,
    PipelineContext,
    PublishedLocation,
    StageFailure,
)
from .observer import PipelineObserver
from .runner import ComponentPipeline

__all__ = [
    "BuiltArtifact",
    "ComponentArtifact",
    "ComponentPipeline",
    "PipelineContext",
    "PipelineObserver",
    "PublishedLocation",
    "StageFailure",
]
