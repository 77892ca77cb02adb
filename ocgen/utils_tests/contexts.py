from ocgen.models import ComponentRequest, PipelineState
from ocgen.pipeline.context import PipelineContext
from ocgen.sandbox.client import Sandbox

ROOT_DIR = "/home/daytona"


def make_context(
    config,
    prompt: str = "Create a button component",
    state: PipelineState = PipelineState.SCAFFOLDED,
    **changes,
) -> PipelineContext:
    """A context as it looks after scaffolding, unless ``changes`` say otherwise."""
    context = PipelineContext.start(ComponentRequest(prompt=prompt), config)
    defaults = {
        "sandbox": Sandbox(id="sbx-1", root_dir=ROOT_DIR, state="started"),
        "component_dir": f"{ROOT_DIR}/{context.component_name}",
    }
    defaults.update(changes)
    return context.advance(state, **defaults)
