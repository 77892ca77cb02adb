"""
Command line entry point.

Usage:
    ocgen [sandbox_id] [prompt words...]
    ocgen "Create a pricing card component"
    ocgen 3f2b1c4e-9a7d-4c2e-8b1f-0d6e5a4c3b2a "Add a dark variant"

A first argument that looks like a UUID selects an existing sandbox; the rest
is the prompt. Exit code is 0 on success, 1 on failure and 130 when
interrupted. The sandbox is never removed.
"""

import argparse
import asyncio
import logging
import re
import signal
import sys
from typing import List, Optional, Sequence, TextIO

from dotenv import load_dotenv

from ocgen.config import PipelineConfig
from ocgen.errors import ConfigurationError
from ocgen.models import ComponentRequest, GenerationEvent, PipelineResult, PipelineStage
from ocgen.pipeline.context import PipelineContext, StageFailure
from ocgen.pipeline.observer import PipelineObserver
from ocgen.pipeline.runner import ComponentPipeline
from ocgen.registry.urls import component_url
from ocgen.vars import LOG_LEVEL

logger = logging.getLogger("ocgen")

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INTERRUPTED = 130

STAGE_LABELS = {
    PipelineStage.PROVISION: "Preparing sandbox",
    PipelineStage.INSTALL_TOOLING: "Installing OpenComponents CLI and Claude Code SDK",
    PipelineStage.SCAFFOLD: "Initializing OpenComponent structure",
    PipelineStage.GENERATE: "Running Claude Code generation (this may take several minutes)",
    PipelineStage.BUILD: "Building OpenComponent",
    PipelineStage.PUBLISH: "Publishing component to registry",
    PipelineStage.VERIFY: "Checking component accessibility",
}


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="ocgen",
        description="Generate an OpenComponent from a prompt and publish it to a registry",
    )
    parser.add_argument(
        "args",
        nargs="*",
        help="Optional sandbox id (UUID) followed by the prompt",
    )
    parser.add_argument("--registry-url", help="Registry to publish to (overrides OC_REGISTRY_URL)")
    parser.add_argument(
        "--json", action="store_true", help="Print the final result as JSON"
    )
    return parser.parse_args(argv)


def parse_invocation(args: Sequence[str]) -> ComponentRequest:
    words: List[str] = list(args)
    sandbox_id = None
    if words and UUID_PATTERN.match(words[0]):
        sandbox_id = words.pop(0)
    return ComponentRequest.from_input(" ".join(words), sandbox_id)


class ConsoleObserver(PipelineObserver):
    """Prints numbered stage progress the way an operator follows a run."""

    def __init__(self, out: Optional[TextIO] = None):
        self.out = out or sys.stdout

    def _print(self, text: str = "") -> None:
        print(text, file=self.out, flush=True)

    async def stage_started(self, stage: PipelineStage, context: PipelineContext) -> None:
        number = list(PipelineStage).index(stage) + 1
        self._print()
        self._print(f"{number}. {STAGE_LABELS[stage]}...")

    async def stage_completed(
        self, stage: PipelineStage, context: PipelineContext
    ) -> None:
        if stage == PipelineStage.PROVISION:
            self._print(f"✓ Sandbox: {context.sandbox_id}")
            self._print(f"✓ Working directory: {context.sandbox.root_dir}")
            self._print(f"✓ Component name: {context.component_name}")
        elif stage == PipelineStage.SCAFFOLD:
            self._print(f"✓ Component scaffolded: {context.component_dir}")
        elif stage == PipelineStage.GENERATE:
            files = ", ".join(context.artifact.files) if context.artifact else ""
            self._print(f"✓ Generation finished ({len(context.events)} events)")
            self._print(f"  Component files: {files}")
        elif stage == PipelineStage.PUBLISH:
            self._print(f"✓ Published to {context.registry_url}")
        elif stage == PipelineStage.VERIFY:
            outcome = context.verification
            if outcome is not None and outcome.ok:
                self._print(f"✓ Component answered with HTTP {outcome.status_code}")
        elif stage == PipelineStage.INSTALL_TOOLING:
            self._print("✓ Tooling installed")
        elif stage == PipelineStage.BUILD:
            self._print("✓ Component built successfully")

    async def stage_failed(self, failure: StageFailure) -> None:
        self._print(f"✗ {failure.stage.value} failed: {failure.message}")

    async def generation_event(self, event: GenerationEvent) -> None:
        self._print(f"  [{event.type.value}] {event.summary()}")

    async def warning(self, stage: PipelineStage, message: str) -> None:
        self._print(f"⚠ {message}")


def render_summary(result: PipelineResult) -> str:
    url = result.component_url or component_url(result.registry_url, result.component_name)
    params_url = component_url(
        result.registry_url, result.component_name, params={"param": "value"}
    )
    json_url = component_url(result.registry_url, result.component_name, as_json=True)
    lines = [
        "",
        "SUCCESS! OpenComponent created and published!",
        "",
        "SUMMARY:",
        "===========",
        f"Sandbox ID: {result.sandbox_id}",
        f"Component Name: {result.component_name}",
        f"Component Directory: {result.component_directory}",
        f"Registry URL: {result.registry_url}",
        f"Component URL: {url}",
        "",
        "ACCESS YOUR COMPONENT:",
        f"Direct URL: {url}",
        f"With parameters: {params_url}",
        f"As JSON: {json_url}",
        "",
        "INTEGRATION EXAMPLES:",
        f"HTML: <script src='{url}'></script>",
        f"React: <Component src='{url}' />",
        f"Server-side: fetch('{url}')",
        "",
        "TIPS:",
        f"- To republish: cd {result.component_directory} && oc publish . {result.registry_url}",
        f"- To continue in the same sandbox: ocgen {result.sandbox_id} <prompt>",
    ]
    if result.warnings:
        lines += ["", "WARNINGS:"] + [f"- {warning}" for warning in result.warnings]
    return "\n".join(lines)


def render_failure(result: PipelineResult) -> str:
    error = result.error
    lines = [""]
    if error is not None:
        lines.append(f"ERROR [{error.stage.value}] {error.code}: {error.message}")
        if error.command:
            lines.append(f"Command: {error.command}")
        if error.output:
            lines += ["Output:", error.output]
    else:
        lines.append("ERROR: pipeline failed")
    if result.sandbox_id:
        lines += ["", f"Sandbox ID: {result.sandbox_id}", "The sandbox is still running for debugging."]
    if error is not None and error.debug_info:
        lines += ["", "Debug info:", error.debug_info]
    return "\n".join(lines)


async def run_pipeline(
    config: PipelineConfig,
    request: ComponentRequest,
    *,
    out: Optional[TextIO] = None,
    as_json: bool = False,
) -> int:
    out = out or sys.stdout
    cancel_token = asyncio.Event()
    loop = asyncio.get_running_loop()
    handles_sigint = False
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_token.set)
        handles_sigint = True
    except (NotImplementedError, RuntimeError):
        logger.debug("[CLI] SIGINT handler not supported here; Ctrl+C will abort immediately")

    print("Starting OpenComponent generation in Daytona sandbox...", file=out)
    print(f'Prompt: "{request.prompt}"', file=out)

    pipeline = ComponentPipeline(config)
    try:
        result = await pipeline.run(
            request, observer=ConsoleObserver(out), cancel_token=cancel_token
        )
    finally:
        if handles_sigint:
            loop.remove_signal_handler(signal.SIGINT)
        await pipeline.close()

    if as_json:
        print(result.model_dump_json(indent=2), file=out)
    elif result.success:
        print(render_summary(result), file=out)
    else:
        print(render_failure(result), file=out)

    if result.success:
        return EXIT_OK
    if cancel_token.is_set():
        print("\nExiting... The sandbox will continue running.", file=out)
        return EXIT_INTERRUPTED
    return EXIT_FAILED


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    load_dotenv()
    logging.basicConfig(
        level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s %(message)s"
    )

    try:
        config = PipelineConfig.from_env()
        if args.registry_url:
            config = config.with_overrides(registry_url=args.registry_url)
        config.validate()
    except ConfigurationError as e:
        print(f"ERROR: {e.message}", file=sys.stderr)
        return EXIT_FAILED
    logger.debug(f"[CLI] Configuration: {config.describe()}")

    request = parse_invocation(args.args)
    try:
        return asyncio.run(run_pipeline(config, request, as_json=args.json))
    except KeyboardInterrupt:
        print("\nExiting... The sandbox will continue running.")
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())
