"""Click CLI: loads config, builds the two participants, runs a session, saves the transcript."""

import asyncio
import base64
import logging
import mimetypes
import signal
import sys
import time
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler

from config.config_loader import AppConfig, load_config, parse_mode, validate_fixed_turns
from src.discussion import Participant, SessionConfig
from src.executor import StepExecutor
from src.models import DiscussionMode, DiscussionResult, ImagePayload, ProcessingState, Role
from src.output import print_event, save_to_file
from src.providers.anthropic import AnthropicProvider
from src.providers.base import AIProvider
from src.providers.gemini import GeminiProvider
from src.providers.openai_provider import OpenAIProvider
from src.session import SessionController

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

PROVIDER_CLASSES: dict[str, type[AIProvider]] = {
    "gemini": GeminiProvider,
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
}

# sdks whose provider accepts a thinking budget switch
THINKING_SDKS = {"gemini"}


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _build_provider(config: AppConfig, model_name: str, thinking: bool) -> AIProvider:
    """Instantiate the provider for a model key from settings. Raises click.BadParameter on bad names."""
    if model_name not in config.models:
        known = ", ".join(sorted(config.models))
        raise click.BadParameter(f"Unknown model '{model_name}' (known: {known})")
    model_cfg = config.models[model_name]
    if model_cfg.sdk not in PROVIDER_CLASSES:
        raise click.BadParameter(f"Model '{model_name}' uses unsupported sdk '{model_cfg.sdk}'")
    if model_name not in config.available_providers:
        logger.warning("No API key for '%s' (set %s)", model_name, model_cfg.api_key_env)
    if model_cfg.sdk in THINKING_SDKS:
        return PROVIDER_CLASSES[model_cfg.sdk](model_cfg, thinking=thinking)
    return PROVIDER_CLASSES[model_cfg.sdk](model_cfg)


def _build_session_config(
    config: AppConfig,
    mode: DiscussionMode,
    fixed_turns: int,
    analyst_name: str,
    critic_name: str,
    thinking: bool,
) -> SessionConfig:
    personas = config.prompts.personas
    return SessionConfig(
        analyst=Participant(
            role=Role.ANALYST,
            persona=personas.get(Role.ANALYST.value, ""),
            provider=_build_provider(config, analyst_name, thinking),
        ),
        critic=Participant(
            role=Role.CRITIC,
            persona=personas.get(Role.CRITIC.value, ""),
            provider=_build_provider(config, critic_name, thinking),
        ),
        mode=mode,
        fixed_turns=fixed_turns,
    )


def _load_image(path: Path) -> ImagePayload:
    """Read an image file into a base64 payload."""
    mime_type, _ = mimetypes.guess_type(path.name)
    if not mime_type or not mime_type.startswith("image/"):
        raise click.BadParameter(f"Not an image file: {path}")
    return ImagePayload(mime_type=mime_type, data=base64.b64encode(path.read_bytes()).decode("ascii"))


async def _run_session(controller: SessionController, query: str, image: ImagePayload | None) -> ProcessingState:
    """Run a session; Ctrl+C pauses it and the user chooses whether to resume."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, controller.pause)
        handler_installed = True
    except (NotImplementedError, RuntimeError):
        # Windows event loops have no add_signal_handler; Ctrl+C then just aborts.
        handler_installed = False

    try:
        state = await controller.start(query, image)
        while state is ProcessingState.PAUSED:
            if click.confirm("Discussion paused. Resume?", default=True):
                state = await controller.resume()
            else:
                controller.stop()
                state = controller.processing_state
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)
    return state


@click.command()
@click.argument("query", required=False)
@click.option("--file", "query_file", type=click.Path(exists=True, dir_okay=False), help="Read the query from a file")
@click.option("--image", "image_path", type=click.Path(exists=True, dir_okay=False), help="Attach an image")
@click.option("--mode", default=None, type=click.Choice([m.value for m in DiscussionMode]),
              help="Discussion policy (default: from config)")
@click.option("--turns", default=None, type=int, help="Turn count for fixed mode (default: from config)")
@click.option("--analyst", default=None, help="Model key for the Analyst (default: from config)")
@click.option("--critic", default=None, help="Model key for the Critic (default: from config)")
@click.option("--no-thinking", is_flag=True, help="Disable thinking budgets on models that support them")
@click.option("--output", "output_path", default=None, help="Output directory (default: from config)")
@click.option("--no-save", is_flag=True, help="Do not write the transcript file")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
def main(
    query: str | None,
    query_file: str | None,
    image_path: str | None,
    mode: str | None,
    turns: int | None,
    analyst: str | None,
    critic: str | None,
    no_thinking: bool,
    output_path: str | None,
    no_save: bool,
    verbose: bool,
) -> None:
    """Dual AI Chat -- an Analyst and a Critic debate your question, then the Analyst answers.

    Press Ctrl+C during a discussion to pause it.

    \b
    Examples:
      python -m src.cli "What is a prime number?" --mode fixed --turns 1
      python -m src.cli --file question.md --analyst claude --critic gemini
      python -m src.cli "What does this diagram show?" --image diagram.png
    """
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")

    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config()
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    if query_file:
        query_text = Path(query_file).read_text(encoding="utf-8").strip()
    elif query:
        query_text = query
    else:
        query_text = ""

    image = _load_image(Path(image_path)) if image_path else None
    if not query_text.strip() and image is None:
        console.print("[bold red]Error:[/bold red] Provide a QUERY argument, --file, or --image.")
        sys.exit(1)

    try:
        effective_mode = parse_mode(mode) if mode else config.defaults.mode
        effective_turns = validate_fixed_turns(turns if turns is not None else config.defaults.fixed_turns)
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc
    analyst_name = analyst or config.defaults.analyst
    critic_name = critic or config.defaults.critic
    thinking = config.defaults.thinking and not no_thinking

    session_config = _build_session_config(
        config, effective_mode, effective_turns, analyst_name, critic_name, thinking
    )
    controller = SessionController(
        session_config,
        config.prompts,
        executor=StepExecutor(config.retry.max_attempts, config.retry.delay_sec),
        listener=print_event,
    )

    mode_label = f"fixed, {effective_turns} turns" if effective_mode is DiscussionMode.FIXED_TURNS else "AI-driven"
    console.print(f"\n[bold cyan]Dual AI Chat[/bold cyan] | {mode_label}")
    console.print(f"Analyst: {session_config.analyst.provider.model_string()} | "
                  f"Critic: {session_config.critic.provider.model_string()}\n")

    start = time.monotonic()
    asyncio.run(_run_session(controller, query_text, image))

    result = DiscussionResult(
        query=query_text,
        messages=list(controller.messages),
        notepad=controller.notepad.content,
        mode=effective_mode,
        analyst_model=session_config.analyst.provider.model_string(),
        critic_model=session_config.critic.provider.model_string(),
        turns=controller.last_completed_turns or controller.current_turn,
        total_duration_sec=time.monotonic() - start,
        fixed_turns=effective_turns if effective_mode is DiscussionMode.FIXED_TURNS else None,
    )
    result.completed = result.final_answer is not None

    if not no_save:
        effective_output = Path(output_path) if output_path else config.defaults.output_dir
        saved_path = save_to_file(result, effective_output)
        console.print(f"\n[dim]Saved to: {saved_path}[/dim]")

    if not result.completed:
        sys.exit(1)


if __name__ == "__main__":
    main()
