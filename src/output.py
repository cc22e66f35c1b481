"""Rich console output of session events and markdown file save for discussion transcripts."""

import logging
import re
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.rule import Rule
from rich.text import Text

from src.models import (
    ApiKeyStatus,
    ApiKeyStatusChanged,
    ChatMessage,
    DiscussionMode,
    DiscussionResult,
    MessageAppended,
    MessagePurpose,
    NotepadUpdated,
    SessionEvent,
    Speaker,
    TurnAdvanced,
)

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

_SPEAKER_STYLE = {
    Speaker.ANALYST: "cyan",
    Speaker.CRITIC: "magenta",
    Speaker.USER: "green",
}

_PURPOSE_LABEL = {
    MessagePurpose.USER_INPUT: "Question",
    MessagePurpose.ANALYST_TO_CRITIC: "to Critic",
    MessagePurpose.CRITIC_TO_ANALYST: "to Analyst",
    MessagePurpose.FINAL_RESPONSE: "Final answer",
}


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def _mode_label(mode: DiscussionMode, fixed_turns: int | None) -> str:
    if mode is DiscussionMode.FIXED_TURNS:
        return f"fixed ({fixed_turns} turns)"
    return "AI-driven"


def print_message(message: ChatMessage) -> None:
    """Print one chat message: a dim line for system notices, a panel for everything else."""
    if message.sender is Speaker.SYSTEM:
        console.print(Text(message.text, style="dim"))
        return
    if message.purpose is MessagePurpose.FINAL_RESPONSE:
        print_final_answer(message)
        return
    subtitle = f"{message.elapsed_ms / 1000:.1f}s" if message.elapsed_ms is not None else None
    console.print(
        Panel(
            message.text,
            title=f"[bold]{message.sender.value}[/bold] {_PURPOSE_LABEL.get(message.purpose, '')}",
            subtitle=subtitle,
            border_style=_SPEAKER_STYLE.get(message.sender, "dim"),
        )
    )


def print_final_answer(message: ChatMessage) -> None:
    """Print the synthesized answer using Rich markdown."""
    console.print(Rule("[bold green]Final Answer[/bold green]"))
    if message.elapsed_ms is not None:
        console.print(Text(f"Synthesized by {message.sender.value} in {message.elapsed_ms / 1000:.1f}s", style="dim"))
    console.print(Markdown(message.text))


def print_event(event: SessionEvent) -> None:
    """Console listener for SessionController events."""
    if isinstance(event, MessageAppended):
        print_message(event.message)
    elif isinstance(event, NotepadUpdated):
        console.print(Text(f"Notepad updated ({len(event.content)} chars)", style="dim italic"))
    elif isinstance(event, TurnAdvanced):
        console.print(Rule(f"[dim]Turn {event.turn} complete[/dim]", style="dim"))
    elif isinstance(event, ApiKeyStatusChanged) and event.status is not ApiKeyStatus.OK:
        console.print(f"[bold red]API key {event.status.value}:[/bold red] {event.message}")


def save_to_file(result: DiscussionResult, output_dir: Path, slug_override: str | None = None) -> Path:
    """Save the full discussion transcript and final notepad as a markdown file.

    Args:
        result: The DiscussionResult to write.
        output_dir: Directory to save the file in.
        slug_override: If provided, use this as the filename stem instead of
            deriving one from the query text.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    slug = slug_override if slug_override is not None else _slug(result.query)
    filepath = output_dir / f"{timestamp}_{slug}.md"

    lines: list[str] = [
        f"# Dual AI Chat: {result.query[:80]}",
        "",
        f"**Date:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Analyst:** {result.analyst_model}",
        f"**Critic:** {result.critic_model}",
        f"**Mode:** {_mode_label(result.mode, result.fixed_turns)}",
        f"**Turns:** {result.turns}",
        f"**Duration:** {result.total_duration_sec:.1f}s",
        f"**Status:** {'completed' if result.completed else 'incomplete'}",
        "",
        "---",
        "",
        "## Discussion",
        "",
    ]

    for message in result.messages:
        if message.sender is Speaker.SYSTEM or message.purpose is MessagePurpose.FINAL_RESPONSE:
            continue
        label = _PURPOSE_LABEL.get(message.purpose, "")
        lines.append(f"### {message.sender.value} ({label})")
        lines.append("")
        lines.append(message.text)
        lines.append("")
        if message.elapsed_ms is not None:
            lines.append(f"*Latency: {message.elapsed_ms / 1000:.2f}s*")
            lines.append("")

    final_answer = result.final_answer
    if final_answer is not None:
        lines += ["## Final Answer", "", final_answer, ""]

    lines += ["## Notepad", "", result.notepad or "_(empty)_", ""]

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Discussion saved to: %s", filepath)
    return filepath
