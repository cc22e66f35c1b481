"""Tests for src/output.py."""

from pathlib import Path

import pytest

from src import output
from src.models import (
    ApiKeyStatus,
    ApiKeyStatusChanged,
    ChatMessage,
    DiscussionMode,
    DiscussionResult,
    MessageAppended,
    MessagePurpose,
    NotepadUpdated,
    Speaker,
    TurnAdvanced,
)
from src.output import _slug, save_to_file


def test_slug_basic():
    assert _slug("Should we use YAML or JSON?") == "should-we-use-yaml-or-json"


def test_slug_max_len():
    long_text = "a" * 100
    assert len(_slug(long_text)) <= 40


def test_slug_special_chars():
    result = _slug("API vs. SDK (2024)")
    assert "." not in result
    assert "(" not in result
    assert ")" not in result


@pytest.fixture
def sample_messages() -> list[ChatMessage]:
    return [
        ChatMessage("What is a prime number?", Speaker.USER, MessagePurpose.USER_INPUT),
        ChatMessage("Analyst is preparing...", Speaker.SYSTEM, MessagePurpose.SYSTEM_NOTIFICATION),
        ChatMessage("A prime has two divisors.", Speaker.ANALYST, MessagePurpose.ANALYST_TO_CRITIC, elapsed_ms=1200.0),
        ChatMessage("What about 1?", Speaker.CRITIC, MessagePurpose.CRITIC_TO_ANALYST, elapsed_ms=800.0),
        ChatMessage("## Primes\n1 is not prime.", Speaker.ANALYST, MessagePurpose.FINAL_RESPONSE, elapsed_ms=2000.0),
    ]


@pytest.fixture
def sample_result(sample_messages) -> DiscussionResult:
    return DiscussionResult(
        query="What is a prime number?",
        messages=sample_messages,
        notepad="- 1 is not prime",
        mode=DiscussionMode.FIXED_TURNS,
        analyst_model="gemini-2.5-pro",
        critic_model="gpt-4.1",
        turns=1,
        total_duration_sec=10.5,
        fixed_turns=1,
    )


def test_save_to_file_creates_file(tmp_path: Path, sample_result: DiscussionResult):
    saved = save_to_file(sample_result, tmp_path / "output")
    assert saved.exists()
    assert saved.suffix == ".md"


def test_save_to_file_creates_output_dir(tmp_path: Path, sample_result: DiscussionResult):
    output_dir = tmp_path / "nested" / "output"
    assert not output_dir.exists()
    save_to_file(sample_result, output_dir)
    assert output_dir.exists()


def test_save_to_file_content(tmp_path: Path, sample_result: DiscussionResult):
    content = save_to_file(sample_result, tmp_path).read_text(encoding="utf-8")
    assert "# Dual AI Chat: What is a prime number?" in content
    assert "**Analyst:** gemini-2.5-pro" in content
    assert "**Critic:** gpt-4.1" in content
    assert "**Mode:** fixed (1 turns)" in content
    assert "**Status:** completed" in content
    assert "### Critic (to Analyst)" in content
    assert "## Final Answer" in content
    assert "1 is not prime." in content
    assert "- 1 is not prime" in content


def test_save_to_file_skips_system_notices(tmp_path: Path, sample_result: DiscussionResult):
    content = save_to_file(sample_result, tmp_path).read_text(encoding="utf-8")
    assert "Analyst is preparing" not in content


def test_save_to_file_incomplete_without_final_answer(tmp_path: Path, sample_result: DiscussionResult):
    sample_result.messages = sample_result.messages[:-1]
    sample_result.notepad = ""
    sample_result.completed = False
    sample_result.mode = DiscussionMode.AI_DRIVEN
    content = save_to_file(sample_result, tmp_path).read_text(encoding="utf-8")
    assert "## Final Answer" not in content
    assert "**Status:** incomplete" in content
    assert "**Mode:** AI-driven" in content
    assert "_(empty)_" in content


def test_save_to_file_filename_has_slug(tmp_path: Path, sample_result: DiscussionResult):
    saved = save_to_file(sample_result, tmp_path)
    assert "prime" in saved.name


def test_save_to_file_slug_override(tmp_path: Path, sample_result: DiscussionResult):
    saved = save_to_file(sample_result, tmp_path, slug_override="custom")
    assert saved.name.endswith("_custom.md")


def test_print_event_renders_every_event_kind(sample_messages, monkeypatch):
    recorded = output.Console(record=True, width=100)
    monkeypatch.setattr(output, "console", recorded)

    for message in sample_messages:
        output.print_event(MessageAppended(message))
    output.print_event(NotepadUpdated("- 1 is not prime"))
    output.print_event(TurnAdvanced(1))
    output.print_event(ApiKeyStatusChanged(ApiKeyStatus.INVALID, "key rejected"))
    output.print_event(ApiKeyStatusChanged(ApiKeyStatus.OK))

    text = recorded.export_text()
    assert "What about 1?" in text
    assert "Final Answer" in text
    assert "Notepad updated" in text
    assert "Turn 1 complete" in text
    assert "key rejected" in text
