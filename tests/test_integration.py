"""Integration tests: real API calls, no mocks. Requires .env with at least one API key."""

import os
from pathlib import Path

import pytest
from dotenv import load_dotenv

load_dotenv()

_KEY_TO_MODEL = {
    "GEMINI_API_KEY": "gemini_flash",
    "OPENAI_API_KEY": "openai",
    "ANTHROPIC_API_KEY": "claude",
}
_AVAILABLE = [model for key, model in _KEY_TO_MODEL.items() if os.environ.get(key, "").strip()]

pytestmark = pytest.mark.integration

if not _AVAILABLE:
    pytestmark = pytest.mark.skip(reason="Need at least one of GEMINI/OPENAI/ANTHROPIC API keys")


async def test_full_fixed_discussion(tmp_path: Path):
    """Run a real one-turn discussion and save it, verifying nothing crashes."""
    import time

    from config.config_loader import load_config
    from src.cli import _build_session_config
    from src.executor import StepExecutor
    from src.models import DiscussionMode, DiscussionResult, ProcessingState
    from src.output import save_to_file
    from src.session import SessionController

    config = load_config()
    analyst = _AVAILABLE[0]
    critic = _AVAILABLE[-1]
    session_config = _build_session_config(
        config, DiscussionMode.FIXED_TURNS, 1, analyst, critic, thinking=False
    )
    controller = SessionController(
        session_config,
        config.prompts,
        executor=StepExecutor(max_attempts=3, delay_sec=2.0),
    )

    query = "Is 1 a prime number? Answer briefly."
    start = time.monotonic()
    state = await controller.start(query)

    assert state is ProcessingState.IDLE
    assert controller.last_completed_turns == 1
    assert len(controller.discussion_log) == 4

    result = DiscussionResult(
        query=query,
        messages=list(controller.messages),
        notepad=controller.notepad.content,
        mode=DiscussionMode.FIXED_TURNS,
        analyst_model=session_config.analyst.provider.model_string(),
        critic_model=session_config.critic.provider.model_string(),
        turns=controller.last_completed_turns,
        total_duration_sec=time.monotonic() - start,
        fixed_turns=1,
    )
    assert result.final_answer, "Final answer is empty"
    assert "<notepad>" not in result.final_answer

    saved = save_to_file(result, tmp_path / "output")
    content = saved.read_text(encoding="utf-8")
    assert "# Dual AI Chat" in content
    assert "## Final Answer" in content
