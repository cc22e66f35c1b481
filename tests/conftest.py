"""Shared pytest fixtures."""

import asyncio
from collections.abc import Callable
from pathlib import Path

import pytest

from config.config_loader import AppConfig, DefaultsConfig, ModelConfig, PromptsConfig, RetryConfig
from src.cancellation import CancellationToken
from src.discussion import Participant, SessionConfig
from src.executor import StepExecutor
from src.models import DiscussionMode, GenerationResult, ImagePayload, Role
from src.providers.base import AIProvider


class ScriptedProvider(AIProvider):
    """Test double AIProvider that plays back scripted replies.

    Each reply is a string (returned as model text), an Exception (raised from
    the transport, e.g. ProviderError), or a GenerationResult (returned as-is,
    bypassing the base class). When the script runs out, ``default`` is used.
    Setting ``gate`` to an asyncio.Event makes every call block until it is set.
    """

    def __init__(
        self,
        provider_name: str = "mock",
        replies: list | None = None,
        default: str = "Mock response",
        model: str = "mock-model",
    ) -> None:
        super().__init__(ModelConfig(
            name=provider_name,
            sdk="test",
            model=model,
            api_key_env="DUAL_AI_CHAT_TEST_KEY",
            timeout_sec=30,
            max_tokens=1024,
        ))
        self._api_key = "test-key"
        self.replies = list(replies or [])
        self.default = default
        self.prompts: list[str] = []
        self.images: list[ImagePayload | None] = []
        self.gate: asyncio.Event | None = None

    async def generate(
        self,
        prompt: str,
        image: ImagePayload | None = None,
        token: CancellationToken | None = None,
    ) -> GenerationResult:
        if self.replies and isinstance(self.replies[0], GenerationResult):
            self.prompts.append(prompt)
            self.images.append(image)
            return self.replies.pop(0)
        return await super().generate(prompt, image=image, token=token)

    async def _complete(self, prompt: str, image: ImagePayload | None) -> str:
        self.prompts.append(prompt)
        self.images.append(image)
        if self.gate is not None:
            await self.gate.wait()
        reply = self.replies.pop(0) if self.replies else self.default
        if isinstance(reply, Exception):
            raise reply
        return reply

    @property
    def calls(self) -> int:
        return len(self.prompts)


async def wait_until(condition: Callable[[], bool], max_spins: int = 2000) -> None:
    """Yield to the event loop until condition() holds."""
    for _ in range(max_spins):
        if condition():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


def make_session_config(
    analyst: AIProvider,
    critic: AIProvider,
    mode: DiscussionMode = DiscussionMode.FIXED_TURNS,
    fixed_turns: int = 1,
) -> SessionConfig:
    return SessionConfig(
        analyst=Participant(Role.ANALYST, "You are the Analyst.", analyst),
        critic=Participant(Role.CRITIC, "You are the Critic.", critic),
        mode=mode,
        fixed_turns=fixed_turns,
    )


@pytest.fixture
def sample_model_config() -> ModelConfig:
    return ModelConfig(
        name="test_model",
        sdk="gemini",
        model="test-model-1",
        api_key_env="TEST_API_KEY",
        timeout_sec=30,
        max_tokens=1024,
        base_url=None,
    )


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(
        opening="Query: {user_input} {image_instruction}\nOpen the discussion with the {partner}.\n{common_instructions}",
        critic_reply=(
            "Query: {user_input} {image_instruction}\nLog:\n{discussion_log}\n"
            "The {partner} said: {last_speaker_text}\n{common_instructions}"
        ),
        analyst_reply=(
            "Query: {user_input} {image_instruction}\nLog:\n{discussion_log}\n"
            "The {partner} said: {last_speaker_text}\n{common_instructions}"
        ),
        synthesis=(
            "Query: {user_input} {image_instruction}\nLog:\n{discussion_log}\n"
            "Final notepad: {notepad}\nNo {notepad_open}...{notepad_close} tags."
        ),
        notepad_instruction="Notepad:\n{notepad}\nReturn it inside {notepad_open}...{notepad_close}.",
        ai_driven_instruction="Finish with {complete_tag} when the topic is exhausted.",
        agreement_request="The {partner} proposed ending with {complete_tag}; add it too if you agree.",
        image_instruction="An image is attached.",
        empty_notepad="(notepad is empty)",
        personas={"analyst": "You are the Analyst.", "critic": "You are the Critic."},
    )


@pytest.fixture
def sample_app_config(sample_prompts_config: PromptsConfig, tmp_path: Path) -> AppConfig:
    model_cfg = ModelConfig(
        name="gemini",
        sdk="gemini",
        model="gemini-2.5-pro",
        api_key_env="GEMINI_API_KEY",
        timeout_sec=60,
        max_tokens=4096,
    )
    return AppConfig(
        defaults=DefaultsConfig(
            mode=DiscussionMode.FIXED_TURNS,
            fixed_turns=1,
            analyst="gemini",
            critic="gemini",
            output_dir=tmp_path / "output",
        ),
        models={"gemini": model_cfg},
        prompts=sample_prompts_config,
        retry=RetryConfig(max_attempts=3, delay_sec=0),
        available_providers={"gemini"},
    )


@pytest.fixture
def fast_executor() -> StepExecutor:
    return StepExecutor(max_attempts=45, delay_sec=0)


@pytest.fixture
def analyst_provider() -> ScriptedProvider:
    return ScriptedProvider("analyst", default="Analyst says <notepad>analyst notes</notepad>")


@pytest.fixture
def critic_provider() -> ScriptedProvider:
    return ScriptedProvider("critic", default="Critic says <notepad>critic notes</notepad>")


@pytest.fixture
def sample_image() -> ImagePayload:
    return ImagePayload(mime_type="image/png", data="iVBORw0KGgo=")
