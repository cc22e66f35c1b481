"""Build the per-step prompts from the templates in settings.yaml."""

from collections.abc import Sequence

from config.config_loader import PromptsConfig
from src.models import DiscussionMode, LogEntry, Role, SessionState, Speaker
from src.parser import DISCUSSION_COMPLETE_TAG, NOTEPAD_CLOSE_TAG, NOTEPAD_OPEN_TAG

_PARTNER = {Role.ANALYST: Speaker.CRITIC, Role.CRITIC: Speaker.ANALYST}


def format_discussion_log(log: Sequence[LogEntry]) -> str:
    """One "Speaker: text" line per entry, in insertion order."""
    return "\n".join(entry.render() for entry in log)


def _image_instruction(prompts: PromptsConfig, state: SessionState) -> str:
    return prompts.image_instruction if state.image is not None else ""


def _common_instructions(prompts: PromptsConfig, mode: DiscussionMode) -> str:
    if mode is not DiscussionMode.AI_DRIVEN:
        return ""
    return prompts.ai_driven_instruction.format(complete_tag=DISCUSSION_COMPLETE_TAG)


def _notepad_block(prompts: PromptsConfig, notepad: str) -> str:
    return "\n\n" + prompts.notepad_instruction.format(
        notepad=notepad or prompts.empty_notepad,
        notepad_open=NOTEPAD_OPEN_TAG,
        notepad_close=NOTEPAD_CLOSE_TAG,
    )


def opening_prompt(prompts: PromptsConfig, state: SessionState, mode: DiscussionMode) -> str:
    body = prompts.opening.format(
        user_input=state.user_input,
        image_instruction=_image_instruction(prompts, state),
        partner=Speaker.CRITIC.value,
        common_instructions=_common_instructions(prompts, mode),
    )
    return body + _notepad_block(prompts, state.notepad)


def reply_prompt(
    prompts: PromptsConfig,
    state: SessionState,
    mode: DiscussionMode,
    role: Role,
) -> str:
    """Prompt for a critic reply or an analyst counter reply.

    In AI-driven mode, when the previous speaker proposed ending, the prompt
    asks this participant to add the completion tag too if it agrees.
    """
    partner = _PARTNER[role].value
    template = prompts.critic_reply if role is Role.CRITIC else prompts.analyst_reply
    body = template.format(
        user_input=state.user_input,
        image_instruction=_image_instruction(prompts, state),
        discussion_log=format_discussion_log(state.discussion_log),
        last_speaker_text=state.last_speaker_text,
        partner=partner,
        common_instructions=_common_instructions(prompts, mode),
    )
    if mode is DiscussionMode.AI_DRIVEN and state.pending_stop:
        body += "\n" + prompts.agreement_request.format(partner=partner, complete_tag=DISCUSSION_COMPLETE_TAG)
    return body + _notepad_block(prompts, state.notepad)


def synthesis_prompt(prompts: PromptsConfig, state: SessionState) -> str:
    return prompts.synthesis.format(
        user_input=state.user_input,
        image_instruction=_image_instruction(prompts, state),
        discussion_log=format_discussion_log(state.discussion_log),
        notepad=state.notepad or prompts.empty_notepad,
        notepad_open=NOTEPAD_OPEN_TAG,
        notepad_close=NOTEPAD_CLOSE_TAG,
    )
