"""Discussion orchestration: the step state machine behind one Analyst/Critic debate."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace

from config.config_loader import PromptsConfig, validate_fixed_turns
from src.cancellation import CancellationToken
from src.executor import StepExecutor
from src.models import (
    ChatMessage,
    DiscussionMode,
    DiscussionStep,
    ErrorKind,
    LogEntry,
    MessageAppended,
    MessagePurpose,
    NotepadUpdated,
    Role,
    SessionEvent,
    SessionState,
    Speaker,
    TurnAdvanced,
)
from src.notepad import NotepadStore
from src.prompts import opening_prompt, reply_prompt, synthesis_prompt
from src.providers.base import AIProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Participant:
    role: Role
    persona: str
    provider: AIProvider

    @property
    def speaker(self) -> Speaker:
        return Speaker.ANALYST if self.role is Role.ANALYST else Speaker.CRITIC


@dataclass(frozen=True)
class SessionConfig:
    """Everything a session needs that stays fixed for its whole lifetime."""

    analyst: Participant
    critic: Participant
    mode: DiscussionMode = DiscussionMode.AI_DRIVEN
    fixed_turns: int = 2

    def __post_init__(self) -> None:
        validate_fixed_turns(self.fixed_turns)


@dataclass
class Transition:
    """Result of one advance(): the next state plus what happened on the way."""

    state: SessionState
    events: list[SessionEvent] = field(default_factory=list)
    terminal: bool = False
    error_kind: ErrorKind | None = None
    error_message: str = ""


def system_message(text: str) -> MessageAppended:
    return MessageAppended(ChatMessage(text=text, sender=Speaker.SYSTEM, purpose=MessagePurpose.SYSTEM_NOTIFICATION))


class DiscussionStateMachine:
    """Sequences opening -> (reply -> counter_reply)* -> synthesis -> finished.

    advance() never mutates the state it is given. On success it returns the
    successor state; on any error it returns the input state unchanged so the
    step can be retried from scratch.
    """

    def __init__(
        self,
        config: SessionConfig,
        prompts: PromptsConfig,
        executor: StepExecutor | None = None,
        on_event: Callable[[SessionEvent], None] | None = None,
    ) -> None:
        self.config = config
        self.prompts = prompts
        self.executor = executor or StepExecutor()
        self.on_event = on_event

    def _stops_on_budget(self, state: SessionState) -> bool:
        return self.config.mode is DiscussionMode.FIXED_TURNS and state.turn >= self.config.fixed_turns

    def _plan(self, state: SessionState) -> tuple[Participant, str, MessagePurpose, str]:
        """Pick the speaker, prompt, message purpose and progress notice for the current step."""
        analyst, critic, mode = self.config.analyst, self.config.critic, self.config.mode
        step = state.next_step
        if step is DiscussionStep.OPENING:
            notice = f"{analyst.speaker.value} is preparing an opening statement for {critic.speaker.value}"
            return analyst, opening_prompt(self.prompts, state, mode), MessagePurpose.ANALYST_TO_CRITIC, notice
        if step is DiscussionStep.REPLY:
            notice = f"{critic.speaker.value} is replying to {analyst.speaker.value}"
            prompt = reply_prompt(self.prompts, state, mode, Role.CRITIC)
            return critic, prompt, MessagePurpose.CRITIC_TO_ANALYST, notice
        if step is DiscussionStep.COUNTER_REPLY:
            notice = f"{analyst.speaker.value} is replying to {critic.speaker.value}"
            prompt = reply_prompt(self.prompts, state, mode, Role.ANALYST)
            return analyst, prompt, MessagePurpose.ANALYST_TO_CRITIC, notice
        notice = f"{analyst.speaker.value} is synthesizing the discussion into a final answer"
        return analyst, synthesis_prompt(self.prompts, state), MessagePurpose.FINAL_RESPONSE, notice

    async def advance(self, state: SessionState, token: CancellationToken) -> Transition:
        """Execute the step named by state.next_step and return the transition."""
        events: list[SessionEvent] = []

        def emit(event: SessionEvent) -> None:
            events.append(event)
            if self.on_event:
                self.on_event(event)

        step = state.next_step
        if step is DiscussionStep.FINISHED:
            return Transition(state=state, events=events, terminal=True)

        if step is DiscussionStep.REPLY and self._stops_on_budget(state):
            logger.info("Fixed turn budget reached (%d), moving to synthesis", state.turn)
            return Transition(state=replace(state, next_step=DiscussionStep.SYNTHESIS), events=events)

        participant, prompt, purpose, notice = self._plan(state)
        logger.info("Step %s: %s (turn %d)", step.value, participant.speaker.value, state.turn)
        emit(system_message(f"{notice} (using {participant.provider.model_string()})..."))

        result = await self.executor.execute(
            prompt,
            participant,
            state.image,
            token,
            notify=lambda text: emit(system_message(text)),
        )
        if not result.ok:
            return Transition(
                state=state,
                events=events,
                error_kind=result.error_kind,
                error_message=result.error_message,
            )

        parsed = result.parsed
        emit(MessageAppended(ChatMessage(
            text=parsed.spoken_text,
            sender=participant.speaker,
            purpose=purpose,
            elapsed_ms=result.elapsed_ms,
        )))

        notepad = NotepadStore(state.notepad)
        if notepad.update(parsed.updated_notepad):
            emit(NotepadUpdated(notepad.content))

        new_state = replace(
            state,
            discussion_log=state.discussion_log + (LogEntry(participant.speaker, parsed.spoken_text),),
            last_speaker_text=parsed.spoken_text,
            notepad=notepad.content,
        )

        if step is DiscussionStep.SYNTHESIS:
            return Transition(state=replace(new_state, next_step=DiscussionStep.FINISHED), events=events, terminal=True)

        if step is DiscussionStep.COUNTER_REPLY:
            new_state = replace(new_state, turn=state.turn + 1)
            emit(TurnAdvanced(new_state.turn))

        if step is DiscussionStep.OPENING:
            next_step = DiscussionStep.REPLY
        elif (
            self.config.mode is DiscussionMode.AI_DRIVEN
            and state.pending_stop
            and parsed.discussion_should_end
        ):
            emit(system_message(
                f"Both participants ({self.config.analyst.speaker.value} and "
                f"{self.config.critic.speaker.value}) agreed to end the discussion."
            ))
            return Transition(state=replace(new_state, next_step=DiscussionStep.SYNTHESIS), events=events)
        elif step is DiscussionStep.REPLY:
            next_step = DiscussionStep.COUNTER_REPLY
        else:
            next_step = DiscussionStep.REPLY

        return Transition(
            state=replace(new_state, next_step=next_step, pending_stop=parsed.discussion_should_end),
            events=events,
        )
