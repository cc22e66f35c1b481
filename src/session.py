"""Session controller: start/pause/resume/stop around the discussion state machine."""

import logging
from collections.abc import Callable

from config.config_loader import PromptsConfig
from src.cancellation import CancellationToken
from src.discussion import DiscussionStateMachine, SessionConfig, Transition, system_message
from src.executor import StepExecutor
from src.models import (
    ApiKeyStatus,
    ApiKeyStatusChanged,
    ChatMessage,
    DiscussionStep,
    ErrorKind,
    ImagePayload,
    LogEntry,
    MessageAppended,
    MessagePurpose,
    NotepadUpdated,
    ProcessingState,
    ProcessingStateChanged,
    SessionEvent,
    SessionState,
    Speaker,
    TurnAdvanced,
)
from src.notepad import NotepadStore

logger = logging.getLogger(__name__)

_KEY_STATUS = {
    ErrorKind.API_KEY_MISSING: ApiKeyStatus.MISSING,
    ErrorKind.API_KEY_INVALID: ApiKeyStatus.INVALID,
}


class SessionController:
    """Owns the one SessionState of a discussion, its cancellation token and its processing state.

    Steps run strictly one at a time inside ``_run``. ``pause`` and ``stop``
    are plain methods that fire the current token; the loop notices and exits.
    """

    def __init__(
        self,
        config: SessionConfig,
        prompts: PromptsConfig,
        executor: StepExecutor | None = None,
        notepad: NotepadStore | None = None,
        listener: Callable[[SessionEvent], None] | None = None,
    ) -> None:
        self.config = config
        self._machine = DiscussionStateMachine(config, prompts, executor, on_event=self._dispatch)
        self._listeners: list[Callable[[SessionEvent], None]] = [listener] if listener else []
        self._processing_state = ProcessingState.IDLE
        self._session: SessionState | None = None
        self._token: CancellationToken | None = None

        self.notepad = notepad or NotepadStore()
        self.messages: list[ChatMessage] = []
        self.discussion_log: list[LogEntry] = []
        self.current_turn = 0
        self.last_completed_turns = 0
        self.api_key_status = ApiKeyStatus.OK

    @property
    def processing_state(self) -> ProcessingState:
        return self._processing_state

    @property
    def session_state(self) -> SessionState | None:
        return self._session

    def _dispatch(self, event: SessionEvent) -> None:
        if isinstance(event, MessageAppended):
            self.messages.append(event.message)
        elif isinstance(event, NotepadUpdated):
            self.notepad.update(event.content)
        elif isinstance(event, TurnAdvanced):
            self.current_turn = event.turn
        elif isinstance(event, ApiKeyStatusChanged):
            self.api_key_status = event.status
        for listener in self._listeners:
            listener(event)

    def _notify(self, text: str) -> None:
        self._dispatch(system_message(text))

    def _set_processing_state(self, state: ProcessingState) -> None:
        if state is self._processing_state:
            return
        self._processing_state = state
        self._dispatch(ProcessingStateChanged(state))

    async def start(self, query: str, image: ImagePayload | None = None) -> ProcessingState:
        """Begin a new discussion and run it until it finishes, pauses or fails."""
        if self._processing_state is not ProcessingState.IDLE:
            logger.warning("start() ignored: session is %s", self._processing_state.value)
            return self._processing_state
        if not query.strip() and image is None:
            logger.warning("start() ignored: empty query and no image")
            return self._processing_state

        self.discussion_log = []
        self.current_turn = 0
        self._set_processing_state(ProcessingState.PROCESSING)
        self._dispatch(ApiKeyStatusChanged(ApiKeyStatus.OK))
        self._dispatch(MessageAppended(ChatMessage(
            text=query,
            sender=Speaker.USER,
            purpose=MessagePurpose.USER_INPUT,
            image=image,
        )))
        self._session = SessionState(
            next_step=DiscussionStep.OPENING,
            user_input=query,
            image=image,
            notepad=self.notepad.content,
        )
        return await self._run()

    def pause(self) -> bool:
        """Cancel the in-flight call and keep the snapshot for resume(). Only valid while processing."""
        if self._processing_state is not ProcessingState.PROCESSING:
            return False
        self._set_processing_state(ProcessingState.PAUSED)
        if self._token is not None:
            self._token.cancel()
        self._notify("Discussion paused.")
        return True

    async def resume(self) -> ProcessingState:
        """Continue from the step that was interrupted. Only valid while paused."""
        if self._processing_state is not ProcessingState.PAUSED or self._session is None:
            logger.warning("resume() ignored: session is %s", self._processing_state.value)
            return self._processing_state
        self._set_processing_state(ProcessingState.PROCESSING)
        self._notify("Resuming discussion...")
        return await self._run()

    def stop(self) -> None:
        """Cancel everything and discard the session. Valid from any state."""
        if self._token is not None:
            self._token.cancel()
        self._token = None
        self._session = None
        self.discussion_log = []
        self.current_turn = 0
        self.last_completed_turns = 0
        self._set_processing_state(ProcessingState.IDLE)

    async def _run(self) -> ProcessingState:
        token = CancellationToken()
        self._token = token
        try:
            while self._processing_state is ProcessingState.PROCESSING and not token.cancelled:
                transition = await self._machine.advance(self._session, token)
                if self._token is not token:
                    # stopped, or a newer run took over while this step was in flight
                    break
                if transition.error_kind is ErrorKind.CANCELLED:
                    if self._processing_state is ProcessingState.PROCESSING:
                        # the transport aborted on its own; keep the step resumable
                        logger.warning("Step %s cancelled by the backend", self._session.next_step.value)
                        self._set_processing_state(ProcessingState.PAUSED)
                    break
                if transition.error_kind is not None:
                    self._fail(transition)
                    break
                self._session = transition.state
                self.discussion_log = list(self._session.discussion_log)
                if transition.terminal:
                    self._finish()
                    break
        except Exception as exc:
            logger.exception("Discussion loop failed")
            self._notify(f"Unexpected error during processing: {exc}")
            self._set_processing_state(ProcessingState.IDLE)
        return self._processing_state

    def _fail(self, transition: Transition) -> None:
        logger.error("Step %s failed: %s %s", transition.state.next_step.value,
                     transition.error_kind.value, transition.error_message)
        key_status = _KEY_STATUS.get(transition.error_kind)
        if key_status is not None:
            self._dispatch(ApiKeyStatusChanged(key_status, transition.error_message))
            if transition.error_message:
                self._notify(transition.error_message)
        elif transition.error_kind is ErrorKind.UNKNOWN:
            self._notify(transition.error_message)
        self._set_processing_state(ProcessingState.IDLE)

    def _finish(self) -> None:
        self.last_completed_turns = self._session.turn
        logger.info("Discussion finished after %d turn(s)", self.last_completed_turns)
        self._session = None
        self._token = None
        self._set_processing_state(ProcessingState.IDLE)
