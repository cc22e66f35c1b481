"""Pure dataclasses and enums for the Dual AI Chat discussion. No logic, no deps."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class ProcessingState(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    PAUSED = "paused"


class DiscussionStep(str, Enum):
    OPENING = "opening"
    REPLY = "reply"                  # critic answers the analyst
    COUNTER_REPLY = "counter_reply"  # analyst answers the critic
    SYNTHESIS = "synthesis"
    FINISHED = "finished"


class DiscussionMode(str, Enum):
    FIXED_TURNS = "fixed"
    AI_DRIVEN = "ai-driven"


class Role(str, Enum):
    ANALYST = "analyst"
    CRITIC = "critic"


class Speaker(str, Enum):
    USER = "User"
    ANALYST = "Analyst"
    CRITIC = "Critic"
    SYSTEM = "System"


class MessagePurpose(str, Enum):
    USER_INPUT = "user-input"
    SYSTEM_NOTIFICATION = "system-notification"
    ANALYST_TO_CRITIC = "analyst-to-critic"
    CRITIC_TO_ANALYST = "critic-to-analyst"
    FINAL_RESPONSE = "final-response"


class ErrorKind(str, Enum):
    API_KEY_MISSING = "ApiKeyMissing"
    API_KEY_INVALID = "ApiKeyInvalid"
    QUOTA_EXCEEDED = "QuotaExceeded"
    API_COMMUNICATION = "ApiCommunicationError"
    CANCELLED = "Cancelled"
    UNKNOWN = "Unknown"


class ApiKeyStatus(str, Enum):
    OK = "ok"
    MISSING = "missing"
    INVALID = "invalid"


@dataclass(frozen=True)
class ImagePayload:
    mime_type: str
    data: str  # base64, no data-URL prefix


@dataclass(frozen=True)
class LogEntry:
    speaker: Speaker
    text: str

    def render(self) -> str:
        return f"{self.speaker.value}: {self.text}"


@dataclass(frozen=True)
class ParsedResponse:
    spoken_text: str
    discussion_should_end: bool = False
    updated_notepad: str | None = None


@dataclass(frozen=True)
class GenerationResult:
    """What a provider hands back for one call. error_kind None means success."""

    text: str
    elapsed_ms: float
    error_kind: ErrorKind | None = None


@dataclass(frozen=True)
class StepResult:
    elapsed_ms: float
    parsed: ParsedResponse | None = None
    error_kind: ErrorKind | None = None
    error_message: str = ""

    @property
    def ok(self) -> bool:
        return self.error_kind is None and self.parsed is not None


@dataclass(frozen=True)
class SessionState:
    next_step: DiscussionStep
    user_input: str
    image: ImagePayload | None = None
    discussion_log: tuple[LogEntry, ...] = ()
    last_speaker_text: str = ""
    turn: int = 0
    pending_stop: bool = False
    notepad: str = ""


@dataclass
class ChatMessage:
    text: str
    sender: Speaker
    purpose: MessagePurpose
    timestamp: datetime = field(default_factory=datetime.now)
    elapsed_ms: float | None = None
    image: ImagePayload | None = None


@dataclass
class DiscussionResult:
    query: str
    messages: list[ChatMessage]
    notepad: str
    mode: DiscussionMode
    analyst_model: str
    critic_model: str
    turns: int
    total_duration_sec: float
    fixed_turns: int | None = None   # only meaningful in fixed mode
    completed: bool = True           # False when the session ended on an error or was stopped

    @property
    def final_answer(self) -> str | None:
        finals = [m.text for m in self.messages if m.purpose is MessagePurpose.FINAL_RESPONSE]
        return finals[-1] if finals else None


# --- Session events ---

@dataclass(frozen=True)
class MessageAppended:
    message: ChatMessage


@dataclass(frozen=True)
class NotepadUpdated:
    content: str


@dataclass(frozen=True)
class TurnAdvanced:
    turn: int


@dataclass(frozen=True)
class ProcessingStateChanged:
    state: ProcessingState


@dataclass(frozen=True)
class ApiKeyStatusChanged:
    status: ApiKeyStatus
    message: str = ""


SessionEvent = MessageAppended | NotepadUpdated | TurnAdvanced | ProcessingStateChanged | ApiKeyStatusChanged
