from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, ClassVar
import time


class CommandKind(str, Enum):
    OPEN_APP = "open_app"
    SEARCH = "search"
    DIAL = "dial"
    SEND_TEXT = "send_text"
    ADD_CALENDAR_EVENT = "add_calendar_event"
    OPEN_CAMERA = "open_camera"
    PLAY_MUSIC = "play_music"
    SET_ALARM = "set_alarm"
    TELL_TIME = "tell_time"
    TELL_DATE = "tell_date"
    UNRECOGNIZED = "unrecognized"


class RunState(str, Enum):
    IDLE = "idle"
    CLASSIFYING = "classifying"
    GATED = "gated"
    EXECUTING = "executing"
    REPLYING = "replying"
    CANCELLED = "cancelled"


class EventType(str, Enum):
    COMMAND_CLASSIFIED = "command.classified"
    COMMAND_DEFERRED = "command.deferred"
    COMMAND_RESUMED = "command.resumed"
    ACTION_EXECUTED = "action.executed"
    LLM_RESPONSE = "llm.response"
    LLM_FAILED = "llm.failed"
    TURN_RECORDED = "turn.recorded"
    SPEECH_REQUESTED = "speech.requested"
    RUN_CANCELLED = "run.cancelled"
    RUN_FINISHED = "run.finished"
    PROCESSING_CHANGED = "processing.changed"
    GREETING_SHOWN = "greeting.shown"
    CONVERSATION_CLEARED = "conversation.cleared"


PHONE_CALL = "phone-call"
SEND_SMS = "send-sms"


def now_ts() -> float:
    return time.time()


@dataclass(slots=True, frozen=True)
class RawInput:
    text: str
    sequence: int
    received_at: float = field(default_factory=now_ts)


@dataclass(slots=True, frozen=True)
class Command:
    """Structured request derived from free text.

    ``raw_text`` keeps the caller's original wording and does not take part in
    equality, so inputs that only differ in case classify to equal commands.
    """

    kind: ClassVar[CommandKind]
    raw_text: str = field(default="", compare=False)


@dataclass(slots=True, frozen=True)
class OpenApp(Command):
    kind: ClassVar[CommandKind] = CommandKind.OPEN_APP
    target: str = ""
    # Canonical identifier when the target matched a known alias.
    app_id: str | None = None


@dataclass(slots=True, frozen=True)
class Search(Command):
    kind: ClassVar[CommandKind] = CommandKind.SEARCH
    query: str = ""


@dataclass(slots=True, frozen=True)
class Dial(Command):
    kind: ClassVar[CommandKind] = CommandKind.DIAL
    number: str = ""

    @property
    def is_complete(self) -> bool:
        return bool(self.number)


@dataclass(slots=True, frozen=True)
class SendText(Command):
    kind: ClassVar[CommandKind] = CommandKind.SEND_TEXT
    recipient: str = ""
    body: str = ""

    @property
    def is_complete(self) -> bool:
        return bool(self.recipient) and bool(self.body)


@dataclass(slots=True, frozen=True)
class AddCalendarEvent(Command):
    kind: ClassVar[CommandKind] = CommandKind.ADD_CALENDAR_EVENT
    title: str = ""


@dataclass(slots=True, frozen=True)
class OpenCamera(Command):
    kind: ClassVar[CommandKind] = CommandKind.OPEN_CAMERA


@dataclass(slots=True, frozen=True)
class PlayMusic(Command):
    kind: ClassVar[CommandKind] = CommandKind.PLAY_MUSIC


@dataclass(slots=True, frozen=True)
class SetAlarm(Command):
    kind: ClassVar[CommandKind] = CommandKind.SET_ALARM
    hour: int = 7
    minute: int = 0


@dataclass(slots=True, frozen=True)
class TellTime(Command):
    kind: ClassVar[CommandKind] = CommandKind.TELL_TIME


@dataclass(slots=True, frozen=True)
class TellDate(Command):
    kind: ClassVar[CommandKind] = CommandKind.TELL_DATE


@dataclass(slots=True, frozen=True)
class Unrecognized(Command):
    kind: ClassVar[CommandKind] = CommandKind.UNRECOGNIZED
    text: str = ""


@dataclass(slots=True, frozen=True)
class CommandOutcome:
    handled_locally: bool
    local_message: str | None = None


@dataclass(slots=True, frozen=True)
class PendingCommand:
    raw_input: RawInput
    capability: str


@dataclass(slots=True, frozen=True)
class ConversationTurn:
    content: str
    from_user: bool
    timestamp: float = field(default_factory=now_ts)


@dataclass(slots=True, frozen=True)
class AssistantPersona:
    display_name: str = "Panda"
    voice_preference: str = "Default"


@dataclass(slots=True, frozen=True)
class RunResult:
    raw_input: RawInput
    command: Command
    state: RunState
    turns: tuple[ConversationTurn, ...] = ()
    outcome: CommandOutcome | None = None


@dataclass(slots=True, frozen=True)
class EngineEvent:
    event_type: EventType
    sequence: int
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=now_ts)


def command_payload(command: Command) -> dict[str, Any]:
    payload: dict[str, Any] = {"kind": command.kind.value}
    for item in fields(command):
        if item.name == "raw_text":
            continue
        payload[item.name] = getattr(command, item.name)
    return payload
