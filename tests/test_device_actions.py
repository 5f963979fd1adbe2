from __future__ import annotations

import asyncio
from datetime import datetime
from pathlib import Path

from panda.assistant_engine.components.classifier import classify
from panda.assistant_engine.components.executor import (
    ACTION_FAILED,
    APP_NOT_FOUND,
    DesktopActions,
    InProcessDeviceActionExecutor,
    build_desktop_executor,
)
from panda.assistant_engine.components.permissions import StaticCapabilityGate
from panda.assistant_engine.models import PHONE_CALL, SEND_SMS, CommandKind, CommandOutcome, TellTime
from panda.storage import Storage


class Recorder:
    def __init__(self, result: bool = True) -> None:
        self.result = result
        self.uris: list[str] = []
        self.launched: list[list[str]] = []
        self.sms: list[tuple[str, str]] = []

    def open_uri(self, uri: str) -> bool:
        self.uris.append(uri)
        return self.result

    def launch(self, args: list[str]) -> object:
        self.launched.append(args)
        return object()

    def send_sms(self, recipient: str, body: str) -> None:
        self.sms.append((recipient, body))


def _actions(
    recorder: Recorder,
    capabilities: StaticCapabilityGate | None = None,
    storage: Storage | None = None,
) -> DesktopActions:
    return DesktopActions(
        allowed_apps={
            "com.google.android.youtube": "xdg-open https://www.youtube.com",
            "camera": "cheese",
            "music": "rhythmbox --play",
        },
        capabilities=capabilities,
        storage=storage,
        open_uri=recorder.open_uri,
        launch=recorder.launch,
        send_sms=recorder.send_sms,
        clock=lambda: datetime(2026, 10, 17, 18, 30),
    )


def _execute(actions: DesktopActions, text: str) -> CommandOutcome:
    executor = actions.register_all(InProcessDeviceActionExecutor())
    return asyncio.run(executor.execute(classify(text)))


def test_open_known_app_launches_allowlisted_command() -> None:
    recorder = Recorder()
    outcome = _execute(_actions(recorder), "open youtube")
    assert outcome == CommandOutcome(handled_locally=True)
    assert recorder.launched == [["xdg-open", "https://www.youtube.com"]]


def test_open_unknown_app_is_not_handled() -> None:
    recorder = Recorder()
    outcome = _execute(_actions(recorder), "open snapchat")
    assert outcome.handled_locally is False
    assert outcome.local_message == APP_NOT_FOUND
    assert recorder.launched == []


def test_search_opens_google() -> None:
    recorder = Recorder()
    outcome = _execute(_actions(recorder), "search for cheap flights")
    assert outcome.local_message == "Searching Google for cheap flights"
    assert recorder.uris == ["https://www.google.com/search?q=cheap+flights"]


def test_search_without_browser_is_not_handled() -> None:
    outcome = _execute(_actions(Recorder(result=False)), "search for cats")
    assert outcome == CommandOutcome(handled_locally=False, local_message=APP_NOT_FOUND)


def test_dial_asks_for_number_when_missing() -> None:
    recorder = Recorder()
    outcome = _execute(_actions(recorder), "call mom")
    assert outcome.handled_locally is False
    assert outcome.local_message == "Please say the phone number you want to call."
    assert recorder.uris == []


def test_dial_places_call_only_with_capability() -> None:
    recorder = Recorder()
    assert _execute(_actions(recorder), "call 555 1234").local_message == "Opening dialer for 5551234"
    granted = _actions(recorder, capabilities=StaticCapabilityGate([PHONE_CALL]))
    assert _execute(granted, "call 555 1234").local_message == "Calling 5551234"
    assert recorder.uris == ["tel:5551234", "tel:5551234"]


def test_send_text_requires_recipient_and_body() -> None:
    recorder = Recorder()
    actions = _actions(recorder)
    assert _execute(actions, "send text").local_message == "Please specify who to send the message to."
    assert _execute(actions, "send text to mom").local_message == "Please include the message content."
    assert recorder.uris == []


def test_send_text_drafts_message() -> None:
    recorder = Recorder()
    outcome = _execute(_actions(recorder), "send text to mom saying running late")
    assert outcome == CommandOutcome(handled_locally=True, local_message="Drafting SMS to mom.")
    assert recorder.uris == ["sms:mom?body=running+late"]


def test_send_text_falls_back_to_sender_when_granted() -> None:
    recorder = Recorder(result=False)
    actions = _actions(recorder, capabilities=StaticCapabilityGate([SEND_SMS]))
    outcome = _execute(actions, "send text to mom saying hi")
    assert outcome.local_message == "SMS sent to mom."
    assert recorder.sms == [("mom", "hi")]

    ungranted = _execute(_actions(Recorder(result=False)), "send text to mom saying hi")
    assert ungranted.handled_locally is False


def test_calendar_event_opens_template() -> None:
    recorder = Recorder()
    outcome = _execute(_actions(recorder), "create event Dentist")
    assert outcome.local_message == "Opening calendar to add your event."
    assert recorder.uris[0].startswith("https://calendar.google.com/calendar/render?action=TEMPLATE")
    assert "text=create+event+Dentist" in recorder.uris[0]


def test_camera_and_music_launch_apps() -> None:
    recorder = Recorder()
    actions = _actions(recorder)
    assert _execute(actions, "camera please").local_message == "Opening camera."
    assert _execute(actions, "play music").local_message == "Starting your default music app."
    assert recorder.launched == [["cheese"], ["rhythmbox", "--play"]]


def test_set_alarm_is_stored(tmp_path: Path) -> None:
    storage = Storage(tmp_path / "actions.db")
    outcome = _execute(_actions(Recorder(), storage=storage), "set alarm for 6:05")
    assert outcome.local_message == "Setting alarm for 6:05"
    alarms = storage.list_alarms()
    assert [(alarm["hour"], alarm["minute"]) for alarm in alarms] == [(6, 5)]
    assert alarms[0]["label"] == "Panda AI Alarm"


def test_set_alarm_without_storage_is_not_handled() -> None:
    outcome = _execute(_actions(Recorder()), "set alarm")
    assert outcome == CommandOutcome(handled_locally=False, local_message=APP_NOT_FOUND)


def test_time_and_date_use_clock() -> None:
    actions = _actions(Recorder())
    assert _execute(actions, "what time is it").local_message == "It is 06:30 PM"
    assert _execute(actions, "what date is it").local_message == "Today is Saturday, October 17"


def test_unrecognized_has_no_handler() -> None:
    outcome = _execute(_actions(Recorder()), "tell me a joke")
    assert outcome == CommandOutcome(handled_locally=False)


def test_handler_exception_becomes_unhandled_outcome() -> None:
    def _boom(command: object) -> CommandOutcome:
        raise RuntimeError("boom")

    executor = InProcessDeviceActionExecutor()
    executor.register(CommandKind.TELL_TIME, _boom)
    outcome = asyncio.run(executor.execute(TellTime()))
    assert outcome == CommandOutcome(handled_locally=False, local_message=ACTION_FAILED)


def test_default_executor_registers_every_device_action(tmp_path: Path) -> None:
    executor = build_desktop_executor({}, storage=Storage(tmp_path / "default.db"))
    for kind in CommandKind:
        assert executor.has_handler(kind) is (kind != CommandKind.UNRECOGNIZED)
