from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
import logging
import shlex
import subprocess
from typing import Callable
from urllib.parse import quote_plus, urlencode
import webbrowser

from panda.assistant_engine.interfaces import ActionHandler, CapabilityGate, DeviceActionExecutor
from panda.assistant_engine.models import (
    PHONE_CALL,
    SEND_SMS,
    AddCalendarEvent,
    Command,
    CommandKind,
    CommandOutcome,
    Dial,
    OpenApp,
    Search,
    SendText,
    SetAlarm,
)
from panda.storage import Storage

LOGGER = logging.getLogger(__name__)

APP_NOT_FOUND = "I couldn't find an app on this device to do that."
ACTION_FAILED = "Something went wrong while trying to do that."
ALARM_LABEL = "Panda AI Alarm"

UriOpener = Callable[[str], bool]
ProcessLauncher = Callable[[list[str]], object]
SmsSender = Callable[[str, str], None]


class InProcessDeviceActionExecutor(DeviceActionExecutor):
    def __init__(self) -> None:
        self._handlers: dict[CommandKind, ActionHandler] = {}

    def register(self, kind: CommandKind, handler: ActionHandler) -> None:
        self._handlers[kind] = handler

    def has_handler(self, kind: CommandKind) -> bool:
        return kind in self._handlers

    async def execute(self, command: Command) -> CommandOutcome:
        if not self.has_handler(command.kind):
            return CommandOutcome(handled_locally=False)
        handler = self._handlers[command.kind]
        try:
            return await asyncio.to_thread(handler, command)
        except Exception:
            LOGGER.exception("device action %s failed", command.kind.value)
            return CommandOutcome(handled_locally=False, local_message=ACTION_FAILED)


class DesktopActions:
    """Desktop renditions of the device actions.

    URIs go to the default browser, apps are launched from an allowlist of
    commands, and alarms are recorded in storage.
    """

    def __init__(
        self,
        allowed_apps: dict[str, str],
        capabilities: CapabilityGate | None = None,
        storage: Storage | None = None,
        open_uri: UriOpener | None = None,
        launch: ProcessLauncher | None = None,
        send_sms: SmsSender | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.allowed_apps = {key.strip().lower(): value for key, value in allowed_apps.items()}
        self.capabilities = capabilities
        self.storage = storage
        self.open_uri = open_uri or webbrowser.open
        self.launch = launch or _popen
        self.send_sms = send_sms
        self.clock = clock or datetime.now

    def _granted(self, token: str) -> bool:
        return self.capabilities is not None and bool(self.capabilities.is_granted(token))

    def _open(self, uri: str, message: str) -> CommandOutcome:
        try:
            opened = self.open_uri(uri)
        except Exception:
            LOGGER.exception("failed to open %s", uri)
            opened = False
        if not opened:
            return CommandOutcome(handled_locally=False, local_message=APP_NOT_FOUND)
        return CommandOutcome(handled_locally=True, local_message=message)

    def launch_app(self, app_key: str, message: str | None = None) -> CommandOutcome:
        app_command = self.allowed_apps.get(app_key.strip().lower())
        if not app_command:
            return CommandOutcome(handled_locally=False, local_message=APP_NOT_FOUND)

        try:
            run_args = shlex.split(app_command)
        except ValueError as exc:
            LOGGER.warning("invalid app command for %s: %s", app_key, exc)
            return CommandOutcome(handled_locally=False, local_message=APP_NOT_FOUND)
        if not run_args:
            return CommandOutcome(handled_locally=False, local_message=APP_NOT_FOUND)

        try:
            self.launch(run_args)
        except OSError:
            LOGGER.exception("failed to launch %s", app_key)
            return CommandOutcome(handled_locally=False, local_message=APP_NOT_FOUND)
        return CommandOutcome(handled_locally=True, local_message=message)

    def open_app(self, command: OpenApp) -> CommandOutcome:
        return self.launch_app(command.app_id or command.target)

    def search(self, command: Search) -> CommandOutcome:
        url = f"https://www.google.com/search?q={quote_plus(command.query)}"
        return self._open(url, f"Searching Google for {command.query}")

    def dial(self, command: Dial) -> CommandOutcome:
        if not command.is_complete:
            return CommandOutcome(
                handled_locally=False,
                local_message="Please say the phone number you want to call.",
            )
        if self._granted(PHONE_CALL):
            return self._open(f"tel:{command.number}", f"Calling {command.number}")
        return self._open(f"tel:{command.number}", f"Opening dialer for {command.number}")

    def send_text(self, command: SendText) -> CommandOutcome:
        if not command.recipient:
            return CommandOutcome(
                handled_locally=False,
                local_message="Please specify who to send the message to.",
            )
        if not command.body:
            return CommandOutcome(
                handled_locally=False,
                local_message="Please include the message content.",
            )

        query = urlencode({"body": command.body}, quote_via=quote_plus)
        drafted = self._open(f"sms:{command.recipient}?{query}", f"Drafting SMS to {command.recipient}.")
        if drafted.handled_locally:
            return drafted
        if self.send_sms is not None and self._granted(SEND_SMS):
            self.send_sms(command.recipient, command.body)
            return CommandOutcome(handled_locally=True, local_message=f"SMS sent to {command.recipient}.")
        return CommandOutcome(
            handled_locally=False,
            local_message="I can't send text messages without the SMS permission.",
        )

    def add_calendar_event(self, command: AddCalendarEvent) -> CommandOutcome:
        start = datetime.now(timezone.utc) + timedelta(hours=1)
        end = start + timedelta(hours=1)
        query = urlencode(
            {
                "action": "TEMPLATE",
                "text": command.title,
                "dates": f"{start:%Y%m%dT%H%M%SZ}/{end:%Y%m%dT%H%M%SZ}",
            },
            quote_via=quote_plus,
        )
        return self._open(
            f"https://calendar.google.com/calendar/render?{query}",
            "Opening calendar to add your event.",
        )

    def open_camera(self, command: Command) -> CommandOutcome:
        return self.launch_app("camera", "Opening camera.")

    def play_music(self, command: Command) -> CommandOutcome:
        return self.launch_app("music", "Starting your default music app.")

    def set_alarm(self, command: SetAlarm) -> CommandOutcome:
        if self.storage is None:
            return CommandOutcome(handled_locally=False, local_message=APP_NOT_FOUND)
        self.storage.add_alarm(command.hour, command.minute, ALARM_LABEL)
        return CommandOutcome(
            handled_locally=True,
            local_message=f"Setting alarm for {command.hour}:{command.minute:02d}",
        )

    def tell_time(self, command: Command) -> CommandOutcome:
        return CommandOutcome(handled_locally=True, local_message=f"It is {self.clock():%I:%M %p}")

    def tell_date(self, command: Command) -> CommandOutcome:
        now = self.clock()
        return CommandOutcome(handled_locally=True, local_message=f"Today is {now:%A, %B} {now.day}")

    def register_all(self, executor: InProcessDeviceActionExecutor) -> InProcessDeviceActionExecutor:
        executor.register(CommandKind.OPEN_APP, self.open_app)
        executor.register(CommandKind.SEARCH, self.search)
        executor.register(CommandKind.DIAL, self.dial)
        executor.register(CommandKind.SEND_TEXT, self.send_text)
        executor.register(CommandKind.ADD_CALENDAR_EVENT, self.add_calendar_event)
        executor.register(CommandKind.OPEN_CAMERA, self.open_camera)
        executor.register(CommandKind.PLAY_MUSIC, self.play_music)
        executor.register(CommandKind.SET_ALARM, self.set_alarm)
        executor.register(CommandKind.TELL_TIME, self.tell_time)
        executor.register(CommandKind.TELL_DATE, self.tell_date)
        return executor


def _popen(args: list[str]) -> object:
    return subprocess.Popen(args, shell=False)


def build_desktop_executor(
    allowed_apps: dict[str, str],
    capabilities: CapabilityGate | None = None,
    storage: Storage | None = None,
) -> InProcessDeviceActionExecutor:
    actions = DesktopActions(allowed_apps, capabilities=capabilities, storage=storage)
    return actions.register_all(InProcessDeviceActionExecutor())
