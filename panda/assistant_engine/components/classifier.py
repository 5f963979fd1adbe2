from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from panda.assistant_engine.models import (
    AddCalendarEvent,
    Command,
    Dial,
    OpenApp,
    OpenCamera,
    PlayMusic,
    Search,
    SendText,
    SetAlarm,
    TellDate,
    TellTime,
    Unrecognized,
)

APP_ALIASES: tuple[tuple[str, str], ...] = (
    ("youtube", "com.google.android.youtube"),
    ("whatsapp", "com.whatsapp"),
    ("instagram", "com.instagram.android"),
)

MESSAGE_SEPARATORS: tuple[str, ...] = (" saying ", " message ", " that ")

DEFAULT_ALARM_HOUR = 7
DEFAULT_ALARM_MINUTE = 0


@dataclass(frozen=True)
class CommandRule:
    """One entry of the ordered classification cascade.

    ``matches`` sees the normalized text; ``build`` receives the normalized
    and the original text and returns the command.
    """

    name: str
    matches: Callable[[str], bool]
    build: Callable[[str, str], Command]


def normalize(text: str) -> str:
    return text.casefold().strip()


def _remainder(text: str, prefix: str) -> str:
    return text[len(prefix):].strip()


def _keep(text: str, extra: str) -> str:
    return "".join(ch for ch in text if ch.isdecimal() or ch in extra)


def resolve_app(target: str, aliases: tuple[tuple[str, str], ...] = APP_ALIASES) -> str | None:
    for alias, app_id in aliases:
        if alias in target:
            return app_id
    return None


def parse_send_text(normalized: str) -> tuple[str, str]:
    """Split "send text to <recipient> saying <body>" into its two fields.

    Returns empty strings for whatever could not be found.
    """
    _, found, target = normalized.partition("to ")
    if not found:
        return "", ""

    earliest: tuple[int, str] | None = None
    for separator in MESSAGE_SEPARATORS:
        index = target.find(separator)
        if index < 0:
            continue
        if earliest is None or index < earliest[0]:
            earliest = (index, separator)

    if earliest is None:
        return target.strip(), ""
    index, separator = earliest
    return target[:index].strip(), target[index + len(separator):].strip()


def parse_alarm_time(original: str) -> tuple[int, int]:
    parts = _keep(original, ":").split(":")
    if len(parts) < 2:
        return DEFAULT_ALARM_HOUR, DEFAULT_ALARM_MINUTE
    return _to_int(parts[0]), _to_int(parts[1])


def _to_int(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        return 0


def _starts(*prefixes: str) -> Callable[[str], bool]:
    return lambda text: any(text.startswith(prefix) for prefix in prefixes)


def _contains(*tokens: str) -> Callable[[str], bool]:
    return lambda text: any(token in text for token in tokens)


def _contains_or_starts(token: str, prefix: str) -> Callable[[str], bool]:
    return lambda text: token in text or text.startswith(prefix)


def _build_open_app(aliases: tuple[tuple[str, str], ...]) -> Callable[[str, str], Command]:
    def build(normalized: str, original: str) -> Command:
        target = _remainder(normalized, "open ")
        return OpenApp(raw_text=original, target=target, app_id=resolve_app(target, aliases))

    return build


def _build_search(prefix: str) -> Callable[[str, str], Command]:
    def build(normalized: str, original: str) -> Command:
        return Search(raw_text=original, query=_remainder(normalized, prefix))

    return build


def _build_dial(normalized: str, original: str) -> Command:
    return Dial(raw_text=original, number=_keep(_remainder(normalized, "call "), "+"))


def _build_send_text(normalized: str, original: str) -> Command:
    recipient, body = parse_send_text(normalized)
    return SendText(raw_text=original, recipient=recipient, body=body)


def _build_alarm(normalized: str, original: str) -> Command:
    hour, minute = parse_alarm_time(original)
    return SetAlarm(raw_text=original, hour=hour, minute=minute)


def build_rules(aliases: tuple[tuple[str, str], ...] = APP_ALIASES) -> tuple[CommandRule, ...]:
    # Order is significant: the first matching rule wins.
    return (
        CommandRule("open_app", _starts("open "), _build_open_app(aliases)),
        CommandRule(
            "search_google",
            _starts("search on google for "),
            _build_search("search on google for "),
        ),
        CommandRule("search", _starts("search for "), _build_search("search for ")),
        CommandRule("dial", _starts("call "), _build_dial),
        CommandRule("send_text", _starts("send sms", "send text"), _build_send_text),
        CommandRule(
            "add_calendar_event",
            _contains_or_starts("add calendar event", "create event"),
            lambda normalized, original: AddCalendarEvent(raw_text=original, title=original),
        ),
        CommandRule(
            "open_camera",
            _contains_or_starts("open camera", "camera"),
            lambda normalized, original: OpenCamera(raw_text=original),
        ),
        CommandRule(
            "play_music",
            _contains("play music"),
            lambda normalized, original: PlayMusic(raw_text=original),
        ),
        CommandRule("set_alarm", _contains_or_starts("set alarm", "wake me"), _build_alarm),
        CommandRule(
            "tell_time",
            _contains("time is it", "current time"),
            lambda normalized, original: TellTime(raw_text=original),
        ),
        CommandRule(
            "tell_date",
            _contains("date is it", "today's date"),
            lambda normalized, original: TellDate(raw_text=original),
        ),
    )


COMMAND_RULES = build_rules()


class RuleBasedCommandClassifier:
    def __init__(self, aliases: tuple[tuple[str, str], ...] | None = None) -> None:
        self.rules = COMMAND_RULES if aliases is None else build_rules(aliases)

    def classify(self, text: str) -> Command:
        normalized = normalize(text)
        rule = self._match(normalized)
        if rule is None:
            return Unrecognized(raw_text=text, text=text)
        return rule.build(normalized, text)

    def _match(self, normalized: str) -> CommandRule | None:
        for rule in self.rules:
            if rule.matches(normalized):
                return rule
        return None


_DEFAULT = RuleBasedCommandClassifier()


def classify(text: str) -> Command:
    return _DEFAULT.classify(text)
