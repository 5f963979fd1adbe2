from __future__ import annotations

from dataclasses import dataclass
import threading
from typing import Iterable

from panda.assistant_engine.interfaces import CapabilityGate
from panda.assistant_engine.models import PHONE_CALL, SEND_SMS, Command, CommandKind


CAPABILITY_REQUIREMENTS: dict[CommandKind, str] = {
    CommandKind.DIAL: PHONE_CALL,
    CommandKind.SEND_TEXT: SEND_SMS,
}


@dataclass(slots=True, frozen=True)
class GateDecision:
    allowed: bool
    capability: str | None = None
    reason: str = ""


class PermissionGate:
    def __init__(self, capabilities: CapabilityGate) -> None:
        self.capabilities = capabilities

    def required_capability(self, command: Command) -> str | None:
        return CAPABILITY_REQUIREMENTS.get(command.kind)

    def is_granted(self, token: str) -> bool:
        return bool(self.capabilities.is_granted(token))

    def missing_capability(self, command: Command) -> str | None:
        token = self.required_capability(command)
        if token is None or self.is_granted(token):
            return None
        return token

    def evaluate(self, command: Command) -> GateDecision:
        missing = self.missing_capability(command)
        if missing is not None:
            return GateDecision(
                allowed=False,
                capability=missing,
                reason=f"Capability '{missing}' is not granted.",
            )
        token = self.required_capability(command)
        if token is None:
            return GateDecision(allowed=True, reason="No capability required.")
        return GateDecision(allowed=True, capability=token, reason=f"Capability '{token}' granted.")


class StaticCapabilityGate(CapabilityGate):
    """Capability set owned by the host; grants and revocations are explicit calls."""

    def __init__(self, granted: Iterable[str] = ()) -> None:
        self._granted = {item.strip().lower() for item in granted if item.strip()}
        self._lock = threading.Lock()

    def is_granted(self, token: str) -> bool:
        with self._lock:
            return token.strip().lower() in self._granted

    def grant(self, token: str) -> bool:
        """Grant ``token``; returns True when it was not held before."""
        key = token.strip().lower()
        with self._lock:
            if not key or key in self._granted:
                return False
            self._granted.add(key)
            return True

    def revoke(self, token: str) -> None:
        with self._lock:
            self._granted.discard(token.strip().lower())

    def granted(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(sorted(self._granted))
