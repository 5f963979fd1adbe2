from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Protocol

from panda.assistant_engine.models import (
    AssistantPersona,
    Command,
    CommandOutcome,
    ConversationTurn,
)


class LanguageModelError(RuntimeError):
    """Base class for every language model failure the orchestrator downgrades."""


class LanguageModelUnauthenticated(LanguageModelError):
    pass


class LanguageModelUnreachable(LanguageModelError):
    pass


class LanguageModelMalformed(LanguageModelError):
    pass


class CommandClassifier(Protocol):
    def classify(self, text: str) -> Command:
        """Map free text to exactly one command. Never raises."""


class CapabilityGate(Protocol):
    def is_granted(self, token: str) -> bool:
        """Return True when the host currently holds the capability."""


class DeviceActionExecutor(ABC):
    @abstractmethod
    async def execute(self, command: Command) -> CommandOutcome:
        raise NotImplementedError


class LanguageModelClient(ABC):
    @abstractmethod
    async def complete(self, prompt: str, persona: AssistantPersona) -> str:
        raise NotImplementedError


class ConversationSink(ABC):
    @abstractmethod
    def append(self, turn: ConversationTurn) -> None:
        raise NotImplementedError

    @abstractmethod
    def clear(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def count(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def turns(self) -> list[ConversationTurn]:
        raise NotImplementedError


class SpeechOutput(ABC):
    @abstractmethod
    async def speak(self, text: str) -> None:
        raise NotImplementedError


ActionHandler = Callable[[Command], CommandOutcome]
