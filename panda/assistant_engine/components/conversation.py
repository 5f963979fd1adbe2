from __future__ import annotations

import threading

from panda.assistant_engine.interfaces import ConversationSink
from panda.assistant_engine.models import ConversationTurn
from panda.storage import Storage


class InMemoryConversationSink(ConversationSink):
    def __init__(self) -> None:
        self._turns: list[ConversationTurn] = []
        self._lock = threading.Lock()

    def append(self, turn: ConversationTurn) -> None:
        with self._lock:
            self._turns.append(turn)

    def clear(self) -> None:
        with self._lock:
            self._turns.clear()

    def count(self) -> int:
        with self._lock:
            return len(self._turns)

    def turns(self) -> list[ConversationTurn]:
        with self._lock:
            return list(self._turns)


class SqliteConversationSink(ConversationSink):
    def __init__(self, storage: Storage) -> None:
        self.storage = storage

    def append(self, turn: ConversationTurn) -> None:
        self.storage.add_turn(turn.content, turn.from_user, turn.timestamp)

    def clear(self) -> None:
        self.storage.clear_turns()

    def count(self) -> int:
        return self.storage.count_turns()

    def turns(self) -> list[ConversationTurn]:
        return [
            ConversationTurn(
                content=str(row["content"]),
                from_user=bool(row["from_user"]),
                timestamp=float(row["timestamp"]),  # type: ignore[arg-type]
            )
            for row in self.storage.list_turns()
        ]
