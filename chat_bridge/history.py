"""
Conversation store contract and an in-memory implementation.

The application owns real persistence; the core only needs to append a
finished question/answer pair and to read a conversation back.
"""

from datetime import datetime
from typing import Optional, Protocol

from pydantic import BaseModel, Field

from chat_bridge.config import ConversationTurn, Provider


class HistoryEntry(BaseModel):
    """One persisted question/answer pair."""
    question: str
    answer: str
    timestamp: datetime = Field(default_factory=datetime.now)
    image: Optional[bytes] = None
    engine: str = ""
    provider: Optional[Provider] = None
    model: Optional[str] = None

    def to_turns(self) -> list[ConversationTurn]:
        """Expand into a user turn followed by an assistant turn."""
        return [
            ConversationTurn(role="user", content=self.question, image=self.image, timestamp=self.timestamp),
            ConversationTurn(role="assistant", content=self.answer, timestamp=self.timestamp),
        ]


class ConversationStore(Protocol):
    """Persistence used by GenerationSession."""

    def append_turn(
        self,
        group_id: str,
        question: str,
        answer: str,
        image: Optional[bytes],
        engine: str,
        provider: Provider,
        model: str,
    ) -> None:
        ...

    def fetch_history(self, group_id: str) -> list[HistoryEntry]:
        """Return entries for a conversation, oldest first."""
        ...


class InMemoryConversationStore:
    """Dict-backed ConversationStore for the CLI and tests."""

    def __init__(self):
        self._groups: dict[str, list[HistoryEntry]] = {}

    def append_turn(
        self,
        group_id: str,
        question: str,
        answer: str,
        image: Optional[bytes],
        engine: str,
        provider: Provider,
        model: str,
    ) -> None:
        self._groups.setdefault(group_id, []).append(
            HistoryEntry(
                question=question,
                answer=answer,
                image=image,
                engine=engine,
                provider=provider,
                model=model,
            )
        )

    def fetch_history(self, group_id: str) -> list[HistoryEntry]:
        return list(self._groups.get(group_id, []))
