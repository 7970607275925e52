"""Conversation memory used for retry handling and conversational prompts."""

from __future__ import annotations

import threading
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Protocol


@dataclass(frozen=True)
class ChatMessage:
    role: str
    """``user`` or ``assistant``."""

    content: str


class ConversationMemory(Protocol):
    """Protocol for stores that keep the messages of a conversation."""

    def get(self, conversation_id: str, last_n: int = 0) -> List[ChatMessage]:
        """
        Get the messages of a conversation, oldest first.

        :param conversation_id: The conversation to read
        :param last_n: Return only the most recent messages, 0 for all
        :return: The messages
        """
        ...

    def append(self, conversation_id: str, message: ChatMessage):
        ...

    def clear(self, conversation_id: str):
        ...


@dataclass
class InMemoryConversationMemory:
    """
    Keeps a bounded window of messages per conversation in process memory.
    """

    max_messages: int = 20
    """Older messages are dropped once a conversation exceeds this size."""

    _conversations: Dict[str, Deque[ChatMessage]] = field(init=False, repr=False)
    _lock: threading.Lock = field(init=False, default_factory=threading.Lock, repr=False)

    def __post_init__(self):
        self._conversations = defaultdict(lambda: deque(maxlen=self.max_messages))

    def get(self, conversation_id: str, last_n: int = 0) -> List[ChatMessage]:
        with self._lock:
            messages = list(self._conversations.get(conversation_id, ()))
        if last_n > 0:
            return messages[-last_n:]
        return messages

    def append(self, conversation_id: str, message: ChatMessage):
        with self._lock:
            self._conversations[conversation_id].append(message)

    def clear(self, conversation_id: str):
        with self._lock:
            self._conversations.pop(conversation_id, None)


def format_history(messages: List[ChatMessage]) -> str:
    """
    Render messages as a plain transcript for prompts.

    :param messages: The messages, oldest first
    :return: One ``role: content`` line per message
    """
    return "\n".join(f"{message.role}: {message.content}" for message in messages)
