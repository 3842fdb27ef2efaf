# compliance_copilot/domain/messages.py

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, List, Optional, Tuple

from compliance_copilot.errors import UnknownMessage
from compliance_copilot.orchestration.contracts import ImplementationGuide


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ThreadKind(str, Enum):
    PRIMARY = "primary"
    IMAGINATION = "imagination"


class ThreadStatus(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"


@dataclass(frozen=True)
class EscalationOffer:
    suggestion_text: str


@dataclass(frozen=True)
class Message:
    """
    One turn of a thread.

    Assistant-only fields stay None on user messages. `failure` is set on the
    synthetic messages that report a failed turn.
    """
    id: int
    role: Role
    content: str
    implementation: Optional[ImplementationGuide] = None
    answer_found: Optional[bool] = None
    escalation_offer: Optional[EscalationOffer] = None
    originating_question: Optional[str] = None
    documentation_url: Optional[str] = None
    failure: Optional[str] = None

    @property
    def is_user(self) -> bool:
        return self.role is Role.USER

    @property
    def is_failure(self) -> bool:
        return self.failure is not None


class Thread:
    """
    Ordered, append-only message list with truncate-and-replay.

    Ids come from a per-thread counter that never goes backwards, so ids stay
    unique and increasing even after truncation.
    """

    def __init__(self, kind: ThreadKind, topic: Optional[str] = None) -> None:
        self.kind = kind
        self.topic = topic
        self._messages: List[Message] = []
        self._next_id = 1
        # Held for the whole turn; its FIFO wake-up order keeps turns ordered.
        self.lock = asyncio.Lock()
        # Turns queued or running; the lock alone is briefly free between two turns.
        self._pending = 0

    @property
    def status(self) -> ThreadStatus:
        return ThreadStatus.SUBMITTING if self._pending else ThreadStatus.IDLE

    @asynccontextmanager
    async def turn(self) -> AsyncIterator[None]:
        """Wait for and hold the thread for one turn."""
        self._pending += 1
        try:
            async with self.lock:
                yield
        finally:
            self._pending -= 1

    def messages(self) -> Tuple[Message, ...]:
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def _take_id(self) -> int:
        mid = self._next_id
        self._next_id += 1
        return mid

    def append_user(self, content: str) -> Message:
        msg = Message(id=self._take_id(), role=Role.USER, content=content)
        self._messages.append(msg)
        return msg

    def append_assistant(self, content: str, **fields) -> Message:
        msg = Message(id=self._take_id(), role=Role.ASSISTANT, content=content, **fields)
        self._messages.append(msg)
        return msg

    def find(self, message_id: int) -> Tuple[int, Message]:
        for idx, msg in enumerate(self._messages):
            if msg.id == message_id:
                return idx, msg
        raise UnknownMessage(f"No message with id {message_id} in the {self.kind.value} thread.")

    def truncate_from(self, message_id: int) -> List[Message]:
        """Drop the message with `message_id` and everything after it; return the dropped tail."""
        idx, _ = self.find(message_id)
        dropped = self._messages[idx:]
        del self._messages[idx:]
        return dropped

