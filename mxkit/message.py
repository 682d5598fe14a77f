"""Messages carved from a circular allocator and a FIFO list to hold them."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Any, Iterator

from mxkit.cba import Chunk, CircularAllocator

# Bookkeeping stored in front of every message: link, receiver and length.
MESSAGE_OVERHEAD = 8


@dataclass(eq=False)
class Message:
    """A message: a one byte type followed by an arbitrary payload.

    Messages compare by identity, so a list can hold several equal-looking
    messages and still remove exactly the one asked for.
    """

    msgtype: int
    payload: bytes = b""
    receiver: Any = None
    chunk: Chunk | None = None

    def __post_init__(self) -> None:
        if not 0 <= self.msgtype <= 0xFF:
            raise ValueError("message type must fit in one byte")
        self.payload = bytes(self.payload)

    @property
    def length(self) -> int:
        """Size of the message on the wire: type byte plus payload."""
        return 1 + len(self.payload)

    @property
    def data(self) -> bytes:
        """Wire form of the message."""
        return bytes([self.msgtype]) + self.payload


def allocate_message(
    allocator: CircularAllocator, msgtype: int, payload: bytes = b""
) -> Message:
    """Create a message whose memory is taken from ``allocator``.

    Raises :class:`mxkit.cba.OutOfMemoryError` when there is no room.
    """
    message = Message(msgtype, payload)
    message.chunk = allocator.malloc(MESSAGE_OVERHEAD + message.length)
    return message


def free_message(allocator: CircularAllocator, message: Message | None) -> None:
    """Give a message's memory back to ``allocator``."""
    if message is None or message.chunk is None:
        return None
    allocator.free(message.chunk)
    message.chunk = None
    return None


class MessageList:
    """First-in first-out list of messages."""

    def __init__(self) -> None:
        self._items: deque[Message] = deque()

    def push(self, message: Message) -> Message:
        """Append a message at the tail."""
        self._items.append(message)
        return message

    def pop(self) -> Message | None:
        """Remove and return the head message, or None when empty."""
        return self._items.popleft() if self._items else None

    def peek(self) -> Message | None:
        """Return the head message without removing it."""
        return self._items[0] if self._items else None

    def remove(self, message: Message) -> Message | None:
        """Remove the given message; None if it is not listed."""
        try:
            self._items.remove(message)
        except ValueError:
            return None
        return message

    def find_msgtype(self, msgtype: int) -> Message | None:
        """First message of the given type, or None."""
        return next((m for m in self._items if m.msgtype == msgtype), None)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Message]:
        return iter(self._items)