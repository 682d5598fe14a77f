"""Message queue made of one FIFO list per priority."""

from __future__ import annotations

import enum

from mxkit.message import Message, MessageList


class Priority(enum.IntEnum):
    """Queue priorities; lower values are served first."""

    HIGH = 0
    NORMAL = 1
    LOW = 2
    ANY = 0xFF


PRIO_LENGTH = 3


class MessageQueue:
    """Prioritised message queue."""

    def __init__(self) -> None:
        self._lists = [MessageList() for _ in range(PRIO_LENGTH)]

    def get_list(self, prio: int) -> MessageList | None:
        """List of the given priority; for ANY, the first non-empty list."""
        if 0 <= prio < PRIO_LENGTH:
            return self._lists[prio]
        if prio == Priority.ANY:
            return next((lst for lst in self._lists if lst.peek() is not None), None)
        return None

    def push(self, prio: int, message: Message) -> Message:
        """Append a message to the list of the given priority."""
        if not 0 <= prio < PRIO_LENGTH:
            raise ValueError(f"invalid priority {prio}")
        return self._lists[prio].push(message)

    def pop(self) -> tuple[Priority, Message] | None:
        """Remove the most urgent message, returned with its priority."""
        for prio, lst in enumerate(self._lists):
            message = lst.pop()
            if message is not None:
                return Priority(prio), message
        return None

    def peek(self) -> tuple[Priority, Message] | None:
        """Most urgent message and its priority, left in place."""
        for prio, lst in enumerate(self._lists):
            message = lst.peek()
            if message is not None:
                return Priority(prio), message
        return None

    def find_msgtype(
        self, msgtype: int, prio: int = Priority.ANY
    ) -> tuple[Priority, Message] | None:
        """Find a message of the given type in one priority, or in all of them."""
        if 0 <= prio < PRIO_LENGTH:
            message = self._lists[prio].find_msgtype(msgtype)
            return None if message is None else (Priority(prio), message)
        for index, lst in enumerate(self._lists):
            message = lst.find_msgtype(msgtype)
            if message is not None:
                return Priority(index), message
        return None

    def __len__(self) -> int:
        return sum(len(lst) for lst in self._lists)