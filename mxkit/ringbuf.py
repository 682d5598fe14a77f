"""Byte ring buffer whose size is a power of two."""

from __future__ import annotations

_MAX_SIZE = 128


class RingBuffer:
    """FIFO of bytes holding at most ``size - 1`` elements."""

    def __init__(self, size: int) -> None:
        if size < 1 or size > _MAX_SIZE or size & (size - 1):
            raise ValueError(f"size must be a power of two between 1 and {_MAX_SIZE}")
        self._data = bytearray(size)
        self._mask = size - 1
        self._put = 0
        self._get = 0

    def put(self, value: int) -> bool:
        """Append a byte; returns False when the buffer is full."""
        if not 0 <= value <= 0xFF:
            raise ValueError("value must fit in one byte")
        if ((self._put - self._get) & self._mask) == self._mask:
            return False
        self._data[self._put] = value
        self._put = (self._put + 1) & self._mask
        return True

    def get(self) -> int | None:
        """Remove and return the oldest byte, or None when empty."""
        if ((self._put - self._get) & self._mask) == 0:
            return None
        value = self._data[self._get]
        self._get = (self._get + 1) & self._mask
        return value

    def size(self) -> int:
        return self._mask + 1

    def __len__(self) -> int:
        return (self._put - self._get) & self._mask