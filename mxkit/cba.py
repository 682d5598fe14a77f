"""Circular buffer allocator: chunks are carved from a fixed buffer in order."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator

ALIGNMENT = 4
HEADER_LEN = ALIGNMENT
MIN_CHUNK_LEN = 3


class OutOfMemoryError(MemoryError):
    """The allocator has no room for the requested chunk."""


@dataclass(frozen=True)
class Chunk:
    """A block of memory handed out by :class:`CircularAllocator`."""

    offset: int
    size: int
    _buffer: bytearray = field(compare=False, repr=False)

    @property
    def data(self) -> memoryview:
        """Writable view of the chunk's bytes."""
        return memoryview(self._buffer)[self.offset:self.offset + self.size]


@dataclass
class _Header:
    length: int
    bound: bool = True


def _chunk_len(length: int) -> int:
    length = max(length, MIN_CHUNK_LEN)
    return -(-length // ALIGNMENT) * ALIGNMENT


class CircularAllocator:
    """Allocator that hands out chunks in a ring and reclaims them from the tail."""

    def __init__(self, size: int) -> None:
        if size < 0:
            raise ValueError("size must not be negative")
        self._buffer = bytearray(size)
        self._size = size
        self._headers: dict[int, _Header] = {}
        self._free_idx = 0
        self._head_idx = 0
        self._tail_idx = 0

    @property
    def size(self) -> int:
        return self._size

    def reset(self) -> None:
        """Forget every allocation."""
        self._free_idx = 0
        self._head_idx = 0
        self._tail_idx = 0
        self._headers.clear()

    def clean(self) -> None:
        """Drop the underlying buffer; every later allocation fails."""
        self._buffer = bytearray()
        self._size = 0
        self.reset()

    def _next_idx(self, idx: int) -> int:
        return (idx + HEADER_LEN + self._headers[idx].length) % self._size

    def _place(self, idx: int, length: int) -> Chunk:
        self._headers[idx] = _Header(length)
        self._head_idx = idx
        self._free_idx = (idx + HEADER_LEN + length) % self._size
        return Chunk(idx + HEADER_LEN, length, self._buffer)

    def _allocate(self, idx: int, length: int) -> Chunk:
        length = _chunk_len(length)
        needed = length + HEADER_LEN

        if idx < self._tail_idx:
            if needed < self._tail_idx - idx:
                return self._place(idx, length)
        else:
            if needed < self._size - idx:
                return self._place(idx, length)
            if self._tail_idx > 0 and needed < self._tail_idx:
                # Stretch the head chunk to the end of the buffer and wrap.
                free_len = self._size - (self._head_idx + HEADER_LEN)
                self._place(self._head_idx, free_len)
                return self._place(self._free_idx, length)

        raise OutOfMemoryError(f"no room for {length} bytes")

    def _header_idx(self, chunk: Chunk) -> int:
        idx = chunk.offset - HEADER_LEN
        if idx not in self._headers:
            raise ValueError("chunk was not allocated by this allocator")
        return idx

    def malloc(self, length: int) -> Chunk:
        """Allocate a chunk of at least ``length`` bytes."""
        if length < 0:
            raise ValueError("length must not be negative")
        return self._allocate(self._free_idx, length)

    def realloc(self, chunk: Chunk | None, length: int) -> Chunk | None:
        """Grow a chunk; only the most recently allocated one may grow."""
        if chunk is None:
            return None
        idx = self._header_idx(chunk)
        header = self._headers[idx]
        if header.length > length:
            return chunk
        if idx != self._head_idx:
            raise ValueError("only the most recently allocated chunk may be reallocated")

        prev_len = header.length
        new_chunk = self._allocate(self._head_idx, length)
        if new_chunk.offset != chunk.offset:
            self._buffer[new_chunk.offset:new_chunk.offset + prev_len] = bytes(
                self._buffer[chunk.offset:chunk.offset + prev_len]
            )
            self.free(chunk)
        return new_chunk

    def free(self, chunk: Chunk | None) -> None:
        """Release a chunk; memory is reclaimed once everything before it is free."""
        if chunk is None:
            return None
        idx = self._header_idx(chunk)
        self._headers[idx].bound = False

        if idx == self._tail_idx:
            while idx != self._free_idx:
                if self._headers[idx].bound:
                    break
                next_idx = self._next_idx(idx)
                del self._headers[idx]
                idx = next_idx
                self._tail_idx = idx

            if self._tail_idx == self._free_idx:
                self.reset()
        return None

    def __iter__(self) -> Iterator[Chunk]:
        """Iterate over chunks still in use, oldest first."""
        idx = self._tail_idx
        while idx != self._free_idx:
            header = self._headers[idx]
            if header.bound:
                yield Chunk(idx + HEADER_LEN, header.length, self._buffer)
            idx = self._next_idx(idx)