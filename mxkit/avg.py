"""Running integer average that can discard the smallest and largest samples."""

from __future__ import annotations

_U32 = 0xFFFFFFFF


class Average:
    """Rounded average of 32-bit samples.

    The ``min_size`` smallest and ``max_size`` largest samples seen are kept
    aside and left out of the average.
    """

    def __init__(self, min_size: int = 0, max_size: int = 0) -> None:
        if min_size < 0 or max_size < 0:
            raise ValueError("extreme sizes must not be negative")
        self._min_size = min_size
        self._max_size = max_size
        self._minima: list[int] = []
        self._maxima: list[int] = []
        self._sum = 0
        self._elements = 0

    @property
    def minima(self) -> tuple[int, ...]:
        return tuple(self._minima)

    @property
    def maxima(self) -> tuple[int, ...]:
        return tuple(self._maxima)

    def add(self, value: int) -> None:
        """Feed one sample."""
        if not 0 <= value <= _U32:
            raise ValueError("value must be an unsigned 32-bit integer")

        if self._min_size:
            if len(self._minima) < self._min_size:
                self._minima.append(value)
                return
            idx = max(range(len(self._minima)), key=self._minima.__getitem__)
            if self._minima[idx] > value:
                value, self._minima[idx] = self._minima[idx], value

        if self._max_size:
            if len(self._maxima) < self._max_size:
                self._maxima.append(value)
                return
            idx = min(range(len(self._maxima)), key=self._maxima.__getitem__)
            if self._maxima[idx] < value:
                value, self._maxima[idx] = self._maxima[idx], value

        self._sum = (self._sum + value) & _U32
        self._elements += 1

    def ready(self) -> bool:
        """True once at least one sample counts towards the average."""
        return self._elements != 0

    def calculate(self) -> int:
        """Average rounded half up; 0 when nothing has been counted."""
        if not self._elements:
            return 0
        result, remainder = divmod(self._sum, self._elements)
        if self._elements >= 2 and remainder >= self._elements // 2:
            result += 1
        return result