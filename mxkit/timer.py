"""Millisecond/second clock and software timers built on top of it."""

from __future__ import annotations

import enum

_U32 = 0xFFFFFFFF


class TimerUnit(enum.Enum):
    """Time base a timer counts in."""

    MS = "ms"
    SEC = "sec"
    CHRONO = "chrono"


class Clock:
    """Free running clock advanced explicitly by :meth:`update`.

    The millisecond counter is 32 bits wide and wraps every ~50 days;
    the second counter follows it.
    """

    def __init__(self) -> None:
        self._ms = 0
        self._s = 0
        self._chrono = 0

    def update(self, ms: int, chrono: int = 0) -> None:
        """Advance the clock by ``ms`` milliseconds and set the chrono value."""
        if ms < 0:
            raise ValueError("time cannot go backwards")
        if ms:
            self._s = (self._s + (((self._ms % 1000) + ms) & _U32) // 1000) & _U32
            self._ms = (self._ms + ms) & _U32
        self._chrono = chrono & _U32

    @property
    def milis(self) -> int:
        return self._ms

    @property
    def seconds(self) -> int:
        return self._s

    @property
    def chrono(self) -> int:
        """Chrono value, falling back to seconds when none was supplied."""
        return self._chrono if self._chrono != 0 else self._s

    def timestamp(self, unit: TimerUnit) -> int:
        """Current reading of the clock in the given unit."""
        unit = TimerUnit(unit)
        if unit is TimerUnit.MS:
            return self._ms
        if unit is TimerUnit.SEC:
            return self._s
        return self.chrono


DEFAULT_CLOCK = Clock()


def update_clock(ms: int, chrono: int = 0) -> None:
    """Advance the shared default clock."""
    DEFAULT_CLOCK.update(ms, chrono)


def timestamp(unit: TimerUnit) -> int:
    """Read the shared default clock."""
    return DEFAULT_CLOCK.timestamp(unit)


class Timer:
    """One-shot timer measured against a :class:`Clock`."""

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock if clock is not None else DEFAULT_CLOCK
        self._unit: TimerUnit | None = None
        self._duration = 0
        self._start = 0
        self._running = False

    @property
    def unit(self) -> TimerUnit | None:
        return self._unit

    @property
    def duration(self) -> int:
        return self._duration

    def start(self, unit: TimerUnit, duration: int) -> None:
        """Start counting ``duration`` units from now."""
        if duration < 0:
            raise ValueError("duration must not be negative")
        self._unit = TimerUnit(unit)
        self._duration = duration
        self._start = self._clock.timestamp(self._unit)
        self._running = True

    def stop(self) -> None:
        self._running = False

    def restart(self) -> None:
        """Start again from now with the last unit and duration."""
        if self._unit is None:
            return
        self._start = self._clock.timestamp(self._unit)
        self._running = True

    def running(self) -> bool:
        return self._running

    def expired(self) -> bool:
        """True once a running timer has reached its duration."""
        if not self._running or self._unit is None:
            return False
        elapsed = (self._clock.timestamp(self._unit) - self._start) & _U32
        return elapsed >= self._duration