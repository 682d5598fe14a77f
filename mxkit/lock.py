"""Lock that expires after a timeout and may then be taken over."""

from __future__ import annotations

import enum

from mxkit.timer import Clock, Timer, TimerUnit


class LockStatus(enum.Enum):
    """Outcome of a successful :meth:`Locker.lock`."""

    SUCCESS = "success"
    INTERCEPTED = "intercepted"


class LockBusyError(RuntimeError):
    """The lock is held and has not yet expired."""


class Locker:
    """Timed lock: a holder keeps it until released or until its time runs out."""

    def __init__(self, clock: Clock | None = None) -> None:
        self._timer = Timer(clock)
        self._locked = False

    @property
    def locked(self) -> bool:
        return self._locked

    def lock(self, unit: TimerUnit, duration: int) -> LockStatus:
        """Take the lock for ``duration``; an expired lock is intercepted."""
        status = LockStatus.SUCCESS
        if self._locked:
            if not self._timer.expired():
                raise LockBusyError("lock is held")
            status = LockStatus.INTERCEPTED

        self._timer.start(unit, duration)
        self._locked = True
        return status

    def release(self) -> None:
        self._locked = False

    def restart(self) -> None:
        """Extend the current hold, counting its duration from now."""
        self._timer.restart()