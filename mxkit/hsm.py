"""Hierarchical state machine with per-state millisecond timers."""

from __future__ import annotations

import enum
from typing import Any, Callable, Hashable, Mapping

_U32 = 0xFFFFFFFF


class HsmResult(enum.Enum):
    """What a state handler did with an event."""

    HANDLED = "handled"
    SUPER = "super"
    TRANS = "trans"


class HsmEvent(enum.Enum):
    """Events generated by the machine itself."""

    ENTER_STATE = "enter"
    EXIT_STATE = "exit"
    TIMER_1MS = "timer_1ms"
    TIMER_10MS = "timer_10ms"
    TIMER_100MS = "timer_100ms"
    TIMER_1S = "timer_1s"
    TIMER_10S = "timer_10s"
    TIMER_1M = "timer_1m"


class HsmTimer(enum.IntFlag):
    """Timer periods a state may subscribe to."""

    DISABLED = 0
    MS_1 = 0x01
    MS_10 = 0x02
    MS_100 = 0x04
    S_1 = 0x08
    S_10 = 0x10
    M_1 = 0x20


_TIMER_EVENTS = (
    (HsmTimer.MS_1, 1, HsmEvent.TIMER_1MS),
    (HsmTimer.MS_10, 10, HsmEvent.TIMER_10MS),
    (HsmTimer.MS_100, 100, HsmEvent.TIMER_100MS),
    (HsmTimer.S_1, 1000, HsmEvent.TIMER_1S),
    (HsmTimer.S_10, 10000, HsmEvent.TIMER_10S),
    (HsmTimer.M_1, 60000, HsmEvent.TIMER_1M),
)

Handler = Callable[["StateMachine", Any, Any], HsmResult]


class StateMachine:
    """Hierarchical state machine.

    ``handlers`` maps each state to a callable ``handler(machine, event, data)``
    returning an :class:`HsmResult`. ``parents`` maps a state to its parent;
    a handler returning SUPER passes the event on to the parent. While
    exiting on a transition, an exit handler returns SUPER to keep unwinding.
    """

    def __init__(
        self,
        initial_state: Hashable,
        handlers: Mapping[Hashable, Handler],
        parents: Mapping[Hashable, Hashable] | None = None,
    ) -> None:
        if initial_state not in handlers:
            raise KeyError(initial_state)
        self._handlers = dict(handlers)
        self._parents = dict(parents or {})
        self._state = initial_state
        self._current = initial_state
        self._unwind = 0
        self._counter = 0
        self._mask = HsmTimer.DISABLED

    @property
    def state(self) -> Hashable:
        """The state the machine is in."""
        return self._current

    # -- timers ---------------------------------------------------------

    def _timer_init(self) -> None:
        self._counter = 0
        self._mask = HsmTimer.DISABLED

    def timer_reset(self) -> None:
        """Restart the state timer counter."""
        self._counter = 0

    def timer_enable(self, mask: HsmTimer) -> None:
        self._mask |= HsmTimer(mask)

    def timer_disable(self, mask: HsmTimer) -> None:
        self._mask &= ~HsmTimer(mask)

    def timer_milis(self) -> int:
        """Milliseconds since the state was entered."""
        return self._counter

    def timer_seconds(self) -> int:
        """Seconds since the state was entered."""
        return self._counter // 1000

    def _timer_check(self, time_lapse: int) -> tuple[HsmTimer, int]:
        mask, counter = self._mask, self._counter
        if mask & HsmTimer.MS_1:
            ticks = 1
        elif mask & HsmTimer.MS_10:
            ticks = 10 - counter % 10
        elif mask & HsmTimer.MS_100:
            ticks = 100 - counter % 100
        else:
            ticks = 1000 - counter % 1000

        ticks = min(ticks, time_lapse)
        self._counter = counter = (counter + ticks) & _U32

        ready = HsmTimer.DISABLED
        for flag, period, _ in _TIMER_EVENTS:
            if mask & flag and counter % period == 0:
                ready |= flag
        return ready, time_lapse - ticks

    # -- dispatch -------------------------------------------------------

    def _ancestors(self, state: Hashable) -> list[Hashable]:
        chain = [state]
        while chain[-1] in self._parents:
            chain.append(self._parents[chain[-1]])
        return chain

    def _call(self, state: Hashable, event: Any, data: Any) -> HsmResult:
        return self._handlers[state](self, event, data)

    def transition(self, state: Hashable) -> HsmResult:
        """Request a transition to ``state``; return the result to the machine."""
        if state not in self._handlers:
            raise KeyError(state)
        target_chain = set(self._ancestors(state))
        unwind = 0
        for ancestor in self._ancestors(self._current):
            if ancestor in target_chain:
                break
            unwind += 1
        self._state = state
        self._unwind = unwind
        return HsmResult.TRANS

    def handle_event(self, event: Any, data: Any = None) -> None:
        """Deliver an event, bubbling it to parents and running transitions."""
        self._current = self._state

        while True:
            ret = self._call(self._state, event, data)
            if ret is not HsmResult.SUPER:
                break
            if self._state not in self._parents:
                self._state = self._current
                raise RuntimeError(f"state {self._state!r} has no parent to defer to")
            self._state = self._parents[self._state]

        if ret is HsmResult.TRANS and self._current != self._state:
            new_state = self._state
            self._state = self._current
            while self._unwind > 0:
                ret = self._call(self._state, HsmEvent.EXIT_STATE, None)
                if ret is HsmResult.SUPER and self._state in self._parents:
                    self._unwind -= 1
                    self._state = self._parents[self._state]
                else:
                    self._unwind = 0

            self._state = new_state
            while True:
                self._current = self._state
                self._timer_init()
                ret = self._call(self._current, HsmEvent.ENTER_STATE, None)
                if not (ret is HsmResult.TRANS and self._current != self._state):
                    break

        self._state = self._current

    def handle_time(self, time_lapse: int) -> None:
        """Advance state timers by ``time_lapse`` milliseconds, firing their events."""
        if time_lapse < 0:
            raise ValueError("time lapse must not be negative")
        while time_lapse > 0:
            ready, time_lapse = self._timer_check(time_lapse)
            for flag, _, event in _TIMER_EVENTS:
                if ready & flag:
                    self.handle_event(event)