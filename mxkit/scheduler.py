"""Cooperative process scheduler with queued messages, polling and timers."""

from __future__ import annotations

import enum
from collections.abc import Generator
from dataclasses import dataclass, field
from typing import Any, Callable

from mxkit.cba import CircularAllocator
from mxkit.message import Message, MessageList, allocate_message, free_message
from mxkit.timer import Clock, Timer, TimerUnit

# Passing this instead of a process addresses every started process.
BROADCAST = None


class ProcessEvent(enum.IntEnum):
    """Events the scheduler itself delivers to processes."""

    INIT = 0x81
    POLL = 0x82
    EXIT = 0x83
    FINISHED = 0x84
    TIMER = 0x85


class ProcessState(enum.Enum):
    """Life-cycle state of a process."""

    NONE = "none"
    RUNNING = "running"
    CALLED = "called"


Thread = Callable[["Process", int, Any], Generator[None, "tuple[int, Any]", None]]


@dataclass(eq=False)
class Process:
    """A cooperative process.

    ``thread`` is a generator function called as ``thread(process, event, data)``
    with the first event. Every ``yield`` waits for the next event and
    evaluates to an ``(event, data)`` tuple. Returning ends the process.
    ``data`` is the :class:`~mxkit.message.Message` for message events, the
    exiting :class:`Process` for ``FINISHED`` and None otherwise.
    """

    name: str
    thread: Thread
    state: ProcessState = ProcessState.NONE
    needspoll: bool = False
    scheduler: Scheduler | None = field(default=None, repr=False)
    _generator: Generator | None = field(default=None, init=False, repr=False)

    def _deliver(self, event: int, data: Any) -> bool:
        """Run the thread with one event; True when the thread has finished."""
        generator = self._generator
        try:
            if generator is None:
                generator = self.thread(self, event, data)
                if not isinstance(generator, Generator):
                    raise TypeError(f"thread of process {self.name!r} is not a generator function")
                self._generator = generator
                next(generator)
            else:
                if generator.gi_running:
                    return False
                generator.send((event, data))
        except StopIteration:
            self._generator = None
            return True
        return False

    def _close(self) -> None:
        generator, self._generator = self._generator, None
        if generator is not None and not generator.gi_running:
            generator.close()


class ProcessTimer:
    """Timer that delivers ``event`` to ``process`` once it expires."""

    def __init__(
        self,
        process: Process | None = None,
        event: int = ProcessEvent.TIMER,
        clock: Clock | None = None,
    ) -> None:
        self.process = process
        self.event = event
        self.timer = Timer(clock)

    def running(self) -> bool:
        return self.timer.running()


class Scheduler:
    """Runs processes, delivering queued messages, polls and timer events."""

    def __init__(self, size: int) -> None:
        self._allocator = CircularAllocator(size)
        self._messages = MessageList()
        self._processes: list[Process] = []
        self._current: Process | None = None
        self._poll_requested = False
        self._timers: list[ProcessTimer] = []

    @property
    def processes(self) -> tuple[Process, ...]:
        """Started processes, most recently started first."""
        return tuple(self._processes)

    # -- process life cycle -------------------------------------------

    def _call_process(self, process: Process, event: int, data: Any) -> None:
        if process.state is not ProcessState.RUNNING:
            return
        caller = self._current
        self._current = process
        process.state = ProcessState.CALLED
        try:
            ended = process._deliver(event, data)
        except BaseException:
            if process.state is ProcessState.CALLED:
                process.state = ProcessState.RUNNING
            raise
        finally:
            self._current = caller

        if ended or event == ProcessEvent.EXIT:
            self._exit(process, process)
        elif process.state is ProcessState.CALLED:
            process.state = ProcessState.RUNNING

    def _exit(self, process: Process, from_process: Process | None) -> None:
        if process not in self._processes:
            return
        old_current = self._current

        if process.state is not ProcessState.NONE:
            process.state = ProcessState.NONE
            # Let every other process release what it holds for this one.
            for other in list(self._processes):
                if other is not process:
                    self._call_process(other, ProcessEvent.FINISHED, process)
            if process is not from_process:
                self._current = process
                try:
                    process._deliver(ProcessEvent.EXIT, None)
                finally:
                    self._current = old_current
            process._close()

        if process in self._processes:
            self._processes.remove(process)
        self._current = old_current

    def start_process(self, process: Process) -> None:
        """Start a process and deliver INIT to it; already started ones are ignored."""
        if process in self._processes:
            return
        process._close()
        process.state = ProcessState.RUNNING
        process.scheduler = self
        self._processes.insert(0, process)
        self._call_process(process, ProcessEvent.INIT, None)

    def exit_process(self, process: Process) -> None:
        """Stop a process, notifying the others with FINISHED."""
        self._exit(process, self._current)

    def poll(self, process: Process | None) -> None:
        """Ask for ``process`` to receive POLL on the next run."""
        if process is None:
            return
        if process.state in (ProcessState.RUNNING, ProcessState.CALLED):
            process.needspoll = True
            self._poll_requested = True

    def current_process(self) -> Process | None:
        """The process whose thread is executing, or None."""
        return self._current

    # -- running --------------------------------------------------------

    def _utilize_poll(self) -> None:
        self._poll_requested = False
        for process in list(self._processes):
            if process.needspoll:
                process.state = ProcessState.RUNNING
                process.needspoll = False
                self._call_process(process, ProcessEvent.POLL, None)

    def _utilize_message(self) -> None:
        message = self._messages.pop()
        if message is None:
            return
        try:
            receiver = message.receiver
            if receiver is BROADCAST:
                for process in list(self._processes):
                    if self._poll_requested:
                        self._utilize_poll()
                    self._call_process(process, message.msgtype, message)
            else:
                if message.msgtype == ProcessEvent.INIT:
                    receiver.state = ProcessState.RUNNING
                self._call_process(receiver, message.msgtype, message)
        finally:
            free_message(self._allocator, message)

    def run(self) -> int:
        """Serve pending polls and one queued message; return events left."""
        if self._poll_requested:
            self._utilize_poll()
        self._utilize_message()
        return self.events()

    def events(self) -> int:
        """Number of queued messages plus one if a poll is pending."""
        return len(self._messages) + int(self._poll_requested)

    # -- messages -------------------------------------------------------

    def post_msg(self, process: Process | None, msgtype: int, payload: bytes = b"") -> Message:
        """Queue a message for later delivery.

        Raises :class:`mxkit.cba.OutOfMemoryError` when the pool is full.
        """
        message = allocate_message(self._allocator, msgtype, payload)
        message.receiver = process
        self._messages.push(message)
        return message

    def handle_msg(self, process: Process | None, msgtype: int, payload: bytes = b"") -> None:
        """Deliver a message at once, bypassing the queue."""
        message = Message(msgtype, payload, receiver=process)
        targets = list(self._processes) if process is BROADCAST else [process]
        for target in targets:
            self._call_process(target, message.msgtype, message)

    # -- timers ---------------------------------------------------------

    def timer_start(self, timer: ProcessTimer, time_ms: int) -> None:
        """(Re)start a process timer; it is registered only once."""
        timer.timer.start(TimerUnit.MS, time_ms)
        if timer not in self._timers:
            self._timers.insert(0, timer)

    def timer_stop(self, timer: ProcessTimer) -> None:
        timer.timer.stop()
        if timer in self._timers:
            self._timers.remove(timer)

    def _find_expired(self) -> ProcessTimer | None:
        for timer in self._timers:
            if timer.timer.expired():
                timer.timer.stop()
                self._timers.remove(timer)
                return timer
        return None

    def timer_handler(self) -> None:
        """Deliver the events of all expired timers."""
        while (timer := self._find_expired()) is not None:
            self.handle_msg(timer.process, timer.event)