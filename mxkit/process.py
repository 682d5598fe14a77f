"""Process API working on a shared default scheduler."""

from __future__ import annotations

from mxkit.scheduler import Process, ProcessState, ProcessTimer, Scheduler

_default = Scheduler(0)


def process_init(size: int) -> None:
    """Set up the default scheduler with a message pool of ``size`` bytes."""
    global _default
    _default = Scheduler(size)


def process_start(process: Process) -> None:
    _default.start_process(process)


def process_exit(process: Process) -> None:
    _default.exit_process(process)


def process_poll(process: Process | None) -> None:
    """Request a POLL event for a running process."""
    if process is not None and process.scheduler is not None:
        process.scheduler.poll(process)


def process_run() -> int:
    """Run one scheduler iteration; return the number of events still waiting."""
    return _default.run()


def process_events() -> int:
    return _default.events()


def process_is_running(process: Process) -> bool:
    return process.state is not ProcessState.NONE


def process_get_current() -> Process | None:
    return _default.current_process()


def process_handle_msg(process: Process | None, msgtype: int, payload: bytes = b"") -> None:
    """Deliver a message immediately; None addresses every process."""
    _default.handle_msg(process, msgtype, payload)


def process_send_msg(process: Process | None, msgtype: int, *args: int) -> None:
    """Queue a message whose payload is the given byte parameters.

    Raises :class:`mxkit.cba.OutOfMemoryError` when the pool is full.
    """
    _default.post_msg(process, msgtype, bytes(args))


def process_send_msg_data(process: Process | None, msgtype: int, data: bytes) -> None:
    """Queue a message carrying ``data`` as its payload."""
    _default.post_msg(process, msgtype, bytes(data))


def process_timer_start(
    timer: ProcessTimer, process: Process | None, time_ms: int, event: int
) -> None:
    """Arm ``timer`` to deliver ``event`` to ``process`` after ``time_ms``."""
    timer.process = process
    timer.event = event
    _default.timer_start(timer, time_ms)


def process_timer_stop(timer: ProcessTimer) -> None:
    _default.timer_stop(timer)


def process_timer_handler() -> None:
    """Deliver the events of all expired timers."""
    _default.timer_handler()