import pytest

from mxkit.cba import OutOfMemoryError
from mxkit.message import Message
from mxkit.scheduler import (
    BROADCAST,
    Process,
    ProcessEvent,
    ProcessState,
    ProcessTimer,
    Scheduler,
)
from mxkit.timer import Clock


def recorder(log, name, stop_on=None):
    def thread(process, event, data):
        while True:
            log.append((name, event, data))
            if event == ProcessEvent.EXIT or event == stop_on:
                break
            event, data = yield

    return Process(name, thread)


def current_checker(seen):
    """Process that records whether it is the current process when called."""

    def thread(process, event, data):
        while True:
            seen.append(process.scheduler.current_process() is process)
            event, data = yield

    return Process("checker", thread)


def reentrant(log):
    """Process that tries to deliver a message to itself synchronously."""

    def thread(process, event, data):
        while True:
            log.append(event)
            if event == 0x50:
                process.scheduler.handle_msg(process, 0x51)
            event, data = yield

    return Process("reentrant", thread)


def events_of(log, name):
    return [event for who, event, _ in log if who == name]


@pytest.fixture
def log():
    return []


@pytest.fixture
def sched():
    return Scheduler(256)


def started(sched, log, *names):
    processes = [recorder(log, name) for name in names]
    for process in processes:
        sched.start_process(process)
    log.clear()
    return processes


def test_start_process_delivers_init(sched, log):
    a = recorder(log, "a")
    sched.start_process(a)
    assert log == [("a", ProcessEvent.INIT, None)]
    assert a.state is ProcessState.RUNNING
    assert a.scheduler is sched
    assert sched.processes == (a,)


def test_start_twice_is_ignored(sched, log):
    a = recorder(log, "a")
    sched.start_process(a)
    sched.start_process(a)
    assert events_of(log, "a") == [ProcessEvent.INIT]
    assert sched.processes == (a,)


def test_current_process_inside_and_outside_handler(sched):
    seen = []
    sched.start_process(current_checker(seen))
    assert seen == [True]
    assert sched.current_process() is None


def test_posted_messages_are_delivered_in_order(sched, log):
    (a,) = started(sched, log, "a")
    sent = [(0x40, b"\x01"), (0x41, b"\x02\x03"), (0x42, b"")]
    for msgtype, payload in sent:
        sched.post_msg(a, msgtype, payload)
    assert sched.events() == 3
    assert log == []

    assert [sched.run() for _ in sent] == [2, 1, 0]
    assert all(isinstance(data, Message) for _, _, data in log)
    assert [(data.msgtype, data.payload) for _, _, data in log] == sent


def test_post_without_payload_is_empty(sched, log):
    (a,) = started(sched, log, "a")
    sched.post_msg(a, 0x42)
    sched.run()
    assert log[-1][2].payload == b""


def test_run_with_nothing_to_do(sched):
    assert sched.run() == 0


def test_broadcast_reaches_most_recent_first(sched, log):
    started(sched, log, "a", "b")
    sched.post_msg(BROADCAST, 0x40)
    sched.run()
    assert [(who, event) for who, event, _ in log] == [("b", 0x40), ("a", 0x40)]


def test_exit_process_notifies_others(sched, log):
    a, b = started(sched, log, "a", "b")

    sched.exit_process(b)
    assert ("a", ProcessEvent.FINISHED, b) in log
    assert events_of(log, "b") == [ProcessEvent.EXIT]
    assert b.state is ProcessState.NONE
    assert sched.processes == (a,)

    count = len(log)
    sched.exit_process(b)
    assert len(log) == count


def test_thread_that_returns_is_removed(sched, log):
    (a,) = started(sched, log, "a")
    b = recorder(log, "b", stop_on=0x41)
    sched.start_process(b)
    log.clear()

    sched.post_msg(b, 0x41)
    sched.run()
    assert sched.processes == (a,)
    assert b.state is ProcessState.NONE
    assert ("a", ProcessEvent.FINISHED, b) in log
    assert ProcessEvent.EXIT not in events_of(log, "b")


def test_poll_is_served_on_run(sched, log):
    (a,) = started(sched, log, "a")
    sched.poll(a)
    assert sched.events() == 1
    assert log == []
    assert sched.run() == 0
    assert events_of(log, "a") == [ProcessEvent.POLL]
    assert a.needspoll is False


def test_poll_of_stopped_process_is_ignored(sched, log):
    sched.poll(recorder(log, "c"))
    sched.poll(None)
    assert sched.events() == 0


def test_handle_msg_is_synchronous(sched, log):
    (a,) = started(sched, log, "a")
    sched.handle_msg(a, 0x40, b"\x07")
    assert (log[-1][1], log[-1][2].payload) == (0x40, b"\x07")
    assert sched.events() == 0


def test_post_msg_out_of_memory():
    sched = Scheduler(16)
    with pytest.raises(OutOfMemoryError):
        sched.post_msg(None, 0x40)
    assert sched.events() == 0


def test_memory_is_reclaimed_after_delivery(log):
    sched = Scheduler(64)
    (a,) = started(sched, log, "a")
    for _ in range(50):
        sched.post_msg(a, 0x40, b"\x01\x02")
        assert sched.run() == 0
    assert len(log) == 50


def test_process_is_not_reentered(sched):
    log = []
    p = reentrant(log)
    sched.start_process(p)
    sched.handle_msg(p, 0x50)
    assert log == [ProcessEvent.INIT, 0x50]
    assert p.state is ProcessState.RUNNING


def test_init_message_restores_running_state(sched, log):
    a = recorder(log, "a")
    sched.start_process(a)
    a.state = ProcessState.NONE
    sched.post_msg(a, ProcessEvent.INIT)
    sched.run()
    assert a.state is ProcessState.RUNNING
    assert events_of(log, "a") == [ProcessEvent.INIT, ProcessEvent.INIT]


def test_non_generator_thread_is_rejected(sched):
    with pytest.raises(TypeError):
        sched.start_process(Process("plain", lambda process, event, data: None))


def _tick(sched, clock, ms):
    clock.update(ms)
    sched.timer_handler()


def test_timer_fires_once_after_expiry(sched, log):
    clock = Clock()
    (a,) = started(sched, log, "a")

    timer = ProcessTimer(a, 0x60, clock)
    sched.timer_start(timer, 100)
    assert timer.running()
    _tick(sched, clock, 0)
    assert log == []

    _tick(sched, clock, 100)
    assert events_of(log, "a") == [0x60]
    assert not timer.running()

    _tick(sched, clock, 100)
    assert events_of(log, "a") == [0x60]


def test_timer_started_twice_fires_once(sched, log):
    clock = Clock()
    (a,) = started(sched, log, "a")

    timer = ProcessTimer(a, 0x61, clock)
    sched.timer_start(timer, 100)
    sched.timer_start(timer, 100)
    _tick(sched, clock, 100)
    assert events_of(log, "a") == [0x61]


def test_broadcast_timer_and_stop(sched, log):
    clock = Clock()
    started(sched, log, "a", "b")

    fired = ProcessTimer(BROADCAST, 0x62, clock)
    stopped = ProcessTimer(BROADCAST, 0x63, clock)
    sched.timer_start(fired, 50)
    sched.timer_start(stopped, 50)
    sched.timer_stop(stopped)
    assert not stopped.running()

    _tick(sched, clock, 50)
    assert sorted(who for who, _, _ in log) == ["a", "b"]
    assert {event for _, event, _ in log} == {0x62}