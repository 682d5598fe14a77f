import pytest

from mxkit.timer import Clock, Timer, TimerUnit, timestamp, update_clock

U32_MAX = 0xFFFFFFFF


@pytest.fixture
def clock():
    return Clock()


def _expiry_trace(clock, timer, steps):
    """Advance the clock step by step and record whether the timer expired."""
    trace = []
    for step in steps:
        clock.update(step)
        trace.append(timer.expired())
    return trace


def test_seconds_follow_milliseconds(clock):
    for step in (250, 999, 1, 1500, 3, 7000):
        clock.update(step)
        assert clock.seconds == clock.milis // 1000


def test_timestamp_units(clock):
    clock.update(2500, 0)
    assert clock.timestamp(TimerUnit.MS) == clock.milis
    assert clock.timestamp(TimerUnit.SEC) == clock.seconds
    assert clock.timestamp(TimerUnit.CHRONO) == clock.timestamp(TimerUnit.SEC)


def test_chrono_value_used_when_set(clock):
    clock.update(0, 77)
    assert clock.timestamp(TimerUnit.CHRONO) == 77
    clock.update(10, 0)
    assert clock.timestamp(TimerUnit.CHRONO) == clock.seconds


def test_millisecond_counter_wraps(clock):
    clock.update(U32_MAX)
    clock.update(1)
    assert clock.milis == 0


def test_default_clock_functions():
    before = timestamp(TimerUnit.MS)
    update_clock(5)
    assert timestamp(TimerUnit.MS) == (before + 5) & U32_MAX


@pytest.mark.parametrize(
    "preset, unit, duration, steps, expected",
    [
        (0, TimerUnit.MS, 100, (0, 99, 1), [False, False, True]),
        (U32_MAX - 10, TimerUnit.MS, 50, (30, 20), [False, True]),
        (0, TimerUnit.SEC, 2, (1999, 1), [False, True]),
    ],
)
def test_timer_expiry(clock, preset, unit, duration, steps, expected):
    clock.update(preset)
    timer = Timer(clock)
    timer.start(unit, duration)
    assert timer.running()
    assert _expiry_trace(clock, timer, steps) == expected


def test_stopped_timer_never_expires(clock):
    timer = Timer(clock)
    assert (timer.running(), timer.expired()) == (False, False)
    timer.start(TimerUnit.MS, 10)
    timer.stop()
    clock.update(1000)
    assert (timer.running(), timer.expired()) == (False, False)


def test_restart_counts_from_now(clock):
    timer = Timer(clock)
    timer.start(TimerUnit.MS, 100)
    clock.update(60)
    timer.restart()
    assert _expiry_trace(clock, timer, (60, 40)) == [False, True]


def test_restart_without_start_does_nothing(clock):
    timer = Timer(clock)
    timer.restart()
    assert not timer.running()


@pytest.mark.parametrize(
    "action",
    [
        lambda: Clock().update(-1),
        lambda: Timer(Clock()).start(TimerUnit.MS, -5),
    ],
    ids=["negative-update", "negative-duration"],
)
def test_negative_values_rejected(action):
    with pytest.raises(ValueError):
        action()