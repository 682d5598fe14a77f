# mxkit

Building blocks for event-driven, embedded-style programs, in plain Python
with no dependencies. Time only moves when you advance it, so everything is
deterministic and easy to test.

## Modules

| Module                | What it provides                                                                  |
|-----------------------|-----------------------------------------------------------------------------------|
| `mxkit.timer`         | `Clock`, `Timer`, `TimerUnit`; a shared default clock via `update_clock` / `timestamp` |
| `mxkit.cba`           | `CircularAllocator` handing out `Chunk`s from a fixed pool; `OutOfMemoryError`     |
| `mxkit.ringbuf`       | `RingBuffer`, a power-of-two byte FIFO (at most 128 bytes)                        |
| `mxkit.strings`       | `strip_left`, `starts_with`, `to_long`                                            |
| `mxkit.lock`          | `Locker`, a lock that expires and can then be intercepted; `LockStatus`, `LockBusyError` |
| `mxkit.avg`           | `Average`, a rounded mean that can set aside the smallest and largest samples     |
| `mxkit.message`       | `Message`, `MessageList`, `allocate_message`, `free_message`                      |
| `mxkit.message_queue` | `MessageQueue` with one list per `Priority` (HIGH, NORMAL, LOW)                   |
| `mxkit.hsm`           | `StateMachine`, a hierarchical state machine with per-state timers                |
| `mxkit.scheduler`     | `Scheduler`, cooperative `Process`es driven by generators, `ProcessTimer`         |
| `mxkit.process`       | `process_*` functions working on a module-wide default scheduler                  |
| `mxkit.dart`          | `Dart`, a framed and acknowledged message link over a `DartPort`                   |

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Examples

### Clock and timers

```python
from mxkit.timer import Timer, TimerUnit, update_clock

t = Timer()                    # measured against the shared default clock
t.start(TimerUnit.MS, 100)
update_clock(100)
assert t.expired()
```

Pass your own `Clock()` to `Timer(clock)` to keep timers independent.

### Circular allocator

```python
from mxkit.cba import CircularAllocator, OutOfMemoryError

pool = CircularAllocator(50)
first = pool.malloc(25)
second = pool.malloc(10)
try:
    pool.malloc(5)
except OutOfMemoryError:
    pass
pool.free(first)               # memory is reclaimed from the oldest chunk on
```

`Chunk.data` is a writable `memoryview` on the chunk's bytes.

### Average without extremes

```python
from mxkit.avg import Average

avg = Average(min_size=3)      # the three smallest samples are left out
for value in (9, 97, 15, 6, 3, 92, 1, 99, 32, 75, 82, 64, 95):
    avg.add(value)
print(avg.calculate())         # 66
```

### Parsing integers

```python
from mxkit.strings import to_long

to_long("  -0x1F", 0)          # -31
to_long("017", 0)              # 15 (octal)
to_long("12a")                 # raises ValueError
```

### Hierarchical state machine

Each state has a handler `handler(machine, event, data)` returning an
`HsmResult`. `SUPER` passes the event to the state's parent; a transition is
requested with `return machine.transition(target)`. Entering a state delivers
`HsmEvent.ENTER_STATE`, leaving it `HsmEvent.EXIT_STATE`.

```python
from mxkit.hsm import HsmEvent, HsmResult, HsmTimer, StateMachine

def off(machine, event, data):
    if event == "toggle":
        return machine.transition("on")
    return HsmResult.HANDLED

def on(machine, event, data):
    if event is HsmEvent.ENTER_STATE:
        machine.timer_enable(HsmTimer.S_1)
    elif event is HsmEvent.TIMER_1S or event == "toggle":
        return machine.transition("off")
    return HsmResult.HANDLED

sm = StateMachine("off", {"off": off, "on": on})
sm.handle_event("toggle")      # now "on"
sm.handle_time(1000)           # the 1 s timer fires, back to "off"
assert sm.state == "off"
```

### Cooperative scheduler

A process thread is a generator function called with the first event; each
`yield` waits for the next `(event, data)` pair, and returning ends the process.

```python
from mxkit.scheduler import Process, ProcessEvent, Scheduler

def worker(process, event, data):
    while True:
        print(hex(event))
        event, data = yield

sched = Scheduler(256)         # message pool size in bytes
proc = Process("worker", worker)
sched.start_process(proc)      # prints 0x81 (ProcessEvent.INIT)
sched.post_msg(proc, 0x20, b"\x01")
sched.run()                    # prints 0x20; returns the events still waiting
```

Passing `None` as the process broadcasts to every started process.
`Scheduler.handle_msg` delivers at once instead of queueing, `Scheduler.poll`
schedules a `POLL` event, and `ProcessTimer`s started with
`Scheduler.timer_start` deliver their event from `Scheduler.timer_handler`
once expired. `mxkit.process` offers the same operations as module-level
functions (`process_init`, `process_start`, `process_send_msg`, `process_run`,
`process_timer_start`, ...) on a default scheduler. Posting into a full pool
raises `OutOfMemoryError`.

### Dart link

A frame is `SYNC | length | data | crc` (length and CRC one or two bytes,
big-endian, chosen with `len_size` and `crc_size`); the receiver answers each
frame with a single `ACK` or `BAD` byte. Requests stay pending after their
`ACK` until the matching response arrives or `RESPONSE_TIMEOUT` abandons them.

```python
from mxkit.dart import ACK, Dart, DartPort, MSG_REPORT

port = DartPort()              # pins kept in memory, sent bytes in port.sent
link = Dart(port)
link.set_callback(lambda code, data, length: print(code, data, length))
link.send_msgtype(MSG_REPORT | 0x11)
link.handle_received_char(ACK) # TRANSFER_DONE, then TRANSFER_COMPLETE
```

Feed every received byte to `Dart.handle_received_char` and call
`Dart.handle_time` periodically (every millisecond on a device). Notifications
arrive as `DartCallback` codes; `send_msg` raises `DartError` when the link
is not running or the priority is invalid, and `OutOfMemoryError` when its
pool is full. `calculate_crc` and `guess_priority` are available on their own.

## What it does not do

mxkit does no real I/O. `DartPort` only stores pin states and records the
bytes it is asked to send; to talk to a serial line and real RDY/WRK pins,
subclass it and override `send`, `get_pin` and `set_pin`. Nothing advances
the clock by itself either: call `update_clock` (or `Clock.update`) from your
own loop. There is no command-line tool.