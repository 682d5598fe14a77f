"""Event-driven building blocks: clock and timers, circular allocator, ring buffer, messages and queues, state machine, cooperative scheduler and a framed serial link."""

__version__ = "0.1.0"

__all__ = [
    "avg",
    "cba",
    "dart",
    "hsm",
    "lock",
    "message",
    "message_queue",
    "process",
    "ringbuf",
    "scheduler",
    "strings",
    "timer",
]