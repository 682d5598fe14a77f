"""Framed, acknowledged message transport over a UART with RDY/WRK handshake pins.

A frame is ``SYNC | length | data | crc``; the length and the CRC are
big-endian and one or two bytes wide. The receiver answers every frame
with a single ``ACK`` or ``BAD`` byte. Requests stay pending after being
acknowledged until the matching response arrives or a timeout abandons them.
"""

from __future__ import annotations

import enum
from typing import Callable, Optional

from mxkit.cba import CircularAllocator
from mxkit.message import Message, MessageList, allocate_message, free_message
from mxkit.message_queue import PRIO_LENGTH, MessageQueue, Priority
from mxkit.timer import Clock, Timer, TimerUnit

# Control bytes.
SYNC = 0x55
ACK = 0x06
BAD = 0x15
CAN = 0x18
DONE = 0x04
EOC = 0x03

# Message type layout: two class bits and a six bit identifier.
MSG_REPORT = 0x00
MSG_REQUEST = 0x40
MSG_RESPONSE = 0x80
MSG_TYPE_MASK = 0xC0
MSG_ID_MASK = 0x3F

PRIO_RESPONSE = Priority.HIGH
PRIO_REPORT = Priority.NORMAL
PRIO_REQUEST = Priority.LOW
PRIO_ANY = Priority.ANY

# Timeouts in milliseconds.
BYTE_TIMEOUT = 30
CLOSING_TIMEOUT = 50
CHILL_TIMEOUT = 100
ACK_TIMEOUT = 300
WAKEUP_TIMEOUT = 500
RESPONSE_TIMEOUT = 3000

WAKEUP_ATTEMPTS = 3
TX_ATTEMPTS = 3


class DartStatus(enum.Enum):
    """Outcome of an operation that did not fail."""

    SUCCESS = "success"
    PENDING = "pending"
    WAITING = "waiting"
    IDLE = "idle"


class DartCallback(enum.Enum):
    """Notifications passed to the user callback."""

    TRANSFER_IMPOSSIBLE = "transfer_impossible"
    WAITING = "waiting"
    TRANSFER_COMPLETE = "transfer_complete"
    TRANSFER_FAILURE = "transfer_failure"
    TRANSFER_DONE = "transfer_done"
    MESSAGE_ABANDONED = "message_abandoned"
    MESSAGE_RECEIVED = "message_received"
    TRANSFER_INCOMPLETE = "transfer_incomplete"
    TRANSFER_CORRUPTED = "transfer_corrupted"
    IDLE = "idle"


class DartPin(enum.Enum):
    """Handshake lines: RDY is driven by the peer, WRK by this side."""

    RDY = "rdy"
    WRK = "wrk"


class DartError(RuntimeError):
    """A message cannot be sent."""


class DartPort:
    """Serial line and handshake pins used by :class:`Dart`.

    This implementation keeps pin states in memory and records every block
    sent; subclass it to drive real hardware.
    """

    def __init__(self, rdy: bool = True, wrk: bool = True) -> None:
        self.pins = {DartPin.RDY: rdy, DartPin.WRK: wrk}
        self.sent: list[bytes] = []

    def send(self, data: bytes) -> None:
        self.sent.append(bytes(data))

    def get_pin(self, pin: DartPin) -> bool:
        return self.pins[DartPin(pin)]

    def set_pin(self, pin: DartPin, state: bool) -> None:
        self.pins[DartPin(pin)] = bool(state)


Callback = Callable[[DartCallback, Optional[bytes], Optional[int]], None]
DeferredCallback = Callable[["Dart", int], bool]


def calculate_crc(data: bytes, crc_size: int = 1) -> int:
    """Frame checksum: XOR for one byte, CRC-16/CCITT for two, 0 for none."""
    if crc_size == 1:
        crc = 0xFF
        for byte in data:
            crc ^= byte
        return crc
    if crc_size == 2:
        crc = 0xFFFF
        for byte in data:
            x = ((crc >> 8) ^ byte) & 0xFF
            x ^= x >> 4
            crc = ((crc << 8) ^ (x << 12) ^ (x << 5) ^ x) & 0xFFFF
        return crc
    if crc_size == 0:
        return 0
    raise ValueError(f"unsupported crc size {crc_size}")


def guess_priority(msgtype: int) -> Priority:
    """Priority implied by the message class; ANY when it cannot be told."""
    return {
        MSG_REPORT: PRIO_REPORT,
        MSG_REQUEST: PRIO_REQUEST,
        MSG_RESPONSE: PRIO_RESPONSE,
    }.get(msgtype & MSG_TYPE_MASK, PRIO_ANY)


class Dart:
    """One end of the link: queues outgoing messages and parses incoming bytes.

    ``handle_received_char`` is fed every received byte and ``handle_time``
    is called periodically (every millisecond on a device).
    """

    def __init__(
        self,
        port: DartPort | None = None,
        mpool_size: int = 512,
        rx_buffer_size: int = 128,
        *,
        clock: Clock | None = None,
        len_size: int = 1,
        crc_size: int = 1,
    ) -> None:
        if len_size not in (1, 2):
            raise ValueError("length field must be 1 or 2 bytes")
        if crc_size not in (0, 1, 2):
            raise ValueError("crc field must be 0, 1 or 2 bytes")
        self.port = port if port is not None else DartPort()
        self.len_size = len_size
        self.crc_size = crc_size
        self._callback: Callback | None = None
        self._deferred: DeferredCallback | None = None
        self._allocator = CircularAllocator(mpool_size)
        self._queue = MessageQueue()
        self._rx = bytearray()
        self._rx_size = rx_buffer_size
        self._wakeup_timer = Timer(clock)
        self._tx_ack_timer = Timer(clock)
        self._tx_response_timer = Timer(clock)
        self._rx_byte_timer = Timer(clock)
        self._closing_timer = Timer(clock)
        self._transfering: MessageList | None = None
        self._pending: Message | None = None
        self._wakeup_attempts = 0
        self._tx_attempts = 0
        self.reset()
        self.running = True

    # -- set up ---------------------------------------------------------

    def reset(self) -> None:
        """Drop every queued, transferring and partially received message."""
        self._transfering = None
        self._pending = None
        self._wakeup_attempts = 0
        self._wakeup_timer.stop()
        self._tx_attempts = 0
        self._tx_ack_timer.stop()
        self._tx_response_timer.stop()
        self._rx.clear()
        self._rx_byte_timer.stop()
        self._closing_timer.stop()
        self._queue = MessageQueue()
        self._allocator.reset()

    def clean(self) -> None:
        """Reset and release the message pool."""
        self.reset()
        self._allocator.clean()

    def set_callback(self, callback: Callback | None) -> None:
        """Set ``callback(code, data, length)`` receiving notifications."""
        self._callback = callback

    def set_deferred_msg_callback(self, callback: DeferredCallback | None) -> None:
        """Set ``callback(dart, msgtype)`` that may push the content of a bare message.

        It is asked before a message consisting of its type alone is sent and
        returns True when it has pushed the frame itself.
        """
        self._deferred = callback

    def _notify(self, code: DartCallback, data: bytes | None = None, length: int | None = None) -> None:
        if self._callback is not None:
            self._callback(code, data, length)

    # -- state ----------------------------------------------------------

    def _pin(self, pin: DartPin) -> bool:
        return self.port.get_pin(pin)

    def _find_next_list(self) -> MessageList | None:
        for prio in range(PRIO_LENGTH):
            lst = self._queue.get_list(prio)
            message = lst.peek() if lst is not None else None
            if message is None:
                continue
            if self._pending is not None and (message.msgtype & MSG_TYPE_MASK) == MSG_REQUEST:
                continue  # a request may not go out while another awaits its response
            return lst
        return None

    def is_sending(self) -> bool:
        """True while sending, awaiting a response or holding sendable messages."""
        return (
            self._transfering is not None
            or self._pending is not None
            or self._find_next_list() is not None
        )

    def is_receiving(self) -> bool:
        return len(self._rx) != 0

    def is_idle(self) -> bool:
        return not (self.is_sending() or self.is_receiving())

    def is_msg_pending(self, prio: int, msgtype: int) -> bool:
        """True if a message of this type awaits a response or is queued."""
        if self._pending is not None and self._pending.msgtype == msgtype:
            return True
        return self._queue.find_msgtype(msgtype, prio) is not None

    def current_msgtype(self) -> int | None:
        """Type of the message being transferred or awaiting a response."""
        if self._transfering is not None:
            message = self._transfering.peek()
            if message is not None:
                return message.msgtype
        if self._pending is not None:
            return self._pending.msgtype
        return None

    # -- sending --------------------------------------------------------

    def push(self, data: bytes) -> DartStatus:
        """Write raw bytes to the line."""
        self.port.send(bytes(data))
        return DartStatus.SUCCESS

    def push_frame(self, data: bytes) -> DartStatus:
        """Wrap ``data`` in a frame and write it."""
        data = bytes(data)
        if len(data) >= 1 << (8 * self.len_size):
            raise ValueError(f"frame data of {len(data)} bytes does not fit the length field")
        frame = (
            bytes([SYNC])
            + len(data).to_bytes(self.len_size, "big")
            + data
            + calculate_crc(data, self.crc_size).to_bytes(self.crc_size, "big")
        )
        return self.push(frame)

    def push_msg_payload(self, msgtype: int, payload: bytes) -> DartStatus:
        """Write a frame holding a message built from a type and a payload."""
        if not 0 <= msgtype <= 0xFF:
            raise ValueError("message type must fit in one byte")
        return self.push_frame(bytes([msgtype]) + bytes(payload))

    def _transfer_msg(self, message: Message) -> DartStatus:
        transferred = False
        if message.length == 1 and self._deferred is not None:
            transferred = bool(self._deferred(self, message.msgtype))
        if not transferred:
            self.push_frame(message.data)
        self._tx_ack_timer.start(TimerUnit.MS, ACK_TIMEOUT)
        return DartStatus.SUCCESS

    def trigger_transfer(self) -> DartStatus:
        """Start sending the next queued message if the link allows it.

        Raises :class:`DartError` when the peer did not wake up after
        repeated attempts.
        """
        if self._transfering is not None:
            return DartStatus.PENDING

        if not self._pin(DartPin.WRK):
            if self._wakeup_attempts < WAKEUP_ATTEMPTS:
                self._wakeup_attempts += 1
                self.port.set_pin(DartPin.WRK, True)
                if not self._wakeup_timer.running():
                    self._wakeup_timer.start(TimerUnit.MS, WAKEUP_TIMEOUT)
            else:
                self._wakeup_attempts = 0
                self._notify(DartCallback.TRANSFER_IMPOSSIBLE)
                raise DartError("peer is not responding")

        if not self._pin(DartPin.RDY):
            self._notify(DartCallback.WAITING)
            return DartStatus.WAITING

        self._transfering = self._find_next_list()
        if self._transfering is None:
            return DartStatus.PENDING if self._pending is not None else DartStatus.IDLE

        self._tx_attempts = 0
        self._wakeup_attempts = 0
        self._closing_timer.stop()
        self._wakeup_timer.stop()
        return self._transfer_msg(self._transfering.peek())

    def _trigger_next_transfer(self) -> None:
        try:
            status = self.trigger_transfer()
        except DartError:
            return
        if self._pending is None and status is DartStatus.IDLE:
            self._notify(DartCallback.TRANSFER_COMPLETE)

    def _finalize_transfer(self) -> None:
        if self._transfering is not None:
            message = self._transfering.pop()
            free_message(self._allocator, message)
            self._transfering = None

    def _retry_transfer(self) -> None:
        if self._transfering is None:
            return
        message = self._transfering.peek()
        if message is None:
            return
        self._tx_ack_timer.stop()
        self._tx_attempts += 1
        if self._tx_attempts < TX_ATTEMPTS:
            self._transfer_msg(message)
        else:
            self._notify(DartCallback.TRANSFER_FAILURE, message.data, message.length)
            self._finalize_transfer()
            self._trigger_next_transfer()

    def _acknowledge_msg(self) -> None:
        if self._transfering is None:
            return
        message = self._transfering.peek()
        if message is None:
            return
        self._tx_ack_timer.stop()
        if (message.msgtype & MSG_TYPE_MASK) == MSG_REQUEST:
            self._tx_response_timer.start(TimerUnit.MS, RESPONSE_TIMEOUT)
            self._pending = self._transfering.pop()
            self._transfering = None
        else:
            self._notify(DartCallback.TRANSFER_DONE, message.data, message.length)
        self._finalize_transfer()
        self._trigger_next_transfer()

    def _finalize_request_msg(self) -> None:
        self._tx_response_timer.stop()
        free_message(self._allocator, self._pending)
        self._pending = None
        self._trigger_next_transfer()

    def _abandon_request_msg(self) -> None:
        if self._pending is not None:
            self._notify(DartCallback.MESSAGE_ABANDONED, self._pending.data, self._pending.length)
            self._finalize_request_msg()

    def send_msg(self, data: bytes, prio: int = PRIO_ANY) -> DartStatus:
        """Queue a message (type byte followed by payload) and try to send it.

        Raises :class:`DartError` when not running or the priority is invalid,
        and :class:`mxkit.cba.OutOfMemoryError` when the pool is full.
        """
        data = bytes(data)
        if not data:
            raise ValueError("a message needs at least its type byte")
        if not self.running:
            raise DartError("transport is not running")
        if prio == PRIO_ANY:
            prio = guess_priority(data[0])
        if not 0 <= prio < PRIO_LENGTH:
            raise DartError(f"invalid priority {prio}")

        message = allocate_message(self._allocator, data[0], data[1:])
        self._queue.push(prio, message)
        return self.trigger_transfer()

    def send_msgtype(self, msgtype: int, prio: int = PRIO_ANY) -> DartStatus:
        """Queue a message consisting of its type alone."""
        if not 0 <= msgtype <= 0xFF:
            raise ValueError("message type must fit in one byte")
        return self.send_msg(bytes([msgtype]), prio)

    # -- receiving ------------------------------------------------------

    def _handle_received_msg(self, data: bytes) -> None:
        self._notify(DartCallback.MESSAGE_RECEIVED, data, len(data))
        if self._pending is None or not data:
            return
        received_type = data[0]
        if (received_type & MSG_TYPE_MASK) != MSG_RESPONSE:
            return
        if (self._pending.msgtype & MSG_ID_MASK) != (received_type & MSG_ID_MASK):
            return
        self._notify(DartCallback.TRANSFER_DONE, self._pending.data, len(data))
        self._finalize_request_msg()

    def _drop_rx(self) -> None:
        self._rx.clear()
        self._rx_byte_timer.stop()

    def handle_received_char(self, ch: int) -> None:
        """Process one byte received from the line."""
        if not 0 <= ch <= 0xFF:
            raise ValueError("received value must fit in one byte")

        if self._rx_byte_timer.running() and self._rx_byte_timer.expired():
            self._notify(DartCallback.TRANSFER_INCOMPLETE)
            self._drop_rx()

        self._closing_timer.stop()
        self._rx_byte_timer.restart()
        self._rx.append(ch)

        if len(self._rx) == 1:
            if ch == SYNC:
                self._rx_byte_timer.start(TimerUnit.MS, BYTE_TIMEOUT)
                if not self._pin(DartPin.WRK):
                    # The peer probably started just before we closed.
                    self.port.set_pin(DartPin.WRK, True)
                return
            if self._pin(DartPin.WRK):
                if ch == ACK:
                    self._acknowledge_msg()
                elif ch == BAD:
                    self._retry_transfer()
                elif ch == CAN:
                    try:
                        self.trigger_transfer()
                    except DartError:
                        pass
            self._drop_rx()
            return

        header = 1 + self.len_size
        if len(self._rx) < header:
            return

        data_len = int.from_bytes(self._rx[1:header], "big")
        frame_len = header + data_len + self.crc_size
        if frame_len > self._rx_size:
            self._notify(DartCallback.TRANSFER_CORRUPTED)
            self._drop_rx()
            return
        if len(self._rx) < frame_len:
            return

        data = bytes(self._rx[header:header + data_len])
        crc_received = int.from_bytes(self._rx[header + data_len:frame_len], "big")
        if calculate_crc(data, self.crc_size) != crc_received:
            self.push(bytes([BAD]))
            self._notify(DartCallback.TRANSFER_CORRUPTED)
        else:
            self.push(bytes([ACK]))
            self._handle_received_msg(data)
        self._drop_rx()

    def handle_transfer_done(self) -> None:
        """Hook for the end of an outgoing line transfer; nothing depends on it."""
        return None

    # -- time -----------------------------------------------------------

    def handle_time(self) -> DartStatus:
        """Drive timeouts, retries, wake-up and the closing sequence.

        Raises :class:`DartError` when a retried wake-up finally fails.
        """
        if self._pending is not None and self._tx_response_timer.expired():
            self._abandon_request_msg()

        if self._transfering is not None:
            if self._tx_ack_timer.expired():
                self._tx_ack_timer.stop()
                if self._pin(DartPin.RDY):
                    self._retry_transfer()
                else:
                    self._transfering = None  # the peer is not ready
            return DartStatus.PENDING

        if self._find_next_list() is not None:
            if self._wakeup_timer.expired():
                self._wakeup_timer.stop()
                # Drop WRK so that the next attempt makes an edge the peer can see.
                self.port.set_pin(DartPin.WRK, False)
                return DartStatus.WAITING
            return self.trigger_transfer()

        if self._pending is not None or self._rx:
            return DartStatus.PENDING

        if self._pin(DartPin.WRK):
            if self._closing_timer.running():
                if self._closing_timer.expired():
                    self.port.set_pin(DartPin.WRK, False)
                    self._closing_timer.start(TimerUnit.MS, CHILL_TIMEOUT)
            else:
                self._closing_timer.start(TimerUnit.MS, CLOSING_TIMEOUT)
        elif self._closing_timer.running():
            if self._closing_timer.expired():
                self._closing_timer.stop()
                if not self._pin(DartPin.RDY):
                    self._notify(DartCallback.IDLE)
        elif self._pin(DartPin.RDY):
            self.port.set_pin(DartPin.WRK, True)
            return DartStatus.PENDING
        return DartStatus.IDLE