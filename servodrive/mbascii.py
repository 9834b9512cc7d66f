"""Modbus ASCII serial framing: receiver and transmitter state machines."""

from __future__ import annotations

from collections import deque
from collections.abc import Callable
from enum import Enum, auto

from servodrive.mbutils import PDU_SIZE_MAX, ErrorCode, ModbusError

ASCII_START = ord(":")
ASCII_DEFAULT_CR = ord("\r")
ASCII_DEFAULT_LF = ord("\n")

SER_PDU_SIZE_MIN = 3
SER_PDU_SIZE_MAX = 255
SER_PDU_SIZE_LRC = 1
SER_PDU_ADDR_OFF = 0
SER_PDU_PDU_OFF = 1

_BUFFER_SIZE = 256


class EventType(Enum):
    """Events passed from the transport to the protocol stack."""

    READY = auto()
    FRAME_RECEIVED = auto()
    EXECUTE = auto()
    FRAME_SENT = auto()


class _RxState(Enum):
    IDLE = auto()
    RCV = auto()
    WAIT_EOF = auto()


class _TxState(Enum):
    IDLE = auto()
    START = auto()
    DATA = auto()
    END = auto()
    NOTIFY = auto()


class _BytePos(Enum):
    HIGH_NIBBLE = auto()
    LOW_NIBBLE = auto()


class SerialPort:
    """Serial line and character timer seen by the transport.

    This implementation keeps everything in memory: transmitted bytes are
    collected in ``output`` and the enable flags record the last request.
    """

    def __init__(self) -> None:
        self.rx_enabled = False
        self.tx_enabled = False
        self.timer_running = False
        self.output = bytearray()

    def serial_enable(self, rx_enable: bool, tx_enable: bool) -> None:
        """Enable or disable the receiver and the transmitter."""
        self.rx_enabled = bool(rx_enable)
        self.tx_enabled = bool(tx_enable)

    def put_byte(self, byte: int) -> bool:
        """Transmit one byte."""
        self.output.append(byte & 0xFF)
        return True

    def timer_enable(self) -> None:
        """Start or restart the character timeout timer."""
        self.timer_running = True

    def timer_disable(self) -> None:
        """Stop the character timeout timer."""
        self.timer_running = False


def char_to_bin(character: int | str) -> int:
    """Convert an upper-case hex digit character to its value.

    Raises ValueError for any other character.
    """
    code = ord(character) if isinstance(character, str) else character
    if ord("0") <= code <= ord("9"):
        return code - ord("0")
    if ord("A") <= code <= ord("F"):
        return code - ord("A") + 0x0A
    raise ValueError(f"not a Modbus ASCII hex digit: {code!r}")


def bin_to_char(value: int) -> int:
    """Return the hex digit character code for the low nibble of *value*."""
    nibble = value & 0x0F
    if nibble <= 0x09:
        return ord("0") + nibble
    return nibble - 0x0A + ord("A")


def lrc(data: bytes | bytearray | memoryview) -> int:
    """Return the longitudinal redundancy check of *data*."""
    return (-sum(bytes(data))) & 0xFF


class AsciiTransport:
    """Frames and unframes Modbus PDUs on an ASCII serial line."""

    def __init__(
        self,
        port: SerialPort | None = None,
        post_event: Callable[[EventType], bool] | None = None,
    ) -> None:
        self.port = port if port is not None else SerialPort()
        self.events: deque[EventType] = deque()
        self._post = post_event if post_event is not None else self._queue_event
        self.lf_character = ASCII_DEFAULT_LF

        self._rx_state = _RxState.IDLE
        self._rx_buffer = bytearray(_BUFFER_SIZE)
        self._rx_pos = 0
        self._rx_byte_pos = _BytePos.HIGH_NIBBLE

        self._tx_state = _TxState.IDLE
        self._tx_frame = b""
        self._tx_pos = 0
        self._tx_byte_pos = _BytePos.HIGH_NIBBLE

    def _queue_event(self, event: EventType) -> bool:
        self.events.append(event)
        return True

    @property
    def rx_idle(self) -> bool:
        """True when no frame is being received."""
        return self._rx_state is _RxState.IDLE

    @property
    def tx_idle(self) -> bool:
        """True when no frame is being transmitted."""
        return self._tx_state is _TxState.IDLE

    def start(self) -> None:
        """Enable the receiver and announce that the transport is ready."""
        self.port.serial_enable(True, False)
        self._rx_state = _RxState.IDLE
        self._post(EventType.READY)

    def stop(self) -> None:
        """Disable the serial line and the timer."""
        self.port.serial_enable(False, False)
        self.port.timer_disable()

    def receive(self) -> tuple[int, bytes]:
        """Return the slave address and PDU of the last received frame.

        Raises ModbusError with IO if the frame is too short or its LRC
        does not match.
        """
        frame = bytes(self._rx_buffer[: self._rx_pos])
        if len(frame) < SER_PDU_SIZE_MIN or lrc(frame) != 0:
            raise ModbusError(ErrorCode.IO, "invalid Modbus ASCII frame")
        address = frame[SER_PDU_ADDR_OFF]
        pdu = frame[SER_PDU_PDU_OFF : len(frame) - SER_PDU_SIZE_LRC]
        return address, pdu

    def send(self, address: int, pdu: bytes | bytearray | memoryview) -> None:
        """Start transmitting *pdu* addressed from *address*.

        Raises ModbusError with IO if a new frame is already being received.
        """
        if self._rx_state is not _RxState.IDLE:
            raise ModbusError(ErrorCode.IO, "receiver busy, reply aborted")
        payload = bytes(pdu)
        if not 0 <= address <= 0xFF:
            raise ValueError("address must fit in a byte")
        if len(payload) > PDU_SIZE_MAX:
            raise ValueError("PDU too long")
        body = bytes([address]) + payload
        self._tx_frame = body + bytes([lrc(body)])
        self._tx_pos = 0
        self._tx_state = _TxState.START
        self.port.serial_enable(False, True)

    def receive_fsm(self, byte: int) -> bool:
        """Process one received character; return the result of any event post."""
        if self._tx_state is not _TxState.IDLE:
            raise RuntimeError("character received while transmitting")

        if byte == ASCII_START:
            self.port.timer_enable()
            self._rx_pos = 0
            self._rx_byte_pos = _BytePos.HIGH_NIBBLE
            self._rx_state = _RxState.RCV
            return False

        if self._rx_state is _RxState.RCV:
            self.port.timer_enable()
            if byte == ASCII_DEFAULT_CR:
                self._rx_state = _RxState.WAIT_EOF
                return False
            try:
                value = char_to_bin(byte)
            except ValueError:
                value = None
            if value is None or self._rx_pos >= SER_PDU_SIZE_MAX:
                self._rx_state = _RxState.IDLE
                self.port.timer_disable()
                return False
            if self._rx_byte_pos is _BytePos.HIGH_NIBBLE:
                self._rx_buffer[self._rx_pos] = value << 4
                self._rx_byte_pos = _BytePos.LOW_NIBBLE
            else:
                self._rx_buffer[self._rx_pos] |= value
                self._rx_pos += 1
                self._rx_byte_pos = _BytePos.HIGH_NIBBLE
            return False

        if self._rx_state is _RxState.WAIT_EOF:
            self.port.timer_disable()
            self._rx_state = _RxState.IDLE
            if byte == self.lf_character:
                return self._post(EventType.FRAME_RECEIVED)
        return False

    def transmit_fsm(self) -> bool:
        """Send the next character; return the result of any event post."""
        if self._rx_state is not _RxState.IDLE:
            raise RuntimeError("transmitter event while receiving")

        state = self._tx_state
        if state is _TxState.START:
            self.port.put_byte(ASCII_START)
            self._tx_state = _TxState.DATA
            self._tx_byte_pos = _BytePos.HIGH_NIBBLE
        elif state is _TxState.DATA:
            if self._tx_pos < len(self._tx_frame):
                current = self._tx_frame[self._tx_pos]
                if self._tx_byte_pos is _BytePos.HIGH_NIBBLE:
                    self.port.put_byte(bin_to_char(current >> 4))
                    self._tx_byte_pos = _BytePos.LOW_NIBBLE
                else:
                    self.port.put_byte(bin_to_char(current))
                    self._tx_pos += 1
                    self._tx_byte_pos = _BytePos.HIGH_NIBBLE
            else:
                self.port.put_byte(ASCII_DEFAULT_CR)
                self._tx_state = _TxState.END
        elif state is _TxState.END:
            self.port.put_byte(self.lf_character)
            self._tx_state = _TxState.NOTIFY
        elif state is _TxState.NOTIFY:
            self.port.serial_enable(True, False)
            self._tx_state = _TxState.IDLE
            return self._post(EventType.FRAME_SENT)
        else:
            self.port.serial_enable(True, False)
        return False

    def timer_expired(self) -> bool:
        """Abort a frame in progress after a character timeout."""
        if self._rx_state in (_RxState.RCV, _RxState.WAIT_EOF):
            self._rx_state = _RxState.IDLE
        self.port.timer_disable()
        return False