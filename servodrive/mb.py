"""Modbus slave protocol stack: event loop and function dispatch."""

from __future__ import annotations

from collections import deque
from collections.abc import Callable
from contextlib import suppress
from enum import Enum, auto

from servodrive.mbascii import AsciiTransport, EventType, SerialPort
from servodrive.mbfunccoils import read_coils, write_coil, write_multiple_coils
from servodrive.mbfuncdisc import read_discrete_inputs
from servodrive.mbfuncholding import (
    read_holding_registers,
    read_selected_holding_registers,
    read_write_multiple_holding_registers,
    write_holding_register,
    write_multiple_holding_registers,
)
from servodrive.mbfuncinput import read_input_registers
from servodrive.mbfuncother import SlaveIdReport
from servodrive.mbutils import (
    ADDRESS_BROADCAST,
    ADDRESS_MAX,
    ADDRESS_MIN,
    FUNC_ERROR,
    PDU_FUNC_OFF,
    ErrorCode,
    ExceptionCode,
    ExceptionResponse,
    FunctionCode,
    ModbusError,
    RegisterCallbacks,
)

FUNC_HANDLERS_MAX = 16
FUNCTION_CODE_MAX = 127

Handler = Callable[[bytes, RegisterCallbacks], bytes]


class Mode(Enum):
    """Transmission modes of a Modbus slave."""

    RTU = auto()
    ASCII = auto()
    TCP = auto()


class _State(Enum):
    ENABLED = auto()
    DISABLED = auto()


class ModbusSlave:
    """A Modbus slave that frames requests, dispatches them and replies."""

    def __init__(
        self,
        address: int,
        mode: Mode = Mode.ASCII,
        registers: RegisterCallbacks | None = None,
        port: SerialPort | None = None,
    ) -> None:
        if address == ADDRESS_BROADCAST or address < ADDRESS_MIN or address > ADDRESS_MAX:
            raise ModbusError(ErrorCode.INVAL, f"invalid slave address {address}")
        if mode is not Mode.ASCII:
            raise ModbusError(ErrorCode.INVAL, f"{mode.name} mode is not supported")

        self.address = address
        self.mode = mode
        self.registers = registers if registers is not None else RegisterCallbacks()
        self.slave_id = SlaveIdReport()
        self._events: deque[EventType] = deque()
        self.transport = AsciiTransport(port, post_event=self.post_event)

        defaults: list[tuple[int, Handler]] = [
            (FunctionCode.OTHER_REPORT_SLAVEID, self.slave_id.report_slave_id),
            (FunctionCode.READ_INPUT_REGISTER, read_input_registers),
            (FunctionCode.READ_HOLDING_REGISTER, read_holding_registers),
            (FunctionCode.WRITE_MULTIPLE_REGISTERS, write_multiple_holding_registers),
            (FunctionCode.WRITE_REGISTER, write_holding_register),
            (FunctionCode.READWRITE_MULTIPLE_REGISTERS, read_write_multiple_holding_registers),
            (FunctionCode.READ_COILS, read_coils),
            (FunctionCode.WRITE_SINGLE_COIL, write_coil),
            (FunctionCode.WRITE_MULTIPLE_COILS, write_multiple_coils),
            (FunctionCode.READ_DISCRETE_INPUTS, read_discrete_inputs),
            (FunctionCode.READ_SELECTED_HOLDING_REGISTER, read_selected_holding_registers),
        ]
        self._handlers: list[tuple[int, Handler | None]] = [
            (int(code), handler) for code, handler in defaults
        ]
        self._handlers += [(0, None)] * (FUNC_HANDLERS_MAX - len(self._handlers))

        self._state = _State.DISABLED
        self._rcv_address = 0
        self._frame = b""

    @property
    def port(self) -> SerialPort:
        """The serial port used by the transport."""
        return self.transport.port

    @property
    def enabled(self) -> bool:
        """True while the protocol stack is running."""
        return self._state is _State.ENABLED

    def register_handler(self, function_code: int, handler: Handler | None) -> None:
        """Install *handler* for *function_code*, or remove it when *handler* is None.

        Raises ModbusError with INVAL for a code above 127 and NORES when
        every handler slot is taken.
        """
        if not 0 <= function_code <= FUNCTION_CODE_MAX:
            raise ModbusError(ErrorCode.INVAL, f"invalid function code {function_code}")

        if handler is not None:
            for index, (_, current) in enumerate(self._handlers):
                if current is None or current == handler:
                    self._handlers[index] = (function_code, handler)
                    return
            raise ModbusError(ErrorCode.NORES, "no free handler slot")

        for index, (code, _) in enumerate(self._handlers):
            if code == function_code:
                self._handlers[index] = (0, None)
                break

    def close(self) -> None:
        """Release the stack; only allowed while disabled."""
        if self._state is not _State.DISABLED:
            raise ModbusError(ErrorCode.ILLSTATE)

    def enable(self) -> None:
        """Start the protocol stack."""
        if self._state is not _State.DISABLED:
            raise ModbusError(ErrorCode.ILLSTATE)
        self.transport.start()
        self._state = _State.ENABLED

    def disable(self) -> None:
        """Stop the protocol stack; disabling a disabled stack does nothing."""
        if self._state is _State.DISABLED:
            return
        if self._state is not _State.ENABLED:
            raise ModbusError(ErrorCode.ILLSTATE)
        self.transport.stop()
        self._state = _State.DISABLED

    def post_event(self, event: EventType) -> bool:
        """Queue an event for the next poll."""
        self._events.append(event)
        return True

    def poll(self) -> EventType | None:
        """Handle one pending event and return it, or None if none was pending."""
        if self._state is not _State.ENABLED:
            raise ModbusError(ErrorCode.ILLSTATE)
        if not self._events:
            return None

        event = self._events.popleft()
        if event is EventType.FRAME_RECEIVED:
            try:
                address, pdu = self.transport.receive()
            except ModbusError:
                return event
            self._rcv_address = address
            self._frame = pdu
            if address in (self.address, ADDRESS_BROADCAST):
                self.post_event(EventType.EXECUTE)
        elif event is EventType.EXECUTE:
            self._execute()
        return event

    def _execute(self) -> None:
        if not self._frame:
            return
        code = self._frame[PDU_FUNC_OFF]
        exception = ExceptionCode.ILLEGAL_FUNCTION
        response = b""
        for slot_code, handler in self._handlers:
            if slot_code == 0:
                break
            if slot_code == code:
                try:
                    response = bytes(handler(self._frame, self.registers))
                    exception = ExceptionCode.NONE
                except ExceptionResponse as error:
                    exception = error.code
                break

        if self._rcv_address == ADDRESS_BROADCAST:
            return
        if exception is not ExceptionCode.NONE:
            response = bytes([(code | FUNC_ERROR) & 0xFF, int(exception)])
        with suppress(ModbusError):
            self.transport.send(self.address, response)

    def byte_received(self, byte: int) -> bool:
        """Feed one received character to the transport."""
        return self.transport.receive_fsm(byte)

    def transmitter_empty(self) -> bool:
        """Let the transport send its next character."""
        return self.transport.transmit_fsm()

    def timer_expired(self) -> bool:
        """Signal a character timeout to the transport."""
        return self.transport.timer_expired()