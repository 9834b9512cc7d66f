"""Modbus handlers for reading and writing holding registers."""

from __future__ import annotations

from servodrive.mbutils import (
    PDU_DATA_OFF,
    PDU_SIZE_MIN,
    ExceptionCode,
    ExceptionResponse,
    FunctionCode,
    ModbusError,
    RegisterCallbacks,
    RegisterMode,
)

_READ_ADDR_OFF = PDU_DATA_OFF + 0
_READ_REGCNT_OFF = PDU_DATA_OFF + 2
_READ_SIZE = 4
READ_REGCNT_MAX = 0x007D

_READ_SEL_REGCNT_OFF = PDU_DATA_OFF + 0
_READ_SEL_ADDR_OFF = PDU_DATA_OFF + 2
_READ_SEL_SIZE_MIN = 1

_WRITE_ADDR_OFF = PDU_DATA_OFF + 0
_WRITE_VALUE_OFF = PDU_DATA_OFF + 2
_WRITE_SIZE = 4

_WRITE_MUL_ADDR_OFF = PDU_DATA_OFF + 0
_WRITE_MUL_REGCNT_OFF = PDU_DATA_OFF + 2
_WRITE_MUL_BYTECNT_OFF = PDU_DATA_OFF + 4
_WRITE_MUL_VALUES_OFF = PDU_DATA_OFF + 5
_WRITE_MUL_SIZE_MIN = 5
WRITE_MUL_REGCNT_MAX = 0x007B

_READWRITE_READ_ADDR_OFF = PDU_DATA_OFF + 0
_READWRITE_READ_REGCNT_OFF = PDU_DATA_OFF + 2
_READWRITE_WRITE_ADDR_OFF = PDU_DATA_OFF + 4
_READWRITE_WRITE_REGCNT_OFF = PDU_DATA_OFF + 6
_READWRITE_BYTECNT_OFF = PDU_DATA_OFF + 8
_READWRITE_WRITE_VALUES_OFF = PDU_DATA_OFF + 9
_READWRITE_SIZE_MIN = 9
READWRITE_REGCNT_MAX = 0x0079


def _u16(frame: bytes, offset: int) -> int:
    return int.from_bytes(frame[offset : offset + 2], "big")


def _illegal_value() -> ExceptionResponse:
    return ExceptionResponse(ExceptionCode.ILLEGAL_DATA_VALUE)


def _call(callback, *args) -> None:
    try:
        callback(*args)
    except ModbusError as error:
        raise ExceptionResponse.from_error(error) from error


def write_holding_register(pdu, registers: RegisterCallbacks) -> bytes:
    """Serve a Write Single Register request; the response echoes the request."""
    frame = bytes(pdu)
    if len(frame) != _WRITE_SIZE + PDU_SIZE_MIN:
        raise _illegal_value()

    address = _u16(frame, _WRITE_ADDR_OFF)
    value = bytearray(frame[_WRITE_VALUE_OFF : _WRITE_VALUE_OFF + 2])
    _call(registers.holding, value, address, 1, RegisterMode.WRITE)
    return frame


def write_multiple_holding_registers(pdu, registers: RegisterCallbacks) -> bytes:
    """Serve a Write Multiple Registers request and return the response PDU."""
    frame = bytes(pdu)
    if len(frame) <= _WRITE_MUL_SIZE_MIN + PDU_SIZE_MIN:
        raise _illegal_value()

    address = _u16(frame, _WRITE_MUL_ADDR_OFF)
    count = _u16(frame, _WRITE_MUL_REGCNT_OFF)
    byte_count = frame[_WRITE_MUL_BYTECNT_OFF]

    if (
        count == 0
        or count > WRITE_MUL_REGCNT_MAX
        or byte_count != (2 * count) & 0xFF
        or len(frame) < _WRITE_MUL_VALUES_OFF + byte_count
    ):
        raise _illegal_value()

    values = bytearray(frame[_WRITE_MUL_VALUES_OFF : _WRITE_MUL_VALUES_OFF + byte_count])
    _call(registers.holding, values, address, count, RegisterMode.WRITE)
    return frame[:_WRITE_MUL_BYTECNT_OFF]


def read_holding_registers(pdu, registers: RegisterCallbacks) -> bytes:
    """Serve a Read Holding Registers request and return the response PDU."""
    frame = bytes(pdu)
    if len(frame) != _READ_SIZE + PDU_SIZE_MIN:
        raise _illegal_value()

    address = _u16(frame, _READ_ADDR_OFF)
    count = _u16(frame, _READ_REGCNT_OFF)
    if count == 0 or count > READ_REGCNT_MAX:
        raise _illegal_value()

    nbytes = count * 2
    buffer = bytearray(nbytes)
    _call(registers.holding, buffer, address, count, RegisterMode.READ)
    return bytes([FunctionCode.READ_HOLDING_REGISTER, nbytes & 0xFF]) + bytes(buffer[:nbytes])


def read_selected_holding_registers(pdu, registers: RegisterCallbacks) -> bytes:
    """Serve a read of holding registers at an explicit list of addresses.

    The request holds the register count followed by one big-endian
    address per register.
    """
    frame = bytes(pdu)
    if len(frame) <= _READ_SEL_SIZE_MIN + PDU_SIZE_MIN:
        raise _illegal_value()

    count = _u16(frame, _READ_SEL_REGCNT_OFF)
    if count == 0 or count > READ_REGCNT_MAX:
        raise _illegal_value()
    if len(frame) < _READ_SEL_ADDR_OFF + 2 * count:
        raise _illegal_value()

    addresses = [
        _u16(frame, _READ_SEL_ADDR_OFF + 2 * index) for index in range(count)
    ]

    nbytes = count * 2
    buffer = bytearray(nbytes)
    _call(registers.selected_holding, buffer, addresses, count, RegisterMode.READ)
    return bytes([FunctionCode.READ_SELECTED_HOLDING_REGISTER, nbytes & 0xFF]) + bytes(
        buffer[:nbytes]
    )


def read_write_multiple_holding_registers(pdu, registers: RegisterCallbacks) -> bytes:
    """Serve a Read/Write Multiple Registers request; writes happen first."""
    frame = bytes(pdu)
    if len(frame) <= _READWRITE_SIZE_MIN + PDU_SIZE_MIN:
        raise _illegal_value()

    read_address = _u16(frame, _READWRITE_READ_ADDR_OFF)
    read_count = _u16(frame, _READWRITE_READ_REGCNT_OFF)
    write_address = _u16(frame, _READWRITE_WRITE_ADDR_OFF)
    write_count = _u16(frame, _READWRITE_WRITE_REGCNT_OFF)
    byte_count = frame[_READWRITE_BYTECNT_OFF]

    if (
        read_count == 0
        or read_count > READ_REGCNT_MAX
        or write_count == 0
        or write_count > READWRITE_REGCNT_MAX
        or 2 * write_count != byte_count
        or len(frame) < _READWRITE_WRITE_VALUES_OFF + byte_count
    ):
        raise _illegal_value()

    values = bytearray(
        frame[_READWRITE_WRITE_VALUES_OFF : _READWRITE_WRITE_VALUES_OFF + byte_count]
    )
    _call(registers.holding, values, write_address, write_count, RegisterMode.WRITE)

    nbytes = read_count * 2
    buffer = bytearray(nbytes)
    _call(registers.holding, buffer, read_address, read_count, RegisterMode.READ)
    return bytes([FunctionCode.READWRITE_MULTIPLE_REGISTERS, nbytes & 0xFF]) + bytes(
        buffer[:nbytes]
    )