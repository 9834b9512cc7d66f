"""Modbus handlers for reading and writing coils."""

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

_READ_ADDR_OFF = PDU_DATA_OFF
_READ_COILCNT_OFF = PDU_DATA_OFF + 2
_READ_SIZE = 4
READ_COILCNT_MAX = 0x07D0

_WRITE_ADDR_OFF = PDU_DATA_OFF
_WRITE_VALUE_OFF = PDU_DATA_OFF + 2
_WRITE_SIZE = 4

_WRITE_MUL_ADDR_OFF = PDU_DATA_OFF
_WRITE_MUL_COILCNT_OFF = PDU_DATA_OFF + 2
_WRITE_MUL_BYTECNT_OFF = PDU_DATA_OFF + 4
_WRITE_MUL_VALUES_OFF = PDU_DATA_OFF + 5
_WRITE_MUL_SIZE_MIN = 5
WRITE_MUL_COILCNT_MAX = 0x07B0


def _u16(frame: bytes, offset: int) -> int:
    return int.from_bytes(frame[offset : offset + 2], "big")


def _packed_size(count: int) -> int:
    return (count // 8 + (count % 8 != 0)) & 0xFF


def read_coils(pdu, registers: RegisterCallbacks) -> bytes:
    """Serve a Read Coils request and return the response PDU."""
    frame = bytes(pdu)
    if len(frame) != _READ_SIZE + PDU_SIZE_MIN:
        raise ExceptionResponse(ExceptionCode.ILLEGAL_DATA_VALUE)

    address = (_u16(frame, _READ_ADDR_OFF) + 1) & 0xFFFF
    count = _u16(frame, _READ_COILCNT_OFF)
    if count == 0 or count > READ_COILCNT_MAX:
        raise ExceptionResponse(ExceptionCode.ILLEGAL_DATA_VALUE)

    nbytes = _packed_size(count)
    buffer = bytearray(nbytes)
    try:
        registers.coils(buffer, address, count, RegisterMode.READ)
    except ModbusError as error:
        raise ExceptionResponse.from_error(error) from error

    return bytes([FunctionCode.READ_COILS, nbytes]) + bytes(buffer[:nbytes])


def write_coil(pdu, registers: RegisterCallbacks) -> bytes:
    """Serve a Write Single Coil request; the response echoes the request."""
    frame = bytes(pdu)
    if len(frame) != _WRITE_SIZE + PDU_SIZE_MIN:
        raise ExceptionResponse(ExceptionCode.ILLEGAL_DATA_VALUE)

    address = (_u16(frame, _WRITE_ADDR_OFF) + 1) & 0xFFFF
    high, low = frame[_WRITE_VALUE_OFF], frame[_WRITE_VALUE_OFF + 1]
    if high not in (0xFF, 0x00) or low != 0x00:
        raise ExceptionResponse(ExceptionCode.ILLEGAL_DATA_VALUE)

    buffer = bytearray([1 if high == 0xFF else 0, 0])
    try:
        registers.coils(buffer, address, 1, RegisterMode.WRITE)
    except ModbusError as error:
        raise ExceptionResponse.from_error(error) from error

    return frame


def write_multiple_coils(pdu, registers: RegisterCallbacks) -> bytes:
    """Serve a Write Multiple Coils request and return the response PDU."""
    frame = bytes(pdu)
    if len(frame) <= _WRITE_MUL_SIZE_MIN + PDU_SIZE_MIN:
        raise ExceptionResponse(ExceptionCode.ILLEGAL_DATA_VALUE)

    address = (_u16(frame, _WRITE_MUL_ADDR_OFF) + 1) & 0xFFFF
    count = _u16(frame, _WRITE_MUL_COILCNT_OFF)
    byte_count = frame[_WRITE_MUL_BYTECNT_OFF]

    if (
        count == 0
        or count > WRITE_MUL_COILCNT_MAX
        or _packed_size(count) != byte_count
        or len(frame) < _WRITE_MUL_VALUES_OFF + byte_count
    ):
        raise ExceptionResponse(ExceptionCode.ILLEGAL_DATA_VALUE)

    values = bytearray(frame[_WRITE_MUL_VALUES_OFF : _WRITE_MUL_VALUES_OFF + byte_count])
    try:
        registers.coils(values, address, count, RegisterMode.WRITE)
    except ModbusError as error:
        raise ExceptionResponse.from_error(error) from error

    return frame[:_WRITE_MUL_BYTECNT_OFF]