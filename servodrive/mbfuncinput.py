"""Modbus handler for reading input registers."""

from __future__ import annotations

from servodrive.mbutils import (
    PDU_DATA_OFF,
    PDU_SIZE_MIN,
    ExceptionCode,
    ExceptionResponse,
    FunctionCode,
    ModbusError,
    RegisterCallbacks,
)

_READ_ADDR_OFF = PDU_DATA_OFF
_READ_REGCNT_OFF = PDU_DATA_OFF + 2
_READ_SIZE = 4
READ_REGCNT_MAX = 0x007D


def read_input_registers(pdu, registers: RegisterCallbacks) -> bytes:
    """Serve a Read Input Registers request and return the response PDU."""
    frame = bytes(pdu)
    if len(frame) != _READ_SIZE + PDU_SIZE_MIN:
        raise ExceptionResponse(ExceptionCode.ILLEGAL_DATA_VALUE)

    address = int.from_bytes(frame[_READ_ADDR_OFF : _READ_ADDR_OFF + 2], "big")
    count = int.from_bytes(frame[_READ_REGCNT_OFF : _READ_REGCNT_OFF + 2], "big")
    if count == 0 or count > READ_REGCNT_MAX:
        raise ExceptionResponse(ExceptionCode.ILLEGAL_DATA_VALUE)

    nbytes = count * 2
    buffer = bytearray(nbytes)
    try:
        registers.input(buffer, address, count)
    except ModbusError as error:
        raise ExceptionResponse.from_error(error) from error

    return bytes([FunctionCode.READ_INPUT_REGISTER, nbytes & 0xFF]) + bytes(buffer[:nbytes])