"""Modbus handler for reading discrete inputs."""

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
_READ_DISCCNT_OFF = PDU_DATA_OFF + 2
_READ_SIZE = 4
READ_DISCCNT_MAX = 0x07D0


def read_discrete_inputs(pdu, registers: RegisterCallbacks) -> bytes:
    """Serve a Read Discrete Inputs request and return the response PDU."""
    frame = bytes(pdu)
    if len(frame) != _READ_SIZE + PDU_SIZE_MIN:
        raise ExceptionResponse(ExceptionCode.ILLEGAL_DATA_VALUE)

    address = (int.from_bytes(frame[_READ_ADDR_OFF : _READ_ADDR_OFF + 2], "big") + 1) & 0xFFFF
    count = int.from_bytes(frame[_READ_DISCCNT_OFF : _READ_DISCCNT_OFF + 2], "big")
    if count == 0 or count > READ_DISCCNT_MAX:
        raise ExceptionResponse(ExceptionCode.ILLEGAL_DATA_VALUE)

    nbytes = (count // 8 + (count % 8 != 0)) & 0xFF
    buffer = bytearray(nbytes)
    try:
        registers.discrete(buffer, address, count)
    except ModbusError as error:
        raise ExceptionResponse.from_error(error) from error

    return bytes([FunctionCode.READ_DISCRETE_INPUTS, nbytes]) + bytes(buffer[:nbytes])