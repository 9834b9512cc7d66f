"""Modbus protocol enumerations, register callbacks and bit helpers."""

from __future__ import annotations

from collections.abc import Sequence
from enum import Enum, IntEnum

PDU_FUNC_OFF = 0
PDU_DATA_OFF = 1
PDU_SIZE_MIN = 1
PDU_SIZE_MAX = 253

ADDRESS_BROADCAST = 0
ADDRESS_MIN = 1
ADDRESS_MAX = 247

FUNC_ERROR = 0x80

_BITS_PER_BYTE = 8


class ErrorCode(Enum):
    """Error conditions of the protocol stack."""

    NOERR = "no error"
    NOREG = "illegal register address"
    INVAL = "illegal argument"
    PORTERR = "porting layer error"
    NORES = "insufficient resources"
    IO = "I/O error"
    ILLSTATE = "protocol stack in illegal state"
    TIMEDOUT = "timeout error"


class ExceptionCode(IntEnum):
    """Exception codes returned to a Modbus master."""

    NONE = 0x00
    ILLEGAL_FUNCTION = 0x01
    ILLEGAL_DATA_ADDRESS = 0x02
    ILLEGAL_DATA_VALUE = 0x03
    SLAVE_DEVICE_FAILURE = 0x04
    ACKNOWLEDGE = 0x05
    SLAVE_BUSY = 0x06
    MEMORY_PARITY_ERROR = 0x08
    GATEWAY_PATH_FAILED = 0x0A
    GATEWAY_TARGET_FAILED = 0x0B


class FunctionCode(IntEnum):
    """Modbus function codes served by the device."""

    READ_COILS = 0x01
    READ_DISCRETE_INPUTS = 0x02
    READ_HOLDING_REGISTER = 0x03
    READ_INPUT_REGISTER = 0x04
    WRITE_SINGLE_COIL = 0x05
    WRITE_REGISTER = 0x06
    DIAG_READ_EXCEPTION = 0x07
    DIAG_DIAGNOSTIC = 0x08
    DIAG_GET_COM_EVENT_CNT = 0x0B
    DIAG_GET_COM_EVENT_LOG = 0x0C
    WRITE_MULTIPLE_COILS = 0x0F
    WRITE_MULTIPLE_REGISTERS = 0x10
    OTHER_REPORT_SLAVEID = 0x11
    READWRITE_MULTIPLE_REGISTERS = 0x17
    # Device-specific function from the user-defined range.
    READ_SELECTED_HOLDING_REGISTER = 0x41


class RegisterMode(Enum):
    """Direction of a register callback."""

    READ = "read"
    WRITE = "write"


class ModbusError(Exception):
    """A protocol stack or register access failure."""

    def __init__(self, code: ErrorCode, message: str | None = None) -> None:
        super().__init__(message or code.value)
        self.code = code


class ExceptionResponse(Exception):
    """A request that must be answered with a Modbus exception."""

    def __init__(self, code: ExceptionCode) -> None:
        super().__init__(code.name)
        self.code = code

    @classmethod
    def from_error(cls, error: ModbusError) -> ExceptionResponse:
        """Build the exception response that matches a register error."""
        return cls(error_to_exception(error.code))


class RegisterCallbacks:
    """Access to the application's register map.

    Buffers are modified in place: read callbacks fill them, write
    callbacks take values from them. The defaults expose no registers.
    Failures are reported by raising ModbusError.
    """

    def coils(self, buffer, address: int, count: int, mode: RegisterMode) -> None:
        """Read or write *count* coils packed eight per byte."""
        raise ModbusError(ErrorCode.NOREG)

    def discrete(self, buffer, address: int, count: int) -> None:
        """Read *count* discrete inputs packed eight per byte."""
        raise ModbusError(ErrorCode.NOREG)

    def input(self, buffer, address: int, count: int) -> None:
        """Read *count* big-endian input registers."""
        raise ModbusError(ErrorCode.NOREG)

    def holding(self, buffer, address: int, count: int, mode: RegisterMode) -> None:
        """Read or write *count* big-endian holding registers."""
        raise ModbusError(ErrorCode.NOREG)

    def selected_holding(
        self, buffer, addresses: Sequence[int], count: int, mode: RegisterMode
    ) -> None:
        """Read or write the holding registers listed in *addresses*."""
        raise ModbusError(ErrorCode.NOREG)


def _check_field(nbits: int, bit_offset: int) -> None:
    if not 0 <= nbits <= _BITS_PER_BYTE:
        raise ValueError("at most 8 bits can be accessed at once")
    if bit_offset < 0:
        raise ValueError("bit offset must not be negative")


def set_bits(buffer: bytearray | memoryview, bit_offset: int, nbits: int, value: int) -> None:
    """Write the low *nbits* of *value* into *buffer* starting at *bit_offset*.

    Bits are numbered from the least significant bit of the first byte.
    """
    _check_field(nbits, bit_offset)
    if not 0 <= value <= 0xFF:
        raise ValueError("value must fit in a byte")
    byte_offset, pre_bits = divmod(bit_offset, _BITS_PER_BYTE)
    has_next = byte_offset + 1 < len(buffer)
    if byte_offset >= len(buffer) or (pre_bits + nbits > _BITS_PER_BYTE and not has_next):
        raise IndexError("bit field lies outside the buffer")

    mask = ((1 << nbits) - 1) << pre_bits
    word = buffer[byte_offset]
    if has_next:
        word |= buffer[byte_offset + 1] << _BITS_PER_BYTE
    word = ((word & ~mask) | (value << pre_bits)) & 0xFFFF

    buffer[byte_offset] = word & 0xFF
    if has_next:
        buffer[byte_offset + 1] = word >> _BITS_PER_BYTE


def get_bits(buffer: bytes | bytearray | memoryview, bit_offset: int, nbits: int) -> int:
    """Return *nbits* bits of *buffer* starting at *bit_offset*."""
    _check_field(nbits, bit_offset)
    byte_offset, pre_bits = divmod(bit_offset, _BITS_PER_BYTE)
    has_next = byte_offset + 1 < len(buffer)
    if byte_offset >= len(buffer) or (pre_bits + nbits > _BITS_PER_BYTE and not has_next):
        raise IndexError("bit field lies outside the buffer")

    word = buffer[byte_offset]
    if has_next:
        word |= buffer[byte_offset + 1] << _BITS_PER_BYTE
    return (word >> pre_bits) & ((1 << nbits) - 1)


def error_to_exception(code: ErrorCode) -> ExceptionCode:
    """Map a stack error to the exception reported to the master."""
    if code is ErrorCode.NOERR:
        return ExceptionCode.NONE
    if code is ErrorCode.NOREG:
        return ExceptionCode.ILLEGAL_DATA_ADDRESS
    if code is ErrorCode.TIMEDOUT:
        return ExceptionCode.SLAVE_BUSY
    return ExceptionCode.SLAVE_DEVICE_FAILURE