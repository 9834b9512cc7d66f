"""CRC-16 checksums as used by Modbus serial framing."""

from __future__ import annotations

from collections.abc import Iterable

CRC16_INIT = 0xFFFF
_POLYNOMIAL = 0xA001


def _build_table() -> tuple[int, ...]:
    table = []
    for index in range(256):
        value = index
        for _ in range(8):
            value = (value >> 1) ^ _POLYNOMIAL if value & 1 else value >> 1
        table.append(value)
    return tuple(table)


_TABLE = _build_table()


def _as_bytes(data: bytes | bytearray | memoryview | Iterable[int]) -> bytes:
    if isinstance(data, (int, str)):
        raise TypeError(f"expected a byte sequence, got {type(data).__name__}")
    return bytes(data)


def crc16_modbus(data: bytes | bytearray | memoryview | Iterable[int]) -> int:
    """Return the CRC-16/Modbus checksum of *data*.

    The low byte of the result is the one transmitted first on the wire.
    """
    crc = CRC16_INIT
    for byte in _as_bytes(data):
        crc = (crc >> 8) ^ _TABLE[(crc ^ byte) & 0xFF]
    return crc


def crc_calculate(data: bytes | bytearray | memoryview | Iterable[int]) -> int:
    """Return the checksum the firmware uses for stored data blocks."""
    return crc16_modbus(data)