"""Modbus Report Slave ID support."""

from __future__ import annotations

from servodrive.mbutils import (
    PDU_DATA_OFF,
    ErrorCode,
    ModbusError,
    RegisterCallbacks,
)

SLAVEID_BUF_SIZE = 32


class SlaveIdReport:
    """Holds the identification returned by the Report Slave ID function."""

    def __init__(self, buffer_size: int = SLAVEID_BUF_SIZE) -> None:
        self.buffer_size = buffer_size
        self._data = b""

    @property
    def data(self) -> bytes:
        """The identification bytes currently reported."""
        return self._data

    def set_slave_id(self, slave_id: int, is_running: bool, additional: bytes = b"") -> None:
        """Set the slave id, run indicator and additional data.

        Raises ModbusError with NORES if the data does not fit the buffer.
        """
        extra = bytes(additional)
        if not 0 <= slave_id <= 0xFF:
            raise ValueError("slave id must fit in a byte")
        if len(extra) + 2 >= self.buffer_size:
            raise ModbusError(ErrorCode.NORES)
        self._data = bytes([slave_id, 0xFF if is_running else 0x00]) + extra

    def report_slave_id(self, pdu, registers: RegisterCallbacks | None = None) -> bytes:
        """Serve a Report Slave ID request and return the response PDU."""
        frame = bytes(pdu)
        return frame[:PDU_DATA_OFF] + self._data