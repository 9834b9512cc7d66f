"""Persistent storage of fixed-size data cells in an EEPROM-like memory."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass


class EEPROMError(Exception):
    """Base class for storage errors."""


class CellAlreadyRegisteredError(EEPROMError):
    """The cell has already been given an address."""


class CellNotRegisteredError(EEPROMError):
    """The cell has not been registered yet."""


class SizeMismatchError(EEPROMError):
    """A source or destination buffer differs in size from the cell."""


_WORD_SIZE = 4


class MemoryBackend:
    """Byte-addressed storage kept in memory."""

    def __init__(self, size: int = 4096, fill: int = 0xFF) -> None:
        if size < 0:
            raise ValueError("size must not be negative")
        if not 0 <= fill <= 0xFF:
            raise ValueError("fill must be a byte value")
        self._data = bytearray([fill]) * size

    def __len__(self) -> int:
        return len(self._data)

    def _check(self, address: int, length: int) -> None:
        if address < 0 or address + length > len(self._data):
            raise EEPROMError(
                f"range {address}..{address + length} outside memory of "
                f"{len(self._data)} bytes"
            )

    def read_word(self, address: int) -> int:
        """Read a 32-bit little-endian word."""
        self._check(address, _WORD_SIZE)
        return int.from_bytes(self._data[address : address + _WORD_SIZE], "little")

    def write_word(self, address: int, value: int) -> None:
        """Write a 32-bit little-endian word."""
        if not 0 <= value <= 0xFFFFFFFF:
            raise ValueError("word value must fit in 32 bits")
        self._check(address, _WORD_SIZE)
        self._data[address : address + _WORD_SIZE] = value.to_bytes(_WORD_SIZE, "little")

    def read_block(self, address: int, size: int) -> bytes:
        """Read *size* bytes starting at *address*."""
        self._check(address, size)
        return bytes(self._data[address : address + size])

    def write_block(self, address: int, data: bytes | bytearray | memoryview) -> None:
        """Write *data* starting at *address*."""
        payload = bytes(data)
        self._check(address, len(payload))
        self._data[address : address + len(payload)] = payload


@dataclass
class EECell:
    """A region of storage bound to an in-memory buffer."""

    address: int = 0
    block: bytearray | memoryview | None = None
    size: int = 0
    registered: bool = False


class EEPROM:
    """Allocates cells one after another and moves them to and from a backend."""

    def __init__(self, backend: MemoryBackend | None = None) -> None:
        self.backend = backend if backend is not None else MemoryBackend()
        self._next_address = 0

    @property
    def next_address(self) -> int:
        """Address the next registered cell will receive."""
        return self._next_address

    def register_cell(self, cell: EECell, block: bytearray | memoryview) -> None:
        """Bind *cell* to *block* and give it the next free address."""
        if cell.registered:
            raise CellAlreadyRegisteredError("cell already registered")
        cell.address = self._next_address
        cell.block = block
        cell.size = len(block)
        cell.registered = True
        self._next_address += cell.size

    @staticmethod
    def _require_registered(cell: EECell) -> None:
        if not cell.registered:
            raise CellNotRegisteredError("cell not registered")

    def read_cell(self, cell: EECell) -> None:
        """Load the cell's stored contents into its bound buffer."""
        self._require_registered(cell)
        cell.block[:] = self.backend.read_block(cell.address, cell.size)

    def save_cell(self, cell: EECell) -> None:
        """Store the cell's bound buffer."""
        self._require_registered(cell)
        self.backend.write_block(cell.address, cell.block)

    def read_from_cell(self, cell: EECell, destination: bytearray | memoryview) -> None:
        """Load the cell's stored contents into *destination*."""
        self._require_registered(cell)
        if len(destination) != cell.size:
            raise SizeMismatchError(
                f"destination holds {len(destination)} bytes, cell holds {cell.size}"
            )
        destination[:] = self.backend.read_block(cell.address, cell.size)

    def save_to_cell(self, cell: EECell, source: bytes | bytearray | memoryview) -> None:
        """Store *source* in the cell's region."""
        self._require_registered(cell)
        if len(source) != cell.size:
            raise SizeMismatchError(
                f"source holds {len(source)} bytes, cell holds {cell.size}"
            )
        self.backend.write_block(cell.address, source)

    def read_all(self, cells: Iterable[EECell]) -> None:
        """Read every cell in order, stopping at the first failure."""
        for cell in cells:
            self.read_cell(cell)

    def save_all(self, cells: Iterable[EECell]) -> None:
        """Save every cell in order, stopping at the first failure."""
        for cell in cells:
            self.save_cell(cell)