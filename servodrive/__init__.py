"""Modbus ASCII slave protocol stack, CRC-16 and EEPROM cell storage for a servo drive controller."""

__version__ = "0.1.0"

__all__ = [
    "crc",
    "eeprom",
    "mb",
    "mbascii",
    "mbfunccoils",
    "mbfuncdisc",
    "mbfuncholding",
    "mbfuncinput",
    "mbfuncother",
    "mbutils",
]