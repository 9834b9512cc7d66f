# servodrive

A Modbus ASCII slave protocol stack in pure Python, together with the
CRC-16 and the EEPROM cell storage used by a servo drive controller.
It has no dependencies outside the standard library.

## Modules

- `servodrive.crc` – `crc16_modbus(data)` returns the Modbus CRC-16 of a
  byte sequence (the low byte goes first on the wire); `crc_calculate(data)`
  is the checksum used for stored data blocks and returns the same value.
- `servodrive.eeprom` – `EEPROM` hands out consecutive addresses to
  `EECell` objects bound to `bytearray` buffers (`register_cell`) and moves
  them to and from a `MemoryBackend` (`read_cell`, `save_cell`,
  `read_from_cell`, `save_to_cell`, `read_all`, `save_all`). Misuse raises
  `CellAlreadyRegisteredError`, `CellNotRegisteredError` or
  `SizeMismatchError`, all subclasses of `EEPROMError`.
- `servodrive.mbutils` – protocol enumerations (`ErrorCode`,
  `ExceptionCode`, `FunctionCode`, `RegisterMode`), the `ModbusError` and
  `ExceptionResponse` exceptions, the bit-field helpers `set_bits` and
  `get_bits`, `error_to_exception`, and `RegisterCallbacks`, the class you
  subclass to expose coils, discrete inputs, input and holding registers.
  Its default methods raise `ModbusError(ErrorCode.NOREG)`.
- Function handlers, each taking a request PDU and a `RegisterCallbacks`
  and returning the response PDU or raising `ExceptionResponse`:
  - `servodrive.mbfunccoils` – `read_coils`, `write_coil`,
    `write_multiple_coils`
  - `servodrive.mbfuncdisc` – `read_discrete_inputs`
  - `servodrive.mbfuncinput` – `read_input_registers`
  - `servodrive.mbfuncholding` – `read_holding_registers`,
    `write_holding_register`, `write_multiple_holding_registers`,
    `read_write_multiple_holding_registers`, and
    `read_selected_holding_registers` (function code `0x41`, a list of
    register addresses in one request)
  - `servodrive.mbfuncother` – `SlaveIdReport` with `set_slave_id` and
    `report_slave_id`
- `servodrive.mbascii` – `AsciiTransport`, the receive and transmit state
  machines of Modbus ASCII framing, driven through a `SerialPort`; plus
  `lrc`, `char_to_bin` and `bin_to_char`.
- `servodrive.mb` – `ModbusSlave`, which ties the transport, an event queue
  and the function handler table together. Handlers can be added or removed
  with `register_handler`.

## Installation

```
pip install .
```

Run the tests with:

```
pip install .[test]
pytest
```

## Example: checksum

```python
from servodrive.crc import crc16_modbus

frame = bytes([0x01, 0x03, 0x00, 0x00, 0x00, 0x01])
wire = frame + crc16_modbus(frame).to_bytes(2, "little")
```

## Example: serving a holding register

```python
from servodrive.mb import ModbusSlave
from servodrive.mbutils import RegisterCallbacks, RegisterMode


class Registers(RegisterCallbacks):
    def holding(self, buffer, address, count, mode):
        if mode is RegisterMode.READ:
            buffer[0:2] = (0x1234).to_bytes(2, "big")


slave = ModbusSlave(1, registers=Registers())
slave.enable()
slave.poll()                      # READY

for byte in b":010300000001FB\r\n":
    slave.byte_received(byte)

slave.poll()                      # FRAME_RECEIVED
slave.poll()                      # EXECUTE: the reply is queued

while not slave.transmitter_empty():
    pass

assert bytes(slave.port.output) == b":0103021234B4\r\n"
```

`poll` handles one queued event and returns it, or `None` when nothing is
pending; it raises `ModbusError` while the slave is disabled. A request the
slave refuses is answered with the function code with its top bit set and
an `ExceptionCode`. Broadcast requests (address 0) are executed but not
answered.

## What it does not do

- `ModbusSlave` supports only `Mode.ASCII`; `Mode.RTU` and `Mode.TCP` are
  rejected with `ModbusError(ErrorCode.INVAL)`.
- It does not open a serial port. `SerialPort` keeps everything in memory:
  transmitted bytes collect in `output`, and the enable and timer methods
  only record flags. To talk to a real line, subclass `SerialPort` and
  feed received bytes to `byte_received`, call `transmitter_empty` when the
  line can take another byte and `timer_expired` on a character timeout.
- `MemoryBackend` holds its data in memory only; nothing is written to disk.
- There is no command-line program.