import pytest

from servodrive.mbfuncinput import read_input_registers
from servodrive.mbutils import (
    ErrorCode,
    ExceptionCode,
    ExceptionResponse,
    FunctionCode,
    ModbusError,
    RegisterCallbacks,
)


class FakeInputRegisters(RegisterCallbacks):
    def __init__(self, values, fail=None):
        self.values = list(values)
        self.calls = []
        self.fail = fail

    def input(self, buffer, address, count):
        self.calls.append((address, count))
        if self.fail is not None:
            raise ModbusError(self.fail)
        if address + count > len(self.values):
            raise ModbusError(ErrorCode.NOREG)
        for i, value in enumerate(self.values[address : address + count]):
            buffer[2 * i : 2 * i + 2] = value.to_bytes(2, "big")


def request(address, count):
    return (
        bytes([FunctionCode.READ_INPUT_REGISTER])
        + address.to_bytes(2, "big")
        + count.to_bytes(2, "big")
    )


def test_reads_registers_big_endian():
    values = [0x1234, 0xABCD, 0x0001, 0xFFFF]
    regs = FakeInputRegisters(values)
    response = read_input_registers(request(1, 3), regs)
    assert response[0] == FunctionCode.READ_INPUT_REGISTER
    assert response[1] == len(response) - 2
    decoded = [int.from_bytes(response[i : i + 2], "big") for i in range(2, len(response), 2)]
    assert decoded == values[1:4]


def test_wire_bytes_for_single_register():
    regs = FakeInputRegisters([0x1234])
    assert read_input_registers(request(0, 1), regs) == bytes([0x04, 0x02, 0x12, 0x34])


def test_address_passed_zero_based():
    regs = FakeInputRegisters([0] * 10)
    read_input_registers(request(7, 2), regs)
    assert regs.calls == [(7, 2)]


def test_maximum_count_accepted():
    regs = FakeInputRegisters(list(range(125)))
    response = read_input_registers(request(0, 125), regs)
    assert len(response) == 2 + 2 * 125
    assert response[1] == 2 * 125


@pytest.mark.parametrize("count", [0, 126])
def test_rejects_bad_count(count):
    with pytest.raises(ExceptionResponse) as info:
        read_input_registers(request(0, count), FakeInputRegisters([0] * 200))
    assert info.value.code is ExceptionCode.ILLEGAL_DATA_VALUE


def test_rejects_wrong_length():
    with pytest.raises(ExceptionResponse) as info:
        read_input_registers(request(0, 1) + b"\x00", FakeInputRegisters([0]))
    assert info.value.code is ExceptionCode.ILLEGAL_DATA_VALUE


def test_unknown_register_reports_illegal_data_address():
    with pytest.raises(ExceptionResponse) as info:
        read_input_registers(request(3, 2), FakeInputRegisters([0, 0, 0]))
    assert info.value.code is ExceptionCode.ILLEGAL_DATA_ADDRESS


def test_timeout_reports_busy():
    with pytest.raises(ExceptionResponse) as info:
        read_input_registers(request(0, 1), FakeInputRegisters([0], fail=ErrorCode.TIMEDOUT))
    assert info.value.code is ExceptionCode.SLAVE_BUSY