import pytest

from servodrive.mbfunccoils import read_coils, write_coil, write_multiple_coils
from servodrive.mbutils import (
    ErrorCode,
    ExceptionCode,
    ExceptionResponse,
    FunctionCode,
    ModbusError,
    RegisterCallbacks,
    RegisterMode,
    get_bits,
    set_bits,
)


class FakeCoils(RegisterCallbacks):
    def __init__(self, size=64, fail=None):
        self.state = [False] * size
        self.calls = []
        self.fail = fail

    def coils(self, buffer, address, count, mode):
        self.calls.append((address, count, mode))
        if self.fail is not None:
            raise ModbusError(self.fail)
        first = address - 1
        if first < 0 or first + count > len(self.state):
            raise ModbusError(ErrorCode.NOREG)
        for i in range(count):
            if mode is RegisterMode.READ:
                set_bits(buffer, i, 1, int(self.state[first + i]))
            else:
                self.state[first + i] = bool(get_bits(buffer, i, 1))


def pack(bits):
    data = bytearray((len(bits) + 7) // 8)
    for i, bit in enumerate(bits):
        set_bits(data, i, 1, int(bit))
    return bytes(data)


def read_request(address, count):
    return bytes([FunctionCode.READ_COILS]) + address.to_bytes(2, "big") + count.to_bytes(2, "big")


def write_multi_request(address, bits):
    data = pack(bits)
    return (
        bytes([FunctionCode.WRITE_MULTIPLE_COILS])
        + address.to_bytes(2, "big")
        + len(bits).to_bytes(2, "big")
        + bytes([len(data)])
        + data
    )


def test_write_multiple_then_read_round_trip():
    regs = FakeCoils()
    bits = [True, False, True, True, False, False, True, False, True, True]
    request = write_multi_request(3, bits)
    assert write_multiple_coils(request, regs) == request[:5]
    response = read_coils(read_request(3, len(bits)), regs)
    assert response[0] == FunctionCode.READ_COILS
    assert response[1] == len(pack(bits))
    assert response[2:] == pack(bits)


def test_read_coils_wire_bytes():
    regs = FakeCoils()
    regs.state[0] = True
    regs.state[2] = True
    assert read_coils(read_request(0, 3), regs) == bytes([0x01, 0x01, 0x05])


def test_address_is_one_based_for_callbacks():
    regs = FakeCoils()
    write_coil(bytes([FunctionCode.WRITE_SINGLE_COIL, 0, 0, 0xFF, 0]), regs)
    assert regs.state[0] is True
    assert regs.calls[0][1:] == (1, RegisterMode.WRITE)


def test_write_coil_echoes_request_and_clears():
    regs = FakeCoils()
    regs.state[4] = True
    request = bytes([FunctionCode.WRITE_SINGLE_COIL, 0, 4, 0x00, 0x00])
    assert write_coil(request, regs) == request
    assert regs.state[4] is False


@pytest.mark.parametrize("value", [(0x12, 0x34), (0xFF, 0x01), (0x01, 0x00)])
def test_write_coil_rejects_bad_value(value):
    request = bytes([FunctionCode.WRITE_SINGLE_COIL, 0, 0, *value])
    with pytest.raises(ExceptionResponse) as info:
        write_coil(request, FakeCoils())
    assert info.value.code is ExceptionCode.ILLEGAL_DATA_VALUE


def test_write_coil_rejects_wrong_length():
    with pytest.raises(ExceptionResponse) as info:
        write_coil(bytes([FunctionCode.WRITE_SINGLE_COIL, 0, 0, 0xFF]), FakeCoils())
    assert info.value.code is ExceptionCode.ILLEGAL_DATA_VALUE


@pytest.mark.parametrize("count", [0, 2001])
def test_read_coils_rejects_bad_count(count):
    with pytest.raises(ExceptionResponse) as info:
        read_coils(read_request(0, count), FakeCoils())
    assert info.value.code is ExceptionCode.ILLEGAL_DATA_VALUE


def test_read_coils_rejects_wrong_length():
    with pytest.raises(ExceptionResponse) as info:
        read_coils(read_request(0, 1) + b"\x00", FakeCoils())
    assert info.value.code is ExceptionCode.ILLEGAL_DATA_VALUE


def test_read_coils_maximum_count_reaches_callback():
    regs = FakeCoils()
    with pytest.raises(ExceptionResponse) as info:
        read_coils(read_request(0, 2000), regs)
    assert info.value.code is ExceptionCode.ILLEGAL_DATA_ADDRESS
    assert regs.calls[0][1] == 2000


def test_write_multiple_rejects_byte_count_mismatch():
    request = bytearray(write_multi_request(0, [True] * 9))
    request[5] = 1
    with pytest.raises(ExceptionResponse) as info:
        write_multiple_coils(bytes(request), FakeCoils())
    assert info.value.code is ExceptionCode.ILLEGAL_DATA_VALUE


def test_write_multiple_rejects_short_frame():
    with pytest.raises(ExceptionResponse) as info:
        write_multiple_coils(write_multi_request(0, [True])[:6], FakeCoils())
    assert info.value.code is ExceptionCode.ILLEGAL_DATA_VALUE


def test_write_multiple_rejects_too_many_coils():
    request = write_multi_request(0, [False] * 1969)
    with pytest.raises(ExceptionResponse) as info:
        write_multiple_coils(request, FakeCoils(size=4000))
    assert info.value.code is ExceptionCode.ILLEGAL_DATA_VALUE


def test_callback_errors_become_exceptions():
    with pytest.raises(ExceptionResponse) as info:
        read_coils(read_request(0, 1), FakeCoils(fail=ErrorCode.TIMEDOUT))
    assert info.value.code is ExceptionCode.SLAVE_BUSY
    with pytest.raises(ExceptionResponse) as info:
        write_coil(bytes([FunctionCode.WRITE_SINGLE_COIL, 0, 0, 0xFF, 0]), FakeCoils(fail=ErrorCode.IO))
    assert info.value.code is ExceptionCode.SLAVE_DEVICE_FAILURE