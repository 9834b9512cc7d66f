import pytest

from servodrive.mbutils import (
    ErrorCode,
    ExceptionCode,
    ExceptionResponse,
    ModbusError,
    RegisterCallbacks,
    RegisterMode,
    error_to_exception,
    get_bits,
    set_bits,
)


@pytest.mark.parametrize("offset", [0, 3, 7, 8, 13])
@pytest.mark.parametrize("nbits", [1, 4, 8])
def test_set_then_get_round_trip(offset, nbits):
    buffer = bytearray(4)
    value = (1 << nbits) - 1
    set_bits(buffer, offset, nbits, value)
    assert get_bits(buffer, offset, nbits) == value


def test_whole_byte_lands_in_place():
    buffer = bytearray(3)
    set_bits(buffer, 8, 8, 0xAB)
    assert buffer == bytearray([0x00, 0xAB, 0x00])
    assert get_bits(buffer, 8, 8) == 0xAB


def test_set_bits_leaves_surrounding_bits_untouched():
    buffer = bytearray([0xFF, 0xFF, 0xFF])
    set_bits(buffer, 6, 4, 0)
    assert get_bits(buffer, 6, 4) == 0
    assert get_bits(buffer, 0, 6) == 0b111111
    assert get_bits(buffer, 10, 6) == 0b111111
    assert buffer[2] == 0xFF


def test_bits_across_byte_boundary():
    buffer = bytearray(2)
    set_bits(buffer, 5, 6, 0b101101)
    assert get_bits(buffer, 5, 6) == 0b101101
    assert get_bits(buffer, 5, 3) == 0b101
    assert get_bits(buffer, 8, 3) == 0b101


def test_individual_coils_pack_in_order():
    buffer = bytearray(2)
    states = [1, 0, 1, 1, 0, 0, 1, 0, 1, 1]
    for index, state in enumerate(states):
        set_bits(buffer, index, 1, state)
    assert [get_bits(buffer, index, 1) for index in range(len(states))] == states


def test_last_byte_can_be_accessed_when_field_fits():
    buffer = bytearray(1)
    set_bits(buffer, 2, 3, 0b111)
    assert get_bits(buffer, 2, 3) == 0b111


def test_field_past_end_raises():
    with pytest.raises(IndexError):
        set_bits(bytearray(1), 6, 4, 1)
    with pytest.raises(IndexError):
        get_bits(bytearray(1), 8, 1)


def test_too_many_bits_rejected():
    with pytest.raises(ValueError):
        set_bits(bytearray(4), 0, 9, 1)
    with pytest.raises(ValueError):
        get_bits(bytearray(4), 0, 9)


def test_value_must_fit_in_byte():
    with pytest.raises(ValueError):
        set_bits(bytearray(4), 0, 8, 256)


@pytest.mark.parametrize(
    "error, expected",
    [
        (ErrorCode.NOERR, ExceptionCode.NONE),
        (ErrorCode.NOREG, ExceptionCode.ILLEGAL_DATA_ADDRESS),
        (ErrorCode.TIMEDOUT, ExceptionCode.SLAVE_BUSY),
        (ErrorCode.IO, ExceptionCode.SLAVE_DEVICE_FAILURE),
        (ErrorCode.INVAL, ExceptionCode.SLAVE_DEVICE_FAILURE),
        (ErrorCode.NORES, ExceptionCode.SLAVE_DEVICE_FAILURE),
    ],
)
def test_error_to_exception(error, expected):
    assert error_to_exception(error) is expected


def test_exception_response_from_error():
    response = ExceptionResponse.from_error(ModbusError(ErrorCode.NOREG))
    assert response.code is ExceptionCode.ILLEGAL_DATA_ADDRESS


def test_default_callbacks_have_no_registers():
    callbacks = RegisterCallbacks()
    with pytest.raises(ModbusError) as info:
        callbacks.holding(bytearray(2), 0, 1, RegisterMode.READ)
    assert info.value.code is ErrorCode.NOREG
    with pytest.raises(ModbusError) as info:
        callbacks.coils(bytearray(1), 1, 1, RegisterMode.WRITE)
    assert info.value.code is ErrorCode.NOREG


def test_subclass_keeps_default_for_callbacks_it_does_not_override():
    class Coils(RegisterCallbacks):
        def coils(self, buffer, address, count, mode):
            for index in range(count):
                set_bits(buffer, index, 1, (address + index) % 2)

    registers = Coils()
    buffer = bytearray(1)
    registers.coils(buffer, 1, 4, RegisterMode.READ)
    assert [get_bits(buffer, index, 1) for index in range(4)] == [1, 0, 1, 0]
    with pytest.raises(ModbusError) as info:
        registers.holding(bytearray(2), 0, 1, RegisterMode.READ)
    assert info.value.code is ErrorCode.NOREG