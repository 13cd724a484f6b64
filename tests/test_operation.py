import pytest

from greybus.operation import (
    GB_MAX_PAYLOAD_SIZE,
    GB_TYPE_RESPONSE_FLAG,
    HEADER_SIZE,
    Driver,
    GreybusError,
    Operation,
    OperationHandler,
    OperationHeader,
    OperationResult,
    build_request,
)


def _version(operation):
    response = operation.alloc_response(2)
    response[0] = 0
    response[1] = 1
    return OperationResult.SUCCESS


def _no_memory(operation):
    raise GreybusError(OperationResult.NO_MEMORY)


def _driver():
    return Driver(
        handlers=[
            OperationHandler(0x01, _version),
            OperationHandler(0x02, _no_memory),
        ]
    )


def test_header_size_is_eight():
    assert len(build_request(1, 1)) == HEADER_SIZE == 8
    op = Operation.from_message(0, build_request(1, 1))
    assert len(op.alloc_response(GB_MAX_PAYLOAD_SIZE)) == 2048 - 8


def test_build_request_wire_bytes():
    assert build_request(0xABCD, 0x01) == bytes([8, 0, 0xCD, 0xAB, 1, 0, 0, 0])


def test_header_round_trip():
    header = OperationHeader(size=12, id=0x1234, type=0x81, result=6)
    assert OperationHeader.unpack(header.pack()) == header
    assert header.is_response


def test_header_unpack_short_raises():
    with pytest.raises(GreybusError) as info:
        OperationHeader.unpack(b"\x08\x00")
    assert info.value.result == OperationResult.INVALID


def test_header_pack_out_of_range():
    with pytest.raises(ValueError):
        OperationHeader(size=70000, id=0, type=1).pack()


def test_from_message_extracts_payload():
    message = build_request(7, 0x05, b"\x01\x02\x03")
    op = Operation.from_message(3, message)
    assert op.cport == 3
    assert op.id == 7
    assert op.type == 0x05
    assert op.request_payload == b"\x01\x02\x03"
    assert op.request_payload_size == 3


def test_from_message_size_larger_than_data():
    message = bytearray(build_request(7, 0x05, b"\x01\x02"))
    message[0] = 40
    with pytest.raises(GreybusError):
        Operation.from_message(0, bytes(message))


def test_alloc_response_too_large():
    op = Operation.from_message(0, build_request(1, 1))
    with pytest.raises(GreybusError) as info:
        op.alloc_response(GB_MAX_PAYLOAD_SIZE + 1)
    assert info.value.result == OperationResult.NO_MEMORY


def test_alloc_response_zeroed():
    op = Operation.from_message(0, build_request(1, 1))
    assert op.alloc_response(4) == bytearray(4)


def test_dispatch_protocol_version():
    op = Operation.from_message(0, build_request(0xABCD, 0x01))
    reply = _driver().dispatch(op)
    header = OperationHeader.unpack(reply)
    assert header.id == 0xABCD
    assert header.type == GB_TYPE_RESPONSE_FLAG | 0x01
    assert header.result == OperationResult.SUCCESS
    assert header.size == len(reply)
    assert reply[HEADER_SIZE:] == bytes([0, 1])


def test_dispatch_handler_error():
    op = Operation.from_message(0, build_request(2, 0x02))
    header = OperationHeader.unpack(_driver().dispatch(op))
    assert header.result == OperationResult.NO_MEMORY


def test_dispatch_unknown_type():
    op = Operation.from_message(0, build_request(2, 0x33))
    header = OperationHeader.unpack(_driver().dispatch(op))
    assert header.result == OperationResult.INVALID
    assert header.type == 0x33 | GB_TYPE_RESPONSE_FLAG


def test_handler_name_defaults_to_function_name():
    assert OperationHandler(1, _version).name == "_version"


def test_build_request_overflow():
    with pytest.raises(GreybusError):
        build_request(1, 1, bytes(GB_MAX_PAYLOAD_SIZE + 1))