import pytest

from greybus.operation import GreybusError, OperationResult, build_request
from greybus.sdio import (
    Capabilities,
    CommandRequest,
    CommandResponse,
    EventRequest,
    SdioDataFlags,
    SdioOperationType,
    SdioTransferRequest,
    SdioTransferResponse,
    SetIosRequest,
)


@pytest.mark.parametrize(
    "op_type, wire",
    [(SdioOperationType.COMMAND, 0x04), (SdioOperationType.EVENT, 0x06)],
)
def test_operation_type_on_wire(op_type, wire):
    assert build_request(1, op_type)[4] == wire


@pytest.mark.parametrize(
    "flags, wire",
    [(SdioDataFlags.WRITE | SdioDataFlags.READ, 0x03), (SdioDataFlags.STREAM, 0x04)],
)
def test_data_flags_on_wire(flags, wire):
    assert SdioTransferRequest(flags, 0, 0, b"").pack()[0] == wire


def test_capabilities_round_trip():
    caps = Capabilities(0x1, 0x00FF8000, 400000, 50000000, 511, 512)
    assert Capabilities.unpack(caps.pack()) == caps


def test_capabilities_short():
    with pytest.raises(GreybusError) as info:
        Capabilities.unpack(bytes(5))
    assert info.value.result == OperationResult.INVALID


def test_set_ios_round_trip():
    ios = SetIosRequest(25000000, 0x80, 1, 2, 4, 0, 1, 0)
    assert SetIosRequest.unpack(ios.pack()) == ios


def test_set_ios_out_of_range():
    with pytest.raises(ValueError):
        SetIosRequest(0, 0, 256, 0, 0, 0, 0, 0).pack()


def test_command_packed_layout():
    cmd = CommandRequest(52, 0x01, 0x02, 0x12345678, 1, 512)
    data = cmd.pack()
    assert len(data) == 11
    assert data[3:7] == (0x12345678).to_bytes(4, "little")
    assert CommandRequest.unpack(data) == cmd


def test_command_response_round_trip():
    rsp = CommandResponse((1, 2, 3, 0xFFFFFFFF))
    assert CommandResponse.unpack(rsp.pack()) == rsp


def test_command_response_wrong_length():
    with pytest.raises(ValueError):
        CommandResponse((1, 2)).pack()


def test_transfer_request_round_trip():
    req = SdioTransferRequest(SdioDataFlags.WRITE, 2, 4, b"abcdefgh")
    again = SdioTransferRequest.unpack(req.pack())
    assert again == req
    assert again.data_flags is SdioDataFlags.WRITE


def test_transfer_request_short():
    with pytest.raises(GreybusError):
        SdioTransferRequest.unpack(b"\x01\x00")


def test_transfer_response_round_trip():
    rsp = SdioTransferResponse(1, 3, b"xyz")
    assert SdioTransferResponse.unpack(rsp.pack()) == rsp


def test_event_round_trip():
    evt = EventRequest(0x02)
    assert evt.pack() == b"\x02"
    assert EventRequest.unpack(evt.pack()) == evt


def test_event_short():
    with pytest.raises(GreybusError):
        EventRequest.unpack(b"")