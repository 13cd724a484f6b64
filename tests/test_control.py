import struct

import pytest

from greybus.control import (
    BundlePmStatus,
    ControlBackend,
    ControlOperationType,
    ControlProtocol,
    PowerResult,
)
from greybus.operation import (
    HEADER_SIZE,
    GreybusError,
    Operation,
    OperationHeader,
    OperationResult,
    build_request,
)


def run(protocol, op_type, payload=b"", op_id=0xABCD):
    message = build_request(op_id, int(op_type), payload)
    response = protocol.driver().dispatch(Operation.from_message(0, message))
    header = OperationHeader.unpack(response)
    return header, response[HEADER_SIZE:]


def test_protocol_version():
    header, payload = run(ControlProtocol(), ControlOperationType.PROTOCOL_VERSION)
    assert header.result == OperationResult.SUCCESS
    assert header.id == 0xABCD
    assert header.type == 0x80 | ControlOperationType.PROTOCOL_VERSION
    assert payload == bytes([0x00, 0x01])


def test_manifest_size_and_blob():
    manifest = bytes(range(20))
    protocol = ControlProtocol(ControlBackend(manifest=manifest))
    header, payload = run(protocol, ControlOperationType.GET_MANIFEST_SIZE)
    assert header.result == OperationResult.SUCCESS
    assert struct.unpack("<H", payload)[0] == len(manifest)
    header, payload = run(protocol, ControlOperationType.GET_MANIFEST)
    assert header.result == OperationResult.SUCCESS
    assert payload == manifest


def test_get_manifest_without_manifest_is_invalid():
    header, _ = run(ControlProtocol(), ControlOperationType.GET_MANIFEST)
    assert header.result == OperationResult.INVALID


def test_connected_listens_and_enables_flow():
    backend = ControlBackend()
    header, payload = run(ControlProtocol(backend), ControlOperationType.CONNECTED, struct.pack("<H", 5))
    assert header.result == OperationResult.SUCCESS
    assert payload == b""
    assert 5 in backend.listening
    assert 5 in backend.tx_flow
    assert backend.events == [(5, True)]


def test_connected_short_message():
    header, _ = run(ControlProtocol(), ControlOperationType.CONNECTED, b"\x05")
    assert header.result == OperationResult.INVALID


class FailingListen(ControlBackend):
    def listen(self, cport):
        raise GreybusError(OperationResult.TIMEOUT)


class FailingNotify(ControlBackend):
    def notify(self, cport, connected):
        raise GreybusError(OperationResult.TIMEOUT)


class FailingStop(ControlBackend):
    def stop_listening(self, cport):
        raise GreybusError(OperationResult.TIMEOUT)


def test_connected_listen_failure_is_invalid():
    header, _ = run(ControlProtocol(FailingListen()), ControlOperationType.CONNECTED, struct.pack("<H", 3))
    assert header.result == OperationResult.INVALID


def test_connected_notify_failure_stops_listening():
    backend = FailingNotify()
    header, _ = run(ControlProtocol(backend), ControlOperationType.CONNECTED, struct.pack("<H", 3))
    assert header.result == OperationResult.TIMEOUT
    assert 3 not in backend.listening
    assert 3 not in backend.tx_flow


def test_disconnected_resets_even_if_notify_fails():
    backend = FailingNotify(listening={7}, tx_flow={7})
    header, _ = run(ControlProtocol(backend), ControlOperationType.DISCONNECTED, struct.pack("<H", 7))
    assert header.result == OperationResult.SUCCESS
    assert backend.reset_cports == [7]
    assert 7 not in backend.listening
    assert 7 not in backend.tx_flow


def test_disconnected_stop_failure_is_invalid():
    backend = FailingStop()
    header, _ = run(ControlProtocol(backend), ControlOperationType.DISCONNECTED, struct.pack("<H", 2))
    assert header.result == OperationResult.INVALID
    assert backend.reset_cports == [2]


def test_disconnecting_succeeds():
    header, payload = run(ControlProtocol(), ControlOperationType.DISCONNECTING)
    assert header.result == OperationResult.SUCCESS
    assert payload == b""


@pytest.mark.parametrize(
    "op_type",
    [
        ControlOperationType.BUNDLE_ACTIVATE,
        ControlOperationType.BUNDLE_SUSPEND,
        ControlOperationType.BUNDLE_RESUME,
        ControlOperationType.BUNDLE_DEACTIVATE,
        ControlOperationType.INTF_SUSPEND_PREPARE,
        ControlOperationType.INTF_DEACTIVATE_PREPARE,
    ],
)
def test_bundle_pm_reports_ok(op_type):
    header, payload = run(ControlProtocol(), op_type, b"\x01")
    assert header.result == OperationResult.SUCCESS
    assert payload == bytes([BundlePmStatus.OK])


def test_interface_version_from_backend():
    backend = ControlBackend(interface_major=2, interface_minor=9)
    header, payload = run(ControlProtocol(backend), ControlOperationType.INTERFACE_VERSION)
    assert header.result == OperationResult.SUCCESS
    assert struct.unpack("<HH", payload) == (2, 9)


def test_unregistered_type_is_invalid():
    header, _ = run(ControlProtocol(), ControlOperationType.MODE_SWITCH)
    assert header.result == OperationResult.INVALID


def make_operation(payload):
    return Operation.from_message(0, build_request(1, 0x20, payload))


def test_intf_pwr_set_is_protocol_bad():
    protocol = ControlProtocol()
    assert protocol.intf_pwr_set(make_operation(b"\x00")) == OperationResult.PROTOCOL_BAD
    assert protocol.intf_pwr_set(make_operation(b"")) == OperationResult.INVALID


def test_bundle_pwr_set():
    protocol = ControlProtocol(ControlBackend(bundles={1: object()}))
    op = make_operation(bytes([1, 0xFF]))
    assert protocol.bundle_pwr_set(op) == OperationResult.SUCCESS
    assert bytes(op.response_payload) == bytes([PowerResult.OK])
    assert protocol.bundle_pwr_set(make_operation(bytes([4, 0x00]))) == OperationResult.INVALID
    assert protocol.bundle_pwr_set(make_operation(bytes([1, 0x02]))) == OperationResult.PROTOCOL_BAD
    assert protocol.bundle_pwr_set(make_operation(b"\x01")) == OperationResult.INVALID


def test_timesync_enable_and_disable():
    backend = ControlBackend()
    protocol = ControlProtocol(backend)
    payload = struct.pack("<BQII", 4, 123456789, 1000, 19200000)
    header, _ = run(protocol, ControlOperationType.TIMESYNC_ENABLE, payload)
    assert header.result == OperationResult.SUCCESS
    assert backend.timesync_enabled
    assert backend.timesync_params == (4, 123456789, 1000, 19200000)
    header, _ = run(protocol, ControlOperationType.TIMESYNC_DISABLE)
    assert header.result == OperationResult.SUCCESS
    assert not backend.timesync_enabled


def test_timesync_enable_short():
    header, _ = run(ControlProtocol(), ControlOperationType.TIMESYNC_ENABLE, b"\x04")
    assert header.result == OperationResult.INVALID


def test_timesync_authoritative():
    backend = ControlBackend()
    times = (10, 20, 30, 40)
    header, _ = run(ControlProtocol(backend), ControlOperationType.TIMESYNC_AUTHORITATIVE, struct.pack("<4Q", *times))
    assert header.result == OperationResult.SUCCESS
    assert backend.authoritative_frame_times == times
    header, _ = run(ControlProtocol(backend), ControlOperationType.TIMESYNC_AUTHORITATIVE, struct.pack("<3Q", 1, 2, 3))
    assert header.result == OperationResult.INVALID


def test_timesync_get_last_event():
    backend = ControlBackend(last_event=987654321)
    header, payload = run(ControlProtocol(backend), ControlOperationType.TIMESYNC_GET_LAST_EVENT)
    assert header.result == OperationResult.SUCCESS
    assert struct.unpack("<Q", payload)[0] == 987654321


def test_timesync_backend_error_is_forwarded():
    class Broken(ControlBackend):
        def timesync_disable(self):
            raise GreybusError(OperationResult.RETRY)

    header, _ = run(ControlProtocol(Broken()), ControlOperationType.TIMESYNC_DISABLE)
    assert header.result == OperationResult.RETRY