"""Greybus control protocol: manifest, connections, power and timesync."""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Optional, Set, Tuple

from greybus.operation import (
    GB_INVALID_TYPE,
    GB_TIMESYNC_MAX_STROBES,
    Driver,
    GreybusError,
    Operation,
    OperationHandler,
    OperationResult,
)

log = logging.getLogger(__name__)

GB_CONTROL_VERSION_MAJOR = 0x00
GB_CONTROL_VERSION_MINOR = 0x01

GB_CONTROL_PWR_STATE_OFF = 0x00
GB_CONTROL_PWR_STATE_SUSPEND = 0x01
GB_CONTROL_PWR_STATE_ON = 0xFF

_VERSION = struct.Struct("<BB")
_MANIFEST_SIZE = struct.Struct("<H")
_CONNECTED = struct.Struct("<H")
_BUNDLE_PM_RESPONSE = struct.Struct("<B")
_INTERFACE_VERSION = struct.Struct("<HH")
_INTF_PWR_SET = struct.Struct("<B")
_BUNDLE_PWR_SET = struct.Struct("<BB")
_PWR_SET_RESPONSE = struct.Struct("<B")
_TIMESYNC_ENABLE = struct.Struct("<BQII")
_TIMESYNC_AUTHORITATIVE = struct.Struct(f"<{GB_TIMESYNC_MAX_STROBES}Q")
_LAST_EVENT = struct.Struct("<Q")


class ControlOperationType(IntEnum):
    """Operation types of the control protocol."""

    INVALID = GB_INVALID_TYPE
    PROTOCOL_VERSION = 0x01
    GET_MANIFEST_SIZE = 0x03
    GET_MANIFEST = 0x04
    CONNECTED = 0x05
    DISCONNECTED = 0x06
    TIMESYNC_ENABLE = 0x07
    TIMESYNC_DISABLE = 0x08
    TIMESYNC_AUTHORITATIVE = 0x09
    INTERFACE_VERSION = 0x0A
    BUNDLE_VERSION = 0x0B
    DISCONNECTING = 0x0C
    TIMESYNC_GET_LAST_EVENT = 0x0D
    MODE_SWITCH = 0x0E
    BUNDLE_SUSPEND = 0x0F
    BUNDLE_RESUME = 0x10
    BUNDLE_DEACTIVATE = 0x11
    BUNDLE_ACTIVATE = 0x12
    INTF_SUSPEND_PREPARE = 0x13
    INTF_DEACTIVATE_PREPARE = 0x14
    INTF_HIBERNATE_ABORT = 0x15


class BundlePmStatus(IntEnum):
    """Status codes of bundle power management operations."""

    OK = 0x00
    INVAL = 0x01
    BUSY = 0x02
    FAIL = 0x03
    NA = 0x04


class PowerResult(IntEnum):
    """Result codes of power state set operations."""

    OK = 0x00
    BUSY = 0x01
    ERROR_CAP = 0x02
    NOSUPP = 0x03
    FAIL = 0x04


@dataclass
class ControlBackend:
    """The interface services the control protocol relies on, kept in memory.

    Methods signal failure by raising :class:`GreybusError`; subclasses
    that drive real transports override them.
    """

    manifest: Optional[bytes] = None
    interface_major: int = 0
    interface_minor: int = 0
    bundles: Dict[int, Any] = field(default_factory=dict)
    listening: Set[int] = field(default_factory=set)
    tx_flow: Set[int] = field(default_factory=set)
    reset_cports: List[int] = field(default_factory=list)
    events: List[Tuple[int, bool]] = field(default_factory=list)
    timesync_enabled: bool = False
    timesync_params: Optional[Tuple[int, int, int, int]] = None
    authoritative_frame_times: Tuple[int, ...] = ()
    last_event: int = 0

    def manifest_blob(self) -> Optional[bytes]:
        return self.manifest

    def manifest_size(self) -> int:
        return len(self.manifest or b"")

    def listen(self, cport: int) -> None:
        self.listening.add(cport)

    def stop_listening(self, cport: int) -> None:
        self.listening.discard(cport)

    def notify(self, cport: int, connected: bool) -> None:
        self.events.append((cport, connected))

    def enable_tx_flow(self, cport: int) -> None:
        self.tx_flow.add(cport)

    def disable_tx_flow(self, cport: int) -> None:
        self.tx_flow.discard(cport)

    def reset_cport(self, cport: int) -> None:
        self.reset_cports.append(cport)

    def bundle_by_id(self, bundle_id: int) -> Any:
        return self.bundles.get(bundle_id)

    def timesync_enable(self, count: int, frame_time: int, strobe_delay: int, refclk: int) -> None:
        self.timesync_enabled = True
        self.timesync_params = (count, frame_time, strobe_delay, refclk)

    def timesync_disable(self) -> None:
        self.timesync_enabled = False

    def timesync_authoritative(self, frame_times: Tuple[int, ...]) -> None:
        self.authoritative_frame_times = tuple(frame_times)

    def timesync_get_last_event(self) -> int:
        return self.last_event


def _short(operation: Operation, layout: struct.Struct) -> bool:
    if operation.request_payload_size < layout.size:
        log.error("dropping short message")
        return True
    return False


class ControlProtocol:
    """Handlers of the control protocol, served over one backend."""

    def __init__(self, backend: Optional[ControlBackend] = None) -> None:
        self.backend = backend if backend is not None else ControlBackend()

    def protocol_version(self, operation: Operation) -> int:
        response = operation.alloc_response(_VERSION.size)
        _VERSION.pack_into(response, 0, GB_CONTROL_VERSION_MAJOR, GB_CONTROL_VERSION_MINOR)
        return OperationResult.SUCCESS

    def get_manifest_size(self, operation: Operation) -> int:
        response = operation.alloc_response(_MANIFEST_SIZE.size)
        _MANIFEST_SIZE.pack_into(response, 0, self.backend.manifest_size())
        return OperationResult.SUCCESS

    def get_manifest(self, operation: Operation) -> int:
        size = self.backend.manifest_size()
        response = operation.alloc_response(size)
        blob = self.backend.manifest_blob()
        if blob is None:
            log.error("Failed to get a valid manifest")
            return OperationResult.INVALID
        response[:] = bytes(blob[:size])
        return OperationResult.SUCCESS

    def connected(self, operation: Operation) -> int:
        if _short(operation, _CONNECTED):
            return OperationResult.INVALID
        (cport,) = _CONNECTED.unpack_from(operation.request_payload)
        try:
            self.backend.listen(cport)
        except GreybusError as exc:
            log.error("Can not connect cport %d: error %d", cport, exc.result)
            return OperationResult.INVALID
        try:
            self.backend.notify(cport, True)
        except GreybusError as exc:
            self.backend.stop_listening(cport)
            return exc.result
        self.backend.enable_tx_flow(cport)
        return OperationResult.SUCCESS

    def disconnected(self, operation: Operation) -> int:
        if _short(operation, _CONNECTED):
            return OperationResult.INVALID
        (cport,) = _CONNECTED.unpack_from(operation.request_payload)
        self.backend.disable_tx_flow(cport)
        try:
            self.backend.notify(cport, False)
        except GreybusError:
            # The cport is still reset and released below.
            log.error("Cannot notify GB driver of disconnect event.")
        self.backend.reset_cport(cport)
        try:
            self.backend.stop_listening(cport)
        except GreybusError as exc:
            log.error("Can not disconnect cport %d: error %d", cport, exc.result)
            return OperationResult.INVALID
        return OperationResult.SUCCESS

    def disconnecting(self, operation: Operation) -> int:
        return OperationResult.SUCCESS

    def bundle_pm(self, operation: Operation) -> int:
        """Serve every bundle and interface power management request."""
        response = operation.alloc_response(_BUNDLE_PM_RESPONSE.size)
        _BUNDLE_PM_RESPONSE.pack_into(response, 0, BundlePmStatus.OK)
        return OperationResult.SUCCESS

    def interface_version(self, operation: Operation) -> int:
        response = operation.alloc_response(_INTERFACE_VERSION.size)
        _INTERFACE_VERSION.pack_into(
            response, 0, self.backend.interface_major, self.backend.interface_minor
        )
        return OperationResult.SUCCESS

    def intf_pwr_set(self, operation: Operation) -> int:
        if _short(operation, _INTF_PWR_SET):
            return OperationResult.INVALID
        operation.alloc_response(_PWR_SET_RESPONSE.size)
        return OperationResult.PROTOCOL_BAD

    def bundle_pwr_set(self, operation: Operation) -> int:
        if _short(operation, _BUNDLE_PWR_SET):
            return OperationResult.INVALID
        response = operation.alloc_response(_PWR_SET_RESPONSE.size)
        bundle_id, pwr_state = _BUNDLE_PWR_SET.unpack_from(operation.request_payload)
        if self.backend.bundle_by_id(bundle_id) is None:
            return OperationResult.INVALID
        if pwr_state not in (
            GB_CONTROL_PWR_STATE_OFF,
            GB_CONTROL_PWR_STATE_SUSPEND,
            GB_CONTROL_PWR_STATE_ON,
        ):
            return OperationResult.PROTOCOL_BAD
        _PWR_SET_RESPONSE.pack_into(response, 0, PowerResult.OK)
        return OperationResult.SUCCESS

    def timesync_enable(self, operation: Operation) -> int:
        if _short(operation, _TIMESYNC_ENABLE):
            return OperationResult.INVALID
        count, frame_time, strobe_delay, refclk = _TIMESYNC_ENABLE.unpack_from(
            operation.request_payload
        )
        try:
            self.backend.timesync_enable(count, frame_time, strobe_delay, refclk)
        except GreybusError as exc:
            return exc.result
        return OperationResult.SUCCESS

    def timesync_disable(self, operation: Operation) -> int:
        try:
            self.backend.timesync_disable()
        except GreybusError as exc:
            return exc.result
        return OperationResult.SUCCESS

    def timesync_authoritative(self, operation: Operation) -> int:
        if _short(operation, _TIMESYNC_AUTHORITATIVE):
            return OperationResult.INVALID
        frame_times = _TIMESYNC_AUTHORITATIVE.unpack_from(operation.request_payload)
        try:
            self.backend.timesync_authoritative(frame_times)
        except GreybusError as exc:
            return exc.result
        return OperationResult.SUCCESS

    def timesync_get_last_event(self, operation: Operation) -> int:
        response = operation.alloc_response(_LAST_EVENT.size)
        try:
            frame_time = self.backend.timesync_get_last_event()
        except GreybusError as exc:
            return exc.result
        _LAST_EVENT.pack_into(response, 0, frame_time)
        return OperationResult.SUCCESS

    def driver(self) -> Driver:
        """Build the driver that dispatches control requests to this protocol."""
        t = ControlOperationType
        table = [
            (t.PROTOCOL_VERSION, self.protocol_version),
            (t.GET_MANIFEST_SIZE, self.get_manifest_size),
            (t.GET_MANIFEST, self.get_manifest),
            (t.CONNECTED, self.connected),
            (t.DISCONNECTED, self.disconnected),
            (t.INTERFACE_VERSION, self.interface_version),
            (t.DISCONNECTING, self.disconnecting),
            (t.BUNDLE_ACTIVATE, self.bundle_pm),
            (t.BUNDLE_SUSPEND, self.bundle_pm),
            (t.BUNDLE_RESUME, self.bundle_pm),
            (t.BUNDLE_DEACTIVATE, self.bundle_pm),
            (t.INTF_SUSPEND_PREPARE, self.bundle_pm),
            (t.INTF_DEACTIVATE_PREPARE, self.bundle_pm),
            (t.TIMESYNC_ENABLE, self.timesync_enable),
            (t.TIMESYNC_DISABLE, self.timesync_disable),
            (t.TIMESYNC_AUTHORITATIVE, self.timesync_authoritative),
            (t.TIMESYNC_GET_LAST_EVENT, self.timesync_get_last_event),
        ]
        return Driver(
            handlers=[OperationHandler(int(op_type), fn) for op_type, fn in table],
            name="control",
        )