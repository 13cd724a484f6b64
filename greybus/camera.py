"""Greybus camera protocol: capabilities, stream configuration and capture."""

from __future__ import annotations

import errno
import logging
import struct
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Callable, List, Optional, Sequence, Tuple

from greybus.operation import (
    GB_INVALID_TYPE,
    GB_MAX_PAYLOAD_SIZE,
    Driver,
    GreybusError,
    Operation,
    OperationHandler,
    OperationResult,
)

log = logging.getLogger(__name__)

GB_CAMERA_VERSION_MAJOR = 0
GB_CAMERA_VERSION_MINOR = 1

MAX_STREAMS_NUM = 4

GB_CAM_OP_INVALID_STATE = 0x80
GB_CAM_DT_NOT_USED = 0x00

GB_CAMERA_CONFIGURE_STREAMS_TEST_ONLY = 0x01
GB_CAMERA_CONFIGURE_STREAMS_ADJUSTED = 0x01

_VERSION = struct.Struct("<BB")
_STREAM_REQ = struct.Struct("<HHHH")
_STREAM_RESP = struct.Struct("<HHHBBB3xI")
_CONFIGURE_REQ = struct.Struct("<BBH")
_CONFIGURE_RESP = struct.Struct("<BBBxII")
_CAPTURE_REQ = struct.Struct("<IBBH")
_FLUSH_RESP = struct.Struct("<I")


class CameraOperationType(IntEnum):
    """Operation types of the camera protocol."""

    INVALID = GB_INVALID_TYPE
    PROTOCOL_VERSION = 0x01
    CAPABILITIES = 0x02
    CONFIGURE_STREAMS = 0x03
    CAPTURE = 0x04
    FLUSH = 0x05
    METADATA = 0x06


class CameraState(IntEnum):
    """Operational states of the camera module."""

    REMOVED = 0
    INSERTED = 1
    UNCONFIGURED = 2
    CONFIGURED = 3
    STREAMING = 4


def _unpack(layout: struct.Struct, data: bytes, what: str, offset: int = 0) -> tuple:
    if len(data) < offset + layout.size:
        raise GreybusError(OperationResult.INVALID, f"short {what}")
    return layout.unpack_from(data, offset)


@dataclass(frozen=True)
class StreamConfigRequest:
    """Requested geometry and format of one stream."""

    width: int
    height: int
    format: int
    padding: int = 0

    def pack(self) -> bytes:
        try:
            return _STREAM_REQ.pack(self.width, self.height, self.format, self.padding)
        except struct.error as exc:
            raise ValueError(f"field out of range: {exc}") from exc

    @classmethod
    def unpack(cls, data: bytes) -> "StreamConfigRequest":
        return cls(*_unpack(_STREAM_REQ, data, "stream configuration request"))


@dataclass(frozen=True)
class StreamConfigResponse:
    """Configuration the module settled on for one stream."""

    width: int
    height: int
    format: int
    virtual_channel: int
    data_type: Tuple[int, int]
    max_size: int

    def pack(self) -> bytes:
        if len(self.data_type) != 2:
            raise ValueError("a stream has exactly two data types")
        try:
            return _STREAM_RESP.pack(
                self.width,
                self.height,
                self.format,
                self.virtual_channel,
                self.data_type[0],
                self.data_type[1],
                self.max_size,
            )
        except struct.error as exc:
            raise ValueError(f"field out of range: {exc}") from exc

    @classmethod
    def unpack(cls, data: bytes) -> "StreamConfigResponse":
        width, height, fmt, vc, dt0, dt1, max_size = _unpack(
            _STREAM_RESP, data, "stream configuration response"
        )
        return cls(width, height, fmt, vc, (dt0, dt1), max_size)


@dataclass(frozen=True)
class StreamsAnswer:
    """A camera device's answer for one configured stream."""

    width: int
    height: int
    format: int
    virtual_channel: int = 0
    data_type: int = 0
    max_size: int = 0


@dataclass(frozen=True)
class CsiBusConfig:
    """CSI bus parameters reported with a stream configuration."""

    num_lanes: int = 1
    bus_freq: int = 0
    lines_per_second: int = 0


@dataclass(frozen=True)
class CaptureInfo:
    """A capture request as passed to the camera device."""

    request_id: int
    streams: int
    num_frames: int
    settings: bytes = b""

    @property
    def settings_size(self) -> int:
        return len(self.settings)


@dataclass
class CameraDevice:
    """An in-memory camera device; real devices override its methods.

    Methods signal failure by raising :class:`GreybusError`.
    """

    capabilities_blob: bytes = b""
    virtual_channel: int = 0
    data_type: int = 0
    max_frame_size: int = 0
    csi: CsiBusConfig = field(default_factory=CsiBusConfig)
    streams: List[StreamConfigRequest] = field(default_factory=list)
    captures: List[CaptureInfo] = field(default_factory=list)
    closed: bool = False

    def capabilities(self) -> bytes:
        return bytes(self.capabilities_blob)

    def set_streams_cfg(
        self, num_streams: int, flags: int, requests: Sequence[StreamConfigRequest]
    ) -> Tuple[int, int, CsiBusConfig, List[StreamsAnswer]]:
        """Configure streams; return (streams, flags, bus config, answers)."""
        self.streams = list(requests)
        answers = [
            StreamsAnswer(
                r.width, r.height, r.format, self.virtual_channel, self.data_type,
                self.max_frame_size,
            )
            for r in requests
        ]
        return num_streams, 0, self.csi, answers

    def capture(self, info: CaptureInfo) -> None:
        self.captures.append(info)

    def flush(self) -> int:
        """Stop capturing; return the id of the last request processed."""
        return self.captures[-1].request_id if self.captures else 0

    def close(self) -> None:
        self.closed = True


@dataclass
class _CameraInfo:
    cport: int
    device: Optional[CameraDevice]
    state: CameraState


class CameraProtocol:
    """Handlers of the camera protocol for a single camera module."""

    def __init__(
        self, device_factory: Callable[[], Optional[CameraDevice]] = CameraDevice
    ) -> None:
        self._open_device = device_factory
        self._info: Optional[_CameraInfo] = None

    @property
    def state(self) -> CameraState:
        return self._info.state if self._info else CameraState.REMOVED

    @property
    def device(self) -> Optional[CameraDevice]:
        return self._info.device if self._info else None

    def init(self, cport: int) -> None:
        """Open the camera device and enter the unconfigured state."""
        info = _CameraInfo(cport, None, CameraState.INSERTED)
        device = self._open_device()
        if device is None:
            raise OSError(errno.EIO, "cannot open camera device")
        info.device = device
        info.state = CameraState.UNCONFIGURED
        self._info = info

    def exit(self, cport: int) -> None:
        """Close the camera device and forget its state."""
        if self._info is None:
            raise ValueError("camera protocol is not initialised")
        if cport != self._info.cport:
            raise ValueError(f"cport {cport} does not match {self._info.cport}")
        if self._info.device is not None:
            self._info.device.close()
        self._info = None

    def protocol_version(self, operation: Operation) -> int:
        response = operation.alloc_response(_VERSION.size)
        _VERSION.pack_into(response, 0, GB_CAMERA_VERSION_MAJOR, GB_CAMERA_VERSION_MINOR)
        return OperationResult.SUCCESS

    def capabilities(self, operation: Operation) -> int:
        if self.state < CameraState.UNCONFIGURED:
            log.debug("state error %d", self.state)
            return OperationResult.INVALID
        try:
            caps = self._info.device.capabilities()
        except GreybusError as exc:
            return exc.result
        if len(caps) > GB_MAX_PAYLOAD_SIZE:
            return OperationResult.NO_MEMORY
        response = operation.alloc_response(len(caps))
        response[:] = caps
        return OperationResult.SUCCESS

    def configure_streams(self, operation: Operation) -> int:
        payload = operation.request_payload
        if len(payload) < _CONFIGURE_REQ.size:
            log.error("dropping short message")
            return OperationResult.INVALID
        num_streams, flags, _ = _CONFIGURE_REQ.unpack_from(payload)
        if num_streams > MAX_STREAMS_NUM:
            return OperationResult.INVALID

        state = self.state
        if num_streams == 0:
            if state < CameraState.UNCONFIGURED or state > CameraState.CONFIGURED:
                return OperationResult.INVALID
        elif state != CameraState.UNCONFIGURED:
            return OperationResult.INVALID

        info = self._info
        device = info.device
        if num_streams == 0:
            info.state = CameraState.UNCONFIGURED
            try:
                device.set_streams_cfg(0, 0, [])
            except GreybusError as exc:
                return exc.result
            operation.alloc_response(_CONFIGURE_RESP.size)
            return OperationResult.SUCCESS

        end = _CONFIGURE_REQ.size + num_streams * _STREAM_REQ.size
        if len(payload) < end:
            log.error("dropping short message")
            return OperationResult.INVALID
        requests = [
            StreamConfigRequest.unpack(payload[offset:offset + _STREAM_REQ.size])
            for offset in range(_CONFIGURE_REQ.size, end, _STREAM_REQ.size)
        ]

        try:
            got_streams, res_flags, csi, answers = device.set_streams_cfg(
                num_streams, flags, requests
            )
        except GreybusError as exc:
            log.debug("Camera module reported error in configure stream %d", exc.result)
            return OperationResult.INVALID
        if got_streams > num_streams or got_streams > len(answers):
            log.debug("camera module answered %d streams", got_streams)
            return OperationResult.INVALID

        if res_flags & GB_CAMERA_CONFIGURE_STREAMS_ADJUSTED:
            info.state = CameraState.UNCONFIGURED
        elif flags & GB_CAMERA_CONFIGURE_STREAMS_TEST_ONLY:
            info.state = CameraState.UNCONFIGURED
        else:
            info.state = CameraState.CONFIGURED

        response = operation.alloc_response(_CONFIGURE_RESP.size + num_streams * _STREAM_RESP.size)
        _CONFIGURE_RESP.pack_into(
            response, 0, got_streams, res_flags, csi.num_lanes, csi.bus_freq,
            csi.lines_per_second,
        )
        for index, answer in enumerate(answers[:got_streams]):
            entry = StreamConfigResponse(
                answer.width,
                answer.height,
                answer.format,
                answer.virtual_channel,
                (answer.data_type, GB_CAM_DT_NOT_USED),
                answer.max_size,
            )
            offset = _CONFIGURE_RESP.size + index * _STREAM_RESP.size
            response[offset:offset + _STREAM_RESP.size] = entry.pack()
        return OperationResult.SUCCESS

    def capture(self, operation: Operation) -> int:
        if self.state not in (CameraState.CONFIGURED, CameraState.STREAMING):
            return OperationResult.INVALID
        payload = operation.request_payload
        if len(payload) < _CAPTURE_REQ.size:
            log.error("dropping short message")
            return OperationResult.INVALID
        request_id, streams, padding, num_frames = _CAPTURE_REQ.unpack_from(payload)
        if padding != 0:
            log.error("invalid padding value")
            return OperationResult.INVALID
        info = CaptureInfo(request_id, streams, num_frames, bytes(payload[_CAPTURE_REQ.size:]))
        try:
            self._info.device.capture(info)
        except GreybusError as exc:
            log.error("error in camera capture")
            return exc.result
        return OperationResult.SUCCESS

    def flush(self, operation: Operation) -> int:
        if self.state not in (CameraState.STREAMING, CameraState.CONFIGURED):
            return OperationResult.INVALID
        try:
            request_id = self._info.device.flush()
        except GreybusError as exc:
            return exc.result
        self._info.state = CameraState.CONFIGURED
        response = operation.alloc_response(_FLUSH_RESP.size)
        _FLUSH_RESP.pack_into(response, 0, request_id)
        return OperationResult.SUCCESS

    def driver(self) -> Driver:
        """Build the driver that dispatches camera requests to this protocol."""
        t = CameraOperationType
        table = [
            (t.PROTOCOL_VERSION, self.protocol_version),
            (t.CAPABILITIES, self.capabilities),
            (t.CONFIGURE_STREAMS, self.configure_streams),
            (t.CAPTURE, self.capture),
            (t.FLUSH, self.flush),
        ]
        return Driver(
            handlers=[OperationHandler(int(op_type), fn) for op_type, fn in table],
            name="camera",
            init=lambda cport, bundle: self.init(cport),
            exit=lambda cport, bundle: self.exit(cport),
        )