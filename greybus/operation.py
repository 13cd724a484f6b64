"""Greybus operation messages, handlers and drivers."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Callable, Optional, Sequence

GB_MTU = 2048
_HEADER = struct.Struct("<HHBBxx")
HEADER_SIZE = _HEADER.size
GB_MAX_PAYLOAD_SIZE = GB_MTU - HEADER_SIZE
GB_TIMESYNC_MAX_STROBES = 0x04
GB_INVALID_TYPE = 0x7F
GB_TYPE_RESPONSE_FLAG = 0x80


class OperationResult(IntEnum):
    """Result codes carried in a response header."""

    SUCCESS = 0x00
    INTERRUPTED = 0x01
    TIMEOUT = 0x02
    NO_MEMORY = 0x03
    PROTOCOL_BAD = 0x04
    OVERFLOW = 0x05
    INVALID = 0x06
    RETRY = 0x07
    NONEXISTENT = 0x08
    UNKNOWN_ERROR = 0xFE
    INTERNAL = 0xFF


class GreybusError(Exception):
    """An operation failed with a Greybus result code."""

    def __init__(self, result: int, message: Optional[str] = None) -> None:
        self.result = int(result)
        if message is None:
            try:
                message = OperationResult(self.result).name
            except ValueError:
                message = f"result 0x{self.result:02x}"
        super().__init__(message)


@dataclass(frozen=True)
class OperationHeader:
    """The eight-byte header that starts every Greybus message."""

    size: int
    id: int
    type: int
    result: int = 0

    @property
    def is_response(self) -> bool:
        return bool(self.type & GB_TYPE_RESPONSE_FLAG)

    def pack(self) -> bytes:
        try:
            return _HEADER.pack(self.size, self.id, self.type, self.result)
        except struct.error as exc:
            raise ValueError(f"header field out of range: {exc}") from exc

    @classmethod
    def unpack(cls, data: bytes) -> "OperationHeader":
        if len(data) < HEADER_SIZE:
            raise GreybusError(OperationResult.INVALID, "short message header")
        size, op_id, op_type, result = _HEADER.unpack_from(data)
        return cls(size, op_id, op_type, result)


@dataclass
class Operation:
    """A received request together with the response being built for it."""

    cport: int
    header: OperationHeader
    request_payload: bytes = b""
    bundle: Any = None
    response_payload: Optional[bytearray] = None

    @classmethod
    def from_message(cls, cport: int, data: bytes) -> "Operation":
        header = OperationHeader.unpack(data)
        if header.size < HEADER_SIZE or header.size > len(data):
            raise GreybusError(
                OperationResult.INVALID,
                f"message size {header.size} does not fit {len(data)} bytes",
            )
        return cls(cport, header, bytes(data[HEADER_SIZE:header.size]))

    @property
    def type(self) -> int:
        return self.header.type

    @property
    def id(self) -> int:
        return self.header.id

    @property
    def request_payload_size(self) -> int:
        return len(self.request_payload)

    def alloc_response(self, size: int) -> bytearray:
        """Allocate a zeroed response payload of ``size`` bytes and return it."""
        if size < 0 or size > GB_MAX_PAYLOAD_SIZE:
            raise GreybusError(OperationResult.NO_MEMORY, f"cannot allocate {size} bytes")
        self.response_payload = bytearray(size)
        return self.response_payload

    def response_message(self, result: int) -> bytes:
        """Build the complete response message with the given result."""
        payload = bytes(self.response_payload or b"")
        header = OperationHeader(
            size=HEADER_SIZE + len(payload),
            id=self.header.id,
            type=self.header.type | GB_TYPE_RESPONSE_FLAG,
            result=int(result),
        )
        return header.pack() + payload


Handler = Callable[[Operation], int]


@dataclass
class OperationHandler:
    """Binds an operation type to the function that serves it."""

    type: int
    handler: Handler
    name: Optional[str] = None

    def __post_init__(self) -> None:
        if self.name is None:
            self.name = getattr(self.handler, "__name__", repr(self.handler))


@dataclass
class Driver:
    """A protocol driver: its operation handlers and lifecycle hooks."""

    handlers: Sequence[OperationHandler] = ()
    name: str = ""
    init: Optional[Callable[[int, Any], None]] = None
    exit: Optional[Callable[[int, Any], None]] = None
    connected: Optional[Callable[[int], None]] = None
    disconnected: Optional[Callable[[int], None]] = None
    bundle: Any = None
    _by_type: dict = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        self._by_type = {h.type: h for h in self.handlers}

    def dispatch(self, operation: Operation) -> bytes:
        """Run the handler for ``operation`` and return the response message."""
        handler = self._by_type.get(operation.type)
        if handler is None:
            result = int(OperationResult.INVALID)
        else:
            try:
                result = int(handler.handler(operation))
            except GreybusError as exc:
                result = exc.result
        return operation.response_message(result)


def build_request(op_id: int, op_type: int, payload: bytes = b"") -> bytes:
    """Build a request message with the given id, type and payload."""
    if len(payload) > GB_MAX_PAYLOAD_SIZE:
        raise GreybusError(OperationResult.OVERFLOW, "payload exceeds the MTU")
    header = OperationHeader(HEADER_SIZE + len(payload), op_id, op_type)
    return header.pack() + bytes(payload)