"""Greybus SDIO protocol message formats."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum, IntFlag
from typing import Tuple

from greybus.operation import GreybusError, OperationResult

_CAPS = struct.Struct("<IIIIHH")
_SET_IOS = struct.Struct("<IIBBBBBB")
_COMMAND = struct.Struct("<BBBIHH")
_COMMAND_RESPONSE = struct.Struct("<4I")
_TRANSFER_REQ = struct.Struct("<BHH")
_TRANSFER_RSP = struct.Struct("<HH")
_EVENT = struct.Struct("<B")


class SdioOperationType(IntEnum):
    """Operation types of the SDIO protocol."""

    PROTOCOL_VERSION = 0x01
    GET_CAPABILITIES = 0x02
    SET_IOS = 0x03
    COMMAND = 0x04
    TRANSFER = 0x05
    EVENT = 0x06


class SdioDataFlags(IntFlag):
    """Direction flags of a data transfer."""

    NONE = 0x00
    WRITE = 0x01
    READ = 0x02
    STREAM = 0x04


def _pack(layout: struct.Struct, *values: int) -> bytes:
    try:
        return layout.pack(*values)
    except struct.error as exc:
        raise ValueError(f"field out of range: {exc}") from exc


def _unpack(layout: struct.Struct, data: bytes, what: str) -> tuple:
    if len(data) < layout.size:
        raise GreybusError(OperationResult.INVALID, f"short {what}")
    return layout.unpack_from(data)


@dataclass(frozen=True)
class Capabilities:
    """Controller capabilities, voltage range and limits."""

    caps: int
    ocr: int
    f_min: int
    f_max: int
    max_blk_count: int
    max_blk_size: int

    def pack(self) -> bytes:
        return _pack(
            _CAPS,
            self.caps,
            self.ocr,
            self.f_min,
            self.f_max,
            self.max_blk_count,
            self.max_blk_size,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "Capabilities":
        return cls(*_unpack(_CAPS, data, "capabilities response"))


@dataclass(frozen=True)
class SetIosRequest:
    """Bus settings to apply to the controller."""

    clock: int
    vdd: int
    bus_mode: int
    power_mode: int
    bus_width: int
    timing: int
    signal_voltage: int
    drv_type: int

    def pack(self) -> bytes:
        return _pack(
            _SET_IOS,
            self.clock,
            self.vdd,
            self.bus_mode,
            self.power_mode,
            self.bus_width,
            self.timing,
            self.signal_voltage,
            self.drv_type,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "SetIosRequest":
        return cls(*_unpack(_SET_IOS, data, "set ios request"))


@dataclass(frozen=True)
class CommandRequest:
    """An SD command with its argument and data block geometry."""

    cmd: int
    cmd_flags: int
    cmd_type: int
    cmd_arg: int
    data_blocks: int
    data_blksz: int

    def pack(self) -> bytes:
        return _pack(
            _COMMAND,
            self.cmd,
            self.cmd_flags,
            self.cmd_type,
            self.cmd_arg,
            self.data_blocks,
            self.data_blksz,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "CommandRequest":
        return cls(*_unpack(_COMMAND, data, "command request"))


@dataclass(frozen=True)
class CommandResponse:
    """The four response words of an SD command."""

    resp: Tuple[int, int, int, int] = (0, 0, 0, 0)

    def pack(self) -> bytes:
        if len(self.resp) != 4:
            raise ValueError("a command response has exactly four words")
        return _pack(_COMMAND_RESPONSE, *self.resp)

    @classmethod
    def unpack(cls, data: bytes) -> "CommandResponse":
        return cls(tuple(_unpack(_COMMAND_RESPONSE, data, "command response")))


@dataclass(frozen=True)
class SdioTransferRequest:
    """A data transfer request, with write data when writing."""

    data_flags: SdioDataFlags
    data_blocks: int
    data_blksz: int
    data: bytes = b""

    def pack(self) -> bytes:
        head = _pack(_TRANSFER_REQ, int(self.data_flags), self.data_blocks, self.data_blksz)
        return head + bytes(self.data)

    @classmethod
    def unpack(cls, data: bytes) -> "SdioTransferRequest":
        flags, blocks, blksz = _unpack(_TRANSFER_REQ, data, "transfer request")
        return cls(SdioDataFlags(flags), blocks, blksz, bytes(data[_TRANSFER_REQ.size:]))


@dataclass(frozen=True)
class SdioTransferResponse:
    """A data transfer response, with read data when reading."""

    data_blocks: int
    data_blksz: int
    data: bytes = b""

    def pack(self) -> bytes:
        return _pack(_TRANSFER_RSP, self.data_blocks, self.data_blksz) + bytes(self.data)

    @classmethod
    def unpack(cls, data: bytes) -> "SdioTransferResponse":
        blocks, blksz = _unpack(_TRANSFER_RSP, data, "transfer response")
        return cls(blocks, blksz, bytes(data[_TRANSFER_RSP.size:]))


@dataclass(frozen=True)
class EventRequest:
    """An event reported by the controller."""

    event: int

    def pack(self) -> bytes:
        return _pack(_EVENT, self.event)

    @classmethod
    def unpack(cls, data: bytes) -> "EventRequest":
        return cls(*_unpack(_EVENT, data, "event request"))