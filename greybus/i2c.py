"""Greybus I2C protocol message formats."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import IntEnum, IntFlag
from typing import Tuple

from greybus.operation import GreybusError, OperationResult

GB_I2C_VERSION_MAJOR = 0
GB_I2C_VERSION_MINOR = 1

_DESC = struct.Struct("<HHH")
_COUNT = struct.Struct("<H")
_FUNCTIONALITY = struct.Struct("<I")


class I2cOperationType(IntEnum):
    """Operation types of the I2C protocol."""

    PROTOCOL_VERSION = 0x01
    FUNCTIONALITY = 0x02
    TRANSFER = 0x05


class I2cFunctionality(IntFlag):
    """Functionality bits reported by an I2C adapter."""

    I2C = 0x00000001
    TEN_BIT_ADDR = 0x00000002
    SMBUS_PEC = 0x00000008
    NOSTART = 0x00000010
    SMBUS_BLOCK_PROC_CALL = 0x00008000
    SMBUS_QUICK = 0x00010000
    SMBUS_READ_BYTE = 0x00020000
    SMBUS_WRITE_BYTE = 0x00040000
    SMBUS_READ_BYTE_DATA = 0x00080000
    SMBUS_WRITE_BYTE_DATA = 0x00100000
    SMBUS_READ_WORD_DATA = 0x00200000
    SMBUS_WRITE_WORD_DATA = 0x00400000
    SMBUS_PROC_CALL = 0x00800000
    SMBUS_READ_BLOCK_DATA = 0x01000000
    SMBUS_WRITE_BLOCK_DATA = 0x02000000
    SMBUS_READ_I2C_BLOCK = 0x04000000
    SMBUS_WRITE_I2C_BLOCK = 0x08000000

    def pack(self) -> bytes:
        return _FUNCTIONALITY.pack(int(self))


class I2cMessageFlags(IntFlag):
    """Flags of a single I2C message in a transfer."""

    NONE = 0x0000
    RD = 0x0001
    TEN = 0x0010
    RECV_LEN = 0x0400
    NOSTART = 0x4000


@dataclass(frozen=True)
class TransferDescriptor:
    """One message of an I2C transfer: address, flags and length."""

    addr: int
    flags: I2cMessageFlags
    size: int

    @property
    def is_read(self) -> bool:
        return bool(self.flags & I2cMessageFlags.RD)

    def pack(self) -> bytes:
        try:
            return _DESC.pack(self.addr, int(self.flags), self.size)
        except struct.error as exc:
            raise ValueError(f"field out of range: {exc}") from exc

    @classmethod
    def unpack(cls, data: bytes) -> "TransferDescriptor":
        if len(data) < _DESC.size:
            raise GreybusError(OperationResult.INVALID, "short transfer descriptor")
        addr, flags, size = _DESC.unpack_from(data)
        return cls(addr, I2cMessageFlags(flags), size)


@dataclass(frozen=True)
class TransferRequest:
    """A transfer: its message descriptors followed by the data to write."""

    descriptors: Tuple[TransferDescriptor, ...] = field(default_factory=tuple)
    data: bytes = b""

    @property
    def read_size(self) -> int:
        """Bytes the response carries: the sum of the read messages."""
        return sum(d.size for d in self.descriptors if d.is_read)

    @property
    def write_size(self) -> int:
        """Bytes of write data the request carries."""
        return sum(d.size for d in self.descriptors if not d.is_read)

    def pack(self) -> bytes:
        try:
            head = _COUNT.pack(len(self.descriptors))
        except struct.error as exc:
            raise ValueError("too many descriptors") from exc
        return head + b"".join(d.pack() for d in self.descriptors) + bytes(self.data)

    @classmethod
    def unpack(cls, data: bytes) -> "TransferRequest":
        if len(data) < _COUNT.size:
            raise GreybusError(OperationResult.INVALID, "short transfer request")
        (count,) = _COUNT.unpack_from(data)
        end = _COUNT.size + count * _DESC.size
        if len(data) < end:
            raise GreybusError(
                OperationResult.INVALID, f"transfer request too short for {count} descriptors"
            )
        descriptors = tuple(
            TransferDescriptor.unpack(data[offset:offset + _DESC.size])
            for offset in range(_COUNT.size, end, _DESC.size)
        )
        return cls(descriptors, bytes(data[end:]))