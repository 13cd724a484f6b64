"""Greybus vibrator protocol message formats."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum

from greybus.operation import GB_INVALID_TYPE, GreybusError, OperationResult

_ON = struct.Struct("<H")


class VibratorOperationType(IntEnum):
    """Operation types of the vibrator protocol."""

    INVALID = GB_INVALID_TYPE
    PROTOCOL_VERSION = 0x01
    VIBRATOR_ON = 0x02
    VIBRATOR_OFF = 0x03


@dataclass(frozen=True)
class VibratorOnRequest:
    """Turn the vibrator on for a number of milliseconds."""

    timeout_ms: int

    def pack(self) -> bytes:
        try:
            return _ON.pack(self.timeout_ms)
        except struct.error as exc:
            raise ValueError(f"timeout out of range: {self.timeout_ms}") from exc

    @classmethod
    def unpack(cls, data: bytes) -> "VibratorOnRequest":
        if len(data) < _ON.size:
            raise GreybusError(OperationResult.INVALID, "short vibrator on request")
        (timeout_ms,) = _ON.unpack_from(data)
        return cls(timeout_ms)