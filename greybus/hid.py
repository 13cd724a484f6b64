"""Greybus HID protocol message formats."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum

from greybus.operation import GreybusError, OperationResult

GB_HID_VERSION_MAJOR = 0
GB_HID_VERSION_MINOR = 1

_DESCRIPTOR = struct.Struct("<BHHHHB")
_GET_REPORT = struct.Struct("<BB")
_SET_REPORT_HEAD = struct.Struct("<BB")


class HidOperationType(IntEnum):
    """Operation types of the HID protocol."""

    PROTOCOL_VERSION = 0x01
    GET_DESC = 0x02
    GET_REPORT_DESC = 0x03
    PWR_ON = 0x04
    PWR_OFF = 0x05
    GET_REPORT = 0x06
    SET_REPORT = 0x07
    IRQ_EVENT = 0x08


class HidReportType(IntEnum):
    """Kinds of HID report."""

    INPUT = 0
    OUTPUT = 1
    FEATURE = 2


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
class HidDescriptor:
    """The HID descriptor returned by a Get Descriptor operation."""

    length: int
    report_desc_length: int
    hid_version: int
    product_id: int
    vendor_id: int
    country_code: int

    def pack(self) -> bytes:
        return _pack(
            _DESCRIPTOR,
            self.length,
            self.report_desc_length,
            self.hid_version,
            self.product_id,
            self.vendor_id,
            self.country_code,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "HidDescriptor":
        return cls(*_unpack(_DESCRIPTOR, data, "HID descriptor"))


@dataclass(frozen=True)
class GetReportRequest:
    """Request for one report of a given type and id."""

    report_type: HidReportType
    report_id: int

    def pack(self) -> bytes:
        return _pack(_GET_REPORT, int(self.report_type), self.report_id)

    @classmethod
    def unpack(cls, data: bytes) -> "GetReportRequest":
        report_type, report_id = _unpack(_GET_REPORT, data, "get report request")
        try:
            kind = HidReportType(report_type)
        except ValueError as exc:
            raise GreybusError(
                OperationResult.INVALID, f"unknown report type {report_type}"
            ) from exc
        return cls(kind, report_id)


@dataclass(frozen=True)
class SetReportRequest:
    """Request carrying a report to send to the device."""

    report_type: HidReportType
    report_id: int
    report: bytes = b""

    def pack(self) -> bytes:
        return _pack(_SET_REPORT_HEAD, int(self.report_type), self.report_id) + bytes(
            self.report
        )

    @classmethod
    def unpack(cls, data: bytes) -> "SetReportRequest":
        report_type, report_id = _unpack(_SET_REPORT_HEAD, data, "set report request")
        try:
            kind = HidReportType(report_type)
        except ValueError as exc:
            raise GreybusError(
                OperationResult.INVALID, f"unknown report type {report_type}"
            ) from exc
        return cls(kind, report_id, bytes(data[_SET_REPORT_HEAD.size:]))