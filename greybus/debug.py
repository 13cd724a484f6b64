"""Per-component, levelled debug output."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from enum import IntEnum, IntFlag
from typing import Callable, List

DBG_RESCUE_SIZE = 64


class DebugLevel(IntEnum):
    """Debug levels, from hardware access up to user interaction."""

    INSANE = 0
    VERBOSE = 1
    INFO = 2
    WARN = 3
    ERROR = 4
    UI = 5
    MAX = 5


class DebugComponent(IntFlag):
    """Components that debug output can be enabled for."""

    COMM = 1 << 0
    DBG = 1 << 1
    EPM = 1 << 2
    GPIO = 1 << 3
    GREYBUS = 1 << 4
    HOTPLUG = 1 << 5
    I2C = 1 << 6
    IOEXP = 1 << 7
    NETWORK = 1 << 8
    POWER = 1 << 9
    SVC = 1 << 10
    SWITCH = 1 << 11
    AUDIO = 1 << 12
    ALL = 0xFFFFFFFF


def _write_stderr(text: str) -> None:
    sys.stderr.write(text + "\n")


def format_buffer(data: bytes) -> List[str]:
    """Render bytes as hex dump lines of sixteen bytes each."""
    lines = []
    full = len(data) & ~0xF
    for offset in range(0, full, 16):
        chunk = data[offset:offset + 16]
        left = " ".join(f"{b:02x}" for b in chunk[:8])
        right = " ".join(f"{b:02x}" for b in chunk[8:])
        lines.append(f"{offset:04x}: {left} | {right}")
    if full < len(data):
        parts = [f"{full:04x}: "]
        for index in range(full, len(data)):
            if index & 0xF == 8:
                parts.append("| ")
            parts.append(f"{data[index]:02x} ")
        lines.append("".join(parts))
    return lines


@dataclass
class DebugConfig:
    """Which components print, from which level up, and where to."""

    components: DebugComponent = DebugComponent.ALL
    level: DebugLevel = DebugLevel.INFO
    sink: Callable[[str], None] = field(default=_write_stderr, repr=False)

    def enabled(self, component: DebugComponent, level: int) -> bool:
        return bool(self.components & component) and level >= self.level

    def log(self, component: DebugComponent, level: int, message: str) -> bool:
        """Emit ``message`` if enabled; return whether it was emitted."""
        if not self.enabled(component, level):
            return False
        name = component.name or str(int(component))
        self.sink(f"[ARADBG_{name}]: {message}")
        return True

    def dump_buffer(self, component: DebugComponent, level: int, data: bytes) -> List[str]:
        """Emit a hex dump of ``data``; return the lines that were emitted."""
        if not self.enabled(component, level):
            return []
        lines = format_buffer(data)
        for line in lines:
            self.log(component, level, line)
        return lines