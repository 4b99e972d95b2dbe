"""Typed models for the USB-serial link."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SerialLinkState(str, Enum):
    DISCONNECTED = "Disconnected"
    PERMISSION_REQUESTED = "PermissionRequested"
    OPENING = "Opening"
    OPEN = "Open"
    CLOSING = "Closing"


@dataclass(frozen=True)
class DeviceHandle:
    device: str
    description: str = ""
    hwid: str = ""
    vid: int | None = None
    pid: int | None = None
    serial_number: str | None = None
    driver: str | None = None

    @property
    def identity(self) -> tuple[int | None, int | None, str]:
        return (self.vid, self.pid, self.serial_number or self.device)

    def describe(self) -> str:
        if self.vid is None or self.pid is None:
            return self.device
        return f"{self.device} ({self.vid:04X}:{self.pid:04X})"


@dataclass(frozen=True)
class SerialSettings:
    baud: int = 9600
    bytesize: int = 8
    parity: str = "N"
    stopbits: float = 1
    write_timeout_ms: int = 2000
    read_timeout_ms: int = 100
    read_chunk: int = 64


@dataclass
class TransportStats:
    bytes_sent: int = 0
    frames_sent: int = 0
    bytes_received: int = 0
    write_errors: int = 0
    connects: int = 0
    disconnects: int = 0
