"""Match attached USB devices against known USB-serial adapter chipsets."""

from __future__ import annotations

from dataclasses import replace
from typing import Iterable

from .models import DeviceHandle


# (vid, pid) -> driver; pid None matches every product of the vendor.
DEFAULT_PROBE_TABLE: dict[tuple[int, int | None], str] = {
    (0x1A86, 0x7523): "ch34x",
    (0x1A86, 0x5523): "ch34x",
    (0x1A86, 0x7522): "ch34x",
    (0x1A86, 0x55D4): "cdc_acm",  # CH9102
    (0x1A86, 0xE129): "ch9329",
    (0x10C4, 0xEA60): "cp21xx",
    (0x10C4, 0xEA70): "cp21xx",
    (0x10C4, 0xEA71): "cp21xx",
    (0x0403, None): "ftdi",
    (0x067B, 0x2303): "prolific",
    (0x067B, 0x23A3): "prolific",
    (0x2341, None): "cdc_acm",  # Arduino
    (0x2E8A, None): "cdc_acm",  # Raspberry Pi
    (0x16C0, 0x0483): "cdc_acm",  # Teensy
}


class SerialProber:
    """Answers "qualifies as a serial adapter" for a discovered device."""

    def __init__(self, table: dict[tuple[int, int | None], str] | None = None) -> None:
        self.table = dict(DEFAULT_PROBE_TABLE if table is None else table)

    def add(self, vid: int, pid: int | None, driver: str) -> None:
        self.table[(vid, pid)] = driver

    def probe(self, device: DeviceHandle) -> str | None:
        if device.vid is None:
            return None
        driver = self.table.get((device.vid, device.pid))
        if driver is None:
            driver = self.table.get((device.vid, None))
        return driver

    def qualifies(self, device: DeviceHandle) -> bool:
        return self.probe(device) is not None

    def find_all(self, devices: Iterable[DeviceHandle]) -> list[DeviceHandle]:
        found: list[DeviceHandle] = []
        for d in devices:
            driver = self.probe(d)
            if driver is not None:
                found.append(replace(d, driver=driver))
        return found
