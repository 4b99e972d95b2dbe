"""Thin pyserial wrapper for one USB-serial adapter."""

from __future__ import annotations

import serial
from serial.tools import list_ports

from .models import DeviceHandle, SerialSettings


_BYTESIZES = {5: serial.FIVEBITS, 6: serial.SIXBITS, 7: serial.SEVENBITS, 8: serial.EIGHTBITS}
_STOPBITS = {1: serial.STOPBITS_ONE, 1.5: serial.STOPBITS_ONE_POINT_FIVE, 2: serial.STOPBITS_TWO}

# Errors pyserial raises for an unplugged or misbehaving adapter.
SERIAL_ERRORS = (serial.SerialException, OSError)


class SerialPort:
    """Deterministic settings, bounded reads and bounded writes."""

    def __init__(self) -> None:
        self._serial: serial.Serial | None = None
        self.settings: SerialSettings | None = None

    @property
    def is_open(self) -> bool:
        return bool(self._serial and self._serial.is_open)

    def open(self, port: str, settings: SerialSettings | None = None) -> None:
        if self.is_open:
            return
        settings = settings or SerialSettings()
        self.settings = settings
        self._serial = serial.Serial(
            port=port,
            baudrate=settings.baud,
            bytesize=_BYTESIZES[settings.bytesize],
            parity=settings.parity,
            stopbits=_STOPBITS[settings.stopbits],
            timeout=max(settings.read_timeout_ms, 1) / 1000,
            write_timeout=max(settings.write_timeout_ms, 1) / 1000,
        )

    def close(self) -> None:
        if self._serial is not None:
            self._serial.close()
            self._serial = None

    def write(self, payload: bytes) -> int:
        if not self.is_open:
            raise serial.SerialException("Serial port is not open")
        # write_timeout bounds this call; flush() (tcdrain) has no limit.
        written = self._serial.write(payload)
        return int(written or 0)

    def read(self, max_len: int) -> bytes:
        if not self.is_open:
            raise serial.SerialException("Serial port is not open")
        waiting = self._serial.in_waiting
        size = min(max_len, waiting) if waiting else 1
        return bytes(self._serial.read(size))

    def cancel_read(self) -> None:
        # Only the POSIX backend can interrupt a blocking read.
        if self._serial is not None and hasattr(self._serial, "cancel_read"):
            self._serial.cancel_read()

    @staticmethod
    def discover() -> list[DeviceHandle]:
        devices: list[DeviceHandle] = []
        for item in list_ports.comports():
            devices.append(
                DeviceHandle(
                    device=item.device,
                    description=item.description or "",
                    hwid=item.hwid or "",
                    vid=item.vid,
                    pid=item.pid,
                    serial_number=item.serial_number,
                )
            )
        return devices
