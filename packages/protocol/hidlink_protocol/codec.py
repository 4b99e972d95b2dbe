"""Binary frame codec for the 57 AB HID-emulation serial protocol."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable

from .models import KeyboardState, Modifier, MouseButton


HEADER = bytes([0x57, 0xAB])
RESERVED = 0x00
MAX_KEYS = 6
REL_LIMIT = 127

# Controller input range: absolute positions are scaled to 0..4096 and then by 2/3.
ABS_RANGE = 4096

_PREFIX_LEN = 5


class CommandType(IntEnum):
    KEYBOARD = 0x02
    MOUSE_ABSOLUTE = 0x04
    MOUSE_RELATIVE = 0x05


class MouseSubCommand(IntEnum):
    RELATIVE = 0x01
    ABSOLUTE = 0x02


class FrameEncodeError(ValueError):
    pass


class FrameFormatError(ValueError):
    pass


def checksum(data: Iterable[int]) -> int:
    return sum(b & 0xFF for b in data) % 256


@dataclass(frozen=True)
class Frame:
    """One immutable command unit exactly as written to the wire."""

    raw: bytes

    def __bytes__(self) -> bytes:
        return self.raw

    def __len__(self) -> int:
        return len(self.raw)

    @property
    def command(self) -> int:
        return self.raw[3]

    @property
    def payload(self) -> bytes:
        return self.raw[_PREFIX_LEN:-1]

    @property
    def checksum(self) -> int:
        return self.raw[-1]

    def hex(self) -> str:
        return to_hex(self.raw)

    @classmethod
    def build(cls, command: int, payload: bytes) -> "Frame":
        body = HEADER + bytes([RESERVED, int(command) & 0xFF, len(payload) & 0xFF]) + bytes(payload)
        return cls(body + bytes([checksum(body)]))

    @classmethod
    def parse(cls, raw: bytes) -> "Frame":
        """Validate header, declared length and checksum of a captured frame."""
        if len(raw) < _PREFIX_LEN + 1:
            raise FrameFormatError(f"frame too short ({len(raw)} bytes)")
        if raw[:2] != HEADER:
            raise FrameFormatError(f"bad header {raw[:2].hex().upper()}")
        declared = raw[4]
        if len(raw) != _PREFIX_LEN + declared + 1:
            raise FrameFormatError(f"declared length {declared} does not match {len(raw) - _PREFIX_LEN - 1}")
        expected = checksum(raw[:-1])
        if raw[-1] != expected:
            raise FrameFormatError(f"checksum {raw[-1]:02X} != {expected:02X}")
        return cls(bytes(raw))


def to_hex(data: bytes) -> str:
    return " ".join(f"{b:02X}" for b in data)


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, int(value)))


def _trunc_div(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b > 0) else -q


def normalize_axis(raw: int, extent: int) -> int:
    if extent <= 0:
        raise FrameEncodeError(f"axis extent must be positive, got {extent}")
    return _trunc_div(_trunc_div(int(raw) * ABS_RANGE, extent) * 2, 3)


def encode_mouse_relative(dx: int, dy: int) -> Frame:
    x = _clamp(dx, -REL_LIMIT, REL_LIMIT) & 0xFF
    y = _clamp(dy, -REL_LIMIT, REL_LIMIT) & 0xFF
    return Frame.build(CommandType.MOUSE_RELATIVE, bytes([MouseSubCommand.RELATIVE, RESERVED, x, y, RESERVED]))


def encode_mouse_absolute(x: int, y: int, width: int, height: int, buttons: MouseButton = MouseButton.NONE) -> Frame:
    nx = normalize_axis(x, width)
    ny = normalize_axis(y, height)
    payload = bytes(
        [
            MouseSubCommand.ABSOLUTE,
            int(buttons) & 0xFF,
            nx & 0xFF,
            (nx >> 8) & 0xFF,
            ny & 0xFF,
            (ny >> 8) & 0xFF,
            RESERVED,
        ]
    )
    return Frame.build(CommandType.MOUSE_ABSOLUTE, payload)


def encode_keyboard(modifiers: Modifier, keys: Iterable[int]) -> Frame:
    codes = [k & 0xFF for k in keys][:MAX_KEYS]
    codes += [0] * (MAX_KEYS - len(codes))
    return Frame.build(CommandType.KEYBOARD, bytes([int(modifiers) & 0xFF, RESERVED] + codes))


def encode_keyboard_state(state: KeyboardState) -> Frame:
    return encode_keyboard(state.modifiers, state.keys)


def encode_release_all() -> Frame:
    return Frame.build(CommandType.KEYBOARD, bytes(2 + MAX_KEYS))
