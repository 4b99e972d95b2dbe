"""Browser/Windows virtual key codes to HID keyboard usage ids."""

from __future__ import annotations

import logging

from .models import Modifier


logger = logging.getLogger("hidlink.protocol")

UNMAPPED = 0

_SPECIAL_KEYS: dict[int, int] = {
    8: 0x2A,  # Backspace
    9: 0x2B,  # Tab
    13: 0x28,  # Enter
    20: 0x39,  # Caps Lock
    27: 0x29,  # Escape
    32: 0x2C,  # Space
    33: 0x4B,  # Page Up
    34: 0x4E,  # Page Down
    35: 0x4D,  # End
    36: 0x4A,  # Home
    37: 0x50,  # Left
    38: 0x52,  # Up
    39: 0x4F,  # Right
    40: 0x51,  # Down
    45: 0x49,  # Insert
    46: 0x4C,  # Delete
    106: 0x55,  # Keypad *
    107: 0x57,  # Keypad +
    109: 0x56,  # Keypad -
    110: 0x63,  # Keypad .
    111: 0x54,  # Keypad /
    144: 0x53,  # Num Lock
    186: 0x33,  # ;
    187: 0x2E,  # =
    188: 0x36,  # ,
    189: 0x2D,  # -
    190: 0x37,  # .
    191: 0x38,  # /
    192: 0x35,  # `
    219: 0x2F,  # [
    220: 0x31,  # backslash
    221: 0x30,  # ]
    222: 0x34,  # '
}

_MODIFIER_KEYS: dict[int, Modifier] = {
    16: Modifier.SHIFT,
    17: Modifier.CONTROL,
    18: Modifier.ALT,
    91: Modifier.META,
    92: Modifier.META,
}

MODIFIER_NAMES: dict[str, Modifier] = {
    "ctrl": Modifier.CONTROL,
    "control": Modifier.CONTROL,
    "shift": Modifier.SHIFT,
    "alt": Modifier.ALT,
    "meta": Modifier.META,
    "win": Modifier.META,
}


def modifier_for_key(raw_key_code: int) -> Modifier | None:
    """Return the modifier bit for Shift/Ctrl/Alt/Meta key codes, else None."""
    return _MODIFIER_KEYS.get(raw_key_code)


def normalize_key_code(raw_key_code: int) -> int:
    if 65 <= raw_key_code <= 90:  # A-Z
        return 0x04 + (raw_key_code - 65)
    if raw_key_code == 48:
        return 0x27
    if 49 <= raw_key_code <= 57:  # 1-9
        return 0x1E + (raw_key_code - 49)
    if raw_key_code == 96:
        return 0x62
    if 97 <= raw_key_code <= 105:  # keypad 1-9
        return 0x59 + (raw_key_code - 97)
    if 112 <= raw_key_code <= 123:  # F1-F12
        return 0x3A + (raw_key_code - 112)

    usage = _SPECIAL_KEYS.get(raw_key_code, UNMAPPED)
    if usage == UNMAPPED:
        logger.debug("unmapped key code %s", raw_key_code, extra={"event": "key_unmapped"})
    return usage
