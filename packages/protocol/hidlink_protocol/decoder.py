"""Parser for comma-separated remote-control messages.

Grammar (keywords are case-insensitive)::

    mouse,move,<dx>,<dy>
    mouse,move,<x>,<y>,<width>,<height>
    mouse,(click|down|up),<x>,<y>[,<button>][,<width>,<height>]
    mouse,scroll,<delta>
    keyboard,(keydown|keyup|keypress),<rawKeyCode>[,<modifier|extraKeyCode>...]

``decode`` either returns a typed intent or raises a ``DecodeError`` subclass;
it never touches transport or keyboard state.
"""

from __future__ import annotations

import re

from .keymap import MODIFIER_NAMES
from .models import (
    Bounds,
    ControlIntent,
    KeyAction,
    KeyEvent,
    Modifier,
    MouseAction,
    MouseButton,
    MouseButtonEvent,
    MouseMoveAbsolute,
    MouseMoveRelative,
    MouseScroll,
    Point,
)


_INT_RE = re.compile(r"^[+-]?\d+$")

_BUTTONS = {
    "left": MouseButton.LEFT,
    "right": MouseButton.RIGHT,
    "middle": MouseButton.MIDDLE,
}

MOUSE_ACTIONS = ("move", "click", "down", "up", "scroll")
KEYBOARD_ACTIONS = tuple(a.value for a in KeyAction)


class DecodeError(ValueError):
    def __init__(self, message: str, text: str = "") -> None:
        super().__init__(message)
        self.text = text


class MalformedMessage(DecodeError):
    pass


class UnknownFamily(DecodeError):
    pass


class UnknownAction(DecodeError):
    pass


class NumericParseError(DecodeError):
    pass


def _int(token: str, field: str, text: str) -> int:
    if not _INT_RE.match(token):
        raise NumericParseError(f"{field} is not an integer: {token!r}", text)
    return int(token)


def _bounds(width: str, height: str, text: str) -> Bounds:
    return Bounds(_int(width, "width", text), _int(height, "height", text))


def _decode_mouse(action: str, args: list[str], text: str) -> ControlIntent:
    if action == "move":
        if len(args) == 2:
            return MouseMoveRelative(_int(args[0], "dx", text), _int(args[1], "dy", text))
        if len(args) == 4:
            return MouseMoveAbsolute(
                _int(args[0], "x", text),
                _int(args[1], "y", text),
                _bounds(args[2], args[3], text),
            )
        raise MalformedMessage(f"mouse move takes 2 or 4 values, got {len(args)}", text)

    if action == "scroll":
        if len(args) != 1:
            raise MalformedMessage(f"mouse scroll takes 1 value, got {len(args)}", text)
        return MouseScroll(_int(args[0], "delta", text))

    if len(args) not in (2, 3, 4, 5):
        raise MalformedMessage(f"mouse {action} takes 2 to 5 values, got {len(args)}", text)
    position = Point(_int(args[0], "x", text), _int(args[1], "y", text))
    button = MouseButton.NONE
    bounds = None
    if len(args) in (3, 5):
        button = _BUTTONS.get(args[2].lower(), MouseButton.NONE)
    if len(args) == 4:
        bounds = _bounds(args[2], args[3], text)
    elif len(args) == 5:
        bounds = _bounds(args[3], args[4], text)
    return MouseButtonEvent(action=MouseAction(action), button=button, position=position, bounds=bounds)


def _decode_keyboard(action: str, args: list[str], text: str) -> KeyEvent:
    code = _int(args[0], "key code", text)
    modifiers = Modifier.NONE
    extra: list[int] = []
    for token in args[1:]:
        name = token.lower()
        if name in MODIFIER_NAMES:
            modifiers |= MODIFIER_NAMES[name]
        elif _INT_RE.match(name):
            value = int(name)
            if value > 0 and value not in extra:
                extra.append(value)
        # Anything else is ignored.
    return KeyEvent(action=KeyAction(action), raw_key_code=code, modifiers=modifiers, extra_key_codes=tuple(extra))


def decode(text: str) -> ControlIntent:
    tokens = [t.strip() for t in str(text).split(",")]
    if len(tokens) < 3:
        raise MalformedMessage(f"expected at least 3 tokens, got {len(tokens)}", text)

    family = tokens[0].lower()
    action = tokens[1].lower()
    args = tokens[2:]

    if family == "mouse":
        if action not in MOUSE_ACTIONS:
            raise UnknownAction(f"unknown mouse action {action!r}", text)
        return _decode_mouse(action, args, text)
    if family == "keyboard":
        if action not in KEYBOARD_ACTIONS:
            raise UnknownAction(f"unknown keyboard action {action!r}", text)
        return _decode_keyboard(action, args, text)
    raise UnknownFamily(f"unknown message family {family!r}", text)
