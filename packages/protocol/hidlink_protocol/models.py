"""Typed control intents and keyboard state snapshots."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntFlag
from typing import Union


class MouseButton(IntFlag):
    NONE = 0
    LEFT = 1 << 0
    RIGHT = 1 << 1
    MIDDLE = 1 << 2


class Modifier(IntFlag):
    NONE = 0
    CONTROL = 1 << 0
    SHIFT = 1 << 1
    ALT = 1 << 2
    META = 1 << 3


class MouseAction(str, Enum):
    DOWN = "down"
    UP = "up"
    CLICK = "click"


class KeyAction(str, Enum):
    DOWN = "keydown"
    UP = "keyup"
    PRESS = "keypress"


@dataclass(frozen=True)
class Point:
    x: int
    y: int


@dataclass(frozen=True)
class Bounds:
    width: int
    height: int


@dataclass(frozen=True)
class MouseMoveRelative:
    dx: int
    dy: int


@dataclass(frozen=True)
class MouseMoveAbsolute:
    x: int
    y: int
    bounds: Bounds


@dataclass(frozen=True)
class MouseButtonEvent:
    action: MouseAction
    button: MouseButton
    position: Point
    bounds: Bounds | None = None


@dataclass(frozen=True)
class MouseScroll:
    delta: int


@dataclass(frozen=True)
class KeyEvent:
    action: KeyAction
    raw_key_code: int
    modifiers: Modifier = Modifier.NONE
    extra_key_codes: tuple[int, ...] = ()


ControlIntent = Union[MouseMoveRelative, MouseMoveAbsolute, MouseButtonEvent, MouseScroll, KeyEvent]


@dataclass(frozen=True)
class KeyboardState:
    keys: tuple[int, ...] = ()
    modifiers: Modifier = Modifier.NONE

    @property
    def is_empty(self) -> bool:
        return not self.keys and self.modifiers == Modifier.NONE
