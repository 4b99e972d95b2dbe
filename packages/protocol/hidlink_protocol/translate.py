"""Turn decoded intents into protocol frames using the tracked input state."""

from __future__ import annotations

from .codec import (
    Frame,
    FrameEncodeError,
    encode_keyboard_state,
    encode_mouse_absolute,
    encode_mouse_relative,
)
from .keymap import UNMAPPED, modifier_for_key, normalize_key_code
from .models import (
    Bounds,
    ControlIntent,
    KeyAction,
    KeyEvent,
    KeyboardState,
    MouseButtonEvent,
    MouseMoveAbsolute,
    MouseMoveRelative,
    MouseScroll,
)
from .state import InputStateTracker


class MissingBoundsError(FrameEncodeError):
    pass


class UnmappedKeyError(FrameEncodeError):
    pass


class IntentTranslator:
    def __init__(self, tracker: InputStateTracker, default_bounds: Bounds | None = None) -> None:
        self.tracker = tracker
        self.default_bounds = default_bounds

    def frames(self, intent: ControlIntent) -> list[Frame]:
        if isinstance(intent, MouseMoveRelative):
            return [encode_mouse_relative(intent.dx, intent.dy)]
        if isinstance(intent, MouseMoveAbsolute):
            b = intent.bounds
            return [encode_mouse_absolute(intent.x, intent.y, b.width, b.height)]
        if isinstance(intent, MouseButtonEvent):
            return self._button_frames(intent)
        if isinstance(intent, MouseScroll):
            # The controller has no wheel command; scroll travels as vertical motion.
            return [encode_mouse_relative(0, intent.delta)]
        if isinstance(intent, KeyEvent):
            return self._key_frames(intent)
        raise TypeError(f"unsupported intent {type(intent).__name__}")

    def _button_frames(self, intent: MouseButtonEvent) -> list[Frame]:
        bounds = intent.bounds or self.default_bounds
        if bounds is None:
            raise MissingBoundsError(f"mouse {intent.action.value} without target bounds")
        pos = intent.position
        return [
            encode_mouse_absolute(pos.x, pos.y, bounds.width, bounds.height, buttons=mask)
            for mask in self.tracker.button_masks(intent.action, intent.button)
        ]

    def _apply(self, raw_code: int, down: bool, intent: KeyEvent) -> KeyboardState:
        modifier = modifier_for_key(raw_code)
        if modifier is not None:
            return self.tracker.apply_modifier_key(modifier, down, modifiers=intent.modifiers)
        return self.tracker.apply_key_event(normalize_key_code(raw_code), down, modifiers=intent.modifiers)

    def _key_frames(self, intent: KeyEvent) -> list[Frame]:
        code = intent.raw_key_code
        if modifier_for_key(code) is None and normalize_key_code(code) == UNMAPPED:
            raise UnmappedKeyError(f"key code {code} has no HID usage")

        frames: list[Frame] = []
        if intent.action in (KeyAction.DOWN, KeyAction.PRESS):
            for extra in intent.extra_key_codes:
                self._apply(extra, True, intent)
            frames.append(encode_keyboard_state(self._apply(code, True, intent)))
        if intent.action in (KeyAction.UP, KeyAction.PRESS):
            frames.append(encode_keyboard_state(self._apply(code, False, intent)))
        return frames
