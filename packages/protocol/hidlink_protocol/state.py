"""Rolling keyboard state so every keyboard frame is a full snapshot."""

from __future__ import annotations

import threading

from .codec import MAX_KEYS
from .keymap import UNMAPPED
from .models import KeyboardState, Modifier, MouseAction, MouseButton


class InputStateTracker:
    """Single owner of the pressed-key set and modifier mask.

    Keys are kept in insertion order; pressing a seventh distinct key evicts
    the oldest one. Modifiers are tracked apart from the key set: the mask
    reported is the mask declared by the last key event combined with any
    modifier keys currently held down.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._keys: list[int] = []
        self._declared = Modifier.NONE
        self._held = Modifier.NONE

    def _snapshot(self) -> KeyboardState:
        return KeyboardState(keys=tuple(self._keys), modifiers=self._declared | self._held)

    def snapshot(self) -> KeyboardState:
        with self._lock:
            return self._snapshot()

    def apply_key_event(self, code: int, down: bool, modifiers: Modifier | None = None) -> KeyboardState:
        with self._lock:
            if modifiers is not None:
                self._declared = Modifier(modifiers)
            if code != UNMAPPED:
                if down:
                    if code not in self._keys:
                        if len(self._keys) >= MAX_KEYS:
                            self._keys.pop(0)
                        self._keys.append(code)
                elif code in self._keys:
                    self._keys.remove(code)
            return self._snapshot()

    def apply_modifier_key(self, modifier: Modifier, down: bool, modifiers: Modifier | None = None) -> KeyboardState:
        with self._lock:
            if modifiers is not None:
                self._declared = Modifier(modifiers)
            if down:
                self._held |= modifier
            else:
                self._held &= ~modifier
                self._declared &= ~modifier
            return self._snapshot()

    def release_all(self) -> KeyboardState:
        with self._lock:
            self._keys.clear()
            self._declared = Modifier.NONE
            self._held = Modifier.NONE
            return self._snapshot()

    @staticmethod
    def button_masks(action: MouseAction, button: MouseButton) -> list[MouseButton]:
        """Button masks for the frames of one mouse button event.

        No button history is kept: an ``up`` always reports no buttons, even
        without a matching ``down``.
        """
        if action == MouseAction.DOWN:
            return [button]
        if action == MouseAction.UP:
            return [MouseButton.NONE]
        return [button, MouseButton.NONE]
