"""Message decoding, input state and frame encoding for the HID-emulation protocol."""

from .codec import (
    CommandType,
    Frame,
    FrameEncodeError,
    FrameFormatError,
    checksum,
    encode_keyboard,
    encode_keyboard_state,
    encode_mouse_absolute,
    encode_mouse_relative,
    encode_release_all,
)
from .decoder import DecodeError, MalformedMessage, NumericParseError, UnknownAction, UnknownFamily, decode
from .models import (
    Bounds,
    ControlIntent,
    KeyAction,
    KeyboardState,
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
from .replay import ReplayReport, ReplayRunner, TranscriptWriter
from .state import InputStateTracker
from .translate import IntentTranslator, MissingBoundsError, UnmappedKeyError

__all__ = [
    "Bounds",
    "CommandType",
    "ControlIntent",
    "DecodeError",
    "Frame",
    "FrameEncodeError",
    "FrameFormatError",
    "InputStateTracker",
    "IntentTranslator",
    "KeyAction",
    "KeyEvent",
    "KeyboardState",
    "MalformedMessage",
    "MissingBoundsError",
    "Modifier",
    "MouseAction",
    "MouseButton",
    "MouseButtonEvent",
    "MouseMoveAbsolute",
    "MouseMoveRelative",
    "MouseScroll",
    "NumericParseError",
    "Point",
    "ReplayReport",
    "ReplayRunner",
    "TranscriptWriter",
    "UnknownAction",
    "UnknownFamily",
    "UnmappedKeyError",
    "checksum",
    "decode",
    "encode_keyboard",
    "encode_keyboard_state",
    "encode_mouse_absolute",
    "encode_mouse_relative",
    "encode_release_all",
]
