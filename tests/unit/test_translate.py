import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "packages" / "protocol"))

from hidlink_protocol.codec import CommandType
from hidlink_protocol.decoder import decode
from hidlink_protocol.keymap import modifier_for_key, normalize_key_code
from hidlink_protocol.models import Bounds, Modifier
from hidlink_protocol.state import InputStateTracker
from hidlink_protocol.translate import IntentTranslator, MissingBoundsError, UnmappedKeyError


class KeymapTests(unittest.TestCase):
    def test_letters_digits_and_function_keys(self):
        self.assertEqual(normalize_key_code(65), 0x04)
        self.assertEqual(normalize_key_code(90), 0x1D)
        self.assertEqual(normalize_key_code(48), 0x27)
        self.assertEqual(normalize_key_code(49), 0x1E)
        self.assertEqual(normalize_key_code(96), 0x62)
        self.assertEqual(normalize_key_code(105), 0x61)
        self.assertEqual(normalize_key_code(112), 0x3A)
        self.assertEqual(normalize_key_code(123), 0x45)
        self.assertEqual(normalize_key_code(13), 0x28)

    def test_unknown_is_zero(self):
        self.assertEqual(normalize_key_code(255), 0)

    def test_modifier_keys(self):
        self.assertEqual(modifier_for_key(17), Modifier.CONTROL)
        self.assertEqual(modifier_for_key(91), Modifier.META)
        self.assertIsNone(modifier_for_key(65))


class TranslatorTests(unittest.TestCase):
    def setUp(self):
        self.tracker = InputStateTracker()
        self.translator = IntentTranslator(self.tracker)

    def frames(self, text):
        return self.translator.frames(decode(text))

    def test_keydown_with_ctrl(self):
        (frame,) = self.frames("keyboard,keydown,65,ctrl")
        self.assertEqual(frame.command, CommandType.KEYBOARD)
        self.assertEqual(len(frame.payload), 8)
        self.assertEqual(frame.payload[0], int(Modifier.CONTROL))
        self.assertEqual(self.tracker.snapshot().keys, (0x04,))

    def test_keyup_sends_remaining_keys(self):
        self.frames("keyboard,keydown,65")
        self.frames("keyboard,keydown,66")
        (frame,) = self.frames("keyboard,keyup,65")
        self.assertEqual(frame.payload[2:], bytes([0x05, 0, 0, 0, 0, 0]))

    def test_keypress_is_down_then_up(self):
        down, up = self.frames("keyboard,keypress,65,shift")
        self.assertEqual(down.payload[2], 0x04)
        self.assertEqual(up.payload[2:], bytes(6))
        self.assertEqual(self.tracker.snapshot().keys, ())

    def test_extra_keys_are_held_before_primary(self):
        (frame,) = self.frames("keyboard,keydown,67,66")
        self.assertEqual(frame.payload[2:4], bytes([0x05, 0x06]))

    def test_modifier_key_sets_mask_not_key_slot(self):
        (frame,) = self.frames("keyboard,keydown,17")
        self.assertEqual(frame.payload[0], int(Modifier.CONTROL))
        self.assertEqual(frame.payload[2:], bytes(6))
        (frame,) = self.frames("keyboard,keyup,17")
        self.assertEqual(frame.payload[0], 0)

    def test_unmapped_key_is_rejected_without_state_change(self):
        self.frames("keyboard,keydown,65")
        with self.assertRaises(UnmappedKeyError):
            self.frames("keyboard,keydown,255")
        self.assertEqual(self.tracker.snapshot().keys, (0x04,))

    def test_click_is_press_then_release(self):
        press, release = self.frames("mouse,click,960,540,left,1920,1080")
        self.assertEqual(press.command, CommandType.MOUSE_ABSOLUTE)
        self.assertEqual(press.payload[1], 1)
        self.assertEqual(release.payload[1], 0)
        self.assertEqual(press.payload[2:6], release.payload[2:6])

    def test_up_without_down_sends_no_buttons(self):
        (frame,) = self.frames("mouse,up,1,1,left,10,10")
        self.assertEqual(frame.payload[1], 0)

    def test_button_event_needs_bounds(self):
        with self.assertRaises(MissingBoundsError):
            self.frames("mouse,down,1,1,left")
        translator = IntentTranslator(self.tracker, default_bounds=Bounds(100, 100))
        (frame,) = translator.frames(decode("mouse,down,1,1,left"))
        self.assertEqual(frame.payload[1], 1)

    def test_scroll_is_vertical_relative_motion(self):
        (frame,) = self.frames("mouse,scroll,-300")
        self.assertEqual(frame.command, CommandType.MOUSE_RELATIVE)
        self.assertEqual(frame.payload[2:4], bytes([0, 0x81]))

    def test_absolute_move_has_no_buttons(self):
        (frame,) = self.frames("mouse,move,10,10,100,100")
        self.assertEqual(frame.command, CommandType.MOUSE_ABSOLUTE)
        self.assertEqual(frame.payload[1], 0)

    def test_unknown_intent_type(self):
        with self.assertRaises(TypeError):
            self.translator.frames(object())


if __name__ == "__main__":
    unittest.main()
