import json
import sys
import tempfile
import time
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
for pkg in ("protocol", "serial_link", "core"):
    sys.path.insert(0, str(ROOT / "packages" / pkg))

from hidlink_core.session import RemoteInputSession
from hidlink_protocol import Bounds, CommandType, Frame, InputStateTracker, Modifier
from hidlink_protocol.replay import TranscriptWriter
from hidlink_serial import DeviceHandle, ManualPermissionBroker, SerialLinkState, SerialTransportManager


class FakeTransport:
    def __init__(self, open_=True):
        self.open = open_
        self.sent: list[bytes] = []
        self.fail_after: int | None = None
        self.closed = False
        self._state_listeners = []
        self._data_listeners = []

    def is_open(self):
        return self.open

    def send_bytes(self, frame):
        if self.fail_after is not None and len(self.sent) >= self.fail_after:
            return False
        self.sent.append(bytes(frame))
        return True

    def on_state_changed(self, listener):
        self._state_listeners.append(listener)

    def on_bytes_received(self, listener):
        self._data_listeners.append(listener)

    def set_state(self, state):
        self.open = state == SerialLinkState.OPEN
        for listener in self._state_listeners:
            listener(state)

    def close(self):
        self.closed = True
        self.set_state(SerialLinkState.DISCONNECTED)


class QuietPort:
    def __init__(self):
        self.written: list[bytes] = []

    def open(self, port, settings=None):
        pass

    def close(self):
        pass

    def write(self, payload):
        self.written.append(bytes(payload))
        return len(payload)

    def read(self, max_len):
        time.sleep(0.01)
        return b""

    def cancel_read(self):
        pass


class SessionTests(unittest.TestCase):
    def test_keydown_ctrl_sends_keyboard_frame(self):
        transport = FakeTransport()
        session = RemoteInputSession(transport)
        frames = session.handle_message("keyboard,keydown,65,ctrl")
        self.assertEqual(len(frames), 1)
        frame = Frame.parse(transport.sent[0])
        self.assertEqual(frame.command, CommandType.KEYBOARD)
        self.assertEqual(frame.payload[0], int(Modifier.CONTROL))
        self.assertEqual(frame.payload[2], 0x04)

    def test_bad_messages_are_counted_not_raised(self):
        transport = FakeTransport()
        session = RemoteInputSession(transport)
        self.assertEqual(session.handle_message("mouse,fly,1"), [])
        self.assertEqual(session.handle_message("mouse,move,a,b"), [])
        self.assertEqual(session.stats.decode_errors, 2)
        self.assertEqual(transport.sent, [])

    def test_closed_link_drops_without_state_change(self):
        transport = FakeTransport(open_=False)
        session = RemoteInputSession(transport)
        self.assertEqual(session.handle_message("keyboard,keydown,65"), [])
        self.assertEqual(session.stats.dropped, 1)
        self.assertTrue(session.tracker.snapshot().is_empty)

    def test_click_uses_default_bounds(self):
        transport = FakeTransport()
        session = RemoteInputSession(transport, default_bounds=Bounds(1920, 1080))
        self.assertEqual(len(session.handle_message("mouse,click,100,200,left")), 2)
        self.assertEqual(transport.sent[0].hex().upper(), "57AB00040702018E00F9010098")

    def test_click_without_bounds_is_dropped(self):
        transport = FakeTransport()
        session = RemoteInputSession(transport)
        self.assertEqual(session.handle_message("mouse,click,100,200"), [])
        self.assertEqual(session.stats.dropped, 1)

    def test_send_failure_stops_remaining_frames(self):
        transport = FakeTransport()
        transport.fail_after = 1
        session = RemoteInputSession(transport, default_bounds=Bounds(100, 100))
        self.assertEqual(len(session.handle_message("mouse,click,1,1")), 1)
        self.assertEqual(session.stats.send_failures, 1)

    def test_disconnect_clears_keyboard_state(self):
        transport = FakeTransport()
        session = RemoteInputSession(transport)
        session.handle_message("keyboard,keydown,65,shift")
        self.assertFalse(session.tracker.snapshot().is_empty)
        transport.set_state(SerialLinkState.DISCONNECTED)
        self.assertTrue(session.tracker.snapshot().is_empty)

    def test_release_all_sends_empty_report(self):
        transport = FakeTransport()
        session = RemoteInputSession(transport)
        session.handle_message("keyboard,keydown,65")
        self.assertTrue(session.release_all())
        self.assertEqual(transport.sent[-1], bytes.fromhex("57AB000208" + "00" * 8 + "0C"))

    def test_recorder_writes_transcript(self):
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "session.jsonl"
            transport = FakeTransport()
            session = RemoteInputSession(transport, recorder=TranscriptWriter(path))
            session.handle_message("mouse,move,10,20")
            for listener in transport._data_listeners:
                listener(b"\x01")
            rows = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
        self.assertEqual([r["dir"] for r in rows], ["host_to_device", "device_to_host"])
        self.assertEqual(rows[0]["payload_hex"], "57AB00050501000A14002B")


class DetachingTracker(InputStateTracker):
    """Unplugs the adapter the first time a key lands, after the open check passed."""

    def __init__(self, manager, device):
        super().__init__()
        self.manager = manager
        self.device = device

    def apply_key_event(self, code, down, modifiers=None):
        if self.manager.is_open():
            self.manager.handle_detach(self.device)
        return super().apply_key_event(code, down, modifiers)


class SessionOverSerialTests(unittest.TestCase):
    def _manager(self, port, device):
        return SerialTransportManager(
            permissions=ManualPermissionBroker(preauthorized=True),
            port_factory=lambda: port,
            discover=lambda: [device],
        )

    def test_detach_during_message_leaves_no_key_held(self):
        port = QuietPort()
        device = DeviceHandle(device="/dev/ttyUSB0", vid=0x1A86, pid=0x7523)
        manager = self._manager(port, device)
        session = RemoteInputSession(manager, tracker=DetachingTracker(manager, device))
        try:
            self.assertTrue(manager.auto_connect().result(timeout=2))
            self.assertEqual(session.handle_message("keyboard,keydown,65"), [])
            self.assertEqual(manager.state, SerialLinkState.DISCONNECTED)
            self.assertTrue(session.tracker.snapshot().is_empty)
            self.assertEqual(session.stats.send_failures, 1)
            self.assertEqual(port.written, [])
        finally:
            session.close()

    def test_detach_mid_session(self):
        port = QuietPort()
        device = DeviceHandle(device="/dev/ttyUSB0", vid=0x1A86, pid=0x7523)
        manager = SerialTransportManager(
            permissions=ManualPermissionBroker(preauthorized=True),
            port_factory=lambda: port,
            discover=lambda: [device],
        )
        session = RemoteInputSession(manager)
        try:
            self.assertTrue(manager.auto_connect().result(timeout=2))
            self.assertEqual(len(session.handle_message("keyboard,keydown,65")), 1)

            manager.handle_detach(device)
            self.assertEqual(manager.state, SerialLinkState.DISCONNECTED)
            self.assertTrue(session.tracker.snapshot().is_empty)

            self.assertEqual(session.handle_message("keyboard,keydown,66"), [])
            self.assertEqual(len(port.written), 1)
        finally:
            session.close()


if __name__ == "__main__":
    unittest.main()
