"""Remote-control session: text messages in, HID frames out."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from hidlink_protocol import (
    Bounds,
    ControlIntent,
    DecodeError,
    Frame,
    FrameEncodeError,
    InputStateTracker,
    IntentTranslator,
    decode,
    encode_release_all,
)
from hidlink_protocol.replay import DEVICE_TO_HOST, HOST_TO_DEVICE, TranscriptWriter
from hidlink_serial import SerialLinkState, SerialTransportManager


logger = logging.getLogger("hidlink.session")
frame_log = logging.getLogger("hidlink.frames")


@dataclass
class SessionStats:
    messages: int = 0
    decode_errors: int = 0
    dropped: int = 0
    frames_sent: int = 0
    send_failures: int = 0


class RemoteInputSession:
    """Routes decoded intents through the state tracker and codec to the serial link.

    The session never raises for bad input: malformed messages, unencodable
    intents and a closed link are logged and the message is dropped. When the
    link drops to ``Disconnected`` the keyboard state is cleared so no key stays
    held on the target machine.
    """

    def __init__(
        self,
        transport: SerialTransportManager,
        tracker: InputStateTracker | None = None,
        default_bounds: Bounds | None = None,
        recorder: TranscriptWriter | None = None,
    ) -> None:
        self.transport = transport
        self.tracker = tracker or InputStateTracker()
        self.translator = IntentTranslator(self.tracker, default_bounds=default_bounds)
        self.recorder = recorder
        self.stats = SessionStats()
        self._lock = threading.Lock()

        transport.on_state_changed(self._on_link_state)
        if recorder is not None:
            transport.on_bytes_received(lambda data: recorder.record(DEVICE_TO_HOST, data))

    def _on_link_state(self, state: SerialLinkState) -> None:
        if state == SerialLinkState.DISCONNECTED:
            self.tracker.release_all()
            logger.info("link disconnected, keyboard state cleared", extra={"event": "keys_reset"})

    def handle_message(self, text: str) -> list[Frame]:
        """Decode one control message and send its frames. Returns the frames sent."""
        self.stats.messages += 1
        try:
            intent = decode(text)
        except DecodeError as exc:
            self.stats.decode_errors += 1
            logger.warning("dropped message %r: %s", text, exc, extra={"event": "decode_error"})
            return []
        return self.handle_intent(intent)

    def handle_intent(self, intent: ControlIntent) -> list[Frame]:
        if not self.transport.is_open():
            self.stats.dropped += 1
            logger.warning("serial link not open, dropped %s", type(intent).__name__, extra={"event": "link_down"})
            return []

        with self._lock:
            try:
                frames = self.translator.frames(intent)
            except FrameEncodeError as exc:
                self.stats.dropped += 1
                logger.warning("cannot encode %s: %s", type(intent).__name__, exc, extra={"event": "encode_error"})
                return []
            return self._send(frames)

    def _send(self, frames: list[Frame]) -> list[Frame]:
        sent: list[Frame] = []
        for frame in frames:
            if not self.transport.send_bytes(frame):
                self.stats.send_failures += 1
                logger.error("failed to send frame %s", frame.hex(), extra={"event": "send_failed"})
                if not self.transport.is_open():
                    # Link dropped mid-message; nothing stays held while disconnected.
                    self.tracker.release_all()
                break
            sent.append(frame)
            self.stats.frames_sent += 1
            frame_log.debug("frame sent", extra={"event": "frame_sent", "frame_hex": frame.hex()})
            if self.recorder is not None:
                self.recorder.record(HOST_TO_DEVICE, bytes(frame))
        logger.debug("sent %d/%d frames", len(sent), len(frames))
        return sent

    def release_all(self) -> bool:
        """Clear tracked keys and, if the link is open, tell the controller to release everything."""
        with self._lock:
            self.tracker.release_all()
            if not self.transport.is_open():
                return False
            return len(self._send([encode_release_all()])) == 1

    def close(self) -> None:
        self.release_all()
        self.transport.close()
