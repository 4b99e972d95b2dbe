"""Record and analyze serial transcripts of HID-emulation frames."""

from __future__ import annotations

import json
import re
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from .codec import CommandType, Frame, FrameFormatError, MouseSubCommand


_HEX_CLEAN = re.compile(r"[^0-9a-fA-F]")

HOST_TO_DEVICE = "host_to_device"
DEVICE_TO_HOST = "device_to_host"


@dataclass(frozen=True)
class ReplayEvent:
    line: int
    direction: str
    payload: bytes


@dataclass
class ReplayReport:
    total_events: int = 0
    host_to_device_events: int = 0
    device_to_host_events: int = 0
    keyboard_frames: int = 0
    release_all_frames: int = 0
    mouse_absolute_frames: int = 0
    mouse_relative_frames: int = 0
    invalid_frames: int = 0
    raw_bytes_total: int = 0
    command_counts: dict[str, int] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)


class TranscriptWriter:
    """Appends one JSON line per chunk; safe to call from the reader thread."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = threading.Lock()
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def record(self, direction: str, payload: bytes) -> None:
        row = {
            "ts_utc": datetime.now(timezone.utc).isoformat(),
            "dir": direction,
            "payload_hex": bytes(payload).hex().upper(),
        }
        with self._lock:
            with self.path.open("a", encoding="utf-8") as fh:
                fh.write(json.dumps(row, sort_keys=True) + "\n")


class ReplayRunner:
    @staticmethod
    def _decode_hex(value: str) -> bytes:
        cleaned = _HEX_CLEAN.sub("", value)
        if len(cleaned) % 2 == 1:
            cleaned = cleaned[:-1]
        if not cleaned:
            return b""
        return bytes.fromhex(cleaned)

    def _parse_line(self, line_no: int, line: str) -> ReplayEvent | None:
        stripped = line.strip()
        if not stripped:
            return None
        obj = json.loads(stripped)
        direction = obj.get("dir") or obj.get("direction") or "unknown"
        hex_value = obj.get("payload_hex") or obj.get("hex") or ""
        return ReplayEvent(line=line_no, direction=direction, payload=self._decode_hex(str(hex_value)))

    def parse(self, transcript_path: Path) -> list[ReplayEvent]:
        events: list[ReplayEvent] = []
        for idx, line in enumerate(transcript_path.read_text(encoding="utf-8").splitlines(), start=1):
            event = self._parse_line(idx, line)
            if event is not None:
                events.append(event)
        return events

    @staticmethod
    def _count(report: ReplayReport, name: str) -> None:
        report.command_counts[name] = report.command_counts.get(name, 0) + 1

    def _classify(self, report: ReplayReport, frame: Frame) -> None:
        if frame.command == CommandType.KEYBOARD:
            if not any(frame.payload):
                report.release_all_frames += 1
                self._count(report, "RELEASE_ALL")
            else:
                report.keyboard_frames += 1
                self._count(report, "KEYBOARD")
        elif frame.command == CommandType.MOUSE_ABSOLUTE and frame.payload[:1] == bytes([MouseSubCommand.ABSOLUTE]):
            report.mouse_absolute_frames += 1
            self._count(report, "MOUSE_ABSOLUTE")
        elif frame.command == CommandType.MOUSE_RELATIVE and frame.payload[:1] == bytes([MouseSubCommand.RELATIVE]):
            report.mouse_relative_frames += 1
            self._count(report, "MOUSE_RELATIVE")
        else:
            self._count(report, f"UNKNOWN_{frame.command:02X}")

    def run(self, transcript_path: Path, strict: bool = True) -> ReplayReport:
        events = self.parse(transcript_path)
        report = ReplayReport(total_events=len(events))

        for event in events:
            report.raw_bytes_total += len(event.payload)
            if event.direction == DEVICE_TO_HOST:
                report.device_to_host_events += 1
                continue
            if event.direction != HOST_TO_DEVICE:
                continue
            report.host_to_device_events += 1

            try:
                frame = Frame.parse(event.payload)
            except FrameFormatError as exc:
                report.invalid_frames += 1
                report.errors.append(f"line {event.line}: {exc}")
                continue
            self._classify(report, frame)

        if strict:
            if report.host_to_device_events < 1:
                report.errors.append("no_frames")
            if report.invalid_frames:
                report.errors.append("invalid_frames")

        return report
