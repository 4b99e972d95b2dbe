import json
import sys
import tempfile
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "packages" / "protocol"))

from hidlink_protocol.replay import HOST_TO_DEVICE, ReplayRunner, TranscriptWriter


class ReplayTests(unittest.TestCase):
    def test_replay_report_counts_frame_kinds(self):
        runner = ReplayRunner()
        transcript = ROOT / "tests" / "transcripts" / "session_basic.jsonl"
        report = runner.run(transcript, strict=True)

        self.assertEqual(report.host_to_device_events, 4)
        self.assertEqual(report.device_to_host_events, 1)
        self.assertEqual(report.keyboard_frames, 1)
        self.assertEqual(report.release_all_frames, 1)
        self.assertEqual(report.mouse_relative_frames, 1)
        self.assertEqual(report.mouse_absolute_frames, 1)
        self.assertEqual(report.errors, [])

    def test_strict_flags_bad_checksum(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "bad.jsonl"
            path.write_text(json.dumps({"dir": HOST_TO_DEVICE, "payload_hex": "57AB00050501000A140000"}) + "\n")
            report = ReplayRunner().run(path, strict=True)
            lenient = ReplayRunner().run(path, strict=False)

        self.assertEqual(report.invalid_frames, 1)
        self.assertIn("invalid_frames", report.errors)
        self.assertNotIn("invalid_frames", lenient.errors)

    def test_empty_transcript_is_an_error_when_strict(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "empty.jsonl"
            path.write_text("\n")
            report = ReplayRunner().run(path, strict=True)
        self.assertEqual(report.errors, ["no_frames"])

    def test_writer_output_replays(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "nested" / "out.jsonl"
            writer = TranscriptWriter(path)
            writer.record(HOST_TO_DEVICE, bytes.fromhex("57AB00050501000A14002B"))
            report = ReplayRunner().run(path)
        self.assertEqual(report.mouse_relative_frames, 1)
        self.assertEqual(report.errors, [])


if __name__ == "__main__":
    unittest.main()
