import json
import sys
import tempfile
import unittest
import zipfile
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
for pkg in ("protocol", "serial_link", "core"):
    sys.path.insert(0, str(ROOT / "packages" / pkg))

from hidlink_core.config import load_config
from hidlink_core.diagnostics import DiagnosticsExporter, build_doctor_payload, redact


class DiagnosticsTests(unittest.TestCase):
    def test_bundle_exports_zip(self):
        cfg = load_config(Path("/tmp/nonexistent-config.json"))
        doctor = build_doctor_payload(cfg)
        self.assertIn("process", doctor)
        self.assertIsInstance(doctor["devices"], list)
        exporter = DiagnosticsExporter()

        with tempfile.TemporaryDirectory() as tmp:
            events = [{"event": "open", "device": "/dev/ttyUSB0"}]
            bundle = exporter.bundle(
                cfg=cfg, doctor_payload=doctor, recent_transport_events=events, output_dir=Path(tmp)
            )
            self.assertTrue(bundle.exists())

            with zipfile.ZipFile(bundle, "r") as zf:
                names = set(zf.namelist())
                self.assertIn("manifest.json", names)
                self.assertIn("doctor.json", names)
                self.assertIn("config.redacted.json", names)
                self.assertIn("transport_events.json", names)

    def test_bundle_includes_transcript_report(self):
        cfg = load_config(Path("/tmp/nonexistent-config.json"))
        transcript = ROOT / "tests" / "transcripts" / "session_basic.jsonl"
        with tempfile.TemporaryDirectory() as tmp:
            bundle = DiagnosticsExporter().bundle(
                cfg=cfg, doctor_payload={}, output_dir=Path(tmp), transcript=transcript
            )
            with zipfile.ZipFile(bundle, "r") as zf:
                self.assertIn("transcripts/session_basic.jsonl", zf.namelist())
                report = json.loads(zf.read("replay_report.json"))
        self.assertEqual(report["mouse_absolute_frames"], 1)
        self.assertEqual(report["errors"], [])

    def test_redact_nested_secrets(self):
        payload = {"channel": {"auth_token": "abc", "device_id": "x"}, "items": [{"password": "p"}]}
        out = redact(payload)
        self.assertEqual(out["channel"]["auth_token"], "***REDACTED***")
        self.assertEqual(out["channel"]["device_id"], "x")
        self.assertEqual(out["items"][0]["password"], "***REDACTED***")


if __name__ == "__main__":
    unittest.main()
