import io
import json
import sys
import unittest
from argparse import Namespace
from contextlib import redirect_stdout
from pathlib import Path
from unittest import mock

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "apps" / "cli"))
sys.path.insert(0, str(ROOT / "packages" / "core"))
sys.path.insert(0, str(ROOT / "packages" / "protocol"))
sys.path.insert(0, str(ROOT / "packages" / "serial_link"))

from hidlink_app import cli
from hidlink_app.cli import build_parser
from hidlink_core.config import AppConfig, TargetConfig


def _run(func, args):
    buf = io.StringIO()
    with redirect_stdout(buf):
        rc = func(args)
    return rc, json.loads(buf.getvalue())


class CliTests(unittest.TestCase):
    def test_listen_command(self):
        parser = build_parser()
        args = parser.parse_args(["listen", "--port", "/dev/ttyUSB0", "--no-hotplug"])
        self.assertEqual(args.command, "listen")
        self.assertEqual(args.port, "/dev/ttyUSB0")
        self.assertTrue(args.no_hotplug)

    def test_send_command(self):
        parser = build_parser()
        args = parser.parse_args(["send", "mouse,move,10,20", "keyboard,keypress,65", "--timeout", "1.5"])
        self.assertEqual(args.command, "send")
        self.assertEqual(args.messages, ["mouse,move,10,20", "keyboard,keypress,65"])
        self.assertEqual(args.timeout, 1.5)

    def test_replay_command(self):
        parser = build_parser()
        args = parser.parse_args(["replay", "--transcript", "sample.jsonl"])
        self.assertEqual(args.command, "replay")
        self.assertEqual(args.transcript, "sample.jsonl")
        self.assertFalse(args.no_strict)

    def test_encode_prints_frames(self):
        with mock.patch.object(cli, "load_config", return_value=AppConfig()):
            rc, rows = _run(cli.cmd_encode, Namespace(messages=["mouse,move,10,20"]))
        self.assertEqual(rc, 0)
        self.assertEqual(rows[0]["intent"], "MouseMoveRelative")
        self.assertEqual(rows[0]["frames"], ["57 AB 00 05 05 01 00 0A 14 00 2B"])

    def test_encode_uses_configured_bounds(self):
        cfg = AppConfig(target=TargetConfig(default_width=1920, default_height=1080))
        with mock.patch.object(cli, "load_config", return_value=cfg):
            rc, rows = _run(cli.cmd_encode, Namespace(messages=["mouse,click,100,200,left"]))
        self.assertEqual(rc, 0)
        self.assertEqual(len(rows[0]["frames"]), 2)

    def test_encode_reports_errors(self):
        with mock.patch.object(cli, "load_config", return_value=AppConfig()):
            rc, rows = _run(cli.cmd_encode, Namespace(messages=["mouse,move,1", "mouse,click,1,1"]))
        self.assertEqual(rc, 2)
        self.assertEqual(rows[0]["error"], "MalformedMessage")
        self.assertEqual(rows[1]["error"], "MissingBoundsError")

    def test_replay_exit_code(self):
        transcript = ROOT / "tests" / "transcripts" / "session_basic.jsonl"
        rc, payload = _run(cli.cmd_replay, Namespace(transcript=str(transcript), no_strict=False))
        self.assertEqual(rc, 0)
        self.assertTrue(payload["success"])
        self.assertEqual(payload["keyboard_frames"], 1)


if __name__ == "__main__":
    unittest.main()
