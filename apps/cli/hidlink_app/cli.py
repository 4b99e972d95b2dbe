"""CLI entrypoints for HIDLink: device listing, diagnostics, sending and replay."""

from __future__ import annotations

import argparse
import json
import sys
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import asdict
from pathlib import Path

from hidlink_core import (
    AppConfig,
    DiagnosticsExporter,
    RemoteInputSession,
    build_doctor_payload,
    load_config,
)
from hidlink_core.diagnostics import describe_ports
from hidlink_core.logging_setup import configure_logging, install_crash_hooks
from hidlink_protocol import DecodeError, FrameEncodeError, InputStateTracker, IntentTranslator, ReplayRunner, decode
from hidlink_protocol.replay import TranscriptWriter
from hidlink_serial import SerialTransportManager, permission_hint


def _print_json(data: object) -> None:
    print(json.dumps(data, indent=2, sort_keys=True, default=str))


def _build_manager(cfg: AppConfig) -> SerialTransportManager:
    return SerialTransportManager(settings=cfg.serial_settings())


def _connect(manager: SerialTransportManager, port: str | None, timeout: float) -> bool:
    future = manager.connect_port(port) if port else manager.auto_connect()
    if future is None:
        return False
    try:
        return bool(future.result(timeout=timeout))
    except FutureTimeout:
        return False


def _session_summary(session: RemoteInputSession, manager: SerialTransportManager) -> dict:
    return {
        "session": asdict(session.stats),
        "transport": asdict(manager.stats),
        "state": manager.connection_state().value,
    }


def cmd_list_devices(_args: argparse.Namespace) -> int:
    _print_json(describe_ports())
    return 0


def cmd_doctor(args: argparse.Namespace) -> int:
    cfg = load_config()
    payload = build_doctor_payload(cfg)

    if args.export:
        exporter = DiagnosticsExporter()
        out_dir = Path(args.out_dir).expanduser().resolve() if args.out_dir else None
        transcript = Path(args.transcript).expanduser() if args.transcript else None
        bundle = exporter.bundle(cfg=cfg, doctor_payload=payload, output_dir=out_dir, transcript=transcript)
        payload["diagnostics_bundle"] = str(bundle)

    _print_json(payload)
    return 0


def cmd_encode(args: argparse.Namespace) -> int:
    cfg = load_config()
    translator = IntentTranslator(InputStateTracker(), default_bounds=cfg.default_bounds())
    rows = []
    failed = False
    for message in args.messages:
        try:
            intent = decode(message)
            frames = translator.frames(intent)
        except (DecodeError, FrameEncodeError) as exc:
            failed = True
            rows.append({"message": message, "error": type(exc).__name__, "detail": str(exc)})
            continue
        rows.append({"message": message, "intent": type(intent).__name__, "frames": [f.hex() for f in frames]})
    _print_json(rows)
    return 2 if failed else 0


def cmd_send(args: argparse.Namespace) -> int:
    cfg = load_config()
    manager = _build_manager(cfg)
    recorder = TranscriptWriter(Path(args.record)) if args.record else None
    session = RemoteInputSession(manager, default_bounds=cfg.default_bounds(), recorder=recorder)

    if not _connect(manager, args.port or cfg.serial.port_override, args.timeout):
        _print_json({"success": False, "error": "no serial adapter connected", "hint": permission_hint()})
        manager.shutdown()
        return 1

    sent = 0
    for message in args.messages:
        sent += len(session.handle_message(message))
    session.close()
    manager.shutdown()

    summary = _session_summary(session, manager)
    summary["success"] = session.stats.send_failures == 0
    summary["frames"] = sent
    _print_json(summary)
    return 0 if summary["success"] else 1


def cmd_listen(args: argparse.Namespace) -> int:
    cfg = load_config()
    manager = _build_manager(cfg)
    recorder = TranscriptWriter(Path(args.record)) if args.record else None
    session = RemoteInputSession(manager, default_bounds=cfg.default_bounds(), recorder=recorder)
    install_crash_hooks(on_crash=session.release_all)

    port = args.port or cfg.serial.port_override
    if port or cfg.serial.auto_connect:
        _connect(manager, port, args.timeout)
    if cfg.hotplug.enabled and not args.no_hotplug:
        manager.enable_hotplug(poll_s=cfg.hotplug.poll_ms / 1000)

    stream = open(args.input, encoding="utf-8") if args.input else sys.stdin
    try:
        for line in stream:
            message = line.strip()
            if message and not message.startswith("#"):
                session.handle_message(message)
    except KeyboardInterrupt:
        pass
    finally:
        if stream is not sys.stdin:
            stream.close()
        session.close()
        manager.shutdown()

    _print_json(_session_summary(session, manager))
    return 0


def cmd_replay(args: argparse.Namespace) -> int:
    runner = ReplayRunner()
    report = runner.run(Path(args.transcript), strict=not args.no_strict)
    payload = asdict(report)
    payload["success"] = len(report.errors) == 0
    _print_json(payload)
    return 0 if not report.errors else 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="hidlink", description="Remote mouse/keyboard control over a USB-serial HID emulator")
    sub = parser.add_subparsers(dest="command", required=True)

    list_cmd = sub.add_parser("list-devices", help="List serial ports and whether they qualify")
    list_cmd.set_defaults(func=cmd_list_devices)

    doctor_cmd = sub.add_parser("doctor", help="Print diagnostics and detected devices")
    doctor_cmd.add_argument("--export", action="store_true", help="Export offline diagnostics bundle")
    doctor_cmd.add_argument("--out-dir", default=None, help="Optional output directory for diagnostics bundle")
    doctor_cmd.add_argument("--transcript", default=None, help="Include a recorded transcript and its replay report")
    doctor_cmd.set_defaults(func=cmd_doctor)

    encode_cmd = sub.add_parser("encode", help="Decode messages and print the frames they produce")
    encode_cmd.add_argument("messages", nargs="+", help='Control messages, e.g. "mouse,move,10,20"')
    encode_cmd.set_defaults(func=cmd_encode)

    send_cmd = sub.add_parser("send", help="Send control messages to the controller")
    send_cmd.add_argument("messages", nargs="+")
    send_cmd.add_argument("--port", default=None, help="Optional explicit serial port override")
    send_cmd.add_argument("--timeout", type=float, default=5.0, help="Seconds to wait for the port to open")
    send_cmd.add_argument("--record", default=None, help="Append frames to a JSONL transcript")
    send_cmd.set_defaults(func=cmd_send)

    listen_cmd = sub.add_parser("listen", help="Read one control message per line and forward it")
    listen_cmd.add_argument("--input", default=None, help="Read messages from a file instead of stdin")
    listen_cmd.add_argument("--port", default=None, help="Optional explicit serial port override")
    listen_cmd.add_argument("--timeout", type=float, default=5.0, help="Seconds to wait for the port to open")
    listen_cmd.add_argument("--record", default=None, help="Append frames to a JSONL transcript")
    listen_cmd.add_argument("--no-hotplug", action="store_true", help="Do not watch for adapter attach/detach")
    listen_cmd.set_defaults(func=cmd_listen)

    replay_cmd = sub.add_parser("replay", help="Validate a captured frame transcript")
    replay_cmd.add_argument("--transcript", required=True, help="Path to JSONL transcript")
    replay_cmd.add_argument("--no-strict", action="store_true", help="Do not fail on empty or invalid transcripts")
    replay_cmd.set_defaults(func=cmd_replay)

    return parser


def main(argv: list[str] | None = None) -> int:
    cfg = load_config()
    configure_logging(
        keep_files=cfg.diagnostics.keep_log_files,
        console=False,
        level=cfg.diagnostics.log_level,
        trace_frames=cfg.diagnostics.trace_frames,
    )
    parser = build_parser()
    args = parser.parse_args(argv)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
