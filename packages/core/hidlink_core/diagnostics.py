"""Doctor report and offline support bundles for serial/HID troubleshooting."""

from __future__ import annotations

import json
import os
import platform
import re
import tempfile
import zipfile
from dataclasses import asdict, is_dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

import psutil

from hidlink_protocol import ReplayRunner
from hidlink_serial import DeviceHandle, SerialPort, SerialProber, permission_hint

from .config import AppConfig, config_path
from .logging_setup import log_dir


_SECRET_RE = re.compile(r"(token|secret|password|apikey|api_key|auth)", re.IGNORECASE)


def _jsonable(value: Any) -> Any:
    if is_dataclass(value):
        return asdict(value)
    if isinstance(value, (Enum, Path)):
        return getattr(value, "value", str(value))
    if isinstance(value, bytes):
        return value.hex().upper()
    return str(value)


def redact(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: "***REDACTED***" if _SECRET_RE.search(str(k)) else redact(v) for k, v in value.items()}
    if isinstance(value, list):
        return [redact(v) for v in value]
    return value


def _process_info() -> dict[str, Any]:
    proc = psutil.Process()
    with proc.oneshot():
        return {
            "pid": proc.pid,
            "threads": proc.num_threads(),
            "rss_mb": round(proc.memory_info().rss / (1024 * 1024), 2),
        }


def _port_access(device: DeviceHandle) -> str:
    if not os.path.exists(device.device):
        return "unknown"
    return "ok" if os.access(device.device, os.R_OK | os.W_OK) else "denied"


def describe_ports(prober: SerialProber | None = None) -> list[dict[str, Any]]:
    """Every serial port the OS reports, with probe verdict and access."""
    prober = prober or SerialProber()
    rows = []
    for d in SerialPort.discover():
        driver = prober.probe(d)
        row = asdict(d)
        row.update(
            {
                "usb_id": f"{d.vid:04X}:{d.pid:04X}" if d.vid is not None and d.pid is not None else None,
                "qualifies": driver is not None,
                "driver": driver,
                "access": _port_access(d),
            }
        )
        rows.append(row)
    return rows


def build_doctor_payload(cfg: AppConfig) -> dict[str, Any]:
    ports = describe_ports()
    return {
        "ts_utc": datetime.now(timezone.utc).isoformat(),
        "platform": platform.platform(),
        "python": platform.python_version(),
        "process": _process_info(),
        "config": redact(asdict(cfg)),
        "devices": ports,
        "qualifying_devices": sum(1 for p in ports if p["qualifies"]),
        "port_override": cfg.serial.port_override,
        "permission_hint": permission_hint(),
    }


class DiagnosticsExporter:
    def __init__(self, app_name: str = "HIDLink") -> None:
        self.app_name = app_name

    @staticmethod
    def _dump(zf: zipfile.ZipFile, name: str, data: Any) -> None:
        zf.writestr(name, json.dumps(redact(data), indent=2, sort_keys=True, default=_jsonable))

    def bundle(
        self,
        cfg: AppConfig,
        doctor_payload: dict[str, Any],
        recent_transport_events: list[dict[str, Any]] | None = None,
        output_dir: Path | None = None,
        transcript: Path | None = None,
    ) -> Path:
        """Write a zip with the doctor report, config, link events, logs and an optional transcript."""
        output_base = output_dir or Path(tempfile.gettempdir())
        output_base.mkdir(parents=True, exist_ok=True)
        zip_path = output_base / f"hidlink-diagnostics-{datetime.now():%Y%m%d-%H%M%S}.zip"
        logs = log_dir()

        with zipfile.ZipFile(zip_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            self._dump(
                zf,
                "manifest.json",
                {
                    "app": self.app_name,
                    "created_utc": datetime.now(timezone.utc).isoformat(),
                    "host": platform.platform(),
                    "config_path": config_path(),
                    "log_dir": logs,
                    "transcript": transcript,
                },
            )
            self._dump(zf, "doctor.json", doctor_payload)
            self._dump(zf, "config.redacted.json", asdict(cfg))
            self._dump(zf, "transport_events.json", recent_transport_events or [])

            if transcript is not None and transcript.exists():
                zf.write(transcript, arcname=f"transcripts/{transcript.name}")
                self._dump(zf, "replay_report.json", ReplayRunner().run(transcript, strict=False))

            # fault.log is matched by the glob too.
            for item in sorted(logs.glob("*.log*")):
                zf.write(item, arcname=f"logs/{item.name}")

        return zip_path
