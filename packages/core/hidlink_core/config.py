"""Persistent settings schema and load/save helpers."""

from __future__ import annotations

import json
import os
import platform
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from hidlink_protocol import Bounds
from hidlink_serial import SerialSettings


CONFIG_VERSION = 1


@dataclass
class SerialConfig:
    auto_connect: bool = True
    port_override: str | None = None
    baud: int = 9600
    bytesize: int = 8
    parity: str = "N"
    stopbits: float = 1
    write_timeout_ms: int = 2000
    read_timeout_ms: int = 100


@dataclass
class HotplugConfig:
    enabled: bool = True
    poll_ms: int = 1000


@dataclass
class TargetConfig:
    default_width: int | None = None
    default_height: int | None = None


@dataclass
class ChannelConfig:
    channel: str | None = None
    device_id: str | None = None


@dataclass
class DiagnosticsConfig:
    keep_log_files: int = 7
    log_level: str = "INFO"
    trace_frames: bool = False


@dataclass
class AppConfig:
    config_version: int = CONFIG_VERSION
    serial: SerialConfig = field(default_factory=SerialConfig)
    hotplug: HotplugConfig = field(default_factory=HotplugConfig)
    target: TargetConfig = field(default_factory=TargetConfig)
    channel: ChannelConfig = field(default_factory=ChannelConfig)
    diagnostics: DiagnosticsConfig = field(default_factory=DiagnosticsConfig)

    def serial_settings(self) -> SerialSettings:
        s = self.serial
        return SerialSettings(
            baud=s.baud,
            bytesize=s.bytesize,
            parity=s.parity,
            stopbits=s.stopbits,
            write_timeout_ms=s.write_timeout_ms,
            read_timeout_ms=s.read_timeout_ms,
        )

    def default_bounds(self) -> Bounds | None:
        if self.target.default_width and self.target.default_height:
            return Bounds(self.target.default_width, self.target.default_height)
        return None


def config_root() -> Path:
    system = platform.system()
    if system == "Windows":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
        return base / "HIDLink"
    if system == "Darwin":
        return Path.home() / "Library" / "Application Support" / "HIDLink"
    return Path.home() / ".config" / "hidlink"


def config_path() -> Path:
    return config_root() / "config.json"


def _merge(dataclass_type, raw: dict[str, Any]):
    defaults = dataclass_type()  # type: ignore[misc]
    for k, v in (raw or {}).items():
        if hasattr(defaults, k):
            setattr(defaults, k, v)
    return defaults


def _normalize_serial(cfg: AppConfig) -> None:
    s = cfg.serial
    if s.baud not in (1200, 2400, 4800, 9600, 14400, 19200, 38400, 57600, 115200):
        s.baud = 9600
    if s.bytesize not in (5, 6, 7, 8):
        s.bytesize = 8
    s.parity = str(s.parity).upper()[:1] or "N"
    if s.parity not in ("N", "E", "O", "M", "S"):
        s.parity = "N"
    if s.stopbits not in (1, 1.5, 2):
        s.stopbits = 1
    s.write_timeout_ms = max(50, min(10000, int(s.write_timeout_ms)))
    s.read_timeout_ms = max(10, min(2000, int(s.read_timeout_ms)))


def _normalize_hotplug(cfg: AppConfig) -> None:
    cfg.hotplug.poll_ms = max(200, min(10000, int(cfg.hotplug.poll_ms)))


def _normalize_target(cfg: AppConfig) -> None:
    for name in ("default_width", "default_height"):
        value = getattr(cfg.target, name)
        if value is None:
            continue
        try:
            size = int(value)
        except (TypeError, ValueError):
            size = 0
        setattr(cfg.target, name, size if size > 0 else None)


def load_config(path: Path | None = None) -> AppConfig:
    path = path or config_path()
    if not path.exists():
        return AppConfig()

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except Exception:
        return AppConfig()

    data = raw if isinstance(raw, dict) else {}
    cfg = AppConfig(
        config_version=CONFIG_VERSION,
        serial=_merge(SerialConfig, data.get("serial", {})),
        hotplug=_merge(HotplugConfig, data.get("hotplug", {})),
        target=_merge(TargetConfig, data.get("target", {})),
        channel=_merge(ChannelConfig, data.get("channel", {})),
        diagnostics=_merge(DiagnosticsConfig, data.get("diagnostics", {})),
    )

    _normalize_serial(cfg)
    _normalize_hotplug(cfg)
    _normalize_target(cfg)
    return cfg


def save_config(cfg: AppConfig, path: Path | None = None) -> Path:
    cfg.config_version = CONFIG_VERSION
    path = path or config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(asdict(cfg), indent=2, sort_keys=True), encoding="utf-8")
    return path
