"""Core services: configuration, logging, diagnostics and the remote-input session."""

from .config import AppConfig, config_path, load_config, save_config
from .diagnostics import DiagnosticsExporter, build_doctor_payload
from .session import RemoteInputSession, SessionStats

__all__ = [
    "AppConfig",
    "DiagnosticsExporter",
    "RemoteInputSession",
    "SessionStats",
    "build_doctor_payload",
    "config_path",
    "load_config",
    "save_config",
]
