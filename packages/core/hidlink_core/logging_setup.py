"""JSON log files, optional frame trace and crash hooks that release held input."""

from __future__ import annotations

import faulthandler
import json
import logging
import logging.handlers
import os
import sys
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from .config import config_root


_LOGGER_NAME = "hidlink"
_FRAME_LOGGER = "hidlink.frames"
# Structured fields callers pass through ``extra=``.
_EXTRA_FIELDS = ("event", "crash_id", "device", "state", "frame_hex")


def log_dir() -> Path:
    override = os.environ.get("HIDLINK_LOG_DIR")
    path = Path(override).expanduser() if override else config_root() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        row: dict[str, Any] = {
            "ts_utc": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            row["exc"] = self.formatException(record.exc_info)
        for key in _EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                row[key] = value
        return json.dumps(row, ensure_ascii=True)


def _rotating(path: Path, keep_files: int) -> logging.Handler:
    handler = logging.handlers.TimedRotatingFileHandler(
        filename=str(path),
        when="midnight",
        backupCount=max(2, keep_files),
        encoding="utf-8",
    )
    handler.setFormatter(JsonFormatter())
    return handler


def configure_logging(
    keep_files: int = 7,
    console: bool = True,
    level: str = "INFO",
    trace_frames: bool = False,
) -> logging.Logger:
    """Set up ``hidlink`` logging once per process.

    With ``trace_frames`` every sent frame is also written, at DEBUG, to a
    separate ``frames.log`` so the main log stays readable.
    """
    logger = logging.getLogger(_LOGGER_NAME)
    if logger.handlers:
        return logger

    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    logger.addHandler(_rotating(log_dir() / "hidlink.log", keep_files))

    if console:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(logging.Formatter("%(levelname)s %(name)s %(message)s"))
        logger.addHandler(stream_handler)

    frames = logging.getLogger(_FRAME_LOGGER)
    frames.propagate = False
    if trace_frames and not frames.handlers:
        frames.setLevel(logging.DEBUG)
        frames.addHandler(_rotating(log_dir() / "frames.log", keep_files))

    logger.info("logging configured", extra={"event": "logging_configured"})
    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    return logging.getLogger(_LOGGER_NAME if not name else f"{_LOGGER_NAME}.{name}")


def install_crash_hooks(on_crash: Callable[[], Any] | None = None) -> None:
    """Log uncaught exceptions with a crash id.

    ``on_crash`` runs first; the CLI uses it to send a release-all report so a
    crash never leaves keys held on the target machine.
    """
    logger = get_logger()

    def _release() -> None:
        if on_crash is None:
            return
        try:
            on_crash()
        except Exception:
            logger.exception("crash release failed", extra={"event": "crash_release_failed"})

    def _report(kind: str, exc_info) -> None:
        crash_id = str(uuid.uuid4())
        _release()
        logger.critical(
            f"{kind} crash_id={crash_id}",
            exc_info=exc_info,
            extra={"event": kind.replace(" ", "_"), "crash_id": crash_id},
        )

    sys.excepthook = lambda t, v, tb: _report("uncaught exception", (t, v, tb))
    threading.excepthook = lambda a: _report("thread exception", (a.exc_type, a.exc_value, a.exc_traceback))

    fh = (log_dir() / "fault.log").open("a", encoding="utf-8")
    faulthandler.enable(file=fh, all_threads=True)
    logger.info("crash hooks installed", extra={"event": "crash_hooks_installed"})
