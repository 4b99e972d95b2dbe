"""Polling hot-plug monitor for serial adapters.

pyserial has no attach/detach notifications, so the monitor diffs successive
discovery passes and reports what appeared and what vanished.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

from .models import DeviceHandle


logger = logging.getLogger("hidlink.serial")


class HotplugMonitor:
    def __init__(
        self,
        discover: Callable[[], list[DeviceHandle]],
        on_attach: Callable[[DeviceHandle], None],
        on_detach: Callable[[DeviceHandle], None],
        poll_s: float = 1.0,
    ) -> None:
        self.discover = discover
        self.on_attach = on_attach
        self.on_detach = on_detach
        self.poll_s = poll_s

        self._known: dict[tuple, DeviceHandle] | None = None
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._monitor_loop, name="hidlink-hotplug", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=max(2.0, self.poll_s * 2))
        self._thread = None

    def _monitor_loop(self) -> None:
        while not self._stop.is_set():
            try:
                self.scan()
            except Exception as exc:
                logger.error("hotplug scan failed: %s", exc, extra={"event": "hotplug_scan_error"})
            self._stop.wait(self.poll_s)

    def scan(self) -> tuple[list[DeviceHandle], list[DeviceHandle]]:
        """Run one discovery pass; the first pass only records a baseline."""
        current = {d.identity: d for d in self.discover()}
        if self._known is None:
            self._known = current
            return [], []

        attached = [d for key, d in current.items() if key not in self._known]
        detached = [d for key, d in self._known.items() if key not in current]
        self._known = current

        for device in detached:
            logger.info("device detached: %s", device.describe(), extra={"event": "device_detached"})
            self.on_detach(device)
        for device in attached:
            logger.info("device attached: %s", device.describe(), extra={"event": "device_attached"})
            self.on_attach(device)
        return attached, detached
