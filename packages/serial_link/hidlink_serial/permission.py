"""Asynchronous permission handshake for USB-serial devices.

A broker answers ``request(device)`` with a future that resolves to ``True``
(granted) or ``False`` (denied). Resolution may happen on any thread and at
any later time, so callers attach a done-callback instead of waiting.
"""

from __future__ import annotations

import logging
import os
import sys
import threading
from concurrent.futures import Future, ThreadPoolExecutor

from .models import DeviceHandle


logger = logging.getLogger("hidlink.serial")


def permission_hint() -> str:
    if sys.platform.startswith("linux"):
        return "Linux may require your user to be in the dialout/uucp group for serial access."
    if sys.platform == "darwin":
        return "If serial access fails, reconnect the USB adapter and retry."
    return "If the port cannot be opened, close other programs using it and retry."


class PermissionBroker:
    def has_permission(self, device: DeviceHandle) -> bool:
        return False

    def request(self, device: DeviceHandle) -> Future:
        raise NotImplementedError


class FilesystemPermissionBroker(PermissionBroker):
    """Desktop broker: access is granted when the device node is read/writable."""

    def __init__(self) -> None:
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="hidlink-permission")

    def has_permission(self, device: DeviceHandle) -> bool:
        if not os.path.exists(device.device):
            # Windows COM ports have no filesystem node; opening decides.
            return not device.device.startswith("/")
        return os.access(device.device, os.R_OK | os.W_OK)

    def _check(self, device: DeviceHandle) -> bool:
        granted = self.has_permission(device)
        if not granted:
            logger.warning(
                "no access to %s. %s", device.device, permission_hint(), extra={"event": "permission_denied"}
            )
        return granted

    def request(self, device: DeviceHandle) -> Future:
        return self._executor.submit(self._check, device)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False)


class ManualPermissionBroker(PermissionBroker):
    """Holds requests until a collaborator (UI prompt, test) grants or denies them."""

    def __init__(self, preauthorized: bool = False) -> None:
        self.preauthorized = preauthorized
        self._lock = threading.Lock()
        self._granted: set[tuple] = set()
        self._pending: dict[tuple, Future] = {}

    def has_permission(self, device: DeviceHandle) -> bool:
        with self._lock:
            return self.preauthorized or device.identity in self._granted

    def request(self, device: DeviceHandle) -> Future:
        with self._lock:
            pending = self._pending.get(device.identity)
            if pending is None or pending.done():
                pending = Future()
                self._pending[device.identity] = pending
            return pending

    def pending(self) -> list[tuple]:
        with self._lock:
            return [k for k, f in self._pending.items() if not f.done()]

    def _resolve(self, device: DeviceHandle, granted: bool) -> bool:
        with self._lock:
            if granted:
                self._granted.add(device.identity)
            future = self._pending.pop(device.identity, None)
        if future is None or future.done():
            return False
        future.set_result(granted)
        return True

    def grant(self, device: DeviceHandle) -> bool:
        return self._resolve(device, True)

    def deny(self, device: DeviceHandle) -> bool:
        return self._resolve(device, False)
