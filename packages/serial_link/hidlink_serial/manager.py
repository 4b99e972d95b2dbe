"""Serial link lifecycle: discovery, permission, open, read loop, write, recovery."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable

from .hotplug import HotplugMonitor
from .models import DeviceHandle, SerialLinkState, SerialSettings, TransportStats
from .permission import FilesystemPermissionBroker, PermissionBroker
from .prober import SerialProber
from .transport import SERIAL_ERRORS, SerialPort


logger = logging.getLogger("hidlink.serial")

StateListener = Callable[[SerialLinkState], None]
DataListener = Callable[[bytes], None]


class SerialTransportManager:
    """Owns the one serial session and its ``SerialLinkState``.

    Any caller thread may discover, request permission, write or close. Reads
    happen on a dedicated thread per open port. Every open/close cycle bumps a
    generation counter, so late permission results and I/O errors that belong
    to an earlier port are ignored instead of closing the current one.
    """

    def __init__(
        self,
        prober: SerialProber | None = None,
        permissions: PermissionBroker | None = None,
        port_factory: Callable[[], Any] = SerialPort,
        discover: Callable[[], list[DeviceHandle]] = SerialPort.discover,
        settings: SerialSettings | None = None,
    ) -> None:
        self.prober = prober or SerialProber()
        self.permissions = permissions or FilesystemPermissionBroker()
        self.settings = settings or SerialSettings()
        self._port_factory = port_factory
        self._discover = discover

        self._lock = threading.RLock()
        self._write_lock = threading.Lock()
        self._state = SerialLinkState.DISCONNECTED
        self._generation = 0
        self._port: Any | None = None
        self._device: DeviceHandle | None = None
        self._pending_device: DeviceHandle | None = None
        self._reader: threading.Thread | None = None
        self._stop_reading: threading.Event | None = None
        self._hotplug: HotplugMonitor | None = None

        self._state_listeners: list[StateListener] = []
        self._data_listeners: list[DataListener] = []
        self._events: list[dict[str, Any]] = []
        self.stats = TransportStats()

    @property
    def state(self) -> SerialLinkState:
        with self._lock:
            return self._state

    def connection_state(self) -> SerialLinkState:
        return self.state

    @property
    def device(self) -> DeviceHandle | None:
        with self._lock:
            return self._device

    def is_open(self) -> bool:
        return self.state == SerialLinkState.OPEN

    def on_state_changed(self, listener: StateListener) -> None:
        self._state_listeners.append(listener)

    def on_bytes_received(self, listener: DataListener) -> None:
        self._data_listeners.append(listener)

    def recent_events(self, limit: int = 200) -> list[dict[str, Any]]:
        with self._lock:
            return self._events[-limit:]

    def _log_event(self, event: str, **fields: Any) -> None:
        row = {
            "ts_utc": datetime.now(timezone.utc).isoformat(),
            "event": event,
            "state": self._state.value,
        }
        row.update(fields)
        with self._lock:
            self._events.append(row)
            if len(self._events) > 1000:
                self._events = self._events[-1000:]

    def _emit(self, state: SerialLinkState) -> None:
        for listener in list(self._state_listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("state listener failed", extra={"event": "listener_error"})

    def _deliver(self, data: bytes) -> None:
        self.stats.bytes_received += len(data)
        for listener in list(self._data_listeners):
            try:
                listener(data)
            except Exception:
                logger.exception("data listener failed", extra={"event": "listener_error"})

    # Discovery and permission

    def discover(self) -> list[DeviceHandle]:
        try:
            devices = self._discover()
        except Exception as exc:
            logger.error("device discovery failed: %s", exc, extra={"event": "discover_error"})
            return []
        found = self.prober.find_all(devices)
        logger.debug("found %d serial adapters among %d ports", len(found), len(devices))
        return found

    def request_permission(self, device: DeviceHandle) -> Future:
        """Ask for access to ``device``; the future resolves True once the port is open."""
        result: Future = Future()
        driver = device.driver or self.prober.probe(device)

        with self._lock:
            if self._state != SerialLinkState.DISCONNECTED:
                same = self._device is not None and self._device.identity == device.identity
                result.set_result(self._state == SerialLinkState.OPEN and same)
                self._log_event("request_ignored", device=device.device)
                return result
            if driver is None:
                logger.warning("%s is not a known serial adapter", device.describe(), extra={"event": "probe_rejected"})
                result.set_result(False)
                return result
            self._generation += 1
            generation = self._generation
            self._pending_device = replace(device, driver=driver)
            self._state = SerialLinkState.PERMISSION_REQUESTED
            self._log_event("permission_requested", device=device.device, driver=driver)
        self._emit(SerialLinkState.PERMISSION_REQUESTED)

        device = replace(device, driver=driver)
        if self.permissions.has_permission(device):
            result.set_result(self._open(device, generation))
            return result

        try:
            pending = self.permissions.request(device)
        except Exception as exc:
            logger.error("permission request failed: %s", exc, extra={"event": "permission_error"})
            self._teardown(generation, "permission_error", error=str(exc))
            result.set_result(False)
            return result

        def _done(fut: Future) -> None:
            result.set_result(self._on_permission_result(device, generation, fut))

        pending.add_done_callback(_done)
        return result

    def _on_permission_result(self, device: DeviceHandle, generation: int, fut: Future) -> bool:
        try:
            granted = bool(fut.result())
        except Exception as exc:
            logger.error("permission result failed: %s", exc, extra={"event": "permission_error"})
            granted = False

        with self._lock:
            if generation != self._generation or self._state != SerialLinkState.PERMISSION_REQUESTED:
                self._log_event("permission_stale", device=device.device)
                return False

        if not granted:
            logger.warning("permission denied for %s", device.describe(), extra={"event": "permission_denied"})
            self._teardown(generation, "permission_denied", device=device.device)
            return False
        return self._open(device, generation)

    def auto_connect(self) -> Future | None:
        """One discovery pass, then request the first qualifying adapter. Never retries."""
        devices = self.discover()
        if not devices:
            logger.warning("no serial adapters found", extra={"event": "no_devices"})
            return None
        return self.request_permission(devices[0])

    def connect_port(self, path: str) -> Future:
        """Request an explicit port, skipping the chipset probe.

        USB ids are copied from the discovery row for ``path`` so hot-plug
        detaches match the open device.
        """
        device = DeviceHandle(device=path)
        try:
            listed = self._discover()
        except Exception as exc:
            logger.warning("discovery for %s failed: %s", path, exc, extra={"event": "discover_error"})
            listed = []
        for candidate in listed:
            if candidate.device == path:
                device = candidate
                break
        return self.request_permission(replace(device, driver="override"))

    # Open / read / write

    def _open(self, device: DeviceHandle, generation: int) -> bool:
        with self._lock:
            if generation != self._generation or self._state != SerialLinkState.PERMISSION_REQUESTED:
                return False
            self._state = SerialLinkState.OPENING
            self._log_event("opening", device=device.device)
        self._emit(SerialLinkState.OPENING)

        port = self._port_factory()
        try:
            port.open(device.device, self.settings)
        except Exception as exc:
            logger.error("failed to open %s: %s", device.describe(), exc, extra={"event": "open_failed"})
            self._close_port(port)
            self._teardown(generation, "open_failed", error=str(exc))
            return False

        with self._lock:
            if generation != self._generation or self._state != SerialLinkState.OPENING:
                # Closed while the port was opening.
                self._close_port(port)
                return False
            stop = threading.Event()
            reader = threading.Thread(
                target=self._read_loop,
                args=(port, generation, stop),
                name=f"hidlink-reader-{generation}",
                daemon=True,
            )
            self._port = port
            self._device = device
            self._pending_device = None
            self._stop_reading = stop
            self._reader = reader
            self._state = SerialLinkState.OPEN
            self.stats.connects += 1
            self._log_event("open", device=device.device, driver=device.driver, baud=self.settings.baud)
        reader.start()
        logger.info("serial port open: %s", device.describe(), extra={"event": "port_open"})
        self._emit(SerialLinkState.OPEN)
        return True

    def _read_loop(self, port: Any, generation: int, stop: threading.Event) -> None:
        while not stop.is_set():
            try:
                data = port.read(self.settings.read_chunk)
            except Exception as exc:
                if not stop.is_set():
                    logger.error("serial read failed: %s", exc, extra={"event": "read_error"})
                    self._teardown(generation, "read_error", error=str(exc))
                return
            if data and not stop.is_set():
                self._deliver(data)

    def send_bytes(self, frame: Any) -> bool:
        """Write one frame. Returns False at once when the link is not open."""
        data = bytes(frame)
        with self._lock:
            if self._state != SerialLinkState.OPEN or self._port is None:
                return False
            port = self._port
            generation = self._generation

        failure: Exception | None = None
        with self._write_lock:
            with self._lock:
                if generation != self._generation:
                    return False
            try:
                written = port.write(data)
            except SERIAL_ERRORS as exc:
                failure = exc
            except Exception as exc:
                logger.error("serial write rejected: %s", exc, extra={"event": "write_error"})
                self.stats.write_errors += 1
                return False

        if failure is not None:
            self.stats.write_errors += 1
            logger.error("serial write failed: %s", failure, extra={"event": "write_error"})
            self._teardown(generation, "write_error", error=str(failure))
            return False
        if written != len(data):
            self.stats.write_errors += 1
            logger.warning("short write %d/%d bytes", written, len(data), extra={"event": "short_write"})
            return False

        self.stats.bytes_sent += len(data)
        self.stats.frames_sent += 1
        return True

    # Close / detach

    def handle_detach(self, device: DeviceHandle) -> bool:
        with self._lock:
            current = self._device or self._pending_device
            if current is None or current.identity != device.identity:
                self._log_event("detach_ignored", device=device.device)
                return False
        logger.warning("open device detached: %s", device.describe(), extra={"event": "device_detached"})
        return self._teardown(None, "detached", device=device.device)

    def close(self) -> bool:
        return self._teardown(None, "closed")

    @staticmethod
    def _close_port(port: Any) -> None:
        try:
            port.close()
        except Exception as exc:
            logger.debug("error while closing port: %s", exc)

    def _teardown(self, generation: int | None, reason: str, **fields: Any) -> bool:
        with self._lock:
            if generation is not None and generation != self._generation:
                return False
            if self._state in (SerialLinkState.DISCONNECTED, SerialLinkState.CLOSING):
                return False
            was_open = self._state == SerialLinkState.OPEN
            self._state = SerialLinkState.CLOSING if was_open else SerialLinkState.DISCONNECTED
            self._generation += 1
            port, reader, stop = self._port, self._reader, self._stop_reading
            self._port = None
            self._reader = None
            self._stop_reading = None
            self._device = None
            self._pending_device = None
            self._log_event("closing", reason=reason, **fields)
        if was_open:
            self._emit(SerialLinkState.CLOSING)

        if stop is not None:
            stop.set()
        if port is not None:
            try:
                port.cancel_read()
            except Exception as exc:
                logger.debug("cancel_read failed: %s", exc)
        if reader is not None and reader is not threading.current_thread():
            reader.join(timeout=self.settings.read_timeout_ms / 1000 + 2.0)
            if reader.is_alive():
                logger.error("reader thread did not stop", extra={"event": "reader_leak"})
        if port is not None:
            with self._write_lock:
                self._close_port(port)

        with self._lock:
            self._state = SerialLinkState.DISCONNECTED
            if was_open:
                self.stats.disconnects += 1
            self._log_event("disconnected", reason=reason, **fields)
        logger.info("serial link disconnected (%s)", reason, extra={"event": "port_closed"})
        self._emit(SerialLinkState.DISCONNECTED)
        return True

    # Hot-plug

    def _on_attach(self, device: DeviceHandle) -> None:
        if self.state != SerialLinkState.DISCONNECTED or not self.prober.qualifies(device):
            return
        self.request_permission(device)

    def enable_hotplug(self, poll_s: float = 1.0) -> HotplugMonitor:
        if self._hotplug is None:
            self._hotplug = HotplugMonitor(
                discover=self._discover,
                on_attach=self._on_attach,
                on_detach=self.handle_detach,
                poll_s=poll_s,
            )
        self._hotplug.start()
        return self._hotplug

    def disable_hotplug(self) -> None:
        if self._hotplug is not None:
            self._hotplug.stop()
            self._hotplug = None

    def shutdown(self) -> None:
        self.disable_hotplug()
        self.close()
        shutdown = getattr(self.permissions, "shutdown", None)
        if shutdown is not None:
            shutdown()
