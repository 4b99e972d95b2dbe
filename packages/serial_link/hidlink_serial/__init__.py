"""USB-serial link management for the HID-emulation controller."""

from .hotplug import HotplugMonitor
from .manager import SerialTransportManager
from .models import DeviceHandle, SerialLinkState, SerialSettings, TransportStats
from .permission import FilesystemPermissionBroker, ManualPermissionBroker, PermissionBroker, permission_hint
from .prober import DEFAULT_PROBE_TABLE, SerialProber
from .transport import SerialPort

__all__ = [
    "DEFAULT_PROBE_TABLE",
    "DeviceHandle",
    "FilesystemPermissionBroker",
    "HotplugMonitor",
    "ManualPermissionBroker",
    "PermissionBroker",
    "SerialLinkState",
    "SerialPort",
    "SerialProber",
    "SerialSettings",
    "SerialTransportManager",
    "TransportStats",
    "permission_hint",
]
