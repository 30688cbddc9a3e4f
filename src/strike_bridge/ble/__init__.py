"""BLE package for limb sensor discovery and sessions."""

from .adapter import AdapterProvider, RadioAdapter
from .session import DeviceSession

__all__ = ["AdapterProvider", "RadioAdapter", "DeviceSession"]
