"""Exceptions raised by the bridge and its BLE sessions."""

from __future__ import annotations


class BridgeError(Exception):
    """Base class for every error surfaced to callers."""


class AdapterUnavailable(BridgeError):
    """No usable Bluetooth adapter could be acquired."""


class ScanError(BridgeError):
    """A discovery scan could not be started."""


class DeviceNotFound(BridgeError):
    """The requested peripheral did not advertise within the search window."""


class ConnectFailed(BridgeError):
    """The adapter rejected or failed the link-layer connection."""


class NoNotifyingCharacteristic(BridgeError):
    """No characteristic on the peripheral supports notifications."""


class SubscribeFailed(BridgeError):
    """The peripheral rejected the notification subscription."""


class TransportReadError(BridgeError):
    """The notification stream broke while streaming."""


class InvalidRequest(BridgeError):
    """A caller request is missing required fields."""


class StatsNotFound(BridgeError):
    """No max-stats record exists for the requested fighter."""
