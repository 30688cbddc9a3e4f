"""Strike Bridge - BLE limb sensor strike detection system."""

__version__ = "0.1.0"

from .bridge import Bridge
from .config import AppConfig, load_config
from .logs import NdjsonLogger

__all__ = ["Bridge", "load_config", "AppConfig", "NdjsonLogger"]
