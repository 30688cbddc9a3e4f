"""Configuration management for the Strike Bridge."""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, List, Optional

import yaml

from .detector import DetectorParams


@dataclass
class DetectorConfig(DetectorParams):
    """Thresholds and constants for strike detection.

    Defaults come from DetectorParams; the YAML section only overrides keys.
    """

    def to_params(self) -> DetectorParams:
        return DetectorParams(**asdict(self))


@dataclass
class BleConfig:
    """Configuration for the Bluetooth adapter and sensor sessions."""

    adapter: str = "hci0"
    name_prefix: str = "BH-"
    scan_timeout_sec: float = 2.0
    find_timeout_sec: float = 5.0
    settle_sec: float = 1.0
    phase_timeout_sec: Optional[float] = None  # None: rely on the transport's own failures
    status_interval_sec: float = 30.0


@dataclass
class LoggingConfig:
    """Configuration for the NDJSON session log."""

    dir: str = "./logs"
    file_prefix: str = "strikes"
    mode: str = "regular"  # regular or verbose
    verbose_whitelist: List[str] = None

    def __post_init__(self) -> None:
        if self.verbose_whitelist is None:
            self.verbose_whitelist = []


@dataclass
class DeviceConfig:
    """A sensor to connect at startup, optionally bound to a competitor."""

    device_id: str
    competitor_id: Optional[int] = None
    competitor_name: Optional[str] = None
    competitor_weight: Optional[float] = None

    @property
    def has_competitor(self) -> bool:
        return (
            self.competitor_id is not None
            and bool(self.competitor_name)
            and self.competitor_weight is not None
        )


@dataclass
class AppConfig:
    """Main application configuration."""

    ble: BleConfig = None
    detector: DetectorConfig = None
    logging: LoggingConfig = None
    devices: List[DeviceConfig] = None

    def __post_init__(self) -> None:
        if self.ble is None:
            self.ble = BleConfig()
        if self.detector is None:
            self.detector = DetectorConfig()
        if self.logging is None:
            self.logging = LoggingConfig()
        if self.devices is None:
            self.devices = []


def load_config(config_path: str) -> AppConfig:
    """Load configuration from YAML file with environment variable support."""
    config_file = Path(config_path)

    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with config_file.open("r", encoding="utf-8") as f:
        raw_config = yaml.safe_load(f)

    if raw_config is None:
        raw_config = {}
    if not isinstance(raw_config, dict):
        raise ValueError(f"Invalid configuration file: {config_path}")

    _substitute_env_vars(raw_config)

    config = AppConfig()

    if raw_config.get("ble"):
        config.ble = BleConfig(**raw_config["ble"])

    if raw_config.get("detector"):
        config.detector = DetectorConfig(**raw_config["detector"])

    if raw_config.get("logging"):
        logging_data = raw_config["logging"]
        if isinstance(logging_data.get("verbose_whitelist"), dict):
            logging_data["verbose_whitelist"] = list(logging_data["verbose_whitelist"].keys())
        config.logging = LoggingConfig(**logging_data)

    if raw_config.get("devices"):
        config.devices = [DeviceConfig(**device_data) for device_data in raw_config["devices"]]

    return config


def _substitute_env_vars(data: Any) -> None:
    """Recursively substitute ${VAR} strings with environment values."""
    if isinstance(data, dict):
        for key, value in data.items():
            if _is_env_ref(value):
                data[key] = os.getenv(value[2:-1], value)
            else:
                _substitute_env_vars(value)
    elif isinstance(data, list):
        for i, item in enumerate(data):
            if _is_env_ref(item):
                data[i] = os.getenv(item[2:-1], item)
            else:
                _substitute_env_vars(item)


def _is_env_ref(value: Any) -> bool:
    return isinstance(value, str) and value.startswith("${") and value.endswith("}")


def validate_config(config: AppConfig) -> List[str]:
    """Validate configuration and return list of validation errors."""
    errors = []

    if not config.ble.adapter:
        errors.append("ble.adapter is required")
    if config.ble.scan_timeout_sec <= 0:
        errors.append("ble.scan_timeout_sec must be positive")
    if config.ble.find_timeout_sec <= 0:
        errors.append("ble.find_timeout_sec must be positive")
    if config.ble.settle_sec < 0:
        errors.append("ble.settle_sec must not be negative")
    if config.ble.phase_timeout_sec is not None and config.ble.phase_timeout_sec <= 0:
        errors.append("ble.phase_timeout_sec must be positive when set")

    detector = config.detector
    if detector.acc_scale <= 0 or detector.gyro_scale <= 0:
        errors.append("Detector scales must be positive")
    if detector.cooldown_ms < 0:
        errors.append("Detector cooldown_ms must not be negative")
    if detector.kick_max_gyro <= 0:
        errors.append("Detector kick_max_gyro must be positive")

    seen = set()
    for i, device in enumerate(config.devices):
        if not device.device_id:
            errors.append(f"Device {i}: device_id is required")
        elif device.device_id in seen:
            errors.append(f"Device {i}: duplicate device_id {device.device_id}")
        seen.add(device.device_id)
        if device.competitor_weight is not None and device.competitor_weight <= 0:
            errors.append(f"Device {i}: competitor_weight must be positive")

    path = Path(config.logging.dir)
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        errors.append(f"Cannot create directory logging.dir: {config.logging.dir} - {e}")

    return errors
