"""Tests for YAML configuration loading and validation."""

from dataclasses import replace

import pytest

from strike_bridge.config import AppConfig, DetectorConfig, DeviceConfig, load_config, validate_config
from strike_bridge.detector import DetectorParams


def write_config(tmp_path, text):
    path = tmp_path / "bridge.yaml"
    path.write_text(text, encoding="utf-8")
    return str(path)


class TestLoadConfig:

    def test_defaults_for_missing_sections(self, tmp_path):
        config = load_config(write_config(tmp_path, "ble:\n  adapter: hci1\n"))

        assert config.ble.adapter == "hci1"
        assert config.ble.find_timeout_sec == 5.0
        assert config.ble.phase_timeout_sec is None
        assert config.detector.cooldown_ms == 500
        assert config.devices == []

    def test_empty_file_uses_defaults(self, tmp_path):
        config = load_config(write_config(tmp_path, ""))
        assert config.ble.scan_timeout_sec == 2.0

    def test_full_config(self, tmp_path, monkeypatch):
        monkeypatch.setenv("BH_HAND", "AA:00:00:00:00:01")
        config = load_config(write_config(tmp_path, """
detector:
  slap_min_acc: 1.2
  cooldown_ms: 300
logging:
  dir: ./out
  verbose_whitelist:
    combat_event: true
devices:
  - device_id: "${BH_HAND}"
    competitor_id: 1
    competitor_name: Rojo
    competitor_weight: 72.5
  - device_id: "AA:00:00:00:00:02"
"""))

        assert config.detector.slap_min_acc == 1.2
        assert config.detector.to_params().cooldown_ms == 300
        assert config.detector.to_params().kick_max_gyro == 10.0
        assert config.logging.verbose_whitelist == ["combat_event"]
        assert config.devices[0].device_id == "AA:00:00:00:00:01"
        assert config.devices[0].has_competitor
        assert not config.devices[1].has_competitor

    def test_detector_defaults_match_params(self, tmp_path):
        config = load_config(write_config(tmp_path, "detector:\n  kick_min_acc_z: -0.5\n"))

        params = config.detector.to_params()

        assert type(params) is DetectorParams
        assert params == replace(DetectorParams(), kick_min_acc_z=-0.5)
        assert DetectorConfig().to_params() == DetectorParams()

    def test_unset_env_var_left_as_is(self, tmp_path, monkeypatch):
        monkeypatch.delenv("BH_MISSING", raising=False)
        config = load_config(write_config(tmp_path, "ble:\n  adapter: ${BH_MISSING}\n"))
        assert config.ble.adapter == "${BH_MISSING}"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "nope.yaml"))

    def test_non_mapping_rejected(self, tmp_path):
        with pytest.raises(ValueError):
            load_config(write_config(tmp_path, "- just\n- a list\n"))


class TestValidateConfig:

    def test_default_config_valid(self, tmp_path):
        config = AppConfig()
        config.logging.dir = str(tmp_path / "logs")
        assert validate_config(config) == []

    def test_collects_errors(self, tmp_path):
        config = AppConfig(devices=[
            DeviceConfig("AA:01", competitor_weight=-3.0),
            DeviceConfig("AA:01"),
            DeviceConfig(""),
        ])
        config.logging.dir = str(tmp_path / "logs")
        config.ble.scan_timeout_sec = 0
        config.ble.phase_timeout_sec = -1.0
        config.detector.cooldown_ms = -5

        errors = validate_config(config)

        assert "ble.scan_timeout_sec must be positive" in errors
        assert "ble.phase_timeout_sec must be positive when set" in errors
        assert "Detector cooldown_ms must not be negative" in errors
        assert "Device 0: competitor_weight must be positive" in errors
        assert "Device 1: duplicate device_id AA:01" in errors
        assert "Device 2: device_id is required" in errors
