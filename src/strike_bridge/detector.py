"""Strike detection for limb IMU samples with cooldown and force estimation."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .ble.imu_parse import MotionSample
from .models import CombatEvent, Competitor, LimbRole

GRAVITY = 9.81

SLAP = "slap"
KICKDOWN = "kickdown"


@dataclass
class DetectorParams:
    """Parameters for strike classification and force estimation."""

    # raw counts per g and per deg/s
    acc_scale: float = 1000.0
    gyro_scale: float = 250.0

    slap_min_acc: float = 0.8
    slap_min_gyro: float = 3.0
    kick_min_acc: float = 1.0
    kick_max_gyro: float = 10.0
    kick_min_acc_z: float = -0.3

    hand_base_velocity: float = 10.0
    foot_base_velocity: float = 15.0

    # segment mass as a fraction of body weight (Dempster)
    hand_mass_percentage: float = 0.027
    foot_mass_percentage: float = 0.062
    joint_stiffness_factor: float = 1.8

    cooldown_ms: int = 500


def classify_sample(
    params: DetectorParams,
    competitor: Competitor,
    sample: MotionSample,
) -> Optional[CombatEvent]:
    """
    Classify a single sample into a combat event.

    Runs once per notification on every connected sensor, so it must stay
    free of logging and I/O. Cooldown is not applied here; see StrikeDetector.

    Args:
        params: Detection thresholds and constants
        competitor: Person wearing the sensor
        sample: Decoded IMU frame

    Returns:
        CombatEvent if the sample qualifies as a strike, None otherwise
    """
    role = LimbRole.from_code(sample.limb_id)
    if role is None:
        return None

    acc_x = sample.acc_x / params.acc_scale
    acc_y = sample.acc_y / params.acc_scale
    acc_z = sample.acc_z / params.acc_scale
    gyro_x = sample.gyro_x / params.gyro_scale
    gyro_y = sample.gyro_y / params.gyro_scale
    gyro_z = sample.gyro_z / params.gyro_scale

    acc_magnitude = math.sqrt(acc_x * acc_x + acc_y * acc_y + acc_z * acc_z)
    gyro_magnitude = math.sqrt(gyro_x * gyro_x + gyro_y * gyro_y + gyro_z * gyro_z)

    if role.is_hand:
        if acc_magnitude < params.slap_min_acc or gyro_magnitude < params.slap_min_gyro:
            return None
        event_type = SLAP
        confidence = (
            (acc_magnitude - params.slap_min_acc) / 2.0
            + (gyro_magnitude - params.slap_min_gyro) / 50.0
        )
        base_velocity = params.hand_base_velocity
        mass_percentage = params.hand_mass_percentage
    else:
        # High linear acceleration pointing down with little rotation
        if (
            acc_magnitude < params.kick_min_acc
            or acc_z >= params.kick_min_acc_z
            or gyro_magnitude > params.kick_max_gyro
        ):
            return None
        event_type = KICKDOWN
        confidence = (
            (acc_magnitude - params.kick_min_acc) / 3.0
            + (params.kick_min_acc_z - acc_z) / 1.0
        )
        base_velocity = params.foot_base_velocity
        mass_percentage = params.foot_mass_percentage

    intensity = min(max(acc_magnitude / 2.0, 1.0), 2.0)
    velocity = base_velocity * intensity
    acceleration = acc_magnitude * GRAVITY
    limb_mass = competitor.weight * mass_percentage
    force = limb_mass * acceleration * params.joint_stiffness_factor

    return CombatEvent(
        event_type=event_type,
        limb_name=role.display_name,
        fighter_id=competitor.fighter_id,
        competitor_name=competitor.name,
        velocity=velocity,
        acceleration=acceleration,
        force=force,
        timestamp=sample.timestamp,
        confidence=min(confidence, 1.0),
    )


class StrikeDetector:
    """Per-device detector: competitor binding plus the cooldown gate."""

    def __init__(self, params: DetectorParams, competitor: Optional[Competitor] = None) -> None:
        self.params = params
        self._competitor = competitor
        self._last_event_ms = 0
        self._event_count = 0

    def set_competitor(self, competitor: Competitor) -> None:
        """Bind the person wearing this sensor."""
        self._competitor = competitor

    @property
    def competitor(self) -> Optional[Competitor]:
        return self._competitor

    @property
    def last_event_ms(self) -> int:
        return self._last_event_ms

    @property
    def event_count(self) -> int:
        return self._event_count

    def process_sample(self, sample: MotionSample) -> Optional[CombatEvent]:
        """Return a CombatEvent for an accepted sample, None otherwise."""
        if LimbRole.from_code(sample.limb_id) is None:
            return None

        # Samples are dropped until someone is bound to the sensor
        competitor = self._competitor
        if competitor is None:
            return None

        # One strike spans many samples at the sensor rate
        if sample.timestamp - self._last_event_ms < self.params.cooldown_ms:
            return None

        event = classify_sample(self.params, competitor, sample)
        if event is None:
            return None

        self._last_event_ms = sample.timestamp
        self._event_count += 1
        return event

    def get_status(self) -> Dict[str, Any]:
        return {
            "fighter_id": self._competitor.fighter_id if self._competitor else None,
            "last_event_ms": self._last_event_ms,
            "event_count": self._event_count,
        }
