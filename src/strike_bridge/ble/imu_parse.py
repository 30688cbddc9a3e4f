"""Parser for the 14-byte IMU notification frames sent by the limb sensors.

Frame layout (little-endian):

  byte 0      limb role code (1..4)
  byte 1      battery percentage
  bytes 2-7   acc X, Y, Z (int16)
  bytes 8-13  gyro X, Y, Z (int16)

Anything past byte 13 is ignored. Frames shorter than 14 bytes are partial
reads from the radio link and are dropped without complaint.
"""

from __future__ import annotations

import struct
import time
from dataclasses import asdict, dataclass
from typing import Dict, Optional

IMU_FRAME_SIZE = 14

_FRAME = struct.Struct("<BB6h")


@dataclass(frozen=True)
class MotionSample:
    """One decoded IMU frame with raw axis counts."""

    limb_id: int
    battery_level: int
    acc_x: int
    acc_y: int
    acc_z: int
    gyro_x: int
    gyro_y: int
    gyro_z: int
    timestamp: int  # ms since epoch, stamped on receipt

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def now_ms() -> int:
    return int(time.time() * 1000)


def parse_imu_frame(payload: bytes, timestamp_ms: Optional[int] = None) -> Optional[MotionSample]:
    """Decode `payload` into a MotionSample, or None if it is too short."""
    if not payload or len(payload) < IMU_FRAME_SIZE:
        return None

    limb_id, battery, ax, ay, az, gx, gy, gz = _FRAME.unpack_from(payload, 0)

    return MotionSample(
        limb_id=limb_id,
        battery_level=battery,
        acc_x=ax,
        acc_y=ay,
        acc_z=az,
        gyro_x=gx,
        gyro_y=gy,
        gyro_z=gz,
        timestamp=now_ms() if timestamp_ms is None else timestamp_ms,
    )
