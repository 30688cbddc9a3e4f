"""Shared data types for sensors, competitors, combat events and max stats."""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from enum import IntEnum
from typing import Any, Dict, Optional


class LimbRole(IntEnum):
    """Limb a sensor is strapped to. Values match the frame role code."""

    RIGHT_HAND = 1
    LEFT_HAND = 2
    RIGHT_FOOT = 3
    LEFT_FOOT = 4

    @classmethod
    def from_code(cls, code: int) -> Optional[LimbRole]:
        """Map a frame role code to a limb, None for unknown codes."""
        try:
            return cls(code)
        except ValueError:
            return None

    @classmethod
    def from_device_name(cls, name: str) -> Optional[LimbRole]:
        """Infer the limb from an advertised device name."""
        for role in (cls.LEFT_HAND, cls.RIGHT_HAND, cls.LEFT_FOOT, cls.RIGHT_FOOT):
            if role.name_pattern in name:
                return role
        return None

    @property
    def is_hand(self) -> bool:
        return self in (LimbRole.LEFT_HAND, LimbRole.RIGHT_HAND)

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def name_pattern(self) -> str:
        return _NAME_PATTERNS[self]

    @property
    def type_name(self) -> str:
        """CamelCase role name used in device listings (e.g. 'LeftHand')."""
        return "".join(part.capitalize() for part in self.name.split("_"))


_DISPLAY_NAMES = {
    LimbRole.LEFT_HAND: "Mano Izquierda",
    LimbRole.RIGHT_HAND: "Mano Derecha",
    LimbRole.LEFT_FOOT: "Pie Izquierdo",
    LimbRole.RIGHT_FOOT: "Pie Derecho",
}

_NAME_PATTERNS = {
    LimbRole.LEFT_HAND: "ManoIzquierda",
    LimbRole.RIGHT_HAND: "ManoDerecha",
    LimbRole.LEFT_FOOT: "PieIzquierdo",
    LimbRole.RIGHT_FOOT: "PieDerecho",
}


@dataclass(frozen=True)
class DeviceDescriptor:
    """A sensor seen during a scan."""

    id: str
    name: str
    address: str
    limb_type: Optional[str] = None
    limb_name: Optional[str] = None
    rssi: Optional[int] = None
    is_connectable: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Competitor:
    """The person wearing a sensor. Weight is in kilograms."""

    id: int
    name: str
    weight: float

    @property
    def fighter_id(self) -> str:
        return f"fighter_{self.id}"


@dataclass(frozen=True)
class CombatEvent:
    """A detected strike with its biomechanical estimates."""

    event_type: str  # "slap" or "kickdown"
    limb_name: str
    fighter_id: str
    competitor_name: str
    velocity: Optional[float]  # m/s
    acceleration: Optional[float]  # m/s^2
    force: Optional[float]  # N
    timestamp: int  # ms since epoch
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class MaxStatsRecord:
    """Best-ever values for one fighter."""

    fighter_id: str
    competitor_name: str
    max_force: float = 0.0
    max_velocity: float = 0.0
    max_acceleration: float = 0.0

    def copy(self) -> MaxStatsRecord:
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
