"""Per-fighter best-ever force, velocity and acceleration."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

from .errors import StatsNotFound
from .models import CombatEvent, MaxStatsRecord

_METRICS = (
    ("force", "max_force"),
    ("velocity", "max_velocity"),
    ("acceleration", "max_acceleration"),
)


@dataclass
class RecordUpdate:
    """Snapshot of a fighter's stats after one or more metrics improved."""

    stats: MaxStatsRecord
    new_records: List[str]


class MaxStatsTracker:
    """Thread-safe table of max stats keyed by fighter id."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._stats: Dict[str, MaxStatsRecord] = {}

    def record(self, event: CombatEvent) -> Optional[RecordUpdate]:
        """Fold an event into the table, returning an update if a max was beaten."""
        with self._lock:
            stats = self._stats.get(event.fighter_id)
            if stats is None:
                stats = MaxStatsRecord(
                    fighter_id=event.fighter_id,
                    competitor_name=event.competitor_name,
                )
                self._stats[event.fighter_id] = stats

            new_records = []
            for metric, field_name in _METRICS:
                value = getattr(event, metric)
                if value is not None and value > getattr(stats, field_name):
                    setattr(stats, field_name, value)
                    new_records.append(metric)

            if not new_records:
                return None
            return RecordUpdate(stats=stats.copy(), new_records=new_records)

    def query(self, fighter_id: Optional[str] = None) -> Union[MaxStatsRecord, List[MaxStatsRecord]]:
        """Snapshot one fighter's record, or every record when no id is given."""
        with self._lock:
            if fighter_id is None:
                return [stats.copy() for stats in self._stats.values()]
            stats = self._stats.get(fighter_id)
            if stats is None:
                raise StatsNotFound(f"No max stats found for fighter {fighter_id}")
            return stats.copy()

    def reset(self) -> None:
        """Drop every record."""
        with self._lock:
            self._stats.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._stats)
