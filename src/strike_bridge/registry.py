"""Registry of connected devices: labels, session tasks and live clients."""

from __future__ import annotations

import asyncio
import threading
from typing import Any, Dict, List, Optional

from bleak import BleakClient


class DeviceRegistry:
    """Three maps keyed by device id, each guarded by its own lock.

    Locks are held for a single map operation only and never across an
    await. The session task is attached after it has been spawned, so a
    task may briefly run before it can be cancelled through the registry.
    """

    def __init__(self) -> None:
        self._labels: Dict[str, str] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._clients: Dict[str, BleakClient] = {}
        self._labels_lock = threading.Lock()
        self._tasks_lock = threading.Lock()
        self._clients_lock = threading.Lock()

    def register(self, device_id: str, label: str, client: BleakClient) -> None:
        """Record a connected device before its session task starts."""
        with self._labels_lock:
            self._labels[device_id] = label
        with self._clients_lock:
            self._clients[device_id] = client

    def attach_task(self, device_id: str, task: asyncio.Task) -> None:
        with self._tasks_lock:
            self._tasks[device_id] = task

    def get_label(self, device_id: str) -> Optional[str]:
        with self._labels_lock:
            return self._labels.get(device_id)

    def get_task(self, device_id: str) -> Optional[asyncio.Task]:
        with self._tasks_lock:
            return self._tasks.get(device_id)

    def get_client(self, device_id: str) -> Optional[BleakClient]:
        with self._clients_lock:
            return self._clients.get(device_id)

    def pop_client(self, device_id: str) -> Optional[BleakClient]:
        with self._clients_lock:
            return self._clients.pop(device_id, None)

    def pop_task(self, device_id: str) -> Optional[asyncio.Task]:
        with self._tasks_lock:
            return self._tasks.pop(device_id, None)

    def pop_label(self, device_id: str) -> Optional[str]:
        with self._labels_lock:
            return self._labels.pop(device_id, None)

    def remove(self, device_id: str) -> None:
        """Forget a device in every map."""
        self.pop_client(device_id)
        self.pop_task(device_id)
        self.pop_label(device_id)

    def connected_ids(self) -> List[str]:
        with self._labels_lock:
            return list(self._labels)

    def labels(self) -> Dict[str, str]:
        with self._labels_lock:
            return dict(self._labels)

    def get_status(self) -> Dict[str, Any]:
        with self._tasks_lock:
            running = sum(1 for task in self._tasks.values() if not task.done())
        return {"connected": len(self), "running_sessions": running}

    def __contains__(self, device_id: object) -> bool:
        with self._labels_lock:
            return device_id in self._labels

    def __len__(self) -> int:
        with self._labels_lock:
            return len(self._labels)


def device_label(device_name: str, competitor_name: Optional[str] = None) -> str:
    """Human-readable connection label."""
    if competitor_name:
        return f"{device_name} ({competitor_name})"
    return device_name
