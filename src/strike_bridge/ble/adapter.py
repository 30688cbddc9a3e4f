"""Shared Bluetooth adapter access for scanning and device connections."""

from __future__ import annotations

import asyncio
import logging
import threading
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Optional, Tuple

from bleak import BleakClient, BleakScanner
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData
from bleak.exc import BleakError

from ..errors import AdapterUnavailable, ConnectFailed, ScanError

logger = logging.getLogger(__name__)

Advertisement = Tuple[BLEDevice, AdvertisementData]


class RadioAdapter:
    """One host Bluetooth adapter (e.g. ``hci0``) driven through bleak."""

    def __init__(self, name: str = "hci0") -> None:
        self.name = name

    async def open(self, check_sec: float = 0.1) -> None:
        """Check the adapter is present and powered by running a short scan."""
        try:
            async with BleakScanner(adapter=self.name):
                await asyncio.sleep(check_sec)
        except (BleakError, OSError) as e:
            raise AdapterUnavailable(f"No Bluetooth adapter available ({self.name}): {e}") from e

    @asynccontextmanager
    async def advertisements(self) -> AsyncIterator[AsyncIterator[Advertisement]]:
        """Run a scan for the duration of the block, yielding advertisements."""
        scanner = BleakScanner(adapter=self.name)
        try:
            await scanner.start()
        except (BleakError, OSError) as e:
            raise ScanError(f"Error starting scan: {e}") from e

        try:
            yield scanner.advertisement_data()
        finally:
            try:
                await scanner.stop()
            except (BleakError, OSError) as e:
                logger.warning(f"Error stopping scan on {self.name}: {e}")

    async def connect_device(
        self,
        device: BLEDevice,
        disconnected_callback: Optional[Callable[[BleakClient], None]] = None,
    ) -> BleakClient:
        """Open a link to `device` and return the connected client."""
        client = BleakClient(
            device,
            adapter=self.name,
            disconnected_callback=disconnected_callback,
        )
        try:
            await client.connect()
        except (BleakError, OSError, asyncio.TimeoutError) as e:
            raise ConnectFailed(f"Error connecting to {device.address}: {e}") from e
        return client

    async def disconnect_device(self, client: BleakClient) -> None:
        """Close the link. Errors propagate so callers decide how to treat them."""
        if client.is_connected:
            await client.disconnect()


async def best_effort(description: str, awaitable: Awaitable[object]) -> Optional[Exception]:
    """Await a teardown step, logging and returning its failure instead of raising."""
    try:
        await awaitable
    except Exception as e:
        logger.warning(f"{description} failed, continuing: {e}")
        return e
    return None


AdapterFactory = Callable[[], Awaitable[RadioAdapter]]


class AdapterProvider:
    """Lazily acquires the adapter once and hands the same handle to every caller.

    Acquisition runs outside the lock; the result is published under the lock
    after a re-check, so two racing first callers still end up sharing one
    handle. A failed acquisition caches nothing.
    """

    def __init__(self, adapter_name: str = "hci0", factory: Optional[AdapterFactory] = None) -> None:
        self.adapter_name = adapter_name
        self._factory = factory or self._open_default
        self._lock = threading.Lock()
        self._adapter: Optional[RadioAdapter] = None

    async def get_adapter(self) -> RadioAdapter:
        with self._lock:
            if self._adapter is not None:
                return self._adapter

        adapter = await self._factory()

        with self._lock:
            if self._adapter is None:
                self._adapter = adapter
                logger.debug(f"Bluetooth adapter {self.adapter_name} initialised")
            return self._adapter

    @property
    def is_acquired(self) -> bool:
        with self._lock:
            return self._adapter is not None

    async def _open_default(self) -> RadioAdapter:
        adapter = RadioAdapter(self.adapter_name)
        await adapter.open()
        return adapter
