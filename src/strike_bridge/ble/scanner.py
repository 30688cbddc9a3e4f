"""Time-bounded discovery of limb sensors."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional, Set, Tuple

from bleak.backends.device import BLEDevice
from bleak.exc import BleakError

from ..errors import DeviceNotFound
from ..models import DeviceDescriptor, LimbRole
from .adapter import Advertisement, RadioAdapter

logger = logging.getLogger(__name__)

PRODUCT_PREFIX = "BH-"
UNKNOWN_DEVICE_NAME = "Dispositivo Desconocido"


class _ScanStreamEnded(Exception):
    """The adapter stopped delivering advertisements before the deadline."""


async def _next_advertisement(
    stream: AsyncIterator[Advertisement],
    deadline: float,
) -> Optional[Advertisement]:
    """Wait for the next advertisement, None once the deadline passes."""
    remaining = deadline - asyncio.get_running_loop().time()
    if remaining <= 0:
        return None
    try:
        return await asyncio.wait_for(stream.__anext__(), remaining)
    except asyncio.TimeoutError:
        return None
    except StopAsyncIteration as e:
        raise _ScanStreamEnded("no more advertisements") from e
    except (BleakError, OSError) as e:
        raise _ScanStreamEnded(str(e)) from e


@asynccontextmanager
async def _advertisement_stream(adapter: RadioAdapter) -> AsyncIterator[AsyncIterator[Advertisement]]:
    """Scan for the block and close the advertisement generator on exit."""
    async with adapter.advertisements() as stream:
        try:
            yield stream
        finally:
            try:
                await stream.aclose()
            except (BleakError, OSError) as e:
                logger.warning(f"Error closing advertisement stream: {e}")


def _advertised_name(advertisement: Advertisement) -> Optional[str]:
    device, adv = advertisement
    return adv.local_name or device.name


def _describe(advertisement: Advertisement, name: str) -> DeviceDescriptor:
    device, adv = advertisement
    role = LimbRole.from_device_name(name)
    return DeviceDescriptor(
        id=device.address,
        name=name,
        address=device.address,
        limb_type=role.type_name if role else None,
        limb_name=role.display_name if role else None,
        rssi=adv.rssi,
        is_connectable=True,
    )


async def scan_devices(
    adapter: RadioAdapter,
    timeout: float = 2.0,
    name_prefix: str = PRODUCT_PREFIX,
) -> List[DeviceDescriptor]:
    """Collect product sensors advertising within `timeout` seconds.

    An empty list is a valid result. If the adapter's advertisement stream
    breaks early, whatever was gathered so far is returned.
    """
    logger.info("Starting BLE scan")
    devices: List[DeviceDescriptor] = []
    seen: Set[str] = set()
    deadline = asyncio.get_running_loop().time() + timeout

    async with _advertisement_stream(adapter) as stream:
        while True:
            try:
                advertisement = await _next_advertisement(stream, deadline)
            except _ScanStreamEnded as e:
                logger.error(f"BLE scan stream ended unexpectedly: {e}")
                break
            if advertisement is None:
                logger.info(f"BLE scan finished by timeout, {len(devices)} devices found")
                break

            name = _advertised_name(advertisement)
            if not name or name_prefix not in name:
                continue

            device_id = advertisement[0].address
            if device_id in seen:
                continue
            seen.add(device_id)

            descriptor = _describe(advertisement, name)
            devices.append(descriptor)
            logger.info(f"Found sensor {name} ({device_id}), {len(devices)} so far")

    return devices


async def find_device(
    adapter: RadioAdapter,
    device_id: str,
    timeout: float = 5.0,
) -> Tuple[BLEDevice, str]:
    """Scan until `device_id` advertises and return its handle and name."""
    logger.debug(f"Searching for BLE device {device_id}")
    deadline = asyncio.get_running_loop().time() + timeout

    async with _advertisement_stream(adapter) as stream:
        while True:
            try:
                advertisement = await _next_advertisement(stream, deadline)
            except _ScanStreamEnded as e:
                logger.error(f"BLE scan stream ended while searching for {device_id}: {e}")
                raise DeviceNotFound(f"Device {device_id} not found (scan stream ended)") from e
            if advertisement is None:
                logger.warning(f"Timed out searching for BLE device {device_id}")
                raise DeviceNotFound(f"Device {device_id} not found (timeout)")

            device = advertisement[0]
            if device.address == device_id:
                name = _advertised_name(advertisement) or UNKNOWN_DEVICE_NAME
                logger.info(f"Found BLE device {name} ({device_id})")
                return device, name
