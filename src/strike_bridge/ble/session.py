"""Connection lifecycle and notification pump for one limb sensor."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional, Type, TypeVar, Union

from bleak import BleakClient
from bleak.backends.characteristic import BleakGATTCharacteristic
from bleak.exc import BleakError

from ..detector import StrikeDetector
from ..errors import (
    BridgeError,
    ConnectFailed,
    NoNotifyingCharacteristic,
    SubscribeFailed,
    TransportReadError,
)
from ..models import CombatEvent
from .adapter import RadioAdapter, best_effort
from .imu_parse import parse_imu_frame
from .scanner import find_device

logger = logging.getLogger(__name__)

T = TypeVar("T")

EventCallback = Callable[[str, CombatEvent], None]
StateCallback = Callable[[str, "SessionState"], None]


class SessionState(Enum):
    DISCOVERING = "discovering"
    CONNECTING = "connecting"
    DISCOVERING_SERVICES = "discovering_services"
    SUBSCRIBING = "subscribing"
    STREAMING = "streaming"
    TERMINATED = "terminated"


class DeviceSession:
    """Discover, connect, subscribe and stream one sensor.

    Notifications are queued by the bleak callback and drained in arrival
    order by ``stream()``, so a device never has two frames in flight. A
    link loss is queued as a TransportReadError and ends the stream; there
    is no automatic reconnect.
    """

    def __init__(
        self,
        device_id: str,
        adapter: RadioAdapter,
        detector: StrikeDetector,
        on_event: EventCallback,
        find_timeout_sec: float = 5.0,
        settle_sec: float = 1.0,
        phase_timeout_sec: Optional[float] = None,
        on_state_change: Optional[StateCallback] = None,
    ) -> None:
        self.device_id = device_id
        self.adapter = adapter
        self.detector = detector
        self.find_timeout_sec = find_timeout_sec
        self.settle_sec = settle_sec
        self.phase_timeout_sec = phase_timeout_sec

        self.state = SessionState.DISCOVERING
        self.device_name: Optional[str] = None
        self.client: Optional[BleakClient] = None
        self.characteristic: Optional[BleakGATTCharacteristic] = None

        self._on_event = on_event
        self._on_state_change = on_state_change
        self._queue: asyncio.Queue[Union[bytes, BridgeError]] = asyncio.Queue()
        self._notification_count = 0

    @property
    def notification_count(self) -> int:
        return self._notification_count

    async def establish(self) -> str:
        """Run discovery through subscription and return the device name.

        Raises DeviceNotFound, ConnectFailed, NoNotifyingCharacteristic or
        SubscribeFailed. On failure after connecting, the link is closed.
        """
        self._set_state(SessionState.DISCOVERING)
        try:
            device, self.device_name = await find_device(
                self.adapter, self.device_id, self.find_timeout_sec
            )
        except BridgeError:
            self._set_state(SessionState.TERMINATED)
            raise

        self._set_state(SessionState.CONNECTING)
        try:
            self.client = await self._phase(
                self.adapter.connect_device(device, self._on_device_disconnect),
                ConnectFailed,
                "connect",
            )
        except BridgeError:
            self._set_state(SessionState.TERMINATED)
            raise
        logger.info(f"BLE link established with {self.device_id}")

        try:
            # GATT needs a moment after link-up before discovery is reliable
            await asyncio.sleep(self.settle_sec)

            self._set_state(SessionState.DISCOVERING_SERVICES)
            self.characteristic = self._find_notify_characteristic()

            self._set_state(SessionState.SUBSCRIBING)
            await self._phase(self._subscribe(), SubscribeFailed, "subscribe")
        except BaseException:
            self._set_state(SessionState.TERMINATED)
            await best_effort(
                f"Disconnect of {self.device_id} after failed setup",
                self.adapter.disconnect_device(self.client),
            )
            raise

        logger.info(f"Notifications enabled for {self.device_name} ({self.device_id})")
        return self.device_name

    async def stream(self) -> None:
        """Pump notifications into the detector until the link breaks."""
        self._set_state(SessionState.STREAMING)
        try:
            while True:
                item = await self._queue.get()
                if isinstance(item, BridgeError):
                    logger.error(f"Notification error on {self.device_id}: {item}")
                    raise item

                sample = parse_imu_frame(item)
                if sample is None:
                    continue

                event = self.detector.process_sample(sample)
                if event is not None:
                    self._on_event(self.device_id, event)
        finally:
            self._set_state(SessionState.TERMINATED)

    async def run(self) -> None:
        await self.stream()

    def _set_state(self, state: SessionState) -> None:
        self.state = state
        if self._on_state_change is not None:
            self._on_state_change(self.device_id, state)

    def _find_notify_characteristic(self) -> BleakGATTCharacteristic:
        for service in self.client.services:
            for characteristic in service.characteristics:
                if "notify" in characteristic.properties:
                    logger.info(f"Notify characteristic {characteristic.uuid} on {self.device_id}")
                    return characteristic
        logger.error(f"No notify characteristic on {self.device_id}")
        raise NoNotifyingCharacteristic(
            f"No characteristic with notifications found on {self.device_id}"
        )

    async def _subscribe(self) -> None:
        try:
            await self.client.start_notify(self.characteristic, self._handle_notification)
        except (BleakError, OSError) as e:
            raise SubscribeFailed(
                f"Error subscribing to notifications on {self.device_id}: {e}"
            ) from e

    async def _phase(
        self,
        awaitable: Awaitable[T],
        error_type: Type[BridgeError],
        phase: str,
    ) -> T:
        if self.phase_timeout_sec is None:
            return await awaitable
        try:
            return await asyncio.wait_for(awaitable, self.phase_timeout_sec)
        except asyncio.TimeoutError as e:
            raise error_type(
                f"{phase} timed out after {self.phase_timeout_sec}s on {self.device_id}"
            ) from e

    def _handle_notification(self, sender: BleakGATTCharacteristic, data: bytearray) -> None:
        self._notification_count += 1
        self._queue.put_nowait(bytes(data))

    def _on_device_disconnect(self, client: BleakClient) -> None:
        logger.warning(f"BLE device {self.device_id} disconnected")
        self._queue.put_nowait(TransportReadError(f"Link to {self.device_id} lost"))
