"""Main bridge module that coordinates sensor sessions, detection and max stats."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from . import __version__
from .ble.adapter import AdapterProvider, best_effort
from .ble.imu_parse import now_ms
from .ble.scanner import scan_devices
from .ble.session import DeviceSession, SessionState
from .config import AppConfig
from .detector import KICKDOWN, SLAP, StrikeDetector
from .errors import BridgeError, InvalidRequest
from .logs import NdjsonLogger
from .models import CombatEvent, Competitor, DeviceDescriptor, LimbRole, MaxStatsRecord
from .registry import DeviceRegistry, device_label
from .sink import (
    COMBAT_EVENT,
    NEW_MAX_RECORD,
    EventSink,
    NdjsonEventSink,
    safe_broadcast,
    safe_emit,
    safe_log,
)
from .stats import MaxStatsTracker, RecordUpdate

logger = logging.getLogger(__name__)

_BATCH_FIELDS = ("deviceId", "competitorId", "competitorName", "competitorWeight")


class Bridge:
    """Owns the adapter, device registry and max-stats table for one process.

    Every caller-facing operation goes through this object; there is no
    module-level state.
    """

    def __init__(
        self,
        config: AppConfig,
        sink: Optional[EventSink] = None,
        adapter_provider: Optional[AdapterProvider] = None,
    ) -> None:
        self.config = config

        self.logger = NdjsonLogger(config.logging.dir, config.logging.file_prefix)
        self.logger.mode = config.logging.mode
        if config.logging.verbose_whitelist:
            self.logger.verbose_whitelist.update(config.logging.verbose_whitelist)

        self.sink: EventSink = sink if sink is not None else NdjsonEventSink(self.logger)
        self.adapters = adapter_provider or AdapterProvider(config.ble.adapter)
        self.registry = DeviceRegistry()
        self.max_stats = MaxStatsTracker()
        self.detector_params = config.detector.to_params()

        self._status_task: Optional[asyncio.Task] = None
        # touched only from the event loop
        self._detectors: Dict[str, StrikeDetector] = {}

    # ------------------------------------------------------------------
    # Lifecycle

    async def start(self) -> None:
        """Connect every configured device and start status reporting."""
        self.logger.status("Bridge starting", {
            "adapter": self.config.ble.adapter,
            "device_count": len(self.config.devices),
            "cooldown_ms": self.detector_params.cooldown_ms,
        })

        for device in self.config.devices:
            try:
                if device.has_competitor:
                    await self.connect_for_competitor(
                        device.device_id,
                        device.competitor_id,
                        device.competitor_name,
                        device.competitor_weight,
                    )
                else:
                    await self.connect(device.device_id)
            except BridgeError as e:
                self.logger.error("Device connect failed", {
                    "device_id": device.device_id,
                    "error": str(e),
                    "type": type(e).__name__,
                })
                logger.error(f"Could not connect {device.device_id}: {e}")

        self._status_task = asyncio.create_task(self._status_loop())
        self.logger.status("Bridge started", {"connected": self.list_connected()})

    async def stop(self) -> None:
        """Disconnect everything and close the session log."""
        self.logger.status("Bridge stopping")

        if self._status_task:
            self._status_task.cancel()
            await asyncio.gather(self._status_task, return_exceptions=True)
            self._status_task = None

        await self.disconnect_all()

        self.logger.status("Bridge stopped")
        self.logger.close()

    async def _status_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.ble.status_interval_sec)
            self.logger.status("Bridge status", self.get_status())

    def get_status(self) -> Dict[str, Any]:
        return {
            "registry": self.registry.get_status(),
            "devices": self.registry.labels(),
            "detectors": {
                device_id: detector.get_status()
                for device_id, detector in self._detectors.items()
            },
            "fighters_with_stats": len(self.max_stats),
        }

    # ------------------------------------------------------------------
    # Discovery and connections

    async def scan_devices(self) -> List[DeviceDescriptor]:
        adapter = await self.adapters.get_adapter()
        devices = await scan_devices(
            adapter,
            timeout=self.config.ble.scan_timeout_sec,
            name_prefix=self.config.ble.name_prefix,
        )
        self.logger.status("Scan complete", {"devices": [d.to_dict() for d in devices]})
        return devices

    async def connect(self, device_id: str) -> None:
        """Connect without a competitor: frames are decoded but never classified."""
        await self._connect(device_id, None)

    async def connect_for_competitor(
        self,
        device_id: str,
        competitor_id: int,
        competitor_name: str,
        competitor_weight: float,
    ) -> None:
        competitor = Competitor(
            id=int(competitor_id),
            name=competitor_name,
            weight=float(competitor_weight),
        )
        await self._connect(device_id, competitor)

    async def connect_multiple(self, items: Sequence[Mapping[str, Any]]) -> List[str]:
        """Connect each item independently and report one result line per item."""
        logger.info(f"Connecting {len(items)} devices")
        results = []

        for item in items:
            try:
                device_id, competitor_id, competitor_name, competitor_weight = _batch_item(item)
            except InvalidRequest as e:
                results.append(f"❌ Invalid request: {e}")
                continue

            try:
                await self.connect_for_competitor(
                    device_id, competitor_id, competitor_name, competitor_weight
                )
            except BridgeError as e:
                message = f"❌ Error conectando {device_id} para {competitor_name}: {e}"
                logger.error(message)
                results.append(message)
            else:
                message = f"✅ {device_id} conectado para {competitor_name}"
                logger.info(message)
                results.append(message)

        successful = sum(1 for result in results if result.startswith("✅"))
        logger.info(f"Batch connect finished: {successful}/{len(results)} connected")
        return results

    async def _connect(self, device_id: str, competitor: Optional[Competitor]) -> None:
        if device_id in self.registry:
            logger.info(f"Device {device_id} already connected, reconnecting")
            await self.disconnect(device_id)

        adapter = await self.adapters.get_adapter()
        detector = StrikeDetector(self.detector_params, competitor)
        session = DeviceSession(
            device_id,
            adapter,
            detector,
            self._on_combat_event,
            find_timeout_sec=self.config.ble.find_timeout_sec,
            settle_sec=self.config.ble.settle_sec,
            phase_timeout_sec=self.config.ble.phase_timeout_sec,
            on_state_change=self._on_session_state,
        )

        device_name = await session.establish()

        # Must be registered before the caller hears "connected"
        label = device_label(device_name, competitor.name if competitor else None)
        self.registry.register(device_id, label, session.client)
        self._detectors[device_id] = detector

        task = asyncio.create_task(self._run_session(session))
        self.registry.attach_task(device_id, task)

        self.logger.status("Device connected", {
            "device_id": device_id,
            "label": label,
            "fighter_id": competitor.fighter_id if competitor else None,
        })
        logger.info(f"Connected {label} ({device_id})")

    async def _run_session(self, session: DeviceSession) -> None:
        device_id = session.device_id
        try:
            await session.run()
        except Exception as e:
            if self.registry.get_client(device_id) is None:
                # Link dropped because disconnect() is tearing it down
                logger.debug(f"Session {device_id} ended during disconnect")
                return
            logger.error(f"Session for {device_id} ended: {type(e).__name__}: {e}")
            safe_log(self.logger, "error", "Session ended", data={
                "device_id": device_id,
                "error": str(e),
                "type": type(e).__name__,
            })
            self.registry.remove(device_id)
            self._detectors.pop(device_id, None)

    def _on_session_state(self, device_id: str, state: SessionState) -> None:
        safe_log(self.logger, "debug", "session_state", device=device_id, data={"state": state.value})

    async def disconnect(self, device_id: str) -> None:
        """Tear down one device. Unknown ids are a no-op."""
        client = self.registry.pop_client(device_id)
        if client is not None:
            adapter = await self.adapters.get_adapter()
            failure = await best_effort(
                f"BLE disconnect of {device_id}", adapter.disconnect_device(client)
            )
            if failure is None:
                logger.info(f"BLE device {device_id} disconnected")

        task = self.registry.pop_task(device_id)
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            logger.info(f"Session task for {device_id} cancelled")

        self._detectors.pop(device_id, None)
        label = self.registry.pop_label(device_id)
        if label is not None:
            self.logger.status("Device disconnected", {"device_id": device_id, "label": label})

    async def disconnect_all(self) -> None:
        """Tear down every registered device; per-device failures are only logged."""
        device_ids = self.registry.connected_ids()
        if not device_ids:
            logger.info("No devices connected")
            return

        logger.info(f"Disconnecting {len(device_ids)} devices")
        for device_id in device_ids:
            await best_effort(f"Teardown of {device_id}", self.disconnect(device_id))

    def list_connected(self) -> List[str]:
        return self.registry.connected_ids()

    # ------------------------------------------------------------------
    # Events and max stats

    def _on_combat_event(self, device_id: str, event: CombatEvent) -> None:
        """Fan an accepted event out to the tracker and the sink."""
        logger.info(
            f"{event.event_type} by {event.fighter_id} ({event.limb_name}): "
            f"v={event.velocity:.2f} m/s a={event.acceleration:.2f} m/s2 F={event.force:.1f} N"
        )
        event_data = event.to_dict()
        safe_log(self.logger, "event", "combat_event", device=device_id, data=event_data)

        update = self.max_stats.record(event)
        if update is not None:
            self._notify_new_records(event, update)

        safe_emit(self.sink, COMBAT_EVENT, event_data)
        safe_broadcast(self.sink, {
            "viewType": "stats",
            "data": event_data,
            "timestamp": now_ms(),
        })

    def _notify_new_records(self, event: CombatEvent, update: RecordUpdate) -> None:
        stats = update.stats.to_dict()
        logger.info(f"New record for {event.fighter_id}: {', '.join(update.new_records)}")

        safe_emit(self.sink, NEW_MAX_RECORD, {
            "type": "new_max_record",
            "fighter_id": event.fighter_id,
            "records": update.new_records,
            "stats": stats,
            "triggering_event": event.to_dict(),
        })
        safe_broadcast(self.sink, {
            "type": "max_stats_update",
            "fighter_id": event.fighter_id,
            "data": stats,
            "new_records": update.new_records,
            "timestamp": event.timestamp,
            "view_type": "stats",
        })

    def query_max_stats(
        self, fighter_id: Optional[str] = None
    ) -> Union[MaxStatsRecord, List[MaxStatsRecord]]:
        """Snapshot of one fighter's record (StatsNotFound if none) or all records."""
        return self.max_stats.query(fighter_id)

    def reset_max_stats(self) -> None:
        self.max_stats.reset()
        safe_broadcast(self.sink, {"type": "max_stats_reset", "timestamp": now_ms()})
        self.logger.status("Max stats reset")
        logger.info("Max stats reset")

    # ------------------------------------------------------------------
    # Informational

    def ble_info(self) -> str:
        return (
            "Strike Bridge BLE system\n"
            f"- Detection: {SLAP}, {KICKDOWN}\n"
            f"- Events: {COMBAT_EVENT}\n"
            f"- Connected devices: {len(self.registry)}\n"
            f"- Adapter: {self.config.ble.adapter}"
            f" ({'ready' if self.adapters.is_acquired else 'not acquired'})\n"
            "- Multi-device: yes"
        )

    def system_info(self) -> Dict[str, Any]:
        params = self.detector_params
        return {
            "version": __version__,
            "system": "Strike Bridge",
            "supported_events": [SLAP, KICKDOWN],
            "supported_limbs": [role.type_name for role in LimbRole],
            "thresholds": {
                "slap_min_acc_g": params.slap_min_acc,
                "slap_min_gyro_dps": params.slap_min_gyro,
                "kick_min_acc_g": params.kick_min_acc,
                "kick_min_acc_z_g": params.kick_min_acc_z,
                "kick_max_gyro_dps": params.kick_max_gyro,
            },
            "cooldown_ms": params.cooldown_ms,
        }


def _batch_item(item: Mapping[str, Any]):
    missing = [name for name in _BATCH_FIELDS if item.get(name) in (None, "")]
    if missing:
        raise InvalidRequest(f"{', '.join(missing)} required")
    try:
        return (
            str(item["deviceId"]),
            int(item["competitorId"]),
            str(item["competitorName"]),
            float(item["competitorWeight"]),
        )
    except (TypeError, ValueError) as e:
        raise InvalidRequest(f"invalid field value: {e}") from e


async def run_bridge(config_path: str) -> None:
    """Run the bridge with the specified configuration."""
    from .config import load_config, validate_config

    config = load_config(config_path)
    errors = validate_config(config)

    if errors:
        logger.error("Configuration validation failed:")
        for error in errors:
            logger.error(f"  - {error}")
        return

    bridge = Bridge(config)

    try:
        await bridge.start()

        while True:
            await asyncio.sleep(1.0)

    except KeyboardInterrupt:
        logger.info("Received interrupt signal, stopping bridge")
    finally:
        await bridge.stop()


async def scan_once(config_path: Optional[str] = None) -> List[DeviceDescriptor]:
    """Scan for sensors with the given (or default) configuration."""
    from .config import load_config

    config = load_config(config_path) if config_path else AppConfig()
    adapters = AdapterProvider(config.ble.adapter)
    adapter = await adapters.get_adapter()
    return await scan_devices(
        adapter,
        timeout=config.ble.scan_timeout_sec,
        name_prefix=config.ble.name_prefix,
    )
