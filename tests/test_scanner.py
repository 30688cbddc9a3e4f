"""Tests for sensor discovery against a fake advertisement stream."""

import asyncio

import pytest
from bleak.exc import BleakError

from fakes import FakeAdapter, advertisement

from strike_bridge.ble.scanner import UNKNOWN_DEVICE_NAME, find_device, scan_devices
from strike_bridge.errors import DeviceNotFound


class TestScanDevices:

    def test_filters_dedups_and_infers_role(self):
        adapter = FakeAdapter([
            advertisement("AA:01", "BH-ManoIzquierda-1", rssi=-40),
            advertisement("AA:02", "SomeHeadphones"),
            advertisement("AA:01", "BH-ManoIzquierda-1", rssi=-80),
            advertisement("AA:03", "BH-PieDerecho"),
            advertisement("AA:04", "BH-Prototype"),
            advertisement("AA:05", None),
        ])

        devices = asyncio.run(scan_devices(adapter, timeout=0.1))

        assert [d.id for d in devices] == ["AA:01", "AA:03", "AA:04"]
        left_hand = devices[0]
        assert left_hand.limb_type == "LeftHand"
        assert left_hand.limb_name == "Mano Izquierda"
        assert left_hand.rssi == -40
        assert left_hand.address == "AA:01"
        assert devices[1].limb_type == "RightFoot"
        assert devices[2].limb_type is None
        assert devices[2].limb_name is None

    def test_empty_scan_is_not_an_error(self):
        devices = asyncio.run(scan_devices(FakeAdapter(), timeout=0.05))
        assert devices == []

    def test_stream_end_returns_partial_results(self):
        adapter = FakeAdapter([advertisement("AA:01", "BH-ManoDerecha")], end_stream=True)

        devices = asyncio.run(scan_devices(adapter, timeout=5.0))

        assert [d.id for d in devices] == ["AA:01"]

    def test_stream_error_returns_partial_results(self):
        adapter = FakeAdapter(
            [advertisement("AA:01", "BH-ManoDerecha")],
            stream_error=BleakError("org.bluez.Error.NotReady"),
        )

        devices = asyncio.run(scan_devices(adapter, timeout=5.0))

        assert [d.id for d in devices] == ["AA:01"]
        assert adapter.closed_streams == 1

    def test_custom_prefix(self):
        adapter = FakeAdapter([
            advertisement("AA:01", "BH-ManoDerecha"),
            advertisement("AA:02", "XX-PieIzquierdo"),
        ])

        devices = asyncio.run(scan_devices(adapter, timeout=0.05, name_prefix="XX-"))

        assert [d.limb_type for d in devices] == ["LeftFoot"]


class TestFindDevice:

    def test_finds_target(self):
        adapter = FakeAdapter([
            advertisement("AA:01", "BH-ManoDerecha"),
            advertisement("AA:02", "BH-PieIzquierdo"),
        ])

        device, name = asyncio.run(find_device(adapter, "AA:02", timeout=1.0))

        assert device.address == "AA:02"
        assert name == "BH-PieIzquierdo"

    def test_unnamed_target(self):
        adapter = FakeAdapter([advertisement("AA:09", None)])

        _, name = asyncio.run(find_device(adapter, "AA:09", timeout=1.0))

        assert name == UNKNOWN_DEVICE_NAME

    def test_timeout(self):
        adapter = FakeAdapter([advertisement("AA:01", "BH-ManoDerecha")])

        with pytest.raises(DeviceNotFound, match="timeout"):
            asyncio.run(find_device(adapter, "FF:FF", timeout=0.05))

    def test_stream_end_without_match(self):
        adapter = FakeAdapter([advertisement("AA:01", "BH-ManoDerecha")], end_stream=True)

        with pytest.raises(DeviceNotFound):
            asyncio.run(find_device(adapter, "FF:FF", timeout=5.0))

    def test_stream_error_without_match(self):
        adapter = FakeAdapter(
            [advertisement("AA:01", "BH-ManoDerecha")],
            stream_error=OSError("adapter removed"),
        )

        with pytest.raises(DeviceNotFound, match="scan stream ended"):
            asyncio.run(find_device(adapter, "FF:FF", timeout=5.0))

    def test_stream_closed_when_target_found(self):
        adapter = FakeAdapter([
            advertisement("AA:01", "BH-ManoDerecha"),
            advertisement("AA:02", "BH-PieIzquierdo"),
        ])

        async def run():
            await find_device(adapter, "AA:01", timeout=1.0)
            return adapter.closed_streams

        assert asyncio.run(run()) == 1
