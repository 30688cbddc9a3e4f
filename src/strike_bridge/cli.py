"""Command line entry point for the Strike Bridge."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from .bridge import run_bridge, scan_once
from .errors import BridgeError


def setup_logging(debug: bool = False) -> None:
    """Set up logging configuration."""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Strike Bridge - BLE limb sensor strike detection"
    )
    parser.add_argument("--config", help="Path to YAML configuration file")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--scan",
        action="store_true",
        help="List nearby sensors and exit",
    )

    args = parser.parse_args()
    setup_logging(args.debug)

    if args.config and not Path(args.config).exists():
        print(f"Error: Configuration file not found: {args.config}", file=sys.stderr)
        sys.exit(1)

    if args.scan:
        try:
            devices = asyncio.run(scan_once(args.config))
        except BridgeError as e:
            print(f"Scan failed: {e}", file=sys.stderr)
            sys.exit(1)
        for device in devices:
            limb = device.limb_name or "?"
            print(f"{device.address}  | {device.name} | {limb} | rssi={device.rssi}")
        return

    if not args.config:
        parser.error("--config is required unless --scan is given")

    try:
        asyncio.run(run_bridge(args.config))
    except KeyboardInterrupt:
        print("\nBridge stopped by user")
    except Exception as e:
        print(f"Bridge failed: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
