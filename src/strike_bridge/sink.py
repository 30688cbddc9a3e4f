"""Outbound event sinks: UI push and network broadcast."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol

from .logs import NdjsonLogger

logger = logging.getLogger(__name__)

COMBAT_EVENT = "simple-combat-event"
NEW_MAX_RECORD = "new-max-record"


class EventSink(Protocol):
    """Where detected events and record notifications are pushed."""

    def emit_to_ui(self, event_name: str, payload: Dict[str, Any]) -> None:
        ...

    def broadcast(self, message: Dict[str, Any]) -> None:
        ...


class NullSink:
    """Sink that drops everything."""

    def emit_to_ui(self, event_name: str, payload: Dict[str, Any]) -> None:
        pass

    def broadcast(self, message: Dict[str, Any]) -> None:
        pass


class NdjsonEventSink:
    """Sink that records UI emits and broadcasts in the NDJSON session log."""

    def __init__(self, ndjson: NdjsonLogger) -> None:
        self.ndjson = ndjson

    def emit_to_ui(self, event_name: str, payload: Dict[str, Any]) -> None:
        self.ndjson.event(event_name, data=payload)

    def broadcast(self, message: Dict[str, Any]) -> None:
        self.ndjson.event("broadcast", data=message)


def safe_emit(sink: EventSink, event_name: str, payload: Dict[str, Any]) -> None:
    """Push to the UI; failures are logged and never reach the session."""
    try:
        sink.emit_to_ui(event_name, payload)
    except Exception as e:
        logger.error(f"Error emitting {event_name}: {e}")


def safe_broadcast(sink: EventSink, message: Dict[str, Any]) -> None:
    """Broadcast to network clients; failures are logged only."""
    try:
        sink.broadcast(message)
    except Exception as e:
        logger.error(f"Error broadcasting message: {e}")


def safe_log(
    ndjson: NdjsonLogger,
    msg_type: str,
    msg: str,
    device: Optional[str] = None,
    data: Optional[Dict[str, Any]] = None,
) -> None:
    """Write an NDJSON record from a session callback; write failures are logged only."""
    try:
        ndjson.log(msg_type, msg, device=device, data=data)
    except (OSError, ValueError) as e:
        logger.error(f"Error writing {msg} to session log: {e}")
