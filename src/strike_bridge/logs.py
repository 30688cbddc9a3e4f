"""NDJSON session log with sequence numbers and daily rotation."""

from __future__ import annotations

import json
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, TextIO


class NdjsonLogger:
    """Append-only NDJSON log of combat events, records and bridge status.

    One file per day: ``<prefix>_YYYYMMDD.ndjson``. Debug records are only
    written in verbose mode or when their message is whitelisted.
    """

    def __init__(self, log_dir: str, file_prefix: str = "strikes") -> None:
        self.log_dir = Path(log_dir)
        self.file_prefix = file_prefix
        self.mode = "regular"  # regular or verbose
        self.verbose_whitelist: set[str] = set()

        self.log_dir.mkdir(parents=True, exist_ok=True)

        self._lock = threading.Lock()
        self._closed = False
        self._seq = 0
        self._current_file: Optional[TextIO] = None
        self._current_date: Optional[str] = None
        self._start_time_ns = time.monotonic_ns()

        self._rotate_if_needed()

    def log(
        self,
        msg_type: str,
        msg: str,
        device: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Write one structured record."""
        if msg_type == "debug" and self.mode == "regular":
            if msg not in self.verbose_whitelist:
                return

        with self._lock:
            if self._closed:
                return
            self._rotate_if_needed()

            self._seq += 1
            ts_ms = (time.monotonic_ns() - self._start_time_ns) / 1_000_000

            record: Dict[str, Any] = {
                "seq": self._seq,
                "type": msg_type,
                "ts_ms": round(ts_ms, 3),
                "msg": msg,
            }
            if device is not None:
                record["device"] = device
            if data is not None:
                record["data"] = data
            record["hms"] = datetime.now().strftime("%H:%M:%S.%f")[:-3]

            json.dump(record, self._current_file, separators=(",", ":"), ensure_ascii=False)
            self._current_file.write("\n")
            self._current_file.flush()

    def event(self, msg: str, device: Optional[str] = None, data: Optional[Dict[str, Any]] = None) -> None:
        self.log("event", msg, device=device, data=data)

    def status(self, msg: str, data: Optional[Dict[str, Any]] = None) -> None:
        self.log("status", msg, data=data)

    def error(self, msg: str, data: Optional[Dict[str, Any]] = None) -> None:
        self.log("error", msg, data=data)

    def debug(self, msg: str, data: Optional[Dict[str, Any]] = None) -> None:
        """Log a debug message (subject to filtering)."""
        self.log("debug", msg, data=data)

    @property
    def path(self) -> Optional[Path]:
        if self._current_date is None:
            return None
        return self.log_dir / f"{self.file_prefix}_{self._current_date}.ndjson"

    def close(self) -> None:
        with self._lock:
            self._closed = True
            if self._current_file:
                self._current_file.close()
                self._current_file = None

    def _rotate_if_needed(self) -> None:
        current_date = datetime.now().strftime("%Y%m%d")
        if self._current_date == current_date and self._current_file is not None:
            return

        if self._current_file:
            self._current_file.close()

        log_path = self.log_dir / f"{self.file_prefix}_{current_date}.ndjson"
        self._current_file = log_path.open("a", encoding="utf-8", buffering=1)
        self._current_date = current_date

    def __enter__(self) -> NdjsonLogger:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
