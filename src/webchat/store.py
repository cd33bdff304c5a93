"""Disk-based chat history keyed by identity (one JSON file per user)."""
from __future__ import annotations

import json
import logging
import os
import re
import tempfile
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import StorageError

logger = logging.getLogger(__name__)

ROLES = ("user", "bot")


# -----------------------------
# Helpers
# -----------------------------
def sanitize(identity: str) -> str:
    """Map an identity (usually an email) to a filename-safe string."""
    return re.sub(r"[^A-Za-z0-9@._-]", "_", identity)


def _utc_iso() -> str:
    # Same shape as JavaScript's Date.toISOString(): 2024-01-31T12:00:00.000Z
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _atomic_write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile("w", encoding="utf-8", delete=False, dir=str(path.parent)) as tmp:
        tmp.write(text)
        tmp.flush()
        os.fsync(tmp.fileno())
        tmp_name = tmp.name
    os.replace(tmp_name, path)


@dataclass
class MessageRecord:
    """One stored chat turn."""
    role: str
    text: str
    time: str = field(default_factory=_utc_iso)

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"role must be one of {ROLES}, got {self.role!r}")

    @classmethod
    def user(cls, text: str) -> "MessageRecord":
        return cls(role="user", text=text)

    @classmethod
    def bot(cls, text: str) -> "MessageRecord":
        return cls(role="bot", text=text)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MessageRecord":
        if not isinstance(data, dict):
            raise ValueError(f"expected an object, got {type(data).__name__}")
        return cls(role=data["role"], text=str(data["text"]), time=str(data["time"]))

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


# -----------------------------
# HistoryStore
# -----------------------------
class HistoryStore:
    """Append-only per-identity message log.

    Layout:
        data_dir/
          <sanitized identity>.json   # pretty-printed list of {role, text, time}

    Appends are read-modify-write of the whole file. Appends for the same
    identity are serialized inside this process; separate processes sharing a
    data_dir are not coordinated and can still lose updates. One lock is kept
    per sanitized identity for the life of the store and is never released.
    """

    suffix = ".json"

    def __init__(self, data_dir: str) -> None:
        self.root = Path(data_dir)
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    # --------- paths ----------
    def path_for(self, identity: str) -> Path:
        return self.root / f"{sanitize(identity)}{self.suffix}"

    def _lock_for(self, identity: str) -> threading.Lock:
        key = sanitize(identity)
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    # --------- core API ----------
    def append(self, identity: Optional[str], record: MessageRecord) -> bool:
        """Append ``record`` to the identity's history.

        Best effort: returns True when the record was written and False when
        there was nothing to key on or the write failed (the failure is
        logged, never raised).
        """
        if not identity:
            return False
        path = self.path_for(identity)
        try:
            with self._lock_for(identity):
                history = self._read_raw(path)
                history.append(record.to_dict())
                _atomic_write_text(path, json.dumps(history, ensure_ascii=False, indent=2))
        except Exception:
            logger.exception("Failed to save %s message for %s", record.role, path.name)
            return False
        return True

    def read_all(self, identity: str) -> List[MessageRecord]:
        """Return the full history for ``identity`` (empty if none yet)."""
        path = self.path_for(identity)
        try:
            return [MessageRecord.from_dict(item) for item in self._read_raw(path)]
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.error("Failed to load history from %s: %s", path, e)
            raise StorageError("Failed to load history") from e

    # --------- internals ----------
    @staticmethod
    def _read_raw(path: Path) -> List[Dict[str, Any]]:
        if not path.exists():
            return []
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, list):
            raise ValueError(f"{path} does not hold a JSON list")
        return data
