"""
API keys
========

Mint per-device API keys and validate them for the proxy generation endpoint.

Keys look like ``arc_live_<prefix>_<body>``. Only a salted SHA-256 of the key
and its 8-character prefix are stored; the plaintext is returned once, when
the key is created.
"""

import base64
import hashlib
import json
import logging
import re
import secrets
import threading
import time
import uuid
from collections import defaultdict, deque
from datetime import datetime, timezone
from pathlib import Path

from imagecraft.config import data_dir, get_config

logger = logging.getLogger(__name__)

KEY_PREFIX = "arc_live"
KEYS_DB_NAME = "api_keys_db.json"

# Records are never returned with these fields
SECRET_FIELDS = ("key_hash",)


class KeyStoreError(RuntimeError):
    """The key store could not be read or written."""


def random_key() -> str:
    body = re.sub(r"[^a-zA-Z0-9]", "", base64.b64encode(secrets.token_bytes(24)).decode())[:32]
    prefix = body[:8].lower()
    return f"{KEY_PREFIX}_{prefix}_{body}"


def key_prefix(api_key: str) -> str:
    parts = api_key.split("_")
    if len(parts) >= 3 and parts[2]:
        return parts[2][:8]
    return api_key[10:18]


def hash_key(api_key: str, salt: str | None = None) -> str:
    salt = get_config()["key_salt"] if salt is None else salt
    return hashlib.sha256(f"{salt}{api_key}".encode("utf-8")).hexdigest()


def public_record(record: dict) -> dict:
    return {k: v for k, v in record.items() if k not in SECRET_FIELDS}


class KeyStore:
    """JSON file of API key records, guarded by a process-local lock."""

    def __init__(self, path: Path | None = None):
        self.path = Path(path) if path else data_dir() / KEYS_DB_NAME
        self._lock = threading.Lock()

    def _load(self) -> list[dict]:
        if not self.path.exists():
            return []
        try:
            records = json.loads(self.path.read_text())
        except (OSError, ValueError) as e:
            raise KeyStoreError(f"Could not read key store: {e}") from e
        return records if isinstance(records, list) else []

    def _save(self, records: list[dict]) -> None:
        tmp = self.path.with_suffix(".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(records, indent=2))
            tmp.replace(self.path)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            raise KeyStoreError(f"Could not write key store: {e}") from e

    def create(self, device_id: str, name: str | None = None) -> tuple[str, dict]:
        """
        Mint and store a new key.

        Returns:
            Tuple of (plaintext key, public record).

        Raises:
            ValueError: If device_id is empty.
            KeyStoreError: If the record could not be stored. Nothing is written.
        """
        if not device_id:
            raise ValueError("device_id is required")

        api_key = random_key()
        record = {
            "id": str(uuid.uuid4()),
            "device_id": device_id,
            "name": name,
            "key_prefix": key_prefix(api_key),
            "key_hash": hash_key(api_key),
            "enabled": True,
            "rate_limit_per_minute": get_config()["default_rate_limit"],
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        with self._lock:
            records = self._load()
            records.insert(0, record)
            self._save(records)
        logger.info("Issued API key %s... for device %s", record["key_prefix"], device_id)
        return api_key, public_record(record)

    def lookup(self, api_key: str) -> dict | None:
        """Public record for a key, matched by hash, or None."""
        if not api_key:
            return None
        digest = hash_key(api_key)
        with self._lock:
            records = self._load()
        record = next(
            (r for r in records if isinstance(r, dict) and secrets.compare_digest(r.get("key_hash") or "", digest)),
            None,
        )
        return public_record(record) if record else None


class RateLimiter:
    """Sliding one-minute window per key id."""

    def __init__(self, window_seconds: float = 60.0, clock=time.monotonic):
        self.window = window_seconds
        self.clock = clock
        self._hits: dict[str, deque] = defaultdict(deque)
        self._lock = threading.Lock()

    def allow(self, key_id: str, limit: int | None) -> bool:
        if not limit or limit <= 0:
            return True
        now = self.clock()
        with self._lock:
            hits = self._hits[key_id]
            while hits and now - hits[0] >= self.window:
                hits.popleft()
            if len(hits) >= limit:
                return False
            hits.append(now)
        return True
