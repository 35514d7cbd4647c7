"""
Image history
=============

Per-device list of generated images, newest first, capped at 100 entries and
stored as a JSON file. Unreadable or malformed files load as an empty history.
Concurrent writers are not coordinated: the last write wins.
"""

import json
import logging
import re
from dataclasses import dataclass, asdict
from pathlib import Path

from imagecraft.config import data_dir

logger = logging.getLogger(__name__)

MAX_ITEMS = 100
HISTORY_DIRNAME = "history"


@dataclass
class HistoryEntry:
    id: str
    url: str
    prompt_ar: str = ""
    prompt_en: str | None = None
    style: str | None = None
    created_at: int = 0

    @classmethod
    def from_dict(cls, raw: dict) -> "HistoryEntry | None":
        if not isinstance(raw, dict):
            return None
        if not isinstance(raw.get("id"), str) or not isinstance(raw.get("url"), str):
            return None
        created = raw.get("created_at")
        return cls(
            id=raw["id"],
            url=raw["url"],
            prompt_ar=raw.get("prompt_ar") or "",
            prompt_en=raw.get("prompt_en"),
            style=raw.get("style"),
            created_at=created if isinstance(created, (int, float)) else 0,
        )

    def to_dict(self) -> dict:
        return asdict(self)


def history_path(device_id: str) -> Path:
    safe = re.sub(r"[^\w-]", "_", device_id)[:64] or "anonymous"
    return data_dir() / HISTORY_DIRNAME / f"{safe}.json"


class HistoryStore:
    """Read-modify-write access to one history file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    @classmethod
    def for_device(cls, device_id: str) -> "HistoryStore":
        return cls(history_path(device_id))

    def items(self) -> list[HistoryEntry]:
        if not self.path.exists():
            return []
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable history file %s: %s", self.path, e)
            return []
        if not isinstance(raw, list):
            return []
        entries = [e for e in (HistoryEntry.from_dict(r) for r in raw) if e is not None]
        entries.sort(key=lambda e: e.created_at or 0, reverse=True)
        return entries

    def _save(self, entries: list[HistoryEntry]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(
                json.dumps([e.to_dict() for e in entries[:MAX_ITEMS]], ensure_ascii=False, indent=2),
                encoding="utf-8",
            )
        except OSError as e:
            logger.warning("Could not write history file %s: %s", self.path, e)

    def add(self, entry: HistoryEntry) -> list[HistoryEntry]:
        """Insert at the front, or merge over an entry with the same id in place."""
        entries = self.items()
        existing = next((i for i, e in enumerate(entries) if e.id == entry.id), None)
        if existing is not None:
            merged = entries[existing].to_dict()
            merged.update({k: v for k, v in entry.to_dict().items() if v is not None})
            entries[existing] = HistoryEntry.from_dict(merged)
        else:
            entries.insert(0, entry)
        entries = entries[:MAX_ITEMS]
        self._save(entries)
        return entries

    def remove(self, entry_id: str) -> list[HistoryEntry]:
        entries = [e for e in self.items() if e.id != entry_id]
        self._save(entries)
        return entries

    def clear(self) -> list[HistoryEntry]:
        self._save([])
        return []
