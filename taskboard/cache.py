"""
Best-effort local cache of the last board a session saw.

Used only to paint something immediately on connect; the hub snapshot that
follows always replaces it. Reads and writes never raise.
"""
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Sequence

from .activity import ActivityEntry
from .schema import Task

logger = logging.getLogger(__name__)

CACHE_VERSION = 2


@dataclass
class CachedBoard:
    tasks: List[Task] = field(default_factory=list)
    activity: List[ActivityEntry] = field(default_factory=list)


class LocalCache:
    """JSON file holding {version, tasks, activity}."""

    def __init__(self, path: str):
        self.path = Path(path).expanduser()

    def load(self) -> CachedBoard:
        """Return the cached board, or an empty one if missing or unreadable."""
        if not self.path.exists():
            return CachedBoard()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if data.get("version") != CACHE_VERSION:
                logger.info(f"Ignoring cache {self.path}: version {data.get('version')}")
                return CachedBoard()
            return CachedBoard(
                tasks=[Task.from_dict(t) for t in data.get("tasks", [])],
                activity=[ActivityEntry.from_dict(a) for a in data.get("activity", [])],
            )
        except Exception as e:
            logger.warning(f"Ignoring unreadable cache {self.path}: {e}")
            return CachedBoard()

    def save(self, tasks: Sequence[Task], activity: Sequence[ActivityEntry] = ()) -> bool:
        """Write the board atomically. Returns False on failure."""
        payload = {
            "version": CACHE_VERSION,
            "tasks": [t.to_dict() for t in tasks],
            "activity": [a.to_dict() for a in activity],
        }
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False)
            tmp.replace(self.path)
            return True
        except OSError as e:
            logger.warning(f"Cache write error {self.path}: {e}")
            return False

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
