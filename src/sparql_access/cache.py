# SPARQL Endpoint Access Layer
# File: cache.py
# Version: v2

"""Small key-value store used by the prefix resolver and credential store.

Design goals:
- Persistence scope is a constructor argument: no path means the store lives
  as long as the process (session scope); a path means a durable JSON file.
- No expiry and no eviction. Entries are only ever overwritten or deleted.
- Diagnostics-friendly (hits/misses/size/writes).
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Union

logger = logging.getLogger(__name__)


@dataclass
class StoreStats:
    hits: int = 0
    misses: int = 0
    sets: int = 0
    deletes: int = 0
    load_errors: int = 0
    save_errors: int = 0


class KeyValueStore:
    """A string-keyed store of JSON-serialisable values.

    - ``path=None``: session-lifetime, in memory only.
    - ``path=...``: durable; loaded lazily on first access and rewritten
      after every mutation.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None) -> None:
        self.path = Path(path) if path else None
        self._data: Dict[str, Any] = {}
        self._loaded = self.path is None
        self._lock = threading.Lock()
        self._stats = StoreStats()

    @property
    def durable(self) -> bool:
        return self.path is not None

    def _load(self) -> None:
        if self._loaded:
            return
        self._loaded = True

        if self.path is None or not self.path.exists():
            return

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            self._stats.load_errors += 1
            logger.warning("Failed to load store from '%s': %s", self.path, exc)
            return

        if isinstance(raw, dict):
            self._data = raw
            logger.debug("Loaded %d entries from '%s'", len(raw), self.path)

    def _save(self) -> None:
        if self.path is None:
            return

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp.write_text(json.dumps(self._data, sort_keys=True), encoding="utf-8")
            tmp.replace(self.path)
        except OSError as exc:
            self._stats.save_errors += 1
            logger.warning("Failed to save store to '%s': %s", self.path, exc)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            self._load()
            return key in self._data

    def __len__(self) -> int:
        with self._lock:
            self._load()
            return len(self._data)

    def __iter__(self) -> Iterator[str]:
        with self._lock:
            self._load()
            return iter(list(self._data))

    def get(self, key: str, default: Any = None) -> Any:
        """Return the stored value, or ``default`` when the key is absent."""
        with self._lock:
            self._load()
            if key in self._data:
                self._stats.hits += 1
                return self._data[key]
            self._stats.misses += 1
            return default

    def set(self, key: str, value: Any) -> None:
        """Insert or overwrite a value."""
        self.update({key: value})

    def update(self, values: Dict[str, Any]) -> None:
        """Insert or overwrite several values with a single write."""
        if not values:
            return
        with self._lock:
            self._load()
            self._data.update(values)
            self._stats.sets += len(values)
            self._save()

    def delete(self, key: str) -> bool:
        """Remove a single key. Returns True if it was present."""
        with self._lock:
            self._load()
            if key not in self._data:
                return False
            del self._data[key]
            self._stats.deletes += 1
            self._save()
            return True

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
            self._loaded = True
            if self.path is not None:
                try:
                    self.path.unlink()
                except FileNotFoundError:
                    pass
                except OSError as exc:
                    self._stats.save_errors += 1
                    logger.warning("Failed to remove store '%s': %s", self.path, exc)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            size = len(self._data)
        return {
            "durable": self.durable,
            "path": str(self.path) if self.path else None,
            "size": size,
            "hits": self._stats.hits,
            "misses": self._stats.misses,
            "sets": self._stats.sets,
            "deletes": self._stats.deletes,
            "load_errors": self._stats.load_errors,
            "save_errors": self._stats.save_errors,
        }
