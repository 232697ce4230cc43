"""Local cache stored as JSON files, one file per key."""

import json
import logging
import os
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path

from checkin_tracker.services.cache import LocalCache

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


@dataclass
class JsonFileCache(LocalCache):
    """File-backed local cache with atomic writes."""

    directory: Path

    def get(self, key: str) -> object | None:
        """Return the decoded value, or None when missing or unreadable."""
        path = self._path(key)
        if not path.exists():
            return None
        try:
            with path.open("r", encoding="utf-8") as handle:
                return json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Failed to read cache key=%s err=%s", key, exc)
            return None

    def set(self, key: str, value: object) -> None:
        """Write the value to a temp file and swap it into place."""
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=path.name, suffix=".tmp", dir=str(path.parent)
        )
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(value, handle, indent=2)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, path)
        finally:
            tmp_path.unlink(missing_ok=True)

    def _path(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid cache key: {key!r}")
        return self.directory / f"{key}.json"
