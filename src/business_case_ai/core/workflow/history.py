"""Bounded on-disk history of recent workflow runs."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List

from filelock import FileLock

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 20
LOCK_ACQUISITION_TIMEOUT = 5


class WorkflowHistory:
    """Keeps the most recent ``limit`` run summaries in one JSON file.

    Each ``append`` rewrites the file atomically (temp file + rename) under a
    file lock, so concurrent runs never interleave partial writes.
    """

    def __init__(self, path: Path, limit: int = DEFAULT_HISTORY_LIMIT) -> None:
        self.path = Path(path)
        self.limit = max(1, limit)

    @property
    def _lock_path(self) -> Path:
        return self.path.with_suffix(self.path.suffix + ".lock")

    def _read(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Discarding unreadable workflow history %s: %s", self.path, exc)
            return []
        return data if isinstance(data, list) else []

    def entries(self) -> List[Dict[str, Any]]:
        """Stored runs, oldest first."""
        return self._read()

    def append(self, entry: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with FileLock(self._lock_path, timeout=LOCK_ACQUISITION_TIMEOUT):
            entries = self._read()
            entries.append(entry)
            entries = entries[-self.limit :]

            fd, temp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".history.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(entries, handle, indent=2, default=str)
                    handle.flush()
                    os.fsync(handle.fileno())
                os.replace(temp_path, self.path)
            except Exception:
                try:
                    os.unlink(temp_path)
                except OSError:
                    pass
                raise

    def clear(self) -> None:
        with FileLock(self._lock_path, timeout=LOCK_ACQUISITION_TIMEOUT):
            self.path.unlink(missing_ok=True)
