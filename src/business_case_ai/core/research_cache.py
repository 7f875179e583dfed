"""
Filesystem-based cache for research phase results.

Repeated analyses of the same company, industry and phase reuse the stored
payload instead of calling the LLM again.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_TTL = 86400  # one day


def cache_key(company: str, industry: str, segment: str) -> str:
    """Stable key for (company, industry, segment); case and padding are ignored."""
    parts = [str(part or "").strip().lower() for part in (company, industry, segment)]
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()


class ResearchCache:
    """
    TTL cache of research payloads, one JSON file per key.

    Cache Structure:
        {base_dir}/{key[:2]}/{key}.json

    Each entry contains:
        - key: sha256 of the identifying strings
        - payload: The cached research result
        - segment: Phase or research type, for diagnostics
        - timestamp: Entry creation time
        - expires_at: Expiry as a Unix timestamp

    Writes go through a temp file and ``os.replace`` so concurrent readers
    never see a partial entry. Concurrent writers of the same key are
    last-writer-wins.

    Attributes:
        base_dir: Root directory for cache storage
        default_ttl: Default time-to-live in seconds (default: 86400)
    """

    def __init__(
        self,
        base_dir: Optional[Path] = None,
        default_ttl: int = DEFAULT_TTL,
    ):
        if base_dir is None:
            base_dir = Path.cwd() / ".cache" / "business-case-ai" / "research"
        self.base_dir = Path(base_dir)
        self.default_ttl = default_ttl

    def _get_cache_path(self, key: str) -> Path:
        return self.base_dir / key[:2] / f"{key}.json"

    def get(self, company: str, industry: str, segment: str) -> Optional[Any]:
        """
        Retrieve a cached payload.

        Returns:
            The payload if present and not expired, None otherwise
        """
        cache_path = self._get_cache_path(cache_key(company, industry, segment))
        if not cache_path.exists():
            return None

        try:
            with open(cache_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Failed to read cache entry %s: %s", cache_path, exc)
            return None

        if time.time() >= data.get("expires_at", 0):
            # Expired - remove file
            cache_path.unlink(missing_ok=True)
            return None

        logger.debug("Research cache hit for %s/%s", industry, segment)
        return data.get("payload")

    def set(
        self,
        company: str,
        industry: str,
        segment: str,
        payload: Any,
        ttl: Optional[int] = None,
    ) -> None:
        """
        Store a payload.

        Args:
            ttl: Time-to-live in seconds (default: default_ttl)
        """
        key = cache_key(company, industry, segment)
        cache_path = self._get_cache_path(key)
        cache_path.parent.mkdir(parents=True, exist_ok=True)

        now = time.time()
        data = {
            "key": key,
            "segment": segment,
            "payload": payload,
            "timestamp": now,
            "expires_at": now + (ttl if ttl is not None else self.default_ttl),
        }

        try:
            fd, temp_path = tempfile.mkstemp(dir=cache_path.parent, prefix=f".{key[:8]}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, default=str)
                os.replace(temp_path, cache_path)
            except Exception:
                try:
                    os.unlink(temp_path)
                except OSError:
                    pass
                raise
        except (OSError, TypeError, ValueError) as exc:
            logger.warning("Failed to write cache entry %s: %s", cache_path, exc)

    def invalidate(self, company: str, industry: str, segment: str) -> bool:
        """
        Remove one entry.

        Returns:
            True if an entry was removed
        """
        cache_path = self._get_cache_path(cache_key(company, industry, segment))
        try:
            cache_path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            logger.warning("Failed to delete cache entry %s: %s", cache_path, exc)
            return False
        return True

    def stats(self) -> Dict[str, Any]:
        """
        Get cache statistics.

        Returns:
            Dict with total_entries, active_entries, expired_entries and
            total_size_bytes
        """
        stats = {
            "total_entries": 0,
            "active_entries": 0,
            "expired_entries": 0,
            "total_size_bytes": 0,
        }
        if not self.base_dir.exists():
            return stats

        now = time.time()
        for cache_file in self.base_dir.glob("*/*.json"):
            stats["total_entries"] += 1
            try:
                stats["total_size_bytes"] += cache_file.stat().st_size
                with open(cache_file, "r", encoding="utf-8") as f:
                    data = json.load(f)
            except (json.JSONDecodeError, OSError):
                stats["expired_entries"] += 1
                continue
            if now >= data.get("expires_at", 0):
                stats["expired_entries"] += 1
            else:
                stats["active_entries"] += 1
        return stats
