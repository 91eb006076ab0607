"""
File-backed cache for the last pipeline analysis result.

The engine never reaches for this on its own: callers pass a ResultCache to
run_pipeline_analysis() when they want the result kept for reload without
re-uploading the exports.

Usage:
    from analytics.lib.result_cache import ResultCache
    cache = ResultCache("data/processed/pipeline_analysis_cache.json")
    entry = cache.load()
"""
from __future__ import annotations

import json
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from analytics.lib.errors import CacheError
from analytics.lib.logger import setup_logger
from analytics.lib.utils import atomic_write_json

logger = setup_logger("result_cache")


class ResultCache:
    """Single-slot JSON cache holding the most recent analysis result."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    @property
    def exists(self) -> bool:
        return self.path.exists()

    def save(self, result: Dict[str, Any], metadata: Optional[Dict[str, Any]] = None) -> bool:
        """Persist a result with its metadata (source names, record counts)."""
        entry = {
            "saved_at": datetime.now(timezone.utc).isoformat(),
            "metadata": metadata or {},
            "result": result,
        }
        ok = atomic_write_json(entry, self.path)
        if ok:
            logger.info("Cached analysis result at %s", self.path)
        return ok

    def load(self, max_age_hours: Optional[float] = None) -> Optional[Dict[str, Any]]:
        """
        Return the cached entry, or None when absent or older than max_age_hours.

        Raises:
            CacheError: if the cache file exists but cannot be decoded.
        """
        if not self.path.exists():
            logger.debug("Cache miss: %s", self.path)
            return None

        if max_age_hours is not None:
            cache_age = time.time() - self.path.stat().st_mtime
            if cache_age > max_age_hours * 3600:
                logger.info(
                    "Cache stale: %s (age: %.1fh, max: %.0fh)",
                    self.path, cache_age / 3600, max_age_hours,
                )
                return None

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                entry = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise CacheError(f"Unreadable cache file: {e}", str(self.path)) from e

        if not isinstance(entry, dict) or "result" not in entry:
            raise CacheError("Cache file has no result payload", str(self.path))

        logger.info("Cache hit: %s", self.path)
        return entry

    def clear(self) -> bool:
        """Remove the cached entry. Returns True if a file was deleted."""
        if not self.path.exists():
            return False
        self.path.unlink()
        logger.info("Cleared analysis cache %s", self.path)
        return True
