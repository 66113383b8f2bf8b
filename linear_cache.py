#!/usr/bin/env python3
"""
File-based cache for Linear issue fetches

One JSON file per cache key. Entries are valid until the end of the calendar
day (local clock) on which they were written. Cache failures never break the
fetch: they are reported in debug mode and treated as a miss.
"""

import hashlib
import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from config import DEFAULT_CACHE_DIR
from utils_dates import end_of_day, parse_timestamp


def _now() -> datetime:
    """Current local time (patched in tests)"""
    return datetime.now()


class IssueCache:
    """Cache of fetched issue lists keyed by normalized query options"""

    def __init__(self, cache_dir: Optional[str] = None, status=None):
        self.cache_dir = Path(cache_dir or DEFAULT_CACHE_DIR)
        self.status = status

    @classmethod
    def from_config(cls, config, status=None) -> 'IssueCache':
        """Create a cache in the directory resolved from a MetricsConfig"""
        return cls(config.resolve_cache_dir(), status=status)

    def generate_cache_key(self, options) -> str:
        """Generate a cache key from the cache-relevant query options"""
        # Sort keys to ensure consistent key generation
        key_data = json.dumps(options.cache_key_data(), sort_keys=True)
        return hashlib.md5(key_data.encode()).hexdigest()

    def _get_cache_file(self, cache_key: str) -> Path:
        return self.cache_dir / f"{cache_key}.json"

    def get(self, cache_key: str) -> Optional[Any]:
        """Load a cached payload, or None when missing, corrupted, or expired"""
        cache_file = self._get_cache_file(cache_key)
        if not cache_file.exists():
            return None

        try:
            with open(cache_file, 'r') as f:
                entry = json.load(f)
        except json.JSONDecodeError as e:
            self._log_error(f"Cache read error - corrupted data: {e}")
            return None
        except OSError as e:
            self._log_error(f"Cache read error: {e}")
            return None

        try:
            entry = self._migrate_entry(entry)
            if entry is None or self._is_expired(entry):
                return None
        except (OverflowError, OSError, ValueError) as e:
            self._log_error(f"Cache read error - invalid timestamp: {e}")
            return None

        return entry.get('data')

    def set(self, cache_key: str, payload: Any) -> bool:
        """Save payload with an end-of-today expiry; False on any write error"""
        now = _now()
        entry = {
            'data': payload,
            'cached_at': int(now.timestamp()),
            'expires_at': int(end_of_day(now).timestamp()),
        }

        try:
            content = json.dumps(entry, indent=2)
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            with open(self._get_cache_file(cache_key), 'w') as f:
                f.write(content)
        except (OSError, TypeError, ValueError) as e:
            self._log_error(f"Cache write error: {e}")
            return False

        if isinstance(payload, list):
            self._log_debug(f"💾 Saved {len(payload)} issues to cache")
        return True

    def clear(self) -> int:
        """Remove all cache files in this directory, returning the number removed"""
        if not self.cache_dir.exists():
            return 0

        removed = 0
        for cache_file in self.cache_dir.glob("*.json"):
            try:
                cache_file.unlink()
                removed += 1
            except OSError as e:
                self._log_error(f"Cache clear error: {e}")
        return removed

    def _migrate_entry(self, entry: Any) -> Optional[Dict[str, Any]]:
        """Convert the legacy {issues, timestamp} layout to {data, cached_at}"""
        if not isinstance(entry, dict):
            self._log_error("Cache read error - unexpected entry layout")
            return None

        if 'data' not in entry and 'issues' in entry:
            legacy_time = parse_timestamp(entry.get('timestamp'))
            return {
                'data': entry['issues'],
                'cached_at': legacy_time.timestamp() if legacy_time else None,
            }
        return entry

    def _is_expired(self, entry: Dict[str, Any]) -> bool:
        """Prefer expires_at; otherwise expire at end of the day cached_at falls on"""
        now = _now()
        expires_at = entry.get('expires_at')
        if isinstance(expires_at, (int, float)):
            return now.timestamp() > expires_at

        cached_at = entry.get('cached_at')
        if isinstance(cached_at, (int, float)):
            cached_time = datetime.fromtimestamp(cached_at)
            return now > end_of_day(cached_time)

        return True

    def _log_debug(self, message: str):
        if self.status is not None:
            self.status.debug(message)

    def _log_error(self, message: str):
        if self.status is not None:
            self.status.debug(f"⚠️  {message}")
