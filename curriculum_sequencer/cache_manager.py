#!/usr/bin/env python3
"""
Model Response Cache
Stores raw model responses keyed by model and prompt so re-running a phase
does not pay for identical requests twice.

This manager provides:
1. md5-keyed JSON cache entries
2. Time-to-live expiration
3. Cache statistics and expired-entry cleanup
"""

import json
import logging
import hashlib
from pathlib import Path
from typing import Dict, Any, Optional
from datetime import datetime, timedelta
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """A cached response with its expiry."""
    key: str
    data: Any
    created_at: datetime
    expires_at: Optional[datetime]
    metadata: Dict[str, Any] = field(default_factory=dict)

    def is_expired(self) -> bool:
        if self.expires_at is None:
            return False
        return datetime.now() > self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            'key': self.key,
            'data': self.data,
            'created_at': self.created_at.isoformat(),
            'expires_at': self.expires_at.isoformat() if self.expires_at else None,
            'metadata': self.metadata
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CacheEntry':
        return cls(
            key=data['key'],
            data=data['data'],
            created_at=datetime.fromisoformat(data['created_at']),
            expires_at=datetime.fromisoformat(data['expires_at']) if data.get('expires_at') else None,
            metadata=data.get('metadata', {})
        )


class CacheManager:
    """File-backed cache of model responses."""

    def __init__(self, cache_dir: Path, ttl_hours: int = 24):
        self.cache_dir = Path(cache_dir) / "llm"
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.ttl = timedelta(hours=ttl_hours) if ttl_hours > 0 else None

    @staticmethod
    def make_key(model: str, prompt: str, **options: Any) -> str:
        """Stable key over the model, the prompt and any generation options."""
        parts = [model, prompt] + [f"{k}={v}" for k, v in sorted(options.items())]
        return hashlib.md5("\x1f".join(parts).encode("utf-8")).hexdigest()

    def _cache_file(self, key: str) -> Path:
        return self.cache_dir / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        """Cached response for ``key``, or None when absent, expired or unreadable."""
        cache_file = self._cache_file(key)
        if not cache_file.exists():
            return None

        try:
            with open(cache_file, 'r', encoding='utf-8') as f:
                entry = CacheEntry.from_dict(json.load(f))
        except (OSError, ValueError, KeyError) as e:
            logger.warning(f"Failed to load cache entry {cache_file}: {e}")
            return None

        if entry.is_expired():
            logger.debug(f"Cache entry expired: {key[:12]}")
            return None
        return entry.data

    def put(self, key: str, response: str, **metadata: Any) -> None:
        now = datetime.now()
        entry = CacheEntry(
            key=key,
            data=response,
            created_at=now,
            expires_at=now + self.ttl if self.ttl else None,
            metadata=metadata
        )
        try:
            with open(self._cache_file(key), 'w', encoding='utf-8') as f:
                json.dump(entry.to_dict(), f, indent=2, ensure_ascii=False)
        except OSError as e:
            logger.warning(f"Failed to store cache entry {key[:12]}: {e}")

    def get_cache_stats(self) -> Dict[str, int]:
        valid_entries = 0
        expired_entries = 0
        files = list(self.cache_dir.glob("*.json"))

        for cache_file in files:
            try:
                with open(cache_file, 'r', encoding='utf-8') as f:
                    entry = CacheEntry.from_dict(json.load(f))
            except (OSError, ValueError, KeyError):
                continue
            if entry.is_expired():
                expired_entries += 1
            else:
                valid_entries += 1

        return {
            'total_files': len(files),
            'valid_entries': valid_entries,
            'expired_entries': expired_entries
        }

    def cleanup_expired_cache(self) -> int:
        """Remove expired entries; returns how many were removed."""
        removed_count = 0
        for cache_file in self.cache_dir.glob("*.json"):
            try:
                with open(cache_file, 'r', encoding='utf-8') as f:
                    entry = CacheEntry.from_dict(json.load(f))
            except (OSError, ValueError, KeyError) as e:
                logger.warning(f"Error checking cache expiry {cache_file}: {e}")
                continue
            if entry.is_expired():
                cache_file.unlink()
                removed_count += 1

        if removed_count > 0:
            logger.info(f"Cleaned up {removed_count} expired cache entries")
        return removed_count
