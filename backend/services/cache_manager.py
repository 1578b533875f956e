"""
Cache Manager for External Lookups
Implements a TTL cache in Firebase so repeated lookups do not hit Gemini,
Google Maps, or the social feed generator again inside their window.

Rows live at cache/{sha256(key)} as:
    {key: str, value: <JSON text>, expires_at: ISO-8601, cached_at: ISO-8601}

The value is stored as JSON text: the database drops None and empty
containers, so [] or {} stored directly would read back as nothing.

Expired rows are never returned but are only removed when overwritten or
when purge_expired() runs.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional
import hashlib
import json
import logging
import re

from firebase_admin.exceptions import FirebaseError

from utils.errors import StoreError

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r'\s')


class _Miss:
    """Sentinel for a cache miss (a cached value may legitimately be falsy)."""

    def __repr__(self):
        return 'MISS'


MISS = _Miss()


class CacheManager:
    """Manages TTL-cached lookup results in Firebase"""

    CACHE_ROOT = 'cache'

    # Cache durations in minutes
    CACHE_DURATIONS = {
        'social-media': 5,   # Mock social feed refreshes quickly
        'geocode': 60,       # Place names rarely move
    }

    def __init__(self, firebase_db, clock: Optional[Callable[[], datetime]] = None):
        """
        Args:
            firebase_db: Firebase `db` module (or a compatible double)
            clock: Returns the current aware UTC datetime; injectable for tests
        """
        self.db = firebase_db
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    @staticmethod
    def build_key(namespace: str, raw: str) -> str:
        """
        Derive a deterministic cache key.

        Geocode keys normalize free text so that casing does not split the
        cache; every whitespace character becomes an underscore.

        Examples:
            >>> CacheManager.build_key('geocode', 'Flood in  Paris')
            'geocode:flood_in__paris'
            >>> CacheManager.build_key('social-media', 'abc123')
            'social-media:abc123'
        """
        if namespace == 'geocode':
            raw = _WHITESPACE.sub('_', raw).lower()
        return f"{namespace}:{raw}"

    def _path(self, key: str) -> str:
        # Firebase paths reject . $ # [ ] / so rows are addressed by digest
        digest = hashlib.sha256(key.encode('utf-8')).hexdigest()
        return f"{self.CACHE_ROOT}/{digest}"

    def get(self, key: str) -> Any:
        """
        Return the cached value for `key`, or MISS.

        A missing row, a digest collision, or an expired row is a miss. Any
        other store failure is raised as StoreError.
        """
        try:
            row = self.db.reference(self._path(key)).get()
        except FirebaseError as e:
            logger.error(f"Cache read error for {key}: {e}")
            raise StoreError(f"Cache read failed for {key}: {e}") from e

        if not row or row.get('key') != key:
            return MISS

        try:
            expires_at = datetime.fromisoformat(row['expires_at'])
        except (KeyError, TypeError, ValueError):
            logger.warning(f"Cache row for {key} has no usable expires_at, ignoring")
            return MISS

        if self.clock() >= expires_at:
            logger.debug(f"Cache EXPIRED: {key}")
            return MISS

        try:
            value = json.loads(row['value'])
        except (KeyError, TypeError, ValueError):
            logger.warning(f"Cache row for {key} has no decodable value, ignoring")
            return MISS

        logger.info(f"Cache HIT: {key}")
        return value

    def set(self, key: str, value: Any, ttl_minutes: int) -> bool:
        """
        Upsert `key` with a fresh expiry. Best-effort: failures are logged
        and reported through the return value only.
        """
        now = self.clock()
        try:
            self.db.reference(self._path(key)).set({
                'key': key,
                'value': json.dumps(value),
                'expires_at': (now + timedelta(minutes=ttl_minutes)).isoformat(),
                'cached_at': now.isoformat()
            })
            return True
        except Exception as e:
            logger.error(f"Cache write error for {key}: {e}")
            return False

    def get_or_compute(self, key: str, producer: Callable[[], Any], ttl_minutes: int) -> Any:
        """
        Return the cached value for `key`, or run `producer`, cache its
        result for `ttl_minutes`, and return it.

        Producer exceptions propagate and nothing is cached.
        """
        cached = self.get(key)
        if cached is not MISS:
            return cached

        logger.info(f"Cache MISS: {key}, running producer")
        value = producer()
        self.set(key, value, ttl_minutes)
        return value

    def clear_cache(self, key: Optional[str] = None):
        """
        Clear one cache entry or the whole cache

        Args:
            key (str, optional): Cache key to clear, or None for all
        """
        if key:
            self.db.reference(self._path(key)).delete()
            logger.info(f"Cleared cache for {key}")
        else:
            self.db.reference(self.CACHE_ROOT).delete()
            logger.info("Cleared all cache")

    def purge_expired(self) -> int:
        """
        Delete every expired or unreadable row.

        Returns:
            int: Number of rows removed
        """
        rows = self.db.reference(self.CACHE_ROOT).get() or {}
        now = self.clock()
        stale = []

        for digest, row in rows.items():
            try:
                if now >= datetime.fromisoformat(row['expires_at']):
                    stale.append(digest)
            except (KeyError, TypeError, ValueError):
                stale.append(digest)

        if stale:
            # Single multi-path write
            self.db.reference(self.CACHE_ROOT).update({digest: None for digest in stale})

        logger.info(f"Purged {len(stale)} expired cache rows")
        return len(stale)
