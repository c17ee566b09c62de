"""
Run-scoped caching of bulk directory listings.

Foreign Security Principal discovery scans every group of every other
configured domain. Fetching those listings is by far the most expensive
directory operation, so each domain's listing is loaded at most once per
resolution run and shared read-only by all workers.

Thread-safety:
- Cache dict and statistics protected by an RLock
- One load lock per key, so concurrent workers asking for the same domain
  wait for a single load instead of issuing their own
"""

import threading
from typing import Any, Callable, Dict

from .logging import debug, info


class GroupListCache:
    """
    In-memory, load-once cache keyed by domain.

    Nothing is persisted; a new instance is created for every resolution run.
    """

    def __init__(self):
        self._entries: Dict[str, Any] = {}
        self._lock = threading.RLock()
        self._load_locks: Dict[str, threading.Lock] = {}

        self.stats = {
            "hits": 0,
            "misses": 0,
            "loads": 0,
        }

    @staticmethod
    def _key(domain: str) -> str:
        return domain.lower()

    def get_or_load(self, domain: str, loader: Callable[[str], Any]) -> Any:
        """
        Return the cached listing for a domain, calling loader(domain) on first use.

        Concurrent callers for the same domain block on a per-domain lock, so
        loader runs at most once per domain for the lifetime of the cache. If
        loader raises, nothing is cached and the exception propagates.

        Args:
            domain: Domain name (case-insensitive)
            loader: Callable producing the listing for the domain

        Returns:
            The cached (or freshly loaded) listing
        """
        key = self._key(domain)
        with self._lock:
            if key in self._entries:
                self.stats["hits"] += 1
                return self._entries[key]
            load_lock = self._load_locks.setdefault(key, threading.Lock())

        with load_lock:
            # Another worker may have finished the load while we waited
            with self._lock:
                if key in self._entries:
                    self.stats["hits"] += 1
                    return self._entries[key]
                self.stats["misses"] += 1

            debug(f"Cache: Loading group listing for {domain}")
            value = loader(domain)

            with self._lock:
                self._entries[key] = value
                self.stats["loads"] += 1
            return value

    def print_stats(self):
        """Print cache statistics."""
        info("Group listing cache:")
        info(f"  Domains loaded: {self.stats['loads']}")
        info(f"  Hits: {self.stats['hits']}")
        info(f"  Misses: {self.stats['misses']}")
