from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from .errors import NoAAAARecordError
from .resolver import Resolver
from .utils import first_ipv6_only

logger = logging.getLogger(__name__)

SWEEP_INTERVAL = 15.0


@dataclass(frozen=True)
class CacheEntry:
    address: str
    resolved_at: float

    def expires_at(self, ttl: int) -> float:
        return self.resolved_at + ttl


class AAAACache:
    """Thread-safe hostname -> IPv6 address cache.

    Lookups are served from memory when possible and resolved through
    ``resolver`` otherwise. Entries are never expired on read: a background
    sweep re-resolves every cached host and evicts the ones that both fail to
    resolve and are older than ``ttl`` seconds.

    The lock only ever guards the dict. Resolver calls happen outside it, so a
    slow lookup never blocks readers of other hosts.

    Example:
        with AAAACache(SystemResolver(), cache=True, ttl=60) as cache:
            addr = cache.lookup("example.com")
    """

    def __init__(
        self,
        resolver: Resolver,
        cache: bool = True,
        ttl: int = 60,
        sweep_interval: float = SWEEP_INTERVAL,
        clock: Callable[[], float] = time.time,
    ):
        if ttl < 0:
            raise ValueError(f"ttl must be >= 0, got {ttl}")
        if sweep_interval <= 0:
            raise ValueError(f"sweep_interval must be > 0, got {sweep_interval}")
        self.resolver = resolver
        self.caching_enabled = bool(cache)
        self.ttl = int(ttl)
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def lookup(self, host: str) -> str:
        """Return the IPv6 address for ``host``, resolving it on a miss.

        Raises NoAAAARecordError when the host has no IPv6-only address; any
        resolver failure propagates as raised.
        """
        with self._lock:
            entry = self._entries.get(host)
        if entry is not None:
            logger.debug("cache hit for %s: %s", host, entry.address)
            return entry.address

        logger.debug("cache miss for %s", host)
        return self._resolve(host).address

    def _resolve(self, host: str) -> CacheEntry:
        addresses = self.resolver.resolve_addresses(host)
        address = first_ipv6_only(addresses)
        if not address:
            raise NoAAAARecordError(host)

        entry = CacheEntry(address=address, resolved_at=self._clock())
        if self.caching_enabled:
            with self._lock:
                self._entries[host] = entry
        return entry

    def sweep_once(self) -> List[str]:
        """Re-resolve every cached host and evict stale, unresolvable ones.

        A successful re-resolution refreshes the entry. A failed one evicts the
        entry only once it is older than the TTL. Returns the evicted hosts.
        """
        with self._lock:
            snapshot = dict(self._entries)

        evicted: List[str] = []
        for host, entry in snapshot.items():
            try:
                self._resolve(host)
                continue
            except Exception as e:
                logger.debug("re-resolving %s failed: %s", host, e)

            if entry.expires_at(self.ttl) >= self._clock():
                continue
            with self._lock:
                # a concurrent lookup may have refreshed or dropped it meanwhile
                if self._entries.get(host) is entry:
                    del self._entries[host]
                    evicted.append(host)

        if evicted:
            logger.info("evicted %d stale host(s): %s", len(evicted), ", ".join(evicted))
        return evicted

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self.sweep_once()
            except Exception:
                logger.exception("cache sweep failed")
            self._stop.wait(self.sweep_interval)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the background sweep thread (no-op if already running)."""
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="aaaacache-sweep", daemon=True)
        self._thread.start()
        logger.info("cache sweep started (ttl=%ds, interval=%ss)", self.ttl, self.sweep_interval)

    def stop(self, timeout: Optional[float] = None) -> None:
        """Signal the sweep to stop and wait for it to finish its iteration."""
        thread = self._thread
        if thread is None:
            return
        self._stop.set()
        thread.join(timeout)
        self._thread = None
        logger.info("cache sweep stopped")

    def __enter__(self) -> "AAAACache":
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.stop()

    def get_entry(self, host: str) -> Optional[CacheEntry]:
        with self._lock:
            return self._entries.get(host)

    def snapshot(self) -> Dict[str, CacheEntry]:
        with self._lock:
            return dict(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, host: object) -> bool:
        with self._lock:
            return host in self._entries
