"""
Cached, fault-tolerant access to the control catalog.

CatalogCache is the only shared mutable state of an assessment. It keeps
one catalog per target version with an absolute and a sliding TTL,
coalesces concurrent refreshes into a single in-flight fetch, and falls
back to an offline copy when the remote source is unavailable. A failed
refresh is served for failure_cache_seconds before the source is tried
again.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Callable

from accord.catalog.loader import (
    CatalogReader,
    FileCatalogReader,
    RemoteCatalogReader,
)
from accord.catalog.retry import RetryPolicy
from accord.config import CatalogOptions
from accord.models import (
    Catalog,
    CatalogResult,
    CatalogSource,
    Control,
    ControlEnhancement,
    normalize_control_id,
)
from accord.observability.logging import get_logger

if TYPE_CHECKING:
    from accord.scanning.cancellation import CancellationToken

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CacheStats:
    """Counters describing cache behaviour."""

    hits: int = 0
    misses: int = 0
    remote_fetches: int = 0
    fallback_loads: int = 0
    failures: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "remote_fetches": self.remote_fetches,
            "fallback_loads": self.fallback_loads,
            "failures": self.failures,
        }


@dataclass
class _CacheEntry:
    catalog: Catalog
    origin: CatalogSource
    fetched_at: datetime
    expires_at: datetime
    sliding_ttl: timedelta
    last_access: datetime

    def is_fresh(self, now: datetime) -> bool:
        return now < self.expires_at and now - self.last_access < self.sliding_ttl


class _PendingRefresh:
    """A refresh in flight that follower threads wait on."""

    def __init__(self) -> None:
        self.done = threading.Event()
        self.result: CatalogResult | None = None


class CatalogCache:
    """
    Fetch, cache, retry and fallback for the versioned control catalog.

    get_catalog() never raises. When both the remote source and the
    offline fallback fail it returns a degraded CatalogResult without a
    catalog, and callers must treat dependent checks as unverifiable.
    """

    def __init__(
        self,
        options: CatalogOptions | None = None,
        remote: CatalogReader | None = None,
        fallback: CatalogReader | None = None,
        retry_policy: RetryPolicy | None = None,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], Any] | None = None,
    ) -> None:
        """
        Initialize the cache.

        Args:
            options: Catalog options; defaults are used when omitted
            remote: Remote reader; built from options.base_url when omitted
            fallback: Offline reader; built from options when omitted and
                the offline fallback is enabled with a path
            retry_policy: Retry policy for remote fetches
            clock: Source of the current time (injectable for tests)
            sleep: Sleep function used between retries; time.sleep, or the
                cancel token's wait when one is passed to get_catalog
        """
        self.options = options or CatalogOptions()
        self._remote = remote or RemoteCatalogReader(self.options.base_url)
        if fallback is None and self.options.enable_offline_fallback:
            if self.options.offline_fallback_path:
                fallback = FileCatalogReader(self.options.offline_fallback_path)
        self._fallback = fallback if self.options.enable_offline_fallback else None
        self._retry = retry_policy or RetryPolicy(
            max_attempts=self.options.max_retry_attempts,
            base_delay=self.options.retry_delay_seconds,
            max_delay=self.options.max_retry_delay_seconds,
            jitter=self.options.retry_jitter_seconds,
        )
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._entries: dict[str, _CacheEntry] = {}
        self._pending: dict[str, _PendingRefresh] = {}
        self._failures: dict[str, tuple[datetime, CatalogResult]] = {}
        self._stats = CacheStats()
        self._events = get_logger("catalog.cache")

    @property
    def cache_key(self) -> str:
        return f"nist-800-53:{self.options.target_version}"

    def stats(self) -> CacheStats:
        """Snapshot of cache counters."""
        with self._lock:
            return CacheStats(**self._stats.to_dict())

    def invalidate(self) -> None:
        """Drop every cached catalog."""
        with self._lock:
            self._entries.clear()
            self._failures.clear()
        logger.info("Catalog cache invalidated")

    def get_catalog(
        self,
        force_refresh: bool = False,
        cancel_token: CancellationToken | None = None,
    ) -> CatalogResult:
        """
        Get the catalog, fetching it when the cache is cold or expired.

        Args:
            force_refresh: Bypass a fresh cache entry and a cached failure
            cancel_token: Stops a refresh before it starts and interrupts
                retry backoff and waits on another caller's refresh

        Returns:
            CatalogResult tagged with its source, or a degraded result
        """
        key = self.cache_key
        with self._lock:
            now = self._clock()
            entry = self._entries.get(key)
            if entry is not None and not force_refresh and entry.is_fresh(now):
                entry.last_access = now
                self._stats.hits += 1
                source = (
                    CatalogSource.FALLBACK
                    if entry.origin == CatalogSource.FALLBACK
                    else CatalogSource.CACHE
                )
                return CatalogResult(entry.catalog, source, entry.fetched_at)

            failure = self._failures.get(key)
            if failure is not None and not force_refresh and now < failure[0]:
                logger.debug("Serving cached catalog failure")
                return failure[1]

            if cancel_token is not None and cancel_token.is_canceled:
                return CatalogResult(None, error="Catalog refresh canceled")

            self._stats.misses += 1
            pending = self._pending.get(key)
            leader = pending is None
            if leader:
                pending = _PendingRefresh()
                self._pending[key] = pending

        if not leader:
            logger.debug("Waiting for in-flight catalog refresh")
            if not self._wait_for(pending, cancel_token):
                if cancel_token is not None and cancel_token.is_canceled:
                    return CatalogResult(None, error="Catalog refresh canceled")
                return CatalogResult(None, error="Timed out waiting for catalog refresh")
            return pending.result or CatalogResult(None, error="Catalog refresh failed")

        result = CatalogResult(None, error="Catalog refresh did not complete")
        try:
            result = self._refresh(key, cancel_token)
        except Exception as e:
            logger.exception(f"Unexpected error refreshing catalog: {e}")
            result = CatalogResult(None, error=f"Unexpected error: {e}")
        finally:
            canceled = cancel_token is not None and cancel_token.is_canceled
            with self._lock:
                self._pending.pop(key, None)
                if not result.is_degraded:
                    self._failures.pop(key, None)
                else:
                    self._stats.failures += 1
                    window = self.options.failure_cache_seconds
                    if window > 0 and not canceled:
                        until = self._clock() + timedelta(seconds=window)
                        self._failures[key] = (until, result)
            pending.result = result
            pending.done.set()
        return result

    def _max_wait_seconds(self) -> float:
        retry = self._retry
        backoff = sum(
            min(retry.base_delay ** n, retry.max_delay) + retry.jitter
            for n in range(1, retry.max_attempts)
        )
        return (retry.max_attempts + 1) * self.options.timeout_seconds + backoff

    def _wait_for(
        self, pending: _PendingRefresh, cancel_token: CancellationToken | None
    ) -> bool:
        timeout = self._max_wait_seconds()
        if cancel_token is None:
            return pending.done.wait(timeout=timeout)
        deadline = time.monotonic() + timeout
        while not pending.done.wait(timeout=0.1):
            if cancel_token.is_canceled or time.monotonic() >= deadline:
                return False
        return True

    def _backoff(self, cancel_token: CancellationToken | None) -> Callable[[float], Any]:
        """Sleep function for retries; returns True when canceled."""
        if cancel_token is None:
            return self._sleep or time.sleep
        if self._sleep is None:
            return cancel_token.wait
        sleep = self._sleep

        def interruptible(seconds: float) -> bool:
            sleep(seconds)
            return cancel_token.is_canceled

        return interruptible

    def _refresh(
        self, key: str, cancel_token: CancellationToken | None = None
    ) -> CatalogResult:
        timeout = self.options.timeout_seconds
        try:
            catalog = self._retry.call(
                lambda: self._fetch_remote(timeout),
                sleep=self._backoff(cancel_token),
                description=f"Catalog fetch from {self._remote.location}",
            )
            self._store(key, catalog, CatalogSource.REMOTE)
            self._events.catalog_loaded(
                catalog.version, self._remote.location, catalog.control_count()
            )
            return CatalogResult(catalog, CatalogSource.REMOTE, self._clock())
        except Exception as e:
            remote_error = e
            logger.warning(f"Remote catalog unavailable: {e}")

        if cancel_token is not None and cancel_token.is_canceled:
            return CatalogResult(None, error=f"Catalog refresh canceled: {remote_error}")

        if self._fallback is None:
            return CatalogResult(
                None, error=f"Remote fetch failed and no fallback configured: {remote_error}"
            )

        try:
            catalog = self._fallback.read(timeout)
        except Exception as e:
            logger.error(f"Offline catalog fallback failed: {e}")
            return CatalogResult(
                None,
                error=f"Remote fetch failed ({remote_error}); fallback failed ({e})",
            )

        with self._lock:
            self._stats.fallback_loads += 1
        self._store(key, catalog, CatalogSource.FALLBACK)
        logger.warning(f"Using offline catalog from {self._fallback.location}")
        self._events.catalog_loaded(
            catalog.version, self._fallback.location, catalog.control_count()
        )
        return CatalogResult(catalog, CatalogSource.FALLBACK, self._clock())

    def _fetch_remote(self, timeout: float) -> Catalog:
        with self._lock:
            self._stats.remote_fetches += 1
        return self._remote.read(timeout)

    def _store(self, key: str, catalog: Catalog, origin: CatalogSource) -> None:
        now = self._clock()
        sliding = timedelta(hours=self.options.effective_sliding_ttl_hours)
        if origin == CatalogSource.FALLBACK:
            # Offline copies expire sooner so the remote source is retried
            absolute = sliding
        else:
            absolute = timedelta(hours=self.options.cache_duration_hours)
        with self._lock:
            self._entries[key] = _CacheEntry(
                catalog=catalog,
                origin=origin,
                fetched_at=now,
                expires_at=now + absolute,
                sliding_ttl=sliding,
                last_access=now,
            )

    # Derived read views

    def get_control(self, control_id: str) -> Control | None:
        """
        Look up a control by id, ignoring case.

        Raises:
            ValueError: If control_id is blank
        """
        normalized = normalize_control_id(control_id)
        result = self.get_catalog()
        if result.catalog is None:
            return None
        return result.catalog.get_control(normalized)

    def get_controls_by_family(self, family: str) -> list[Control]:
        """
        Controls of every group whose id starts with family.

        Raises:
            ValueError: If family is blank
        """
        if family is None or not family.strip():
            raise ValueError("Family cannot be null or empty")
        result = self.get_catalog()
        if result.catalog is None:
            return []
        return result.catalog.get_controls_by_family(family)

    def search(self, term: str) -> list[Control]:
        """
        Controls whose id, title or prose contains term.

        Raises:
            ValueError: If term is blank
        """
        if term is None or not term.strip():
            raise ValueError("Search term cannot be null or empty")
        result = self.get_catalog()
        if result.catalog is None:
            return []
        return result.catalog.search(term)

    def get_version(self) -> str:
        """Catalog version, or "Unknown" when no catalog is available."""
        return self.get_catalog().version

    def peek_version(self) -> str:
        """Version of the cached catalog, expired or not, without fetching."""
        with self._lock:
            entry = self._entries.get(self.cache_key)
            return entry.catalog.version if entry else "Unknown"

    def get_control_enhancement(self, control_id: str) -> ControlEnhancement | None:
        """Flattened statement, guidance and objectives of a control."""
        control = self.get_control(control_id)
        if control is None:
            return None
        return ControlEnhancement(
            id=control.id,
            title=control.title,
            statement=control.statement,
            guidance=control.guidance,
            objectives=tuple(control.objectives),
            last_updated=self._clock(),
        )

    def validate_control_id(self, control_id: str) -> bool:
        """Check whether the catalog defines control_id."""
        try:
            return self.get_control(control_id) is not None
        except ValueError:
            return False

    def describe(self) -> dict[str, Any]:
        """Cache state for diagnostics."""
        with self._lock:
            entry = self._entries.get(self.cache_key)
            return {
                "key": self.cache_key,
                "cached": entry is not None,
                "origin": entry.origin.value if entry else None,
                "fetched_at": entry.fetched_at.isoformat() if entry else None,
                "expires_at": entry.expires_at.isoformat() if entry else None,
                "stats": self._stats.to_dict(),
            }
