"""Cached resource store.

A keyed cache with a per-key TTL, forced refresh and single-flight
fetches. Every read in the workspace goes through it.

Semantics:
- A read within TTL of the last successful fetch is served from cache
  without a fetch (``from_cache=True``).
- A stale read or a forced refresh fetches. While the fetch is in flight
  ``loading`` is True and the previous data stays visible.
- Concurrent refreshes of one key share a single in-flight task, so only
  one fetch writes back (last write wins per key).
- A forced refresh never settles for a fetch that started before it was
  requested. Each entry counts refresh requests in ``generation``; a
  fetch that began at an older generation is followed by another one.
- A failed fetch records ``error`` and keeps the last known data.
- The shared fetch runs without any caller's signal. A caller's signal
  cancels only that caller's wait; the fetch itself is cancelled when no
  caller is left waiting, and a cancelled fetch never marks the entry as
  synced.

The store is a plain instance; callers receive it by injection.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from . import conventions
from .errors import FetchCancelled

logger = logging.getLogger(__name__)

# fetcher() -> data
Fetcher = Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class ResourceSnapshot:
    """What a reader sees for one key at one moment."""

    data: Any = None
    loading: bool = False
    error: str | None = None
    from_cache: bool = False
    last_updated: str | None = None


@dataclass
class _Entry:
    fetcher: Fetcher | None = None
    ttl: float | None = None
    data: Any = None
    error: str | None = None
    fetched_at: float | None = None  # clock() of last successful fetch
    last_updated: str | None = None  # wall-clock ISO of the same moment
    generation: int = 0  # refresh requests so far
    attempted: int = 0  # generation the last finished fetch started at
    synced: int = 0  # generation the stored data was fetched at
    waiters: int = 0
    task: asyncio.Task[None] | None = None

    @property
    def loading(self) -> bool:
        return self.task is not None and not self.task.done()


async def await_cancellable(
    awaitable: Awaitable[Any], signal: asyncio.Event | None
) -> Any:
    """Await *awaitable*, raising FetchCancelled as soon as *signal* is set."""
    if signal is None:
        return await awaitable
    if signal.is_set():
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise FetchCancelled("Fetch cancelled before it started")

    work = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(signal.wait())
    try:
        done, _ = await asyncio.wait(
            {work, waiter}, return_when=asyncio.FIRST_COMPLETED
        )
    except asyncio.CancelledError:
        work.cancel()
        raise
    finally:
        waiter.cancel()

    if work in done:
        return work.result()

    work.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await work
    raise FetchCancelled("Fetch cancelled by caller")


class CachedResourceStore:
    """Keyed TTL cache with stale-while-revalidate and single-flight refresh.

    Usage:
        store = CachedResourceStore()
        store.register(key, fetcher, ttl=45)
        snapshot = await store.get(key)
        await store.refresh(key, force=True)
    """

    def __init__(
        self,
        *,
        default_ttl: float = conventions.WORKSPACE_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[str, _Entry] = {}

    # --- Registration ---

    def register(self, key: str, fetcher: Fetcher, *, ttl: float | None = None) -> None:
        """Bind *fetcher* to *key*. Existing cached data is kept."""
        entry = self._entries.setdefault(key, _Entry())
        entry.fetcher = fetcher
        if ttl is not None:
            entry.ttl = ttl

    def keys(self) -> list[str]:
        return list(self._entries)

    # --- Reads ---

    def is_fresh(self, key: str) -> bool:
        entry = self._entries.get(key)
        if entry is None or entry.fetched_at is None:
            return False
        if entry.synced < entry.generation:
            return False
        ttl = entry.ttl if entry.ttl is not None else self._default_ttl
        return self._clock() - entry.fetched_at < ttl

    def peek(self, key: str) -> ResourceSnapshot:
        """Current state of *key* without fetching."""
        entry = self._entries.get(key)
        if entry is None:
            return ResourceSnapshot()
        return self._snapshot(entry, from_cache=entry.fetched_at is not None)

    async def get(
        self,
        key: str,
        fetcher: Fetcher | None = None,
        *,
        ttl: float | None = None,
        signal: asyncio.Event | None = None,
    ) -> ResourceSnapshot:
        """Read *key*, fetching only when the entry is missing or stale."""
        if fetcher is not None:
            self.register(key, fetcher, ttl=ttl)
        entry = self._require(key)
        if self.is_fresh(key):
            logger.debug("Cache hit for %s", key)
            return self._snapshot(entry, from_cache=True)
        return await self.refresh(key, signal=signal)

    # --- Writes ---

    async def refresh(
        self,
        key: str,
        *,
        force: bool = False,
        signal: asyncio.Event | None = None,
    ) -> ResourceSnapshot:
        """Fetch *key* if forced or stale.

        An unforced refresh joins a fetch already in flight. A forced one
        waits for a fetch that started after the request.

        Raises:
            FetchCancelled: *signal* was set before the wait finished.
        """
        entry = self._require(key)
        if not force and self.is_fresh(key):
            return self._snapshot(entry, from_cache=True)
        if signal is not None and signal.is_set():
            raise FetchCancelled("Fetch cancelled before it started")

        if force or not entry.loading:
            entry.generation += 1
        target = entry.generation

        entry.waiters += 1
        try:
            while entry.attempted < target:
                if not entry.loading:
                    entry.task = asyncio.ensure_future(self._drive(key, entry))
                else:
                    logger.debug("Joining in-flight fetch for %s", key)
                await await_cancellable(asyncio.shield(entry.task), signal)
        except (FetchCancelled, asyncio.CancelledError):
            if entry.waiters == 1 and entry.task is not None and entry.loading:
                logger.info("No reader left for %s; cancelling its fetch", key)
                entry.task.cancel()
                entry.task = None
            raise
        finally:
            entry.waiters -= 1
        return self._snapshot(entry, from_cache=entry.error is not None)

    def invalidate(self, key: str) -> None:
        """Mark *key* stale so the next read fetches. Data stays visible."""
        entry = self._entries.get(key)
        if entry is not None:
            entry.generation += 1

    def clear(self) -> None:
        """Drop every entry. In-flight fetches are cancelled."""
        for entry in self._entries.values():
            if entry.task is not None and entry.loading:
                entry.task.cancel()
        self._entries.clear()

    # --- Internals ---

    def _require(self, key: str) -> _Entry:
        entry = self._entries.get(key)
        if entry is None or entry.fetcher is None:
            raise KeyError(f"No fetcher registered for {key!r}")
        return entry

    async def _drive(self, key: str, entry: _Entry) -> None:
        """Fetch until the entry has caught up with every refresh request."""
        while entry.attempted < entry.generation:
            started = entry.generation
            await self._fetch_once(key, entry, started)
            entry.attempted = started

    async def _fetch_once(self, key: str, entry: _Entry, started: int) -> None:
        assert entry.fetcher is not None
        try:
            data = await entry.fetcher()
        except (FetchCancelled, asyncio.CancelledError):
            logger.info("Fetch for %s cancelled", key)
            raise
        except Exception as exc:
            entry.error = str(exc) or exc.__class__.__name__
            logger.warning(
                "Fetch for %s failed; keeping last known data", key, exc_info=True
            )
            return

        entry.data = data
        entry.error = None
        entry.synced = started
        entry.fetched_at = self._clock()
        entry.last_updated = datetime.now(UTC).isoformat()

    @staticmethod
    def _snapshot(entry: _Entry, *, from_cache: bool) -> ResourceSnapshot:
        return ResourceSnapshot(
            data=entry.data,
            loading=entry.loading,
            error=entry.error,
            from_cache=from_cache,
            last_updated=entry.last_updated,
        )
