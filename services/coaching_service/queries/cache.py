"""
Keyed query cache.

Usage:
    cache = QueryCache()
    clients = await cache.fetch(
        keys.clients(coach_id),
        lambda: client_service.list_clients(remote, coach_id=coach_id),
    )

Guarantees per key:
- at most one fetch in flight; concurrent callers share it.
- fresh data (younger than the policy's ``stale_time``) is served without a
  network call; data past its stale time is served immediately while a
  background refetch runs. Data invalidated by a write is refetched before
  it is returned again.
- only errors flagged ``retryable`` are retried, with capped exponential
  backoff.
"""

import asyncio
import inspect
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, Optional, Union

from libs.common.logging import get_logger
from services.coaching_service.queries.keys import QueryKey
from services.coaching_service.queries.policies import (
    MUTATION_POLICY,
    QueryPolicy,
    policy_for,
)

logger = get_logger(__name__)

Fetcher = Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class QueryState:
    """Snapshot handed to subscribers."""

    key: QueryKey
    data: Any
    error: Optional[BaseException]
    is_fetching: bool
    is_stale: bool
    updated_at: Optional[float]


@dataclass
class QueryEntry:
    key: QueryKey
    policy: QueryPolicy
    data: Any = None
    has_data: bool = False
    error: Optional[BaseException] = None
    updated_at: Optional[float] = None
    invalidated: bool = False
    generation: int = 0
    fetch_count: int = 0
    retry_count: int = 0
    last_used: float = 0.0
    fetcher: Optional[Fetcher] = None
    in_flight: Optional[asyncio.Task] = None
    listeners: list = field(default_factory=list)

    def is_stale(self, now: float) -> bool:
        if not self.has_data or self.invalidated or self.updated_at is None:
            return True
        return now - self.updated_at >= self.policy.stale_time

    @property
    def is_fetching(self) -> bool:
        return self.in_flight is not None and not self.in_flight.done()


def _matches(key: QueryKey, prefix: QueryKey) -> bool:
    return key[: len(prefix)] == tuple(prefix)


class QueryCache:
    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._entries: dict[QueryKey, QueryEntry] = {}
        self._clock = clock
        self._sleep = sleep

    # ----- entries --------------------------------------------------------

    def _entry(self, key: QueryKey, policy: Optional[QueryPolicy] = None) -> QueryEntry:
        key = tuple(key)
        entry = self._entries.get(key)
        if entry is None:
            entry = QueryEntry(key=key, policy=policy or policy_for(key))
            self._entries[key] = entry
        elif policy is not None:
            entry.policy = policy
        entry.last_used = self._clock()
        return entry

    def entry(self, key: QueryKey) -> Optional[QueryEntry]:
        return self._entries.get(tuple(key))

    def state(self, key: QueryKey) -> Optional[QueryState]:
        entry = self.entry(key)
        return self._snapshot(entry) if entry else None

    def _snapshot(self, entry: QueryEntry) -> QueryState:
        return QueryState(
            key=entry.key,
            data=entry.data,
            error=entry.error,
            is_fetching=entry.is_fetching,
            is_stale=entry.is_stale(self._clock()),
            updated_at=entry.updated_at,
        )

    def _notify(self, entry: QueryEntry) -> None:
        if not entry.listeners:
            return
        snapshot = self._snapshot(entry)
        for listener in list(entry.listeners):
            listener(snapshot)

    # ----- fetching -------------------------------------------------------

    async def _run(self, entry: QueryEntry, fetcher: Fetcher) -> Any:
        generation = entry.generation
        attempt = 0
        while True:
            entry.fetch_count += 1
            try:
                data = await fetcher()
            except Exception as exc:
                if entry.policy.should_retry(exc, attempt):
                    delay = entry.policy.retry_delay(attempt)
                    attempt += 1
                    entry.retry_count += 1
                    logger.info(
                        "Retrying query %s in %.1fs (attempt %d): %s",
                        entry.key,
                        delay,
                        attempt,
                        exc,
                    )
                    await self._sleep(delay)
                    continue
                entry.error = exc
                self._notify(entry)
                raise
            entry.data = data
            entry.has_data = True
            entry.error = None
            entry.updated_at = self._clock()
            # An invalidation that landed mid-flight keeps the result stale.
            entry.invalidated = entry.generation != generation
            self._notify(entry)
            return data

    def _start(self, entry: QueryEntry, fetcher: Fetcher) -> asyncio.Task:
        if entry.is_fetching:
            return entry.in_flight
        entry.fetcher = fetcher
        entry.retry_count = 0
        task = asyncio.ensure_future(self._run(entry, fetcher))
        entry.in_flight = task
        task.add_done_callback(lambda t, e=entry: self._finished(e, t))
        self._notify(entry)
        return task

    def _finished(self, entry: QueryEntry, task: asyncio.Task) -> None:
        if entry.in_flight is task:
            entry.in_flight = None
        if not task.cancelled() and task.exception() is not None:
            logger.warning("Query %s failed: %s", entry.key, task.exception())

    async def fetch(
        self, key: QueryKey, fetcher: Fetcher, policy: Optional[QueryPolicy] = None
    ) -> Any:
        """
        Return data for ``key``, fetching only when missing or stale.

        Data past its stale time is returned at once and refreshed in the
        background; invalidated data waits for the refetch.
        """
        entry = self._entry(key, policy)
        if not entry.is_stale(self._clock()):
            return entry.data
        task = self._start(entry, fetcher)
        if entry.has_data and not entry.invalidated:
            return entry.data
        return await asyncio.shield(task)

    async def refetch(
        self, key: QueryKey, fetcher: Optional[Fetcher] = None
    ) -> Any:
        """Fetch now regardless of freshness, joining any fetch in flight."""
        entry = self._entry(key)
        fetcher = fetcher or entry.fetcher
        if fetcher is None:
            raise LookupError(f"No fetcher registered for {entry.key}")
        return await asyncio.shield(self._start(entry, fetcher))

    def prefetch(
        self, key: QueryKey, fetcher: Fetcher, policy: Optional[QueryPolicy] = None
    ) -> asyncio.Task:
        """Warm the cache without blocking the caller. Failures stay in the entry."""
        entry = self._entry(key, policy)
        if not entry.is_stale(self._clock()):
            return asyncio.ensure_future(asyncio.sleep(0, result=entry.data))
        return self._start(entry, fetcher)

    # ----- direct access --------------------------------------------------

    def get_data(self, key: QueryKey) -> Any:
        entry = self.entry(key)
        return entry.data if entry and entry.has_data else None

    def set_data(self, key: QueryKey, data: Any) -> None:
        entry = self._entry(key)
        entry.data = data
        entry.has_data = True
        entry.error = None
        entry.invalidated = False
        entry.updated_at = self._clock()
        self._notify(entry)

    def subscribe(
        self, key: QueryKey, listener: Callable[[QueryState], None]
    ) -> Callable[[], None]:
        """
        Observe one key. After the returned callable runs the listener is
        never called again, even for fetches already in flight.
        """
        entry = self._entry(key)
        entry.listeners.append(listener)

        def unsubscribe() -> None:
            if listener in entry.listeners:
                entry.listeners.remove(listener)
            entry.last_used = self._clock()

        return unsubscribe

    # ----- invalidation ---------------------------------------------------

    async def invalidate(self, prefix: QueryKey, *, refetch_active: bool = True) -> int:
        """
        Mark every entry under ``prefix`` stale and refetch those that have
        subscribers. Returns the number of entries marked.
        """
        matched = [e for k, e in self._entries.items() if _matches(k, prefix)]
        refetches = []
        for entry in matched:
            entry.invalidated = True
            entry.generation += 1
            self._notify(entry)
            if refetch_active and entry.listeners and entry.fetcher is not None:
                # A fetch started before the invalidation may return old data.
                if entry.is_fetching:
                    await asyncio.gather(entry.in_flight, return_exceptions=True)
                refetches.append(self._start(entry, entry.fetcher))

        if refetches:
            await asyncio.gather(*refetches, return_exceptions=True)
        return len(matched)

    def remove(self, prefix: QueryKey) -> None:
        for key in [k for k in self._entries if _matches(k, prefix)]:
            del self._entries[key]

    def collect_garbage(self) -> int:
        """Drop idle entries (no subscribers, nothing in flight) past their gc time."""
        now = self._clock()
        expired = [
            key
            for key, entry in self._entries.items()
            if not entry.listeners
            and not entry.is_fetching
            and now - entry.last_used >= entry.policy.gc_time
        ]
        for key in expired:
            del self._entries[key]
        return len(expired)

    # ----- mutations ------------------------------------------------------

    async def mutate(
        self,
        mutation: Fetcher,
        *,
        invalidates: Union[
            Iterable[QueryKey], Callable[[Any], Iterable[QueryKey]]
        ] = (),
        on_success: Optional[Callable[[Any], Any]] = None,
        policy: QueryPolicy = MUTATION_POLICY,
    ) -> Any:
        """
        Run a write, invalidate every covering key, then call ``on_success``.

        Invalidation (including refetch of observed keys) completes before
        ``on_success`` starts.
        """
        attempt = 0
        while True:
            try:
                result = await mutation()
                break
            except Exception as exc:
                if not policy.should_retry(exc, attempt):
                    raise
                await self._sleep(policy.retry_delay(attempt))
                attempt += 1

        prefixes = invalidates(result) if callable(invalidates) else invalidates
        for prefix in prefixes:
            await self.invalidate(prefix)

        if on_success is not None:
            outcome = on_success(result)
            if inspect.isawaitable(outcome):
                await outcome
        return result
