"""Unit tests for the keyed query cache."""

import asyncio

import pytest

from libs.common.errors import AuthorizationError, TransportError
from services.coaching_service.queries import QueryPolicy, keys, policy_for
from services.coaching_service.queries.policies import (
    MESSAGES_POLICY,
    PROGRESS_POLICY,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class Counter:
    """Fetcher returning how many times it has been called."""

    def __init__(self, gate: asyncio.Event = None):
        self.calls = 0
        self.gate = gate

    async def __call__(self):
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        return self.calls


async def settle():
    """Let scheduled tasks run up to their first await."""
    for _ in range(3):
        await asyncio.sleep(0)


class Flaky:
    """Fetcher raising the queued errors before succeeding."""

    def __init__(self, *errors):
        self.errors = list(errors)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "ok"


# ---------------------------------------------------------------------------
# Fetching
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_concurrent_fetches_share_one_request(cache):
    gate = asyncio.Event()
    fetcher = Counter(gate)
    key = keys.clients("coach-1")

    first = asyncio.ensure_future(cache.fetch(key, fetcher))
    second = asyncio.ensure_future(cache.fetch(key, fetcher))
    await asyncio.sleep(0)
    gate.set()

    assert await asyncio.gather(first, second) == [1, 1]
    assert fetcher.calls == 1
    assert cache.entry(key).fetch_count == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_fresh_data_served_without_network(cache, clock):
    fetcher = Counter()
    key = keys.clients("coach-1")

    assert await cache.fetch(key, fetcher) == 1
    clock.advance(60)
    assert await cache.fetch(key, fetcher) == 1
    assert fetcher.calls == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_stale_data_returned_while_refetching(cache, clock):
    fetcher = Counter()
    key = keys.clients("coach-1")
    await cache.fetch(key, fetcher)

    clock.advance(5 * 60 + 1)
    assert await cache.fetch(key, fetcher) == 1
    assert cache.state(key).is_fetching

    # Joins the background refresh already in flight.
    assert await cache.refetch(key) == 2
    assert fetcher.calls == 2


@pytest.mark.asyncio
@pytest.mark.unit
async def test_refetch_without_fetcher_raises(cache):
    with pytest.raises(LookupError):
        await cache.refetch(keys.clients("nobody"))


# ---------------------------------------------------------------------------
# Retries
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_authorization_errors_are_not_retried(cache, clock):
    fetcher = Flaky(AuthorizationError("denied"))
    key = keys.clients("coach-1")

    with pytest.raises(AuthorizationError):
        await cache.fetch(key, fetcher)

    entry = cache.entry(key)
    assert entry.fetch_count == 1
    assert entry.retry_count == 0
    assert isinstance(entry.error, AuthorizationError)
    assert clock.sleeps == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_transport_errors_retry_with_backoff(cache, clock):
    fetcher = Flaky(TransportError("reset"), TransportError("reset"))
    key = keys.workouts("coach-1")

    assert await cache.fetch(key, fetcher) == "ok"
    assert clock.sleeps == [1.0, 2.0]
    assert cache.entry(key).retry_count == 2
    assert cache.entry(key).error is None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_retries_stop_after_policy_limit(cache, clock):
    fetcher = Flaky(*[TransportError("down")] * 5)
    key = keys.workouts("coach-1")

    with pytest.raises(TransportError):
        await cache.fetch(key, fetcher)

    assert fetcher.calls == 4
    assert clock.sleeps == [1.0, 2.0, 4.0]


@pytest.mark.unit
def test_backoff_is_capped():
    policy = QueryPolicy()
    assert policy.retry_delay(0) == 1.0
    assert policy.retry_delay(3) == 8.0
    assert policy.retry_delay(10) == 30.0


@pytest.mark.unit
def test_policy_per_family():
    assert policy_for(keys.voice_messages("conv-1")) is MESSAGES_POLICY
    assert policy_for(keys.conversations("coach-1")) is MESSAGES_POLICY
    assert policy_for(keys.client_progress("client-1")) is PROGRESS_POLICY
    assert policy_for(keys.clients("coach-1")).stale_time == 300.0


# ---------------------------------------------------------------------------
# Invalidation and mutations
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_invalidation_matches_by_prefix(cache):
    await cache.fetch(keys.client("c-1"), Counter())
    await cache.fetch(keys.client_progress("c-1"), Counter())
    await cache.fetch(keys.client("c-2"), Counter())

    assert await cache.invalidate(keys.client("c-1")) == 2
    assert cache.state(keys.client_progress("c-1")).is_stale
    assert not cache.state(keys.client("c-2")).is_stale


@pytest.mark.asyncio
@pytest.mark.unit
async def test_invalidated_data_is_refetched_before_returning(cache):
    fetcher = Counter()
    key = keys.workouts("coach-1")
    await cache.fetch(key, fetcher)

    await cache.invalidate(key)

    assert await cache.fetch(key, fetcher) == 2


@pytest.mark.asyncio
@pytest.mark.unit
async def test_invalidation_during_fetch_keeps_result_stale(cache):
    gate = asyncio.Event()
    key = keys.sessions("client-1")
    pending = asyncio.ensure_future(cache.fetch(key, Counter(gate)))
    await settle()

    await cache.invalidate(key, refetch_active=False)
    gate.set()
    await pending

    assert cache.state(key).is_stale


@pytest.mark.asyncio
@pytest.mark.unit
async def test_mutation_invalidates_before_on_success(cache):
    version = {"n": 1}

    async def load():
        return version["n"]

    async def write():
        version["n"] = 2
        return "saved"

    stats_key = keys.workout_stats("coach-1")
    await cache.fetch(stats_key, load)
    cache.subscribe(stats_key, lambda state: None)

    seen = []
    result = await cache.mutate(
        write,
        invalidates=[keys.workouts("coach-1")],
        on_success=lambda _: seen.append(cache.get_data(stats_key)),
    )

    assert result == "saved"
    assert seen == [2]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_mutation_retries_once_on_transport_error(cache, clock):
    write = Flaky(TransportError("timeout"))
    assert await cache.mutate(write) == "ok"
    assert clock.sleeps == [1.0]

    failing = Flaky(TransportError("timeout"), TransportError("timeout"))
    with pytest.raises(TransportError):
        await cache.mutate(failing)


# ---------------------------------------------------------------------------
# Subscriptions and garbage collection
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_unsubscribe_stops_notifications(cache):
    gate = asyncio.Event()
    key = keys.clients("coach-1")
    events = []
    unsubscribe = cache.subscribe(key, events.append)

    pending = asyncio.ensure_future(cache.fetch(key, Counter(gate)))
    await asyncio.sleep(0)
    assert events and events[-1].is_fetching

    unsubscribe()
    seen = len(events)
    gate.set()
    await pending
    cache.set_data(key, ["manual"])

    assert len(events) == seen


@pytest.mark.asyncio
@pytest.mark.unit
async def test_subscriber_receives_fetched_data(cache):
    key = keys.clients("coach-1")
    events = []
    cache.subscribe(key, events.append)

    await cache.fetch(key, Counter())

    assert events[-1].data == 1
    assert not events[-1].is_stale


@pytest.mark.asyncio
@pytest.mark.unit
async def test_garbage_collection_skips_observed_entries(cache, clock):
    idle = keys.clients("coach-1")
    watched = keys.clients("coach-2")
    await cache.fetch(idle, Counter())
    await cache.fetch(watched, Counter())
    cache.subscribe(watched, lambda state: None)

    clock.advance(10 * 60 + 1)

    assert cache.collect_garbage() == 1
    assert cache.entry(idle) is None
    assert cache.entry(watched) is not None
