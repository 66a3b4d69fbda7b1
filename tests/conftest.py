import pytest

from services.coaching_service import tables
from services.coaching_service.queries import CoachingQueries, QueryCache
from tests.factories import ClientFactory, ProfileFactory


class FakeClock:
    """Manually advanced monotonic clock for cache freshness tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock) -> QueryCache:
    return QueryCache(clock=clock, sleep=clock.sleep)


@pytest.fixture
def queries(remote, cache) -> CoachingQueries:
    return CoachingQueries(remote, cache=cache)


@pytest.fixture
def coach(remote) -> dict:
    """An active warm-up coach."""
    (row,) = remote.seed(tables.PROFILES, ProfileFactory.coach())
    return row


@pytest.fixture
def client_row(remote, coach) -> dict:
    (row,) = remote.seed(tables.CLIENTS, ClientFactory.create(coach_id=coach["id"]))
    return row
