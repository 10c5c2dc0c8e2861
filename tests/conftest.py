import pytest
from fastapi.testclient import TestClient

from ballotbox.main import app, get_clock, get_registry
from ballotbox.state import BallotRegistry

T0 = 1_700_000_000_000
DAY_MS = 86_400_000


class FakeClock:
    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


@pytest.fixture
def registry():
    return BallotRegistry()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def client(registry, clock):
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_clock] = clock
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
