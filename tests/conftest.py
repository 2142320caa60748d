"""
Pytest configuration and fixtures.
Adds the repo root to the Python path so tests can import yoga without an install.
"""

import sys
from pathlib import Path

import pytest

repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from yoga.core.event_bus import EventBus
from yoga.core.types import PoolKey, TargetRange
from yoga.execution.reshape_engine import ReshapeEngine, ReshapeEngineConfig
from yoga.monitoring.metrics_rich import RichMetrics
from yoga.ownership import InMemoryOwnershipRegistry
from yoga.venue.memory_venue import InMemoryVenue

ALICE = "0x" + "a1" * 20
BOB = "0x" + "b0" * 20
CAROL = "0x" + "c4" * 20
ENGINE = "0x" + "e1" * 20
VENUE = "0x" + "44" * 20
TOKEN0 = "0x" + "10" * 20
TOKEN1 = "0x" + "20" * 20

# 1000e18
LIQUIDITY = 1000 * 10 ** 18
FUNDING = 10 ** 24


@pytest.fixture
def pool_key():
    return PoolKey(currency0=TOKEN0, currency1=TOKEN1, fee=3000, tick_spacing=60)


@pytest.fixture
def venue(pool_key):
    """Venue with an initialized pool at tick 0; ALICE and BOB funded."""
    v = InMemoryVenue(VENUE)
    v.initialize_pool(pool_key, tick=0)
    for holder in (ALICE, BOB):
        v.mint_tokens(TOKEN0, holder, FUNDING)
        v.mint_tokens(TOKEN1, holder, FUNDING)
    return v


@pytest.fixture
def ownership():
    return InMemoryOwnershipRegistry()


@pytest.fixture
def event_bus():
    return EventBus(history_size=100)


@pytest.fixture
def rich_metrics():
    return RichMetrics()


@pytest.fixture
def engine(venue, ownership, event_bus, rich_metrics):
    return ReshapeEngine(
        address=ENGINE,
        venue=venue,
        ownership=ownership,
        event_bus=event_bus,
        rich_metrics=rich_metrics,
        config=ReshapeEngineConfig(dust_tolerance=100),
    )


@pytest.fixture
def initial_range():
    return TargetRange(-60, 60, LIQUIDITY)
