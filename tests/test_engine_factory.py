"""
Tests for engine wiring from Settings.
"""

from dataclasses import replace

import pytest

from conftest import ALICE, ENGINE, VENUE
from yoga.config.config import Settings
from yoga.core.event_bus import EventBus
from yoga.engine_factory import EngineDependencies, create_engine, create_engine_sync
from yoga.monitoring.metrics_rich import RichMetrics


@pytest.fixture
def settings(tmp_path):
    return Settings(
        dust_tolerance=50,
        engine_address=ENGINE,
        venue_address=VENUE,
        log_level="INFO",
        log_file=None,
        state_dir=str(tmp_path),
        persist_state=False,
        event_history_size=10,
        metrics_enabled=True,
    )


class TestEngineFactory:
    """Dependency wiring."""

    def test_sync_wiring(self, settings, venue, ownership):
        engine = create_engine_sync(
            EngineDependencies(cfg=settings, venue=venue, ownership=ownership, configure_logging=False)
        )

        assert engine.address == ENGINE
        assert engine.config.dust_tolerance == 50
        assert isinstance(engine.event_bus, EventBus)
        assert isinstance(engine.rich_metrics, RichMetrics)
        assert engine.state_store is None

    def test_metrics_disabled(self, settings, venue, ownership):
        cfg = replace(settings, metrics_enabled=False)
        engine = create_engine_sync(
            EngineDependencies(cfg=cfg, venue=venue, ownership=ownership, configure_logging=False)
        )
        assert engine.rich_metrics is None

    def test_overrides_kept(self, settings, venue, ownership):
        bus, metrics = EventBus(), RichMetrics()
        engine = create_engine_sync(EngineDependencies(
            cfg=settings, venue=venue, ownership=ownership,
            event_bus=bus, rich_metrics=metrics, configure_logging=False,
        ))
        assert engine.event_bus is bus
        assert engine.rich_metrics is metrics

    def test_venue_address_mismatch(self, settings, venue, ownership):
        cfg = replace(settings, venue_address="0x" + "99" * 20)
        with pytest.raises(ValueError):
            create_engine_sync(
                EngineDependencies(cfg=cfg, venue=venue, ownership=ownership, configure_logging=False)
            )

    @pytest.mark.asyncio
    async def test_persistent_engine_restores_book(self, settings, venue, ownership, pool_key, initial_range):
        cfg = replace(settings, persist_state=True)
        deps = EngineDependencies(cfg=cfg, venue=venue, ownership=ownership, configure_logging=False)

        first = await create_engine(deps)
        pid = await first.create(ALICE, pool_key, initial_range)

        second = await create_engine(deps)
        assert second.get_allocations(pid) == first.get_allocations(pid)
        assert second.registry.next_id == 2
