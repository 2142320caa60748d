"""
EngineFactory: Factory for creating fully-wired ReshapeEngine instances.

Keeps the wiring of settings, logging, metrics, event bus and persistence out
of ReshapeEngine.__init__().

Usage:
    from yoga.engine_factory import create_engine, EngineDependencies

    deps = EngineDependencies(
        cfg=Settings.load(),
        venue=venue,
        ownership=ownership,
    )
    engine = await create_engine(deps)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

from yoga.core.event_bus import EventBus
from yoga.execution.reshape_engine import ReshapeEngine, ReshapeEngineConfig
from yoga.infra.logging_cfg import build_logger
from yoga.monitoring.metrics_rich import RichMetrics
from yoga.state.liquidity_ledger import LiquidityLedger
from yoga.state.state_store import AtomicStateStore

if TYPE_CHECKING:
    from yoga.config.config import Settings
    from yoga.ownership import OwnershipRegistry
    from yoga.venue.adapter import LiquidityVenue

log = logging.getLogger("yoga")


@dataclass
class EngineDependencies:
    """All dependencies needed to create a ReshapeEngine."""
    cfg: "Settings"
    venue: "LiquidityVenue"
    ownership: "OwnershipRegistry"

    # Optional overrides for testing
    event_bus: Optional[EventBus] = None
    rich_metrics: Optional[RichMetrics] = None
    state_store: Optional[AtomicStateStore] = None
    configure_logging: bool = True


def create_engine_sync(deps: EngineDependencies) -> ReshapeEngine:
    """
    Create a ReshapeEngine without restoring persisted state.

    Args:
        deps: All required dependencies

    Returns:
        ReshapeEngine with an empty position book
    """
    cfg = deps.cfg
    if deps.configure_logging:
        build_logger("yoga", level=cfg.log_level, file_path=cfg.log_file)

    if deps.venue.address != cfg.venue_address:
        raise ValueError(
            f"venue address {deps.venue.address} does not match YOGA_VENUE_ADDRESS {cfg.venue_address}"
        )

    event_bus = deps.event_bus or EventBus(history_size=cfg.event_history_size)
    rich_metrics = deps.rich_metrics
    if rich_metrics is None and cfg.metrics_enabled:
        rich_metrics = RichMetrics()
    state_store = deps.state_store
    if state_store is None and cfg.persist_state:
        state_store = AtomicStateStore(cfg.engine_address, cfg.state_dir)

    engine = ReshapeEngine(
        address=cfg.engine_address,
        venue=deps.venue,
        ownership=deps.ownership,
        ledger=LiquidityLedger(),
        event_bus=event_bus,
        rich_metrics=rich_metrics,
        state_store=state_store,
        config=ReshapeEngineConfig(dust_tolerance=cfg.dust_tolerance),
    )
    log.info(
        f"engine_created address={cfg.engine_address} venue={cfg.venue_address} "
        f"dust_tolerance={cfg.dust_tolerance} persist={state_store is not None}"
    )
    return engine


async def create_engine(deps: EngineDependencies) -> ReshapeEngine:
    """
    Create a ReshapeEngine and reload its position book when persistence is on.

    This is the recommended way to create an engine.
    """
    engine = create_engine_sync(deps)
    restored = await engine.restore_book()
    if restored:
        log.info(f"engine_book_restored positions={restored}")
    return engine
