"""
Environment-driven configuration with validation.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

log = logging.getLogger("yoga")

DEFAULT_ENGINE_ADDRESS = "0x" + "0" * 36 + "y0ga"
DEFAULT_VENUE_ADDRESS = "0x" + "0" * 36 + "4444"


def env_bool(key: str, default: bool) -> bool:
    val = os.getenv(key)
    if val is None:
        return default
    return val.lower() in {"1", "true", "yes", "y"}


@dataclass(frozen=True)
class Settings:
    # Max |net delta| per asset tolerated on a reshape (rounding dust)
    dust_tolerance: int
    engine_address: str
    venue_address: str
    log_level: str
    log_file: Optional[str]
    state_dir: str
    persist_state: bool
    event_history_size: int
    metrics_enabled: bool

    def dump(self) -> dict:
        """Return a dict of settings for sanity checks/logging."""
        return self.__dict__.copy()

    @classmethod
    def load(cls) -> "Settings":
        def _int_env(key: str, default: int) -> int:
            raw = os.getenv(key)
            if raw is None or raw == "":
                return default
            return int(raw)

        cfg = cls(
            dust_tolerance=_int_env("YOGA_DUST_TOLERANCE", 100),
            engine_address=os.getenv("YOGA_ENGINE_ADDRESS", DEFAULT_ENGINE_ADDRESS),
            venue_address=os.getenv("YOGA_VENUE_ADDRESS", DEFAULT_VENUE_ADDRESS),
            log_level=os.getenv("YOGA_LOG_LEVEL", "INFO").upper(),
            log_file=os.getenv("YOGA_LOG_FILE") or None,
            state_dir=os.getenv("YOGA_STATE_DIR", "state"),
            persist_state=env_bool("YOGA_PERSIST_STATE", False),
            event_history_size=_int_env("YOGA_EVENT_HISTORY_SIZE", 1000),
            metrics_enabled=env_bool("YOGA_METRICS_ENABLED", True),
        )
        _sanity_check(cfg)
        cfg._validate()
        return cfg

    def _validate(self) -> None:
        if self.dust_tolerance < 0:
            raise ValueError("YOGA_DUST_TOLERANCE must be >= 0")
        if not self.engine_address or not self.venue_address:
            raise ValueError("YOGA_ENGINE_ADDRESS and YOGA_VENUE_ADDRESS must be set")
        if self.engine_address == self.venue_address:
            raise ValueError("YOGA_ENGINE_ADDRESS must differ from YOGA_VENUE_ADDRESS")
        if self.log_level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"YOGA_LOG_LEVEL={self.log_level} is not a logging level")
        if self.event_history_size < 0:
            raise ValueError("YOGA_EVENT_HISTORY_SIZE must be >= 0")

        # A zero tolerance rejects reshapes that only differ by rounding
        if self.dust_tolerance == 0:
            log.warning(
                "WARNING: YOGA_DUST_TOLERANCE is 0. "
                "Reshapes that redeploy the same liquidity will fail on rounding."
            )

        if self.dust_tolerance > 10**12:
            log.warning(
                f"WARNING: YOGA_DUST_TOLERANCE={self.dust_tolerance} is very loose. "
                "Reshapes may net-swap material amounts without a slippage bound."
            )

        if self.persist_state and not self.state_dir:
            raise ValueError("YOGA_STATE_DIR must be set when YOGA_PERSIST_STATE is enabled")


def _sanity_check(cfg: Settings) -> None:
    """
    Sanity-check critical settings and log them once at startup so overrides are obvious.
    """
    payload = {
        "event": "config_loaded",
        "dust_tolerance": cfg.dust_tolerance,
        "engine_address": cfg.engine_address,
        "venue_address": cfg.venue_address,
        "persist_state": cfg.persist_state,
    }
    log.info(json.dumps(payload))
