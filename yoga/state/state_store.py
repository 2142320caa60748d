"""
State persistence for the position book (registry + range store).

StateStore does the file IO (write tmp file, then atomic replace).
AtomicStateStore runs it in an executor and serializes access with an
asyncio.Lock so saves never interleave.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict

log = logging.getLogger("yoga")

STATE_VERSION = 1


class StateStore:
    def __init__(self, engine_address: str, state_dir: str) -> None:
        safe = engine_address.replace(":", "_").replace("/", "_")
        self.path = Path(state_dir) / f"position_book_{safe}.json"
        self.tmp = self.path.with_suffix(".tmp")
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except (OSError, json.JSONDecodeError) as exc:
            log.error(f"state_load_error:{exc}")
            return {}
        if data.get("state_version") != STATE_VERSION:
            log.error(f"state_version_mismatch:{data.get('state_version')}")
            return {}
        return data

    def save(self, data: Dict[str, Any]) -> None:
        payload = {"state_version": STATE_VERSION, **data}
        try:
            self.tmp.write_text(json.dumps(payload, indent=2))
            self.tmp.replace(self.path)
        except OSError as exc:
            log.error(f"state_save_error:{exc}")


class AtomicStateStore:
    def __init__(self, engine_address: str, state_dir: str) -> None:
        self._store = StateStore(engine_address, state_dir)
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._store.path

    async def load(self) -> Dict[str, Any]:
        async with self._lock:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(None, self._store.load)

    async def save(self, data: Dict[str, Any]) -> None:
        async with self._lock:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, lambda: self._store.save(data))
