from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

from .models import SyncState
from .storage import read_json, write_json_atomic

logger = logging.getLogger(__name__)


class SyncStateStore:
    """Persists the pagination cursor and run counter between batches."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def _load_sync(self) -> SyncState:
        if not self.path.exists():
            return SyncState.initial()
        try:
            data = read_json(self.path)
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as exc:
            logger.warning("[catalog-sync] Failed reading state %s: %s", self.path, exc)
            return SyncState.initial()
        state = SyncState.from_dict(data)
        if state is None:
            logger.warning("[catalog-sync] Malformed state in %s; starting over", self.path)
            return SyncState.initial()
        return state

    async def load(self) -> SyncState:
        return await asyncio.to_thread(self._load_sync)

    async def save(self, state: SyncState) -> None:
        await asyncio.to_thread(write_json_atomic, self.path, state.to_dict())
