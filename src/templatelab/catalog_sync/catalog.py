"""Durable, sorted list of model ids that passed validation."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Iterable, List, Tuple

import icu

from .models import ModelId
from .storage import read_json, write_json_atomic

logger = logging.getLogger(__name__)


# Root-locale ICU collation: case-insensitive at the primary level.
_COLLATOR = icu.Collator.createInstance(icu.Locale.getRoot())


def _collation_key(model_id: ModelId) -> Tuple[bytes, str]:
    # Raw value breaks ties between ids that collate as equal.
    return (_COLLATOR.getSortKey(model_id), model_id)


class Catalog:
    def __init__(self, path: Path):
        self.path = Path(path)

    def _load_sync(self) -> List[ModelId]:
        if not self.path.exists():
            return []
        try:
            data = read_json(self.path)
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as exc:
            logger.warning("[catalog] Unreadable catalog at %s: %s", self.path, exc)
            return []
        if not isinstance(data, list):
            logger.warning("[catalog] Catalog at %s is not a list; ignoring", self.path)
            return []
        return [item for item in data if isinstance(item, str)]

    async def load(self) -> List[ModelId]:
        return await asyncio.to_thread(self._load_sync)

    @staticmethod
    def merge(existing: Iterable[ModelId], new: Iterable[ModelId]) -> List[ModelId]:
        return sorted({*existing, *new}, key=_collation_key)

    async def save(self, model_ids: List[ModelId]) -> None:
        await asyncio.to_thread(write_json_atomic, self.path, list(model_ids))
