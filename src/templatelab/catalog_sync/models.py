"""Dataclasses shared by the catalog sync components."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

ModelId = str
ModelMetadata = Dict[str, Any]

_RESERVED_SEGMENTS = {".", ".."}


def parse_model_id(raw: Any) -> Optional[ModelId]:
    """Return ``raw`` when it is an eligible ``namespace/name`` id, else ``None``."""

    if not isinstance(raw, str) or raw != raw.strip():
        return None
    parts = raw.split("/")
    if len(parts) != 2:
        return None
    namespace, name = parts
    if not namespace or not name:
        return None
    if namespace in _RESERVED_SEGMENTS or name in _RESERVED_SEGMENTS:
        return None
    if "\\" in raw or "\x00" in raw:
        return None
    return raw


@dataclass
class CandidatePage:
    """One registry listing page plus the continuation cursor, if any."""

    entries: List[Any]
    next_cursor: Optional[str] = None

    @property
    def eligible_ids(self) -> List[ModelId]:
        """Eligible ids in listing order, duplicates included."""
        ids: List[ModelId] = []
        for entry in self.entries:
            if not isinstance(entry, dict):
                continue
            model_id = parse_model_id(entry.get("modelId") or entry.get("id"))
            if model_id is not None:
                ids.append(model_id)
        return ids

    @property
    def model_ids(self) -> List[ModelId]:
        return list(dict.fromkeys(self.eligible_ids))


@dataclass
class SyncState:
    next_cursor: Optional[str] = None
    run: int = 0
    last_batch_size: int = 0
    added_valid_models: int = 0
    updated_at: Optional[str] = None

    @classmethod
    def initial(cls) -> "SyncState":
        return cls()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nextCursor": self.next_cursor,
            "run": self.run,
            "lastBatchSize": self.last_batch_size,
            "addedValidModels": self.added_valid_models,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Optional["SyncState"]:
        if not isinstance(data, dict):
            return None
        cursor = data.get("nextCursor")
        if cursor is not None and not isinstance(cursor, str):
            cursor = None
        try:
            run = int(data.get("run") or 0)
            last_batch_size = int(data.get("lastBatchSize") or 0)
            added = int(data.get("addedValidModels") or 0)
        except (TypeError, ValueError):
            return None
        updated_at = data.get("updatedAt")
        return cls(
            next_cursor=cursor or None,
            run=max(run, 0),
            last_batch_size=last_batch_size,
            added_valid_models=added,
            updated_at=updated_at if isinstance(updated_at, str) else None,
        )


@dataclass
class BatchReport:
    """Outcome of one sync batch."""

    run: int
    start_url: str
    fetched: List[ModelId] = field(default_factory=list)
    existing_confirmed: List[ModelId] = field(default_factory=list)
    newly_validated: List[ModelId] = field(default_factory=list)
    failed: int = 0
    errors: Dict[ModelId, str] = field(default_factory=dict)
    catalog_size: int = 0
    next_cursor: Optional[str] = None

    @property
    def valid_ids(self) -> List[ModelId]:
        return [*self.existing_confirmed, *self.newly_validated]
