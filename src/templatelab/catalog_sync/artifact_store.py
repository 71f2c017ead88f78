"""Local store for the per-model tokenizer and metadata artifacts.

Layout mirrors the ``namespace/name`` structure of the model id::

    <tokenizer_dir>/<namespace>/<name>/tokenizer.json
    <tokenizer_dir>/<namespace>/<name>/tokenizer_config.json
    <metadata_dir>/<namespace>/<name>/metadata.json

A model counts as present only when all three files exist and parse, so a
partially persisted model reads as absent.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Tuple

from .models import ModelId, ModelMetadata, parse_model_id
from .storage import read_json, write_json_atomic

logger = logging.getLogger(__name__)

TOKENIZER_FILE = "tokenizer.json"
TOKENIZER_CONFIG_FILE = "tokenizer_config.json"
METADATA_FILE = "metadata.json"


@dataclass(frozen=True)
class ArtifactPaths:
    tokenizer: Path
    tokenizer_config: Path
    metadata: Path

    def all(self) -> Tuple[Path, Path, Path]:
        return (self.tokenizer, self.tokenizer_config, self.metadata)


class ArtifactStore:
    def __init__(self, tokenizer_dir: Path, metadata_dir: Path):
        self.tokenizer_dir = Path(tokenizer_dir)
        self.metadata_dir = Path(metadata_dir)

    def paths_for(self, model_id: ModelId) -> ArtifactPaths:
        if parse_model_id(model_id) is None:
            raise ValueError(f"Invalid model id: {model_id!r}")
        namespace, name = model_id.split("/")
        tokenizer_root = self.tokenizer_dir / namespace / name
        return ArtifactPaths(
            tokenizer=tokenizer_root / TOKENIZER_FILE,
            tokenizer_config=tokenizer_root / TOKENIZER_CONFIG_FILE,
            metadata=self.metadata_dir / namespace / name / METADATA_FILE,
        )

    def _exists_sync(self, model_id: ModelId) -> bool:
        try:
            paths = self.paths_for(model_id)
        except ValueError:
            return False
        for path in paths.all():
            try:
                read_json(path)
            except (OSError, json.JSONDecodeError, UnicodeDecodeError):
                return False
        return True

    async def exists(self, model_id: ModelId) -> bool:
        return await asyncio.to_thread(self._exists_sync, model_id)

    def _persist_sync(
        self,
        paths: ArtifactPaths,
        tokenizer: Any,
        tokenizer_config: Any,
        metadata: ModelMetadata,
    ) -> None:
        write_json_atomic(paths.tokenizer, tokenizer)
        write_json_atomic(paths.tokenizer_config, tokenizer_config)
        write_json_atomic(paths.metadata, metadata)

    async def persist(
        self,
        model_id: ModelId,
        tokenizer: Any,
        tokenizer_config: Any,
        metadata: ModelMetadata,
    ) -> ArtifactPaths:
        paths = self.paths_for(model_id)
        await asyncio.to_thread(
            self._persist_sync, paths, tokenizer, tokenizer_config, metadata
        )
        logger.debug("[artifact-store] Persisted artifacts for %s", model_id)
        return paths
