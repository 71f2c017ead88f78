"""Batch driver for catalog synchronisation.

One batch walks a single registry page: ids already in the catalog are
re-checked against the local artifact store, everything else goes through
metadata fetch + validation, the results are merged into the catalog and the
pagination cursor is saved for the next batch.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Awaitable, Callable, Dict, List, Optional

import httpx

from .artifact_store import ArtifactStore
from .catalog import Catalog
from .concurrency import bounded_map
from .config import SyncConfig
from .models import BatchReport, ModelId, SyncState
from .registry_client import RegistryClient
from .state import SyncStateStore
from .validator import Validator

logger = logging.getLogger(__name__)

SAMPLE_SIZE = 5


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _sample(ids: List[ModelId]) -> str:
    return ", ".join(ids[:SAMPLE_SIZE]) or "none"


class SyncOrchestrator:
    def __init__(
        self,
        config: SyncConfig,
        client: RegistryClient,
        store: ArtifactStore,
        catalog: Catalog,
        state_store: SyncStateStore,
        validator: Optional[Validator] = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config
        self.client = client
        self.store = store
        self.catalog = catalog
        self.state_store = state_store
        self.validator = validator or Validator(client, store)
        self._clock = clock
        self._sleep = sleep

    def _start_url(self, state: SyncState) -> str:
        first_page = self.client.first_page_url()
        if not state.next_cursor:
            return first_page
        resolved = self.client.resolve_cursor(state.next_cursor)
        if resolved is None:
            logger.warning(
                "[catalog-sync] Invalid saved cursor %r, restarting from first page",
                state.next_cursor,
            )
            return first_page
        return resolved

    async def _process_candidate(
        self, model_id: ModelId, errors: Dict[ModelId, str]
    ) -> bool:
        try:
            # Local artifacts win over any network round trip.
            if await self.store.exists(model_id):
                return True
            metadata = await self.client.fetch_metadata(model_id)
            return await self.validator.validate(model_id, metadata)
        except Exception as exc:  # noqa: BLE001
            errors[model_id] = str(exc) or exc.__class__.__name__
            logger.warning(
                "[catalog-sync] Failed model %s: %s", model_id, errors[model_id]
            )
            return False

    async def run_batch(self, reset: bool = False, startup: bool = False) -> BatchReport:
        state = SyncState.initial() if reset else await self.state_store.load()
        run_number = state.run + 1
        start_url = self._start_url(state)
        logger.info(
            "[catalog-sync] Run #%d starting batch from: %s", run_number, start_url
        )

        page = await self.client.list_page(start_url)
        eligible = page.eligible_ids
        model_ids = page.model_ids
        logger.info("[catalog-sync] Candidates in batch: %d", len(eligible))
        logger.info("[catalog-sync] Unique models fetched: %d", len(model_ids))
        logger.info("[catalog-sync] Sample fetched (up to 5): %s", _sample(model_ids))

        existing = await self.catalog.load()
        existing_set = set(existing)
        limit = self.config.check_concurrency

        known = [model_id for model_id in model_ids if model_id in existing_set]
        still_present = await bounded_map(known, limit, self.store.exists)
        confirmed = [model_id for model_id, ok in zip(known, still_present) if ok]
        confirmed_set = set(confirmed)

        pending = [model_id for model_id in model_ids if model_id not in confirmed_set]
        errors: Dict[ModelId, str] = {}
        outcomes = await bounded_map(
            pending, limit, lambda model_id: self._process_candidate(model_id, errors)
        )
        validated = [model_id for model_id, ok in zip(pending, outcomes) if ok]
        failed = len(pending) - len(validated)

        report = BatchReport(
            run=run_number,
            start_url=start_url,
            fetched=model_ids,
            existing_confirmed=confirmed,
            newly_validated=validated,
            failed=failed,
            errors=errors,
            next_cursor=page.next_cursor,
        )
        logger.info(
            "[catalog-sync] Sample valid (up to 5): %s", _sample(report.valid_ids)
        )

        if self.config.prune_unverified:
            stale = set(known) - confirmed_set - set(validated)
            if stale:
                logger.info(
                    "[catalog-sync] Dropping %d unverified catalog entries", len(stale)
                )
                existing = [model_id for model_id in existing if model_id not in stale]

        merged = Catalog.merge(existing, report.valid_ids)
        await self.catalog.save(merged)
        report.catalog_size = len(merged)

        await self.state_store.save(
            SyncState(
                next_cursor=page.next_cursor,
                run=run_number,
                last_batch_size=len(model_ids),
                added_valid_models=len(report.valid_ids),
                updated_at=self._clock().isoformat(),
            )
        )

        logger.info("[catalog-sync] Added valid models: %d", len(report.valid_ids))
        logger.info(
            "[catalog-sync] Failed validations/downloads this batch: %d", failed
        )
        logger.info("[catalog-sync] Total models in catalog: %d", len(merged))
        logger.info(
            "[catalog-sync] Next cursor saved: %s",
            page.next_cursor or "none (end reached)",
        )
        if startup:
            logger.info("[catalog-sync] Startup mode complete")
        return report

    async def run_forever(
        self,
        interval_min: float,
        reset: bool = False,
        max_iterations: Optional[int] = None,
    ) -> None:
        """Run batches back to back, sleeping ``interval_min`` minutes after each.

        ``reset`` only applies to the first batch. A failed batch is logged and
        retried on the next tick.
        """
        logger.info("[catalog-sync] Daemon mode enabled, interval: %s min", interval_min)
        iteration = 0
        while max_iterations is None or iteration < max_iterations:
            try:
                await self.run_batch(reset=reset and iteration == 0)
            except Exception as exc:  # noqa: BLE001
                logger.error("[catalog-sync] Daemon iteration failed: %s", exc)
            iteration += 1
            await self._sleep(interval_min * 60)


@asynccontextmanager
async def open_orchestrator(
    config: SyncConfig,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> AsyncIterator[SyncOrchestrator]:
    """Wire up every sync component from ``config`` and close the HTTP client on exit."""
    async with RegistryClient(config, transport=transport) as client:
        store = ArtifactStore(config.tokenizer_dir, config.metadata_dir)
        yield SyncOrchestrator(
            config,
            client,
            store,
            Catalog(config.catalog_path),
            SyncStateStore(config.state_path),
            sleep=sleep,
        )
