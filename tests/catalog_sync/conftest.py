"""Shared fixtures for catalog sync tests.

The registry is faked with ``httpx.MockTransport`` so every test runs
offline and can count exactly which endpoints were hit.
"""

import asyncio
import json
import os
from collections import Counter
from pathlib import Path

import httpx
import pytest

from templatelab.catalog_sync import config_loader
from templatelab.catalog_sync.config import SyncConfig
from templatelab.catalog_sync.orchestrator import open_orchestrator

BASE_URL = "https://hub.test"

CHAT_METADATA = {
    "id": "placeholder",
    "config": {
        "tokenizer_config": {
            "chat_template": "{% for m in messages %}{{ m.content }}{% endfor %}"
        }
    },
}


def chat_metadata(model_id: str) -> dict:
    data = json.loads(json.dumps(CHAT_METADATA))
    data["id"] = model_id
    return data


class FakeRegistry:
    """In-memory registry answering listing, detail, HEAD and resolve requests."""

    def __init__(self):
        self.pages: dict = {}
        self.metadata: dict = {}
        self.files: dict = {}
        self.calls: Counter = Counter()
        self.requests: list = []
        self.delay = 0.0
        # Models with a metadata or HEAD request outstanding.
        self.active: Counter = Counter()
        self.max_in_flight = 0
        self.max_head_in_flight = 0
        self.list_status = 200

    # -- setup helpers -------------------------------------------------
    def add_page(self, ids, cursor=None, next_cursor=None, link=None):
        entries = [{"id": model_id, "modelId": model_id} for model_id in ids]
        if link is None and next_cursor is not None:
            link = f'<{BASE_URL}/api/models?cursor={next_cursor}>; rel="next"'
        self.pages[cursor] = (entries, link)

    def add_model(self, model_id, *, metadata=None, tokenizer=None, tokenizer_config=None):
        self.metadata[model_id] = metadata if metadata is not None else chat_metadata(model_id)
        self.files[(model_id, "tokenizer.json")] = (
            tokenizer if tokenizer is not None else {"model": {"type": "BPE"}}
        )
        self.files[(model_id, "tokenizer_config.json")] = (
            tokenizer_config
            if tokenizer_config is not None
            else {"bos_token": "<s>", "eos_token": "</s>"}
        )

    # -- introspection -------------------------------------------------
    def count(self, kind, model_id=None):
        if model_id is None:
            return sum(n for (k, _), n in self.calls.items() if k == kind)
        return self.calls[(kind, model_id)]

    def network_calls_for(self, model_id):
        return sum(n for (_, mid), n in self.calls.items() if mid == model_id)

    # -- transport -----------------------------------------------------
    async def _track(self, model_id, head=False):
        self.active[model_id] += 1
        in_flight = sum(1 for n in self.active.values() if n)
        self.max_in_flight = max(self.max_in_flight, in_flight)
        if head:
            self.max_head_in_flight = max(self.max_head_in_flight, in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        finally:
            self.active[model_id] -= 1

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/api/models":
            self.calls[("list", None)] += 1
            if self.list_status != 200:
                return httpx.Response(self.list_status, json={"error": "boom"})
            cursor = request.url.params.get("cursor")
            entries, link = self.pages.get(cursor, ([], None))
            headers = {"link": link} if link else {}
            return httpx.Response(200, json=entries, headers=headers)

        if path.startswith("/api/models/"):
            model_id = path[len("/api/models/"):]
            self.calls[("metadata", model_id)] += 1
            await self._track(model_id)
            meta = self.metadata.get(model_id)
            if meta is None:
                return httpx.Response(404, json={"error": "not found"})
            if isinstance(meta, int):
                return httpx.Response(meta, json={"error": "failure"})
            return httpx.Response(200, json=meta)

        if "/resolve/main/" in path:
            repo, filename = path.lstrip("/").split("/resolve/main/", 1)
            kind = "head" if request.method == "HEAD" else "get"
            self.calls[(kind, repo)] += 1
            if kind == "head":
                await self._track(repo, head=True)
            body = self.files.get((repo, filename))
            if body is None:
                return httpx.Response(404)
            if isinstance(body, int):
                return httpx.Response(body)
            content = body if isinstance(body, (bytes, str)) else json.dumps(body)
            return httpx.Response(200, content=content)

        return httpx.Response(404)


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    for key in list(os.environ.keys()):
        if key.startswith(config_loader.ENV_PREFIX) or key in {
            *config_loader.TOKEN_ENV_ALIASES,
            config_loader.INTERVAL_ENV_ALIAS,
            config_loader.RESET_ENV_ALIAS,
            config_loader.PORT_ENV_ALIAS,
        }:
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv(config_loader.CONFIG_FILE_ENV, str(tmp_path / "missing.toml"))
    monkeypatch.setenv("TEMPLATELAB_LOG_DIR", str(tmp_path / "logs"))
    yield


@pytest.fixture
def sync_config(tmp_path: Path) -> SyncConfig:
    return SyncConfig(
        registry_base_url=BASE_URL,
        public_dir=tmp_path / "public",
        state_dir=tmp_path / "out",
        check_concurrency=4,
    )


@pytest.fixture
def fake_registry() -> FakeRegistry:
    return FakeRegistry()


@pytest.fixture
def run_batch(sync_config, fake_registry):
    """Run one batch against the fake registry and return its report."""

    def _run(config=None, **kwargs):
        cfg = config or sync_config

        async def _go():
            async with open_orchestrator(
                cfg, transport=httpx.MockTransport(fake_registry.handler)
            ) as orchestrator:
                return await orchestrator.run_batch(**kwargs)

        return asyncio.run(_go())

    return _run
