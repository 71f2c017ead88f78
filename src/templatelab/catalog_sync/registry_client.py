"""Async client for the HuggingFace-style model registry.

Covers the paginated ``/api/models`` listing, the per-model detail document,
lightweight HEAD probes and full file downloads from the ``resolve`` path.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from .config import SyncConfig
from .errors import RegistryError
from .models import CandidatePage, ModelId, ModelMetadata

logger = logging.getLogger(__name__)


def encode_model_id(model_id: ModelId) -> str:
    """Percent-encode each ``/``-separated segment of a model id independently."""

    return "/".join(quote(segment, safe="") for segment in model_id.split("/"))


def join_url(base_url: str, reference: str) -> Optional[str]:
    """Resolve ``reference`` (absolute or relative) against ``base_url``."""

    try:
        joined = httpx.URL(base_url).join(reference)
    except (httpx.InvalidURL, TypeError, ValueError):
        return None
    if joined.scheme not in {"http", "https"} or not joined.host:
        return None
    return str(joined)


def parse_next_link(header_value: Optional[str], base_url: str) -> Optional[str]:
    """Extract the ``rel="next"`` target from a ``Link`` header.

    The registry may return absolute or relative pagination URLs.
    """

    if not header_value:
        return None
    response = httpx.Response(200, headers={"link": header_value})
    target = response.links.get("next", {}).get("url")
    if not target:
        return None
    return join_url(base_url, target)


class RegistryClient:
    def __init__(
        self,
        config: SyncConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.base_url = config.registry_base_url.rstrip("/")
        self.models_api = f"{self.base_url}/api/models"
        headers: Dict[str, str] = {}
        if config.token:
            headers["Authorization"] = f"Bearer {config.token}"
        self._http = httpx.AsyncClient(
            headers=headers,
            timeout=config.request_timeout_s,
            transport=transport,
        )

    async def __aenter__(self) -> "RegistryClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    def first_page_url(self) -> str:
        return (
            f"{self.models_api}?sort={self.config.sort}"
            f"&direction={self.config.direction}&limit={self.config.page_size}"
        )

    def resolve_cursor(self, cursor: str) -> Optional[str]:
        return join_url(self.base_url, cursor)

    def resolve_url(
        self, model_id: ModelId, filename: str, revision: str = "main"
    ) -> str:
        return f"{self.base_url}/{encode_model_id(model_id)}/resolve/{revision}/{filename}"

    async def list_page(self, url: str) -> CandidatePage:
        resp = await self._http.get(url)
        if not resp.is_success:
            raise RegistryError(resp.status_code, url)
        next_cursor = parse_next_link(resp.headers.get("link"), self.base_url)
        payload = resp.json()
        entries = payload if isinstance(payload, list) else []
        return CandidatePage(entries=entries, next_cursor=next_cursor)

    async def fetch_metadata(self, model_id: ModelId) -> ModelMetadata:
        resp = await self._http.get(f"{self.models_api}/{encode_model_id(model_id)}")
        resp.raise_for_status()
        return resp.json()

    async def head_ok(self, url: str) -> bool:
        try:
            resp = await self._http.head(url, follow_redirects=True)
        except httpx.HTTPError as exc:
            logger.debug("[registry] HEAD %s failed: %s", url, exc)
            return False
        return resp.is_success

    async def fetch_file(self, url: str) -> httpx.Response:
        return await self._http.get(url, follow_redirects=True)
