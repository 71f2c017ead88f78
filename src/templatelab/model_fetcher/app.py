"""Read-only HTTP facade over the catalog and the downloaded artifacts."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from http import HTTPStatus
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from .. import __version__
from ..catalog_sync.config import SyncConfig
from .errors import err_bad_request, err_method_not_allowed, err_not_found, error_payload

logger = logging.getLogger(__name__)

SERVICE_NAME = "model-fetcher"
ALLOWED_METHODS = {"GET", "HEAD"}
MIME_TYPES = {
    ".json": "application/json; charset=utf-8",
    ".txt": "text/plain; charset=utf-8",
    ".wasm": "application/wasm",
}


class HealthStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ok: bool = True
    service: str = SERVICE_NAME
    interval_min: float = Field(..., alias="intervalMin")
    updated_at: str = Field(..., alias="updatedAt")


def content_type_for(path: Path) -> str:
    return MIME_TYPES.get(path.suffix.lower(), "application/octet-stream")


def resolve_under(root: Path, relative: str) -> Optional[Path]:
    """Return ``root / relative`` when it stays inside ``root``, else ``None``."""

    base = Path(root).resolve()
    candidate = (base / relative.lstrip("/")).resolve()
    if candidate == base or base in candidate.parents:
        return candidate
    return None


def _file_response(path: Optional[Path]) -> FileResponse:
    if path is None or not path.is_file():
        raise err_not_found()
    return FileResponse(
        path,
        media_type=content_type_for(path),
        headers={"Cache-Control": "no-cache"},
    )


def create_app(config: SyncConfig) -> FastAPI:
    app = FastAPI(title="templatelab model fetcher", version=__version__)

    @app.middleware("http")
    async def only_get_and_head(request: Request, call_next):
        if request.method.upper() not in ALLOWED_METHODS:
            exc = err_method_not_allowed()
            return JSONResponse(exc.detail, status_code=exc.status_code, headers=exc.headers)
        return await call_next(request)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        if isinstance(exc.detail, dict) and "error" in exc.detail:
            payload = exc.detail
        else:
            payload = error_payload(exc.status_code, HTTPStatus(exc.status_code).phrase)
        return JSONResponse(
            payload, status_code=exc.status_code, headers=getattr(exc, "headers", None)
        )

    @app.exception_handler(Exception)
    async def internal_error(request: Request, exc: Exception):
        logger.error("[model-fetcher] Request %s failed: %s", request.url.path, exc)
        return JSONResponse(error_payload(500, "Internal server error"), status_code=500)

    @app.api_route(
        "/health", methods=["GET", "HEAD"], response_model=HealthStatus
    )
    async def health() -> HealthStatus:
        return HealthStatus(
            interval_min=config.interval_min,
            updated_at=datetime.now(timezone.utc).isoformat(),
        )

    @app.api_route("/models.json", methods=["GET", "HEAD"])
    def catalog_file():
        return _file_response(config.catalog_path)

    def _artifact(root: Path, file_path: str) -> FileResponse:
        if "\x00" in file_path:
            raise err_bad_request()
        return _file_response(resolve_under(root, file_path))

    @app.api_route("/hf/{file_path:path}", methods=["GET", "HEAD"])
    def tokenizer_file(file_path: str):
        return _artifact(config.tokenizer_dir, file_path)

    @app.api_route("/model_metadata/{file_path:path}", methods=["GET", "HEAD"])
    def metadata_file(file_path: str):
        return _artifact(config.metadata_dir, file_path)

    return app
