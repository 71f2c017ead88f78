from __future__ import annotations


class CatalogSyncError(Exception):
    """Base class for catalog sync failures."""


class RegistryError(CatalogSyncError):
    """Raised when the registry listing endpoint answers with a non-success status."""

    def __init__(self, status_code: int, url: str):
        self.status_code = status_code
        self.url = url
        super().__init__(f"Failed to fetch model page: {status_code} for {url}")


class StartupError(CatalogSyncError):
    """Raised when the directories the service needs cannot be created."""
