"""Runtime configuration for the catalog sync service and its HTTP facade."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import StartupError


@dataclass
class SyncConfig:
    # Registry
    registry_base_url: str = "https://huggingface.co"
    page_size: int = 250
    sort: str = "downloads"
    direction: int = -1
    request_timeout_s: float = 30.0
    token: Optional[str] = None
    # Storage
    public_dir: Path = Path("public")
    state_dir: Path = Path("out")
    # Sync
    check_concurrency: int = 16
    interval_min: float = 15.0
    reset_on_start: bool = False
    prune_unverified: bool = False
    # Server
    host: str = "0.0.0.0"
    port: int = 3100
    shutdown_timeout_s: float = 5.0
    config_file_path: Optional[str] = None

    @property
    def catalog_path(self) -> Path:
        return Path(self.public_dir) / "models.json"

    @property
    def tokenizer_dir(self) -> Path:
        return Path(self.public_dir) / "hf"

    @property
    def metadata_dir(self) -> Path:
        return Path(self.public_dir) / "model_metadata"

    @property
    def state_path(self) -> Path:
        return Path(self.state_dir) / "sync_state.json"

    @classmethod
    def load(cls) -> "SyncConfig":
        from .config_loader import load_sync_config

        return load_sync_config()

    def ensure_directories(self) -> None:
        """Create the public/state directories and seed an empty catalog."""
        try:
            for directory in (
                Path(self.public_dir),
                Path(self.state_dir),
                self.tokenizer_dir,
                self.metadata_dir,
            ):
                directory.mkdir(parents=True, exist_ok=True)
            if not self.catalog_path.exists():
                self.catalog_path.write_text("[]\n", encoding="utf-8")
        except OSError as exc:
            raise StartupError(f"Could not prepare directories: {exc}") from exc
