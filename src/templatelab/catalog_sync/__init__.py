"""Catalog sync service.

Incrementally walks the model registry, keeps models that ship a tokenizer
and a chat template, stores their artifacts locally and records them in the
catalog served to the playground.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .config import SyncConfig  # pragma: no cover
    from .orchestrator import SyncOrchestrator  # pragma: no cover


def __getattr__(name):
    if name == "SyncConfig":
        from .config import SyncConfig as _CFG

        return _CFG
    if name == "SyncOrchestrator":
        from .orchestrator import SyncOrchestrator as _SO

        return _SO
    raise AttributeError(name)


__all__ = ["SyncConfig", "SyncOrchestrator"]
