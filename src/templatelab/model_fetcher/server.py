from __future__ import annotations

import asyncio
import logging
from typing import Optional

import uvicorn

from ..catalog_sync.config import SyncConfig
from .app import create_app
from .supervisor import SyncDaemonSupervisor, sync_loop_command

logger = logging.getLogger(__name__)


def build_server(config: SyncConfig) -> uvicorn.Server:
    return uvicorn.Server(
        uvicorn.Config(
            create_app(config),
            host=config.host,
            port=config.port,
            log_config=None,
        )
    )


async def serve(
    config: SyncConfig,
    *,
    reset: bool = False,
    supervisor: Optional[SyncDaemonSupervisor] = None,
    server: Optional[uvicorn.Server] = None,
    poll_interval_s: float = 1.0,
) -> int:
    """Serve the facade while the sync loop runs as a supervised child.

    Returns the process exit code: 0 after a normal shutdown, the child's
    exit code (or 1) when the sync daemon died on its own.
    """
    supervisor = supervisor or SyncDaemonSupervisor(
        sync_loop_command(config, reset=reset)
    )
    server = server or build_server(config)
    exit_code = 0

    async def watch_daemon() -> None:
        nonlocal exit_code
        while not server.should_exit:
            if not supervisor.is_alive():
                code = supervisor.returncode
                logger.error(
                    "[model-fetcher] Sync daemon exited unexpectedly (code=%s)", code
                )
                exit_code = code if code and code > 0 else 1
                server.should_exit = True
                return
            await asyncio.sleep(poll_interval_s)

    supervisor.start()
    logger.info("[model-fetcher] Serving http://%s:%s", config.host, config.port)
    watcher = asyncio.create_task(watch_daemon())
    try:
        await server.serve()
    finally:
        watcher.cancel()
        logger.info("[model-fetcher] Shutting down sync daemon")
        await asyncio.to_thread(supervisor.stop, config.shutdown_timeout_s)
    return exit_code
