"""Runs the catalog sync loop as a child process of the HTTP facade."""

from __future__ import annotations

import logging
import os
import subprocess
import sys
import time
from typing import List, Optional, Sequence

from ..catalog_sync.config import SyncConfig

logger = logging.getLogger(__name__)


def sync_loop_command(config: SyncConfig, *, reset: bool = False) -> List[str]:
    cmd = [
        sys.executable,
        "-m",
        "templatelab.catalog_sync",
        "loop",
        f"--interval-min={config.interval_min}",
        f"--public-dir={config.public_dir}",
        f"--state-dir={config.state_dir}",
    ]
    if reset:
        cmd.append("--reset")
    return cmd


class SyncDaemonSupervisor:
    """Spawn, watch and stop the sync loop subprocess."""

    def __init__(self, command: Sequence[str], *, cwd: Optional[str] = None):
        self.command = list(command)
        self.cwd = cwd
        self._proc: Optional[subprocess.Popen] = None

    def start(self) -> int:
        if self._proc is not None and self._proc.poll() is None:
            return self._proc.pid
        self._proc = subprocess.Popen(  # noqa: S603
            self.command,
            cwd=self.cwd,
            env=dict(os.environ),
        )
        logger.info("[model-fetcher] Started sync daemon (pid=%s)", self._proc.pid)
        return self._proc.pid

    def is_alive(self) -> bool:
        return self._proc is not None and self._proc.poll() is None

    @property
    def returncode(self) -> Optional[int]:
        if self._proc is None:
            return None
        return self._proc.poll()

    def stop(self, timeout: float = 5.0) -> Optional[int]:
        """Terminate the child, escalating to a kill after ``timeout`` seconds."""
        proc = self._proc
        if proc is None or proc.poll() is not None:
            return self.returncode
        try:
            proc.terminate()
        except ProcessLookupError:
            return proc.poll()

        deadline = time.monotonic() + max(timeout, 0.1)
        while time.monotonic() < deadline:
            if proc.poll() is not None:
                return proc.returncode
            time.sleep(0.1)

        logger.warning(
            "[model-fetcher] Sync daemon did not stop within %ss; killing", timeout
        )
        proc.kill()
        return proc.wait()
