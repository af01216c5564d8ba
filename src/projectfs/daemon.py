"""Daemon process — always-on HTTP service.

Usage: python -m projectfs serve

Manages:
- Startup reconciliation of the projects directory
- HTTP connector lifecycle
- PID file (prevent duplicate instances)
- Graceful shutdown (SIGTERM/SIGINT)
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys

from projectfs.config import ProjectFSConfig, load_config
from projectfs.connectors.http import HTTPConnector
from projectfs.registry import ProjectRegistry
from projectfs.service import ProjectService

logger = logging.getLogger(__name__)


class ProjectFSDaemon:
    """Always-on daemon process."""

    def __init__(self, config: ProjectFSConfig | None = None) -> None:
        self.config = config or load_config()
        self._shutdown_event = asyncio.Event()

    # ── PID file management ──────────────────────────────────

    def _write_pid(self) -> None:
        self.config.pid_file.parent.mkdir(parents=True, exist_ok=True)
        self.config.pid_file.write_text(str(os.getpid()))
        logger.info("PID file written: %s (pid=%d)", self.config.pid_file, os.getpid())

    def _remove_pid(self) -> None:
        if self.config.pid_file.exists():
            self.config.pid_file.unlink()

    def _check_existing(self) -> None:
        if not self.config.pid_file.exists():
            return
        try:
            pid = int(self.config.pid_file.read_text().strip())
            os.kill(pid, 0)  # Check if process exists
            print(f"projectfs already running (pid={pid}). Exiting.", file=sys.stderr)
            sys.exit(1)
        except (ProcessLookupError, ValueError):
            # Stale PID file — remove it
            self._remove_pid()

    # ── Signal handling ──────────────────────────────────────

    def _setup_signals(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._handle_signal, sig)

    def _handle_signal(self, sig: signal.Signals) -> None:
        logger.info("Received %s, shutting down...", sig.name)
        self._shutdown_event.set()

    # ── Build components ─────────────────────────────────────

    def build_service(self) -> ProjectService:
        registry = ProjectRegistry(self.config.projects_dir)
        return ProjectService(registry, max_upload_bytes=self.config.server.max_upload_bytes)

    # ── Main run loop ────────────────────────────────────────

    async def run(self) -> None:
        self._check_existing()
        self._write_pid()
        self._setup_signals()

        service = self.build_service()
        connector = HTTPConnector(service, self.config.server)

        try:
            count = await service.registry.reconcile()
            logger.info(
                "projectfs starting (root=%s, projects=%d)", self.config.projects_dir, count
            )
            await connector.start()
            await self._shutdown_event.wait()
        except asyncio.CancelledError:
            pass
        finally:
            await connector.stop()
            self._remove_pid()
            logger.info("projectfs stopped.")
