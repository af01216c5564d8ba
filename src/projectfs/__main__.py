"""Entry point: python -m projectfs [serve|scan]

- No args / "serve": HTTP daemon (reconcile, then serve until SIGTERM)
- "scan":            Reconcile the projects directory once and print it
"""

from __future__ import annotations

import asyncio
import logging
import sys

from projectfs.config import load_config


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _run_serve() -> None:
    """Daemon mode — HTTP API over the projects directory."""
    config = load_config()
    _setup_logging(config.log_level)

    from projectfs.daemon import ProjectFSDaemon

    daemon = ProjectFSDaemon(config)
    try:
        asyncio.run(daemon.run())
    except KeyboardInterrupt:
        pass


async def _scan(config) -> None:
    from projectfs.registry import ProjectRegistry

    registry = ProjectRegistry(config.projects_dir)
    count = await registry.reconcile()
    print(f"{count} project(s) in {config.projects_dir}")
    for project in sorted(await registry.list(), key=lambda p: p.id):
        print(f"  {project.id}  {project.name}")


def _run_scan() -> None:
    """Adopt unknown project directories and list the result."""
    config = load_config()
    _setup_logging(config.log_level)
    asyncio.run(_scan(config))


def main() -> None:
    cmd = sys.argv[1] if len(sys.argv) > 1 else "serve"

    if cmd == "serve":
        _run_serve()
    elif cmd == "scan":
        _run_scan()
    else:
        print("Usage: python -m projectfs [serve|scan]")
        print("  serve  — HTTP API daemon (default)")
        print("  scan   — Reconcile projects directory and list projects")
        sys.exit(1)


if __name__ == "__main__":
    main()
