"""Project registry — the single in-memory view of all projects.

The projects directory is the source of truth. The registry is rebuilt by a
full scan at startup (reconcile) and afterwards kept in lockstep by every
mutating call:

1. Map lock — guards the id → Project map and id reservations
2. Lane locks — serialize create/delete/upload/listing per project id
3. Blocking filesystem work runs in worker threads (asyncio.to_thread)
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import shutil
from collections.abc import AsyncIterator, Callable
from dataclasses import replace
from datetime import datetime
from pathlib import Path

from projectfs.errors import (
    ConflictError,
    CorruptMetadataError,
    NotFoundError,
    StorageError,
)
from projectfs.models import Project
from projectfs.store.metadata import MetadataStore

logger = logging.getLogger(__name__)

ID_FORMAT = "%Y%m%d%H%M%S"
ADOPTED_DESCRIPTION = "Auto-discovered project"


def _now() -> datetime:
    return datetime.now().astimezone()


class ProjectRegistry:
    """Authoritative id → Project mapping, reconciled with the projects root."""

    def __init__(
        self,
        root: Path,
        store: MetadataStore | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.root = root
        self.store = store or MetadataStore(root)
        self._clock = clock or _now
        self._projects: dict[str, Project] = {}
        self._reserved: set[str] = set()  # ids being created, not yet inserted
        self._lock = asyncio.Lock()
        self._lane_locks: dict[str, asyncio.Lock] = {}
        self._lane_users: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._projects)

    def project_dir(self, project_id: str) -> Path:
        return self.root / project_id

    # ── Lanes (per-project serialization) ────────────────────

    @contextlib.asynccontextmanager
    async def _lane_lock(self, project_id: str) -> AsyncIterator[None]:
        # Locks are reference-counted and dropped once nobody holds or waits on them
        lock = self._lane_locks.setdefault(project_id, asyncio.Lock())
        self._lane_users[project_id] = self._lane_users.get(project_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lane_users[project_id] -= 1
            if not self._lane_users[project_id]:
                del self._lane_users[project_id]
                del self._lane_locks[project_id]

    @contextlib.asynccontextmanager
    async def lane(self, project_id: str) -> AsyncIterator[Project]:
        """Hold the project's lane and yield its live descriptor."""
        await self.get(project_id)
        async with self._lane_lock(project_id):
            yield await self.get(project_id)

    # ── Startup reconciliation ───────────────────────────────

    async def reconcile(self) -> int:
        """Adopt every unknown project directory. Returns the project count."""
        try:
            await asyncio.to_thread(self.root.mkdir, parents=True, exist_ok=True)
            on_disk = await asyncio.to_thread(self._scan_directories)
        except OSError as e:
            raise StorageError(f"cannot read projects root {self.root}: {e}") from e

        async with self._lock:
            known = set(self._projects)
            reserved = set(self._reserved)

        for project_id in sorted(known - on_disk):
            async with self._lane_lock(project_id):
                if not await asyncio.to_thread(self.project_dir(project_id).is_dir):
                    async with self._lock:
                        self._projects.pop(project_id, None)
                    logger.warning("Dropped project with missing directory: %s", project_id)

        for project_id in sorted(on_disk - known - reserved):
            async with self._lane_lock(project_id):
                async with self._lock:
                    if project_id in self._projects or project_id in self._reserved:
                        continue
                project = await asyncio.to_thread(self._load_or_adopt, project_id)
                if project is None:
                    continue
                async with self._lock:
                    self._projects[project_id] = project

        logger.info("Loaded %d projects from %s", len(self._projects), self.root)
        return len(self._projects)

    def _scan_directories(self) -> set[str]:
        with os.scandir(self.root) as it:
            return {entry.name for entry in it if entry.is_dir(follow_symlinks=False)}

    def _load_or_adopt(self, project_id: str) -> Project | None:
        try:
            project = self.store.load(project_id)
        except (NotFoundError, CorruptMetadataError) as e:
            logger.info("Adopting %s: %s", project_id, e)
            try:
                mtime = self.project_dir(project_id).stat().st_mtime
            except OSError as stat_error:
                logger.warning("Skipping %s: %s", project_id, stat_error)
                return None
            modified = datetime.fromtimestamp(mtime).astimezone()
            project = Project(
                id=project_id,
                name=f"Project {project_id}",
                description=ADOPTED_DESCRIPTION,
                created_at=modified,
                updated_at=modified,
            )
            self._persist_adopted(project)
            logger.info("Created metadata for project: %s (%s)", project.name, project_id)
            return project

        if project.id != project_id:
            logger.warning(
                "Metadata id %r does not match directory %r, rewriting", project.id, project_id
            )
            project = replace(project, id=project_id, updated_at=self._clock())
            self._persist_adopted(project)
        logger.info("Loaded project: %s (%s)", project.name, project_id)
        return project

    def _persist_adopted(self, project: Project) -> None:
        # The directory exists, so the project is adopted even if the sidecar write fails
        try:
            self.store.save(project)
        except StorageError as e:
            logger.warning("Could not persist metadata for %s: %s", project.id, e)

    # ── CRUD ─────────────────────────────────────────────────

    def _generate_id(self, now: datetime) -> str:
        return now.strftime(ID_FORMAT)

    async def create(self, name: str, description: str) -> Project:
        """Create the directory and descriptor for a new project."""
        now = self._clock()
        project_id = self._generate_id(now)

        async with self._lock:
            if project_id in self._projects or project_id in self._reserved:
                raise ConflictError(f"project id {project_id} already exists")
            self._reserved.add(project_id)

        try:
            async with self._lane_lock(project_id):
                project = Project(
                    id=project_id,
                    name=name,
                    description=description,
                    created_at=now,
                    updated_at=now,
                )
                await asyncio.to_thread(self._materialize, project)
                async with self._lock:
                    self._projects[project_id] = project
        finally:
            async with self._lock:
                self._reserved.discard(project_id)

        logger.info("Created project: %s (%s)", name, project_id)
        return project

    def _materialize(self, project: Project) -> None:
        directory = self.project_dir(project.id)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"cannot create projects root {self.root}: {e}") from e
        try:
            directory.mkdir()
        except FileExistsError as e:
            raise ConflictError(f"project directory {directory} already exists") from e
        except OSError as e:
            raise StorageError(f"failed to create {directory}: {e}") from e

        try:
            self.store.save(project)
        except StorageError:
            try:
                shutil.rmtree(directory)
            except OSError as cleanup_error:
                logger.error("Failed to roll back %s: %s", directory, cleanup_error)
            raise

    async def get(self, project_id: str) -> Project:
        async with self._lock:
            project = self._projects.get(project_id)
        if project is None:
            raise NotFoundError(f"project not found: {project_id}")
        return project

    async def list(self) -> list[Project]:
        async with self._lock:
            return list(self._projects.values())

    async def delete(self, project_id: str) -> None:
        """Remove the project directory, then its registry entry."""
        async with self._lane_lock(project_id):
            async with self._lock:
                if project_id not in self._projects:
                    raise NotFoundError(f"project not found: {project_id}")

            directory = self.project_dir(project_id)
            try:
                await asyncio.to_thread(shutil.rmtree, directory)
            except FileNotFoundError:
                logger.warning("Project directory already gone: %s", directory)
            except OSError as e:
                logger.error("Failed to delete project %s: %s", project_id, e)
                raise StorageError(f"failed to delete {directory}: {e}") from e

            async with self._lock:
                self._projects.pop(project_id, None)

        logger.info("Deleted project: %s", project_id)
