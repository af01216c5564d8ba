"""Service facade — the operations the transport layer is allowed to call.

Project CRUD goes to the registry; file listing goes to the classifier after
the registry has confirmed the project id. Downloads and uploads resolve paths
strictly inside the project directory.
"""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from collections.abc import AsyncIterable
from pathlib import Path
from typing import IO

from projectfs.errors import (
    NotFoundError,
    StorageError,
    UploadTooLargeError,
    ValidationError,
)
from projectfs.models import FileRecord, Project
from projectfs.registry import ProjectRegistry
from projectfs.store.classifier import build_tree, classify, file_type
from projectfs.store.metadata import SIDECAR_NAME

logger = logging.getLogger(__name__)

DEFAULT_MAX_UPLOAD_BYTES = 100 * 1024 * 1024


class ProjectService:
    """Facade over the registry and classifier."""

    def __init__(
        self,
        registry: ProjectRegistry,
        max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
    ) -> None:
        self.registry = registry
        self.max_upload_bytes = max_upload_bytes

    # ── Projects ─────────────────────────────────────────────

    async def create_project(self, name: str, description: str = "") -> Project:
        if not isinstance(name, str):
            raise ValidationError("name must be a string")
        if description is None:
            description = ""
        if not isinstance(description, str):
            raise ValidationError("description must be a string")
        return await self.registry.create(name, description)

    async def list_projects(self) -> list[Project]:
        return await self.registry.list()

    async def get_project(self, project_id: str) -> Project:
        return await self.registry.get(project_id)

    async def delete_project(self, project_id: str) -> None:
        await self.registry.delete(project_id)

    # ── Files ────────────────────────────────────────────────

    async def list_files(self, project_id: str, tree: bool = False) -> list[FileRecord]:
        """Classify the project's directory tree, recomputed from disk."""
        async with self.registry.lane(project_id):
            records = await asyncio.to_thread(
                classify, self.registry.project_dir(project_id), project_id
            )
        return build_tree(records) if tree else records

    def _contained_path(self, project_id: str, relative_path: str) -> Path:
        if not relative_path or "\x00" in relative_path:
            raise ValidationError("path is required")
        base = self.registry.project_dir(project_id).resolve()
        target = (base / relative_path).resolve()
        if target == base or base not in target.parents:
            raise ValidationError(f"path escapes project directory: {relative_path}")
        return target

    async def resolve_file(self, project_id: str, relative_path: str) -> Path:
        """Return the absolute path of an existing file inside the project."""
        await self.registry.get(project_id)
        target = self._contained_path(project_id, relative_path)
        if not await asyncio.to_thread(target.is_file):
            raise NotFoundError(f"file not found: {relative_path}")
        return target

    async def read_file_bytes(self, project_id: str, relative_path: str) -> bytes:
        target = await self.resolve_file(project_id, relative_path)
        try:
            return await asyncio.to_thread(target.read_bytes)
        except FileNotFoundError as e:
            raise NotFoundError(f"file not found: {relative_path}") from e
        except OSError as e:
            raise StorageError(f"failed to read {relative_path}: {e}") from e

    # ── Uploads ──────────────────────────────────────────────

    @staticmethod
    def _upload_name(filename: str) -> str:
        # Browsers may send a full client-side path; keep only the base name
        name = os.path.basename((filename or "").replace("\\", "/"))
        if name in ("", ".", ".."):
            raise ValidationError("filename is required")
        if "\x00" in name:
            raise ValidationError("filename must not contain NUL bytes")
        if name == SIDECAR_NAME:
            raise ValidationError(f"{SIDECAR_NAME} is reserved")
        return name

    async def receive_uploaded_file(
        self,
        project_id: str,
        filename: str,
        chunks: AsyncIterable[bytes],
    ) -> FileRecord:
        """Stream an uploaded file into the project root.

        Chunks go to a staging file next to the target, which replaces the
        target only once the whole stream is written. A failed upload leaves
        any existing file with that name untouched.
        """
        name = self._upload_name(filename)
        async with self.registry.lane(project_id):
            directory = self.registry.project_dir(project_id)
            target = directory / name
            if await asyncio.to_thread(target.is_dir):
                raise ValidationError(f"{name} is a folder")
            try:
                handle = await asyncio.to_thread(
                    tempfile.NamedTemporaryFile,
                    dir=directory,
                    prefix=f".{name}.",
                    suffix=".part",
                    delete=False,
                )
            except OSError as e:
                raise StorageError(f"failed to open {name}: {e}") from e
            staged = Path(handle.name)

            written = 0
            try:
                async for chunk in chunks:
                    written += len(chunk)
                    if written > self.max_upload_bytes:
                        raise UploadTooLargeError(
                            f"upload exceeds {self.max_upload_bytes} bytes"
                        )
                    await asyncio.to_thread(handle.write, chunk)
                await asyncio.to_thread(handle.close)
                await asyncio.to_thread(os.replace, staged, target)
            except OSError as e:
                await self._discard(handle, staged)
                raise StorageError(f"failed to write {name}: {e}") from e
            except BaseException:
                await self._discard(handle, staged)
                raise

        logger.info("Uploaded %s to project %s (%d bytes)", name, project_id, written)
        return FileRecord(name=name, path=name, type=file_type(name), project_id=project_id)

    @staticmethod
    async def _discard(handle: IO[bytes], staged: Path) -> None:
        try:
            handle.close()
        except OSError as e:
            logger.warning("Could not close staged upload %s: %s", staged, e)
        try:
            await asyncio.to_thread(staged.unlink)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not remove staged upload %s: %s", staged, e)
