"""project.json sidecar persistence — pure serialization, no caching."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from projectfs.errors import CorruptMetadataError, NotFoundError, StorageError
from projectfs.models import Project

logger = logging.getLogger(__name__)

SIDECAR_NAME = "project.json"


class MetadataStore:
    """Read/write the descriptor file of each project under ``root``."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def path_for(self, project_id: str) -> Path:
        return self.root / project_id / SIDECAR_NAME

    def load(self, project_id: str) -> Project:
        """Read and decode the sidecar for ``project_id``.

        Raises NotFoundError when the directory or sidecar is absent and
        CorruptMetadataError when it cannot be read or parsed.
        """
        path = self.path_for(project_id)
        if not path.parent.is_dir() or not path.is_file():
            raise NotFoundError(f"no metadata for project {project_id!r}")

        try:
            raw = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise CorruptMetadataError(f"unreadable metadata {path}: {e}") from e

        try:
            return Project.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            raise CorruptMetadataError(f"invalid metadata {path}: {e}") from e

    def render(self, project: Project) -> str:
        return json.dumps(project.to_dict(), indent=2, ensure_ascii=False) + "\n"

    def save(self, project: Project) -> None:
        """Overwrite the sidecar with the pretty-printed descriptor."""
        path = self.path_for(project.id)
        try:
            path.write_text(self.render(project), encoding="utf-8")
        except OSError as e:
            raise StorageError(f"failed to write metadata {path}: {e}") from e
        logger.debug("Saved metadata: %s", path)
