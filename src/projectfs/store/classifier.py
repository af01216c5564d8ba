"""Directory classifier — turns a project subtree into typed file records."""

from __future__ import annotations

import logging
import os
from pathlib import Path, PurePosixPath

from projectfs.errors import NotFoundError
from projectfs.models import FOLDER, GENERIC_FILE, FileRecord
from projectfs.store.metadata import SIDECAR_NAME

logger = logging.getLogger(__name__)

# Case-sensitive: "REPORT.PDF" is a generic file
EXTENSION_TYPES = {
    ".pdf": "pdf",
    ".txt": "txt",
    ".csv": "csv",
}


def file_type(name: str) -> str:
    """Map a file name to its record type by extension."""
    return EXTENSION_TYPES.get(os.path.splitext(name)[1], GENERIC_FILE)


def classify(root: Path, project_id: str) -> list[FileRecord]:
    """Walk ``root`` depth-first and return one record per entry.

    The root itself and every project.json, at any depth, are skipped.
    Entries that cannot be stat'd and directories that cannot be listed are
    logged and skipped so one bad entry never hides the rest of the tree.
    """
    if not root.is_dir():
        raise NotFoundError(f"project directory not found: {root}")

    records: list[FileRecord] = []
    _walk(root, PurePosixPath(), project_id, records)
    return records


def _walk(
    directory: Path,
    rel_dir: PurePosixPath,
    project_id: str,
    records: list[FileRecord],
) -> None:
    try:
        with os.scandir(directory) as it:
            entries = list(it)
    except OSError as e:
        logger.warning("Skipping unreadable directory %s: %s", directory, e)
        return

    for entry in entries:
        if entry.name == SIDECAR_NAME:
            continue
        try:
            is_dir = entry.is_dir(follow_symlinks=False)
        except OSError as e:
            logger.warning("Skipping entry %s: %s", entry.path, e)
            continue

        rel_path = rel_dir / entry.name
        records.append(
            FileRecord(
                name=entry.name,
                path=str(rel_path),
                type=FOLDER if is_dir else file_type(entry.name),
                project_id=project_id,
            )
        )
        if is_dir:
            _walk(Path(entry.path), rel_path, project_id, records)


def build_tree(records: list[FileRecord]) -> list[FileRecord]:
    """Nest a flat classify() result into top-level records with children."""
    by_path: dict[str, FileRecord] = {}
    roots: list[FileRecord] = []
    for record in records:
        node = FileRecord(
            name=record.name,
            path=record.path,
            type=record.type,
            project_id=record.project_id,
        )
        by_path[node.path] = node
        parent = str(PurePosixPath(node.path).parent)
        if parent in by_path:
            by_path[parent].children.append(node)
        else:
            roots.append(node)
    return roots
