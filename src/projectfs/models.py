"""Project descriptor and file record types shared across projectfs."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

# Fractional seconds are normalized to exactly six digits before parsing
_FRACTION_RE = re.compile(r"\.(\d+)")

FOLDER = "folder"
GENERIC_FILE = "file"


def format_timestamp(value: datetime) -> str:
    return value.isoformat()


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, accepting a trailing 'Z' and long fractions."""
    if not isinstance(value, str):
        raise TypeError(f"timestamp must be a string, got {type(value).__name__}")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    text = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    return datetime.fromisoformat(text)


@dataclass(frozen=True)
class Project:
    """Descriptor persisted as project.json inside the project directory."""

    id: str
    name: str
    description: str
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> dict[str, str]:
        # Field order is part of the on-disk format
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Project:
        """Build a Project from decoded JSON. Unknown keys are ignored.

        Raises KeyError, TypeError or ValueError on missing or malformed fields.
        """
        if not isinstance(data, dict):
            raise TypeError("project descriptor must be a JSON object")
        for key in ("id", "name", "description"):
            if not isinstance(data[key], str):
                raise TypeError(f"field {key!r} must be a string")
        if not data["id"]:
            raise ValueError("field 'id' must not be empty")
        return cls(
            id=data["id"],
            name=data["name"],
            description=data["description"],
            created_at=parse_timestamp(data["createdAt"]),
            updated_at=parse_timestamp(data["updatedAt"]),
        )


@dataclass
class FileRecord:
    """One entry of a project's file tree, recomputed from disk on every request."""

    name: str
    path: str
    type: str
    project_id: str
    children: list[FileRecord] = field(default_factory=list)

    @property
    def is_folder(self) -> bool:
        return self.type == FOLDER

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "path": self.path,
            "type": self.type,
            "projectId": self.project_id,
        }
        if self.children:
            data["children"] = [child.to_dict() for child in self.children]
        return data
