"""Error kinds raised by the registry, stores and service facade."""

from __future__ import annotations


class ProjectFSError(Exception):
    """Base class for all projectfs errors."""


class NotFoundError(ProjectFSError):
    """A project id or file path does not exist."""


class ConflictError(ProjectFSError):
    """A generated project id collides with a live project or directory."""


class CorruptMetadataError(ProjectFSError):
    """A project.json sidecar exists but cannot be read or parsed."""


class StorageError(ProjectFSError):
    """A directory or file create, write or remove failed."""


class ValidationError(ProjectFSError):
    """The caller supplied an unusable name, path or payload."""


class UploadTooLargeError(ValidationError):
    """An uploaded file exceeded the configured size limit."""
