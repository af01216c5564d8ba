"""Configuration loading from environment variables and projectfs.toml."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib
from pathlib import Path

_DEFAULT_PROJECTS_DIR = Path("projects")
_CONFIG_FILENAME = "projectfs.toml"
_DEFAULT_CORS_ORIGINS = ["http://localhost:5173"]


@dataclass
class ServerConfig:
    """HTTP listener configuration."""

    host: str = "0.0.0.0"
    port: int = 8080
    cors_origins: list[str] = field(default_factory=lambda: list(_DEFAULT_CORS_ORIGINS))
    max_upload_mb: int = 100

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024


@dataclass
class ProjectFSConfig:
    """Top-level projectfs configuration."""

    server: ServerConfig = field(default_factory=ServerConfig)
    projects_dir: Path = _DEFAULT_PROJECTS_DIR
    pid_file: Path = Path.home() / ".projectfs" / "projectfs.pid"
    log_level: str = "INFO"


def _split_origins(value: str | list[str]) -> list[str]:
    if isinstance(value, list):
        return [str(v).strip() for v in value if str(v).strip()]
    return [v.strip() for v in value.split(",") if v.strip()]


def load_config(config_path: Path | None = None) -> ProjectFSConfig:
    """Load configuration from environment variables and optional projectfs.toml.

    Priority: environment variables > projectfs.toml > defaults.
    """
    file_data: dict = {}
    if config_path and config_path.exists():
        file_data = tomllib.loads(config_path.read_text())
    else:
        # Search current dir and ~/.projectfs/
        for candidate in [
            Path.cwd() / _CONFIG_FILENAME,
            Path.home() / ".projectfs" / _CONFIG_FILENAME,
        ]:
            if candidate.exists():
                file_data = tomllib.loads(candidate.read_text())
                break

    server_data = file_data.get("server", {})

    origins = os.getenv("PROJECTFS_CORS_ORIGINS")
    config = ProjectFSConfig(
        server=ServerConfig(
            host=os.getenv("PROJECTFS_HOST", server_data.get("host", "0.0.0.0")),
            port=int(os.getenv("PROJECTFS_PORT", server_data.get("port", 8080))),
            cors_origins=_split_origins(
                origins
                if origins is not None
                else server_data.get("cors_origins", _DEFAULT_CORS_ORIGINS)
            ),
            max_upload_mb=int(
                os.getenv("PROJECTFS_MAX_UPLOAD_MB", server_data.get("max_upload_mb", 100))
            ),
        ),
        projects_dir=Path(
            os.getenv("PROJECTFS_ROOT", file_data.get("projects_dir", str(_DEFAULT_PROJECTS_DIR)))
        ),
        pid_file=Path(
            os.getenv(
                "PROJECTFS_PID_FILE",
                file_data.get("pid_file", str(Path.home() / ".projectfs" / "projectfs.pid")),
            )
        ),
        log_level=os.getenv("PROJECTFS_LOG_LEVEL", file_data.get("log_level", "INFO")),
    )
    return config
