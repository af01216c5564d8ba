"""HTTP connector — aiohttp routes over the project service facade.

Routes:
    POST   /api/projects            → create project
    GET    /api/projects            → list projects
    GET    /api/projects/{id}       → single project
    DELETE /api/projects/{id}       → delete project and its files
    GET    /api/files               → classified file list (?projectId=&tree=)
    GET    /api/files/content       → raw file bytes (?projectId=&path=)
    POST   /api/files/upload        → multipart upload (projectId, then file)
    GET    /api/health              → liveness + project count
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING

from aiohttp import web

from projectfs.errors import (
    ConflictError,
    NotFoundError,
    ProjectFSError,
    StorageError,
    UploadTooLargeError,
    ValidationError,
)

if TYPE_CHECKING:
    from projectfs.config import ServerConfig
    from projectfs.service import ProjectService

logger = logging.getLogger(__name__)

_UPLOAD_CHUNK = 64 * 1024
_CORS_METHODS = "GET, POST, DELETE, OPTIONS"
_CORS_HEADERS = "Content-Type"

# Most specific first: UploadTooLargeError is a ValidationError
_ERROR_STATUS: list[tuple[type[ProjectFSError], int]] = [
    (UploadTooLargeError, 413),
    (ValidationError, 400),
    (NotFoundError, 404),
    (ConflictError, 409),
    (StorageError, 500),
]


def _error_response(message: str, status: int) -> web.Response:
    return web.json_response({"error": message}, status=status)


def status_for(error: ProjectFSError) -> int:
    for kind, status in _ERROR_STATUS:
        if isinstance(error, kind):
            return status
    return 500


def _truthy(value: str | None) -> bool:
    return (value or "").lower() in ("1", "true", "yes")


class HTTPConnector:
    """Serve the project service over HTTP."""

    def __init__(self, service: ProjectService, config: ServerConfig) -> None:
        self._service = service
        self._config = config
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None

    @property
    def name(self) -> str:
        return "http"

    # ── Application ──────────────────────────────────────────

    def build_app(self) -> web.Application:
        app = web.Application(middlewares=[self._cors_middleware, self._error_middleware])
        app.router.add_post("/api/projects", self._create_project)
        app.router.add_get("/api/projects", self._list_projects)
        app.router.add_get("/api/projects/{id}", self._get_project)
        app.router.add_delete("/api/projects/{id}", self._delete_project)
        app.router.add_get("/api/files", self._list_files)
        app.router.add_get("/api/files/content", self._get_file_content)
        app.router.add_post("/api/files/upload", self._upload_file)
        app.router.add_get("/api/health", self._health)
        return app

    @web.middleware
    async def _cors_middleware(self, request: web.Request, handler) -> web.StreamResponse:
        origin = request.headers.get("Origin", "")
        allowed = bool(origin) and (
            origin in self._config.cors_origins or "*" in self._config.cors_origins
        )

        if request.method == "OPTIONS":
            response: web.StreamResponse = web.Response(status=200)
        else:
            try:
                response = await handler(request)
            except web.HTTPException as exc:
                if allowed:
                    self._apply_cors(exc.headers, origin)
                raise

        if allowed:
            self._apply_cors(response.headers, origin)
        return response

    @staticmethod
    def _apply_cors(headers, origin: str) -> None:
        headers["Access-Control-Allow-Origin"] = origin
        headers["Access-Control-Allow-Methods"] = _CORS_METHODS
        headers["Access-Control-Allow-Headers"] = _CORS_HEADERS
        headers["Vary"] = "Origin"

    @web.middleware
    async def _error_middleware(self, request: web.Request, handler) -> web.StreamResponse:
        try:
            return await handler(request)
        except ProjectFSError as e:
            status = status_for(e)
            if status >= 500:
                logger.error("%s %s failed: %s", request.method, request.path, e)
            return _error_response(str(e), status)

    # ── Projects ─────────────────────────────────────────────

    async def _create_project(self, request: web.Request) -> web.Response:
        try:
            body = await request.json()
        except json.JSONDecodeError as e:
            return _error_response(f"invalid JSON body: {e}", 400)
        if not isinstance(body, dict):
            return _error_response("request body must be a JSON object", 400)

        project = await self._service.create_project(
            body.get("name", ""), body.get("description", "")
        )
        return web.json_response(project.to_dict(), status=201)

    async def _list_projects(self, request: web.Request) -> web.Response:
        projects = await self._service.list_projects()
        return web.json_response([p.to_dict() for p in projects])

    async def _get_project(self, request: web.Request) -> web.Response:
        project = await self._service.get_project(request.match_info["id"])
        return web.json_response(project.to_dict())

    async def _delete_project(self, request: web.Request) -> web.Response:
        await self._service.delete_project(request.match_info["id"])
        return web.json_response({"message": "project deleted successfully"})

    # ── Files ────────────────────────────────────────────────

    async def _list_files(self, request: web.Request) -> web.Response:
        project_id = request.query.get("projectId", "")
        if not project_id:
            return _error_response("projectId is required", 400)
        records = await self._service.list_files(
            project_id, tree=_truthy(request.query.get("tree"))
        )
        return web.json_response([r.to_dict() for r in records])

    async def _get_file_content(self, request: web.Request) -> web.StreamResponse:
        project_id = request.query.get("projectId", "")
        path = request.query.get("path", "")
        if not project_id or not path:
            return _error_response("projectId and path are required", 400)

        target = await self._service.resolve_file(project_id, path)
        return web.FileResponse(
            target,
            headers={
                "Content-Type": "application/octet-stream",
                "Content-Disposition": f'attachment; filename="{target.name}"',
            },
        )

    async def _upload_file(self, request: web.Request) -> web.Response:
        try:
            reader = await request.multipart()
        except (AssertionError, KeyError, ValueError) as e:
            return _error_response(f"expected multipart form data: {e}", 400)

        project_id = ""
        while True:
            part = await reader.next()
            if part is None:
                break
            if part.name == "projectId":
                project_id = (await part.text()).strip()
            elif part.name == "file":
                if not project_id:
                    return _error_response("projectId is required before file", 400)
                record = await self._service.receive_uploaded_file(
                    project_id, part.filename or "", self._iter_part(part)
                )
                body = record.to_dict()
                body["message"] = "file uploaded successfully"
                return web.json_response(body)
            else:
                await part.release()

        if not project_id:
            return _error_response("projectId is required", 400)
        return _error_response("file is required", 400)

    @staticmethod
    async def _iter_part(part) -> AsyncIterator[bytes]:
        while True:
            chunk = await part.read_chunk(_UPLOAD_CHUNK)
            if not chunk:
                break
            yield chunk

    async def _health(self, request: web.Request) -> web.Response:
        projects = await self._service.list_projects()
        return web.json_response({"status": "ok", "projects": len(projects)})

    # ── Lifecycle ────────────────────────────────────────────

    async def start(self) -> None:
        """Start the aiohttp server on the configured host and port."""
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self._config.host, self._config.port)
        await self._site.start()
        logger.info("HTTP API listening on %s:%d", self._config.host, self._config.port)

    async def stop(self) -> None:
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            self._site = None
            logger.info("HTTP API stopped")
