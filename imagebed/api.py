"""FastAPI application for the image upload service.

``create_app`` wires the settings, the upload pipeline and the gallery
into three routes: ``POST /upload``, ``POST /manage`` and
``GET /gallery``. Pipeline work runs in the threadpool, and every error
that reaches this layer is turned into a structured JSON failure.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings, get_settings
from .gallery import GalleryStore
from .logging_config import configure_logging
from .manage import apply_action, respond
from .models import UploadCandidate
from .orchestrator import UploadOrchestrator
from .uploader import RemoteHostClient

logger = logging.getLogger(__name__)

INTERNAL_ERROR = "Internal server error, please try again later"
PROCESSING_ERROR = "An error occurred while processing the files, please try again later"


async def _read_candidates(uploads: List[Any]) -> List[UploadCandidate]:
    candidates = []
    for upload in uploads:
        if not isinstance(upload, UploadFile):
            continue
        data = await upload.read()
        candidates.append(
            UploadCandidate.from_bytes(upload.filename or "", upload.content_type or "", data)
        )
    return candidates


async def _read_payload(request: Request) -> Dict[str, Any]:
    content_type = request.headers.get("content-type", "").lower()
    if "application/json" in content_type:
        try:
            payload = json.loads(await request.body() or b"null")
        except ValueError:
            return {}
        return payload if isinstance(payload, dict) else {}
    form = await request.form()
    return dict(form)


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.BaseTransport] = None,
    orchestrator: Optional[UploadOrchestrator] = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Configuration; read from the environment when omitted.
        transport: Optional httpx transport for the remote host client,
            used by tests to stand in for the real service.
        orchestrator: Fully wired pipeline; built from ``settings`` when omitted.
    """
    settings = settings or get_settings()
    configure_logging(settings)
    if orchestrator is None:
        orchestrator = UploadOrchestrator(settings, RemoteHostClient(settings, transport=transport))
    gallery: GalleryStore = orchestrator.gallery

    app = FastAPI(title="imagebed")
    app.state.settings = settings
    app.state.orchestrator = orchestrator
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["POST", "GET", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        message = "Only POST requests are allowed" if exc.status_code == 405 else str(exc.detail)
        return JSONResponse(status_code=exc.status_code, content=respond(False, message))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content=respond(False, "Malformed request"))

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error in %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content=respond(False, INTERNAL_ERROR))

    @app.post("/upload")
    async def upload_endpoint(request: Request):
        client_id = request.client.host if request.client else ""
        try:
            form = await request.form()
            uploads = form.getlist("files[]") or form.getlist("files")
            candidates = await _read_candidates(uploads)
            category = form.get("category")
            target_format = form.get("format")
            result = await run_in_threadpool(
                orchestrator.handle,
                client_id,
                candidates,
                category if isinstance(category, str) else None,
                target_format if isinstance(target_format, str) else None,
            )
        except Exception:
            logger.exception("Upload processing error for %s", client_id)
            return JSONResponse(content=respond(False, PROCESSING_ERROR))
        return JSONResponse(content=result)

    @app.post("/manage")
    async def manage_endpoint(request: Request):
        payload = await _read_payload(request)
        result = await run_in_threadpool(apply_action, gallery, payload)
        return JSONResponse(content=result)

    @app.get("/gallery")
    async def gallery_endpoint():
        snapshot = await run_in_threadpool(gallery.snapshot)
        return {"success": True, "gallery": snapshot}

    return app
