"""
Tracemark — FastAPI backend

Endpoints:
    GET  /api/health                                        — health check
    GET  /api/children/{child_id}/screenshots/{screenshot_id} — watermarked view
    POST /api/watermark/extract                             — trace a leaked copy
    POST /api/watermark/capacity                            — can this image carry a mark?

Every view is watermarked fresh for the requesting viewer and served with
no-cache headers. If watermarking fails the request fails; the original
bytes are never served as a fallback.
"""

import io
import logging
import time

import structlog
from PIL import Image

from fastapi import Depends, FastAPI, File, Form, HTTPException, UploadFile, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.errors import ImageReadError
from core.payload import WatermarkPayload
from core.watermark import (
    embed_watermark,
    extract_watermark,
    get_payload_bit_length,
    has_watermark_capacity,
)
from web.config import settings
from web.services import (
    AuditRecorder,
    FamilyDirectory,
    ScreenshotNotFound,
    ScreenshotStorage,
    TokenVerifier,
)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        (
            structlog.dev.ConsoleRenderer()
            if settings.debug
            else structlog.processors.JSONRenderer()
        ),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        logging.getLevelName(settings.log_level.upper())
    ),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=True,
)

log = structlog.get_logger()

# ---------------------------------------------------------------------------
# App setup
# ---------------------------------------------------------------------------

app = FastAPI(
    title       = settings.app_title,
    description = "Serves per-viewer watermarked screenshots and traces leaked copies.",
    version     = settings.app_version,
)

if settings.cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins     = settings.cors_origins,
        allow_credentials = True,
        allow_methods     = ["GET", "POST"],
        allow_headers     = ["*"],
    )

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, private",
    "Pragma"       : "no-cache",
    "Expires"      : "0",
}

_bearer_scheme = HTTPBearer(auto_error=False)


# ---------------------------------------------------------------------------
# Dependencies, overridden in tests via app.dependency_overrides
# ---------------------------------------------------------------------------

def get_token_verifier() -> TokenVerifier:
    return TokenVerifier(settings.api_tokens)


def get_family_directory() -> FamilyDirectory:
    return FamilyDirectory.from_file(settings.family_registry)


def get_storage() -> ScreenshotStorage:
    return ScreenshotStorage(settings.storage_dir)


def get_audit_recorder() -> AuditRecorder:
    return AuditRecorder()


def get_watermark_overrides() -> dict:
    return settings.watermark_overrides()


def get_viewer_id(
    credentials : HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
    verifier    : TokenVerifier = Depends(get_token_verifier),
) -> str:
    """Resolve the bearer token to a viewer id or reject with 401."""
    viewer_id = verifier.verify(credentials.credentials) if credentials else None
    if viewer_id is None:
        raise HTTPException(
            status_code = status.HTTP_401_UNAUTHORIZED,
            detail      = "Not authenticated",
            headers     = {"WWW-Authenticate": "Bearer"},
        )
    return viewer_id


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def read_upload(upload: UploadFile) -> bytes:
    data = upload.file.read(settings.max_upload_bytes + 1)
    if len(data) > settings.max_upload_bytes:
        raise HTTPException(
            status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail      = f"Upload exceeds {settings.max_upload_mb} MB.",
        )
    return data


def media_type_for(image_bytes: bytes) -> str:
    with Image.open(io.BytesIO(image_bytes)) as img:
        return Image.MIME.get(img.format, "application/octet-stream")


def record_view(audit: AuditRecorder, **event) -> None:
    """Write an audit event. A failed write is logged and never blocks the view."""
    try:
        audit.record_view(**event)
    except Exception as e:
        log.warning("audit_write_failed", audit_error=str(e), **event)


# ---------------------------------------------------------------------------
# API Routes
# ---------------------------------------------------------------------------

@app.get("/api/health")
def health():
    return {"status": "ok", "version": settings.app_version}


@app.get("/api/children/{child_id}/screenshots/{screenshot_id}")
def view_screenshot(
    child_id      : str,
    screenshot_id : str,
    viewer_id     : str              = Depends(get_viewer_id),
    families      : FamilyDirectory  = Depends(get_family_directory),
    storage       : ScreenshotStorage = Depends(get_storage),
    audit         : AuditRecorder    = Depends(get_audit_recorder),
    overrides     : dict             = Depends(get_watermark_overrides),
):
    if not families.can_view(viewer_id, child_id):
        raise HTTPException(
            status_code = status.HTTP_403_FORBIDDEN,
            detail      = "Not authorized to view this child's screenshots.",
        )

    try:
        original = storage.fetch(child_id, screenshot_id)
    except ScreenshotNotFound:
        raise HTTPException(
            status_code = status.HTTP_404_NOT_FOUND,
            detail      = "Screenshot not found.",
        )
    except OSError as e:
        log.error("storage_read_failed", child_id=child_id,
                  screenshot_id=screenshot_id, error=str(e))
        raise HTTPException(
            status_code = status.HTTP_503_SERVICE_UNAVAILABLE,
            detail      = "Screenshot storage is unavailable.",
        )

    view_timestamp = int(time.time() * 1000)
    payload = WatermarkPayload(
        viewer_id      = viewer_id,
        view_timestamp = view_timestamp,
        screenshot_id  = screenshot_id,
    )
    event = {
        "viewer_id"      : viewer_id,
        "child_id"       : child_id,
        "screenshot_id"  : screenshot_id,
        "view_timestamp" : view_timestamp,
    }

    try:
        watermarked = embed_watermark(original, payload, overrides)
    except Exception as e:
        log.error("watermark_failed", error=str(e), exc_type=type(e).__name__, **event)
        record_view(audit, watermarked=False, error=str(e), **event)
        raise HTTPException(
            status_code = status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail      = "Watermarking failed; the screenshot cannot be served.",
        )

    record_view(audit, watermarked=True, **event)

    return Response(
        content    = watermarked,
        media_type = media_type_for(watermarked),
        headers    = NO_CACHE_HEADERS,
    )


@app.post("/api/watermark/extract")
def extract_endpoint(
    file             : UploadFile  = File(...),
    reference_width  : int | None  = Form(None),
    reference_height : int | None  = Form(None),
    offset_x         : int         = Form(0),
    offset_y         : int         = Form(0),
    viewer_id        : str         = Depends(get_viewer_id),
    overrides        : dict        = Depends(get_watermark_overrides),
):
    if (reference_width is None) != (reference_height is None):
        raise HTTPException(
            status_code = status.HTTP_400_BAD_REQUEST,
            detail      = "reference_width and reference_height must be given together.",
        )
    reference_size = (
        (reference_width, reference_height)
        if reference_width is not None else None
    )

    data = read_upload(file)
    try:
        result = extract_watermark(data, overrides, reference_size, (offset_x, offset_y))
    except ImageReadError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except ValueError as e:
        raise HTTPException(
            status_code = status.HTTP_400_BAD_REQUEST,
            detail      = f"Invalid extraction parameters: {e}",
        )

    log.info(
        "watermark_trace",
        requested_by = viewer_id,
        valid        = result.valid,
        confidence   = round(result.confidence, 4),
    )

    return JSONResponse(content={
        **result.to_dict(),
        "probably_watermarked": result.probably_watermarked,
    })


@app.post("/api/watermark/capacity")
def capacity_endpoint(
    file      : UploadFile = File(...),
    overrides : dict       = Depends(get_watermark_overrides),
):
    data = read_upload(file)
    return {
        "has_capacity" : has_watermark_capacity(data, overrides),
        "payload_bits" : get_payload_bit_length(),
    }
