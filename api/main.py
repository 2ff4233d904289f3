"""
Reel Engine API - FastAPI application for caption overlays and slideshow reels.

=============================================================================
HOW TO RUN
=============================================================================

Local Development:
    uvicorn api.main:app --reload --host 0.0.0.0 --port 8080

Production:
    uvicorn api.main:app --host 0.0.0.0 --port 8080 --workers 4

Local CLI Test (without server, prints a layout and an ffmpeg command):
    python -m api.main --local-test

=============================================================================
ENVIRONMENT VARIABLES
=============================================================================

MEDIA_DIR           - Root folder for stored and generated media (default: ./media)
REELS_SUBDIR        - Subfolder for reels (default: reels)
TMP_SUBDIR          - Subfolder for per-job workspaces (default: tmp)
PUBLIC_BASE_URL     - Base URL for generated media URLs (default: http://localhost:8080)
API_KEY             - Expected X-API-Key header value (default: change-me)
REQUIRE_API_KEY     - Set to false to disable the API key check (default: true)
FFMPEG_PATH         - ffmpeg binary, falls back to IMAGEIO_FFMPEG_EXE (default: ffmpeg)
FFMPEG_TIMEOUT      - Seconds before an encoder run is killed (default: 600)
FETCH_TIMEOUT       - Seconds before a download is abandoned (default: 30)
LOGO_PATH           - Branding logo SVG for /overlay?logo=true (default: ./Logo.svg)
TRANSITION_POLICY   - reject | clamp, for slides too short for their crossfades

=============================================================================
API ENDPOINTS
=============================================================================

GET    /healthz, /health  - Health check
GET    /overlay           - Caption + attribution over an image (JPEG)
GET    /2slidesReel       - Two-slide Ken Burns reel
GET    /3slidesReel       - Three-slide Ken Burns reel
POST   /reel              - 1-4 slide Ken Burns reel (JSON body)
GET    /slideWithAudio    - One slide lasting as long as an audio file
GET    /videoOverlay      - Caption burned into a stored video
GET    /createReel        - 1-4 stored videos stitched with crossfades
GET    /addSubs           - Text burned into a video as one subtitle cue
POST   /store/upload      - Upload a media file
DELETE /store/{file_id}   - Delete a stored file
GET    /media/...         - Stored and generated media

=============================================================================
EXAMPLE REQUESTS
=============================================================================

Health Check:
    curl http://localhost:8080/healthz

Image Overlay:
    curl -H "X-API-Key: change-me" -o out.jpg \\
      "http://localhost:8080/overlay?img=https://example.com/a.jpg&title=Hello%20world&source=Example"

Reel:
    curl -X POST http://localhost:8080/reel \\
      -H "X-API-Key: change-me" -H "Content-Type: application/json" \\
      -d '{
        "slides": [
          {"image": "https://example.com/a.jpg", "title": "first", "duration": 4},
          {"image": "https://example.com/b.jpg", "title": "second", "duration": 5}
        ],
        "transition": "fade"
      }'

Upload:
    curl -X POST http://localhost:8080/store/upload \\
      -H "X-API-Key: change-me" -F "file=@clip.mp4"

=============================================================================
"""

import argparse
import logging
import sys
from contextlib import asynccontextmanager
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from fastapi import Depends, FastAPI, File, Header, HTTPException, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, Field, field_validator
from starlette.exceptions import HTTPException as StarletteHTTPException

from reel_engine import __version__
from reel_engine.config import ConfigError, get_config, init_config
from reel_engine.errors import ExecutionError, ReelEngineError, ValidationError
from reel_engine.graph import build_slides, synthesize
from reel_engine.jobs import (
    new_request_id,
    render_overlay_image,
    render_slide_with_audio,
    render_slides_reel,
    render_stitched_reel,
    render_subtitled_video,
    render_video_overlay,
)
from reel_engine.motion import compute_trajectory
from reel_engine.storage import LocalStorageBackend
from reel_engine.timing import REEL_TRANSITION_SECONDS, reconcile
from reel_engine.typography import layout_caption

# =============================================================================
# Logging Configuration
# =============================================================================

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("reel_engine.api")

ENDPOINTS = [
    "/healthz",
    "/overlay",
    "/2slidesReel",
    "/3slidesReel",
    "/reel",
    "/slideWithAudio",
    "/videoOverlay",
    "/createReel",
    "/addSubs",
    "/store/upload",
    "/store/{file_id}",
]
DEFAULT_DURATION = 4.0
REEL_MAX_LINES = 9

HTTP_ERROR_CODES = {
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}


# =============================================================================
# Pydantic Models
# =============================================================================

class SlideItem(BaseModel):
    """A single slide of a reel."""
    image: str = Field(..., min_length=1, description="Image URL or storage file id")
    title: str = Field(default="", description="Caption text, wrapped and truncated as needed")
    duration: float = Field(default=DEFAULT_DURATION, description="Seconds on screen (1-30)")
    max_lines: int = Field(default=REEL_MAX_LINES, description="Maximum caption lines (1-20)")


class ReelRequest(BaseModel):
    """Request body for /reel endpoint."""
    slides: List[SlideItem] = Field(..., min_length=1, max_length=4)
    transition: str = Field(default="fade", description="Transition kind (only 'fade')")

    @field_validator("transition")
    @classmethod
    def validate_transition(cls, v: str) -> str:
        if v != "fade":
            raise ValueError(f"Invalid transition '{v}'. Must be one of: fade")
        return v


class ReelResponse(BaseModel):
    """Response body for video endpoints."""
    success: bool = True
    request_id: str
    filename: str
    url: str
    duration: float
    slides: int


class UploadResponse(BaseModel):
    """Response body for /store/upload endpoint."""
    success: bool = True
    id: str
    filename: str
    original_name: str
    mime_type: str
    size: int
    url: str
    upload_time: str


class DeleteResponse(BaseModel):
    """Response body for DELETE /store/{file_id}."""
    success: bool = True
    id: str
    filename: str


class HealthResponse(BaseModel):
    """Response body for /health endpoint."""
    status: str
    version: str
    endpoints: List[str]


class ErrorResponse(BaseModel):
    """Error response body."""
    error: str
    detail: str
    request_id: Optional[str] = None


# =============================================================================
# Lifespan - Startup/Shutdown Events
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Validate configuration, create media folders and mount /media on startup."""
    config = get_config()

    # Validate configuration
    try:
        config.validate()
        logger.info("Configuration validated successfully")
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        # Don't fail startup - allow /health to report issues

    config.ensure_dirs()

    # Mount media directory as static files
    # This makes stored and generated media accessible at /media/...
    if not any(getattr(route, "name", None) == "media" for route in app.routes):
        app.mount(
            "/media",
            StaticFiles(directory=str(config.media_dir)),
            name="media"
        )
        logger.info(f"Mounted static files at /media -> {config.media_dir}")

    yield  # Application runs here

    logger.info("Shutting down Reel Engine API")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="Reel Engine API",
    description="Caption overlays and Ken Burns slideshow reels",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


@app.middleware("http")
async def assign_request_id(request: Request, call_next):
    """Give every request a correlation id, echoed in X-Request-ID."""
    request_id = new_request_id()
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


def request_id_of(request: Request) -> str:
    return getattr(request.state, "request_id", "-")


def require_api_key(x_api_key: Optional[str] = Header(default=None)):
    """Reject requests without the configured X-API-Key (when enabled)."""
    config = get_config()
    if not config.require_api_key:
        return
    if not x_api_key:
        raise HTTPException(status_code=401, detail="Missing X-API-Key header")
    if x_api_key != config.api_key:
        raise HTTPException(status_code=403, detail="Invalid API key")


# =============================================================================
# Exception Handlers
# =============================================================================

def error_response(status_code: int, code: str, detail: str, request_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": code,
            "detail": detail,
            "request_id": request_id,
        }
    )


@app.exception_handler(ReelEngineError)
async def reel_engine_error_handler(request: Request, exc: ReelEngineError):
    """Map engine errors to their status code and reason code."""
    request_id = request_id_of(request)
    if exc.status_code >= 500:
        logger.error(f"[{request_id}] {exc.code}: {exc}")
        if isinstance(exc, ExecutionError) and exc.diagnostics:
            logger.error(f"[{request_id}] ffmpeg output (tail):\n{exc.diagnostics}")
    else:
        logger.warning(f"[{request_id}] {exc.code}: {exc}")
    return error_response(exc.status_code, exc.code, str(exc), request_id)


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed request parameters are a 400, like every other validation failure."""
    request_id = request_id_of(request)
    detail = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}"
        for error in exc.errors()
    )
    logger.warning(f"[{request_id}] Validation error: {detail}")
    return error_response(400, ValidationError.code, detail, request_id)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    code = HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR")
    return error_response(exc.status_code, code, str(exc.detail), request_id_of(request))


@app.exception_handler(ConfigError)
async def config_error_handler(request: Request, exc: ConfigError):
    """Handle configuration errors."""
    logger.error(f"Configuration error: {exc}")
    return error_response(500, "CONFIG_ERROR", str(exc), request_id_of(request))


# =============================================================================
# API Endpoints
# =============================================================================

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid request"},
    401: {"model": ErrorResponse, "description": "Missing API key"},
    403: {"model": ErrorResponse, "description": "Invalid API key"},
    404: {"model": ErrorResponse, "description": "Source not found"},
    500: {"model": ErrorResponse, "description": "Server error"},
}


def reel_response(result) -> ReelResponse:
    return ReelResponse(
        request_id=result.request_id,
        filename=result.filename,
        url=result.url,
        duration=result.duration,
        slides=result.slides,
    )


@app.get("/healthz", response_model=HealthResponse, tags=["Health"])
@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns {"status": "ok"} plus the version and endpoint list.
    """
    return {"status": "ok", "version": __version__, "endpoints": ENDPOINTS}


@app.get(
    "/overlay",
    response_class=Response,
    responses=ERROR_RESPONSES,
    dependencies=[Depends(require_api_key)],
    tags=["Images"],
)
def overlay(
    request: Request,
    img: Optional[str] = Query(default=None, description="Image URL or storage file id"),
    title: str = Query(default=""),
    source: str = Query(default=""),
    w: int = Query(default=1080),
    h: int = Query(default=1350),
    max_lines: int = Query(default=5, alias="maxLines"),
    logo: bool = Query(default=False),
):
    """
    Overlay a title (top) and source attribution (bottom right) on an image.

    Returns the composited image as JPEG.
    """
    request_id = request_id_of(request)
    logger.info(f"[{request_id}] Overlay request: {w}x{h}, maxLines={max_lines}, logo={logo}")

    result = render_overlay_image(
        img=img,
        title=title,
        source=source,
        width=w,
        height=h,
        max_lines=max_lines,
        logo=logo,
        request_id=request_id,
    )
    return Response(
        content=result.content,
        media_type="image/jpeg",
        headers={
            "X-Caption-Lines": str(result.lines),
            "X-Caption-Truncated": str(result.truncated).lower(),
        },
    )


def _query_reel(request: Request, sources, titles, durations, transition: str) -> ReelResponse:
    request_id = request_id_of(request)
    slides = build_slides(sources, durations, titles, max_caption_lines=REEL_MAX_LINES)
    logger.info(f"[{request_id}] Reel request: {len(slides)} slides, durations={list(durations)}")
    result = render_slides_reel(slides, transition, request_id=request_id)
    return reel_response(result)


@app.get(
    "/2slidesReel",
    response_model=ReelResponse,
    responses=ERROR_RESPONSES,
    dependencies=[Depends(require_api_key)],
    tags=["Reels"],
)
def two_slides_reel(
    request: Request,
    slide1: Optional[str] = None,
    slide2: Optional[str] = None,
    title1: str = "",
    title2: str = "",
    duration1: float = DEFAULT_DURATION,
    duration2: float = DEFAULT_DURATION,
    transition: str = "fade",
):
    """Generate a two-slide 1080x1920 reel with a one-second crossfade."""
    return _query_reel(
        request, [slide1, slide2], [title1, title2], [duration1, duration2], transition
    )


@app.get(
    "/3slidesReel",
    response_model=ReelResponse,
    responses=ERROR_RESPONSES,
    dependencies=[Depends(require_api_key)],
    tags=["Reels"],
)
def three_slides_reel(
    request: Request,
    slide1: Optional[str] = None,
    slide2: Optional[str] = None,
    slide3: Optional[str] = None,
    title1: str = "",
    title2: str = "",
    title3: str = "",
    duration1: float = DEFAULT_DURATION,
    duration2: float = DEFAULT_DURATION,
    duration3: float = DEFAULT_DURATION,
    transition: str = "fade",
):
    """Generate a three-slide 1080x1920 reel with one-second crossfades."""
    return _query_reel(
        request,
        [slide1, slide2, slide3],
        [title1, title2, title3],
        [duration1, duration2, duration3],
        transition,
    )


@app.post(
    "/reel",
    response_model=ReelResponse,
    responses=ERROR_RESPONSES,
    dependencies=[Depends(require_api_key)],
    tags=["Reels"],
)
def reel(request: Request, body: ReelRequest):
    """
    Generate a reel of 1-4 slides.

    Each slide gets a Ken Burns pan/zoom and an optional caption in the upper
    safe zone; consecutive slides are joined by one-second crossfades.
    """
    request_id = request_id_of(request)
    specs = build_slides(
        [item.image for item in body.slides],
        [item.duration for item in body.slides],
        [item.title for item in body.slides],
    )
    slides = [
        replace(spec, max_caption_lines=item.max_lines)
        for spec, item in zip(specs, body.slides)
    ]
    logger.info(f"[{request_id}] Reel request: {len(slides)} slides")
    result = render_slides_reel(slides, body.transition, request_id=request_id)
    return reel_response(result)


@app.get(
    "/slideWithAudio",
    response_model=ReelResponse,
    responses=ERROR_RESPONSES,
    dependencies=[Depends(require_api_key)],
    tags=["Reels"],
)
def slide_with_audio(
    request: Request,
    slideID: Optional[str] = None,
    audioID: Optional[str] = None,
    text: str = "",
    maxlines: int = 5,
):
    """Generate a single-slide video lasting as long as the audio plus one second."""
    request_id = request_id_of(request)
    logger.info(f"[{request_id}] Slide with audio: slide={slideID}, audio={audioID}")
    result = render_slide_with_audio(
        slideID, audioID, text, maxlines, request_id=request_id
    )
    return reel_response(result)


@app.get(
    "/videoOverlay",
    response_model=ReelResponse,
    responses=ERROR_RESPONSES,
    dependencies=[Depends(require_api_key)],
    tags=["Videos"],
)
def video_overlay(
    request: Request,
    videoID: Optional[str] = None,
    text: Optional[str] = None,
    lines: int = 5,
):
    """Burn a bottom-anchored caption into a stored video."""
    request_id = request_id_of(request)
    logger.info(f"[{request_id}] Video overlay: video={videoID}, lines={lines}")
    result = render_video_overlay(videoID, text, lines, request_id=request_id)
    return reel_response(result)


@app.get(
    "/createReel",
    response_model=ReelResponse,
    responses=ERROR_RESPONSES,
    dependencies=[Depends(require_api_key)],
    tags=["Videos"],
)
def create_reel(
    request: Request,
    videoID: Optional[str] = None,
    video2ID: Optional[str] = None,
    video3ID: Optional[str] = None,
    video4ID: Optional[str] = None,
):
    """Stitch 1-4 stored videos into a 1080x1920 reel with half-second crossfades."""
    request_id = request_id_of(request)
    if not videoID:
        raise ValidationError("Missing required parameter: videoID")
    ids = [videoID, video2ID, video3ID, video4ID]
    logger.info(f"[{request_id}] Create reel from {sum(1 for i in ids if i)} videos")
    result = render_stitched_reel(ids, request_id=request_id)
    return reel_response(result)


@app.get(
    "/addSubs",
    response_model=ReelResponse,
    responses=ERROR_RESPONSES,
    dependencies=[Depends(require_api_key)],
    tags=["Videos"],
)
def add_subs(
    request: Request,
    videoURL: Optional[str] = None,
    text: Optional[str] = None,
):
    """Burn text into a video (URL or storage id) as a single subtitle cue."""
    request_id = request_id_of(request)
    logger.info(f"[{request_id}] Add subtitles: video={videoURL}")
    result = render_subtitled_video(videoURL, text, request_id=request_id)
    return reel_response(result)


@app.post(
    "/store/upload",
    response_model=UploadResponse,
    status_code=201,
    responses=ERROR_RESPONSES,
    dependencies=[Depends(require_api_key)],
    tags=["Storage"],
)
def upload_file(request: Request, file: Optional[UploadFile] = File(default=None)):
    """Upload one audio, video or image file (max 100MB)."""
    request_id = request_id_of(request)
    if file is None:
        raise ValidationError("Please provide a file to upload")

    storage = LocalStorageBackend(get_config())
    stored = storage.save_upload(file.file, file.filename, file.content_type)
    logger.info(f"[{request_id}] Uploaded {stored.original_name} as {stored.filename}")

    return UploadResponse(
        id=stored.file_id,
        filename=stored.filename,
        original_name=stored.original_name,
        mime_type=stored.mime_type,
        size=stored.size,
        url=stored.url,
        upload_time=stored.upload_time,
    )


@app.delete(
    "/store/{file_id}",
    response_model=DeleteResponse,
    responses=ERROR_RESPONSES,
    dependencies=[Depends(require_api_key)],
    tags=["Storage"],
)
def delete_file(request: Request, file_id: str):
    """Delete a stored file by id."""
    storage = LocalStorageBackend(get_config())
    path = storage.delete(file_id)
    logger.info(f"[{request_id_of(request)}] Deleted {path.name}")
    return DeleteResponse(id=file_id, filename=path.name)


# =============================================================================
# CLI Entry Point
# =============================================================================

def run_local_test():
    """Print a sample caption layout and reel command without starting the server."""
    print("=" * 60)
    print("Reel Engine - Local Test Mode")
    print("=" * 60)

    # Initialize config
    config = init_config(
        base_dir=Path(__file__).parent.parent,
    )

    print(f"MEDIA_DIR: {config.media_dir}")
    print(f"REELS_DIR: {config.reels_dir}")
    print(f"TMP_DIR: {config.tmp_dir}")
    print(f"FFMPEG_PATH: {config.ffmpeg_path}")
    print(f"TRANSITION_POLICY: {config.transition_policy}")
    print()

    # Validate configuration
    try:
        config.validate()
        print("Configuration: OK")
    except ConfigError as e:
        print(f"Configuration Error: {e}")
        sys.exit(1)

    layout = layout_caption(
        1080, 1350,
        "the road to hell feels like heaven and the road to heaven feels like hell",
        "example.com",
        max_lines=2,
    )
    print()
    print(f"Layout: {layout.chars_per_line} chars/line, truncated={layout.truncated}")
    for line, y in zip(layout.lines, layout.line_ys):
        print(f"  y={y}: {line}")

    durations = [4.0, 5.0, 6.0]
    policy = config.policy
    timeline = reconcile(durations, REEL_TRANSITION_SECONDS, policy)
    slides = build_slides([f"slide{i + 1}.jpg" for i in range(3)], durations)
    graph = synthesize(
        slides,
        [compute_trajectory(d, slide_index=i, slide_count=3) for i, d in enumerate(durations)],
        None,
        REEL_TRANSITION_SECONDS,
        "reel.mp4",
        policy=policy,
    )

    print()
    print(f"Offsets: {list(timeline.offsets)}, total: {timeline.total:g}s")
    print()
    print("=" * 60)
    print("ffmpeg command:")
    print("=" * 60)
    print(" ".join([config.ffmpeg_path, *graph.to_args()]))


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Reel Engine API")
    parser.add_argument(
        "--local-test",
        action="store_true",
        help="Print a sample layout and ffmpeg command without starting server"
    )

    args = parser.parse_args()

    if args.local_test:
        run_local_test()
    else:
        # Print usage hint
        print("Usage:")
        print("  Start server: uvicorn api.main:app --reload")
        print("  Local test:   python -m api.main --local-test")
