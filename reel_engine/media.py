"""
Media I/O around the pure engine.

Pure functions (plus one context manager) for:
- Fetching source media from URLs or local storage
- Rasterizing caption SVG markup (CairoSVG)
- Compositing overlay JPEGs (Pillow)
- Probing video/audio files (MoviePy)
- Per-job scratch workspaces
"""

import io
import logging
import shutil
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional
from urllib.parse import urlparse

import requests
from moviepy import AudioFileClip, VideoFileClip
from PIL import Image, ImageOps

from .errors import FetchError, RasterizationError
from .storage import StorageBackend

logger = logging.getLogger(__name__)

JPEG_QUALITY = 88
LOGO_PADDING = 20
DOWNLOAD_CHUNK_SIZE = 64 * 1024


@dataclass
class MediaInfo:
    """Basic properties of a probed media file."""
    width: int
    height: int
    duration: float
    has_audio: bool


def is_remote(reference: str) -> bool:
    return urlparse(reference).scheme in ("http", "https")


def fetch_source(
    reference: str,
    dest_dir: Path,
    storage: StorageBackend,
    timeout: float = 30,
    name: str = "source",
    request_id: str = "-",
) -> Path:
    """
    Make a source available as a local file.

    URLs are downloaded into ``dest_dir``; anything else is treated as a
    storage id and resolved in place.

    Args:
        reference: http(s) URL or storage file id
        dest_dir: Job workspace receiving downloads
        storage: Storage backend resolving file ids
        timeout: Network timeout in seconds
        name: Base filename for the download

    Returns:
        Path to a local file

    Raises:
        FetchError: Download failed or the id is unknown
    """
    if not reference:
        raise FetchError(reference, "Empty media reference")

    if not is_remote(reference):
        path = storage.resolve(reference)
        logger.info(f"[{request_id}] Using stored file {path.name}")
        return path

    suffix = Path(urlparse(reference).path).suffix.lower()
    target = dest_dir / f"{name}{suffix}"

    logger.info(f"[{request_id}] Downloading {reference}")
    try:
        with requests.get(reference, stream=True, timeout=timeout) as response:
            if response.status_code == 404:
                raise FetchError(reference, f"Source not found: {reference}", not_found=True)
            response.raise_for_status()
            with open(target, "wb") as f:
                for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                    f.write(chunk)
    except requests.RequestException as e:
        raise FetchError(reference, f"Failed to fetch {reference}: {e}") from e

    if target.stat().st_size == 0:
        raise FetchError(reference, f"Source is empty: {reference}")

    logger.info(f"[{request_id}] Downloaded {target.stat().st_size} bytes to {target.name}")
    return target


def rasterize_svg(
    markup: str,
    dest: Path,
    width: Optional[int] = None,
    height: Optional[int] = None,
) -> Path:
    """
    Render SVG markup to a PNG file.

    Raises:
        RasterizationError: If CairoSVG rejects the markup or is unavailable
    """
    try:
        import cairosvg  # lazily imported: needs the native cairo library

        cairosvg.svg2png(
            bytestring=markup.encode("utf-8"),
            write_to=str(dest),
            output_width=width,
            output_height=height,
        )
    except Exception as e:
        raise RasterizationError(f"Failed to rasterize caption: {e}") from e
    return dest


def render_logo(logo_path: Path) -> Image.Image:
    """Rasterize the branding logo at its natural size."""
    import cairosvg

    png = cairosvg.svg2png(url=str(logo_path))
    return Image.open(io.BytesIO(png)).convert("RGBA")


def compose_overlay_image(
    source_path: Path,
    layer_path: Path,
    width: int,
    height: int,
    logo_path: Optional[Path] = None,
    request_id: str = "-",
) -> bytes:
    """
    Cover-resize a source image and composite caption layer (and logo) on top.

    The logo is cosmetic: if it cannot be loaded the image is produced
    without it.

    Returns:
        JPEG bytes
    """
    try:
        with Image.open(source_path) as source:
            base = ImageOps.fit(source.convert("RGB"), (width, height), Image.LANCZOS)
    except OSError as e:
        raise FetchError(str(source_path), f"Source is not a readable image: {e}") from e

    canvas = base.convert("RGBA")

    with Image.open(layer_path) as layer:
        layer = layer.convert("RGBA")
        if layer.size != canvas.size:
            layer = layer.resize(canvas.size)
        canvas.alpha_composite(layer)

    if logo_path is not None:
        try:
            logo = render_logo(logo_path)
            top = max(0, height - logo.height - LOGO_PADDING)
            canvas.alpha_composite(logo, (LOGO_PADDING, top))
            logger.info(f"[{request_id}] Logo applied ({logo.width}x{logo.height})")
        except Exception as e:
            logger.warning(f"[{request_id}] Logo skipped: {e}")

    buffer = io.BytesIO()
    canvas.convert("RGB").save(buffer, format="JPEG", quality=JPEG_QUALITY)
    return buffer.getvalue()


def probe_video(path: Path) -> MediaInfo:
    """Read size, duration and audio presence of a video file."""
    try:
        clip = VideoFileClip(str(path))
    except Exception as e:
        raise FetchError(str(path), f"Unreadable video: {e}") from e
    try:
        width, height = clip.size
        return MediaInfo(
            width=int(width),
            height=int(height),
            duration=float(clip.duration),
            has_audio=clip.audio is not None,
        )
    finally:
        clip.close()


def probe_audio_duration(path: Path) -> float:
    try:
        clip = AudioFileClip(str(path))
    except Exception as e:
        raise FetchError(str(path), f"Unreadable audio: {e}") from e
    try:
        return float(clip.duration)
    finally:
        clip.close()


@contextmanager
def job_workspace(tmp_root: Path, request_id: str) -> Iterator[Path]:
    """
    Scratch directory owned by one job, removed when the job ends.

    Cleanup failures are logged, never raised, so they cannot mask the job's
    own outcome.
    """
    workspace = Path(tmp_root) / request_id
    workspace.mkdir(parents=True, exist_ok=True)
    try:
        yield workspace
    finally:
        try:
            shutil.rmtree(workspace)
        except OSError as e:
            logger.warning(f"[{request_id}] Failed to remove workspace {workspace}: {e}")
