"""
Job orchestration module.

One function per asset type, each running the same flow:
validate -> (workspace) fetch -> layout/motion/timing -> synthesize -> execute -> publish

Validation and timeline checks run before any workspace or network access;
every job's workspace is removed when the job ends, whatever the outcome.

Main entry points:
    render_overlay_image(img, title, source, ...) -> OverlayResult
    render_slides_reel(slides, transition, ...) -> ReelResult
    render_slide_with_audio(slide_id, audio_id, text, ...) -> ReelResult
    render_video_overlay(video_id, text, ...) -> ReelResult
    render_stitched_reel(video_ids, ...) -> ReelResult
    render_subtitled_video(video, text, ...) -> ReelResult
"""

import logging
import time
import uuid
from dataclasses import dataclass, replace
from pathlib import Path
from typing import List, Optional, Sequence

from .config import Config, get_config
from .errors import ValidationError
from .executor import execute
from .graph import (
    VIDEO,
    CaptionLayer,
    SlideSpec,
    build_slides,
    synthesize,
    synthesize_overlay,
    synthesize_subtitles,
)
from .media import (
    compose_overlay_image,
    fetch_source,
    job_workspace,
    probe_audio_duration,
    probe_video,
    rasterize_svg,
)
from .motion import FPS, OUTPUT_SIZE, compute_trajectory
from .storage import LocalStorageBackend, StorageBackend
from .subtitles import SUBTITLE_STYLE, normalize_text, single_cue, write_srt
from .timing import (
    MAX_SLIDES,
    REEL_TRANSITION_SECONDS,
    STITCH_TRANSITION_SECONDS,
    TransitionPolicy,
    reconcile,
    validate_crossfade_fit,
    validate_durations,
    validate_max_lines,
    validate_slide_count,
    validate_transition,
)
from .typography import Anchor, layout_caption

logger = logging.getLogger(__name__)

MIN_IMAGE_SIZE = 100
MAX_IMAGE_SIZE = 4000
REEL_CAPTION_SIZE = (1080, 1080)
AUDIO_PADDING_SECONDS = 1.0


@dataclass
class OverlayResult:
    """JPEG produced by an image overlay job."""
    content: bytes
    width: int
    height: int
    lines: int
    truncated: bool
    request_id: str


@dataclass
class ReelResult:
    """Video produced by a reel/overlay job."""
    filename: str
    local_path: Path
    url: str
    duration: float
    request_id: str
    slides: int = 1


def new_request_id() -> str:
    """Short correlation id for one request."""
    return uuid.uuid4().hex[:9]


def output_filename(prefix: str, request_id: str, extension: str = "mp4") -> str:
    return f"{prefix}_{int(time.time())}_{request_id}.{extension}"


def _require(value: Optional[str], name: str) -> str:
    if not value:
        raise ValidationError(f"Missing required parameter: {name}")
    return value


def _caption_layer(
    text: str,
    max_lines: int,
    size,
    anchor: Anchor,
    dest: Path,
    x: str = "(W-w)/2",
    y: str = "810",
) -> Optional[CaptionLayer]:
    """Lay out and rasterize one caption; None when there is nothing to draw."""
    width, height = size
    layout = layout_caption(width, height, text, max_lines=max_lines, anchor=anchor)
    if not layout.lines:
        return None
    rasterize_svg(layout.to_svg(), dest, width, height)
    return CaptionLayer(str(dest), x=x, y=y)


def _context(config: Optional[Config], storage: Optional[StorageBackend]):
    config = config or get_config()
    return config, storage or LocalStorageBackend(config)


def render_overlay_image(
    img: str,
    title: str = "",
    source: str = "",
    width: int = 1080,
    height: int = 1350,
    max_lines: int = 5,
    logo: bool = False,
    config: Optional[Config] = None,
    storage: Optional[StorageBackend] = None,
    request_id: Optional[str] = None,
) -> OverlayResult:
    """
    Overlay a top-anchored title (and attribution) onto one image.

    Returns:
        OverlayResult with JPEG bytes

    Raises:
        ValidationError: Missing image, dimensions outside 100..4000 or bad max_lines
        FetchError: Image could not be retrieved
        RasterizationError: Caption markup could not be rendered
    """
    config, storage = _context(config, storage)
    request_id = request_id or new_request_id()

    _require(img, "img")
    for name, value in (("w", width), ("h", height)):
        if not MIN_IMAGE_SIZE <= value <= MAX_IMAGE_SIZE:
            raise ValidationError(
                f"Invalid {name}: {value}. Must be between {MIN_IMAGE_SIZE} and {MAX_IMAGE_SIZE}."
            )
    validate_max_lines(max_lines)

    layout = layout_caption(width, height, title, source, max_lines, Anchor.TOP)
    logger.info(
        f"[{request_id}] Overlay {width}x{height}: {len(layout.lines)} lines, "
        f"{layout.chars_per_line} chars/line, truncated={layout.truncated}"
    )

    with job_workspace(config.tmp_dir, request_id) as workspace:
        source_path = fetch_source(
            img, workspace, storage, config.fetch_timeout, "image", request_id
        )
        layer = rasterize_svg(layout.to_svg(), workspace / "caption.png", width, height)
        content = compose_overlay_image(
            source_path,
            layer,
            width,
            height,
            logo_path=config.logo_path if logo else None,
            request_id=request_id,
        )

    return OverlayResult(
        content=content,
        width=width,
        height=height,
        lines=len(layout.lines),
        truncated=layout.truncated,
        request_id=request_id,
    )


def render_slides_reel(
    slides: Sequence[SlideSpec],
    transition: str = "fade",
    config: Optional[Config] = None,
    storage: Optional[StorageBackend] = None,
    request_id: Optional[str] = None,
) -> ReelResult:
    """
    Render a 1-4 slide Ken Burns reel with crossfades and optional captions.

    Args:
        slides: Ordered slides; sources are URLs or storage ids
        transition: Transition kind (only "fade")

    Returns:
        ReelResult pointing at the published video

    Raises:
        ValidationError: Bad slide count, durations, transition or caption lines,
            or a slide too short for its crossfades (reject policy)
        ConfigError: TRANSITION_POLICY is unknown
    """
    config, storage = _context(config, storage)
    request_id = request_id or new_request_id()

    validate_slide_count(len(slides), MAX_SLIDES)
    for i, slide in enumerate(slides):
        _require(slide.source, f"slide{i + 1}")
        validate_max_lines(slide.max_caption_lines)
    durations = [slide.duration for slide in slides]
    validate_durations(durations)
    validate_transition(transition)

    policy = config.policy
    if policy == TransitionPolicy.REJECT:
        validate_crossfade_fit(durations, REEL_TRANSITION_SECONDS)
    timeline = reconcile(durations, REEL_TRANSITION_SECONDS, policy)
    trajectories = [
        compute_trajectory(slide.duration, FPS, slide_index=i, slide_count=len(slides))
        for i, slide in enumerate(slides)
    ]
    logger.info(
        f"[{request_id}] Reel of {len(slides)} slides, durations={durations}, "
        f"offsets={list(timeline.offsets)}, total={timeline.total:g}s"
    )
    for i, trajectory in enumerate(trajectories):
        logger.debug(f"[{request_id}] Slide {i + 1} motion: {trajectory.describe()}")

    filename = output_filename("reel", request_id)

    with job_workspace(config.tmp_dir, request_id) as workspace:
        local_slides: List[SlideSpec] = []
        layers = []
        for i, slide in enumerate(slides):
            path = fetch_source(
                slide.source, workspace, storage, config.fetch_timeout,
                f"slide{i + 1}", request_id,
            )
            local_slides.append(slide.with_source(path))
            layers.append(_caption_layer(
                slide.caption,
                slide.max_caption_lines,
                REEL_CAPTION_SIZE,
                Anchor.TOP,
                workspace / f"caption{i + 1}.png",
            ))

        graph = synthesize(
            local_slides,
            trajectories,
            layers,
            REEL_TRANSITION_SECONDS,
            workspace / filename,
            policy=policy,
        )
        result = execute(graph, config.ffmpeg_path, config.ffmpeg_timeout, request_id)
        saved = storage.publish(result.output_path, config.reels_subdir, filename)

    logger.info(f"[{request_id}] Reel ready: {saved.url}")
    return ReelResult(
        filename=saved.filename,
        local_path=saved.local_path,
        url=saved.url,
        duration=timeline.total,
        request_id=request_id,
        slides=len(slides),
    )


def render_slide_with_audio(
    slide_id: str,
    audio_id: str,
    text: str = "",
    max_lines: int = 5,
    config: Optional[Config] = None,
    storage: Optional[StorageBackend] = None,
    request_id: Optional[str] = None,
) -> ReelResult:
    """
    One Ken Burns slide lasting the audio length plus one second.

    The audio starts after a half-second lead-in; the caption is anchored to
    the bottom of the full 1080x1920 canvas.
    """
    config, storage = _context(config, storage)
    request_id = request_id or new_request_id()

    _require(slide_id, "slideID")
    _require(audio_id, "audioID")
    validate_max_lines(max_lines, "maxlines")

    filename = output_filename("slide_audio", request_id)

    with job_workspace(config.tmp_dir, request_id) as workspace:
        slide_path = fetch_source(
            slide_id, workspace, storage, config.fetch_timeout, "slide", request_id
        )
        audio_path = fetch_source(
            audio_id, workspace, storage, config.fetch_timeout, "audio", request_id
        )
        audio_duration = probe_audio_duration(audio_path)
        if audio_duration <= 0:
            raise ValidationError(f"Audio {audio_id} has no measurable duration")
        duration = round(audio_duration + AUDIO_PADDING_SECONDS, 3)
        logger.info(
            f"[{request_id}] Audio {audio_duration:.2f}s -> slide duration {duration:.2f}s"
        )

        slide = SlideSpec(source=str(slide_path), duration=duration, caption=text,
                          max_caption_lines=max_lines)
        layer = _caption_layer(
            text, max_lines, OUTPUT_SIZE, Anchor.BOTTOM,
            workspace / "caption.png", x="0", y="0",
        )
        graph = synthesize(
            [slide],
            [compute_trajectory(duration, FPS)],
            [layer],
            REEL_TRANSITION_SECONDS,
            workspace / filename,
            audio_track=str(audio_path),
        )
        result = execute(graph, config.ffmpeg_path, config.ffmpeg_timeout, request_id)
        saved = storage.publish(result.output_path, config.STORAGE_SUBDIR, filename)

    return ReelResult(
        filename=saved.filename,
        local_path=saved.local_path,
        url=saved.url,
        duration=duration,
        request_id=request_id,
    )


def render_video_overlay(
    video_id: str,
    text: str,
    max_lines: int = 5,
    config: Optional[Config] = None,
    storage: Optional[StorageBackend] = None,
    request_id: Optional[str] = None,
) -> ReelResult:
    """Burn a bottom-anchored caption into a stored video at its native size."""
    config, storage = _context(config, storage)
    request_id = request_id or new_request_id()

    _require(video_id, "videoID")
    _require(text, "text")
    validate_max_lines(max_lines, "lines")

    filename = output_filename("overlay", request_id)

    with job_workspace(config.tmp_dir, request_id) as workspace:
        video_path = fetch_source(
            video_id, workspace, storage, config.fetch_timeout, "video", request_id
        )
        info = probe_video(video_path)
        logger.info(
            f"[{request_id}] Video {info.width}x{info.height}, {info.duration:.2f}s, "
            f"audio={info.has_audio}"
        )

        layout = layout_caption(info.width, info.height, text, max_lines=max_lines,
                                anchor=Anchor.BOTTOM)
        layer = rasterize_svg(layout.to_svg(), workspace / "caption.png",
                              info.width, info.height)
        graph = synthesize_overlay(video_path, layer, workspace / filename)
        result = execute(graph, config.ffmpeg_path, config.ffmpeg_timeout, request_id)
        saved = storage.publish(result.output_path, config.STORAGE_SUBDIR, filename)

    return ReelResult(
        filename=saved.filename,
        local_path=saved.local_path,
        url=saved.url,
        duration=info.duration,
        request_id=request_id,
    )


def render_stitched_reel(
    video_ids: Sequence[Optional[str]],
    config: Optional[Config] = None,
    storage: Optional[StorageBackend] = None,
    request_id: Optional[str] = None,
) -> ReelResult:
    """
    Stitch 1-4 stored videos into one 1080x1920 reel with 0.5s crossfades.

    Videos keep their own length; audio is crossfaded along with the picture
    and silent clips contribute silence.
    """
    config, storage = _context(config, storage)
    request_id = request_id or new_request_id()

    ids = [video_id for video_id in video_ids if video_id]
    validate_slide_count(len(ids), MAX_SLIDES)
    policy = config.policy

    filename = output_filename("stitched", request_id)

    with job_workspace(config.tmp_dir, request_id) as workspace:
        paths = []
        infos = []
        for i, video_id in enumerate(ids):
            path = fetch_source(
                video_id, workspace, storage, config.fetch_timeout, f"video{i + 1}", request_id
            )
            info = probe_video(path)
            logger.info(
                f"[{request_id}] Video {i + 1}: {info.width}x{info.height}, {info.duration:.2f}s"
            )
            paths.append(str(path))
            infos.append(info)

        slides = [
            replace(slide, has_audio=info.has_audio)
            for slide, info in zip(
                build_slides(paths, [info.duration for info in infos], kind=VIDEO), infos
            )
        ]
        if policy == TransitionPolicy.REJECT:
            validate_crossfade_fit([s.duration for s in slides], STITCH_TRANSITION_SECONDS)
        timeline = reconcile([s.duration for s in slides], STITCH_TRANSITION_SECONDS, policy)

        graph = synthesize(
            slides,
            [None] * len(slides),
            None,
            STITCH_TRANSITION_SECONDS,
            workspace / filename,
            policy=policy,
        )
        result = execute(graph, config.ffmpeg_path, config.ffmpeg_timeout, request_id)
        saved = storage.publish(result.output_path, config.reels_subdir, filename)

    return ReelResult(
        filename=saved.filename,
        local_path=saved.local_path,
        url=saved.url,
        duration=timeline.total,
        request_id=request_id,
        slides=len(slides),
    )


def render_subtitled_video(
    video: str,
    text: str,
    config: Optional[Config] = None,
    storage: Optional[StorageBackend] = None,
    request_id: Optional[str] = None,
) -> ReelResult:
    """
    Burn text into a video as one subtitle cue lasting the whole clip.

    Args:
        video: http(s) URL or storage id of the source video
        text: Subtitle text; whitespace is collapsed onto a single cue

    Returns:
        ReelResult pointing at the published video in the reels folder
    """
    config, storage = _context(config, storage)
    request_id = request_id or new_request_id()

    _require(video, "videoURL")
    _require(normalize_text(text or ""), "text")

    filename = output_filename("subs", request_id)

    with job_workspace(config.tmp_dir, request_id) as workspace:
        video_path = fetch_source(
            video, workspace, storage, config.fetch_timeout, "input", request_id
        )
        info = probe_video(video_path)
        cue = single_cue(text, info.duration)
        logger.info(
            f"[{request_id}] Subtitle cue {cue.start:g}s-{cue.end:.2f}s over "
            f"{info.width}x{info.height} video"
        )
        srt_path = write_srt([cue], workspace / "subtitles.srt")

        graph = synthesize_subtitles(video_path, srt_path, workspace / filename, SUBTITLE_STYLE)
        result = execute(graph, config.ffmpeg_path, config.ffmpeg_timeout, request_id)
        saved = storage.publish(result.output_path, config.reels_subdir, filename)

    return ReelResult(
        filename=saved.filename,
        local_path=saved.local_path,
        url=saved.url,
        duration=info.duration,
        request_id=request_id,
    )
