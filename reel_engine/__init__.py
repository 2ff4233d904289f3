"""
Reel Engine - caption overlays and Ken Burns slideshow reels.

Package structure:
    reel_engine/
        __init__.py         - Package exports
        config.py           - Configuration, paths, settings
        errors.py           - Error taxonomy with reason codes
        typography.py       - Caption wrapping, truncation and placement
        motion.py           - Ken Burns pan/zoom trajectories
        timing.py           - Duration validation and crossfade offsets
        graph.py            - ffmpeg filter graph synthesis
        executor.py         - ffmpeg process runner
        media.py            - Fetching, rasterizing, compositing, probing
        storage.py          - Storage backend abstraction (local)
        subtitles.py        - Subtitle cues and SRT output
        jobs.py             - Per-endpoint job orchestration
    api/
        __init__.py
        main.py             - FastAPI application
"""

from .config import Config, ConfigError, get_config, init_config
from .errors import (
    ExecutionError,
    FetchError,
    GraphConstructionError,
    RasterizationError,
    ReelEngineError,
    ValidationError,
)
from .graph import (
    PipelineGraph,
    SlideSpec,
    build_slides,
    synthesize,
    synthesize_overlay,
    synthesize_subtitles,
)
from .jobs import (
    render_overlay_image,
    render_slide_with_audio,
    render_slides_reel,
    render_stitched_reel,
    render_subtitled_video,
    render_video_overlay,
)
from .motion import MotionTrajectory, compute_trajectory
from .storage import LocalStorageBackend, StorageBackend
from .timing import TransitionPolicy, reconcile
from .typography import Anchor, CaptionLayout, layout_caption

__version__ = "1.0.0"

__all__ = [
    "Anchor",
    "CaptionLayout",
    "Config",
    "ConfigError",
    "ExecutionError",
    "FetchError",
    "GraphConstructionError",
    "LocalStorageBackend",
    "MotionTrajectory",
    "PipelineGraph",
    "RasterizationError",
    "ReelEngineError",
    "SlideSpec",
    "StorageBackend",
    "TransitionPolicy",
    "ValidationError",
    "build_slides",
    "compute_trajectory",
    "get_config",
    "init_config",
    "layout_caption",
    "reconcile",
    "render_overlay_image",
    "render_slide_with_audio",
    "render_slides_reel",
    "render_stitched_reel",
    "render_subtitled_video",
    "render_video_overlay",
    "synthesize",
    "synthesize_overlay",
    "synthesize_subtitles",
]
