"""
Ken Burns motion parameters.

Computes per-slide pan/zoom trajectories and the ffmpeg filter chain that
realizes them. The first slide pans left to right, every following slide pans
right to left so consecutive slides read as one continuous camera move.
"""

from dataclasses import dataclass
from typing import Tuple

import numpy as np

FPS = 30
PRESCALE_SIZE = (4320, 7680)  # upscaled canvas the camera moves over
OUTPUT_SIZE = (1080, 1920)    # final reel resolution
ZOOM_START = 1.0
ZOOM_STEP = 0.0008            # zoom increment per frame
PAN_STEP = 2                  # horizontal pixels per frame


def frame_count_for(duration_seconds: float, fps: int = FPS) -> int:
    """Number of frames a slide occupies, never fewer than one."""
    return max(1, int(round(duration_seconds * fps)))


@dataclass(frozen=True)
class MotionTrajectory:
    """Pan/zoom plan for a single slide."""

    prescale_size: Tuple[int, int]
    output_size: Tuple[int, int]
    fps: int
    frame_count: int
    zoom_start: float
    zoom_step: float
    direction: int  # +1 left to right, -1 right to left
    pan_step: int
    pan_start: int
    pan_end: int
    y_offset: int

    @property
    def max_x(self) -> int:
        return max(0, self.prescale_size[0] - self.output_size[0])

    @property
    def zoom_end(self) -> float:
        return self.zoom_at(self.frame_count)

    @property
    def pan_delta(self) -> int:
        return self.pan_end - self.pan_start

    def zoom_at(self, frame: int) -> float:
        return self.zoom_start + self.zoom_step * frame

    def x_at(self, frame: int) -> int:
        """Horizontal crop position at ``frame``, clamped to the pre-scaled canvas."""
        x = self.pan_start + self.direction * self.pan_step * frame
        return int(min(self.max_x, max(0, x)))

    def pan_positions(self) -> np.ndarray:
        frames = np.arange(self.frame_count)
        raw = self.pan_start + self.direction * self.pan_step * frames
        return np.clip(raw, 0, self.max_x)

    def zoom_values(self) -> np.ndarray:
        return self.zoom_start + self.zoom_step * np.arange(self.frame_count)

    def x_expression(self) -> str:
        """zoompan ``x`` expression equivalent to :meth:`x_at` with ``on`` as frame."""
        if self.direction > 0:
            return f"min({self.max_x},{self.pan_start}+on*{self.pan_step})"
        return f"max(0,{self.pan_start}-on*{self.pan_step})"

    def filter_chain(self) -> Tuple[str, ...]:
        """Filters turning one still image into the moving slide."""
        scale_w, scale_h = self.prescale_size
        out_w, out_h = self.output_size
        return (
            f"scale={scale_w}:{scale_h}:force_original_aspect_ratio=increase",
            f"crop={scale_w}:{scale_h}",
            f"zoompan=z='{self.zoom_start}+{self.zoom_step}*on'"
            f":d={self.frame_count}"
            f":x='{self.x_expression()}'"
            f":y='{self.y_offset}'"
            f":s={out_w}x{out_h}:fps={self.fps}",
            "format=yuv420p",
        )

    def describe(self) -> str:
        return (
            f"{self.frame_count} frames, zoom {self.zoom_start:.4f}->{self.zoom_end:.4f}, "
            f"x {self.pan_start}->{self.pan_end} (delta={self.pan_delta}), y={self.y_offset}"
        )


def compute_trajectory(
    duration_seconds: float,
    fps: int = FPS,
    prescale_size: Tuple[int, int] = PRESCALE_SIZE,
    output_size: Tuple[int, int] = OUTPUT_SIZE,
    slide_index: int = 0,
    slide_count: int = 1,
    zoom_start: float = ZOOM_START,
    zoom_step: float = ZOOM_STEP,
    pan_step: int = PAN_STEP,
) -> MotionTrajectory:
    """
    Compute the Ken Burns trajectory of one slide.

    Args:
        duration_seconds: Slide duration (validated upstream, > 0)
        fps: Output frame rate
        prescale_size: Size the image is scaled/cropped to before panning
        output_size: Final frame size
        slide_index: Position of the slide in the reel (0-based)
        slide_count: Total number of slides in the reel

    Returns:
        MotionTrajectory
    """
    if not 0 <= slide_index < slide_count:
        raise ValueError(f"slide_index {slide_index} outside reel of {slide_count} slides")

    frames = frame_count_for(duration_seconds, fps)
    max_x = max(0, prescale_size[0] - output_size[0])

    if slide_index == 0:
        direction, pan_start = 1, 0
    else:
        direction, pan_start = -1, max_x

    pan_end = min(max_x, max(0, pan_start + direction * pan_step * frames))

    return MotionTrajectory(
        prescale_size=tuple(prescale_size),
        output_size=tuple(output_size),
        fps=fps,
        frame_count=frames,
        zoom_start=zoom_start,
        zoom_step=zoom_step,
        direction=direction,
        pan_step=pan_step,
        pan_start=pan_start,
        pan_end=pan_end,
        y_offset=(prescale_size[1] - output_size[1]) // 2,
    )
