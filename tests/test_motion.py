"""Tests for Ken Burns trajectories."""

import numpy as np
import pytest

from reel_engine.motion import (
    OUTPUT_SIZE,
    PRESCALE_SIZE,
    compute_trajectory,
    frame_count_for,
)

MAX_X = PRESCALE_SIZE[0] - OUTPUT_SIZE[0]


def test_frame_count():
    assert frame_count_for(4, 30) == 120
    assert frame_count_for(0.01, 30) == 1
    assert frame_count_for(2.5, 30) == 75


def test_first_slide_pans_left_to_right():
    trajectory = compute_trajectory(4, slide_index=0, slide_count=3)

    assert trajectory.direction == 1
    assert trajectory.pan_start == 0
    assert trajectory.pan_end == 240
    assert trajectory.frame_count == 120
    assert trajectory.y_offset == 2880


@pytest.mark.parametrize("index", [1, 2, 3])
def test_following_slides_pan_right_to_left(index):
    trajectory = compute_trajectory(4, slide_index=index, slide_count=4)

    assert trajectory.direction == -1
    assert trajectory.pan_start == MAX_X
    assert trajectory.pan_end == MAX_X - 240


@pytest.mark.parametrize("duration", [1, 4, 30])
@pytest.mark.parametrize("index", [0, 1])
@pytest.mark.parametrize("pan_step", [2, 10])
def test_pan_positions_stay_on_canvas(duration, index, pan_step):
    trajectory = compute_trajectory(
        duration, slide_index=index, slide_count=2, pan_step=pan_step
    )
    positions = trajectory.pan_positions()

    assert len(positions) == trajectory.frame_count
    assert np.all(positions >= 0)
    assert np.all(positions <= trajectory.max_x)
    for frame in (0, trajectory.frame_count // 2, trajectory.frame_count - 1):
        assert trajectory.x_at(frame) == positions[frame]


def test_fast_pan_is_clamped():
    trajectory = compute_trajectory(30, slide_index=0, slide_count=1, pan_step=10)

    assert trajectory.pan_end == MAX_X
    assert trajectory.x_at(10_000) == MAX_X


def test_zoom_ramp():
    trajectory = compute_trajectory(1, slide_index=0, slide_count=1)
    zooms = trajectory.zoom_values()

    assert zooms[0] == pytest.approx(1.0)
    assert zooms[-1] == pytest.approx(1.0 + 0.0008 * 29)
    assert np.all(np.diff(zooms) > 0)
    assert trajectory.zoom_at(10) == pytest.approx(1.008)


def test_filter_chain():
    chain = compute_trajectory(4, slide_index=0, slide_count=2).filter_chain()

    assert chain[0] == "scale=4320:7680:force_original_aspect_ratio=increase"
    assert chain[1] == "crop=4320:7680"
    assert chain[2] == (
        "zoompan=z='1.0+0.0008*on':d=120:x='min(3240,0+on*2)':y='2880'"
        ":s=1080x1920:fps=30"
    )
    assert chain[3] == "format=yuv420p"


def test_reverse_pan_expression():
    trajectory = compute_trajectory(4, slide_index=1, slide_count=2)

    assert trajectory.x_expression() == "max(0,3240-on*2)"


def test_slide_index_outside_reel():
    with pytest.raises(ValueError):
        compute_trajectory(4, slide_index=2, slide_count=2)
