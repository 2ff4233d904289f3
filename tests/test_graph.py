"""Tests for filter graph synthesis."""

from dataclasses import replace

import pytest

from reel_engine.errors import GraphConstructionError
from reel_engine.graph import (
    RAW_PAD,
    VIDEO,
    CaptionLayer,
    MediaInput,
    PipelineGraph,
    Stage,
    build_slides,
    fmt,
    synthesize,
    quote_filter_value,
    synthesize_overlay,
    synthesize_subtitles,
)
from reel_engine.motion import compute_trajectory
from reel_engine.timing import TransitionPolicy


def image_reel(durations, captions=None, **kwargs):
    slides = build_slides([f"slide{i}.jpg" for i in range(len(durations))], durations)
    trajectories = [
        compute_trajectory(d, slide_index=i, slide_count=len(durations))
        for i, d in enumerate(durations)
    ]
    return synthesize(slides, trajectories, captions, 1.0, "out.mp4", **kwargs)


def assert_pads_well_formed(graph):
    produced = []
    for stage in graph.stages:
        for pad in stage.inputs:
            assert RAW_PAD.match(pad) or pad in produced
        produced.append(stage.output)
    assert len(produced) == len(set(produced))


def test_fmt():
    assert fmt(3.0) == "3"
    assert fmt(0.5) == "0.5"
    assert fmt(1 / 3) == "0.333"


def test_build_slides_assigns_positions():
    slides = build_slides(["a", "b", "c"], [4, 5, 6], ["one", "", "three"])

    assert [s.position for s in slides] == ["first", "middle", "last"]
    assert [s.caption for s in slides] == ["one", "", "three"]
    assert build_slides(["a"], [4])[0].position == "only"


def test_with_source_returns_copy():
    slide = build_slides(["https://example.com/a.jpg"], [4])[0]
    local = slide.with_source("/tmp/job/slide1.jpg")

    assert local.source == "/tmp/job/slide1.jpg"
    assert slide.source == "https://example.com/a.jpg"
    assert local.duration == slide.duration


@pytest.mark.parametrize("count", [1, 2, 3, 4])
def test_crossfade_count_matches_slides(count):
    graph = image_reel([4] * count)

    assert graph.crossfade_count == count - 1
    assert_pads_well_formed(graph)


def test_three_slide_reel():
    graph = image_reel([4, 5, 6])
    fc = graph.filter_complex()

    assert graph.video_output == "vout"
    assert graph.audio_output is None
    assert graph.duration == 13
    assert "[v0][v1]xfade=transition=fade:duration=1:offset=3,format=yuv420p[v01]" in fc
    assert "[v01][v2]xfade=transition=fade:duration=1:offset=7,format=yuv420p[vout]" in fc
    assert fc.startswith("[0:v]scale=4320:7680:force_original_aspect_ratio=increase")


def test_four_slide_pad_names():
    graph = image_reel([4, 4, 4, 4])

    assert [s.output for s in graph.stages if s.operation == "xfade"] == ["v01", "v012", "vout"]


def test_single_slide_maps_slide_pad():
    graph = image_reel([4])
    args = graph.to_args()

    assert graph.video_output == "v0"
    assert args[args.index("-map") + 1] == "[v0]"
    assert args[args.index("-t") + 1] == "4"


def test_to_args_layout():
    args = image_reel([4, 4]).to_args()

    assert args[0] == "-y"
    assert args[1:5] == ["-i", "slide0.jpg", "-i", "slide1.jpg"]
    assert args[args.index("-map") + 1] == "[vout]"
    assert args[args.index("-t") + 1] == "7"
    assert "-c:a" not in args
    assert args[args.index("-c:v") + 1] == "libx264"
    assert args[args.index("-r") + 1] == "30"
    assert args[-1] == "out.mp4"


def test_caption_layers_are_composited_before_crossfade():
    layers = [CaptionLayer("caption1.png"), None, CaptionLayer("caption3.png")]
    graph = image_reel([4, 4, 4], layers)

    assert [m.path for m in graph.inputs] == [
        "slide0.jpg", "slide1.jpg", "slide2.jpg", "caption1.png", "caption3.png"
    ]
    overlays = [s for s in graph.stages if s.operation == "overlay"]
    assert [(s.inputs, s.output) for s in overlays] == [
        (("v0", "3:v"), "v0_txt"),
        (("v2", "4:v"), "v2_txt"),
    ]
    assert overlays[0].filters[0] == "overlay=x=(W-w)/2:y=810:eval=init"
    xfades = [s for s in graph.stages if s.operation == "xfade"]
    assert xfades[0].inputs == ("v0_txt", "v1")
    assert xfades[1].inputs == ("v01", "v2_txt")
    assert_pads_well_formed(graph)


def test_soundtrack_is_delayed():
    graph = image_reel([4], audio_track="voice.mp3")
    args = graph.to_args()

    assert graph.audio_output == "aout"
    assert graph.inputs[-1].path == "voice.mp3"
    assert "[1:a]adelay=500|500,aresample=44100,aformat=channel_layouts=stereo[aout]" in (
        graph.filter_complex()
    )
    assert args[args.index("-c:a") + 1] == "aac"
    assert "[aout]" in args


def test_video_slides_crossfade_audio():
    slides = build_slides(["a.mp4", "b.mp4"], [5, 6], kind=VIDEO)
    slides = [replace(slides[0], has_audio=True), slides[1]]
    graph = synthesize(slides, [None, None], None, 0.5, "out.mp4")
    fc = graph.filter_complex()

    assert graph.duration == 10.5
    assert "offset=4.5" in fc
    assert graph.inputs[2].kind == "lavfi"
    assert graph.inputs[2].to_args() == [
        "-f", "lavfi", "-t", "6", "-i", "anullsrc=channel_layout=stereo:sample_rate=44100"
    ]
    assert "[0:a]atrim=duration=5" in fc
    assert "[2:a]atrim=duration=6" in fc
    assert "[a0][a1]acrossfade=d=0.5[aout]" in fc
    assert "[0:v]trim=duration=5,setpts=PTS-STARTPTS,scale=1080:1920" in fc
    assert graph.audio_output == "aout"
    assert_pads_well_formed(graph)


def test_too_short_slide_is_rejected():
    with pytest.raises(GraphConstructionError):
        image_reel([4, 0.5, 4])


def test_too_short_slide_clamped():
    graph = image_reel([4, 0.5, 4], policy=TransitionPolicy.CLAMP)

    assert "offset=2.5" in graph.filter_complex()


def test_missing_trajectory():
    slides = build_slides(["a.jpg", "b.jpg"], [4, 4])

    with pytest.raises(GraphConstructionError):
        synthesize(slides, [compute_trajectory(4)], None, 1.0, "out.mp4")
    with pytest.raises(GraphConstructionError):
        synthesize(slides, [compute_trajectory(4), None], None, 1.0, "out.mp4")


def test_no_slides():
    with pytest.raises(GraphConstructionError):
        synthesize([], [], None, 1.0, "out.mp4")


def test_overlay_graph():
    graph = synthesize_overlay("in.mp4", "layer.png", "out.mp4")

    assert graph.to_args() == [
        "-y",
        "-i", "in.mp4",
        "-i", "layer.png",
        "-filter_complex", "[0:v][1:v]overlay=x=0:y=0:eval=init[vout]",
        "-map", "[vout]",
        "-map", "0:a?",
        "-c:v", "libx264", "-pix_fmt", "yuv420p", "-c:a", "copy",
        "out.mp4",
    ]


def test_quote_filter_value():
    assert quote_filter_value("/media/tmp/abc/subs.srt") == "'/media/tmp/abc/subs.srt'"
    assert quote_filter_value("it's.srt") == "'it'\\''s.srt'"


def test_subtitles_graph():
    graph = synthesize_subtitles("in.mp4", "/w/subtitles.srt", "out.mp4", "FontSize=24,Alignment=2")

    assert graph.filter_complex() == (
        "[0:v]subtitles=filename='/w/subtitles.srt':"
        "force_style='FontSize=24,Alignment=2'[vout]"
    )
    args = graph.to_args()
    assert args[:3] == ["-y", "-i", "in.mp4"]
    assert args[args.index("-c:a") + 1] == "copy"
    assert "0:a?" in args
    assert args[-1] == "out.mp4"


def test_subtitles_graph_without_style():
    graph = synthesize_subtitles("in.mp4", "subs.srt", "out.mp4")

    assert graph.filter_complex() == "[0:v]subtitles=filename='subs.srt'[vout]"


def one_input():
    return (MediaInput("a.jpg"),)


def test_unknown_pad_is_rejected():
    with pytest.raises(GraphConstructionError):
        PipelineGraph(
            inputs=one_input(),
            stages=(Stage("null", ("missing",), "out", ("null",)),),
            video_output="out",
            output_path="o.mp4",
        )


def test_raw_input_out_of_range():
    with pytest.raises(GraphConstructionError):
        PipelineGraph(
            inputs=one_input(),
            stages=(Stage("null", ("1:v",), "out", ("null",)),),
            video_output="out",
            output_path="o.mp4",
        )


def test_duplicate_pad_is_rejected():
    with pytest.raises(GraphConstructionError):
        PipelineGraph(
            inputs=one_input(),
            stages=(
                Stage("null", ("0:v",), "out", ("null",)),
                Stage("null", ("0:v",), "out", ("null",)),
            ),
            video_output="out",
            output_path="o.mp4",
        )


def test_pad_consumed_twice_is_rejected():
    with pytest.raises(GraphConstructionError):
        PipelineGraph(
            inputs=one_input(),
            stages=(
                Stage("null", ("0:v",), "a", ("null",)),
                Stage("null", ("a",), "b", ("null",)),
                Stage("null", ("a",), "c", ("null",)),
            ),
            video_output="b",
            output_path="o.mp4",
        )


def test_dangling_pad_is_rejected():
    with pytest.raises(GraphConstructionError):
        PipelineGraph(
            inputs=one_input(),
            stages=(
                Stage("null", ("0:v",), "a", ("null",)),
                Stage("null", ("0:v",), "b", ("null",)),
            ),
            video_output="b",
            output_path="o.mp4",
        )


def test_missing_output_is_rejected():
    with pytest.raises(GraphConstructionError):
        PipelineGraph(
            inputs=one_input(),
            stages=(Stage("null", ("0:v",), "a", ("null",)),),
            video_output="vout",
            output_path="o.mp4",
        )
