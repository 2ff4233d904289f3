"""Tests for subtitle cues and SRT output."""

from reel_engine.subtitles import (
    DEFAULT_CUE_SECONDS,
    SubtitleCue,
    normalize_text,
    single_cue,
    srt_timestamp,
    write_srt,
)


def test_srt_timestamp():
    assert srt_timestamp(0) == "00:00:00,000"
    assert srt_timestamp(10) == "00:00:10,000"
    assert srt_timestamp(61.5) == "00:01:01,500"
    assert srt_timestamp(3725.0424) == "01:02:05,042"
    assert srt_timestamp(-1) == "00:00:00,000"


def test_single_cue_spans_clip():
    cue = single_cue("hello world", 7.25)

    assert cue == SubtitleCue(1, 0.0, 7.25, "hello world")


def test_single_cue_without_duration():
    assert single_cue("hello").end == DEFAULT_CUE_SECONDS
    assert single_cue("hello", 0).end == DEFAULT_CUE_SECONDS


def test_blank_lines_are_collapsed():
    assert normalize_text("  first line\n\nsecond\tline  ") == "first line second line"


def test_write_srt(tmp_path):
    path = write_srt([single_cue("one\n\ntwo", 3)], tmp_path / "subs.srt")

    assert path.read_text(encoding="utf-8") == "1\n00:00:00,000 --> 00:00:03,000\none two\n"


def test_write_srt_multiple_cues(tmp_path):
    cues = [SubtitleCue(1, 0, 1.5, "a"), SubtitleCue(2, 1.5, 3, "b")]

    text = write_srt(cues, tmp_path / "subs.srt").read_text(encoding="utf-8")

    assert text == (
        "1\n00:00:00,000 --> 00:00:01,500\na\n"
        "\n"
        "2\n00:00:01,500 --> 00:00:03,000\nb\n"
    )
