"""Tests for caption wrapping, truncation and placement."""

import pytest

from reel_engine.typography import (
    ELLIPSIS,
    Anchor,
    add_ellipsis,
    estimate_chars_per_line,
    layout_caption,
    split_long_words,
    wrap_words,
)

TEN_WORDS = "one two three four five six seven eight nine ten"

SAMPLE_TITLES = [
    "",
    "short",
    TEN_WORDS,
    "a " * 200,
    "Supercalifragilisticexpialidocious" * 3,
    "The quick brown fox jumps over the lazy dog. " * 12,
    "line\nbreaks\tand   extra     spaces everywhere",
]


def test_empty_title_yields_no_lines():
    layout = layout_caption(1080, 1350, "", "", 5)

    assert layout.lines == ()
    assert layout.line_ys == ()
    assert layout.truncated is False
    assert layout.is_empty


def test_whitespace_only_title_is_empty():
    layout = layout_caption(1080, 1350, "   \n\t ", "", 5)

    assert layout.lines == ()
    assert layout.truncated is False


def test_metrics_for_portrait_image():
    layout = layout_caption(1080, 1350, TEN_WORDS, "", 2)

    assert layout.font_size == 59
    assert layout.line_height == 66
    assert layout.side_padding == 86
    assert layout.stroke_width == 5
    assert layout.chars_per_line == 25
    assert layout.anchor_x == 540


def test_ten_words_wrap_into_two_lines():
    layout = layout_caption(1080, 1350, TEN_WORDS, "", 2)

    assert layout.lines == ("one two three four five", "six seven eight nine ten")
    assert layout.truncated is False


def test_ten_words_truncate_on_single_line():
    layout = layout_caption(1080, 1350, TEN_WORDS, "", 1)

    assert layout.lines == ("one two three four five" + ELLIPSIS,)
    assert layout.truncated is True


def test_long_text_truncates_with_ellipsis():
    text = "The quick brown fox jumps over the lazy dog. " * 12
    layout = layout_caption(1080, 1350, text, "", 3)

    assert len(layout.lines) == 3
    assert layout.truncated is True
    assert layout.lines[-1].endswith(ELLIPSIS)
    assert len(layout.lines[-1]) <= layout.chars_per_line


@pytest.mark.parametrize("title", SAMPLE_TITLES)
@pytest.mark.parametrize("max_lines", [1, 2, 5, 9, 20])
def test_layout_invariants(title, max_lines):
    layout = layout_caption(1080, 1350, title, "Source", max_lines)

    # Deterministic
    assert layout == layout_caption(1080, 1350, title, "Source", max_lines)

    assert len(layout.lines) <= max_lines
    assert len(layout.line_ys) == len(layout.lines)

    body = layout.lines[:-1] if layout.truncated else layout.lines
    for line in body:
        assert len(line) <= layout.chars_per_line

    if layout.truncated:
        assert layout.lines[-1].endswith(ELLIPSIS)
        assert len(layout.lines[-1]) - len(ELLIPSIS) <= layout.chars_per_line - 1

    reconstructed = " ".join(layout.lines)
    if len(reconstructed) < len(" ".join(title.split())):
        assert layout.lines[-1].endswith(ELLIPSIS)


def test_top_anchor_positions():
    layout = layout_caption(1080, 1350, TEN_WORDS, "", 2, Anchor.TOP)

    assert layout.line_ys == (120, 186)


def test_bottom_anchor_stacks_upward():
    layout = layout_caption(1080, 1920, TEN_WORDS, "", 2, Anchor.BOTTOM)

    assert layout.line_ys[-1] == 1920 - 192
    assert layout.line_ys == (1662, 1728)


def test_attribution_position():
    layout = layout_caption(1080, 1350, "title", "Example News", 5)

    assert layout.attribution == "Example News"
    assert layout.attribution_x == 994
    assert layout.attribution_y == 1246
    assert layout.attribution_font_size == 30


def test_long_word_is_hard_split():
    layout = layout_caption(1080, 1350, "x" * 60, "", 5)

    assert [len(line) for line in layout.lines] == [25, 25, 10]
    assert layout.truncated is False


def test_estimate_chars_per_line_has_floor():
    assert estimate_chars_per_line(100, 59, 8) == 10


def test_split_long_words():
    assert split_long_words(["abcdefghij", "ab"], 4) == ["abcd", "efgh", "ij", "ab"]


def test_wrap_words_reports_placed_words():
    lines, placed = wrap_words(["aa", "bb", "cc", "dd"], 5, 1)

    assert lines == ["aa bb"]
    assert placed == 2


def test_add_ellipsis():
    assert add_ellipsis("end of story.", 25) == "end of story" + ELLIPSIS
    assert add_ellipsis("abcdefghij", 6) == "abcde" + ELLIPSIS


def test_svg_escapes_text():
    layout = layout_caption(1080, 1350, "Fish & <chips>", "A&B", 5)
    svg = layout.to_svg()

    assert "Fish &amp; &lt;chips&gt;" in svg
    assert "A&amp;B" in svg
    assert 'width="1080" height="1350"' in svg
    assert "paint-order:stroke fill" in svg
    assert 'text-anchor="end"' in svg


def test_svg_without_attribution():
    svg = layout_caption(1080, 1080, "hello", "", 9).to_svg()

    assert 'text-anchor="end"' not in svg
    assert ">hello</text>" in svg
