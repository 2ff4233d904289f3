"""
Typography layout engine.

Wraps, truncates and positions caption text on a fixed canvas using an
average glyph width heuristic instead of real font metrics, and renders the
result as SVG markup for the rasterizer.

Main entry point:
    layout_caption(width, height, title, attribution, max_lines, anchor) -> CaptionLayout
"""

import html
import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Tuple

# Empirically tuned ratios, relative to min(width, height) unless noted
TITLE_FONT_RATIO = 0.055
ATTRIBUTION_FONT_RATIO = 0.028
LINE_HEIGHT_RATIO = 1.12         # of title font size
STROKE_RATIO = 0.08              # of font size
CHAR_WIDTH_FACTOR = 0.60         # average glyph width / font size
MIN_CHARS_PER_LINE = 10
TOP_PADDING_RATIO = 0.08         # of height
SIDE_PADDING_RATIO = 0.08        # of width
BOTTOM_PADDING_RATIO = 0.10      # of height, keeps captions above platform UI
ATTRIBUTION_BAND_RATIO = 0.22    # of height
ELLIPSIS = "…"

FONT_FAMILY = "Inter, -apple-system, Segoe UI, Roboto, Arial"


class Anchor(str, Enum):
    """Where the caption block is pinned on the canvas."""

    TOP = "top"
    BOTTOM = "bottom"


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class CaptionLayout:
    """Resolved text-rendering plan for one caption."""

    width: int
    height: int
    lines: Tuple[str, ...]
    line_ys: Tuple[int, ...]
    anchor_x: int
    anchor: Anchor
    font_size: int
    line_height: int
    stroke_width: int
    chars_per_line: int
    side_padding: int
    truncated: bool
    attribution: str
    attribution_font_size: int
    attribution_stroke_width: int
    attribution_x: int
    attribution_y: int

    @property
    def is_empty(self) -> bool:
        return not self.lines and not self.attribution

    def to_svg(self) -> str:
        """Render the layout as an SVG document sized to the canvas."""
        text_rows = "\n    ".join(
            f'<text x="{self.anchor_x}" y="{y}">{html.escape(line)}</text>'
            for line, y in zip(self.lines, self.line_ys)
        )
        parts = [
            f'<svg width="{self.width}" height="{self.height}" '
            f'xmlns="http://www.w3.org/2000/svg">',
            f'  <g font-family="{FONT_FAMILY}"\n'
            f'     font-weight="800"\n'
            f'     font-size="{self.font_size}"\n'
            f'     text-anchor="middle"\n'
            f'     style="fill:#fff; stroke:#000; stroke-width:{self.stroke_width}px; '
            f'paint-order:stroke fill;">\n'
            f'    {text_rows}\n'
            f'  </g>',
        ]
        if self.attribution:
            parts.append(
                f'  <text x="{self.attribution_x}" y="{self.attribution_y}"\n'
                f'        font-family="{FONT_FAMILY}"\n'
                f'        font-weight="600" font-size="{self.attribution_font_size}"\n'
                f'        text-anchor="end"\n'
                f'        style="fill:#fff; stroke:#000; '
                f'stroke-width:{self.attribution_stroke_width}px; paint-order:stroke fill;">'
                f'{html.escape(self.attribution)}</text>'
            )
        parts.append("</svg>")
        return "\n".join(parts)


def estimate_chars_per_line(width: int, font_size: int, side_padding: int) -> int:
    """Estimate how many characters fit on one line of the canvas."""
    usable = width - 2 * side_padding
    return max(MIN_CHARS_PER_LINE, math.floor(usable / (font_size * CHAR_WIDTH_FACTOR)))


def split_long_words(words: List[str], budget: int) -> List[str]:
    """Hard-break words that could never fit on a single line."""
    pieces = []
    for word in words:
        while len(word) > budget:
            pieces.append(word[:budget])
            word = word[budget:]
        if word:
            pieces.append(word)
    return pieces


def wrap_words(words: List[str], budget: int, max_lines: int) -> Tuple[List[str], int]:
    """
    Greedily wrap words into lines of at most ``budget`` characters.

    Stops once ``max_lines`` lines have been closed.

    Returns:
        (lines, number of words placed)
    """
    lines: List[str] = []
    line = ""
    line_words = 0
    placed = 0

    for word in words:
        candidate = f"{line} {word}" if line else word
        if len(candidate) > budget:
            if line:
                lines.append(line)
                placed += line_words
            line = word
            line_words = 1
            if len(lines) >= max_lines:
                break
        else:
            line = candidate
            line_words += 1

    if len(lines) < max_lines and line:
        lines.append(line)
        placed += line_words

    return lines, placed


def add_ellipsis(line: str, budget: int) -> str:
    """Mark a line as truncated, reserving one character for the ellipsis."""
    room = max(0, budget - 1)
    if len(line) > room:
        return line[:room].rstrip() + ELLIPSIS
    return line.rstrip(".") + ELLIPSIS


def layout_caption(
    width: int,
    height: int,
    title: str,
    attribution: str = "",
    max_lines: int = 5,
    anchor: Anchor = Anchor.TOP,
) -> CaptionLayout:
    """
    Lay out a caption (and optional attribution) on a canvas.

    Args:
        width: Canvas width in pixels
        height: Canvas height in pixels
        title: Caption text of any length
        attribution: Source attribution drawn bottom-right (image captions)
        max_lines: Maximum number of caption lines
        anchor: TOP stacks lines down from the top padding, BOTTOM stacks
            them up from the bottom padding

    Returns:
        CaptionLayout. Empty text yields zero lines.
    """
    text = " ".join((title or "").split())
    attribution = " ".join((attribution or "").split())

    base = min(width, height)
    font_size = round_half_up(base * TITLE_FONT_RATIO)
    attribution_font_size = round_half_up(base * ATTRIBUTION_FONT_RATIO)
    line_height = round_half_up(font_size * LINE_HEIGHT_RATIO)
    top_padding = round_half_up(height * TOP_PADDING_RATIO)
    side_padding = round_half_up(width * SIDE_PADDING_RATIO)

    budget = estimate_chars_per_line(width, font_size, side_padding)

    words = split_long_words(text.split(), budget)
    lines, placed = wrap_words(words, budget, max_lines)

    truncated = placed < len(words)
    if truncated and lines:
        lines[-1] = add_ellipsis(lines[-1], budget)

    if anchor == Anchor.BOTTOM:
        last_line_y = height - round_half_up(height * BOTTOM_PADDING_RATIO)
        start_y = last_line_y - len(lines) * line_height + line_height
    else:
        start_y = max(top_padding, round_half_up(top_padding + font_size * 0.2))

    bottom_band = round_half_up(height * ATTRIBUTION_BAND_RATIO)

    return CaptionLayout(
        width=width,
        height=height,
        lines=tuple(lines),
        line_ys=tuple(start_y + i * line_height for i in range(len(lines))),
        anchor_x=round_half_up(width / 2),
        anchor=anchor,
        font_size=font_size,
        line_height=line_height,
        stroke_width=max(1, round_half_up(font_size * STROKE_RATIO)),
        chars_per_line=budget,
        side_padding=side_padding,
        truncated=truncated,
        attribution=attribution,
        attribution_font_size=attribution_font_size,
        attribution_stroke_width=max(1, round_half_up(attribution_font_size * STROKE_RATIO)),
        attribution_x=width - side_padding,
        attribution_y=height - round_half_up(bottom_band * 0.35),
    )
