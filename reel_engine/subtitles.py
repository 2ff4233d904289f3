"""
Subtitle cues and SRT output for burned-in subtitles.

Only untimed text is supported: the whole text becomes a single cue spanning
the clip. Forced alignment against the audio track is not performed.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

# Cue length when the clip duration is unknown
DEFAULT_CUE_SECONDS = 10.0

SUBTITLE_STYLE = (
    "FontName=Arial,FontSize=24,PrimaryColour=&H00FFFFFF,"
    "OutlineColour=&H00000000,Outline=2,Shadow=1,Alignment=2"
)


@dataclass(frozen=True)
class SubtitleCue:
    """One numbered SRT entry."""

    index: int
    start: float
    end: float
    text: str

    def to_srt(self) -> str:
        return (
            f"{self.index}\n"
            f"{srt_timestamp(self.start)} --> {srt_timestamp(self.end)}\n"
            f"{self.text}\n"
        )


def srt_timestamp(seconds: float) -> str:
    """Format seconds as HH:MM:SS,mmm."""
    millis = int(round(max(0.0, seconds) * 1000))
    hours, millis = divmod(millis, 3_600_000)
    minutes, millis = divmod(millis, 60_000)
    secs, millis = divmod(millis, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{millis:03d}"


def normalize_text(text: str) -> str:
    # A blank line would end the cue early
    return " ".join(text.split())


def single_cue(text: str, duration: Optional[float] = None) -> SubtitleCue:
    """Show the whole text from the first frame to the end of the clip."""
    end = duration if duration and duration > 0 else DEFAULT_CUE_SECONDS
    return SubtitleCue(1, 0.0, end, normalize_text(text))


def write_srt(cues: Sequence[SubtitleCue], path: Path) -> Path:
    path = Path(path)
    path.write_text("\n".join(cue.to_srt() for cue in cues), encoding="utf-8")
    return path
