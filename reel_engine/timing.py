"""
Duration and transition timing.

Validates request timing parameters before any work starts and derives the
crossfade offsets and total duration of a multi-slide output.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Sequence, Tuple

from .errors import GraphConstructionError, ValidationError

SUPPORTED_TRANSITIONS = ("fade",)
REEL_TRANSITION_SECONDS = 1.0
STITCH_TRANSITION_SECONDS = 0.5
MIN_SLIDE_SECONDS = 1.0
MAX_SLIDE_SECONDS = 30.0
MIN_CAPTION_LINES = 1
MAX_CAPTION_LINES = 20
MAX_SLIDES = 4

# Offsets are serialized with millisecond precision
PRECISION = 3


class TransitionPolicy(str, Enum):
    """What to do when a slide is too short to host its crossfades."""

    REJECT = "reject"
    CLAMP = "clamp"


@dataclass(frozen=True)
class Timeline:
    """Crossfade offsets and resulting total duration of a reel."""

    durations: Tuple[float, ...]
    transition: float
    offsets: Tuple[float, ...]
    total: float


def validate_durations(
    durations: Sequence[float],
    minimum: float = MIN_SLIDE_SECONDS,
    maximum: float = MAX_SLIDE_SECONDS,
) -> None:
    """Raise ValidationError unless every duration lies in [minimum, maximum]."""
    for index, duration in enumerate(durations):
        if duration != duration or not minimum <= duration <= maximum:
            raise ValidationError(
                f"Invalid duration{index + 1}: {duration}. "
                f"Duration must be between {minimum:g} and {maximum:g} seconds."
            )


def validate_transition(kind: str) -> str:
    if kind not in SUPPORTED_TRANSITIONS:
        raise ValidationError(
            f"Invalid transition '{kind}'. Must be one of: {', '.join(SUPPORTED_TRANSITIONS)}"
        )
    return kind


def validate_max_lines(max_lines: int, name: str = "maxLines") -> int:
    if not MIN_CAPTION_LINES <= max_lines <= MAX_CAPTION_LINES:
        raise ValidationError(
            f"Invalid {name}: {max_lines}. "
            f"Must be between {MIN_CAPTION_LINES} and {MAX_CAPTION_LINES}."
        )
    return max_lines


def validate_slide_count(count: int, maximum: int = MAX_SLIDES) -> int:
    if count < 1:
        raise ValidationError("At least one slide is required")
    if count > maximum:
        raise ValidationError(f"Maximum {maximum} slides allowed, got {count}")
    return count


def validate_crossfade_fit(durations: Sequence[float], transition: float) -> None:
    """
    Raise ValidationError unless every slide can host its crossfades.

    The first and last slides carry one transition and must last at least
    ``transition``; interior slides carry two and must last longer than it.
    """
    last = len(durations) - 1
    if last < 1:
        return
    for index, duration in enumerate(durations):
        interior = 0 < index < last
        if duration < transition or (interior and duration <= transition):
            needed = "longer than" if interior else "at least"
            raise ValidationError(
                f"Invalid duration{index + 1}: {duration:g}. Slide {index + 1} must last "
                f"{needed} the {transition:g}s transition."
            )


def crossfade_offsets(
    durations: Sequence[float],
    transition: float,
    policy: TransitionPolicy = TransitionPolicy.REJECT,
) -> Tuple[float, ...]:
    """
    Start time of every crossfade, measured on the output timeline.

    Crossfade k (0-based) blends slide k into slide k+1 and starts once the
    first k+1 slides have played, minus the k+1 transitions that overlap them:

        offset_k = sum(durations[:k + 1]) - (k + 1) * transition

    Args:
        durations: Per-slide durations in seconds, in order
        transition: Crossfade length in seconds
        policy: REJECT raises on a slide too short for its crossfades,
            CLAMP clamps offsets at zero

    Returns:
        Tuple of len(durations) - 1 offsets

    Raises:
        GraphConstructionError: Under REJECT when an offset would be negative
            or would not advance past the previous one
    """
    policy = TransitionPolicy(policy)
    offsets = []
    elapsed = 0.0
    previous = None

    for k, duration in enumerate(durations[:-1]):
        elapsed += duration
        offset = round(elapsed - (k + 1) * transition, PRECISION)

        if policy == TransitionPolicy.REJECT:
            if offset < 0:
                raise GraphConstructionError(
                    f"Slide {k + 1} lasts {duration:g}s, shorter than the "
                    f"{transition:g}s transition"
                )
            if previous is not None and offset <= previous:
                raise GraphConstructionError(
                    f"Slide {k + 1} lasts {duration:g}s and cannot host two "
                    f"{transition:g}s transitions"
                )
        else:
            offset = max(0.0, offset)

        offsets.append(offset)
        previous = offset

    if durations and len(durations) > 1 and policy == TransitionPolicy.REJECT:
        last = durations[-1]
        if last < transition:
            raise GraphConstructionError(
                f"Slide {len(durations)} lasts {last:g}s, shorter than the "
                f"{transition:g}s transition"
            )

    return tuple(offsets)


def total_duration(durations: Sequence[float], transition: float) -> float:
    """Length of the output once every crossfade overlap is removed."""
    if not durations:
        return 0.0
    return round(sum(durations) - (len(durations) - 1) * transition, PRECISION)


def reconcile(
    durations: Sequence[float],
    transition: float,
    policy: TransitionPolicy = TransitionPolicy.REJECT,
) -> Timeline:
    """Compute offsets and total duration in one pass."""
    return Timeline(
        durations=tuple(durations),
        transition=transition,
        offsets=crossfade_offsets(durations, transition, policy),
        total=total_duration(durations, transition),
    )
