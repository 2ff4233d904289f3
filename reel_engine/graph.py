"""
Filter graph synthesizer.

Turns an ordered list of slides (plus their motion trajectories, optional
caption layers and the transition length) into a PipelineGraph: an explicit
list of inputs and named-pad stages that is validated on construction and
serialized to an ffmpeg argument vector as a last, isolated step.

Pad naming:
    v{i}          slide i after scale/crop/motion
    v{i}_txt      slide i with its caption composited
    v01, v012...  running crossfade outputs
    vout / aout   final video / audio pads
"""

import re
from dataclasses import dataclass, field, replace
from typing import List, Optional, Sequence, Tuple

from .errors import GraphConstructionError
from .motion import FPS, OUTPUT_SIZE, MotionTrajectory
from .timing import TransitionPolicy, crossfade_offsets, total_duration

# Vertical safe-zone offset of reel captions on the 1080x1920 canvas
CAPTION_SAFE_ZONE_Y = 810
AUDIO_SAMPLE_RATE = 44100
AUDIO_LEAD_IN_MS = 500

IMAGE = "image"
VIDEO = "video"
AUDIO = "audio"
LAVFI = "lavfi"

POSITION_FIRST = "first"
POSITION_MIDDLE = "middle"
POSITION_LAST = "last"
POSITION_ONLY = "only"

RAW_PAD = re.compile(r"^(\d+):([va])(\?)?$")


def fmt(value: float) -> str:
    """Format a number for filter arguments (3 decimals max, no trailing zeros)."""
    return f"{round(float(value), 3):g}"


@dataclass(frozen=True)
class SlideSpec:
    """One source image/video with its presentation parameters."""

    source: str
    duration: float
    caption: str = ""
    max_caption_lines: int = 9
    position: str = POSITION_ONLY
    kind: str = IMAGE
    has_audio: bool = False

    @property
    def is_video(self) -> bool:
        return self.kind == VIDEO

    def with_source(self, source) -> "SlideSpec":
        return replace(self, source=str(source))


def build_slides(
    sources: Sequence[str],
    durations: Sequence[float],
    captions: Optional[Sequence[str]] = None,
    max_caption_lines: int = 9,
    kind: str = IMAGE,
) -> List[SlideSpec]:
    """Build SlideSpecs for an ordered reel, assigning each slide its position."""
    captions = list(captions or [])
    count = len(sources)
    slides = []
    for i, (source, duration) in enumerate(zip(sources, durations)):
        if count == 1:
            position = POSITION_ONLY
        elif i == 0:
            position = POSITION_FIRST
        elif i == count - 1:
            position = POSITION_LAST
        else:
            position = POSITION_MIDDLE
        slides.append(SlideSpec(
            source=source,
            duration=duration,
            caption=captions[i] if i < len(captions) and captions[i] else "",
            max_caption_lines=max_caption_lines,
            position=position,
            kind=kind,
        ))
    return slides


@dataclass(frozen=True)
class CaptionLayer:
    """A rasterized caption bitmap and where it lands on the slide."""

    path: str
    x: str = "(W-w)/2"
    y: str = str(CAPTION_SAFE_ZONE_Y)


@dataclass(frozen=True)
class MediaInput:
    """One ``-i`` input of the encoder with its preceding input options."""

    path: str
    options: Tuple[str, ...] = ()
    kind: str = IMAGE

    def to_args(self) -> List[str]:
        return [*self.options, "-i", self.path]


@dataclass(frozen=True)
class Stage:
    """A filter chain consuming named pads and producing exactly one pad."""

    operation: str
    inputs: Tuple[str, ...]
    output: str
    filters: Tuple[str, ...]

    def render(self) -> str:
        pads_in = "".join(f"[{pad}]" for pad in self.inputs)
        return f"{pads_in}{','.join(self.filters)}[{self.output}]"


@dataclass(frozen=True)
class PipelineGraph:
    """
    Declarative description of one encoder run.

    Validated on construction; raises GraphConstructionError if a stage
    references a pad that does not exist yet, a pad name is reused, a pad is
    consumed twice or left dangling, or a declared output is missing.
    """

    inputs: Tuple[MediaInput, ...]
    stages: Tuple[Stage, ...]
    video_output: str
    output_path: str
    audio_output: Optional[str] = None
    duration: Optional[float] = None
    output_options: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        produced = set()
        consumed = set()

        for stage in self.stages:
            for pad in stage.inputs:
                if RAW_PAD.match(pad):
                    self._check_raw(pad, stage.operation)
                elif pad not in produced:
                    raise GraphConstructionError(
                        f"Stage '{stage.operation}' consumes pad [{pad}] before it is produced"
                    )
                elif pad in consumed:
                    raise GraphConstructionError(f"Pad [{pad}] is consumed more than once")
                else:
                    consumed.add(pad)

            if stage.output in produced or RAW_PAD.match(stage.output):
                raise GraphConstructionError(f"Duplicate pad name [{stage.output}]")
            produced.add(stage.output)

        outputs = [pad for pad in (self.video_output, self.audio_output) if pad]
        for pad in outputs:
            if RAW_PAD.match(pad):
                self._check_raw(pad, "output")
            elif pad not in produced:
                raise GraphConstructionError(f"Declared output [{pad}] is never produced")
            elif pad in consumed:
                raise GraphConstructionError(f"Declared output [{pad}] is consumed by a stage")

        dangling = produced - consumed - set(outputs)
        if dangling:
            raise GraphConstructionError(f"Unconnected pads: {', '.join(sorted(dangling))}")

    def _check_raw(self, pad: str, where: str) -> None:
        index = int(RAW_PAD.match(pad).group(1))
        if index >= len(self.inputs):
            raise GraphConstructionError(
                f"'{where}' references input {index} but only {len(self.inputs)} inputs exist"
            )

    @property
    def crossfade_count(self) -> int:
        return sum(1 for stage in self.stages if stage.operation == "xfade")

    def filter_complex(self) -> str:
        return ";".join(stage.render() for stage in self.stages)

    def to_args(self) -> List[str]:
        """Full encoder argument vector, without the binary itself."""
        args = ["-y"]
        for media in self.inputs:
            args.extend(media.to_args())
        if self.stages:
            args.extend(["-filter_complex", self.filter_complex()])
        args.extend(["-map", _map_ref(self.video_output)])
        if self.audio_output:
            args.extend(["-map", _map_ref(self.audio_output)])
        if self.duration is not None:
            args.extend(["-t", fmt(self.duration)])
        args.extend(self.output_options)
        args.append(self.output_path)
        return args


def _map_ref(pad: str) -> str:
    return pad if RAW_PAD.match(pad) else f"[{pad}]"


def _video_encoder_options(fps: int) -> Tuple[str, ...]:
    return ("-c:v", "libx264", "-pix_fmt", "yuv420p", "-r", str(fps))


def _audio_normalize() -> Tuple[str, ...]:
    return (f"aresample={AUDIO_SAMPLE_RATE}", "aformat=channel_layouts=stereo")


def _chain_name(index: int, last: bool, prefix: str) -> str:
    if last:
        return f"{prefix}out"
    return prefix + "".join(str(i) for i in range(index + 2))


def synthesize(
    slides: Sequence[SlideSpec],
    trajectories: Sequence[Optional[MotionTrajectory]],
    caption_layers: Optional[Sequence[Optional[CaptionLayer]]],
    transition_seconds: float,
    output_path: str,
    audio_track: Optional[str] = None,
    policy: TransitionPolicy = TransitionPolicy.REJECT,
    fps: int = FPS,
    output_size: Tuple[int, int] = OUTPUT_SIZE,
) -> PipelineGraph:
    """
    Build the pipeline graph of a 1-4 slide reel.

    Args:
        slides: Ordered slides; ``source`` must already point at local files
        trajectories: One MotionTrajectory per image slide (None for video slides)
        caption_layers: Optional caption layer per slide
        transition_seconds: Crossfade length
        output_path: Destination .mp4
        audio_track: Soundtrack for an image slideshow, delayed by a short lead-in
        policy: How too-short slides are handled (see timing.crossfade_offsets)

    Returns:
        PipelineGraph

    Raises:
        GraphConstructionError: On inconsistent arguments or an impossible timeline
    """
    if not slides:
        raise GraphConstructionError("Cannot synthesize a graph without slides")
    if len(trajectories) != len(slides):
        raise GraphConstructionError(
            f"Got {len(trajectories)} trajectories for {len(slides)} slides"
        )
    layers = list(caption_layers or [])
    layers += [None] * (len(slides) - len(layers))

    durations = [slide.duration for slide in slides]
    offsets = crossfade_offsets(durations, transition_seconds, policy)
    total = total_duration(durations, transition_seconds)
    out_w, out_h = output_size

    inputs: List[MediaInput] = []
    stages: List[Stage] = []
    video_pads: List[str] = []

    # Slide inputs come first so slide i is raw input i
    for slide in slides:
        inputs.append(MediaInput(slide.source, (), slide.kind))

    for i, (slide, trajectory) in enumerate(zip(slides, trajectories)):
        if slide.is_video:
            filters = (
                f"trim=duration={fmt(slide.duration)}",
                "setpts=PTS-STARTPTS",
                f"scale={out_w}:{out_h}:force_original_aspect_ratio=increase",
                f"crop={out_w}:{out_h}",
                f"fps={fps}",
                "format=yuv420p",
                "setsar=1:1",
            )
            stages.append(Stage("normalize", (f"{i}:v",), f"v{i}", filters))
        else:
            if trajectory is None:
                raise GraphConstructionError(f"Image slide {i + 1} has no motion trajectory")
            stages.append(Stage("kenburns", (f"{i}:v",), f"v{i}", trajectory.filter_chain()))

        pad = f"v{i}"
        layer = layers[i]
        if layer is not None:
            layer_index = len(inputs)
            inputs.append(MediaInput(layer.path, (), IMAGE))
            stages.append(Stage(
                "overlay",
                (pad, f"{layer_index}:v"),
                f"v{i}_txt",
                (f"overlay=x={layer.x}:y={layer.y}:eval=init", "format=yuv420p"),
            ))
            pad = f"v{i}_txt"
        video_pads.append(pad)

    video_output = video_pads[0]
    for k, offset in enumerate(offsets):
        name = _chain_name(k, k == len(offsets) - 1, "v")
        stages.append(Stage(
            "xfade",
            (video_output, video_pads[k + 1]),
            name,
            (
                f"xfade=transition=fade:duration={fmt(transition_seconds)}:offset={fmt(offset)}",
                "format=yuv420p",
            ),
        ))
        video_output = name

    audio_output = None
    if any(slide.is_video for slide in slides):
        audio_pads = []
        for i, slide in enumerate(slides):
            if slide.has_audio:
                source = f"{i}:a"
            else:
                source = f"{len(inputs)}:a"
                inputs.append(MediaInput(
                    f"anullsrc=channel_layout=stereo:sample_rate={AUDIO_SAMPLE_RATE}",
                    ("-f", "lavfi", "-t", fmt(slide.duration)),
                    LAVFI,
                ))
            filters = (f"atrim=duration={fmt(slide.duration)}", "asetpts=PTS-STARTPTS")
            stages.append(Stage("aformat", (source,), f"a{i}", filters + _audio_normalize()))
            audio_pads.append(f"a{i}")

        audio_output = audio_pads[0]
        for k in range(len(audio_pads) - 1):
            name = _chain_name(k, k == len(audio_pads) - 2, "a")
            stages.append(Stage(
                "acrossfade",
                (audio_output, audio_pads[k + 1]),
                name,
                (f"acrossfade=d={fmt(transition_seconds)}",),
            ))
            audio_output = name
    elif audio_track:
        track_index = len(inputs)
        inputs.append(MediaInput(str(audio_track), (), AUDIO))
        stages.append(Stage(
            "adelay",
            (f"{track_index}:a",),
            "aout",
            (f"adelay={AUDIO_LEAD_IN_MS}|{AUDIO_LEAD_IN_MS}",) + _audio_normalize(),
        ))
        audio_output = "aout"

    options = _video_encoder_options(fps)
    if audio_output:
        options += ("-c:a", "aac", "-b:a", "128k")
    options += ("-movflags", "+faststart")

    return PipelineGraph(
        inputs=tuple(inputs),
        stages=tuple(stages),
        video_output=video_output,
        output_path=str(output_path),
        audio_output=audio_output,
        duration=total,
        output_options=options,
    )


def synthesize_overlay(video_path: str, layer_path: str, output_path: str) -> PipelineGraph:
    """Graph burning a full-frame caption layer onto a single video, audio copied."""
    return PipelineGraph(
        inputs=(
            MediaInput(str(video_path), (), VIDEO),
            MediaInput(str(layer_path), (), IMAGE),
        ),
        stages=(
            Stage("overlay", ("0:v", "1:v"), "vout", ("overlay=x=0:y=0:eval=init",)),
        ),
        video_output="vout",
        output_path=str(output_path),
        audio_output="0:a?",
        output_options=("-c:v", "libx264", "-pix_fmt", "yuv420p", "-c:a", "copy"),
    )


def quote_filter_value(value: str) -> str:
    """Single-quote a filter option value, escaping embedded quotes."""
    return "'" + str(value).replace("'", "'\\''") + "'"


def synthesize_subtitles(
    video_path: str,
    subtitle_path: str,
    output_path: str,
    style: Optional[str] = None,
) -> PipelineGraph:
    """Graph burning an SRT file into a single video, audio copied."""
    options = [f"filename={quote_filter_value(subtitle_path)}"]
    if style:
        options.append(f"force_style={quote_filter_value(style)}")
    return PipelineGraph(
        inputs=(MediaInput(str(video_path), (), VIDEO),),
        stages=(
            Stage("subtitles", ("0:v",), "vout", ("subtitles=" + ":".join(options),)),
        ),
        video_output="vout",
        output_path=str(output_path),
        audio_output="0:a?",
        output_options=(
            "-c:v", "libx264", "-pix_fmt", "yuv420p", "-crf", "23", "-c:a", "copy",
        ),
    )
