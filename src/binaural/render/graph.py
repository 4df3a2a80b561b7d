"""
Signal graph construction.

Builds the ffmpeg filter-graph description for one session: a phase-accurate
two-channel tone generator, its fade chain, an optional looped music bed and
the mix/limit stage. Pure description; nothing here touches a process.

Tone synthesis:
    left(t)  = g * sin(2*pi*fc*t)
    right(t) = g * sin(2*pi*((fc + bs)*t + 0.5*k*t^2)),  k = (be - bs) / dur

The right-channel phase is the integral of fc + bs + k*t, so its frequency
ramps linearly from fc+bs to fc+be with no phase discontinuity.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from ..session.params import SessionSpec, format_number

logger = logging.getLogger(__name__)

SAMPLE_RATE = 48000
BIT_DEPTH = 24
CHANNELS = 2
AUDIO_CODEC = "pcm_s24le"
CONTAINER = "wav"
LIMITER_THRESHOLD = 0.95


def ramp_slope(beat_start_hz: float, beat_end_hz: float, duration_sec: float) -> float:
    """Instantaneous beat-frequency slope in Hz/sec."""
    return (beat_end_hz - beat_start_hz) / duration_sec


def tone_expressions(spec: SessionSpec) -> Tuple[str, str]:
    """Left and right channel waveform expressions."""
    fc = format_number(spec.carrier_hz)
    bs = format_number(spec.beat_start_hz)
    gain = format_number(spec.tone_gain)
    k = ramp_slope(spec.beat_start_hz, spec.beat_end_hz, spec.duration_sec)

    left = f"{gain}*sin(2*PI*{fc}*t)"
    right = f"{gain}*sin(2*PI*(({fc}+{bs})*t + 0.5*{format_number(k)}*t*t))"
    return left, right


def tone_source(spec: SessionSpec) -> str:
    """aevalsrc program generating both channels for the full duration."""
    left, right = tone_expressions(spec)
    return (
        f"aevalsrc=exprs={left}\\|{right}"
        f":s={SAMPLE_RATE}:d={format_number(spec.duration_sec)}"
    )


def tone_filters(spec: SessionSpec) -> Tuple[str, ...]:
    """
    Tone post-processing: sample-counter timestamps, then fades.

    A zero-length fade is dropped entirely; afade treats d=0 as "use its
    default length", which would not be a no-op.
    """
    filters = ["asetpts=N/SR/TB"]
    fade = spec.fade_sec
    if fade > 0:
        fade_out_start = max(0.0, spec.duration_sec - fade)
        filters.append(f"afade=t=in:st=0:d={format_number(fade)}")
        filters.append(f"afade=t=out:st={format_number(fade_out_start)}:d={format_number(fade)}")
    return tuple(filters)


def music_filters(spec: SessionSpec) -> Tuple[str, ...]:
    """
    Music bed chain. Expects an input already looped indefinitely at the
    demux stage; only the tail is trimmed here.
    """
    return (
        f"aresample={SAMPLE_RATE}",
        f"aformat=sample_rates={SAMPLE_RATE}:channel_layouts=stereo",
        "asetpts=N/SR/TB",
        f"atrim=start=0:end={format_number(spec.duration_sec)}",
        f"volume={format_number(spec.music_gain)}",
    )


@dataclass(frozen=True)
class RenderPlan:
    """Renderer-agnostic description of one session's signal graph."""

    tone_source: str
    tone_filters: Tuple[str, ...]
    music_filters: Optional[Tuple[str, ...]]
    mix_filters: Tuple[str, ...]
    duration_sec: float
    music_path: Optional[str] = None
    loop_music: bool = True
    sample_rate: int = SAMPLE_RATE
    bit_depth: int = BIT_DEPTH
    channels: int = CHANNELS
    codec: str = AUDIO_CODEC
    container: str = CONTAINER

    @property
    def has_music(self) -> bool:
        return self.music_path is not None

    def filter_graph(self) -> str:
        """
        Full -filter_complex program.

        Input indices: with music [0:a] is music and [1:a] tones,
        otherwise [0:a] is tones. The result is labelled [out].
        """
        tones = ",".join(self.tone_filters)
        mix = ",".join(self.mix_filters)
        if self.has_music:
            music = ",".join(self.music_filters or ())
            return (
                f"[0:a]{music}[m];"
                f"[1:a]{tones}[t];"
                f"[m][t]{mix}[out]"
            )
        return f"[0:a]{tones}[t];[t]{mix}[out]"


def build_render_plan(spec: SessionSpec) -> RenderPlan:
    """
    Build the RenderPlan for a resolved session.

    Music and tones are summed without normalization so each stream keeps
    exactly its requested gain; the limiter always runs.
    """
    if spec.has_music:
        mix = (
            "amix=inputs=2:normalize=0:dropout_transition=0",
            f"alimiter=limit={LIMITER_THRESHOLD}",
        )
        music = music_filters(spec)
    else:
        mix = (f"alimiter=limit={LIMITER_THRESHOLD}",)
        music = None

    plan = RenderPlan(
        tone_source=tone_source(spec),
        tone_filters=tone_filters(spec),
        music_filters=music,
        mix_filters=mix,
        duration_sec=spec.duration_sec,
        music_path=spec.music_path,
    )
    logger.debug(f"Filter graph: {plan.filter_graph()}")
    return plan
