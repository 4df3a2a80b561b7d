"""
Binaural beat verification.

Reads the start of a rendered stereo WAV, finds the dominant frequency of each
channel inside a search band and reports their difference as the beat.
"""

import logging
from dataclasses import dataclass
from typing import Tuple

import numpy as np
import soundfile as sf

logger = logging.getLogger(__name__)

MAX_FFT_SIZE = 65536


class VerifyError(Exception):
    """Raised when a file cannot be analyzed."""
    pass


@dataclass
class WavInfo:
    sample_rate: int
    channels: int
    subtype: str
    frames_read: int

    @property
    def seconds_read(self) -> float:
        return self.frames_read / self.sample_rate if self.sample_rate else 0.0


@dataclass
class BeatAnalysis:
    """Result of a beat analysis."""

    left_hz: float
    right_hz: float
    beat_hz: float
    is_binaural: bool
    info: WavInfo


def read_stereo(path: str, seconds: float = 10.0) -> Tuple[np.ndarray, np.ndarray, WavInfo]:
    """
    Read up to `seconds` of a stereo file as float arrays.

    Raises:
        VerifyError: If the file is unreadable or not stereo
    """
    try:
        with sf.SoundFile(path) as f:
            if f.channels != 2:
                raise VerifyError(f"Only stereo files are supported (got {f.channels} channels)")
            frames = int(np.ceil(f.samplerate * seconds))
            data = f.read(frames, dtype="float32", always_2d=True)
            info = WavInfo(
                sample_rate=f.samplerate,
                channels=f.channels,
                subtype=f.subtype,
                frames_read=len(data),
            )
    except RuntimeError as e:
        raise VerifyError(f"Cannot read {path}: {e}") from e

    return data[:, 0], data[:, 1], info


def dominant_frequency(
    samples: np.ndarray,
    sample_rate: int,
    band_min: float = 100.0,
    band_max: float = 1000.0,
) -> float:
    """
    Strongest frequency within [band_min, band_max].

    Uses a Hann-windowed FFT over the largest power-of-two prefix of the
    samples, capped at 65536.
    """
    if len(samples) < 2:
        return 0.0
    n = min(MAX_FFT_SIZE, 1 << int(np.floor(np.log2(len(samples)))))
    windowed = samples[:n] * np.hanning(n)

    magnitudes = np.abs(np.fft.rfft(windowed))
    freqs = np.fft.rfftfreq(n, d=1.0 / sample_rate)

    in_band = (freqs >= band_min) & (freqs <= band_max)
    if not np.any(in_band):
        return 0.0
    band_freqs = freqs[in_band]
    return float(band_freqs[np.argmax(magnitudes[in_band])])


def analyze_file(
    path: str,
    seconds: float = 10.0,
    band_min: float = 100.0,
    band_max: float = 1000.0,
    min_beat: float = 1.0,
    max_beat: float = 40.0,
) -> BeatAnalysis:
    """
    Analyze a stereo file for a binaural beat.

    Args:
        path: WAV file
        seconds: Seconds from the start to analyze
        band_min, band_max: Peak search band in Hz
        min_beat, max_beat: Beat range considered binaural

    Returns:
        BeatAnalysis
    """
    left, right, info = read_stereo(path, seconds)
    logger.debug(f"Read {info.frames_read} frames at {info.sample_rate} Hz from {path}")

    left_hz = dominant_frequency(left, info.sample_rate, band_min, band_max)
    right_hz = dominant_frequency(right, info.sample_rate, band_min, band_max)
    beat_hz = abs(left_hz - right_hz)

    return BeatAnalysis(
        left_hz=left_hz,
        right_hz=right_hz,
        beat_hz=beat_hz,
        is_binaural=min_beat <= beat_hz <= max_beat,
        info=info,
    )
