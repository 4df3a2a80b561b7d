"""
Session parameter resolution.

Turns raw form fields into a canonical, immutable session description.
Every numeric field is clamped to its range; absent or unusable values fall
back to defaults. Nothing in here raises on bad input.
"""

import logging
import math
import re
from dataclasses import dataclass, replace
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

# field -> (default, min, max)
CARRIER_HZ = (420.0, 100.0, 1000.0)
BEAT_START_HZ = (12.0, 0.0, 40.0)
BEAT_END_HZ = (14.0, 0.0, 40.0)
TONE_GAIN = (0.25, 0.0, 1.0)
MUSIC_GAIN = (0.35, 0.0, 1.0)
FADE_SEC = (3.0, 0.0, 10.0)

MIN_DURATION_SEC = 60.0
MAX_DURATION_SEC = 7200.0

HINT_MAX_LENGTH = 40
_HINT_STRIP = re.compile(r"[^A-Za-z0-9_-]+")


def parse_number(value: Optional[str]) -> Optional[float]:
    """
    Parse a form value as a finite float.

    Returns None for absent, empty, non-numeric, NaN and infinite values.
    """
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return number


def format_number(value: float) -> str:
    """Whole numbers without a decimal part (420), others shortest form (12.5)."""
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)


def clamp(value: float, min_val: float, max_val: float) -> float:
    return min(max(value, min_val), max_val)


def clamp_number(value: Optional[str], default: float, min_val: float, max_val: float) -> float:
    """Parse and clamp, falling back to `default` when unusable."""
    number = parse_number(value)
    if number is None:
        return default
    return clamp(number, min_val, max_val)


def clamp_duration(seconds: float) -> float:
    return clamp(seconds, MIN_DURATION_SEC, MAX_DURATION_SEC)


def sanitize_hint(value: Optional[str]) -> Optional[str]:
    """Keep only [A-Za-z0-9_-], truncate to 40 chars. Empty result -> None."""
    if value is None:
        return None
    cleaned = _HINT_STRIP.sub("", str(value))[:HINT_MAX_LENGTH]
    return cleaned or None


@dataclass(frozen=True)
class SessionSpec:
    """Fully resolved session. duration_sec is always within [60, 7200]."""

    carrier_hz: float
    beat_start_hz: float
    beat_end_hz: float
    duration_sec: float
    tone_gain: float
    music_gain: float
    fade_sec: float
    filename_hint: Optional[str] = None
    music_path: Optional[str] = None

    @property
    def has_music(self) -> bool:
        return self.music_path is not None


@dataclass(frozen=True)
class SessionRequest:
    """
    Session parameters before duration resolution.

    duration_sec is None when the caller did not supply a usable number.
    """

    carrier_hz: float
    beat_start_hz: float
    beat_end_hz: float
    duration_sec: Optional[float]
    tone_gain: float
    music_gain: float
    fade_sec: float
    filename_hint: Optional[str] = None
    music_path: Optional[str] = None

    @property
    def has_music(self) -> bool:
        return self.music_path is not None

    def with_music(self, music_path: Optional[str]) -> "SessionRequest":
        return replace(self, music_path=music_path)

    def resolve(self, duration_sec: float) -> SessionSpec:
        """Complete the request with a resolved duration."""
        return SessionSpec(
            carrier_hz=self.carrier_hz,
            beat_start_hz=self.beat_start_hz,
            beat_end_hz=self.beat_end_hz,
            duration_sec=clamp_duration(duration_sec),
            tone_gain=self.tone_gain,
            music_gain=self.music_gain,
            fade_sec=self.fade_sec,
            filename_hint=self.filename_hint,
            music_path=self.music_path,
        )


def resolve_request(
    fields: Mapping[str, Optional[str]],
    music_path: Optional[str] = None,
) -> SessionRequest:
    """
    Build a SessionRequest from raw form fields.

    Args:
        fields: Form field name -> raw string (or None when absent)
        music_path: Path of the uploaded music file, if any

    Returns:
        SessionRequest with every numeric field clamped or defaulted.
    """
    duration = parse_number(fields.get("durationSec"))
    if duration is not None:
        duration = clamp_duration(duration)

    request = SessionRequest(
        carrier_hz=clamp_number(fields.get("carrier"), *CARRIER_HZ),
        beat_start_hz=clamp_number(fields.get("beatStart"), *BEAT_START_HZ),
        beat_end_hz=clamp_number(fields.get("beatEnd"), *BEAT_END_HZ),
        duration_sec=duration,
        tone_gain=clamp_number(fields.get("toneGain"), *TONE_GAIN),
        music_gain=clamp_number(fields.get("musicGain"), *MUSIC_GAIN),
        fade_sec=clamp_number(fields.get("fadeSec"), *FADE_SEC),
        filename_hint=sanitize_hint(fields.get("filenameHint")),
        music_path=music_path,
    )
    logger.debug(f"Resolved request: {request}")
    return request
