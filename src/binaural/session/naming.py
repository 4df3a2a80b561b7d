"""
Session labels, output filenames and response metadata headers.
"""

import math
import uuid
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Optional

from .params import SessionSpec, format_number
from ..render.graph import SAMPLE_RATE, BIT_DEPTH


def band_label(beat_hz: float) -> str:
    """
    Brainwave band for an average beat frequency.

    Ranges are half-open except Beta, whose upper bound is inclusive.
    """
    if 12 <= beat_hz <= 20:
        return "Beta"
    if 8 <= beat_hz < 12:
        return "Alpha"
    if 4 <= beat_hz < 8:
        return "Theta"
    if beat_hz < 4:
        return "Delta"
    return "Custom"


def average_beat(beat_start_hz: float, beat_end_hz: float) -> float:
    return (beat_start_hz + beat_end_hz) / 2


def two_decimals(value: float) -> str:
    """Two decimal places, ties rounded away from zero (14.125 -> 14.13)."""
    return str(Decimal(repr(float(value))).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def beat_descriptor(beat_start_hz: float, beat_end_hz: float) -> str:
    """'14.00Hz' for a fixed beat, '14.00-18.00Hz' for a ramp."""
    if beat_start_hz == beat_end_hz:
        return f"{two_decimals(beat_end_hz)}Hz"
    return f"{two_decimals(beat_start_hz)}-{two_decimals(beat_end_hz)}Hz"


def session_label(spec: SessionSpec) -> str:
    return band_label(average_beat(spec.beat_start_hz, spec.beat_end_hz))


def build_filename(
    beat_start_hz: float,
    beat_end_hz: float,
    duration_sec: float,
    filename_hint: Optional[str] = None,
    unique_id: Optional[str] = None,
) -> str:
    """
    Build the attachment filename.

    Format: {hint-or-label}_{descriptor, '.'->'p'}_{minutes}min_{unique id}.wav
    """
    label = band_label(average_beat(beat_start_hz, beat_end_hz))
    prefix = filename_hint or label
    descriptor = beat_descriptor(beat_start_hz, beat_end_hz).replace(".", "p")
    minutes = int(math.floor(duration_sec / 60 + 0.5))
    if unique_id is None:
        unique_id = str(uuid.uuid4())
    return f"{prefix}_{descriptor}_{minutes}min_{unique_id}.wav"


def response_headers(spec: SessionSpec, filename: Optional[str] = None) -> Dict[str, str]:
    """
    Metadata headers for a render response.

    These must be set before the first body byte is written.
    """
    if filename is None:
        filename = build_filename(
            spec.beat_start_hz,
            spec.beat_end_hz,
            spec.duration_sec,
            spec.filename_hint,
        )
    return {
        "Content-Disposition": f'attachment; filename="{filename}"',
        "X-Beat-Start-Hz": format_number(spec.beat_start_hz),
        "X-Beat-End-Hz": format_number(spec.beat_end_hz),
        "X-Carrier-Hz": format_number(spec.carrier_hz),
        "X-Duration-Sec": format_number(spec.duration_sec),
        "X-Sample-Rate": str(SAMPLE_RATE),
        "X-Bit-Depth": str(BIT_DEPTH),
        "X-Session-Label": session_label(spec),
    }
