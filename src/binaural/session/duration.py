"""
Render duration resolution.

Order matters:
1. An explicit duration always wins (music presence is irrelevant)
2. Otherwise the uploaded music length is probed with ffprobe
3. Otherwise, or when probing fails, 30 minutes
"""

import asyncio
import logging
import math
from typing import Optional

from .params import SessionRequest, SessionSpec, clamp_duration

logger = logging.getLogger(__name__)

FALLBACK_DURATION_SEC = 1800.0


class ProbeError(Exception):
    """Raised when the duration probe cannot report a usable length."""

    kind = "probe_failure"


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


async def _kill(proc) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
    await proc.wait()


async def probe_duration(
    file_path: str,
    ffprobe_path: str = "ffprobe",
    timeout_seconds: float = 30,
) -> float:
    """
    Probe an audio file's duration in seconds.

    Args:
        file_path: File to probe
        ffprobe_path: ffprobe executable
        timeout_seconds: Max probe runtime

    Returns:
        Duration in seconds (finite, unrounded)

    Raises:
        ProbeError: On spawn failure, timeout, non-zero exit or unparseable output
    """
    args = [
        ffprobe_path,
        "-v", "error",
        "-show_entries", "format=duration",
        "-of", "default=noprint_wrappers=1:nokey=1",
        file_path,
    ]
    try:
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise ProbeError(f"ffprobe could not start: {e}") from e

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout_seconds)
    except asyncio.TimeoutError:
        await _kill(proc)
        raise ProbeError(f"ffprobe timed out after {timeout_seconds} seconds")
    except BaseException:
        # Cancelled (client gone) or interrupted: ffprobe must not outlive us
        await _kill(proc)
        raise

    if proc.returncode != 0:
        err = stderr.decode("utf-8", errors="replace").strip()
        raise ProbeError(err or "ffprobe failed")

    text = stdout.decode("utf-8", errors="replace").strip()
    try:
        seconds = float(text)
    except ValueError:
        raise ProbeError(f"No duration in ffprobe output: {text!r}")
    if not math.isfinite(seconds):
        raise ProbeError(f"No duration in ffprobe output: {text!r}")
    return seconds


class DurationResolver:
    """Resolves the final render duration for a session request."""

    def __init__(self, ffprobe_path: str = "ffprobe", timeout_seconds: float = 30):
        self.ffprobe_path = ffprobe_path
        self.timeout_seconds = timeout_seconds

    async def probe(self, file_path: str) -> float:
        return await probe_duration(file_path, self.ffprobe_path, self.timeout_seconds)

    async def resolve_seconds(
        self,
        requested: Optional[float],
        music_path: Optional[str] = None,
    ) -> float:
        """
        Resolve duration in seconds.

        Args:
            requested: Caller-supplied duration, or None if not supplied
            music_path: Uploaded music file, if any

        Returns:
            Duration within [60, 7200]
        """
        if requested is not None and math.isfinite(requested):
            return clamp_duration(requested)

        if music_path is not None:
            try:
                probed = await self.probe(music_path)
            except ProbeError as e:
                logger.warning(f"Duration probe failed ({e}); using {FALLBACK_DURATION_SEC:.0f}s")
                return FALLBACK_DURATION_SEC
            duration = clamp_duration(float(round_half_up(probed)))
            logger.info(f"Probed music length {probed:.2f}s -> duration {duration:.0f}s")
            return duration

        return FALLBACK_DURATION_SEC

    async def resolve(self, request: SessionRequest) -> SessionSpec:
        """Resolve the request's duration and return the complete SessionSpec."""
        seconds = await self.resolve_seconds(request.duration_sec, request.music_path)
        return request.resolve(seconds)
