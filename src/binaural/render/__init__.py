"""
Render Module: Describe and run the ffmpeg render.

- Phase-accurate tone generator + fade chain
- Looped music bed, unnormalized mix, peak limiter
- One ffmpeg process per session, streamed to the client
"""

__all__ = ["graph", "orchestrator"]
