"""
HTTP surface for the binaural renderer.

POST /generate (multipart/form-data)
    Fields: carrier, beatStart, beatEnd, durationSec, toneGain, musicGain,
            fadeSec, filenameHint
    File:   music (optional), looped under the tones

    Streams a 48 kHz / 24-bit stereo WAV with metadata headers:
        Content-Disposition, X-Beat-Start-Hz, X-Beat-End-Hz, X-Carrier-Hz,
        X-Duration-Sec, X-Sample-Rate, X-Bit-Depth, X-Session-Label

GET /health
"""

import asyncio
import logging
from pathlib import Path
from typing import Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.background import BackgroundTask
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from .config import Config
from .render.graph import build_render_plan
from .render.orchestrator import RenderError, RenderSession
from .session.duration import DurationResolver
from .session.naming import response_headers
from .session.params import resolve_request
from .uploads import UploadStore

logger = logging.getLogger(__name__)

FORM_FIELDS = (
    "carrier",
    "beatStart",
    "beatEnd",
    "durationSec",
    "toneGain",
    "musicGain",
    "fadeSec",
    "filenameHint",
)


def _error_response(error: str, kind: str, details: Optional[str] = None) -> JSONResponse:
    body = {"error": error, "kind": kind}
    if details:
        body["details"] = details
    return JSONResponse(status_code=500, content=body)


def create_app(config: Optional[Config] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Loaded Config (defaults when None)
    """
    if config is None:
        config = Config.defaults()

    app = FastAPI(title="Binaural Renderer")
    app.state.config = config

    store = UploadStore(config.upload_dir)
    durations = DurationResolver(
        ffprobe_path=config.ffprobe_path,
        timeout_seconds=config.get("probe", "timeout_seconds"),
    )
    ffmpeg_path = config.ffmpeg_path
    chunk_size = config.get("render", "chunk_size_bytes")

    @app.get("/health")
    async def health():
        return {"ok": True}

    @app.post("/generate")
    async def generate(request: Request):
        music_path: Optional[Path] = None
        session: Optional[RenderSession] = None

        def cleanup() -> None:
            if session is not None:
                session.cleanup()
            else:
                store.discard(music_path)

        try:
            form = await request.form()
            try:
                fields: Dict[str, Optional[str]] = {}
                for name in FORM_FIELDS:
                    value = form.get(name)
                    if isinstance(value, str):
                        fields[name] = value

                upload = form.get("music")
                if isinstance(upload, UploadFile) and upload.filename:
                    music_path = await run_in_threadpool(store.save, upload.file, upload.filename)
            finally:
                await form.close()

            session_request = resolve_request(
                fields, str(music_path) if music_path is not None else None
            )
            spec = await durations.resolve(session_request)
            plan = build_render_plan(spec)
            headers = response_headers(spec)
            logger.info(
                f"Render request: carrier={spec.carrier_hz}Hz "
                f"beat={spec.beat_start_hz}->{spec.beat_end_hz}Hz "
                f"duration={spec.duration_sec:.0f}s music={spec.has_music} "
                f"label={headers['X-Session-Label']}"
            )

            session = RenderSession(
                plan,
                ffmpeg_path=ffmpeg_path,
                on_cleanup=lambda: store.discard(music_path),
                chunk_size=chunk_size,
            )
            first_chunk = await session.open()

        except RenderError as e:
            # Nothing streamed yet, so the failure can still be reported
            cleanup()
            return _error_response(e.message, e.kind, e.details)
        except asyncio.CancelledError:
            cleanup()
            raise
        except Exception:
            logger.error("Render request failed", exc_info=True)
            cleanup()
            return _error_response("Server error", "server_fault")

        return StreamingResponse(
            session.stream(first_chunk),
            media_type="audio/wav",
            headers=headers,
            background=BackgroundTask(session.cleanup),
        )

    return app
