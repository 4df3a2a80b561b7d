"""
ffmpeg render orchestration.

Spawns one ffmpeg process per session, forwards its stdout to the HTTP
response as it is produced and guarantees cleanup on every exit path:

    IDLE -> SPAWNED -> STREAMING -> COMPLETED | ABORTED | FAILED

Cleanup (kill the process if still running, discard the uploaded music file)
runs at most once per session.
"""

import asyncio
import enum
import logging
from typing import AsyncIterator, Callable, List, Optional

from .graph import RenderPlan

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 65536


class RenderError(Exception):
    """Base class for render failures."""

    kind = "render_failure"
    message = "Render failed"

    def __init__(self, details: str = ""):
        super().__init__(details or self.message)
        self.details = details


class RenderSpawnError(RenderError):
    """The renderer executable could not be started."""

    kind = "render_spawn_failure"
    message = "FFmpeg spawn failed"


class RenderExitError(RenderError):
    """The renderer exited with a non-zero status."""

    kind = "render_exit_failure"
    message = "Render failed"

    def __init__(self, returncode: int, stderr: str = ""):
        super().__init__(stderr)
        self.returncode = returncode
        self.stderr = stderr

    def __str__(self) -> str:
        return f"ffmpeg exited with status {self.returncode}"


class RenderState(enum.Enum):
    IDLE = "idle"
    SPAWNED = "spawned"
    STREAMING = "streaming"
    COMPLETED = "completed"
    ABORTED = "aborted"
    FAILED = "failed"


def build_ffmpeg_args(plan: RenderPlan, ffmpeg_path: str = "ffmpeg") -> List[str]:
    """
    Build the ffmpeg argument list for a render plan.

    Music (if any) is input 0 and looped indefinitely at the demux stage;
    the tone generator is a lavfi input. Output goes to stdout.
    """
    args = [ffmpeg_path, "-hide_banner", "-loglevel", "error"]

    if plan.has_music:
        if plan.loop_music:
            args += ["-stream_loop", "-1"]
        args += ["-i", plan.music_path]

    args += ["-f", "lavfi", "-i", plan.tone_source]
    args += ["-filter_complex", plan.filter_graph()]
    args += ["-map", "[out]"]
    args += [
        "-ar", str(plan.sample_rate),
        "-ac", str(plan.channels),
        "-c:a", plan.codec,
    ]
    args += ["-f", plan.container, "pipe:1"]
    return args


class RenderSession:
    """
    One running render: the ffmpeg process plus its streaming handle.

    Usage:
        session = RenderSession(plan, ffmpeg_path, on_cleanup=discard)
        first = await session.open()          # raises RenderError before any byte
        async for chunk in session.stream(first):
            ...
    """

    def __init__(
        self,
        plan: RenderPlan,
        ffmpeg_path: str = "ffmpeg",
        on_cleanup: Optional[Callable[[], None]] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        self.plan = plan
        self.ffmpeg_path = ffmpeg_path
        self.chunk_size = chunk_size
        self.state = RenderState.IDLE
        self.bytes_sent = 0
        self._on_cleanup = on_cleanup
        self._process: Optional[asyncio.subprocess.Process] = None
        self._stderr_chunks: List[bytes] = []
        self._stderr_task: Optional[asyncio.Task] = None
        self._cleaned_up = False

    @property
    def stderr(self) -> str:
        return b"".join(self._stderr_chunks).decode("utf-8", errors="replace")

    @property
    def cleaned_up(self) -> bool:
        return self._cleaned_up

    async def _collect_stderr(self) -> None:
        stream = self._process.stderr
        while True:
            chunk = await stream.read(4096)
            if not chunk:
                break
            self._stderr_chunks.append(chunk)

    async def _finish_stderr(self) -> None:
        if self._stderr_task is not None:
            try:
                await self._stderr_task
            except asyncio.CancelledError:
                pass

    async def _wait_exit(self) -> int:
        returncode = await self._process.wait()
        await self._finish_stderr()
        return returncode

    def _fail(self, error: RenderError) -> RenderError:
        self.state = RenderState.FAILED
        logger.error(f"{error.message}: {error}")
        if error.details:
            logger.error(f"ffmpeg stderr: {error.details.strip()}")
        self.cleanup()
        return error

    async def open(self) -> bytes:
        """
        Spawn ffmpeg and wait for its first output chunk.

        Returns:
            First chunk of rendered audio (empty if ffmpeg exited cleanly
            without output)

        Raises:
            RenderSpawnError: ffmpeg could not be started
            RenderExitError: ffmpeg exited non-zero before producing output
        """
        if self.state is not RenderState.IDLE:
            raise RuntimeError(f"Render session already {self.state.value}")

        args = build_ffmpeg_args(self.plan, self.ffmpeg_path)
        logger.info(f"Starting ffmpeg render ({self.plan.duration_sec:.0f}s, music={self.plan.has_music})")
        logger.debug(f"ffmpeg args: {args}")

        try:
            self._process = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise self._fail(RenderSpawnError(str(e)))

        self.state = RenderState.SPAWNED
        self._stderr_task = asyncio.ensure_future(self._collect_stderr())

        try:
            chunk = await self._process.stdout.read(self.chunk_size)
            if chunk:
                return chunk

            returncode = await self._wait_exit()
        except BaseException:
            # Cancelled or failed while waiting: nothing has been sent yet
            if self.state is RenderState.SPAWNED:
                self.state = RenderState.ABORTED
            self.cleanup()
            raise

        if returncode != 0:
            raise self._fail(RenderExitError(returncode, self.stderr))

        self.state = RenderState.COMPLETED
        logger.info("Render finished without output")
        self.cleanup()
        return b""

    async def stream(self, first_chunk: bytes = b"") -> AsyncIterator[bytes]:
        """
        Yield rendered audio until ffmpeg exits.

        Cancellation (client disconnect) or closing the generator aborts the
        render. A non-zero exit after bytes were sent raises RenderExitError
        so the server drops the connection instead of ending it cleanly.
        """
        try:
            if self.state is RenderState.COMPLETED:
                return
            if self.state is not RenderState.SPAWNED:
                raise RuntimeError(f"Cannot stream a {self.state.value} render session")

            self.state = RenderState.STREAMING
            if first_chunk:
                self.bytes_sent += len(first_chunk)
                yield first_chunk

            while True:
                chunk = await self._process.stdout.read(self.chunk_size)
                if not chunk:
                    break
                self.bytes_sent += len(chunk)
                yield chunk

            returncode = await self._wait_exit()
            if returncode != 0:
                raise self._fail(RenderExitError(returncode, self.stderr))

            self.state = RenderState.COMPLETED
            logger.info(f"✅ Render complete ({self.bytes_sent} bytes)")
        finally:
            if self.state in (RenderState.SPAWNED, RenderState.STREAMING):
                self.state = RenderState.ABORTED
                logger.info(f"Client went away after {self.bytes_sent} bytes; aborting render")
            self.cleanup()

    def abort(self) -> None:
        """Abort the render (client disconnect or response error)."""
        if self.state in (RenderState.SPAWNED, RenderState.STREAMING):
            self.state = RenderState.ABORTED
        self.cleanup()

    def cleanup(self) -> None:
        """Kill ffmpeg if still running and discard the upload. Runs once."""
        if self._cleaned_up:
            return
        self._cleaned_up = True

        process = self._process
        if process is not None and process.returncode is None:
            try:
                process.kill()
                logger.debug("Killed ffmpeg")
            except ProcessLookupError:
                pass
        if self._stderr_task is not None and not self._stderr_task.done():
            self._stderr_task.cancel()

        if self._on_cleanup is not None:
            try:
                self._on_cleanup()
            except Exception as e:
                logger.warning(f"Render cleanup callback failed: {e}")
