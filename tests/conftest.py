"""
Shared fakes for ffmpeg / ffprobe subprocesses.

FakeProcess mimics asyncio.subprocess.Process closely enough for the
duration probe and the render orchestrator. It must be created inside a
running event loop.
"""

import asyncio
from pathlib import Path

import pytest


class FakeProcess:
    """In-memory stand-in for an asyncio subprocess."""

    def __init__(self, stdout_chunks=(), stderr=b"", returncode=0, hang=False):
        self.stdout = asyncio.StreamReader()
        self.stderr = asyncio.StreamReader()
        for chunk in stdout_chunks:
            self.stdout.feed_data(chunk)
        self.stderr.feed_data(stderr)
        self.stderr.feed_eof()

        self.returncode = None
        self.kill_calls = 0
        self._exited = asyncio.Event()

        # A hanging process keeps stdout open until killed
        if not hang:
            self.stdout.feed_eof()
            self._exit(returncode)

    def _exit(self, code):
        self.returncode = code
        self._exited.set()

    async def wait(self):
        await self._exited.wait()
        return self.returncode

    async def communicate(self):
        out = await self.stdout.read()
        err = await self.stderr.read()
        await self.wait()
        return out, err

    def kill(self):
        self.kill_calls += 1
        if self.returncode is None:
            self.stdout.feed_eof()
            self._exit(-9)


class FakeSpawner:
    """
    Replacement for asyncio.create_subprocess_exec.

    `probe` and `render` are either kwargs for FakeProcess or an exception
    to raise on spawn. Dispatch is by executable name.
    """

    def __init__(self):
        self.probe = {"stdout_chunks": [b"120.0\n"]}
        self.render = {"stdout_chunks": [b"RIFF", b"\x00" * 64]}
        self.calls = []
        self.processes = []

    async def __call__(self, *args, **kwargs):
        self.calls.append(list(args))
        name = Path(args[0]).name
        spec = self.probe if name.startswith("ffprobe") else self.render
        if isinstance(spec, BaseException):
            raise spec
        process = FakeProcess(**spec)
        self.processes.append(process)
        return process

    def calls_for(self, name):
        return [call for call in self.calls if Path(call[0]).name == name]


@pytest.fixture
def spawner(monkeypatch):
    """Patch asyncio.create_subprocess_exec with a FakeSpawner."""
    fake = FakeSpawner()
    monkeypatch.setattr(asyncio, "create_subprocess_exec", fake)
    return fake
