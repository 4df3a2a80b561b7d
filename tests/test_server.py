"""
HTTP-level tests for the render service.

ffmpeg/ffprobe are replaced by in-memory fake processes (see conftest.py).
"""

import pytest
from unittest.mock import patch
from fastapi.testclient import TestClient
from binaural.config import Config
from binaural.server import create_app


@pytest.fixture
def upload_dir(tmp_path):
    return tmp_path / "uploads"


@pytest.fixture
def client(upload_dir):
    config = Config.defaults()
    config.data["paths"]["upload_dir"] = str(upload_dir)
    config.data["paths"]["ffmpeg"] = "/opt/ffmpeg/bin/ffmpeg"
    config.data["paths"]["ffprobe"] = "/opt/ffmpeg/bin/ffprobe"
    return TestClient(create_app(config))


def stored_uploads(upload_dir):
    if not upload_dir.exists():
        return []
    return list(upload_dir.iterdir())


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"ok": True}


class TestGenerate:
    """Test the /generate endpoint."""

    def test_alpha_session_without_music(self, client, spawner):
        """carrier=420, beat 8->12, 600s -> Alpha, streamed WAV."""
        spawner.render = {"stdout_chunks": [b"RIFF", b"\x01" * 100]}

        response = client.post("/generate", data={
            "carrier": "420",
            "beatStart": "8",
            "beatEnd": "12",
            "durationSec": "600",
        })

        assert response.status_code == 200
        assert response.headers["content-type"] == "audio/wav"
        assert response.headers["x-carrier-hz"] == "420"
        assert response.headers["x-duration-sec"] == "600"
        assert response.headers["x-session-label"] == "Alpha"
        assert response.headers["x-beat-start-hz"] == "8"
        assert response.headers["x-beat-end-hz"] == "12"
        assert response.headers["x-sample-rate"] == "48000"
        assert response.headers["x-bit-depth"] == "24"
        assert 'filename="Alpha_8p00-12p00Hz_10min_' in response.headers["content-disposition"]
        assert response.content == b"RIFF" + b"\x01" * 100

        assert spawner.calls_for("ffprobe") == []
        args = spawner.calls_for("ffmpeg")[0]
        assert args[0] == "/opt/ffmpeg/bin/ffmpeg"
        assert "-stream_loop" not in args
        assert ":d=600" in args[args.index("lavfi") + 2]

    def test_defaults_without_fields(self, client, spawner):
        response = client.post("/generate", data={})

        assert response.status_code == 200
        assert response.headers["x-duration-sec"] == "1800"
        assert response.headers["x-carrier-hz"] == "420"
        assert response.headers["x-session-label"] == "Beta"

    def test_invalid_fields_are_clamped(self, client, spawner):
        response = client.post("/generate", data={
            "carrier": "5000",
            "beatStart": "abc",
            "durationSec": "30",
            "filenameHint": "<script>",
        })

        assert response.status_code == 200
        assert response.headers["x-carrier-hz"] == "1000"
        assert response.headers["x-beat-start-hz"] == "12"
        assert response.headers["x-duration-sec"] == "60"
        assert 'filename="script_' in response.headers["content-disposition"]

    def test_short_music_loops_to_minimum(self, client, spawner, upload_dir):
        """45s music, no duration -> 60s render with the music looped."""
        spawner.probe = {"stdout_chunks": [b"45.000000\n"]}

        response = client.post(
            "/generate",
            files={"music": ("bed.mp3", b"ID3fake-mp3", "audio/mpeg")},
        )

        assert response.status_code == 200
        assert response.headers["x-duration-sec"] == "60"

        probe_args = spawner.calls_for("ffprobe")[0]
        assert probe_args[0] == "/opt/ffmpeg/bin/ffprobe"
        args = spawner.calls_for("ffmpeg")[0]
        loop = args.index("-stream_loop")
        assert args[loop:loop + 3] == ["-stream_loop", "-1", "-i"]
        assert args[loop + 3] == probe_args[-1]
        assert "atrim=start=0:end=60" in args[args.index("-filter_complex") + 1]

        # Upload discarded once the render completes
        assert stored_uploads(upload_dir) == []

    def test_explicit_duration_ignores_music_length(self, client, spawner, upload_dir):
        response = client.post(
            "/generate",
            data={"durationSec": "600"},
            files={"music": ("bed.wav", b"RIFFfake", "audio/wav")},
        )

        assert response.status_code == 200
        assert response.headers["x-duration-sec"] == "600"
        assert spawner.calls_for("ffprobe") == []
        assert stored_uploads(upload_dir) == []

    def test_probe_failure_falls_back(self, client, spawner):
        spawner.probe = {"stderr": b"moov atom not found", "returncode": 1}

        response = client.post(
            "/generate",
            files={"music": ("broken.m4a", b"junk", "audio/mp4")},
        )

        assert response.status_code == 200
        assert response.headers["x-duration-sec"] == "1800"

    def test_empty_file_field_means_no_music(self, client, spawner):
        response = client.post(
            "/generate",
            data={"durationSec": "120"},
            files={"music": ("", b"", "application/octet-stream")},
        )

        assert response.status_code == 200
        assert "-stream_loop" not in spawner.calls_for("ffmpeg")[0]


class TestGenerateFailures:
    """Test failure responses and cleanup."""

    def test_render_failure_reports_stderr(self, client, spawner, upload_dir):
        spawner.render = {"stdout_chunks": [], "stderr": b"Error initializing filter", "returncode": 1}

        response = client.post(
            "/generate",
            data={"durationSec": "60"},
            files={"music": ("bed.mp3", b"data", "audio/mpeg")},
        )

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "Render failed"
        assert body["kind"] == "render_exit_failure"
        assert body["details"] == "Error initializing filter"
        assert stored_uploads(upload_dir) == []

    def test_spawn_failure(self, client, spawner, upload_dir):
        spawner.render = FileNotFoundError("[Errno 2] No such file or directory: 'ffmpeg'")

        response = client.post(
            "/generate",
            files={"music": ("bed.mp3", b"data", "audio/mpeg")},
        )

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "FFmpeg spawn failed"
        assert body["kind"] == "render_spawn_failure"
        assert "No such file" in body["details"]
        assert stored_uploads(upload_dir) == []

    def test_unexpected_error(self, client, spawner, upload_dir):
        with patch("binaural.server.build_render_plan", side_effect=ValueError("boom")):
            response = client.post(
                "/generate",
                data={"durationSec": "60"},
                files={"music": ("bed.mp3", b"data", "audio/mpeg")},
            )

        assert response.status_code == 500
        assert response.json() == {"error": "Server error", "kind": "server_fault"}
        assert spawner.calls_for("ffmpeg") == []
        assert stored_uploads(upload_dir) == []
