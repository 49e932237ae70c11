# tests/test_video_frames.py
"""
Tests for ffprobe/ffmpeg frame sampling, with subprocess mocked out.
"""

import json
import subprocess
from unittest.mock import MagicMock, patch

import pytest

from trailcam_sorter.errors import MediaError
from trailcam_sorter.video_frames import FALLBACK_DURATION_SECONDS, VideoFrameSampler


def completed(stdout):
    result = MagicMock()
    result.stdout = stdout
    return result


def fake_run(duration_json, frames):
    """Return a subprocess.run replacement answering ffprobe then ffmpeg calls."""
    frames = list(frames)
    calls = []

    def run(cmd, **kwargs):
        calls.append(cmd)
        if cmd[0] == "ffprobe":
            return completed(duration_json)
        return completed(frames.pop(0))

    return run, calls


def test_sample_grabs_three_frames_at_30_50_70_percent():
    run, calls = fake_run(json.dumps({"format": {"duration": "20.0"}}), [b"a", b"b", b"c"])
    with patch("trailcam_sorter.video_frames.subprocess.run", side_effect=run):
        frames = VideoFrameSampler().sample("clip.mp4")

    assert frames == [b"a", b"b", b"c"]
    positions = [cmd[cmd.index("-ss") + 1] for cmd in calls[1:]]
    assert positions == ["6.000", "10.000", "14.000"]
    assert all(cmd[-1] == "pipe:" and "mjpeg" in cmd for cmd in calls[1:])


@pytest.mark.parametrize("stdout", ["{}", "not json", json.dumps({"format": {"duration": "N/A"}}),
                                    json.dumps({"format": {"duration": "0"}})])
def test_duration_falls_back_when_unreadable(stdout):
    with patch("trailcam_sorter.video_frames.subprocess.run", return_value=completed(stdout)):
        assert VideoFrameSampler().get_duration("clip.mp4") == FALLBACK_DURATION_SECONDS


def test_probe_failure_raises_media_error():
    error = subprocess.CalledProcessError(1, ["ffprobe"], stderr="moov atom not found")
    with patch("trailcam_sorter.video_frames.subprocess.run", side_effect=error):
        with pytest.raises(MediaError, match="moov atom"):
            VideoFrameSampler().sample("broken.mp4")


def test_missing_ffmpeg_raises_media_error():
    with patch("trailcam_sorter.video_frames.subprocess.run", side_effect=FileNotFoundError()):
        with pytest.raises(MediaError, match="not installed"):
            VideoFrameSampler().extract_frame("clip.mp4", 1.0)


def test_empty_frame_output_raises_media_error():
    with patch("trailcam_sorter.video_frames.subprocess.run", return_value=completed(b"")):
        with pytest.raises(MediaError):
            VideoFrameSampler().extract_frame("clip.mp4", 99.0)


def test_extract_failure_includes_stderr():
    error = subprocess.CalledProcessError(1, ["ffmpeg"], stderr=b"Invalid data found")
    with patch("trailcam_sorter.video_frames.subprocess.run", side_effect=error):
        with pytest.raises(MediaError, match="Invalid data found"):
            VideoFrameSampler().extract_frame("clip.mp4", 3.0)
