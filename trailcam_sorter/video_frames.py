"""
FFmpeg utilities for sampling still frames from trail camera videos.
"""

import json
import subprocess
from typing import List, Sequence

from trailcam_sorter.errors import MediaError
from trailcam_sorter.logging_config import get_logger

logger = get_logger(__name__)

# Fractions of the clip duration at which frames are grabbed
SAMPLE_POSITIONS = (0.3, 0.5, 0.7)

# Used when ffprobe cannot report a duration
FALLBACK_DURATION_SECONDS = 10.0


class VideoFrameSampler:
    """Grabs a fixed number of JPEG frames spread across a video."""

    def __init__(self, positions: Sequence[float] = SAMPLE_POSITIONS,
                 ffmpeg_bin: str = "ffmpeg", ffprobe_bin: str = "ffprobe",
                 timeout: float = 120.0):
        self.positions = tuple(positions)
        self.ffmpeg_bin = ffmpeg_bin
        self.ffprobe_bin = ffprobe_bin
        self.timeout = timeout

    def get_duration(self, video_path: str) -> float:
        """Return the container duration in seconds, or the fallback if unknown."""
        cmd = [
            self.ffprobe_bin,
            "-v", "quiet",
            "-print_format", "json",
            "-show_format",
            video_path
        ]

        try:
            result = subprocess.run(cmd, capture_output=True, text=True, check=True,
                                    timeout=self.timeout)
        except FileNotFoundError as e:
            raise MediaError(f"{self.ffprobe_bin} is not installed") from e
        except subprocess.CalledProcessError as e:
            raise MediaError(f"Failed to probe video {video_path}: {e.stderr}") from e
        except subprocess.TimeoutExpired as e:
            raise MediaError(f"Timed out probing video {video_path}") from e

        try:
            duration = float(json.loads(result.stdout)["format"]["duration"])
        except (ValueError, KeyError, TypeError):
            logger.debug(f"No usable duration for {video_path}; assuming {FALLBACK_DURATION_SECONDS}s")
            return FALLBACK_DURATION_SECONDS

        if duration <= 0:
            return FALLBACK_DURATION_SECONDS
        return duration

    def extract_frame(self, video_path: str, position: float) -> bytes:
        """Grab the frame at `position` seconds as MJPEG bytes."""
        cmd = [
            self.ffmpeg_bin,
            "-ss", f"{position:.3f}",
            "-i", video_path,
            "-vframes", "1",
            "-f", "image2",
            "-vcodec", "mjpeg",
            "pipe:"
        ]

        try:
            result = subprocess.run(cmd, capture_output=True, check=True, timeout=self.timeout)
        except FileNotFoundError as e:
            raise MediaError(f"{self.ffmpeg_bin} is not installed") from e
        except subprocess.CalledProcessError as e:
            stderr = e.stderr.decode(errors='replace') if e.stderr else ''
            raise MediaError(f"Failed to extract frame at {position:.2f}s: {stderr[-300:]}") from e
        except subprocess.TimeoutExpired as e:
            raise MediaError(f"Timed out extracting frame at {position:.2f}s") from e

        if not result.stdout:
            raise MediaError(f"No frame data at {position:.2f}s in {video_path}")
        return result.stdout

    def sample(self, video_path: str) -> List[bytes]:
        """Return frames in temporal order, one per configured position."""
        duration = self.get_duration(video_path)
        return [self.extract_frame(video_path, duration * fraction) for fraction in self.positions]
