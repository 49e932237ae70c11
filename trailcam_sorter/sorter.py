"""
Sorts one directory of trail camera media into per-verdict subdirectories.

Files are handled one at a time in listing order. A file that fails for any
reason (model unreachable, unreadable video, filesystem error) is logged and
left where it is; the run carries on with the next file.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from trailcam_sorter.aggregator import FrameAggregator
from trailcam_sorter.config import DEFAULT_MAX_WIDTH, DEFAULT_REGION
from trailcam_sorter.errors import SorterError
from trailcam_sorter.gates import LabelGate, QualityGate
from trailcam_sorter.image_processor import ImageProcessor
from trailcam_sorter.logging_config import get_logger
from trailcam_sorter.routing import HardlinkFanout, MoveTo, LOW_QUALITY_DIR, decide_route, execute_action
from trailcam_sorter.video_frames import VideoFrameSampler

logger = get_logger(__name__)

IMAGE_EXTENSIONS = ('.jpg', '.jpeg', '.png')
VIDEO_EXTENSIONS = ('.mp4', '.avi', '.mov', '.mkv', '.webm')


@dataclass
class SortSummary:
    """Counts of what happened to each directory entry."""
    destinations: Dict[str, int] = field(default_factory=dict)
    sorted_files: int = 0
    fanouts: int = 0
    skipped: int = 0
    failed: List[str] = field(default_factory=list)

    def record(self, names) -> None:
        self.sorted_files += 1
        for name in names:
            self.destinations[name] = self.destinations.get(name, 0) + 1


class MediaSorter:
    """Handles frame loading, aggregation, and routing for a media directory."""

    def __init__(self, client, region: str = DEFAULT_REGION, max_width: int = DEFAULT_MAX_WIDTH,
                 sampler: Optional[VideoFrameSampler] = None,
                 aggregator: Optional[FrameAggregator] = None):
        self.client = client
        self.region = region
        self.max_width = max_width
        self.sampler = sampler or VideoFrameSampler()
        self.aggregator = aggregator or FrameAggregator(QualityGate(client), LabelGate(client))

    def load_frames(self, file_path: str) -> List[bytes]:
        """Return the downscaled frames for an image or video, in temporal order."""
        ext = os.path.splitext(file_path)[1].lower()
        if ext in IMAGE_EXTENSIONS:
            frames = [ImageProcessor.load_image_bytes(file_path)]
        else:
            frames = self.sampler.sample(file_path)
        return [ImageProcessor.downscale(frame, self.max_width) for frame in frames]

    def process_file(self, media_dir: str, filename: str):
        """Classify one file and move or link it. Raises SorterError on failure."""
        file_path = os.path.join(media_dir, filename)
        frames = self.load_frames(file_path)
        verdict = self.aggregator.aggregate(frames, self.region)
        action = decide_route(verdict)

        if isinstance(action, HardlinkFanout):
            logger.info(f"Multiple animals detected: {', '.join(action.names)}")
        elif action.name == LOW_QUALITY_DIR:
            logger.info(f"Low quality ({verdict.max_quality}); moving to '{LOW_QUALITY_DIR}'")
        elif not verdict.labels:
            logger.info("No animals detected")
        elif len(verdict.labels) > 1:
            logger.info(f"Multiple labels for a single image; using first detection: {action.name}")
        else:
            logger.info(f"Detected: {action.name}")

        execute_action(action, file_path, media_dir)
        return action

    def sort_directory(self, media_dir: str) -> SortSummary:
        summary = SortSummary()
        try:
            entries = sorted(os.listdir(media_dir))
        except OSError as e:
            raise SorterError(f"Failed to read directory '{media_dir}': {e}") from e

        for filename in entries:
            logger.info(f"Processing '{filename}' ...")
            file_path = os.path.join(media_dir, filename)

            if os.path.isdir(file_path):
                logger.info("Is a directory; skipping")
                summary.skipped += 1
                continue

            ext = os.path.splitext(filename)[1].lower()
            if ext not in IMAGE_EXTENSIONS + VIDEO_EXTENSIONS:
                logger.info(f"File type '{ext}'; skipping")
                summary.skipped += 1
                continue

            try:
                action = self.process_file(media_dir, filename)
            except SorterError as e:
                logger.error(f"Failed to sort '{filename}': {e}")
                summary.failed.append(filename)
                continue

            if isinstance(action, MoveTo):
                summary.record([action.name])
            else:
                summary.fanouts += 1
                summary.record(action.names)

        return summary
