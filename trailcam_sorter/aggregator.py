"""
Folds per-frame quality scores and labels into one verdict per file.
"""

from dataclasses import dataclass, field
from typing import List, Sequence

from trailcam_sorter.gates import QUALITY_PASS_THRESHOLD, LabelGate, QualityGate, is_sentinel
from trailcam_sorter.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class FileVerdict:
    """Aggregated evidence for one media file."""
    max_quality: int
    labels: List[str] = field(default_factory=list)  # distinct, in first-seen frame order
    is_multi_frame: bool = False


def is_usable_label(label: str) -> bool:
    """A label may name a directory only if it is a single non-sentinel word."""
    return bool(label) and len(label.split()) == 1 and not is_sentinel(label)


class FrameAggregator:
    """Runs the quality and label gates over every frame of a file, in order."""

    def __init__(self, quality_gate: QualityGate, label_gate: LabelGate):
        self.quality_gate = quality_gate
        self.label_gate = label_gate

    def aggregate(self, frames: Sequence[bytes], region: str) -> FileVerdict:
        """
        Build a FileVerdict from an ordered, non-empty sequence of frames.

        Any hard error from either gate propagates and no verdict is produced.
        Frames scoring below the pass threshold are not classified.
        """
        if not frames:
            raise ValueError("Cannot aggregate a file with no frames")

        max_quality = None
        labels: List[str] = []

        for index, frame in enumerate(frames):
            score = self.quality_gate.qualify(frame)
            max_quality = score if max_quality is None else max(max_quality, score)

            if score < QUALITY_PASS_THRESHOLD:
                logger.debug(f"Frame {index}: quality {score}; not classifying")
                continue

            label = self.label_gate.classify(frame, region)
            if is_usable_label(label):
                if label not in labels:
                    labels.append(label)
                logger.info(f"Detected in frame {index}: {label}")
            else:
                logger.debug(f"Frame {index}: quality {score}, no confident label ({label!r})")

        return FileVerdict(max_quality=max_quality, labels=labels, is_multi_frame=len(frames) > 1)
