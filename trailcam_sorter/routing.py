"""
Maps a FileVerdict to a filesystem action and carries that action out.

decide_route is pure; execute_action is the only code that touches the tree.
"""

import os
from dataclasses import dataclass
from typing import List, Tuple, Union

from trailcam_sorter.aggregator import FileVerdict
from trailcam_sorter.errors import FilesystemError
from trailcam_sorter.gates import NO_ANIMAL_LABEL, QUALITY_PASS_THRESHOLD
from trailcam_sorter.logging_config import get_logger

logger = get_logger(__name__)

LOW_QUALITY_DIR = "_lowq"
NO_DETECTION_DIR = NO_ANIMAL_LABEL


@dataclass(frozen=True)
class MoveTo:
    """Rename the file into root/name."""
    name: str


@dataclass(frozen=True)
class HardlinkFanout:
    """Hardlink the file into every root/name, then remove the original."""
    names: Tuple[str, ...]
    remove_original: bool = True


RoutingAction = Union[MoveTo, HardlinkFanout]


def decide_route(verdict: FileVerdict) -> RoutingAction:
    """
    Choose where a file goes. Rules are checked in order:

    1. best quality below the pass threshold -> _lowq
    2. no labels -> none
    3. one label -> that label
    4. several labels across several frames -> hardlink into each (sorted)
    5. several labels from a single frame -> the first label seen
    """
    if verdict.max_quality < QUALITY_PASS_THRESHOLD:
        return MoveTo(LOW_QUALITY_DIR)
    if not verdict.labels:
        return MoveTo(NO_DETECTION_DIR)
    if len(verdict.labels) == 1:
        return MoveTo(verdict.labels[0])
    if verdict.is_multi_frame:
        return HardlinkFanout(tuple(sorted(verdict.labels)))
    return MoveTo(verdict.labels[0])


def _destination_dir(root: str, name: str) -> str:
    if not name or name in (os.curdir, os.pardir) or os.sep in name or (os.altsep and os.altsep in name):
        raise FilesystemError(f"Refusing to use {name!r} as a directory name")
    return os.path.join(root, name)


def _ensure_dir(path: str) -> None:
    try:
        os.makedirs(path, mode=0o755, exist_ok=True)
    except OSError as e:
        raise FilesystemError(f"Failed to create directory '{path}': {e}") from e


def move_file(source_path: str, root: str, name: str) -> str:
    """Move source_path into root/name, creating the directory if needed."""
    dest_dir = _destination_dir(root, name)
    _ensure_dir(dest_dir)
    dest_path = os.path.join(dest_dir, os.path.basename(source_path))
    try:
        os.rename(source_path, dest_path)
    except OSError as e:
        raise FilesystemError(f"Failed to move '{source_path}' to '{dest_dir}': {e}") from e
    return dest_path


def hardlink_fanout(source_path: str, root: str, names: Tuple[str, ...], remove_original: bool = True) -> List[str]:
    """
    Hardlink source_path into root/<name> for every name.

    If any link fails, links already made by this call are removed and the
    original is left where it was. The original is removed only after every
    link exists.
    """
    filename = os.path.basename(source_path)
    created = []
    try:
        for name in names:
            dest_dir = _destination_dir(root, name)
            _ensure_dir(dest_dir)
            dest_path = os.path.join(dest_dir, filename)
            try:
                os.link(source_path, dest_path)
            except OSError as e:
                raise FilesystemError(f"Failed to create hardlink from '{source_path}' to '{dest_path}': {e}") from e
            created.append(dest_path)
            logger.info(f"Hardlinked to '{name}'")
    except FilesystemError:
        for dest_path in created:
            try:
                os.remove(dest_path)
            except OSError as cleanup_error:
                logger.error(f"Could not roll back hardlink '{dest_path}': {cleanup_error}")
        raise

    if remove_original:
        try:
            os.remove(source_path)
        except OSError as e:
            raise FilesystemError(f"Failed to remove original file '{source_path}': {e}") from e
    return created


def execute_action(action: RoutingAction, source_path: str, root: str) -> None:
    """Carry out a routing action for one file under root."""
    if isinstance(action, MoveTo):
        move_file(source_path, root, action.name)
    elif isinstance(action, HardlinkFanout):
        hardlink_fanout(source_path, root, action.names, action.remove_original)
    else:
        raise TypeError(f"Unknown routing action: {action!r}")
