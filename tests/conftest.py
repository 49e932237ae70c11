# tests/conftest.py
"""
Shared test helpers: a scripted vision client and small generated images.
"""

import io

from PIL import Image


class ScriptedVisionClient:
    """
    Stand-in for a VisionClient that replays canned answers.

    Each script entry is either the raw text the model "said" or an exception
    instance to raise for that call.
    """

    def __init__(self, quality=None, labels=None):
        self.quality_script = list(quality or [])
        self.label_script = list(labels or [])
        self.quality_calls = []
        self.label_calls = []

    @staticmethod
    def _next(script, kind):
        if not script:
            raise AssertionError(f"Unexpected extra {kind} query")
        answer = script.pop(0)
        if isinstance(answer, Exception):
            raise answer
        return answer

    def query_quality(self, frame):
        self.quality_calls.append(frame)
        return self._next(self.quality_script, "quality")

    def query_label(self, frame, region):
        self.label_calls.append((frame, region))
        return self._next(self.label_script, "label")


def no_sleep(_seconds):
    pass


def make_image_bytes(width=64, height=48, fmt="JPEG", color=(90, 120, 60)):
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format=fmt)
    return buf.getvalue()
