"""
Error types raised while sorting trail camera media.

Low quality scores and uncertain labels are not errors; the gates turn them
into retries and, once attempts run out, into ordinary return values.
"""


class SorterError(Exception):
    """Base class for failures that abort processing of a single file."""


class TransportError(SorterError):
    """The vision model endpoint was unreachable or returned a malformed response."""


class UnparseableResponse(SorterError):
    """The model answered, but the answer could not be interpreted."""

    def __init__(self, raw_text: str, message: str = None):
        self.raw_text = raw_text
        super().__init__(message or f"Could not parse model response: {raw_text[:200]!r}")


class MediaError(SorterError):
    """A file could not be read, decoded, or sampled into frames."""


class FilesystemError(SorterError):
    """Creating a directory, moving, or hardlinking a file failed."""
