"""
Retry-bounded query gates for single frames.

A gate asks the vision model the same question about one frame until the
answer is trustworthy or the attempt budget runs out. Every attempt ends in one
of three ways:

* success: the answer is good enough and is returned immediately,
* soft retry: the answer is valid but not confident (low quality score,
  "unknown", several words); it is kept as the running candidate and the
  question is asked again,
* hard error: the model could not be reached or answered with garbage.

When the budget is exhausted on soft retries, the last candidate is returned
as an ordinary value. Low quality and uncertain labels are data, not faults.
"""

import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple, Type

from trailcam_sorter.errors import TransportError, UnparseableResponse
from trailcam_sorter.logging_config import get_logger

logger = get_logger(__name__)

QUALITY_PASS_THRESHOLD = 3
QUALITY_RETRY_THRESHOLD = 4

QUALITY_ATTEMPTS = 3
LABEL_ATTEMPTS = 5
RETRY_DELAY_SECONDS = 0.05

NO_ANIMAL_LABEL = "none"
UNKNOWN_LABEL = "unknown"
SENTINEL_LABELS = frozenset({NO_ANIMAL_LABEL, UNKNOWN_LABEL})

# Opening quote -> matching closing quote
_QUOTE_PAIRS = {
    '"': '"',
    "'": "'",
    '“': '”',
    '‘': '’',
}

_SCORE_PATTERN = re.compile(r"[+-]?[0-9]+")


def _is_quoted(text: str) -> bool:
    return len(text) >= 2 and _QUOTE_PAIRS.get(text[0]) == text[-1]


def normalize_label(raw: str) -> str:
    """
    Clean up a raw classification answer.

    Strips surrounding whitespace, lowercases, removes one layer of matching
    straight or curly quotes and at most one trailing period, whether it sits
    outside the quotes ("deer".) or inside them ("deer."). A mismatched pair
    such as "deer' is left alone.
    """
    text = raw.strip().lower()
    period_removed = False
    if text.endswith('.'):
        unpunctuated = text[:-1].rstrip()
        if _is_quoted(unpunctuated):
            text = unpunctuated
            period_removed = True
    if _is_quoted(text):
        text = text[1:-1].strip()
    if not period_removed and text.endswith('.'):
        text = text[:-1].strip()
    return text


def parse_score(raw: str) -> int:
    """Parse a plain ASCII integer such as "4" or "+4"; anything else is unparseable."""
    text = raw.strip()
    if not _SCORE_PATTERN.fullmatch(text):
        raise UnparseableResponse(raw, f"Quality score is not an integer: {raw[:200]!r}")
    return int(text)


def is_sentinel(label: str) -> bool:
    return label in SENTINEL_LABELS


@dataclass(frozen=True)
class Attempt:
    """Outcome of a single query attempt."""
    value: Any = None
    accepted: bool = False
    error: Optional[Exception] = None

    @classmethod
    def success(cls, value: Any) -> "Attempt":
        return cls(value=value, accepted=True)

    @classmethod
    def soft_retry(cls, value: Any) -> "Attempt":
        return cls(value=value, accepted=False)

    @classmethod
    def hard_error(cls, error: Exception) -> "Attempt":
        return cls(error=error)


def run_with_retries(attempt_fn: Callable[[], Attempt],
                     attempts: int,
                     delay: float = RETRY_DELAY_SECONDS,
                     retry_on: Tuple[Type[Exception], ...] = (),
                     sleep: Callable[[float], None] = time.sleep,
                     description: str = "query") -> Any:
    """
    Call attempt_fn up to `attempts` times.

    Returns the first accepted value, or the last soft-retry value once the
    budget is spent. Hard errors are raised at once unless they are instances
    of `retry_on`, in which case they use up an attempt and are raised only
    when no attempts remain.
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    last_candidate = None
    for attempt_number in range(1, attempts + 1):
        outcome = attempt_fn()

        if outcome.error is not None:
            if not isinstance(outcome.error, retry_on) or attempt_number == attempts:
                raise outcome.error
            logger.debug(f"{description} attempt {attempt_number}/{attempts} failed: {outcome.error}")
        elif outcome.accepted:
            return outcome.value
        else:
            last_candidate = outcome
            logger.debug(f"{description} attempt {attempt_number}/{attempts} not confident: {outcome.value!r}")

        if attempt_number < attempts:
            sleep(delay)

    # The final attempt either succeeded, raised, or was a soft retry
    return last_candidate.value


class QualityGate:
    """Asks for a 1-5 quality score until one reaches the retry threshold."""

    def __init__(self, client, attempts: int = QUALITY_ATTEMPTS, delay: float = RETRY_DELAY_SECONDS,
                 sleep: Callable[[float], None] = time.sleep):
        self.client = client
        self.attempts = attempts
        self.delay = delay
        self.sleep = sleep

    def _attempt(self, frame: bytes) -> Attempt:
        try:
            raw = self.client.query_quality(frame)
        except TransportError as e:
            return Attempt.hard_error(e)

        try:
            score = parse_score(raw)
        except UnparseableResponse as e:
            return Attempt.hard_error(e)

        if score < QUALITY_RETRY_THRESHOLD:
            return Attempt.soft_retry(score)
        return Attempt.success(score)

    def qualify(self, frame: bytes) -> int:
        """Return an accepted score, or the last score seen once attempts run out."""
        return run_with_retries(
            lambda: self._attempt(frame),
            self.attempts,
            delay=self.delay,
            retry_on=(TransportError,),
            sleep=self.sleep,
            description="Quality",
        )


class LabelGate:
    """Asks for a one-word animal label until a confident one comes back."""

    def __init__(self, client, attempts: int = LABEL_ATTEMPTS, delay: float = RETRY_DELAY_SECONDS,
                 sleep: Callable[[float], None] = time.sleep):
        self.client = client
        self.attempts = attempts
        self.delay = delay
        self.sleep = sleep

    def _attempt(self, frame: bytes, region: str) -> Attempt:
        try:
            raw = self.client.query_label(frame, region)
        except TransportError as e:
            return Attempt.hard_error(e)

        label = normalize_label(raw)
        if not label or len(label.split()) > 1 or is_sentinel(label):
            return Attempt.soft_retry(label)
        return Attempt.success(label)

    def classify(self, frame: bytes, region: str) -> str:
        """
        Return a normalized label.

        May still be "none", "unknown", empty, or several words when every
        attempt was unconfident; callers filter before using it.
        """
        return run_with_retries(
            lambda: self._attempt(frame, region),
            self.attempts,
            delay=self.delay,
            sleep=self.sleep,
            description="Classification",
        )
