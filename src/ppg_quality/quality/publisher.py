"""
Result Publisher.

Holds the latest QualityResult with last-known-good semantics. Results carry
the submission number of the snapshot they were derived from; a publish with
a number not greater than the stored one is dropped, so an older snapshot's
result can never overwrite a newer one.
"""

import logging
import time
from typing import Optional, Tuple

from ..data.contracts import QualityResult

logger = logging.getLogger(__name__)


class ResultPublisher:
    """Latest quality result plus its monotonically increasing sequence number."""

    def __init__(self):
        self._latest: Tuple[QualityResult, int] = (QualityResult.unknown(), 0)
        self.updated_at: Optional[float] = None

    def publish(self, result: QualityResult, seq: int) -> bool:
        """
        Store ``result`` if ``seq`` is newer than the current one.

        Returns:
            True if stored, False if dropped as stale
        """
        _, current_seq = self._latest
        if seq <= current_seq:
            logger.debug(f"Dropped stale result seq={seq} (current seq={current_seq})")
            return False

        # Single tuple assignment so readers never see a torn pair
        self._latest = (result, seq)
        self.updated_at = time.monotonic()
        return True

    def read(self) -> QualityResult:
        """Latest result; never blocks."""
        return self._latest[0]

    @property
    def sequence(self) -> int:
        return self._latest[1]

    def reset(self):
        """Back to the unknown sentinel, e.g. when a new session starts."""
        self._latest = (QualityResult.unknown(), 0)
        self.updated_at = None
