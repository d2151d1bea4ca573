"""
Quality Orchestrator.

Decides when a window is assessed and turns class probabilities into a
published {label, confidence} result.

Gate: a window is assessed only when it holds at least
``min_window_samples`` samples AND the classifier adapter is READY.
Triggers are also skipped while the adapter is still computing an
inference abandoned by a timeout.

Single-flight (queued-then-coalesced):
- At most one assessment is in flight at any time.
- Triggers arriving meanwhile overwrite one "latest pending" slot.
- When the in-flight assessment finishes, only the newest pending
  snapshot is assessed; older pending snapshots are dropped.
- Every snapshot carries its submission number and the publisher refuses
  numbers that are not newer than the published one.

Failures (NotReady, InferenceFailed, AssessmentTimeout, anything unexpected)
abort the attempt, keep the last published result and are reported to the
logger and the optional error handler. A window that cannot be copied
as numbers is reported the same way. None of them reach the trigger caller.

Usage:
    adapter = ClassifierAdapter("models/ppg_quality/model.json")
    await adapter.load()
    orchestrator = QualityOrchestrator(adapter)

    # acquisition loop, once per captured frame
    window.append(sample)
    orchestrator.on_window_update(window)
    label = orchestrator.result.display_value
"""

import asyncio
import logging
from typing import Callable, Dict, Optional, Sequence, Tuple

import numpy as np

from ..config.assessment_config import AssessmentConfig
from ..data.contracts import ClassProbabilities, QualityResult, WaveformWindow
from ..exceptions import AssessmentTimeout, InferenceFailed, QualityAssessmentError
from ..features.feature_extractor import SignalFeatureExtractor
from .publisher import ResultPublisher

logger = logging.getLogger(__name__)


def probabilities_to_result(probabilities: ClassProbabilities) -> QualityResult:
    """
    Argmax label with its probability as a percentage.

    Ties go to the first class in (bad, acceptable, excellent) order.
    """
    label, probability = probabilities.winner()
    confidence = min(max(probability * 100.0, 0.0), 100.0)
    return QualityResult(label=label, confidence=confidence, probabilities=probabilities)


class QualityOrchestrator:
    """
    Gates, serialises and publishes signal quality assessments.

    Attributes:
        adapter: Classifier adapter (anything with ``is_ready`` and an
            async ``classify(vector)``)
        publisher: Where results are published
        extractor: Feature extractor
        config: Gating, snapshot and latency configuration
        error_handler: Optional callable receiving every aborted attempt's error
    """

    def __init__(
        self,
        adapter,
        publisher: Optional[ResultPublisher] = None,
        extractor: Optional[SignalFeatureExtractor] = None,
        config: Optional[AssessmentConfig] = None,
        error_handler: Optional[Callable[[Exception], None]] = None,
    ):
        self.config = config or AssessmentConfig()
        self.config.validate()

        self.adapter = adapter
        self.publisher = publisher or ResultPublisher()
        self.extractor = extractor or SignalFeatureExtractor(epsilon=self.config.epsilon)
        self.error_handler = error_handler

        self.last_error: Optional[Exception] = None
        self.failure_count = 0

        self._submitted = 0
        self._pending: Optional[Tuple[int, np.ndarray]] = None
        self._task: Optional[asyncio.Task] = None
        self._waiters: Dict[int, asyncio.Future] = {}

    @property
    def in_flight(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def result(self) -> QualityResult:
        return self.publisher.read()

    # =========================================================================
    # TRIGGERS
    # =========================================================================

    def on_window_update(self, window: Sequence[float]) -> bool:
        """
        Trigger from the acquisition loop; must run inside the event loop.

        Returns:
            True if a snapshot was queued for assessment
        """
        return self._submit(window) is not None

    async def assess(self, window: Sequence[float]) -> Optional[QualityResult]:
        """
        Queue a snapshot and wait for its outcome.

        Returns:
            The result derived from this snapshot, or None if the window was
            gated, superseded by a newer snapshot, or the attempt failed
        """
        seq = self._submit(window)
        if seq is None:
            return None

        waiter = asyncio.get_running_loop().create_future()
        self._waiters[seq] = waiter
        return await waiter

    async def wait_idle(self):
        """Wait until no assessment is in flight or pending."""
        while self.in_flight:
            await asyncio.wait({self._task})

    async def close(self):
        """Drop pending work and cancel the in-flight assessment."""
        self._pending = None
        if self.in_flight:
            self._task.cancel()
            await asyncio.wait({self._task})
        for seq in list(self._waiters):
            self._resolve(seq, None)

    def _submit(self, window: Sequence[float]) -> Optional[int]:
        if len(window) < self.config.min_window_samples:
            return None
        if not self.adapter.is_ready:
            logger.debug("Classifier not ready, skipping quality assessment")
            return None
        if getattr(self.adapter, "is_busy", False) and not self.in_flight:
            logger.debug("Classifier still finishing an abandoned inference, skipping")
            return None

        self._submitted += 1
        seq = self._submitted
        try:
            snapshot = self._take_snapshot(window)
        except (TypeError, ValueError) as e:
            failure = InferenceFailed(f"Unusable window: {e}")
            failure.__cause__ = e
            self._report(seq, failure)
            return None

        if self._pending is not None:
            superseded, _ = self._pending
            logger.debug(f"Snapshot seq={superseded} superseded by seq={seq}")
            self._resolve(superseded, None)
        self._pending = (seq, snapshot)

        if not self.in_flight:
            self._task = asyncio.get_running_loop().create_task(self._drain())
        return seq

    def _take_snapshot(self, window: Sequence[float]) -> np.ndarray:
        """Copy of the trailing slice; later appends never reach it."""
        last_n = self.config.window_samples
        if isinstance(window, WaveformWindow):
            return window.snapshot(last_n)
        data = np.array(window, dtype=np.float64).reshape(-1)
        if last_n is not None:
            data = data[-last_n:].copy()
        return data

    # =========================================================================
    # ASSESSMENT
    # =========================================================================

    async def _drain(self):
        while self._pending is not None:
            seq, snapshot = self._pending
            self._pending = None
            result = await self._assess(seq, snapshot)
            self._resolve(seq, result)

    async def _assess(self, seq: int, snapshot: np.ndarray) -> Optional[QualityResult]:
        """
        Extract, classify and publish one snapshot.

        A timeout only abandons the await. The inference keeps the adapter's
        single worker busy until it returns, and new triggers are held off
        while it does so the next attempt does not spend its own timeout
        queued behind stale work.
        """
        timeout = self.config.classify_timeout_sec
        try:
            features = await self._extract(snapshot)
            probabilities = await asyncio.wait_for(
                self.adapter.classify(features), timeout=timeout
            )
            result = probabilities_to_result(probabilities)
        except asyncio.TimeoutError:
            self._report(seq, AssessmentTimeout(f"classify exceeded {timeout:.3f}s"))
            return None
        except QualityAssessmentError as e:
            self._report(seq, e)
            return None
        except Exception as e:
            failure = InferenceFailed(f"Unexpected assessment error: {e}")
            failure.__cause__ = e
            self._report(seq, failure)
            return None

        if self.publisher.publish(result, seq):
            logger.debug(f"Published seq={seq}: {result.label.value} ({result.confidence:.1f}%)")
            return result
        return None

    async def _extract(self, snapshot: np.ndarray):
        if self.config.offload_feature_extraction:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(None, self.extractor.extract, snapshot)
        return self.extractor.extract(snapshot)

    def _report(self, seq: int, error: Exception):
        self.last_error = error
        self.failure_count += 1
        logger.warning(f"Quality assessment seq={seq} aborted: {type(error).__name__}: {error}")

        if self.error_handler is not None:
            try:
                self.error_handler(error)
            except Exception:
                logger.exception("Quality error handler raised")

    def _resolve(self, seq: int, result: Optional[QualityResult]):
        waiter = self._waiters.pop(seq, None)
        if waiter is not None and not waiter.done():
            waiter.set_result(result)
