"""
Classifier Adapter for PPG signal quality.

Owns the lifecycle of one pretrained model instance:

    UNLOADED -> LOADING -> READY
    LOADING -> FAILED  (load error)

Transitions are driven only by explicit load()/close() calls. There is no
automatic retry; calling load() again from FAILED is a new attempt.

Both load and inference run on a dedicated single-worker executor, so the
event loop never blocks on them and at most one inference computes at a
time even when an awaiting caller has given up on it. An abandoned
inference still occupies the worker until it returns; ``is_busy`` reports
that so callers can hold off instead of queueing behind it.

close() during a load wins: the late loader result is discarded and the
adapter stays UNLOADED.
"""

import asyncio
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from enum import Enum
from typing import Optional

import numpy as np

from ..data.contracts import ClassProbabilities, FeatureVector, N_FEATURES
from ..exceptions import InferenceFailed, ModelLoadFailed, NotReady
from .quality_model import load_quality_model

logger = logging.getLogger(__name__)


class AdapterState(Enum):
    """Classifier adapter lifecycle states."""
    UNLOADED = "unloaded"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class ClassifierAdapter:
    """
    Explicitly owned wrapper around one pretrained quality model.

    Attributes:
        model_path: Artifact location (model.json, its directory, or .joblib)
        device: Torch device for the torch backend
    """

    def __init__(self, model_path: str, device: str = "cpu", loader=None):
        self.model_path = model_path
        self.device = device
        self._loader = loader or load_quality_model
        self._state = AdapterState.UNLOADED
        self._failure: Optional[ModelLoadFailed] = None
        self._model = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._compute: Optional[Future] = None
        self._generation = 0

    @property
    def state(self) -> AdapterState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is AdapterState.READY

    @property
    def is_busy(self) -> bool:
        """True while an inference is still computing on the worker."""
        return self._compute is not None and not self._compute.done()

    @property
    def failure(self) -> Optional[ModelLoadFailed]:
        """Reason for the last failed load, if any."""
        return self._failure

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='ppg-quality')
        return self._executor

    async def load(self) -> AdapterState:
        """
        Load the model once.

        No-op while LOADING or READY. Failures are recorded in ``failure``
        and leave the adapter in FAILED; nothing is raised.

        Returns:
            State after the call
        """
        if self._state in (AdapterState.LOADING, AdapterState.READY):
            return self._state

        self._state = AdapterState.LOADING
        self._failure = None
        self._generation += 1
        generation = self._generation
        loop = asyncio.get_running_loop()

        try:
            model = await loop.run_in_executor(
                self._get_executor(), self._loader, self.model_path, self.device
            )
        except Exception as e:
            if self._superseded(generation):
                return self._state
            if isinstance(e, ModelLoadFailed):
                self._fail(e)
            else:
                failure = ModelLoadFailed(f"Unexpected error loading {self.model_path}: {e}",
                                          path=self.model_path)
                failure.__cause__ = e
                self._fail(failure)
        else:
            if self._superseded(generation):
                return self._state
            self._model = model
            self._state = AdapterState.READY

        return self._state

    def _superseded(self, generation: int) -> bool:
        if generation == self._generation and self._state is AdapterState.LOADING:
            return False
        logger.info(f"Discarding load result for {self.model_path}: adapter was closed")
        return True

    def _fail(self, failure: ModelLoadFailed):
        self._model = None
        self._failure = failure
        self._state = AdapterState.FAILED
        logger.error(f"Quality model load failed: {failure}")

    async def classify(self, vector: FeatureVector) -> ClassProbabilities:
        """
        Map a feature vector to class probabilities.

        Raises:
            NotReady: adapter is not READY
            InferenceFailed: malformed vector, backend error or invalid output
        """
        if self._state is not AdapterState.READY:
            raise NotReady(f"Classifier is {self._state.value}, not ready")

        row = self._to_row(vector)

        self._compute = self._get_executor().submit(self._model.predict_proba, row)
        try:
            raw = await asyncio.wrap_future(self._compute)
        except InferenceFailed:
            raise
        except Exception as e:
            raise InferenceFailed(f"Inference error: {e}") from e

        return ClassProbabilities.from_array(raw)

    def _to_row(self, vector) -> np.ndarray:
        if isinstance(vector, FeatureVector):
            row = vector.as_row()
        else:
            try:
                row = np.asarray(vector, dtype=np.float32).reshape(1, -1)
            except (TypeError, ValueError) as e:
                raise InferenceFailed(f"Malformed feature vector: {e}") from e

        if row.shape != (1, N_FEATURES):
            raise InferenceFailed(
                f"Feature vector has {row.size} values, expected {N_FEATURES}"
            )
        if not np.all(np.isfinite(row)):
            raise InferenceFailed("Feature vector contains non-finite values")
        return row

    def close(self):
        """Discard the model and stop the worker; state returns to UNLOADED."""
        self._generation += 1
        self._compute = None
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None
        self._model = None
        self._state = AdapterState.UNLOADED
