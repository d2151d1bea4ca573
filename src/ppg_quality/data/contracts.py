"""
Core data contracts for PPG signal quality assessment.

Everything that crosses a component boundary (window snapshots, feature
vectors, class probabilities, published results) has a fixed shape defined
here, so the extractor, the classifier adapter and the orchestrator agree on
ordering without sharing state.
"""

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple, Union

import numpy as np
import pandas as pd

from ..exceptions import InferenceFailed


# Fixed order of the 15 features fed to the classifier.
FEATURE_NAMES: Tuple[str, ...] = (
    'mean',
    'std',
    'median',
    'variance',
    'skewness',
    'kurtosis',
    'range',
    'zero_crossings',
    'rms',
    'iqr',
    'mad',
    'spectral_energy',
    'spectral_entropy',
    'num_peaks',
    'snr_db',
)

N_FEATURES = len(FEATURE_NAMES)

# Probability tolerance for the "sums to one" check on model outputs.
PROBABILITY_SUM_TOLERANCE = 1e-3


class QualityLabel(Enum):
    """
    Signal quality classes.

    The first three members are the classifier outputs in the order the
    model was trained with. UNKNOWN is the sentinel before any successful
    classification.
    """
    BAD = "bad"
    ACCEPTABLE = "acceptable"
    EXCELLENT = "excellent"
    UNKNOWN = "unknown"

    @classmethod
    def class_order(cls) -> Tuple['QualityLabel', ...]:
        """Return the classifier output order."""
        return (cls.BAD, cls.ACCEPTABLE, cls.EXCELLENT)


CLASS_ORDER = QualityLabel.class_order()
N_CLASSES = len(CLASS_ORDER)


# =============================================================================
# WAVEFORM WINDOW
# =============================================================================

class WaveformWindow:
    """
    Append-only buffer of raw intensity samples.

    Owned by the acquisition side. Assessment code only ever reads copies
    returned by snapshot(), never a live reference.
    """

    def __init__(self, samples: Optional[Iterable[float]] = None,
                 max_samples: Optional[int] = None):
        self.max_samples = max_samples
        self._samples = deque(maxlen=max_samples)
        if samples is not None:
            self.extend(samples)

    def append(self, sample: float):
        self._samples.append(float(sample))

    def extend(self, samples: Iterable[float]):
        self._samples.extend(float(s) for s in samples)

    def snapshot(self, last_n: Optional[int] = None) -> np.ndarray:
        """Copy of the trailing ``last_n`` samples (all samples if None)."""
        data = np.fromiter(self._samples, dtype=np.float64, count=len(self._samples))
        if last_n is not None:
            data = data[-last_n:] if last_n > 0 else data[:0]
        return data

    def __len__(self) -> int:
        return len(self._samples)


# =============================================================================
# FEATURE VECTOR
# =============================================================================

@dataclass(frozen=True, eq=False)
class FeatureVector:
    """
    Immutable, ordered 15-feature summary of one window.

    Has no meaning outside the window it was derived from.
    """
    values: np.ndarray

    def __post_init__(self):
        values = np.array(self.values, dtype=np.float64).reshape(-1)
        if values.shape != (N_FEATURES,):
            raise ValueError(
                f"FeatureVector needs exactly {N_FEATURES} values, got {values.size}"
            )
        values.setflags(write=False)
        object.__setattr__(self, 'values', values)

    @classmethod
    def zeros(cls) -> 'FeatureVector':
        return cls(np.zeros(N_FEATURES))

    @property
    def names(self) -> Tuple[str, ...]:
        return FEATURE_NAMES

    def __len__(self) -> int:
        return N_FEATURES

    def __getitem__(self, key: Union[int, str]) -> float:
        if isinstance(key, str):
            key = FEATURE_NAMES.index(key)
        return float(self.values[key])

    def __iter__(self):
        return iter(self.values.tolist())

    def is_finite(self) -> bool:
        return bool(np.all(np.isfinite(self.values)))

    def as_row(self) -> np.ndarray:
        """Model input: a (1, 15) float32 copy."""
        return self.values.astype(np.float32).reshape(1, N_FEATURES)

    def to_dict(self) -> Dict[str, float]:
        return dict(zip(FEATURE_NAMES, self.values.tolist()))

    def to_series(self) -> pd.Series:
        return pd.Series(self.values, index=list(FEATURE_NAMES), name='value')


# =============================================================================
# CLASSIFIER OUTPUT
# =============================================================================

@dataclass(frozen=True)
class ClassProbabilities:
    """Probabilities for (bad, acceptable, excellent), in that order."""
    bad: float
    acceptable: float
    excellent: float

    @classmethod
    def from_array(cls, raw: Any) -> 'ClassProbabilities':
        """
        Validate a model output of shape (3,) or (1, 3).

        Raises:
            InferenceFailed: wrong shape, negative/non-finite entries or a
                sum outside tolerance.
        """
        probs = np.asarray(raw, dtype=np.float64)
        if probs.shape not in ((N_CLASSES,), (1, N_CLASSES)):
            raise InferenceFailed(
                f"Expected model output of shape (1, {N_CLASSES}), got {probs.shape}"
            )
        probs = probs.reshape(N_CLASSES)
        if not np.all(np.isfinite(probs)) or np.any(probs < 0):
            raise InferenceFailed(f"Model output is not a probability vector: {probs.tolist()}")
        if abs(probs.sum() - 1.0) > PROBABILITY_SUM_TOLERANCE:
            raise InferenceFailed(f"Model output sums to {probs.sum():.6f}, expected 1")
        return cls(*(float(p) for p in probs))

    def as_array(self) -> np.ndarray:
        return np.array([self.bad, self.acceptable, self.excellent])

    def winner(self) -> Tuple[QualityLabel, float]:
        """Argmax class; the first class in canonical order wins ties."""
        probs = self.as_array()
        idx = int(np.argmax(probs))
        return CLASS_ORDER[idx], float(probs[idx])

    def to_dict(self) -> Dict[str, float]:
        return {
            QualityLabel.BAD.value: self.bad,
            QualityLabel.ACCEPTABLE.value: self.acceptable,
            QualityLabel.EXCELLENT.value: self.excellent,
        }


# =============================================================================
# PUBLISHED RESULT
# =============================================================================

@dataclass(frozen=True)
class QualityResult:
    """Published quality label with a confidence percentage in [0, 100]."""
    label: QualityLabel = QualityLabel.UNKNOWN
    confidence: float = 0.0
    probabilities: Optional[ClassProbabilities] = field(default=None, compare=False)

    def __post_init__(self):
        confidence = float(np.clip(self.confidence, 0.0, 100.0))
        object.__setattr__(self, 'confidence', confidence)

    @classmethod
    def unknown(cls) -> 'QualityResult':
        return cls(QualityLabel.UNKNOWN, 0.0)

    @property
    def is_known(self) -> bool:
        return self.label is not QualityLabel.UNKNOWN

    @property
    def display_value(self) -> str:
        """Dashboard text: '--' until the first successful classification."""
        return self.label.value if self.is_known else '--'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'label': self.label.value,
            'confidence': self.confidence,
            'probabilities': self.probabilities.to_dict() if self.probabilities else None,
        }
