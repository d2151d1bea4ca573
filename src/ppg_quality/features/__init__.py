# Feature extraction for PPG quality windows

from .feature_extractor import (
    DEFAULT_EPSILON,
    SignalFeatureExtractor,
    extract_features,
)

__all__ = [
    'DEFAULT_EPSILON',
    'SignalFeatureExtractor',
    'extract_features',
]
