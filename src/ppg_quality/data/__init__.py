# Data contracts shared by every assessment component

from .contracts import (
    FEATURE_NAMES,
    N_FEATURES,
    CLASS_ORDER,
    N_CLASSES,
    QualityLabel,
    WaveformWindow,
    FeatureVector,
    ClassProbabilities,
    QualityResult,
)

__all__ = [
    'FEATURE_NAMES',
    'N_FEATURES',
    'CLASS_ORDER',
    'N_CLASSES',
    'QualityLabel',
    'WaveformWindow',
    'FeatureVector',
    'ClassProbabilities',
    'QualityResult',
]
