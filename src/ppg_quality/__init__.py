"""
PPG signal quality assessment.

Feature extraction over a waveform window, a pretrained classifier adapter,
and a single-flight orchestrator publishing {label, confidence}.
"""

from .config import AssessmentConfig, AssessmentProfile, get_profile_config
from .data import (
    FEATURE_NAMES,
    QualityLabel,
    WaveformWindow,
    FeatureVector,
    ClassProbabilities,
    QualityResult,
)
from .exceptions import (
    QualityAssessmentError,
    ModelLoadFailed,
    NotReady,
    InferenceFailed,
    AssessmentTimeout,
)
from .features import SignalFeatureExtractor, extract_features
from .models import AdapterState, ClassifierAdapter, load_quality_model
from .quality import QualityOrchestrator, ResultPublisher, probabilities_to_result

__version__ = "1.0.0"

__all__ = [
    'AssessmentConfig',
    'AssessmentProfile',
    'get_profile_config',
    'FEATURE_NAMES',
    'QualityLabel',
    'WaveformWindow',
    'FeatureVector',
    'ClassProbabilities',
    'QualityResult',
    'QualityAssessmentError',
    'ModelLoadFailed',
    'NotReady',
    'InferenceFailed',
    'AssessmentTimeout',
    'SignalFeatureExtractor',
    'extract_features',
    'AdapterState',
    'ClassifierAdapter',
    'load_quality_model',
    'QualityOrchestrator',
    'ResultPublisher',
    'probabilities_to_result',
]
