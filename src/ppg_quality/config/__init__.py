"""
Configuration module for PPG signal quality assessment.
"""

from .assessment_config import (
    DEFAULT_MODEL_PATH,
    AssessmentProfile,
    AssessmentConfig,
    ASSESSMENT_PROFILES,
    get_profile_config,
    get_default_profile,
)

__all__ = [
    'DEFAULT_MODEL_PATH',
    'AssessmentProfile',
    'AssessmentConfig',
    'ASSESSMENT_PROFILES',
    'get_profile_config',
    'get_default_profile',
]
