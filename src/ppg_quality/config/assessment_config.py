"""
Assessment configuration for PPG signal quality.

Defines the gating, windowing and latency parameters of the quality
orchestrator. Run the pipeline against one of the named profiles rather
than ad-hoc parameter sets.
"""

from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import Any, Dict, Optional


DEFAULT_MODEL_PATH = "models/ppg_quality/model.json"


class AssessmentProfile(Enum):
    """
    Named configurations.

    REALTIME follows the camera frame cadence; OFFLINE replays recordings
    where latency matters less than not starving the caller.
    """
    REALTIME = "realtime"   # Live capture, bounded window and latency
    OFFLINE = "offline"     # Recorded sessions, whole window, lenient timeout


@dataclass
class AssessmentConfig:
    """
    Complete configuration for the quality orchestrator and its adapter.
    """
    # === Gating ===
    min_window_samples: int = 100           # Windows shorter than this are never assessed

    # === Snapshot ===
    window_samples: Optional[int] = None    # Trailing slice length; None = all available samples

    # === Latency ===
    classify_timeout_sec: float = 0.3       # classify() beyond this counts as a failure
    offload_feature_extraction: bool = False  # Run extraction on a worker thread

    # === Numerics ===
    epsilon: float = 1e-7

    # === Model artifact ===
    model_path: str = DEFAULT_MODEL_PATH
    device: str = "cpu"

    def validate(self) -> bool:
        """Validate configuration consistency."""
        assert self.min_window_samples >= 1
        if self.window_samples is not None:
            assert self.window_samples >= self.min_window_samples, (
                "window_samples shorter than min_window_samples would never pass the gate"
            )

        assert self.classify_timeout_sec > 0
        assert 0.0 < self.epsilon < 1e-2

        assert self.model_path
        assert self.device in ("cpu", "cuda") or self.device.startswith("cuda:")

        return True

    def replace(self, **overrides: Any) -> 'AssessmentConfig':
        """Copy with overrides, validated."""
        config = replace(self, **overrides)
        config.validate()
        return config

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# =============================================================================
# Pre-defined Profiles
# =============================================================================

ASSESSMENT_PROFILES: Dict[AssessmentProfile, AssessmentConfig] = {

    AssessmentProfile.REALTIME: AssessmentConfig(
        min_window_samples=100,
        window_samples=300,             # ~10 s at 30 fps
        classify_timeout_sec=0.3,
        offload_feature_extraction=False,
    ),

    AssessmentProfile.OFFLINE: AssessmentConfig(
        min_window_samples=100,
        window_samples=None,
        classify_timeout_sec=2.0,
        offload_feature_extraction=True,
    ),
}


def get_profile_config(profile: AssessmentProfile) -> AssessmentConfig:
    """Get a copy of the configuration for a profile."""
    if profile not in ASSESSMENT_PROFILES:
        raise ValueError(f"Unknown assessment profile: {profile}")
    return replace(ASSESSMENT_PROFILES[profile])


def get_default_profile() -> AssessmentProfile:
    """Get the default profile (REALTIME)."""
    return AssessmentProfile.REALTIME
