"""
Error taxonomy for PPG signal quality assessment.

Feature extraction never raises. Everything below is raised by the
classifier adapter and caught at the orchestrator boundary, so the
acquisition loop keeps running regardless of assessment health.
"""


class QualityAssessmentError(RuntimeError):
    """Base class for all assessment pipeline errors."""


class ModelLoadFailed(QualityAssessmentError):
    """Model artifact is missing, corrupt or has the wrong tensor shapes."""

    def __init__(self, message: str, path: str = ""):
        super().__init__(message)
        self.path = path


class NotReady(QualityAssessmentError):
    """classify() was called before the adapter reached READY."""


class InferenceFailed(QualityAssessmentError):
    """Runtime failure during classify (malformed vector, backend error, bad output)."""


class AssessmentTimeout(InferenceFailed):
    """classify() exceeded its latency bound."""
