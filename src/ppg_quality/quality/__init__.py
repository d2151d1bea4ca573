# Signal Quality module
# Orchestration of assessments and publication of the latest result

from .publisher import ResultPublisher
from .orchestrator import QualityOrchestrator, probabilities_to_result

__all__ = [
    'ResultPublisher',
    'QualityOrchestrator',
    'probabilities_to_result',
]
