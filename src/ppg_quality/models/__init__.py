# Quality classifier artifacts and the adapter that owns them
from .quality_model import (
    ArchitectureDescriptor,
    TorchQualityModel,
    SklearnQualityModel,
    build_network,
    inference_scope,
    load_quality_model,
)
from .classifier_adapter import AdapterState, ClassifierAdapter
