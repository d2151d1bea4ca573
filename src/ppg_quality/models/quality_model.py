"""
Pretrained signal quality classifier artifacts.

Two artifact formats are understood:

1. Torch (default): ``model.json`` architecture descriptor plus a
   ``state_dict`` weights file next to it.

       {
           "format": "ppg-quality-dense",
           "input_shape": [1, 15],
           "output_shape": [1, 3],
           "classes": ["bad", "acceptable", "excellent"],
           "layers": [
               {"type": "dense", "units": 32, "activation": "relu"},
               {"type": "dense", "units": 3, "activation": "softmax"}
           ],
           "weights": "weights.pt"
       }

2. Joblib: a ``.joblib`` file holding a fitted scikit-learn estimator with
   ``predict_proba``, or a dict with ``model``/``scaler``/``feature_names``
   entries as persisted by baseline classifiers.

Both are exposed through the same ``predict_proba(row) -> (1, 3)`` interface.
Any problem with an artifact is reported as ModelLoadFailed.
"""

import json
import logging
import os
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import joblib
import numpy as np
import torch
import torch.nn as nn

from ..data.contracts import CLASS_ORDER, FEATURE_NAMES, N_CLASSES, N_FEATURES
from ..exceptions import ModelLoadFailed

logger = logging.getLogger(__name__)


DESCRIPTOR_FILENAME = "model.json"
DEFAULT_WEIGHTS_FILENAME = "weights.pt"

ACTIVATIONS = {
    'relu': nn.ReLU,
    'tanh': nn.Tanh,
    'sigmoid': nn.Sigmoid,
    'softmax': lambda: nn.Softmax(dim=-1),
    'linear': None,
}


@dataclass
class ArchitectureDescriptor:
    """Parsed ``model.json``."""
    layers: List[Dict[str, Any]]
    input_shape: List[int] = field(default_factory=lambda: [1, N_FEATURES])
    output_shape: List[int] = field(default_factory=lambda: [1, N_CLASSES])
    classes: List[str] = field(default_factory=lambda: [c.value for c in CLASS_ORDER])
    weights: str = DEFAULT_WEIGHTS_FILENAME

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ArchitectureDescriptor':
        if not isinstance(data, dict) or 'layers' not in data:
            raise ModelLoadFailed("Architecture descriptor has no 'layers' entry")
        return cls(
            layers=list(data['layers']),
            input_shape=list(data.get('input_shape', [1, N_FEATURES])),
            output_shape=list(data.get('output_shape', [1, N_CLASSES])),
            classes=list(data.get('classes', [c.value for c in CLASS_ORDER])),
            weights=data.get('weights', DEFAULT_WEIGHTS_FILENAME),
        )

    def validate(self):
        """Check the declared shapes and class order against the feature contract."""
        if list(self.input_shape) != [1, N_FEATURES]:
            raise ModelLoadFailed(
                f"Model input shape {self.input_shape} does not match [1, {N_FEATURES}]"
            )
        if list(self.output_shape) != [1, N_CLASSES]:
            raise ModelLoadFailed(
                f"Model output shape {self.output_shape} does not match [1, {N_CLASSES}]"
            )
        expected = [c.value for c in CLASS_ORDER]
        if list(self.classes) != expected:
            raise ModelLoadFailed(f"Model classes {self.classes} do not match {expected}")
        if not self.layers:
            raise ModelLoadFailed("Model has no layers")
        for layer in self.layers:
            if layer.get('type', 'dense') != 'dense':
                raise ModelLoadFailed(f"Unsupported layer type: {layer.get('type')}")
            if layer.get('activation', 'linear') not in ACTIVATIONS:
                raise ModelLoadFailed(f"Unsupported activation: {layer.get('activation')}")
            if not isinstance(layer.get('units'), int) or layer['units'] < 1:
                raise ModelLoadFailed(f"Layer has invalid units: {layer.get('units')}")
        if int(self.layers[-1]['units']) != N_CLASSES:
            raise ModelLoadFailed(
                f"Final layer has {self.layers[-1]['units']} units, expected {N_CLASSES}"
            )

    @property
    def ends_with_softmax(self) -> bool:
        return self.layers[-1].get('activation', 'linear') == 'softmax'


def build_network(descriptor: ArchitectureDescriptor) -> nn.Sequential:
    """
    Build the dense network described by a descriptor.

    Args:
        descriptor: Validated architecture descriptor

    Returns:
        nn.Sequential with Linear/activation pairs
    """
    modules = []
    in_features = N_FEATURES

    for layer in descriptor.layers:
        units = int(layer['units'])
        modules.append(nn.Linear(in_features, units))
        activation = ACTIVATIONS[layer.get('activation', 'linear')]
        if activation is not None:
            modules.append(activation())
        in_features = units

    return nn.Sequential(*modules)


@contextmanager
def inference_scope(device: torch.device):
    """
    Scope for the transient tensors of one forward pass.

    No autograd graph is recorded inside the scope and cached device
    memory is handed back on every exit path.
    """
    try:
        with torch.inference_mode():
            yield
    finally:
        if device.type == 'cuda':
            torch.cuda.empty_cache()


class TorchQualityModel:
    """Dense torch classifier loaded from descriptor + state_dict."""

    def __init__(self, network: nn.Module, descriptor: ArchitectureDescriptor,
                 device: str = "cpu"):
        self.device = torch.device(device)
        self.descriptor = descriptor
        self.network = network.to(self.device)
        self.network.eval()
        for param in self.network.parameters():
            param.requires_grad_(False)

    def predict_proba(self, row: np.ndarray) -> np.ndarray:
        """
        Args:
            row: (1, 15) feature row

        Returns:
            (1, 3) class probabilities
        """
        with inference_scope(self.device):
            inputs = torch.as_tensor(row, dtype=torch.float32, device=self.device)
            outputs = self.network(inputs)
            if not self.descriptor.ends_with_softmax:
                outputs = torch.softmax(outputs, dim=-1)
            return outputs.detach().cpu().numpy().astype(np.float64)


class SklearnQualityModel:
    """Fitted scikit-learn estimator (optionally with a scaler) loaded via joblib."""

    def __init__(self, estimator: Any, scaler: Any = None,
                 feature_names: Optional[List[str]] = None):
        self.estimator = estimator
        self.scaler = scaler
        self.feature_names = feature_names or list(FEATURE_NAMES)

    def predict_proba(self, row: np.ndarray) -> np.ndarray:
        features = np.asarray(row, dtype=np.float64)
        if self.scaler is not None:
            features = self.scaler.transform(features)
        return np.asarray(self.estimator.predict_proba(features), dtype=np.float64)


def load_torch_model(path: str, device: str = "cpu") -> TorchQualityModel:
    """
    Load a torch artifact from a ``model.json`` path or its directory.

    Raises:
        ModelLoadFailed: missing files, invalid descriptor or weights that
            do not fit the described network.
    """
    if os.path.isdir(path):
        path = os.path.join(path, DESCRIPTOR_FILENAME)
    if not os.path.isfile(path):
        raise ModelLoadFailed(f"Model descriptor not found: {path}", path=path)

    try:
        with open(path, 'r') as f:
            descriptor = ArchitectureDescriptor.from_dict(json.load(f))
    except (OSError, ValueError) as e:
        raise ModelLoadFailed(f"Could not read model descriptor {path}: {e}", path=path) from e
    descriptor.validate()

    weights_path = os.path.join(os.path.dirname(path), descriptor.weights)
    if not os.path.isfile(weights_path):
        raise ModelLoadFailed(f"Model weights not found: {weights_path}", path=path)

    network = build_network(descriptor)
    try:
        state_dict = torch.load(weights_path, map_location=device, weights_only=True)
        network.load_state_dict(state_dict, strict=True)
    except Exception as e:
        raise ModelLoadFailed(f"Could not load model weights {weights_path}: {e}", path=path) from e

    return TorchQualityModel(network, descriptor, device=device)


def load_joblib_model(path: str) -> SklearnQualityModel:
    """
    Load a joblib artifact.

    Raises:
        ModelLoadFailed: missing file, unreadable pickle, or an estimator
            that does not map 15 features to 3 class probabilities.
    """
    if not os.path.isfile(path):
        raise ModelLoadFailed(f"Model file not found: {path}", path=path)

    try:
        model_data = joblib.load(path)
    except Exception as e:
        raise ModelLoadFailed(f"Could not load model {path}: {e}", path=path) from e

    if isinstance(model_data, dict):
        model = SklearnQualityModel(
            model_data.get('model'),
            scaler=model_data.get('scaler'),
            feature_names=model_data.get('feature_names'),
        )
    else:
        model = SklearnQualityModel(model_data)

    if not hasattr(model.estimator, 'predict_proba'):
        raise ModelLoadFailed(f"Model in {path} does not provide predict_proba", path=path)
    n_features = getattr(model.estimator, 'n_features_in_', N_FEATURES)
    if n_features != N_FEATURES:
        raise ModelLoadFailed(
            f"Model expects {n_features} features, expected {N_FEATURES}", path=path
        )
    classes = getattr(model.estimator, 'classes_', None)
    if classes is not None and len(classes) != N_CLASSES:
        raise ModelLoadFailed(
            f"Model predicts {len(classes)} classes, expected {N_CLASSES}", path=path
        )

    return model


def load_quality_model(path: str, device: str = "cpu"):
    """
    Load a quality classifier artifact, dispatching on its format.

    Args:
        path: ``.joblib`` file, ``model.json`` descriptor or its directory
        device: Torch device for the torch backend

    Returns:
        Model exposing ``predict_proba(row) -> (1, 3)``
    """
    if path.endswith('.joblib'):
        model = load_joblib_model(path)
    else:
        model = load_torch_model(path, device=device)

    logger.info(f"Loaded quality model from {path} ({type(model).__name__})")
    return model
