"""
pytest configuration and shared fixtures.

This module provides shared fixtures and configuration for all tests.
"""

import json
import os
import sys

import joblib
import numpy as np
import pytest
import torch

# Add src to path for all tests
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from ppg_quality.models.quality_model import ArchitectureDescriptor, build_network


# =============================================================================
# CONFIGURATION
# =============================================================================

def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )


# =============================================================================
# SIGNAL FIXTURES
# =============================================================================

@pytest.fixture
def random_seed():
    """Set random seed for reproducibility."""
    np.random.seed(42)
    return 42


@pytest.fixture
def sample_ppg_signal(random_seed):
    """Generate a clean PPG-like signal (10 s at 30 fps)."""
    fs = 30
    t = np.arange(10 * fs) / fs

    # Cardiac fundamental at 72 bpm plus dicrotic harmonic on a DC level
    signal = 120.0 + np.sin(2 * np.pi * 1.2 * t) + 0.3 * np.sin(2 * np.pi * 2.4 * t + 0.8)
    signal += 0.02 * np.random.randn(len(t))

    return signal, fs


@pytest.fixture
def sample_noisy_signal(random_seed):
    """Generate a motion-artifacted signal."""
    fs = 30
    n_samples = 300

    signal = 120.0 + 5.0 * np.random.randn(n_samples)
    t = np.arange(n_samples) / fs
    signal += 3.0 * np.sin(2 * np.pi * 0.2 * t)

    return signal, fs


@pytest.fixture
def alternating_signal():
    """[1, -1, 1, -1, ...] with 100 samples."""
    return np.tile([1.0, -1.0], 50)


# =============================================================================
# MODEL ARTIFACT FIXTURES
# =============================================================================

def _descriptor_dict(hidden_units: int = 8, **overrides):
    data = {
        "format": "ppg-quality-dense",
        "input_shape": [1, 15],
        "output_shape": [1, 3],
        "classes": ["bad", "acceptable", "excellent"],
        "layers": [
            {"type": "dense", "units": hidden_units, "activation": "relu"},
            {"type": "dense", "units": 3, "activation": "softmax"},
        ],
        "weights": "weights.pt",
    }
    data.update(overrides)
    return data


def write_torch_artifact(directory, descriptor=None, network=None):
    """Write model.json + weights.pt into ``directory`` and return the json path."""
    descriptor = descriptor or _descriptor_dict()
    if network is None:
        torch.manual_seed(0)
        network = build_network(ArchitectureDescriptor.from_dict(_descriptor_dict()))

    os.makedirs(directory, exist_ok=True)
    path = os.path.join(directory, 'model.json')
    with open(path, 'w') as f:
        json.dump(descriptor, f)
    torch.save(network.state_dict(), os.path.join(directory, descriptor.get('weights', 'weights.pt')))
    return path


@pytest.fixture
def quality_model_path(tmp_path):
    """Randomly initialised (seeded) torch artifact."""
    return write_torch_artifact(str(tmp_path / 'quality_model'))


@pytest.fixture
def excellent_model_path(tmp_path):
    """Torch artifact whose output is dominated by the 'excellent' class."""
    network = build_network(ArchitectureDescriptor.from_dict(_descriptor_dict()))
    with torch.no_grad():
        for param in network.parameters():
            param.zero_()
        network[-2].bias.copy_(torch.tensor([0.0, 0.0, 5.0]))
    return write_torch_artifact(str(tmp_path / 'excellent_model'), network=network)


@pytest.fixture
def descriptor_factory():
    """Build descriptor dicts with overrides."""
    return _descriptor_dict


@pytest.fixture
def artifact_writer():
    """Write arbitrary torch artifacts."""
    return write_torch_artifact


@pytest.fixture
def joblib_model_path(tmp_path, random_seed):
    """Logistic regression + scaler persisted the way baseline classifiers are."""
    from sklearn.linear_model import LogisticRegression
    from sklearn.preprocessing import StandardScaler

    X = np.random.randn(90, 15)
    y = np.repeat([0, 1, 2], 30)
    X[y == 2, 0] += 3.0

    scaler = StandardScaler().fit(X)
    model = LogisticRegression(max_iter=500).fit(scaler.transform(X), y)

    path = str(tmp_path / 'quality_model.joblib')
    joblib.dump({'model': model, 'scaler': scaler, 'feature_names': None}, path)
    return path
