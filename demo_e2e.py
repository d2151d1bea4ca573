"""
End-to-End Demo Script for PPG Signal Quality Assessment

This script demonstrates the complete pipeline:
1. Feature extraction on clean and artifacted windows
2. Classifier adapter lifecycle (load, failure, classify)
3. Live orchestration with single-flight coalescing
4. Failure handling with last-known-good results

No trained artifact ships with the repository, so the demo writes a
randomly initialised model to a temporary directory. Its labels are
meaningless; the point is the control flow.

Run this script to verify all modules are working correctly.
"""

import asyncio
import json
import logging
import os
import sys
import tempfile

import numpy as np
import torch

# Add src to path
script_dir = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, os.path.join(script_dir, 'src'))

from ppg_quality.config import AssessmentProfile, get_profile_config
from ppg_quality.data.contracts import WaveformWindow
from ppg_quality.features.feature_extractor import SignalFeatureExtractor
from ppg_quality.models.classifier_adapter import ClassifierAdapter
from ppg_quality.models.quality_model import ArchitectureDescriptor, build_network
from ppg_quality.quality.orchestrator import QualityOrchestrator


FS = 30  # camera frame rate


def print_section(title: str):
    """Print a section header."""
    print("\n" + "=" * 60)
    print(f" {title}")
    print("=" * 60)


def synthetic_ppg(duration_sec: float, noise: float = 0.02, seed: int = 42) -> np.ndarray:
    """Intensity trace with a 72 bpm pulse, dicrotic harmonic and sensor noise."""
    rng = np.random.RandomState(seed)
    t = np.arange(int(duration_sec * FS)) / FS
    signal = 120.0 + np.sin(2 * np.pi * 1.2 * t) + 0.3 * np.sin(2 * np.pi * 2.4 * t + 0.8)
    return signal + noise * rng.randn(len(t))


def write_demo_artifact(directory: str) -> str:
    """Write an untrained model.json + weights.pt pair."""
    descriptor = {
        "format": "ppg-quality-dense",
        "input_shape": [1, 15],
        "output_shape": [1, 3],
        "classes": ["bad", "acceptable", "excellent"],
        "layers": [
            {"type": "dense", "units": 16, "activation": "relu"},
            {"type": "dense", "units": 3, "activation": "softmax"},
        ],
        "weights": "weights.pt",
    }
    torch.manual_seed(0)
    network = build_network(ArchitectureDescriptor.from_dict(descriptor))

    path = os.path.join(directory, 'model.json')
    with open(path, 'w') as f:
        json.dump(descriptor, f, indent=2)
    torch.save(network.state_dict(), os.path.join(directory, 'weights.pt'))
    return path


def demo_feature_extraction():
    """Demo: Feature extraction."""
    print_section("1. FEATURE EXTRACTION")

    extractor = SignalFeatureExtractor()
    clean = synthetic_ppg(10)
    noisy = synthetic_ppg(10, noise=3.0, seed=7)

    table = extractor.extract_windows(np.concatenate([clean, noisy]), window_size=300)
    table.index = ['clean', 'artifacted']
    print(table.drop(columns=['start', 'end']).T.round(3).to_string())


async def demo_adapter(model_path: str) -> ClassifierAdapter:
    """Demo: Classifier adapter lifecycle."""
    print_section("2. CLASSIFIER ADAPTER")

    missing = ClassifierAdapter(os.path.join(os.path.dirname(model_path), 'missing.json'))
    await missing.load()
    print(f"Missing artifact -> {missing.state.value}: {missing.failure}")
    missing.close()

    adapter = ClassifierAdapter(model_path)
    print(f"Before load: {adapter.state.value}")
    await adapter.load()
    print(f"After load:  {adapter.state.value}")

    features = SignalFeatureExtractor().extract(synthetic_ppg(5))
    probabilities = await adapter.classify(features)
    print(f"Probabilities: {probabilities.to_dict()}")
    return adapter


async def demo_live_orchestration(adapter: ClassifierAdapter):
    """Demo: Frame-by-frame triggering with coalescing."""
    print_section("3. LIVE ORCHESTRATION")

    config = get_profile_config(AssessmentProfile.REALTIME)
    orchestrator = QualityOrchestrator(adapter, config=config)
    window = WaveformWindow(max_samples=config.window_samples)

    triggers = 0
    for sample in synthetic_ppg(15):
        window.append(sample)
        if orchestrator.on_window_update(window):
            triggers += 1
        await asyncio.sleep(1 / (FS * 10))  # accelerated frame clock
    await orchestrator.wait_idle()

    result = orchestrator.result
    print(f"Accepted triggers: {triggers}")
    print(f"Published sequence: {orchestrator.publisher.sequence}")
    print(f"Quality: {result.display_value} ({result.confidence:.1f}%)")
    return orchestrator


async def demo_failure_handling(orchestrator: QualityOrchestrator):
    """Demo: Last-known-good on failure."""
    print_section("4. FAILURE HANDLING")

    before = orchestrator.result
    window = list(synthetic_ppg(5))
    window[10] = float('nan')  # malformed vector downstream

    orchestrator.on_window_update(window)
    await orchestrator.wait_idle()

    print(f"Last error: {type(orchestrator.last_error).__name__}: {orchestrator.last_error}")
    print(f"Result kept: {orchestrator.result == before} ({orchestrator.result.display_value})")


async def run_demo():
    with tempfile.TemporaryDirectory() as tmp_dir:
        model_path = write_demo_artifact(tmp_dir)

        demo_feature_extraction()
        adapter = await demo_adapter(model_path)
        try:
            orchestrator = await demo_live_orchestration(adapter)
            await demo_failure_handling(orchestrator)
        finally:
            adapter.close()

    print_section("DONE")


def main():
    logging.basicConfig(level=logging.INFO, format='%(levelname)s %(name)s: %(message)s')
    asyncio.run(run_demo())


if __name__ == '__main__':
    main()
