"""
Feature Extraction Module for PPG Windows
Extracts the 15 time-domain, higher-order, frequency-domain and morphology
features consumed by the signal quality classifier
"""

import math

import numpy as np
import pandas as pd
from scipy import stats
from scipy.fft import rfft
from typing import Dict, List, Optional, Sequence, Tuple

from ..data.contracts import FEATURE_NAMES, N_FEATURES, FeatureVector


DEFAULT_EPSILON = 1e-7


class SignalFeatureExtractor:
    """
    PPG window feature extractor

    Pure with respect to its input: no I/O and no state carried between
    calls, so re-running it on the same snapshot gives identical output.
    Never raises for a finite real-valued input of any length.
    """

    def __init__(self, epsilon: float = DEFAULT_EPSILON):
        """
        Initialize feature extractor

        Args:
            epsilon: Guard for near-zero denominators
        """
        self.epsilon = epsilon

    def extract(self, samples: Sequence[float]) -> FeatureVector:
        """
        Extract the feature vector from one window

        Args:
            samples: Ordered raw intensity samples

        Returns:
            FeatureVector with the features in FEATURE_NAMES order
        """
        x = np.asarray(samples, dtype=np.float64).reshape(-1)

        if x.size == 0:
            return FeatureVector.zeros()

        features = {}

        for extract_group in (
            self._extract_time_domain_features,
            self._extract_higher_order_features,
            self._extract_shape_features,
            self._extract_frequency_features,
            self._extract_morphology_features,
        ):
            values, names = extract_group(x)
            features.update(zip(names, values))

        return FeatureVector(np.array([features[name] for name in FEATURE_NAMES]))

    def _extract_time_domain_features(self, x: np.ndarray) -> Tuple[List, List]:
        """Mean, spread and order statistics"""
        n = x.size
        mean = float(np.mean(x))
        std = float(np.std(x))
        ordered = np.sort(x)
        median = float(ordered[n // 2])

        features = [mean, std, median, std ** 2]
        names = ['mean', 'std', 'median', 'variance']

        # Quartiles by index into the sorted window, not interpolated
        iqr = float(ordered[int(0.75 * n)] - ordered[int(0.25 * n)])
        mad = float(np.mean(np.abs(x - median)))
        features.extend([iqr, mad])
        names.extend(['iqr', 'mad'])

        return features, names

    def _extract_higher_order_features(self, x: np.ndarray) -> Tuple[List, List]:
        """Population skewness and excess kurtosis"""
        if np.std(x) < self.epsilon:
            return [0.0, 0.0], ['skewness', 'kurtosis']

        skewness = float(stats.skew(x, bias=True))
        kurtosis = float(stats.kurtosis(x, fisher=True, bias=True))

        return [skewness, kurtosis], ['skewness', 'kurtosis']

    def _extract_shape_features(self, x: np.ndarray) -> Tuple[List, List]:
        """Range, zero crossings, RMS and SNR"""
        features = []
        names = []

        features.append(float(np.ptp(x)))
        names.append('range')

        zero_crossings = int(np.count_nonzero(x[:-1] * x[1:] < 0))
        features.append(float(zero_crossings))
        names.append('zero_crossings')

        features.append(float(np.sqrt(np.mean(x ** 2))))
        names.append('rms')

        features.append(self._snr_db(x))
        names.append('snr_db')

        return features, names

    def _snr_db(self, x: np.ndarray) -> float:
        """
        10 * log10(mean^2 / variance)

        mean^2 is floored at epsilon so zero-mean windows stay finite;
        near-constant windows (variance below epsilon) report 0 dB.
        """
        variance = float(np.var(x))
        if variance < self.epsilon:
            return 0.0
        power = max(float(np.mean(x)) ** 2, self.epsilon)
        return 10.0 * math.log10(power / variance)

    def _extract_frequency_features(self, x: np.ndarray) -> Tuple[List, List]:
        """Spectral energy and entropy over the first half of the DFT"""
        n_bins = (x.size + 1) // 2
        magnitudes = np.abs(rfft(x))[:n_bins]

        spectral_energy = float(np.sum(magnitudes))

        p = magnitudes / (spectral_energy + self.epsilon)
        p = p[p > 0]
        spectral_entropy = float(-np.sum(p * np.log(p + self.epsilon)))

        return [spectral_energy, spectral_entropy], ['spectral_energy', 'spectral_entropy']

    def _extract_morphology_features(self, x: np.ndarray) -> Tuple[List, List]:
        """Local maxima count"""
        if x.size < 3:
            return [0.0], ['num_peaks']

        interior = x[1:-1]
        is_peak = (interior > x[:-2]) & (interior > x[2:])

        return [float(np.count_nonzero(is_peak))], ['num_peaks']

    def extract_windows(self, signal: Sequence[float], window_size: int,
                        step: Optional[int] = None) -> pd.DataFrame:
        """
        Feature table over sliding windows of a recorded waveform

        Args:
            signal: Full recording
            window_size: Samples per window
            step: Hop between window starts (defaults to window_size)

        Returns:
            DataFrame with one row per window: start, end and the 15 features
        """
        if window_size <= 0:
            raise ValueError(f"window_size must be positive, got {window_size}")
        step = step or window_size
        x = np.asarray(signal, dtype=np.float64).reshape(-1)

        rows = []
        for start in range(0, x.size - window_size + 1, step):
            end = start + window_size
            row = {'start': start, 'end': end}
            row.update(self.extract(x[start:end]).to_dict())
            rows.append(row)

        return pd.DataFrame(rows, columns=['start', 'end'] + list(FEATURE_NAMES))

    def get_feature_names(self) -> List[str]:
        return list(FEATURE_NAMES)

    def get_feature_groups(self) -> Dict[str, List[str]]:
        """Group features by category"""
        return {
            'Time domain': ['mean', 'std', 'median', 'variance', 'range',
                            'zero_crossings', 'rms', 'iqr', 'mad', 'snr_db'],
            'Higher order': ['skewness', 'kurtosis'],
            'Frequency': ['spectral_energy', 'spectral_entropy'],
            'Morphology': ['num_peaks'],
        }


_default_extractor = SignalFeatureExtractor()


def extract_features(samples: Sequence[float],
                     epsilon: float = DEFAULT_EPSILON) -> FeatureVector:
    """
    Convenience function for one-shot feature extraction

    Args:
        samples: Ordered raw intensity samples
        epsilon: Guard for near-zero denominators

    Returns:
        FeatureVector of length 15
    """
    if epsilon == DEFAULT_EPSILON:
        return _default_extractor.extract(samples)
    return SignalFeatureExtractor(epsilon=epsilon).extract(samples)


def main():
    """Test feature extraction"""
    np.random.seed(42)
    fs = 30
    t = np.arange(10 * fs) / fs

    # Synthetic PPG: cardiac fundamental plus dicrotic harmonic and drift
    ppg = np.sin(2 * np.pi * 1.2 * t) + 0.3 * np.sin(2 * np.pi * 2.4 * t + 0.8)
    ppg += 0.2 * np.sin(2 * np.pi * 0.1 * t)
    ppg += 0.05 * np.random.randn(len(t))

    extractor = SignalFeatureExtractor()
    features = extractor.extract(ppg)

    print(f"Extracted {N_FEATURES} features:")
    for name, value in features.to_dict().items():
        print(f"  {name}: {value:.4f}")

    print("\nFeature groups:")
    for group, names in extractor.get_feature_groups().items():
        print(f"  {group}: {len(names)} features")


if __name__ == '__main__':
    main()
