#!/usr/bin/env python3
"""
Pitch Estimator

Extracts one candidate fundamental frequency per audio block.

Two estimators are available and can be combined:
1. Time domain: normalized autocorrelation with parabolic peak refinement
2. Frequency domain: spectral peak picking where every peak is scored as a
   possible fundamental by the energy at its harmonics, so a loud 2nd or 3rd
   harmonic (typical for sung vowels) does not win over the real fundamental

A frame-to-frame guard rejects implausible jumps of more than ~2 octaves.
"""

import math
import numpy as np
from dataclasses import dataclass, replace
from typing import Optional
from scipy.signal import correlate, find_peaks

from audio_source import AudioBlock
from pitch_utils import midi_to_hz


PITCH_METHODS = ('autocorrelation', 'spectral', 'hybrid')

# Half a semitone past E2 and C6, so the mapper decides the note range
DEFAULT_MIN_FREQUENCY = midi_to_hz(40 - 0.5)
DEFAULT_MAX_FREQUENCY = midi_to_hz(84 + 0.5)

# Largest integer ratio treated as a harmonic / sub-harmonic of the previous pitch
MAX_HARMONIC_RATIO = 8


@dataclass(frozen=True)
class FrequencyEstimate:
    """A pitch candidate for one block."""
    frequency_hz: float
    confidence: float
    rms: float
    method: str = 'autocorrelation'


def compute_rms(samples: np.ndarray) -> float:
    if len(samples) == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(samples, dtype=np.float64))))


def autocorrelate(samples: np.ndarray) -> np.ndarray:
    """
    Biased autocorrelation c[lag] = sum(x[i] * x[i + lag]) for lag >= 0.

    Computed through the FFT, so the cost is O(n log n) per block.
    """
    full = correlate(samples, samples, mode='full', method='fft')
    return full[len(samples) - 1:]


def parabolic_interpolation(values: np.ndarray, index: int) -> float:
    """
    Refine the position of a peak using the parabola through its neighbours.

    Returns:
        Fractional index of the peak (the input index when refinement is not possible)
    """
    if index <= 0 or index >= len(values) - 1:
        return float(index)

    y1, y2, y3 = values[index - 1], values[index], values[index + 1]
    denominator = y1 - 2 * y2 + y3
    if denominator == 0:
        return float(index)

    shift = 0.5 * (y1 - y3) / denominator
    if abs(shift) > 1.0:
        return float(index)
    return index + shift


def compute_magnitude_spectrum(samples: np.ndarray) -> np.ndarray:
    """Hann-windowed magnitude spectrum (n // 2 + 1 bins)."""
    window = np.hanning(len(samples))
    return np.abs(np.fft.rfft(samples * window))


class PitchEstimator:
    """Per-block fundamental frequency estimator."""

    def __init__(self, min_frequency: float = DEFAULT_MIN_FREQUENCY,
                 max_frequency: float = DEFAULT_MAX_FREQUENCY,
                 min_rms: float = 0.01,
                 trim_threshold: float = 0.02,
                 min_correlation: float = 0.3,
                 method: str = 'autocorrelation',
                 max_octave_jump: float = 2.0,
                 harmonic_tolerance: float = 0.03,
                 num_harmonics: int = 5,
                 max_spectral_peaks: int = 5,
                 spectral_peak_threshold: float = 0.1):
        """
        Initialize estimator.

        Args:
            min_frequency: Lowest accepted pitch in Hz
            max_frequency: Highest accepted pitch in Hz
            min_rms: RMS below this is treated as silence
            trim_threshold: Leading/trailing samples quieter than this are trimmed
            min_correlation: Minimum normalized autocorrelation peak
            method: 'autocorrelation', 'spectral' or 'hybrid'
            max_octave_jump: Largest accepted frame-to-frame jump in octaves
            harmonic_tolerance: Relative tolerance when matching integer frequency ratios
            num_harmonics: Harmonics (including the fundamental) scored per spectral peak
            max_spectral_peaks: Spectral peaks considered as fundamental candidates
            spectral_peak_threshold: Peak height relative to the tallest peak
        """
        if min_frequency <= 0 or max_frequency <= min_frequency:
            raise ValueError(f"Invalid frequency range: {min_frequency}-{max_frequency} Hz")
        if method not in PITCH_METHODS:
            raise ValueError(f"Unknown pitch method '{method}', expected one of {PITCH_METHODS}")
        if num_harmonics < 2:
            raise ValueError(f"num_harmonics must be at least 2, got {num_harmonics}")

        self.min_frequency = min_frequency
        self.max_frequency = max_frequency
        self.min_rms = min_rms
        self.trim_threshold = trim_threshold
        self.min_correlation = min_correlation
        self.method = method
        self.max_octave_jump = max_octave_jump
        self.harmonic_tolerance = harmonic_tolerance
        self.num_harmonics = num_harmonics
        self.max_spectral_peaks = max_spectral_peaks
        self.spectral_peak_threshold = spectral_peak_threshold

        self.previous_frequency = None

    def reset(self):
        """Forget the previous frame's pitch."""
        self.previous_frequency = None

    def estimate(self, block: AudioBlock,
                 spectrum: Optional[np.ndarray] = None) -> Optional[FrequencyEstimate]:
        """
        Estimate the fundamental frequency of one block.

        Args:
            block: Audio block
            spectrum: Optional linear magnitude spectrum of the same block
                      (n_fft // 2 + 1 bins); computed when needed and missing

        Returns:
            FrequencyEstimate, or None when the block has no usable pitch
        """
        samples = np.asarray(block.samples, dtype=np.float64)
        rms = compute_rms(samples)

        if rms < self.min_rms or len(samples) < 4:
            self.previous_frequency = None
            return None

        if self.method == 'autocorrelation':
            estimate = self.estimate_from_autocorrelation(samples, block.sample_rate, rms)
        elif self.method == 'spectral':
            if spectrum is None:
                spectrum = compute_magnitude_spectrum(samples)
            estimate = self.estimate_from_spectrum(spectrum, block.sample_rate, rms)
        else:
            estimate = self._estimate_hybrid(samples, block.sample_rate, rms, spectrum)

        return self._accept(estimate)

    def _trim(self, samples: np.ndarray) -> np.ndarray:
        loud = np.nonzero(np.abs(samples) >= self.trim_threshold)[0]
        if len(loud) == 0:
            return samples
        return samples[loud[0]:loud[-1] + 1]

    def estimate_from_autocorrelation(self, samples: np.ndarray, sample_rate: int,
                                      rms: Optional[float] = None) -> Optional[FrequencyEstimate]:
        """
        Time-domain estimate from the normalized autocorrelation.

        Returns:
            FrequencyEstimate (confidence = normalized correlation at the period) or None
        """
        trimmed = self._trim(np.asarray(samples, dtype=np.float64))
        n = len(trimmed)

        min_lag = max(1, int(math.floor(sample_rate / self.max_frequency)))
        max_lag = min(int(math.ceil(sample_rate / self.min_frequency)), n - 2)
        if max_lag <= min_lag:
            return None

        corr = autocorrelate(trimmed)
        if corr[0] <= 0:
            return None
        corr = corr / corr[0]

        # Skip the shoulder of the zero-lag peak
        rising = np.nonzero(np.diff(corr[:max_lag + 1]) >= 0)[0]
        if len(rising) == 0:
            return None
        start = max(int(rising[0]), min_lag)
        if start >= max_lag:
            return None

        lag = start + int(np.argmax(corr[start:max_lag + 1]))
        peak = float(corr[lag])
        if peak < self.min_correlation:
            return None

        refined_lag = parabolic_interpolation(corr, lag)
        if refined_lag <= 0:
            return None

        return FrequencyEstimate(
            frequency_hz=sample_rate / refined_lag,
            confidence=float(min(1.0, peak)),
            rms=rms if rms is not None else compute_rms(samples),
            method='autocorrelation'
        )

    def _magnitude_near(self, magnitudes: np.ndarray, bin_position: float) -> float:
        index = int(round(bin_position))
        if index < 1 or index >= len(magnitudes) - 1:
            return 0.0
        return float(np.max(magnitudes[index - 1:index + 2]))

    def harmonic_score(self, magnitudes: np.ndarray, f0: float, bin_hz: float) -> float:
        """
        Score f0 as a fundamental.

        The fundamental's own magnitude plus the magnitudes at harmonics
        2..num_harmonics, weighted 1 / (h - 1) so lower harmonics count more.
        """
        score = self._magnitude_near(magnitudes, f0 / bin_hz)
        for h in range(2, self.num_harmonics + 1):
            score += self._magnitude_near(magnitudes, h * f0 / bin_hz) / (h - 1)
        return score

    def estimate_from_spectrum(self, magnitudes: np.ndarray, sample_rate: int,
                               rms: Optional[float] = None) -> Optional[FrequencyEstimate]:
        """
        Frequency-domain estimate with harmonic disambiguation.

        Args:
            magnitudes: Linear magnitude spectrum, n_fft // 2 + 1 bins
            sample_rate: Sample rate in Hz
            rms: Block RMS, stored on the estimate

        Returns:
            FrequencyEstimate (confidence = normalized harmonic score) or None
        """
        magnitudes = np.asarray(magnitudes, dtype=np.float64)
        if len(magnitudes) < 4:
            return None

        n_fft = 2 * (len(magnitudes) - 1)
        bin_hz = sample_rate / float(n_fft)
        min_bin = max(2, int(math.floor(self.min_frequency / bin_hz)))
        max_bin = min(len(magnitudes) - 2, int(math.ceil(self.max_frequency / bin_hz)))
        if max_bin <= min_bin:
            return None

        region = magnitudes[min_bin:max_bin + 1]
        tallest = float(np.max(region))
        if tallest <= 0:
            return None

        peaks, _ = find_peaks(region, height=tallest * self.spectral_peak_threshold)
        if len(peaks) == 0:
            peaks = np.array([int(np.argmax(region))])
        peaks = peaks + min_bin

        strongest = peaks[np.argsort(magnitudes[peaks])[::-1][:self.max_spectral_peaks]]

        best_frequency = None
        best_score = -1.0
        for peak_bin in strongest:
            f0 = parabolic_interpolation(magnitudes, int(peak_bin)) * bin_hz
            if not (self.min_frequency <= f0 <= self.max_frequency):
                continue
            score = self.harmonic_score(magnitudes, f0, bin_hz)
            if score > best_score:
                best_score = score
                best_frequency = f0

        if best_frequency is None:
            return None

        max_score = tallest * (1.0 + sum(1.0 / (h - 1) for h in range(2, self.num_harmonics + 1)))
        return FrequencyEstimate(
            frequency_hz=float(best_frequency),
            confidence=float(min(1.0, best_score / max_score)),
            rms=rms if rms is not None else 0.0,
            method='spectral'
        )

    def _estimate_hybrid(self, samples: np.ndarray, sample_rate: int, rms: float,
                         spectrum: Optional[np.ndarray]) -> Optional[FrequencyEstimate]:
        time_estimate = self.estimate_from_autocorrelation(samples, sample_rate, rms)
        if spectrum is None:
            spectrum = compute_magnitude_spectrum(samples)
        spectral_estimate = self.estimate_from_spectrum(spectrum, sample_rate, rms)

        if time_estimate is None:
            return spectral_estimate
        if spectral_estimate is None:
            return time_estimate

        # Octave (or other integer-ratio) disagreement: trust the harmonic-aware result
        if self.is_harmonic_ratio(time_estimate.frequency_hz, spectral_estimate.frequency_hz):
            return spectral_estimate
        return time_estimate

    def is_harmonic_ratio(self, freq1_hz: float, freq2_hz: float) -> bool:
        """True when the two frequencies are an integer ratio (2..8) apart."""
        if freq1_hz <= 0 or freq2_hz <= 0:
            return False
        ratio = max(freq1_hz, freq2_hz) / min(freq1_hz, freq2_hz)
        harmonic = int(round(ratio))
        if harmonic < 2 or harmonic > MAX_HARMONIC_RATIO:
            return False
        return abs(ratio / harmonic - 1.0) <= self.harmonic_tolerance

    def _accept(self, estimate: Optional[FrequencyEstimate]) -> Optional[FrequencyEstimate]:
        if estimate is None or not math.isfinite(estimate.frequency_hz):
            self.previous_frequency = None
            return None

        frequency = estimate.frequency_hz
        if frequency < self.min_frequency or frequency > self.max_frequency:
            self.previous_frequency = None
            return None

        previous = self.previous_frequency
        if previous is not None and abs(math.log2(frequency / previous)) > self.max_octave_jump:
            if not self.is_harmonic_ratio(frequency, previous):
                self.previous_frequency = None
                return None
            # Harmonic jump on a sustained note: keep the previous pitch
            estimate = replace(estimate, frequency_hz=previous)

        self.previous_frequency = estimate.frequency_hz
        return estimate
