#!/usr/bin/env python3
"""
Frequency Smoother

Removes outliers and jitter from the per-block pitch track:
1. A short rolling buffer; samples far from the buffer median are replaced by it
2. Exponential smoothing whose factor follows how stable the buffer is
   (heavier when the pitch is steady, lighter while it moves)

A silence gap clears everything so phrases are never smoothed into each other.
"""

import math
import numpy as np
from collections import deque
from typing import Optional


class FrequencySmoother:
    """Median outlier rejection plus adaptive exponential smoothing."""

    def __init__(self, buffer_size: int = 5, outlier_threshold: float = 0.08,
                 min_alpha: float = 0.3, max_alpha: float = 0.8,
                 stable_cents: float = 20.0, changing_cents: float = 100.0):
        """
        Initialize smoother.

        Args:
            buffer_size: Rolling buffer length (5-8 recommended)
            outlier_threshold: Relative distance from the median (0.08 = 8%) that marks an outlier
            min_alpha: Smoothing factor used while the pitch is changing quickly
            max_alpha: Smoothing factor used while the pitch is stable
            stable_cents: Buffer spread at or below which the pitch counts as stable
            changing_cents: Buffer spread at or above which the pitch counts as changing
        """
        if buffer_size < 1:
            raise ValueError(f"buffer_size must be at least 1, got {buffer_size}")
        if not (0.0 <= min_alpha <= max_alpha < 1.0):
            raise ValueError(f"Expected 0 <= min_alpha <= max_alpha < 1, got {min_alpha}, {max_alpha}")
        if changing_cents <= stable_cents:
            raise ValueError("changing_cents must be greater than stable_cents")

        self.buffer_size = buffer_size
        self.outlier_threshold = outlier_threshold
        self.min_alpha = min_alpha
        self.max_alpha = max_alpha
        self.stable_cents = stable_cents
        self.changing_cents = changing_cents

        self.buffer = deque(maxlen=buffer_size)
        self.last_valid_frequency = None

    def reset(self):
        """Clear the rolling buffer and the smoothing history."""
        self.buffer.clear()
        self.last_valid_frequency = None

    def adaptive_alpha(self) -> float:
        """Smoothing factor for the current buffer contents."""
        if len(self.buffer) < 2:
            return self.max_alpha

        spread = 1200.0 * math.log2(max(self.buffer) / min(self.buffer))
        if spread <= self.stable_cents:
            return self.max_alpha
        if spread >= self.changing_cents:
            return self.min_alpha

        position = (spread - self.stable_cents) / (self.changing_cents - self.stable_cents)
        return self.max_alpha - position * (self.max_alpha - self.min_alpha)

    def smooth(self, frequency: float) -> float:
        """
        Smooth one accepted frequency.

        Args:
            frequency: Raw frequency in Hz (must be positive)

        Returns:
            Smoothed frequency in Hz
        """
        self.buffer.append(frequency)

        if len(self.buffer) >= 3:
            median = float(np.median(self.buffer))
            if abs(frequency / median - 1.0) > self.outlier_threshold:
                frequency = median

        if self.last_valid_frequency is not None:
            alpha = self.adaptive_alpha()
            frequency = alpha * self.last_valid_frequency + (1.0 - alpha) * frequency

        self.last_valid_frequency = frequency
        return frequency

    def process(self, frequency: Optional[float]) -> Optional[float]:
        """
        Feed one tick's raw frequency (None for no pitch).

        Returns:
            Smoothed frequency, or None when the tick had no pitch
        """
        if frequency is None or not math.isfinite(frequency) or frequency <= 0:
            self.reset()
            return None
        return self.smooth(frequency)
