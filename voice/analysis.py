"""
Stress Analysis — frequency-domain energy and the stress mapping.

The microphone is sampled once per frame. Each frame is reduced to
byte-scaled frequency magnitudes the same way a Web Audio AnalyserNode
reports them (Blackman window, magnitude smoothing across frames,
decibel range mapped onto 0-255), then averaged into a single
energy value that drives the stress estimate.

Mapping contract (heuristic, kept exactly):
    raw = clamp((avg_energy / 45) * 100, 0, 100)
    if avg_energy > 8: raw = max(raw, 35)
    smoothed = smoothed * 0.85 + raw * 0.15
"""
from __future__ import annotations

from typing import Optional, Sequence

import numpy as np

ENERGY_DIVISOR = 45.0
ACTIVITY_THRESHOLD = 8.0
ACTIVITY_FLOOR = 35.0
SMOOTHING_KEEP = 0.85
SMOOTHING_TAKE = 0.15


def average_energy(byte_bins: Sequence[float]) -> float:
    """Mean magnitude across frequency bins (0-255). Empty input is silence."""
    if len(byte_bins) == 0:
        return 0.0
    return float(np.mean(np.asarray(byte_bins, dtype=np.float64)))


def raw_stress(avg_energy: float) -> float:
    stress = (avg_energy / ENERGY_DIVISOR) * 100.0
    # Audible speech never reads as calm because of a few quiet frames.
    if avg_energy > ACTIVITY_THRESHOLD:
        stress = max(stress, ACTIVITY_FLOOR)
    return max(0.0, min(100.0, stress))


def smooth(previous: float, raw: float) -> float:
    return previous * SMOOTHING_KEEP + raw * SMOOTHING_TAKE


def final_level(readings: Sequence[float]) -> float:
    """Session result: arithmetic mean of all raw readings, 0 when none."""
    if not readings:
        return 0.0
    return float(sum(readings) / len(readings))


class FrequencyAnalyser:
    """
    Byte frequency data from raw PCM frames.

    Keeps the previous frame's magnitudes so that consecutive calls are
    smoothed with `smoothing_time_constant`, like an AnalyserNode.
    """

    def __init__(
        self,
        fft_size: int = 256,
        smoothing_time_constant: float = 0.8,
        min_decibels: float = -100.0,
        max_decibels: float = -30.0,
    ):
        if fft_size < 32 or fft_size & (fft_size - 1):
            raise ValueError(f"fft_size must be a power of two >= 32, got {fft_size}")
        if max_decibels <= min_decibels:
            raise ValueError("max_decibels must be greater than min_decibels")
        self.fft_size = fft_size
        self.smoothing_time_constant = smoothing_time_constant
        self.min_decibels = min_decibels
        self.max_decibels = max_decibels
        self._window = np.blackman(fft_size)
        self._previous: Optional[np.ndarray] = None

    @property
    def frequency_bin_count(self) -> int:
        return self.fft_size // 2

    def reset(self) -> None:
        self._previous = None

    def byte_frequency_data(self, samples: np.ndarray) -> np.ndarray:
        """
        Args:
            samples: mono float samples in [-1, 1]; the last `fft_size` are
                used, shorter input is zero-padded at the front.
        Returns:
            uint8 array of `frequency_bin_count` magnitudes.
        """
        frame = np.zeros(self.fft_size, dtype=np.float64)
        tail = np.asarray(samples, dtype=np.float64).ravel()[-self.fft_size:]
        if tail.size:
            frame[-tail.size:] = tail

        spectrum = np.fft.rfft(frame * self._window)[: self.frequency_bin_count]
        magnitudes = np.abs(spectrum) / self.fft_size

        if self._previous is not None:
            tau = self.smoothing_time_constant
            magnitudes = tau * self._previous + (1.0 - tau) * magnitudes
        self._previous = magnitudes

        with np.errstate(divide="ignore"):
            decibels = 20.0 * np.log10(magnitudes)
        scale = 255.0 / (self.max_decibels - self.min_decibels)
        scaled = np.floor(scale * (decibels - self.min_decibels))
        return np.clip(np.nan_to_num(scaled, neginf=0.0), 0, 255).astype(np.uint8)
