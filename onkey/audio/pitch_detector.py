"""YIN pitch detection.

de Cheveigné & Kawahara, "YIN, a fundamental frequency estimator for speech
and music" (JASA 2002). Steps: squared-difference function, cumulative mean
normalization, absolute threshold, parabolic interpolation.
"""

from __future__ import annotations
import math
from typing import ClassVar, Optional

import numpy as np

from ..logger import get_logger
from ..note_types import PitchResult
from ..core.interfaces import IPitchDetector

logger = get_logger(__name__)


class YinPitchDetector(IPitchDetector):
    """Stateless YIN detector for a single fixed-size buffer."""

    DEFAULT_THRESHOLD: ClassVar[float] = 0.1  # Absolute CMNDF threshold
    DEFAULT_SILENCE_THRESHOLD: ClassVar[float] = 0.005  # RMS below this is silence
    # Hz, below A0 (27.5 Hz) so a stretched or flat A0 stays inside the lag range
    MIN_FREQUENCY: ClassVar[float] = 25.0
    MAX_FREQUENCY: ClassVar[float] = 4500.0  # Hz, above C8 (4186 Hz)
    # Confidence multiplier when no lag falls below the threshold
    FALLBACK_PENALTY: ClassVar[float] = 0.5

    def __init__(
        self,
        threshold: float = DEFAULT_THRESHOLD,
        min_frequency: float = MIN_FREQUENCY,
        max_frequency: float = MAX_FREQUENCY,
        silence_threshold: float = DEFAULT_SILENCE_THRESHOLD,
    ) -> None:
        """Initialize the detector.

        Args:
            threshold: CMNDF value a dip must fall below to be accepted (0 to 1)
            min_frequency: Lowest detectable frequency in Hz; sets the longest lag
            max_frequency: Highest detectable frequency in Hz; sets the shortest lag
            silence_threshold: Buffers with a lower RMS report no pitch
        """
        if not 0.0 < threshold < 1.0:
            raise ValueError("threshold must be between 0.0 and 1.0")
        if not 0.0 < min_frequency < max_frequency:
            raise ValueError("Need 0 < min_frequency < max_frequency")
        if silence_threshold < 0:
            raise ValueError("silence_threshold must not be negative")

        self._threshold = threshold
        self._min_frequency = min_frequency
        self._max_frequency = max_frequency
        self._silence_threshold = silence_threshold

    @property
    def threshold(self) -> float:
        return self._threshold

    @property
    def silence_threshold(self) -> float:
        return self._silence_threshold

    def max_lag(self, sample_rate: int) -> int:
        """Longest period searched, in samples."""
        return int(math.ceil(sample_rate / self._min_frequency))

    def min_buffer_size(self, sample_rate: int) -> int:
        """Shortest buffer that can hold two periods of the lowest frequency."""
        return 2 * self.max_lag(sample_rate)

    def detect(self, buffer: np.ndarray, sample_rate: int) -> Optional[PitchResult]:
        """Estimate the pitch of a buffer.

        Args:
            buffer: 1-D array of samples
            sample_rate: Sample rate in Hz

        Returns:
            PitchResult, or None for silence or no usable periodicity

        Raises:
            ValueError: If the buffer is not 1-D, is too short for the lowest
                frequency, or the sample rate is not positive
        """
        if sample_rate <= 0:
            raise ValueError(f"Sample rate must be positive, got {sample_rate}")

        samples = np.asarray(buffer, dtype=np.float64)
        if samples.ndim != 1:
            raise ValueError(f"Expected a 1-D buffer, got shape {samples.shape}")

        max_lag = self.max_lag(sample_rate)
        if len(samples) < 2 * max_lag:
            raise ValueError(
                f"Buffer of {len(samples)} samples is too short; need at least "
                f"{2 * max_lag} at {sample_rate} Hz"
            )

        rms = float(np.sqrt(np.mean(samples**2)))
        if rms < self._silence_threshold:
            logger.debug(f"Below silence gate: rms={rms:.5f}")
            return None

        diff = self._difference(samples - samples.mean(), max_lag)
        cmndf = self._cmndf(diff)
        min_lag = max(2, int(sample_rate // self._max_frequency))

        penalty = 1.0
        tau = self._first_dip(cmndf, min_lag, max_lag)
        if tau is None:
            tau = min_lag + int(np.argmin(cmndf[min_lag:max_lag]))
            penalty = self.FALLBACK_PENALTY

        refined_lag = self._parabolic_interpolation(diff, tau)
        frequency = sample_rate / refined_lag
        confidence = float(np.clip(1.0 - cmndf[tau], 0.0, 1.0)) * penalty

        logger.debug(
            f"YIN: lag={refined_lag:.3f} freq={frequency:.2f}Hz "
            f"conf={confidence:.3f} rms={rms:.4f}"
        )

        if not self._min_frequency <= frequency <= self._max_frequency:
            return None
        return PitchResult(frequency=float(frequency), confidence=confidence)

    @staticmethod
    def _difference(samples: np.ndarray, max_lag: int) -> np.ndarray:
        """Squared difference d(tau) for tau in 0..max_lag over a fixed window."""
        window = len(samples) - max_lag

        # sum_j x[j] * x[j + tau]
        cross = np.correlate(samples, samples[:window], mode="valid")

        # sum_j x[j + tau]^2 as a sliding sum of squares
        energy = np.concatenate(([0.0], np.cumsum(samples**2)))
        power = energy[window : window + max_lag + 1] - energy[: max_lag + 1]

        diff = power[0] + power - 2.0 * cross
        diff[0] = 0.0
        return np.maximum(diff, 0.0)

    @staticmethod
    def _cmndf(diff: np.ndarray) -> np.ndarray:
        """Cumulative mean normalized difference, d'(0) = 1."""
        cmndf = np.ones_like(diff)
        running = np.cumsum(diff[1:])
        taus = np.arange(1, len(diff))
        with np.errstate(divide="ignore", invalid="ignore"):
            cmndf[1:] = np.where(running > 0, diff[1:] * taus / running, 1.0)
        return cmndf

    def _first_dip(self, cmndf: np.ndarray, min_lag: int, max_lag: int) -> Optional[int]:
        """First lag under the threshold, followed down to the bottom of its dip."""
        below = np.nonzero(cmndf[min_lag:max_lag] < self._threshold)[0]
        if len(below) == 0:
            return None
        tau = min_lag + int(below[0])
        while tau + 1 < max_lag and cmndf[tau + 1] < cmndf[tau]:
            tau += 1
        return tau

    @staticmethod
    def _parabolic_interpolation(diff: np.ndarray, tau: int) -> float:
        """Vertex of the parabola through d(tau - 1), d(tau), d(tau + 1).

        Fitted on the raw difference function: at lags of a few samples the
        CMNDF normalization skews the dip and biases the top octave sharp.
        """
        if tau < 1 or tau + 1 >= len(diff):
            return float(tau)
        s0, s1, s2 = diff[tau - 1], diff[tau], diff[tau + 1]
        denominator = s0 - 2.0 * s1 + s2
        if denominator <= 0:
            return float(tau)
        shift = 0.5 * (s0 - s2) / denominator
        if abs(shift) > 1.0:
            return float(tau)
        return tau + float(shift)
