"""Pitch detection backed by aubio's YIN implementation.

Selectable through ComponentFactory as the "aubio" detector. Needs the
optional ``aubio`` dependency.
"""

from __future__ import annotations
from typing import ClassVar, Dict, Optional, Tuple

import aubio
import numpy as np

from ..logger import get_logger
from ..note_types import PitchResult
from ..core.interfaces import IPitchDetector

logger = get_logger(__name__)


class AubioPitchDetector(IPitchDetector):
    """Wraps ``aubio.pitch("yin")`` behind the detector interface."""

    DEFAULT_TOLERANCE: ClassVar[float] = 0.15
    DEFAULT_SILENCE_THRESHOLD: ClassVar[float] = 0.005
    MIN_FREQUENCY: ClassVar[float] = 25.0  # Hz, below A0
    MAX_FREQUENCY: ClassVar[float] = 4500.0

    def __init__(
        self,
        tolerance: float = DEFAULT_TOLERANCE,
        min_frequency: float = MIN_FREQUENCY,
        max_frequency: float = MAX_FREQUENCY,
        silence_threshold: float = DEFAULT_SILENCE_THRESHOLD,
    ) -> None:
        """Initialize the detector.

        Args:
            tolerance: aubio YIN tolerance (0.0 to 1.0)
            min_frequency: Results below this frequency are discarded
            max_frequency: Results above this frequency are discarded
            silence_threshold: Buffers with a lower RMS report no pitch
        """
        if not 0.0 < tolerance < 1.0:
            raise ValueError("tolerance must be between 0.0 and 1.0")
        self._tolerance = tolerance
        self._min_frequency = min_frequency
        self._max_frequency = max_frequency
        self._silence_threshold = silence_threshold
        # One aubio object per (buffer size, sample rate); hop equals the
        # buffer size so no samples carry over between calls
        self._detectors: Dict[Tuple[int, int], "aubio.pitch"] = {}

    def _detector_for(self, size: int, sample_rate: int):
        key = (size, sample_rate)
        if key not in self._detectors:
            detector = aubio.pitch("yin", size, size, sample_rate)
            detector.set_unit("Hz")
            detector.set_tolerance(self._tolerance)
            self._detectors[key] = detector
            logger.info(
                f"aubio pitch detector created: size={size}, sample_rate={sample_rate}"
            )
        return self._detectors[key]

    def detect(self, buffer: np.ndarray, sample_rate: int) -> Optional[PitchResult]:
        if sample_rate <= 0:
            raise ValueError(f"Sample rate must be positive, got {sample_rate}")
        samples = np.ascontiguousarray(buffer, dtype=np.float32)
        if samples.ndim != 1 or len(samples) == 0:
            raise ValueError(f"Expected a non-empty 1-D buffer, got shape {samples.shape}")

        rms = float(np.sqrt(np.mean(samples.astype(np.float64) ** 2)))
        if rms < self._silence_threshold:
            return None

        detector = self._detector_for(len(samples), sample_rate)
        frequency = float(detector(samples)[0])
        confidence = float(np.clip(detector.get_confidence(), 0.0, 1.0))

        if not self._min_frequency <= frequency <= self._max_frequency:
            return None
        return PitchResult(frequency=frequency, confidence=confidence)
