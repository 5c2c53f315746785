"""Defines the core interfaces for onkey."""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Optional, Callable

import numpy as np

from ..note_types import PitchResult


class IAudioSource(ABC):
    """Interface for anything that produces mono float32 samples."""

    @abstractmethod
    def read_samples(self, buffer: np.ndarray) -> int:
        """Fill ``buffer`` with up to ``len(buffer)`` samples.

        Returns:
            Number of samples written; 0 means the source is exhausted
        """
        pass

    @property
    @abstractmethod
    def sample_rate(self) -> int:
        """The sample rate of the audio stream."""
        pass

    def open(self) -> None:
        """Acquire the underlying resource, if any."""

    def close(self) -> None:
        """Release the underlying resource, if any."""

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *exc_info):
        self.close()


class IAudioSink(ABC):
    """Interface for anything that consumes mono float32 samples."""

    @abstractmethod
    def write_samples(self, samples: np.ndarray) -> None:
        """Write samples to the output."""
        pass

    @property
    @abstractmethod
    def sample_rate(self) -> int:
        """The sample rate of the output."""
        pass

    def close(self) -> None:
        """Flush and release the output, if needed."""


class IPitchDetector(ABC):
    """Interface for monophonic pitch detectors."""

    @abstractmethod
    def detect(self, buffer: np.ndarray, sample_rate: int) -> Optional[PitchResult]:
        """Estimate the pitch of a buffer, or return None when there is none."""
        pass


class IPitchDetectionService(ABC):
    """Interface for the service running capture and detection in the background."""

    @abstractmethod
    def start(self, callback: Callable[[PitchResult, float], None]) -> bool:
        """Start detection; ``callback`` receives each result and its timestamp."""
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stop detection and release the audio source."""
        pass

    @abstractmethod
    def is_running(self) -> bool:
        """Check if the service is running."""
        pass
