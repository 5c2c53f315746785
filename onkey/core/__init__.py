"""Core components for the onkey application."""

# Import interfaces for easier access
from .interfaces import (
    IAudioSink,
    IAudioSource,
    IPitchDetectionService,
    IPitchDetector,
)

__all__ = ["IAudioSink", "IAudioSource", "IPitchDetectionService", "IPitchDetector"]
