"""Factory for creating onkey components."""

import math
from typing import Callable, Dict, Optional

from ..logger import get_logger
from ..audio.pitch_detector import YinPitchDetector
from ..audio.pitch_detection_service import PitchDetectionService
from ..audio.sources import BufferSink, BufferSource, WavFileSink, WavFileSource
from .config import ConfigManager
from .interfaces import IAudioSink, IAudioSource, IPitchDetector

logger = get_logger(__name__)


def _aubio_detector(**kwargs) -> IPitchDetector:
    from ..audio.aubio_detector import AubioPitchDetector

    return AubioPitchDetector(**kwargs)


def _device_source(**kwargs) -> IAudioSource:
    from ..audio.devices import SoundDeviceSource

    return SoundDeviceSource(**kwargs)


def _device_sink(**kwargs) -> IAudioSink:
    from ..audio.devices import SoundDeviceSink

    return SoundDeviceSink(**kwargs)


class ComponentFactory:
    """Factory for creating onkey components.

    Device-backed and aubio-backed implementations are imported on first use,
    so the rest of the package works without PortAudio or aubio installed.
    """

    def __init__(self, config_manager: Optional[ConfigManager] = None):
        """Initialize the component factory.

        Args:
            config_manager: Configuration manager, or None to create a default one
        """
        self.config_manager = config_manager or ConfigManager()

        # Register default component implementations
        self.pitch_detector_classes: Dict[str, Callable[..., IPitchDetector]] = {
            "yin": YinPitchDetector,
            "aubio": _aubio_detector,
        }

        self.audio_source_classes: Dict[str, Callable[..., IAudioSource]] = {
            "device": _device_source,
            "wav": WavFileSource,
            "buffer": BufferSource,
        }

        self.audio_sink_classes: Dict[str, Callable[..., IAudioSink]] = {
            "device": _device_sink,
            "wav": WavFileSink,
            "buffer": BufferSink,
        }

    def create_pitch_detector(
        self, implementation: Optional[str] = None, **kwargs
    ) -> IPitchDetector:
        """Create a pitch detector.

        Args:
            implementation: Name of the implementation, or None for the
                configured one
            **kwargs: Parameters overriding the "pitch_detector" config

        Returns:
            Pitch detector instance

        Raises:
            ValueError: If the implementation is not registered
        """
        config = self.config_manager.get_config("pitch_detector")
        configured = config.pop("implementation", "yin")
        implementation = implementation or configured
        if implementation not in self.pitch_detector_classes:
            raise ValueError(f"Unknown pitch detector implementation: {implementation}")

        if implementation == "aubio":
            # aubio has its own YIN tolerance instead of a CMNDF threshold
            config.pop("threshold", None)
        config.update(kwargs)

        instance = self.pitch_detector_classes[implementation](**config)
        logger.info(f"Created pitch detector: {implementation}")
        return instance

    def create_audio_source(self, implementation: str = "device", **kwargs) -> IAudioSource:
        """Create an audio source.

        Raises:
            ValueError: If the implementation is not registered
        """
        if implementation not in self.audio_source_classes:
            raise ValueError(f"Unknown audio source implementation: {implementation}")

        if implementation == "device":
            kwargs.setdefault(
                "sample_rate", self.config_manager.get_config("audio")["sample_rate"]
            )
        instance = self.audio_source_classes[implementation](**kwargs)
        logger.info(f"Created audio source: {implementation}")
        return instance

    def create_audio_sink(self, implementation: str = "device", **kwargs) -> IAudioSink:
        """Create an audio sink.

        Raises:
            ValueError: If the implementation is not registered
        """
        if implementation not in self.audio_sink_classes:
            raise ValueError(f"Unknown audio sink implementation: {implementation}")

        kwargs.setdefault(
            "sample_rate", self.config_manager.get_config("audio")["sample_rate"]
        )
        instance = self.audio_sink_classes[implementation](**kwargs)
        logger.info(f"Created audio sink: {implementation}")
        return instance

    def frame_size_for(self, sample_rate: int) -> int:
        """Configured frame size, doubled until it holds two periods of the
        lowest detectable frequency at ``sample_rate``."""
        frame_size = int(self.config_manager.get_config("audio")["frame_size"])
        min_frequency = float(
            self.config_manager.get_config("pitch_detector")["min_frequency"]
        )
        needed = 2 * int(math.ceil(sample_rate / min_frequency))
        while frame_size < needed:
            frame_size *= 2
        return frame_size

    def create_pitch_detection_service(
        self,
        source: IAudioSource,
        detector: Optional[IPitchDetector] = None,
        **kwargs,
    ) -> PitchDetectionService:
        """Create a pitch detection service over ``source``."""
        audio = self.config_manager.get_config("audio")
        kwargs.setdefault("frame_size", self.frame_size_for(source.sample_rate))
        kwargs.setdefault("queue_size", audio["queue_size"])
        service = PitchDetectionService(
            source, detector or self.create_pitch_detector(), **kwargs
        )
        logger.info("Created pitch detection service")
        return service
