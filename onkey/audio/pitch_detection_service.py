"""Pitch detection service that integrates audio capture and pitch detection."""

from __future__ import annotations
import threading
from typing import Callable, ClassVar, Iterator, Optional, Tuple

import numpy as np

from ..errors import DeviceUnavailableError
from ..logger import get_logger
from ..note_types import PitchResult
from ..core.interfaces import IAudioSource, IPitchDetectionService, IPitchDetector
from .capture import AudioCapture, FrameQueue, OverlapFramer
from .pitch_detector import YinPitchDetector

logger = get_logger(__name__)


class PitchDetectionService(IPitchDetectionService):
    """Runs capture and detection on background threads.

    The capture thread fills a FrameQueue with overlapping frames; a single
    worker thread runs the detector on each frame and hands results to the
    callback. Frames without a pitch produce no callback.
    """

    GET_TIMEOUT: ClassVar[float] = 0.1  # Seconds the worker waits per frame

    def __init__(
        self,
        source: IAudioSource,
        detector: Optional[IPitchDetector] = None,
        frame_size: int = 4096,
        hop_size: Optional[int] = None,
        queue_size: int = 8,
        realtime: bool = False,
    ) -> None:
        """Initialize the pitch detection service.

        Args:
            source: Audio source to capture from
            detector: Pitch detector, or None for the default YIN detector
            frame_size: Samples per analysis frame
            hop_size: Samples between frames (default half a frame)
            queue_size: Frames buffered before the oldest is dropped
            realtime: Pace reads to the sample rate (for file sources)
        """
        self._detector = detector or YinPitchDetector()
        self._frames = FrameQueue(queue_size)
        self._capture = AudioCapture(
            source, self._frames, frame_size, hop_size, realtime=realtime
        )
        self._callback: Optional[Callable[[PitchResult, float], None]] = None
        self._worker: Optional[threading.Thread] = None
        self._running = threading.Event()

    @property
    def sample_rate(self) -> int:
        return self._capture.sample_rate

    def start(self, callback: Callable[[PitchResult, float], None]) -> bool:
        """Start pitch detection.

        Args:
            callback: Called on the worker thread with each result and the
                monotonic time its frame was captured

        Returns:
            True if detection started, False if the audio source failed
        """
        if self._running.is_set():
            logger.warning("Pitch detection already running")
            return True

        self._callback = callback
        try:
            self._capture.start()
        except DeviceUnavailableError as e:
            logger.error(f"Could not start audio capture: {e}")
            return False

        self._running.set()
        self._worker = threading.Thread(
            target=self._detect_loop, name="onkey-detector", daemon=True
        )
        self._worker.start()
        logger.info("Pitch detection started")
        return True

    def stop(self) -> None:
        """Stop pitch detection."""
        if self._worker is None:
            return
        # The worker may already have exited after the source ran out
        self._running.clear()
        self._capture.stop()
        self._worker.join(timeout=2.0)
        self._worker = None
        self._frames.clear()
        logger.info("Pitch detection stopped")

    def is_running(self) -> bool:
        return self._running.is_set()

    def _detect_loop(self) -> None:
        sample_rate = self._capture.sample_rate
        while self._running.is_set():
            item = self._frames.get(timeout=self.GET_TIMEOUT)
            if item is None:
                if not self._capture.is_running():
                    break
                continue

            frame, timestamp = item
            result = self._detector.detect(frame, sample_rate)
            if result is None:
                continue

            logger.debug(f"[{timestamp:.2f}] {result}")
            if self._callback is not None:
                self._callback(result, timestamp)

        self._running.clear()

    def wait(self, timeout: Optional[float] = None) -> None:
        """Block until the worker finishes, e.g. when a file source runs out."""
        worker = self._worker
        if worker is not None:
            worker.join(timeout)


def detect_frames(
    source: IAudioSource,
    detector: IPitchDetector,
    frame_size: int = 4096,
    hop_size: Optional[int] = None,
) -> Iterator[Tuple[float, Optional[PitchResult]]]:
    """Run the detector over a whole source synchronously.

    Yields:
        (time in seconds of the frame start, PitchResult or None)
    """
    framer = OverlapFramer(frame_size, hop_size)
    block = np.zeros(framer.hop_size, dtype=np.float32)
    emitted = 0
    with source:
        while True:
            count = source.read_samples(block)
            if count == 0:
                break
            for frame in framer.push(block[:count]):
                start = emitted * framer.hop_size / source.sample_rate
                yield start, detector.detect(frame, source.sample_rate)
                emitted += 1
