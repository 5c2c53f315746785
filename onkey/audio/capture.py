"""Audio capture: overlapping frames pushed into a bounded queue."""

from __future__ import annotations
import threading
import time
from collections import deque
from typing import ClassVar, Deque, Iterator, Optional, Tuple

import numpy as np

from ..logger import get_logger
from ..core.interfaces import IAudioSource

logger = get_logger(__name__)

# A frame and the monotonic time its last sample was captured
Frame = Tuple[np.ndarray, float]


class FrameQueue:
    """Thread-safe bounded queue that drops the oldest frame when full."""

    def __init__(self, maxsize: int = 8):
        if maxsize < 1:
            raise ValueError("maxsize must be at least 1")
        self._frames: Deque[Frame] = deque(maxlen=maxsize)
        self._not_empty = threading.Condition()
        self._dropped = 0

    @property
    def maxsize(self) -> int:
        return self._frames.maxlen

    @property
    def dropped(self) -> int:
        """Number of frames discarded because the queue was full."""
        return self._dropped

    def put(self, frame: np.ndarray, timestamp: float) -> None:
        with self._not_empty:
            if len(self._frames) == self._frames.maxlen:
                self._dropped += 1
            self._frames.append((frame, timestamp))
            self._not_empty.notify()

    def get(self, timeout: Optional[float] = None) -> Optional[Frame]:
        """Oldest queued frame, or None if none arrives within ``timeout``."""
        with self._not_empty:
            if not self._frames:
                self._not_empty.wait(timeout)
            if not self._frames:
                return None
            return self._frames.popleft()

    def clear(self) -> None:
        with self._not_empty:
            self._frames.clear()

    def __len__(self) -> int:
        with self._not_empty:
            return len(self._frames)


class OverlapFramer:
    """Turns hop-sized blocks into frames overlapping by ``frame_size - hop_size``."""

    def __init__(self, frame_size: int = 4096, hop_size: Optional[int] = None):
        hop_size = hop_size or frame_size // 2
        if not 0 < hop_size <= frame_size:
            raise ValueError("Need 0 < hop_size <= frame_size")
        self.frame_size = frame_size
        self.hop_size = hop_size
        self._window = np.zeros(frame_size, dtype=np.float32)
        self._filled = 0

    def push(self, block: np.ndarray) -> Iterator[np.ndarray]:
        """Feed samples; yields each complete frame as a new array."""
        block = np.asarray(block, dtype=np.float32).reshape(-1)
        position = 0
        while position < len(block):
            count = min(len(block) - position, self.frame_size - self._filled)
            self._window[self._filled : self._filled + count] = block[
                position : position + count
            ]
            self._filled += count
            position += count
            if self._filled == self.frame_size:
                yield self._window.copy()
                keep = self.frame_size - self.hop_size
                self._window[:keep] = self._window[self.hop_size :]
                self._filled = keep

    def reset(self) -> None:
        self._filled = 0


class AudioCapture:
    """Background thread reading an audio source into a FrameQueue."""

    FRAME_SIZE: ClassVar[int] = 4096

    def __init__(
        self,
        source: IAudioSource,
        frames: FrameQueue,
        frame_size: int = FRAME_SIZE,
        hop_size: Optional[int] = None,
        realtime: bool = False,
    ) -> None:
        """Initialize the capture.

        Args:
            source: Where samples come from
            frames: Queue receiving complete frames
            frame_size: Samples per frame handed to the detector
            hop_size: Samples between frame starts (default half a frame)
            realtime: Sleep between reads to match the sample rate, for
                sources such as files that return data immediately
        """
        self._source = source
        self._frames = frames
        self._framer = OverlapFramer(frame_size, hop_size)
        self._realtime = realtime
        self._thread: Optional[threading.Thread] = None
        self._running = threading.Event()

    @property
    def sample_rate(self) -> int:
        return self._source.sample_rate

    def is_running(self) -> bool:
        return self._running.is_set()

    def start(self) -> None:
        """Open the source and start the capture thread.

        Raises:
            DeviceUnavailableError: If the source cannot be opened
        """
        if self._running.is_set():
            logger.warning("Audio capture already running")
            return
        self._source.open()
        self._framer.reset()
        self._running.set()
        self._thread = threading.Thread(
            target=self._capture_loop, name="onkey-capture", daemon=True
        )
        self._thread.start()
        logger.info(
            f"Audio capture started: frame={self._framer.frame_size}, "
            f"hop={self._framer.hop_size}, rate={self.sample_rate}Hz"
        )

    def stop(self) -> None:
        if self._thread is None:
            return
        self._running.clear()
        self._source.close()
        self._thread.join(timeout=2.0)
        self._thread = None
        logger.info(f"Audio capture stopped ({self._frames.dropped} frames dropped)")

    def _capture_loop(self) -> None:
        block = np.zeros(self._framer.hop_size, dtype=np.float32)
        block_duration = self._framer.hop_size / self.sample_rate
        while self._running.is_set():
            count = self._source.read_samples(block)
            if count == 0:
                logger.info("Audio source exhausted")
                break
            now = time.monotonic()
            for frame in self._framer.push(block[:count]):
                self._frames.put(frame, now)
            if self._realtime:
                time.sleep(block_duration)
        self._running.clear()
