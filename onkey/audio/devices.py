"""Live audio input and output through sounddevice (PortAudio)."""

from __future__ import annotations
import threading
from collections import deque
from typing import ClassVar, Deque, List, Optional

import numpy as np
import sounddevice as sd

from ..errors import DeviceUnavailableError
from ..logger import get_logger
from ..core.interfaces import IAudioSink, IAudioSource

logger = get_logger(__name__)


def _candidate_rates(requested: int) -> List[int]:
    """Requested rate first, then common rates."""
    rates = [44100, 48000, 22050]
    if requested in rates:
        rates.remove(requested)
    rates.insert(0, requested)
    return rates


class SoundDeviceSource(IAudioSource):
    """Microphone input.

    PortAudio calls ``_audio_callback`` on its own realtime thread; blocks are
    kept in a bounded deque so a stalled reader loses the oldest audio, never
    the newest.
    """

    SAMPLE_RATE: ClassVar[int] = 44100  # Hz
    BLOCK_SIZE: ClassVar[int] = 1024  # Frames per PortAudio callback
    MAX_BLOCKS: ClassVar[int] = 64  # About 1.5s at 44.1kHz
    READ_TIMEOUT: ClassVar[float] = 0.25  # Seconds between checks for close()

    def __init__(
        self,
        device_id: Optional[int] = None,
        sample_rate: Optional[int] = None,
        block_size: Optional[int] = None,
    ) -> None:
        """Initialize the input.

        Args:
            device_id: Input device ID, or None for the system default
            sample_rate: Requested sample rate; the first working rate is used
            block_size: Frames per PortAudio callback
        """
        self._device_id = device_id
        self._sample_rate = sample_rate or self.SAMPLE_RATE
        self._block_size = block_size or self.BLOCK_SIZE

        self._stream: Optional[sd.InputStream] = None
        self._blocks: Deque[np.ndarray] = deque(maxlen=self.MAX_BLOCKS)
        self._pending = np.zeros(0, dtype=np.float32)
        self._available = threading.Condition()
        self._closed = True

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    def open(self) -> None:
        """Start the input stream.

        Raises:
            DeviceUnavailableError: If no sample rate works on the device
        """
        if self._stream is not None:
            return

        for rate in _candidate_rates(self._sample_rate):
            try:
                sd.check_input_settings(
                    device=self._device_id, samplerate=rate, channels=1
                )
                self._stream = sd.InputStream(
                    device=self._device_id,
                    samplerate=rate,
                    blocksize=self._block_size,
                    channels=1,
                    dtype="float32",
                    callback=self._audio_callback,
                )
                self._stream.start()
                self._sample_rate = rate
                self._closed = False
                logger.info(
                    f"Audio input started: device={self._device_id}, rate={rate}Hz"
                )
                return
            except (sd.PortAudioError, ValueError) as e:
                logger.warning(f"Sample rate {rate} Hz not usable for input: {e}")
                if self._stream is not None:
                    self._stream.close()
                    self._stream = None

        raise DeviceUnavailableError(
            f"Could not open audio input device {self._device_id}"
        )

    def close(self) -> None:
        with self._available:
            self._closed = True
            self._available.notify_all()
        if self._stream is not None:
            try:
                self._stream.stop()
                self._stream.close()
            except sd.PortAudioError as e:
                logger.error(f"Error stopping audio input: {e}")
            self._stream = None
            logger.info("Audio input stopped")

    def _audio_callback(self, indata: np.ndarray, _frames: int, _time_info, status) -> None:
        """Runs on the PortAudio thread; must not block."""
        if status:
            logger.warning(f"Audio callback status: {status}")
        with self._available:
            self._blocks.append(indata[:, 0].copy())
            self._available.notify()

    def read_samples(self, buffer: np.ndarray) -> int:
        """Block until ``len(buffer)`` samples are captured.

        Returns 0 once the source has been closed.
        """
        needed = len(buffer)
        with self._available:
            while len(self._pending) < needed:
                if self._closed:
                    return 0
                if self._blocks:
                    self._pending = np.concatenate([self._pending, *self._blocks])
                    self._blocks.clear()
                else:
                    self._available.wait(self.READ_TIMEOUT)
            buffer[:needed] = self._pending[:needed]
            self._pending = self._pending[needed:]
        return needed


class SoundDeviceSink(IAudioSink):
    """Speaker output; each write plays to completion."""

    def __init__(self, device_id: Optional[int] = None, sample_rate: int = 44100):
        self._device_id = device_id
        self._sample_rate = sample_rate

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    def write_samples(self, samples: np.ndarray) -> None:
        """Play samples and wait until they finish.

        Raises:
            DeviceUnavailableError: If the output device cannot be used
        """
        try:
            sd.play(
                np.asarray(samples, dtype=np.float32),
                samplerate=self._sample_rate,
                device=self._device_id,
            )
            sd.wait()
        except (sd.PortAudioError, ValueError) as e:
            raise DeviceUnavailableError(f"Audio output failed: {e}") from e


def describe_devices() -> str:
    """Human-readable list of audio devices, for --debug output."""
    try:
        devices = sd.query_devices()
    except sd.PortAudioError as e:
        raise DeviceUnavailableError(f"Could not query audio devices: {e}") from e

    lines = []
    for i, device in enumerate(devices):
        lines.append(
            f"[{i}] {device['name']} (inputs: {device['max_input_channels']}, "
            f"outputs: {device['max_output_channels']}, "
            f"{device['default_samplerate']:.0f}Hz)"
        )
    return "\n".join(lines)
