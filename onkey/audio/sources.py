"""Audio sources and sinks that need no audio hardware."""

import os
from typing import List, Optional

import numpy as np
import soundfile as sf

from ..logger import get_logger
from ..core.interfaces import IAudioSink, IAudioSource

logger = get_logger(__name__)


class BufferSource(IAudioSource):
    """Serves samples from an in-memory array."""

    def __init__(self, samples: np.ndarray, sample_rate: int, loop: bool = False):
        self._samples = np.asarray(samples, dtype=np.float32).reshape(-1)
        self._sample_rate = sample_rate
        self._loop = loop
        self._position = 0

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    def read_samples(self, buffer: np.ndarray) -> int:
        total = len(self._samples)
        if total == 0:
            return 0
        written = 0
        while written < len(buffer):
            if self._position >= total:
                if not self._loop:
                    break
                self._position = 0
            count = min(len(buffer) - written, total - self._position)
            buffer[written : written + count] = self._samples[
                self._position : self._position + count
            ]
            self._position += count
            written += count
        return written


class WavFileSource(IAudioSource):
    """Reads a sound file, mixed down to mono."""

    def __init__(self, file_path: str, loop: bool = False, gain: float = 1.0):
        if not os.path.exists(file_path):
            raise FileNotFoundError(f"No such audio file: {file_path}")
        self._file_path = file_path
        self._loop = loop
        self._gain = gain
        self._file: Optional[sf.SoundFile] = None

        info = sf.info(self._file_path)
        self._sample_rate = int(info.samplerate)
        self._channels = int(info.channels)
        self._frames = int(info.frames)

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def duration(self) -> float:
        return self._frames / self._sample_rate

    def open(self) -> None:
        if self._file is None:
            self._file = sf.SoundFile(self._file_path)
            logger.debug(
                f"Opened {self._file_path}: {self._sample_rate}Hz, "
                f"{self._channels} channel(s), {self._frames} frames"
            )

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    def read_samples(self, buffer: np.ndarray) -> int:
        self.open()
        data = self._file.read(len(buffer), dtype="float32", always_2d=True)
        if len(data) == 0 and self._loop:
            self._file.seek(0)
            data = self._file.read(len(buffer), dtype="float32", always_2d=True)
        if len(data) == 0:
            return 0

        mono = data.mean(axis=1)
        if self._gain != 1.0:
            mono *= self._gain
        buffer[: len(mono)] = mono
        return len(mono)


class BufferSink(IAudioSink):
    """Collects written samples in memory."""

    def __init__(self, sample_rate: int):
        self._sample_rate = sample_rate
        self._chunks: List[np.ndarray] = []

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    def write_samples(self, samples: np.ndarray) -> None:
        self._chunks.append(np.asarray(samples, dtype=np.float32).copy())

    @property
    def samples(self) -> np.ndarray:
        if not self._chunks:
            return np.zeros(0, dtype=np.float32)
        return np.concatenate(self._chunks)


class WavFileSink(IAudioSink):
    """Writes mono 16-bit PCM to a WAV file."""

    def __init__(self, file_path: str, sample_rate: int):
        self._file_path = file_path
        self._sample_rate = sample_rate
        self._file: Optional[sf.SoundFile] = None

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    def write_samples(self, samples: np.ndarray) -> None:
        if self._file is None:
            self._file = sf.SoundFile(
                self._file_path,
                mode="w",
                samplerate=self._sample_rate,
                channels=1,
                subtype="PCM_16",
            )
        self._file.write(np.asarray(samples, dtype=np.float32))

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
            logger.info(f"Wrote {self._file_path}")
