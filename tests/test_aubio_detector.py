import shutil
import tempfile
import unittest

import numpy as np
import pytest

aubio = pytest.importorskip("aubio")

from onkey.audio.aubio_detector import AubioPitchDetector  # noqa: E402
from onkey.core.config import ConfigManager  # noqa: E402
from onkey.core.factory import ComponentFactory  # noqa: E402

SAMPLE_RATE = 44100


def sine(frequency, amplitude=0.5, size=4096):
    t = np.arange(size) / SAMPLE_RATE
    return (amplitude * np.sin(2 * np.pi * frequency * t)).astype(np.float32)


class TestAubioPitchDetector(unittest.TestCase):
    def test_a4(self):
        result = AubioPitchDetector().detect(sine(440.0), SAMPLE_RATE)
        self.assertIsNotNone(result)
        self.assertAlmostEqual(result.frequency, 440.0, delta=2.0)

    def test_silence(self):
        self.assertIsNone(AubioPitchDetector().detect(np.zeros(4096), SAMPLE_RATE))

    def test_invalid_tolerance(self):
        with self.assertRaises(ValueError):
            AubioPitchDetector(tolerance=1.5)

    def test_created_by_factory(self):
        tmpdir = tempfile.mkdtemp()
        try:
            factory = ComponentFactory(ConfigManager(tmpdir))
            self.assertIsInstance(factory.create_pitch_detector("aubio"), AubioPitchDetector)
        finally:
            shutil.rmtree(tmpdir)


if __name__ == "__main__":
    unittest.main()
