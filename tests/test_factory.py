import shutil
import tempfile
import unittest

import numpy as np

from onkey.audio.pitch_detection_service import PitchDetectionService
from onkey.audio.pitch_detector import YinPitchDetector
from onkey.audio.sources import BufferSink, BufferSource, WavFileSink
from onkey.core.config import ConfigManager
from onkey.core.factory import ComponentFactory


class TestComponentFactory(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.config_manager = ConfigManager(self.tmpdir)
        self.factory = ComponentFactory(self.config_manager)

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def test_default_detector(self):
        detector = self.factory.create_pitch_detector()
        self.assertIsInstance(detector, YinPitchDetector)
        self.assertEqual(detector.threshold, 0.1)

    def test_detector_uses_config_and_overrides(self):
        self.config_manager.update_config("pitch_detector", {"threshold": 0.2})
        self.assertEqual(self.factory.create_pitch_detector().threshold, 0.2)
        detector = self.factory.create_pitch_detector(silence_threshold=0.01)
        self.assertEqual(detector.silence_threshold, 0.01)

    def test_unknown_implementations(self):
        with self.assertRaises(ValueError):
            self.factory.create_pitch_detector("crepe")
        with self.assertRaises(ValueError):
            self.factory.create_audio_source("jack")
        with self.assertRaises(ValueError):
            self.factory.create_audio_sink("jack")

    def test_buffer_source_and_sink(self):
        source = self.factory.create_audio_source(
            "buffer", samples=np.zeros(10), sample_rate=8000
        )
        self.assertIsInstance(source, BufferSource)
        sink = self.factory.create_audio_sink("buffer")
        self.assertIsInstance(sink, BufferSink)
        self.assertEqual(sink.sample_rate, 44100)

    def test_wav_sink(self):
        sink = self.factory.create_audio_sink("wav", file_path=f"{self.tmpdir}/out.wav", sample_rate=22050)
        self.assertIsInstance(sink, WavFileSink)
        self.assertEqual(sink.sample_rate, 22050)

    def test_frame_size_grows_with_sample_rate(self):
        self.assertEqual(self.factory.frame_size_for(44100), 4096)
        self.assertEqual(self.factory.frame_size_for(48000), 4096)
        self.assertEqual(self.factory.frame_size_for(96000), 8192)

    def test_pitch_detection_service(self):
        source = BufferSource(np.zeros(10), 44100)
        service = self.factory.create_pitch_detection_service(source)
        self.assertIsInstance(service, PitchDetectionService)
        self.assertEqual(service.sample_rate, 44100)
        self.assertFalse(service.is_running())

    def test_registering_an_implementation(self):
        self.factory.pitch_detector_classes["strict"] = lambda **kwargs: YinPitchDetector(threshold=0.05)
        self.assertEqual(self.factory.create_pitch_detector("strict").threshold, 0.05)


if __name__ == "__main__":
    unittest.main()
