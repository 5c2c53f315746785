import threading
import unittest

import numpy as np

from onkey.audio.capture import AudioCapture, FrameQueue, OverlapFramer
from onkey.audio.pitch_detection_service import PitchDetectionService, detect_frames
from onkey.audio.pitch_detector import YinPitchDetector
from onkey.audio.sources import BufferSource
from onkey.errors import DeviceUnavailableError

SAMPLE_RATE = 44100


def sine(frequency, seconds, amplitude=0.5):
    t = np.arange(int(SAMPLE_RATE * seconds)) / SAMPLE_RATE
    return (amplitude * np.sin(2 * np.pi * frequency * t)).astype(np.float32)


class TestFrameQueue(unittest.TestCase):
    def test_fifo(self):
        frames = FrameQueue(4)
        frames.put(np.array([1.0]), 1.0)
        frames.put(np.array([2.0]), 2.0)
        frame, timestamp = frames.get(timeout=0)
        self.assertEqual(frame[0], 1.0)
        self.assertEqual(timestamp, 1.0)
        self.assertEqual(len(frames), 1)

    def test_drops_oldest_when_full(self):
        frames = FrameQueue(2)
        for i in range(5):
            frames.put(np.array([float(i)]), float(i))
        self.assertEqual(len(frames), 2)
        self.assertEqual(frames.dropped, 3)
        self.assertEqual(frames.get(timeout=0)[1], 3.0)
        self.assertEqual(frames.get(timeout=0)[1], 4.0)

    def test_get_times_out(self):
        self.assertIsNone(FrameQueue().get(timeout=0.01))

    def test_get_wakes_on_put(self):
        frames = FrameQueue()
        timer = threading.Timer(0.05, frames.put, args=(np.zeros(1), 7.0))
        timer.start()
        item = frames.get(timeout=2.0)
        timer.join()
        self.assertEqual(item[1], 7.0)

    def test_invalid_size(self):
        with self.assertRaises(ValueError):
            FrameQueue(0)


class TestOverlapFramer(unittest.TestCase):
    def test_half_overlap(self):
        framer = OverlapFramer(frame_size=8)
        samples = np.arange(20, dtype=np.float32)
        frames = list(framer.push(samples))
        self.assertEqual(len(frames), 3)
        np.testing.assert_array_equal(frames[0], samples[0:8])
        np.testing.assert_array_equal(frames[1], samples[4:12])
        np.testing.assert_array_equal(frames[2], samples[8:16])

    def test_blocks_of_any_size(self):
        framer = OverlapFramer(frame_size=8, hop_size=2)
        frames = []
        for block in np.array_split(np.arange(12, dtype=np.float32), 5):
            frames.extend(framer.push(block))
        self.assertEqual(len(frames), 3)
        np.testing.assert_array_equal(frames[-1], np.arange(4, 12))

    def test_frames_are_independent_copies(self):
        framer = OverlapFramer(frame_size=4)
        first, second = list(framer.push(np.arange(6, dtype=np.float32)))
        self.assertEqual(first[0], 0.0)
        self.assertEqual(second[0], 2.0)

    def test_invalid_hop(self):
        with self.assertRaises(ValueError):
            OverlapFramer(frame_size=8, hop_size=16)


class FailingSource(BufferSource):
    def open(self):
        raise DeviceUnavailableError("no input")


class TestAudioCapture(unittest.TestCase):
    def test_captures_until_exhausted(self):
        frames = FrameQueue(100)
        capture = AudioCapture(BufferSource(np.ones(4096 * 3), SAMPLE_RATE), frames, frame_size=4096)
        capture.start()
        capture._thread.join(timeout=2.0)
        self.assertFalse(capture.is_running())
        # 3 frames of 4096 with a hop of 2048 yield 5 frames
        self.assertEqual(len(frames), 5)
        capture.stop()


class TestPitchDetectionService(unittest.TestCase):
    def test_detects_buffer_source(self):
        results = []
        service = PitchDetectionService(BufferSource(sine(440.0, 1.0), SAMPLE_RATE), queue_size=64)
        self.assertTrue(service.start(lambda result, timestamp: results.append((result, timestamp))))
        service.wait(timeout=5.0)
        service.stop()

        self.assertFalse(service.is_running())
        self.assertGreater(len(results), 10)
        for result, timestamp in results:
            self.assertAlmostEqual(result.frequency, 440.0, delta=1.0)
            self.assertGreater(timestamp, 0.0)

    def test_silence_produces_no_callbacks(self):
        results = []
        service = PitchDetectionService(BufferSource(np.zeros(SAMPLE_RATE), SAMPLE_RATE))
        service.start(lambda result, timestamp: results.append(result))
        service.wait(timeout=5.0)
        service.stop()
        self.assertEqual(results, [])

    def test_source_failure(self):
        service = PitchDetectionService(FailingSource(np.zeros(10), SAMPLE_RATE))
        self.assertFalse(service.start(lambda result, timestamp: None))
        self.assertFalse(service.is_running())
        service.stop()

    def test_stop_is_idempotent(self):
        service = PitchDetectionService(BufferSource(sine(440.0, 5.0), SAMPLE_RATE, loop=True))
        service.start(lambda result, timestamp: None)
        self.assertTrue(service.is_running())
        service.stop()
        service.stop()
        self.assertFalse(service.is_running())


class TestDetectFrames(unittest.TestCase):
    def test_frame_times(self):
        source = BufferSource(sine(220.0, 0.5), SAMPLE_RATE)
        results = list(detect_frames(source, YinPitchDetector(), frame_size=4096))
        starts = [start for start, _ in results]
        self.assertEqual(starts[0], 0.0)
        self.assertAlmostEqual(starts[1], 2048 / SAMPLE_RATE)
        for _, result in results:
            self.assertAlmostEqual(result.frequency, 220.0, delta=0.5)


if __name__ == "__main__":
    unittest.main()
