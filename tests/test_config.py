import json
import shutil
import tempfile
import unittest
from pathlib import Path

from onkey.core.config import ConfigManager, TunerConfig
from onkey.tuning.session import TuningMode


class TestConfigManager(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.config_dir = Path(self.tmpdir) / "onkey"

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def test_defaults_without_files(self):
        manager = ConfigManager(str(self.config_dir))
        self.assertEqual(manager.get_config("tuner")["a4"], 440.0)
        self.assertEqual(manager.get_config("audio")["frame_size"], 4096)
        self.assertEqual(manager.get_config("pitch_detector")["implementation"], "yin")
        self.assertFalse(self.config_dir.exists())

    def test_get_config_returns_copy(self):
        manager = ConfigManager(str(self.config_dir))
        manager.get_config("tuner")["a4"] = 1.0
        self.assertEqual(manager.get_config("tuner")["a4"], 440.0)

    def test_update_persists(self):
        manager = ConfigManager(str(self.config_dir))
        self.assertTrue(manager.update_config("tuner", {"tolerance": 2.0}))

        reloaded = ConfigManager(str(self.config_dir))
        self.assertEqual(reloaded.get_config("tuner")["tolerance"], 2.0)
        # Missing keys come from the defaults
        self.assertEqual(reloaded.get_config("tuner")["a4"], 440.0)

    def test_unknown_config(self):
        manager = ConfigManager(str(self.config_dir))
        self.assertFalse(manager.update_config("display", {"x": 1}))
        self.assertFalse(manager.reset_config("display"))
        self.assertEqual(manager.get_config("display"), {})

    def test_corrupted_file_falls_back_to_defaults(self):
        self.config_dir.mkdir(parents=True)
        path = self.config_dir / "tuner.json"
        path.write_text("{not json")

        manager = ConfigManager(str(self.config_dir))
        self.assertEqual(manager.get_config("tuner")["a4"], 440.0)
        self.assertEqual(path.read_text(), "{not json")

    def test_non_object_file_falls_back_to_defaults(self):
        self.config_dir.mkdir(parents=True)
        (self.config_dir / "audio.json").write_text(json.dumps([1, 2, 3]))
        manager = ConfigManager(str(self.config_dir))
        self.assertEqual(manager.get_config("audio")["sample_rate"], 44100)

    def test_reset(self):
        manager = ConfigManager(str(self.config_dir))
        manager.update_config("audio", {"sample_rate": 48000})
        manager.reset_config("audio")
        self.assertEqual(ConfigManager(str(self.config_dir)).get_config("audio")["sample_rate"], 44100)


class TestTunerConfig(unittest.TestCase):
    def test_from_dict(self):
        config = TunerConfig.from_dict(
            {"a4": 442, "tolerance": 3, "beep": True, "default_mode": "quick", "min_confidence": 0.7}
        )
        self.assertEqual(config.a4, 442.0)
        self.assertEqual(config.tolerance, 3.0)
        self.assertTrue(config.beep)
        self.assertIs(config.default_mode, TuningMode.QUICK)
        self.assertEqual(config.min_confidence, 0.7)

    def test_invalid_values_use_defaults(self):
        config = TunerConfig.from_dict(
            {"a4": -1, "tolerance": "wide", "beep": "yes", "default_mode": "baroque", "min_confidence": 2}
        )
        self.assertEqual(config, TunerConfig())

    def test_bool_is_not_a_number(self):
        self.assertEqual(TunerConfig.from_dict({"a4": True}).a4, 440.0)

    def test_load_with_overrides(self):
        tmpdir = tempfile.mkdtemp()
        try:
            manager = ConfigManager(tmpdir)
            manager.update_config("tuner", {"a4": 441.0, "tolerance": 4.0})
            config = TunerConfig.load(manager, a4=435.0, tolerance=None, beep=True)
            self.assertEqual(config.a4, 435.0)
            self.assertEqual(config.tolerance, 4.0)
            self.assertTrue(config.beep)
        finally:
            shutil.rmtree(tmpdir)

    def test_to_dict_round_trip(self):
        config = TunerConfig(a4=430.0, default_mode=TuningMode.QUICK)
        self.assertEqual(TunerConfig.from_dict(config.to_dict()), config)


if __name__ == "__main__":
    unittest.main()
