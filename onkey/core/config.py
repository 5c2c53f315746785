"""Configuration management for onkey components."""

from dataclasses import dataclass
from typing import Dict, Any, Optional
import json
import os
from pathlib import Path

from ..logger import get_logger
from ..tuning.session import TuningMode
from ..tuning.temperament import DEFAULT_A4

logger = get_logger(__name__)


def default_config_dir() -> Path:
    return Path(os.path.expanduser("~")) / ".config" / "onkey"


class ConfigManager:
    """Named JSON configurations stored in a config directory."""

    def __init__(self, config_dir: Optional[str] = None):
        """Initialize the configuration manager.

        Args:
            config_dir: Directory to store configuration files, or None to use
                ~/.config/onkey
        """
        self.config_dir = Path(config_dir) if config_dir else default_config_dir()

        # Default configurations
        self.default_configs: Dict[str, Dict[str, Any]] = {
            "tuner": {
                "a4": DEFAULT_A4,
                "tolerance": 5.0,
                "beep": False,
                "default_mode": TuningMode.CONCERT.value,
                "min_confidence": 0.5,
            },
            "pitch_detector": {
                "implementation": "yin",
                "threshold": 0.1,
                "silence_threshold": 0.005,
                "min_frequency": 25.0,
                "max_frequency": 4500.0,
            },
            "audio": {
                "sample_rate": 44100,
                "frame_size": 4096,
                "queue_size": 8,
                "reference_duration": 2.0,
            },
        }

        # Load existing configurations, falling back to defaults
        self.configs: Dict[str, Dict[str, Any]] = {}
        for config_name, default_config in self.default_configs.items():
            self.configs[config_name] = self.load_config(config_name, default_config)

    def config_path(self, name: str) -> Path:
        return self.config_dir / f"{name}.json"

    def load_config(self, name: str, default_config: Dict[str, Any]) -> Dict[str, Any]:
        """Load configuration from file, or the defaults if there is none.

        A file that cannot be read or parsed is logged and ignored; it is not
        overwritten.

        Args:
            name: Configuration name
            default_config: Default configuration to use if file doesn't exist

        Returns:
            Configuration dictionary
        """
        config_file = self.config_path(name)
        if not config_file.exists():
            return default_config.copy()

        try:
            with open(config_file, "r") as f:
                config = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable configuration {config_file}: {e}")
            return default_config.copy()

        if not isinstance(config, dict):
            logger.warning(f"Ignoring configuration {config_file}: not a JSON object")
            return default_config.copy()

        logger.info(f"Loaded configuration from {config_file}")

        # Ensure all default keys are present
        for key, value in default_config.items():
            if key not in config:
                config[key] = value

        return config

    def save_config(self, name: str, config: Dict[str, Any]) -> bool:
        """Save configuration to file.

        Args:
            name: Configuration name
            config: Configuration dictionary

        Returns:
            True if saved successfully, False otherwise
        """
        config_file = self.config_path(name)

        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            with open(config_file, "w") as f:
                json.dump(config, f, indent=2)
            logger.info(f"Saved configuration to {config_file}")
            return True
        except OSError as e:
            logger.error(f"Error saving configuration to {config_file}: {e}")
            return False

    def get_config(self, name: str) -> Dict[str, Any]:
        """Get a copy of the configuration by name."""
        return self.configs.get(name, {}).copy()

    def update_config(self, name: str, updates: Dict[str, Any]) -> bool:
        """Update configuration and save to file.

        Returns:
            True if updated and saved successfully, False otherwise
        """
        if name not in self.configs:
            logger.error(f"Unknown configuration: {name}")
            return False

        self.configs[name].update(updates)
        return self.save_config(name, self.configs[name])

    def reset_config(self, name: str) -> bool:
        """Reset configuration to default and save it.

        Returns:
            True if reset successfully, False otherwise
        """
        if name not in self.default_configs:
            logger.error(f"Unknown configuration: {name}")
            return False

        self.configs[name] = self.default_configs[name].copy()
        return self.save_config(name, self.configs[name])


@dataclass
class TunerConfig:
    """Validated tuner settings, passed explicitly to the state machine."""

    a4: float = DEFAULT_A4
    tolerance: float = 5.0  # Cents
    beep: bool = False
    default_mode: TuningMode = TuningMode.CONCERT
    min_confidence: float = 0.5

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TunerConfig":
        """Build a config, replacing each invalid value with its default."""
        defaults = cls()
        config = cls()

        config.a4 = _positive_float(data, "a4", defaults.a4)
        config.tolerance = _positive_float(data, "tolerance", defaults.tolerance)

        beep = data.get("beep", defaults.beep)
        if isinstance(beep, bool):
            config.beep = beep
        else:
            logger.warning(f"Invalid beep setting {beep!r}, using {defaults.beep}")

        try:
            config.default_mode = TuningMode(data.get("default_mode", "concert"))
        except ValueError:
            logger.warning(
                f"Invalid default_mode {data.get('default_mode')!r}, using concert"
            )

        confidence = data.get("min_confidence", defaults.min_confidence)
        if isinstance(confidence, (int, float)) and 0.0 <= confidence <= 1.0:
            config.min_confidence = float(confidence)
        else:
            logger.warning(
                f"Invalid min_confidence {confidence!r}, using {defaults.min_confidence}"
            )
        return config

    @classmethod
    def load(cls, config_manager: ConfigManager, **overrides) -> "TunerConfig":
        """Settings from the "tuner" config, with non-None overrides applied."""
        data = config_manager.get_config("tuner")
        data.update({k: v for k, v in overrides.items() if v is not None})
        if isinstance(data.get("default_mode"), TuningMode):
            data["default_mode"] = data["default_mode"].value
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "a4": self.a4,
            "tolerance": self.tolerance,
            "beep": self.beep,
            "default_mode": self.default_mode.value,
            "min_confidence": self.min_confidence,
        }


def _positive_float(data: Dict[str, Any], key: str, default: float) -> float:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        logger.warning(f"Invalid {key} {value!r}, using {default}")
        return default
    return float(value)
