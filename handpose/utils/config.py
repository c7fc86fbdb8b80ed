"""
Centralized configuration manager.
Loads the YAML config and provides typed access with defaults.

    - Built-in defaults deep-merged under the file contents
    - Schema validation for critical config fields (warnings only)
    - Reset support for testing
"""

import os
import copy
import logging

import yaml

logger = logging.getLogger(__name__)

_BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
_CONFIG_DIR = os.path.join(_BASE_DIR, "config")

_DEFAULTS = {
    "camera": {
        "device_id": 0,
        "width": 640,
        "height": 480,
        "fps": 30,
        "flip_horizontal": True,
        "warmup_frames": 5,
    },
    "inference": {
        "backend": "onnxruntime",
        "device": "cpu",
        "intra_op_threads": 2,
    },
    "palm_detector": {
        "model_path": "models/palm_detection_mediapipe_2023feb.onnx",
        "input_size": 192,
        "score_threshold": 0.5,
        "nms_threshold": 0.3,
    },
    "landmark": {
        "model_path": "models/handpose_estimation_mediapipe_2023feb.onnx",
        "input_size": 224,
        "tracking_damping": 0.9,
    },
    "tracker": {
        "max_age_s": 0.45,
        "min_confidence": 0.15,
    },
    "recognition": {
        "min_confidence": 0.2,
    },
    "motion": {
        "window_s": 1.2,
    },
    "compositor": {
        "max_fps": 30,
        "min_fps": 12,
        "overlay_confidence": 0.5,
    },
    "logging": {
        "level": "INFO",
        "file": None,
    },
}

# Schema: sections and the expected types of their critical fields
_CONFIG_SCHEMA = {
    "camera": {
        "device_id": int,
        "width": int,
        "height": int,
        "fps": int,
    },
    "inference": {
        "backend": str,
        "intra_op_threads": int,
    },
    "palm_detector": {
        "model_path": str,
        "input_size": int,
        "score_threshold": float,
        "nms_threshold": float,
    },
    "landmark": {
        "model_path": str,
        "input_size": int,
    },
    "tracker": {
        "max_age_s": float,
        "min_confidence": float,
    },
    "recognition": {
        "min_confidence": float,
    },
    "compositor": {
        "max_fps": float,
        "min_fps": float,
    },
}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base dict."""
    merged = base.copy()
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class Config:
    """Singleton configuration manager."""

    _instance = None
    _data = {}

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._data = copy.deepcopy(_DEFAULTS)
        return cls._instance

    def load(self, config_path=None):
        """Load configuration from a YAML file over the built-in defaults."""
        config_path = config_path or os.path.join(_CONFIG_DIR, "config.yaml")

        try:
            with open(config_path, "r") as f:
                file_data = yaml.safe_load(f) or {}
            logger.info("Loaded config from %s", config_path)
        except FileNotFoundError:
            logger.warning("Config file not found: %s, using defaults", config_path)
            file_data = {}

        self._data = _deep_merge(copy.deepcopy(_DEFAULTS), file_data)
        self._validate()
        return self

    def _validate(self):
        """Validate critical config fields against schema."""
        warnings = []
        for section_name, fields in _CONFIG_SCHEMA.items():
            section = self._data.get(section_name)
            if not isinstance(section, dict):
                warnings.append(f"Section '{section_name}' should be a dict, got {type(section).__name__}")
                continue
            for field_name, expected_type in fields.items():
                if field_name not in section:
                    continue
                value = section[field_name]
                # Allow int where float is expected
                if expected_type is float and isinstance(value, (int, float)):
                    continue
                if not isinstance(value, expected_type):
                    warnings.append(
                        f"{section_name}.{field_name}: expected {expected_type.__name__}, "
                        f"got {type(value).__name__} ({value!r})"
                    )

        for w in warnings:
            logger.warning("Config validation: %s", w)
        if not warnings:
            logger.debug("Config validation passed")
        return warnings

    def get(self, key_path: str, default=None):
        """Get nested config value using dot notation: 'camera.width'."""
        value = self._data
        for key in key_path.split("."):
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return value

    def get_section(self, section: str) -> dict:
        """Get an entire config section."""
        return self._data.get(section) or {}

    def resolve_path(self, path: str) -> str:
        """Resolve a config-relative path against the project root."""
        if not path or os.path.isabs(path):
            return path
        return os.path.join(_BASE_DIR, path)

    @property
    def camera(self) -> dict:
        return self.get_section("camera")

    @property
    def inference(self) -> dict:
        return self.get_section("inference")

    @property
    def palm_detector(self) -> dict:
        return self.get_section("palm_detector")

    @property
    def landmark(self) -> dict:
        return self.get_section("landmark")

    @property
    def tracker(self) -> dict:
        return self.get_section("tracker")

    @property
    def recognition(self) -> dict:
        return self.get_section("recognition")

    @property
    def motion(self) -> dict:
        return self.get_section("motion")

    @property
    def compositor(self) -> dict:
        return self.get_section("compositor")

    @property
    def logging(self) -> dict:
        return self.get_section("logging")

    @classmethod
    def reset(cls):
        """Reset singleton instance (for testing)."""
        cls._instance = None
        cls._data = {}
