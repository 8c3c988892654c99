# Configuration loading (log directory, timestamp column, debug checks)
import json

from .logger import get_logger

logger = get_logger("Config")

DEFAULT_LOG_DIR = "logs/datalogs"
DEFAULT_TIMESTAMP_LABEL = "Time"
DEFAULT_TIMESTAMP_PRECISION = 3

DEFAULTS = {
    "log_dir": DEFAULT_LOG_DIR,
    "timestamp_label": DEFAULT_TIMESTAMP_LABEL,
    "timestamp_precision": DEFAULT_TIMESTAMP_PRECISION,
    "debug_checks": False,
}

def load_settings_file(file_path="datalogger.json"):
    """Load raw settings from a JSON file. Returns {} if it is missing or unreadable."""
    try:
        with open(file_path, "r") as f:
            data = json.load(f)
    except FileNotFoundError:
        logger.debug("SettingsFileMissing", {"path": file_path})
        return {}
    except (IOError, json.JSONDecodeError) as e:
        logger.warning("SettingsLoadFailed", {"path": file_path, "error": str(e)})
        return {}

    if not isinstance(data, dict):
        logger.warning("SettingsLoadFailed", {"path": file_path, "error": "top level is not an object"})
        return {}
    return data

def _checked(key, value):
    """Return a usable value for one setting, or its default if the file gave a bad one."""
    try:
        if key == "timestamp_precision":
            if isinstance(value, bool):
                raise TypeError("expected an integer, got a bool")
            value = int(value)
            if value < 0:
                raise ValueError("must not be negative")
        elif key in ("log_dir", "timestamp_label"):
            if not isinstance(value, str) or not value:
                raise TypeError("expected a non-empty string")
    except (TypeError, ValueError) as e:
        logger.warning("SettingsLoadFailed", {"key": key, "value": repr(value), "error": str(e)})
        return DEFAULTS[key]
    return value

class Settings:
    """A class to hold the datalogger configuration."""
    def __init__(self, log_dir=DEFAULT_LOG_DIR, timestamp_label=DEFAULT_TIMESTAMP_LABEL,
                 timestamp_precision=DEFAULT_TIMESTAMP_PRECISION, debug_checks=False):
        self.log_dir = log_dir
        self.timestamp_label = timestamp_label
        self.timestamp_precision = int(timestamp_precision)
        self.debug_checks = bool(debug_checks)

    @classmethod
    def from_dict(cls, data):
        unknown = sorted(set(data) - set(DEFAULTS))
        if unknown:
            logger.warning("UnknownSettingsIgnored", {"keys": unknown})
        values = dict(DEFAULTS)
        for key in DEFAULTS:
            if key in data:
                values[key] = _checked(key, data[key])
        return cls(**values)

    def __repr__(self):
        return (f"Settings(log_dir={self.log_dir!r}, timestamp_label={self.timestamp_label!r}, "
                f"timestamp_precision={self.timestamp_precision}, debug_checks={self.debug_checks})")

def load_settings(file_path="datalogger.json"):
    """Load all settings, falling back to defaults for anything not in the file."""
    return Settings.from_dict(load_settings_file(file_path))
