import json
from ut.common.logger import log
from ut.common.setup import PATHS

#region === Helpers and Paths ===

SETTINGS_PATH = PATHS.data / "settings.json"

# Default values for every setting, alongside the type each one must have.
_SETTINGS_DEFAULTS = {
    "storage_key": "timers_state",
    "tick_interval_ms": 1000,
    "strict_transitions": True,
    "log_level": "INFO",
}

def _valid(key, value):
    default = _SETTINGS_DEFAULTS[key]
    if isinstance(default, bool):
        return isinstance(value, bool)
    if isinstance(default, int):
        return isinstance(value, int) and not isinstance(value, bool) and value > 0
    return isinstance(value, type(default)) and bool(value)

# Helper to return a truly fresh, default settings dict.
def build_default_settings():
    return dict(_SETTINGS_DEFAULTS)

#endregion === Helpers and Paths ===

#region === Loading Settings ===

# Loads settings from SETTINGS_PATH, defaulting any key that's missing or has the wrong type.
def load_settings():
    try:
        if not SETTINGS_PATH.exists():
            log.info("No existing settings.json found, using default settings.")
            return build_default_settings()

        with open(SETTINGS_PATH, "r", encoding="utf-8") as f:
            stored = json.load(f)
        if not isinstance(stored, dict):
            raise TypeError(f"settings.json must hold an object, got {type(stored).__name__}")

        settings = {}
        defaulted_values = set()
        for key, default in _SETTINGS_DEFAULTS.items():
            if key in stored and _valid(key, stored[key]):
                settings[key] = stored[key]
            else:
                defaulted_values.add(key)
                settings[key] = default

        if defaulted_values:
            log.warning(f"Loaded settings from '{SETTINGS_PATH}', but with missing or invalid values that were defaulted: {', '.join(sorted(defaulted_values))}")
        else:
            log.info(f"Successfully loaded settings from '{SETTINGS_PATH}'.")
        return settings
    # Fall back to defaults in case of error, but warn in log
    except (json.JSONDecodeError, OSError, TypeError):
        log.warning("Ran into an error while trying to load settings.json, falling back to default settings.", exc_info=True)
        return build_default_settings()

#endregion === Loading Settings ===
