import json
import os
from typing import Any, Dict

CONFIG_PATH = "config.json"

# Environment variables override values from config.json.
ENV_OVERRIDES = {
    "SPOTIFY_CLIENT_ID": "spotify_client_id",
    "SPOTIFY_REDIRECT_URI": "spotify_redirect_uri",
    "SPOTIFY_INSIGHTS_LOG_LEVEL": "log_level",
}

# Default configuration values
DEFAULT_CONFIG = {
    # Spotify Web API (OAuth PKCE)
    "spotify_client_id": "",
    "spotify_redirect_uri": "http://127.0.0.1:8888/callback",
    "spotify_scopes": [
        "user-top-read",
        "user-read-private",
        "user-read-email",
        "user-library-read",
        "playlist-read-private",
        "playlist-read-collaborative",
    ],
    "spotify_request_timeout": 30,
    "spotify_expiry_skew": 60,
    "spotify_handshake_ttl": 600,

    # Session persistence
    "session_store_path": "data/spotify_session.json",

    # Logging
    "log_level": "INFO",
    "log_file": "",
}

# Validation rules for config fields
CONFIG_SCHEMA = {
    "spotify_client_id": {"type": str, "required": True},
    "spotify_redirect_uri": {"type": str, "required": True, "pattern": ("http://", "https://")},
    "spotify_scopes": {"type": list, "required": False, "element_type": str},
    "spotify_request_timeout": {"type": (int, float), "required": False, "min": 1, "max": 120},
    "spotify_expiry_skew": {"type": (int, float), "required": False, "min": 0, "max": 600},
    "spotify_handshake_ttl": {"type": (int, float), "required": False, "min": 0, "max": 3600},

    "session_store_path": {"type": str, "required": False},

    "log_level": {"type": str, "required": False, "choices": ["DEBUG", "INFO", "WARNING", "ERROR"]},
    "log_file": {"type": str, "required": False},
}


def apply_env_overrides(config: Dict[str, Any], environ=None) -> Dict[str, Any]:
    """Overlay non-empty environment variables from ENV_OVERRIDES onto config."""
    environ = os.environ if environ is None else environ
    for env_name, key in ENV_OVERRIDES.items():
        value = str(environ.get(env_name, "") or "").strip()
        if value:
            config[key] = value
    return config


def load_config(path: str = None) -> Dict[str, Any]:
    """Load configuration from file, applying defaults and environment overrides.

    A missing file is not an error as long as the environment supplies what
    the defaults lack; validate_config() reports anything still missing.
    """
    path = path or CONFIG_PATH
    config: Dict[str, Any] = {}

    if os.path.exists(path):
        with open(path, "r", encoding="utf-8") as f:
            config = json.load(f)
        if not isinstance(config, dict):
            raise ValueError(f"Config file {path} must contain a JSON object.")

    # Apply defaults for missing fields
    for key, value in DEFAULT_CONFIG.items():
        if key not in config:
            config[key] = list(value) if isinstance(value, list) else value

    return apply_env_overrides(config)


def save_config(config: Dict[str, Any], path: str = None) -> bool:
    """Save configuration to file."""
    try:
        with open(path or CONFIG_PATH, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=2)
        return True
    except OSError as e:
        raise IOError(f"Failed to save config: {e}") from e


def validate_config(config: Dict[str, Any]) -> tuple[bool, list[str]]:
    """
    Validate configuration against schema.
    Returns (is_valid, list_of_errors).
    """
    errors = []

    for key, rules in CONFIG_SCHEMA.items():
        # Check required fields
        if rules.get("required", False) and not config.get(key):
            errors.append(f"Missing required field: {key}")
            continue

        if key not in config:
            continue

        value = config[key]

        # Type check (bool is an int subclass; never accept it for numbers)
        expected_type = rules.get("type")
        if expected_type and (not isinstance(value, expected_type) or (isinstance(value, bool) and expected_type is not bool)):
            type_names = expected_type.__name__ if not isinstance(expected_type, tuple) else "/".join(t.__name__ for t in expected_type)
            errors.append(f"Field '{key}' must be {type_names}, got {type(value).__name__}")
            continue

        # List element type check (when schema uses: {"type": list, "element_type": ...})
        if isinstance(value, list) and "element_type" in rules:
            elem_type = rules["element_type"]
            bad_elems = [v for v in value if not isinstance(v, elem_type)]
            if bad_elems:
                errors.append(
                    f"Field '{key}' must be a list of {elem_type.__name__}, got invalid elements: {bad_elems}"
                )
                continue

        # Prefix check for URLs
        if "pattern" in rules and isinstance(value, str) and value and not value.startswith(rules["pattern"]):
            errors.append(f"Field '{key}' must start with one of {list(rules['pattern'])}, got '{value}'")

        # Choices check
        if "choices" in rules and value not in rules["choices"]:
            errors.append(f"Field '{key}' must be one of {rules['choices']}, got '{value}'")

        # Range check for numeric values
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            if "min" in rules and value < rules["min"]:
                errors.append(f"Field '{key}' must be >= {rules['min']}, got {value}")
            if "max" in rules and value > rules["max"]:
                errors.append(f"Field '{key}' must be <= {rules['max']}, got {value}")

    return len(errors) == 0, errors


def update_config(key: str, value: Any, path: str = None) -> tuple[bool, str]:
    """
    Update a single config field with validation.
    Returns (success, message).
    """
    config = load_config(path)

    # Check if key is valid
    if key not in CONFIG_SCHEMA:
        return False, f"Unknown config key: {key}"

    # Create temporary config with new value
    test_config = config.copy()
    test_config[key] = value

    # Validate the change
    is_valid, errors = validate_config(test_config)
    if not is_valid:
        return False, f"Validation failed: {', '.join(errors)}"

    # Save the updated config
    config[key] = value
    save_config(config, path)

    return True, f"Updated '{key}' to '{value}'"


def reset_to_defaults(path: str = None) -> tuple[bool, str]:
    """Reset configuration to default values."""
    try:
        save_config(json.loads(json.dumps(DEFAULT_CONFIG)), path)
        return True, "Configuration reset to defaults"
    except IOError as e:
        return False, f"Failed to reset config: {e}"


def get_config_value(key: str, default: Any = None, path: str = None) -> Any:
    """Get a single config value with optional default."""
    try:
        config = load_config(path)
    except (OSError, ValueError):
        return default
    return config.get(key, default)
