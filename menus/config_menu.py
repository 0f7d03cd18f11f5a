import questionary
from config import CONFIG_SCHEMA, load_config, reset_to_defaults, update_config, validate_config
from utils.logger import log_error, log_info, log_success


def config_menu(config: dict) -> dict:
    """
    Display the configuration menu and handle user selections.
    Returns the potentially updated config dict.
    """
    while True:
        choice = questionary.select(
            "⚙️ Config Menu — What would you like to do?",
            choices=[
                "View current config",
                "Update a setting",
                "Reset to defaults",
                "Validate configuration",
                "Back"
            ]
        ).ask()

        if choice == "View current config":
            view_config(config)

        elif choice == "Update a setting":
            config = update_setting_menu(config)

        elif choice == "Reset to defaults":
            config = reset_config_menu(config)

        elif choice == "Validate configuration":
            validate_config_menu(config)

        elif choice in ("Back", None):
            break

    return config


def view_config(config: dict):
    """Display the current configuration in a readable format."""
    print("\n" + "=" * 50)
    print("📋 Current Configuration")
    print("=" * 50)

    categories = {
        "Spotify": ["spotify_client_id", "spotify_redirect_uri", "spotify_scopes"],
        "Timing": ["spotify_request_timeout", "spotify_expiry_skew", "spotify_handshake_ttl"],
        "Storage": ["session_store_path"],
        "Logging": ["log_level", "log_file"],
    }

    for category, keys in categories.items():
        print(f"\n{category}:")
        for key in keys:
            if key in config:
                value = config[key]
                if isinstance(value, list):
                    value = ", ".join(str(v) for v in value) or "(none)"
                elif value == "":
                    value = "(not set)"
                print(f"  {key}: {value}")

    print("\n" + "=" * 50)


def _coerce(key: str, raw: str):
    expected = CONFIG_SCHEMA[key].get("type")
    if expected is list:
        return [s for s in raw.replace(",", " ").split() if s]
    if expected == (int, float):
        return float(raw) if "." in raw else int(raw)
    return raw


def update_setting_menu(config: dict) -> dict:
    """Update one setting with schema validation."""
    key = questionary.select("Which setting?", choices=sorted(CONFIG_SCHEMA.keys()) + ["Cancel"]).ask()
    if key in (None, "Cancel"):
        return config

    raw = questionary.text(f"New value for {key}:").ask()
    if raw is None:
        return config

    try:
        value = _coerce(key, raw.strip())
    except ValueError:
        log_error(f"'{raw}' is not a number.")
        return config

    success, message = update_config(key, value)
    if success:
        log_success(message)
        return load_config()
    log_error(message)
    return config


def reset_config_menu(config: dict) -> dict:
    """Reset configuration to defaults with confirmation."""
    if not questionary.confirm("Reset all settings to defaults?", default=False).ask():
        return config

    success, message = reset_to_defaults()
    if success:
        log_success(message)
        return load_config()
    log_error(message)
    return config


def validate_config_menu(config: dict):
    """Validate the current configuration and report errors."""
    is_valid, errors = validate_config(config)
    if is_valid:
        log_success("Configuration is valid.")
        return
    log_error("Configuration has problems:")
    for error in errors:
        log_info(f"  - {error}")
