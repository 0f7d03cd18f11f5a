import json
import sys

from config import load_config, validate_config
from menus.auth_menu import login, logout, refresh_login_state, session_status, spotify_app_setup_instructions
from menus.config_menu import config_menu
from menus.insights_menu import insights_menu
from menus.main_menu import main_menu
from spotify_insights import ConfigurationError, JsonFileStore, SpotifyGateway, SpotifyInsightsApi, SpotifySession
from utils.logger import log_error, log_info, log_warning, setup_logging


def build_services(config: dict):
    """Wire the session, gateway and API helpers from config."""
    session = SpotifySession(config, store=JsonFileStore(config["session_store_path"]))
    gateway = SpotifyGateway(session)
    return session, gateway, SpotifyInsightsApi(gateway)


def main() -> int:
    try:
        config = load_config()
    except json.JSONDecodeError as e:
        setup_logging()
        log_error(f"Config file contains invalid JSON: {e}")
        return 1
    except (OSError, ValueError) as e:
        setup_logging()
        log_error(f"Error loading config: {e}")
        return 1

    setup_logging(config.get("log_level", "INFO"), config.get("log_file") or None)

    is_valid, errors = validate_config(config)
    if not is_valid:
        for error in errors:
            log_warning(error)

    try:
        session, gateway, api = build_services(config)
    except ConfigurationError as e:
        log_error(str(e))
        log_info(spotify_app_setup_instructions(redirect_uri=config.get("spotify_redirect_uri")))
        return 1

    try:
        while True:
            choice = main_menu(refresh_login_state(session))

            if choice == "Log in":
                login(session)

            elif choice == "Insights Menu":
                insights_menu(session, api)

            elif choice == "Log out":
                logout(session)

            elif choice == "Session status":
                log_info(session_status(session))

            elif choice == "Config Menu":
                config = config_menu(config)
                gateway.close()
                session.close()
                try:
                    session, gateway, api = build_services(config)
                except ConfigurationError as e:
                    log_error(str(e))
                    return 1

            elif choice == "Exit":
                log_info("Exiting program...")
                break

            else:
                log_error("Invalid choice.")
    finally:
        gateway.close()
        session.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
