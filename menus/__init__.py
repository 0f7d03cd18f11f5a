# Menus module exports
from menus.auth_menu import login, logout, refresh_login_state, session_status, spotify_app_setup_instructions
from menus.config_menu import config_menu
from menus.insights_menu import insights_menu
from menus.main_menu import main_menu

__all__ = [
    "config_menu",
    "insights_menu",
    "login",
    "logout",
    "main_menu",
    "refresh_login_state",
    "session_status",
    "spotify_app_setup_instructions",
]
