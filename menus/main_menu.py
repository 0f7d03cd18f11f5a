import questionary


def main_menu(logged_in: bool) -> str:
    choices = ["Insights Menu", "Log out"] if logged_in else ["Log in"]
    choices += ["Session status", "Config Menu", "Exit"]
    return questionary.select("🎧 Spotify Insights — Main Menu", choices=choices).ask() or "Exit"
