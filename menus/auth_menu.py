import time
import webbrowser

import questionary

from spotify_insights import (
    AuthorizationDenied,
    ExchangeFailed,
    HandshakeError,
    InvalidCode,
    NoPendingHandshake,
    SessionState,
    SessionStateError,
    SpotifySession,
)
from spotify_insights.pkce import extract_code_from_redirect_url
from utils.logger import log_error, log_info, log_success, log_warning


def spotify_app_setup_instructions(*, redirect_uri: str = "http://127.0.0.1:8888/callback") -> str:
    """Return user-facing setup instructions for creating a Spotify Developer app."""

    redirect_uri = str(redirect_uri or "").strip() or "http://127.0.0.1:8888/callback"
    return (
        "Spotify app setup:\n"
        "1) Go to https://developer.spotify.com/dashboard\n"
        "2) Create an app (or select an existing app)\n"
        f"3) Add this Redirect URI in the app settings: {redirect_uri}\n"
        "4) Copy the Client ID into config.json as spotify_client_id (or export SPOTIFY_CLIENT_ID)\n\n"
        "Notes:\n"
        "- This project uses Authorization Code + PKCE (no client secret required).\n"
        "- Redirect URI must match *exactly* what you configure in the Spotify dashboard.\n"
    )


def session_status(session: SpotifySession) -> str:
    credential = session.cached_credential()
    if credential is None:
        return f"Session: {session.state.value} | no usable token"
    exp_str = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(float(credential.expires_at)))
    refresh = "YES" if credential.refresh_token else "NO"
    return f"Session: {session.state.value} | Refresh token: {refresh} | Expires at: {exp_str}"


def refresh_login_state(session: SpotifySession) -> bool:
    """Refresh an expired saved login, or clear it when it cannot be refreshed.

    Returns True when a usable access token is available afterwards.
    """
    was_authenticated = session.state is SessionState.AUTHENTICATED
    if session.current_credential() is not None:
        return True
    if was_authenticated:
        log_warning("Your Spotify session has expired. Log in again.")
    return False


def _read_callback(pasted: str) -> tuple[str, str]:
    """Return (code, error) from a pasted redirect URL or a bare code."""
    if "http://" in pasted or "https://" in pasted:
        parsed = extract_code_from_redirect_url(pasted)
        return parsed.get("code", ""), parsed.get("error", "")
    return pasted, ""


def login(session: SpotifySession) -> bool:
    """Run the PKCE flow where the user pastes the redirect URL back into the CLI."""
    try:
        request = session.initiate()
    except SessionStateError as e:
        log_warning(str(e))
        return False

    log_info("\n" + "=" * 72)
    log_info("SPOTIFY LOGIN")
    log_info("=" * 72)
    log_info("1) A browser login will open (or you can copy/paste the URL).")
    log_info("2) After approving, Spotify will redirect you to your redirect_uri.")
    log_info("3) Copy the FULL redirect URL from the browser and paste it back here.")
    log_info("")
    log_info(f"Authorize URL:\n{request.url}")
    log_info("=" * 72)

    if questionary.confirm("Open the authorize URL in your default browser?", default=True).ask():
        if not webbrowser.open(request.url):
            log_warning("Could not open a browser; copy the URL above instead.")

    pasted = (questionary.text("Paste the full redirect URL (preferred) OR just the code=... value:").ask() or "").strip()
    if not pasted:
        log_warning("No redirect URL / code provided. Cancelling login.")
        session.logout()
        return False

    code, error = _read_callback(pasted)
    try:
        credential = session.complete_handshake(code, error or None)
    except AuthorizationDenied as e:
        log_error(f"Spotify returned an error: {e.reason}")
        return False
    except InvalidCode:
        log_error("Could not find a valid authorization code. Paste the full redirect URL that contains ?code=...")
        return False
    except NoPendingHandshake:
        log_error("This login attempt is no longer active. Start a new login.")
        return False
    except ExchangeFailed as e:
        hint = " (temporary problem, try again)" if e.transient else ""
        log_error(f"Spotify login failed{hint}: {e}")
        return False
    except HandshakeError as e:
        log_error(f"Spotify login failed: {e}")
        return False

    exp_str = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(float(credential.expires_at)))
    log_success(f"Spotify login successful. Token expires at: {exp_str}")
    return True


def logout(session: SpotifySession) -> None:
    session.logout()
    log_info("Logged out of Spotify.")
