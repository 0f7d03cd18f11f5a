from typing import Any, Dict, Optional

import questionary

from spotify_insights import SpotifyInsightsApi, SpotifySession, UpstreamError, UpstreamErrorKind
from spotify_insights.validation import TIME_RANGES, sanitize_spotify_url
from utils.formatting import format_duration, format_number, format_percentage, get_time_range_label
from utils.logger import log_error, log_info, log_warning


def _ask_time_range() -> str:
    return questionary.select(
        "Which time range?",
        choices=[questionary.Choice(title=get_time_range_label(r), value=r) for r in TIME_RANGES],
        default="medium_term",
    ).ask() or "medium_term"


def spotify_link(item: Dict[str, Any]) -> Optional[str]:
    """The item's open.spotify.com link, or None if it is missing or not a Spotify https URL."""
    return sanitize_spotify_url((item.get("external_urls") or {}).get("spotify"))


def _with_link(line: str, item: Dict[str, Any]) -> str:
    link = spotify_link(item)
    return f"{line}\n    {link}" if link else line


def _report_upstream_error(session: SpotifySession, error: UpstreamError) -> None:
    if error.kind is UpstreamErrorKind.UNAUTHORIZED:
        session.logout()
        log_warning("Your Spotify session has ended. Log in again.")
    elif error.kind is UpstreamErrorKind.FORBIDDEN:
        log_error("Spotify refused access; the app may lack the required scopes.")
    elif error.kind is UpstreamErrorKind.RATE_LIMITED:
        wait = f"{error.retry_after:.0f} seconds" if error.retry_after is not None else "a moment"
        log_warning(f"Spotify rate limit reached. Try again in {wait}.")
    elif error.kind is UpstreamErrorKind.MALFORMED:
        log_error("Spotify returned an unexpected response.")
    else:
        log_error("Failed to fetch data from Spotify. Check your connection and try again.")


def show_profile(api: SpotifyInsightsApi) -> None:
    user = api.get_current_user()
    followers = (user.get("followers") or {}).get("total") or 0
    log_info(f"Signed in as: {user.get('display_name') or user.get('id')}")
    log_info(f"Country: {user.get('country') or '-'} | Plan: {user.get('product') or '-'} | Followers: {format_number(followers)}")


def show_top_artists(api: SpotifyInsightsApi, time_range: str) -> None:
    artists = api.get_top_artists(time_range, 20).get("items") or []
    log_info(f"\nTop artists — {get_time_range_label(time_range)}")
    for i, artist in enumerate(artists, 1):
        followers = (artist.get("followers") or {}).get("total") or 0
        genres = ", ".join((artist.get("genres") or [])[:3]) or "-"
        log_info(_with_link(f"{i:>2}. {artist.get('name')} ({format_number(followers)} followers) [{genres}]", artist))


def show_top_tracks(api: SpotifyInsightsApi, time_range: str) -> None:
    tracks = api.get_top_tracks(time_range, 20).get("items") or []
    log_info(f"\nTop tracks — {get_time_range_label(time_range)}")
    for i, track in enumerate(tracks, 1):
        artists = ", ".join(a.get("name") or "" for a in track.get("artists") or [])
        log_info(_with_link(f"{i:>2}. {track.get('name')} — {artists} ({format_duration(track.get('duration_ms') or 0)})", track))


def show_top_genres(api: SpotifyInsightsApi, time_range: str) -> None:
    genres = api.get_top_genres(time_range)
    if not genres:
        log_info("No genres found for your top artists.")
        return

    log_info(f"\nTop genres — {get_time_range_label(time_range)}")
    for share in genres[:15]:
        log_info(f"{share.name:<30} {share.count:>3}  {format_percentage(share.percentage):>6}  ({', '.join(share.top_artists)})")


def show_top_albums(api: SpotifyInsightsApi, time_range: str) -> None:
    albums = api.get_top_albums_from_tracks(time_range, 10)
    if not albums:
        log_info("No albums found in your top tracks.")
        return

    log_info(f"\nTop albums — {get_time_range_label(time_range)}")
    for i, rank in enumerate(albums, 1):
        artist = ", ".join(a.get("name") or "" for a in rank.album.get("artists") or [])
        line = (
            f"{i:>2}. {rank.album.get('name')} — {artist} "
            f"({rank.track_count} tracks, avg popularity {rank.average_popularity:.0f})"
        )
        log_info(_with_link(line, rank.album))


def show_playlists(api: SpotifyInsightsApi) -> None:
    playlists = api.get_user_playlists(50, 0).get("items") or []
    if not playlists:
        log_info("No playlists found for this account.")
        return
    for p in playlists:
        total = (p.get("tracks") or {}).get("total")
        owner = (p.get("owner") or {}).get("display_name") or "?"
        log_info(_with_link(f"- {p.get('name')} ({total} tracks, by {owner})", p))


def insights_menu(session: SpotifySession, api: SpotifyInsightsApi) -> None:
    while True:
        choice = questionary.select(
            "📊 Insights — What would you like to see?",
            choices=[
                "Profile",
                "Top artists",
                "Top tracks",
                "Top genres",
                "Top albums",
                "Playlists",
                "Back",
            ],
        ).ask()

        if choice in (None, "Back"):
            break

        try:
            if choice == "Profile":
                show_profile(api)
            elif choice == "Playlists":
                show_playlists(api)
            else:
                time_range = _ask_time_range()
                if choice == "Top artists":
                    show_top_artists(api, time_range)
                elif choice == "Top tracks":
                    show_top_tracks(api, time_range)
                elif choice == "Top genres":
                    show_top_genres(api, time_range)
                elif choice == "Top albums":
                    show_top_albums(api, time_range)
        except UpstreamError as e:
            _report_upstream_error(session, e)
            if e.kind is UpstreamErrorKind.UNAUTHORIZED:
                break
