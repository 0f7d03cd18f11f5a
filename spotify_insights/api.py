import logging
from typing import Any, Dict, List

from .aggregation import AlbumRank, GenreShare, genre_distribution, top_albums_from_tracks
from .gateway import SpotifyGateway
from .validation import TIME_RANGES, validate_limit, validate_offset, validate_time_range

logger = logging.getLogger(__name__)

# Spotify caps personalization endpoints at 50 items per page.
TOP_ITEMS_PAGE_SIZE = 50


def _check_time_range(time_range: str) -> None:
    if not validate_time_range(time_range):
        raise ValueError(f"Invalid time range {time_range!r}; expected one of {', '.join(TIME_RANGES)}")


def _check_page(limit: int, offset: int = 0) -> None:
    if not validate_limit(limit):
        raise ValueError("Limit must be an integer between 1 and 50")
    if not validate_offset(offset):
        raise ValueError("Offset must be a non-negative integer")


class SpotifyInsightsApi:
    """Read-only Spotify Web API helpers built on the authenticated gateway.

    Inputs are validated before any request is made. Upstream failures
    propagate as UpstreamError unchanged.
    """

    def __init__(self, gateway: SpotifyGateway):
        self.gateway = gateway

    # -----------------
    # Raw endpoints
    # -----------------

    def get_current_user(self) -> Dict[str, Any]:
        return self.gateway.request("/me")

    def get_top_artists(self, time_range: str = "medium_term", limit: int = 50) -> Dict[str, Any]:
        _check_time_range(time_range)
        _check_page(limit)
        return self.gateway.request("/me/top/artists", {"time_range": time_range, "limit": limit})

    def get_top_tracks(self, time_range: str = "medium_term", limit: int = 50) -> Dict[str, Any]:
        _check_time_range(time_range)
        _check_page(limit)
        return self.gateway.request("/me/top/tracks", {"time_range": time_range, "limit": limit})

    def get_user_playlists(self, limit: int = 50, offset: int = 0) -> Dict[str, Any]:
        _check_page(limit, offset)
        return self.gateway.request("/me/playlists", {"limit": limit, "offset": offset})

    def get_user_saved_albums(self, limit: int = 50, offset: int = 0) -> Dict[str, Any]:
        _check_page(limit, offset)
        return self.gateway.request("/me/albums", {"limit": limit, "offset": offset})

    # -----------------
    # Insights
    # -----------------

    @staticmethod
    def _items(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
        items = payload.get("items") or []
        if not isinstance(items, list):
            return []
        return [x for x in items if isinstance(x, dict)]

    def get_top_genres(self, time_range: str = "medium_term") -> List[GenreShare]:
        """Genre distribution across the user's top 50 artists."""

        logger.info("Calculating top genres from user artists (%s)", time_range)
        artists = self._items(self.get_top_artists(time_range, TOP_ITEMS_PAGE_SIZE))
        genres = genre_distribution(artists)
        logger.info(
            "Genre analysis completed: %d genres, top genre %s",
            len(genres),
            genres[0].name if genres else None,
        )
        return genres

    def get_top_albums_from_tracks(self, time_range: str = "medium_term", limit: int = 50) -> List[AlbumRank]:
        """Albums ranked by how many of the user's top 50 tracks they hold."""

        _check_page(limit)
        logger.info("Calculating top albums from user tracks (%s, limit %d)", time_range, limit)
        tracks = self._items(self.get_top_tracks(time_range, TOP_ITEMS_PAGE_SIZE))
        albums = top_albums_from_tracks(tracks, limit=limit)
        logger.info("Top albums calculated: %d albums", len(albums))
        return albums
