"""Pure transforms over raw Spotify payloads.

Nothing here performs I/O or caches results: every call recomputes from the
items it is given, and identical input order gives identical output.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Iterable, List, Optional, Tuple


@dataclass(frozen=True)
class GenreShare:
    name: str
    count: int
    percentage: float
    top_artists: Tuple[str, ...]


@dataclass(frozen=True)
class GroupRank:
    key: Hashable
    count: int
    average: float
    members: Tuple[Any, ...]


@dataclass(frozen=True)
class AlbumRank:
    album: Dict[str, Any]
    track_count: int
    top_tracks: Tuple[str, ...]
    average_popularity: float


def genre_distribution(artists: Iterable[Dict[str, Any]], *, top_artists: int = 5) -> List[GenreShare]:
    """Count genre occurrences across artists.

    Each (artist, genre) pair adds one occurrence, so an artist with three
    genres contributes three counts. Percentages are relative to the total
    number of occurrences, not the number of artists. Ties keep the order in
    which genres were first seen.
    """

    counts: Dict[str, int] = {}
    names: Dict[str, List[str]] = {}

    for artist in artists or []:
        if not isinstance(artist, dict):
            continue
        genres = artist.get("genres") or []
        if not isinstance(genres, list):
            continue
        artist_name = str(artist.get("name") or "")
        for genre in genres:
            if not isinstance(genre, str) or not genre:
                continue
            counts[genre] = counts.get(genre, 0) + 1
            names.setdefault(genre, []).append(artist_name)

    total = sum(counts.values())
    if total == 0:
        return []

    shares = [
        GenreShare(
            name=genre,
            count=count,
            percentage=count / total * 100,
            top_artists=tuple(names[genre][: max(0, int(top_artists))]),
        )
        for genre, count in counts.items()
    ]
    # sorted() is stable: equal counts stay in first-seen order.
    return sorted(shares, key=lambda s: -s.count)


def rank_groups(
    items: Iterable[Any],
    *,
    key: Callable[[Any], Optional[Hashable]],
    value: Callable[[Any], float],
    limit: Optional[int] = None,
) -> List[GroupRank]:
    """Group ``items`` by ``key`` and rank the groups.

    Groups are ordered by member count, then by the running average of
    ``value`` (both descending). Items whose key is None are skipped.
    ``limit`` applies after sorting.
    """

    order: List[Hashable] = []
    counts: Dict[Hashable, int] = {}
    averages: Dict[Hashable, float] = {}
    members: Dict[Hashable, List[Any]] = {}

    for item in items or []:
        group = key(item)
        if group is None:
            continue
        if group not in counts:
            order.append(group)
            counts[group] = 0
            averages[group] = 0.0
            members[group] = []

        counts[group] += 1
        averages[group] += (float(value(item)) - averages[group]) / counts[group]
        members[group].append(item)

    ranked = sorted(
        (GroupRank(key=g, count=counts[g], average=averages[g], members=tuple(members[g])) for g in order),
        key=lambda r: (-r.count, -r.average),
    )

    if limit is not None:
        ranked = ranked[: max(0, int(limit))]
    return ranked


def _album_id(track: Any) -> Optional[str]:
    if not isinstance(track, dict):
        return None
    album = track.get("album")
    if not isinstance(album, dict) or not album.get("id"):
        return None
    return str(album["id"])


def _popularity(track: Dict[str, Any]) -> float:
    value = track.get("popularity")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    return float(value)


def _normalize_album(track: Dict[str, Any]) -> Dict[str, Any]:
    album = track.get("album") or {}

    artists = album.get("artists")
    if not artists:
        first = (track.get("artists") or [{}])[0] or {}
        artists = [{"id": first.get("id") or "", "name": first.get("name") or "Unknown Artist"}]

    return {
        "id": album.get("id"),
        "name": album.get("name"),
        "images": album.get("images") or [],
        "artists": artists,
        "release_date": album.get("release_date") or "Unknown",
        "total_tracks": album.get("total_tracks") or 1,
        "album_type": album.get("album_type") or "album",
        "external_urls": album.get("external_urls") or track.get("external_urls") or {},
    }


def top_albums_from_tracks(tracks: Iterable[Dict[str, Any]], *, limit: int = 50) -> List[AlbumRank]:
    """Rank albums by how many of the given tracks they contain.

    Ties are broken by the albums' average track popularity.
    """

    ranked = rank_groups(tracks, key=_album_id, value=_popularity, limit=limit)
    return [
        AlbumRank(
            album=_normalize_album(group.members[0]),
            track_count=group.count,
            top_tracks=tuple(str(t.get("name") or "") for t in group.members[:3]),
            average_popularity=group.average,
        )
        for group in ranked
    ]
