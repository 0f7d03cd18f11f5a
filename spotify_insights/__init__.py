"""Spotify listening insights over an OAuth PKCE session.

The session owns the credential, the gateway borrows it for every API call,
and the aggregation functions derive views from the gateway's payloads.

Integration points:
- menus/ (interactive login + insight screens)
- config.py (client id, redirect URI, scopes, timeouts)
"""

from .aggregation import AlbumRank, GenreShare, GroupRank, genre_distribution, rank_groups, top_albums_from_tracks
from .api import SpotifyInsightsApi
from .errors import (
    AuthorizationDenied,
    ChallengeError,
    ConfigurationError,
    ExchangeFailed,
    HandshakeError,
    InvalidCode,
    NoPendingHandshake,
    SessionStateError,
    SpotifyInsightsError,
    UpstreamError,
    UpstreamErrorKind,
)
from .gateway import SpotifyGateway
from .pkce import ChallengeGenerator, PKCEPair, create_challenge
from .session import AuthorizationRequest, SessionState, SpotifySession
from .storage import JsonFileStore, MemoryStore
from .token_store import Credential, TokenStore

__all__ = [
    "AlbumRank",
    "AuthorizationDenied",
    "AuthorizationRequest",
    "ChallengeError",
    "ChallengeGenerator",
    "ConfigurationError",
    "Credential",
    "ExchangeFailed",
    "GenreShare",
    "GroupRank",
    "HandshakeError",
    "InvalidCode",
    "JsonFileStore",
    "MemoryStore",
    "NoPendingHandshake",
    "PKCEPair",
    "SessionState",
    "SessionStateError",
    "SpotifyGateway",
    "SpotifyInsightsApi",
    "SpotifyInsightsError",
    "SpotifySession",
    "TokenStore",
    "UpstreamError",
    "UpstreamErrorKind",
    "create_challenge",
    "genre_distribution",
    "rank_groups",
    "top_albums_from_tracks",
]
