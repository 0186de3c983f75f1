"""HTTP clients for TMDB, list feeds and remote activity logs."""

from curatarr.clients.activity import ActivityClient
from curatarr.clients.base import BaseClient
from curatarr.clients.stevenlu import StevenLuClient, StevenLuMovie
from curatarr.clients.tmdb import TMDBClient, TMDBResult

__all__ = [
    "ActivityClient",
    "BaseClient",
    "StevenLuClient",
    "StevenLuMovie",
    "TMDBClient",
    "TMDBResult",
]
