"""Personal command-line client for an AniList anime list."""

from anilist_cli.errors import (
    AmbiguousInput,
    AniListCliError,
    AuthError,
    NoMatch,
    NoSelection,
    PartialSyncError,
    PersistError,
    TransportError,
    ValidationError,
)
from anilist_cli.models import Entry, ListCache, MediaTitle, UserConfig

__version__ = "0.1.0"

__all__ = [
    "AmbiguousInput",
    "AniListCliError",
    "AuthError",
    "Entry",
    "ListCache",
    "MediaTitle",
    "NoMatch",
    "NoSelection",
    "PartialSyncError",
    "PersistError",
    "TransportError",
    "UserConfig",
    "ValidationError",
    "__version__",
]
