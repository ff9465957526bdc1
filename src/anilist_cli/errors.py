"""Error hierarchy for list loading, selection and entry updates."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from anilist_cli.models import Entry, ListCache


class AniListCliError(Exception):
    """Base class for errors reported to the user.

    ``action`` names what failed ("update entry") and ``next_step`` tells
    the user how to recover; both feed the actionable message printed by
    the CLI.
    """

    action = "complete the command"
    next_step = "re-run the command"

    def __init__(self, message: str, *, next_step: str | None = None) -> None:
        super().__init__(message)
        if next_step is not None:
            self.next_step = next_step


class AuthError(AniListCliError):
    action = "authenticate with AniList"
    next_step = "run `al auth` to log in again"


class TransportError(AniListCliError):
    """A remote call failed. Local state is left unchanged."""

    action = "reach the remote service"
    next_step = "check your connection and re-run the command"

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        next_step: str | None = None,
    ) -> None:
        super().__init__(message, next_step=next_step)
        self.status_code = status_code


class PersistError(AniListCliError):
    """Writing the list cache failed after a successful remote read.

    ``cache`` holds the freshly fetched data, still usable for the current
    invocation.
    """

    action = "save the list cache"
    next_step = "check permissions of the cache directory, then run with --refresh"

    def __init__(self, message: str, *, cache: ListCache | None = None) -> None:
        super().__init__(message)
        self.cache = cache


class PartialSyncError(AniListCliError):
    """The remote update succeeded but the local cache could not be written."""

    action = "save the updated entry locally"
    next_step = "the change is saved on AniList; run with --refresh to resync the cache"

    def __init__(self, message: str, *, entry: Entry) -> None:
        super().__init__(message)
        self.entry = entry


class SelectionError(AniListCliError):
    action = "select an entry"
    next_step = "run `al sel <title>` to choose an entry"


class NoMatch(SelectionError):
    pass


class AmbiguousInput(SelectionError):
    """More than one entry matched; the caller must disambiguate."""

    def __init__(self, message: str, *, candidates: list[Entry]) -> None:
        super().__init__(message)
        self.candidates = candidates


class NoSelection(SelectionError):
    pass


class ValidationError(AniListCliError):
    action = "apply the value"
    next_step = "pass a value within the valid range"


__all__ = [
    "AmbiguousInput",
    "AniListCliError",
    "AuthError",
    "NoMatch",
    "NoSelection",
    "PartialSyncError",
    "PersistError",
    "SelectionError",
    "TransportError",
    "ValidationError",
]
