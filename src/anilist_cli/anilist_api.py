"""AniList GraphQL client, queries, and response parsing.

All operations go through a single synchronous ``httpx.Client``. Failures
are mapped onto the application error types: ``AuthError`` for missing or
rejected credentials, ``TransportError`` for everything else. Nothing is
retried.
"""

from __future__ import annotations

__all__ = [
    # Constants
    "ANILIST_API_URL",
    "ANILIST_AUTHORIZE_URL",
    # Client
    "AniListClient",
    # Auth
    "build_authorize_url",
    # Parsing
    "parse_airing_schedule",
    "parse_list_collection",
    "parse_list_entry",
    "parse_saved_entry",
]

import logging
from typing import Any
from urllib.parse import urlencode

import httpx

from anilist_cli.errors import AuthError, TransportError
from anilist_cli.models import (
    ENTRY_STATUSES,
    SCORE_MAX,
    SCORE_MIN,
    STATUS_PLANNING,
    AiringInfo,
    AiringSchedule,
    Entry,
    MediaTitle,
    SavedEntry,
    Viewer,
)

logger = logging.getLogger(__name__)

# ============================================================================
# Constants
# ============================================================================

ANILIST_API_URL = "https://graphql.anilist.co"
ANILIST_AUTHORIZE_URL = "https://anilist.co/api/v2/oauth/authorize"
ANILIST_REQUEST_TIMEOUT = 15  # seconds
ANILIST_USER_AGENT = "anilist-cli/1.0"

QUERY_VIEWER = """
query {
    Viewer {
        id
        name
    }
}
"""

QUERY_USER_ANIME_LIST = """
query ($userId: Int) {
    MediaListCollection (userId: $userId, type: ANIME) {
        lists {
            name
            isCustomList
            entries {
                id
                status
                score(format: POINT_10)
                progress
                updatedAt
                media {
                    id
                    idMal
                    title {
                        romaji
                        english
                        native
                        userPreferred
                    }
                    episodes
                    nextAiringEpisode {
                        airingAt
                        episode
                    }
                }
            }
        }
    }
}
"""

MUTATION_SAVE_ENTRY = """
mutation ($listId: Int, $mediaId: Int, $status: MediaListStatus, $progress: Int, $score: Float) {
    SaveMediaListEntry (id: $listId, mediaId: $mediaId, status: $status, progress: $progress, score: $score) {
        id
        status
        progress
        score(format: POINT_10)
        updatedAt
    }
}
"""

QUERY_AIRING_SCHEDULE = """
query ($mediaId: Int, $episode: Int) {
    AiringSchedule (mediaId: $mediaId, episode: $episode) {
        airingAt
        timeUntilAiring
        episode
    }
}
"""

_AUTH_ERROR_MARKERS = ("invalid token", "unauthorized", "unauthenticated", "login required")


def build_authorize_url(client_id: str) -> str:
    """Build the implicit-grant authorization URL for an API client id."""
    query = urlencode({"client_id": client_id, "response_type": "token"})
    return f"{ANILIST_AUTHORIZE_URL}?{query}"


# ============================================================================
# Response Parsing
# ============================================================================


def _int_or_zero(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(round(value))
    return 0


def _str_or_empty(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _clamp_score(value: Any) -> int:
    return max(SCORE_MIN, min(_int_or_zero(value), SCORE_MAX))


def parse_list_entry(item: Any) -> Entry | None:
    """Parse one MediaList object. Returns None if essential fields are missing."""
    if not isinstance(item, dict):
        return None
    media = item.get("media")
    if not isinstance(media, dict):
        return None
    list_id = _int_or_zero(item.get("id"))
    media_id = _int_or_zero(media.get("id"))
    if not list_id or not media_id:
        return None

    raw_title = media.get("title") or {}
    if not isinstance(raw_title, dict):
        raw_title = {}
    title = MediaTitle(
        romaji=_str_or_empty(raw_title.get("romaji")),
        english=_str_or_empty(raw_title.get("english")),
        native=_str_or_empty(raw_title.get("native")),
        user_preferred=_str_or_empty(raw_title.get("userPreferred")),
    )

    status = item.get("status")
    if status not in ENTRY_STATUSES:
        logger.warning("Entry %d has unknown status %r, treating as planning", list_id, status)
        status = STATUS_PLANNING

    next_airing = None
    raw_airing = media.get("nextAiringEpisode")
    if isinstance(raw_airing, dict):
        next_airing = AiringInfo(
            airing_at=_int_or_zero(raw_airing.get("airingAt")),
            episode=_int_or_zero(raw_airing.get("episode")),
        )

    return Entry(
        list_id=list_id,
        media_id=media_id,
        mal_id=_int_or_zero(media.get("idMal")),
        title=title,
        status=status,
        progress=max(0, _int_or_zero(item.get("progress"))),
        score=_clamp_score(item.get("score")),
        episodes=max(0, _int_or_zero(media.get("episodes"))),
        updated_at=_int_or_zero(item.get("updatedAt")),
        next_airing=next_airing,
    )


def parse_list_collection(data: dict[str, Any]) -> list[Entry]:
    """Flatten every sub-list of a MediaListCollection in remote order.

    Custom lists repeat entries already present in the status lists; the
    first occurrence of each list id wins.
    """
    collection = data.get("MediaListCollection") or {}
    lists = collection.get("lists") if isinstance(collection, dict) else None
    if not isinstance(lists, list):
        return []
    entries: list[Entry] = []
    seen: set[int] = set()
    for sub_list in lists:
        if not isinstance(sub_list, dict):
            continue
        for item in sub_list.get("entries") or []:
            entry = parse_list_entry(item)
            if entry is None or entry.list_id in seen:
                continue
            seen.add(entry.list_id)
            entries.append(entry)
    return entries


def parse_saved_entry(data: dict[str, Any]) -> SavedEntry:
    """Parse the SaveMediaListEntry mutation result."""
    saved = data.get("SaveMediaListEntry")
    if not isinstance(saved, dict):
        raise TransportError("AniList returned no saved entry")
    status = saved.get("status")
    if status not in ENTRY_STATUSES:
        raise TransportError(f"AniList returned an unknown status {status!r}")
    return SavedEntry(
        list_id=_int_or_zero(saved.get("id")),
        status=status,
        progress=max(0, _int_or_zero(saved.get("progress"))),
        score=_clamp_score(saved.get("score")),
        updated_at=_int_or_zero(saved.get("updatedAt")),
    )


def parse_airing_schedule(data: dict[str, Any]) -> AiringSchedule:
    """Parse an AiringSchedule query result."""
    schedule = data.get("AiringSchedule")
    if not isinstance(schedule, dict):
        raise TransportError("No airing schedule found for this episode", status_code=404)
    return AiringSchedule(
        airing_at=_int_or_zero(schedule.get("airingAt")),
        time_until_airing=_int_or_zero(schedule.get("timeUntilAiring")),
        episode=_int_or_zero(schedule.get("episode")),
    )


def _is_auth_failure(messages: list[str]) -> bool:
    lowered = " ".join(messages).lower()
    return any(marker in lowered for marker in _AUTH_ERROR_MARKERS)


# ============================================================================
# Client
# ============================================================================


class AniListClient:
    """Synchronous AniList GraphQL client bound to one access token."""

    def __init__(
        self,
        token: str = "",
        *,
        client: httpx.Client | None = None,
        timeout: float = ANILIST_REQUEST_TIMEOUT,
    ) -> None:
        self.token = token
        self._owns_client = client is None
        self._client = client if client is not None else httpx.Client(timeout=timeout)

    def __enter__(self) -> AniListClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def _execute(
        self, query: str, variables: dict[str, Any] | None = None, *, label: str
    ) -> dict[str, Any]:
        """POST a GraphQL document and return its ``data`` object."""
        if not self.token:
            raise AuthError("No AniList access token is available")
        headers = {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/json",
            "User-Agent": ANILIST_USER_AGENT,
        }
        try:
            response = self._client.post(
                ANILIST_API_URL,
                json={"query": query, "variables": variables or {}},
                headers=headers,
            )
        except httpx.TimeoutException as e:
            logger.warning("%s timed out: %s", label, e)
            raise TransportError(f"{label} timed out") from e
        except httpx.HTTPError as e:
            logger.warning("%s failed: %s", label, e)
            raise TransportError(f"{label} failed: {e}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            payload = {}

        errors = payload.get("errors") or []
        messages = [
            str(err.get("message", "")) for err in errors if isinstance(err, dict)
        ]
        if response.status_code == 401 or (messages and _is_auth_failure(messages)):
            logger.info("%s rejected credentials: %s", label, messages)
            raise AuthError("AniList rejected the access token")
        if response.status_code != 200 or messages:
            detail = "; ".join(m for m in messages if m) or f"HTTP {response.status_code}"
            logger.warning("%s returned %d: %s", label, response.status_code, detail)
            raise TransportError(f"{label} failed: {detail}", status_code=response.status_code)

        data = payload.get("data")
        if not isinstance(data, dict):
            raise TransportError(f"{label} returned no data", status_code=response.status_code)
        return data

    def fetch_viewer(self) -> Viewer:
        """Fetch the authenticated user's profile (also validates the token)."""
        data = self._execute(QUERY_VIEWER, label="AniList viewer query")
        viewer = data.get("Viewer")
        if not isinstance(viewer, dict) or not _int_or_zero(viewer.get("id")):
            raise AuthError("AniList did not return a user for this token")
        return Viewer(id=_int_or_zero(viewer.get("id")), name=_str_or_empty(viewer.get("name")))

    def fetch_anime_list(self, user_id: int) -> list[Entry]:
        """Fetch the user's full anime list in remote order."""
        data = self._execute(
            QUERY_USER_ANIME_LIST, {"userId": user_id}, label="AniList list query"
        )
        entries = parse_list_collection(data)
        logger.debug("Fetched %d list entries for user %d", len(entries), user_id)
        return entries

    def save_entry(self, entry: Entry) -> SavedEntry:
        """Push status/progress/score of one entry and return the confirmed fields."""
        variables = {
            "listId": entry.list_id,
            "mediaId": entry.media_id,
            "status": entry.status,
            "progress": entry.progress,
            "score": float(entry.score),
        }
        data = self._execute(MUTATION_SAVE_ENTRY, variables, label="AniList entry update")
        return parse_saved_entry(data)

    def fetch_airing_schedule(self, media_id: int, episode: int) -> AiringSchedule:
        """Fetch the airing schedule of one episode."""
        data = self._execute(
            QUERY_AIRING_SCHEDULE,
            {"mediaId": media_id, "episode": episode},
            label="AniList airing schedule query",
        )
        return parse_airing_schedule(data)
