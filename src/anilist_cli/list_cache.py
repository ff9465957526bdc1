"""Local list-cache snapshot: load-or-refresh, persistence, (de)serialization.

The snapshot is always written whole through ``write_json_atomic``; there is
no incremental format. A missing, empty or unreadable snapshot is treated as
"no cache" and triggers a remote fetch.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

from anilist_cli.anilist_api import AniListClient
from anilist_cli.config import _safe_get, get_config_dir, write_json_atomic
from anilist_cli.errors import AuthError, PersistError
from anilist_cli.models import (
    ENTRY_STATUSES,
    SCORE_MAX,
    SCORE_MIN,
    AiringInfo,
    Entry,
    ListCache,
    MediaTitle,
)

logger = logging.getLogger(__name__)

CACHE_FILENAME = "anilist_cache.json"
CACHE_FORMAT_VERSION = 1

ClientFactory = Callable[[str], AniListClient]


def get_cache_path() -> Path:
    """Get the path to the list-cache snapshot."""
    return get_config_dir() / CACHE_FILENAME


# ============================================================================
# Serialization
# ============================================================================


def _entry_to_dict(entry: Entry) -> dict[str, Any]:
    return {
        "list_id": entry.list_id,
        "media_id": entry.media_id,
        "mal_id": entry.mal_id,
        "title": {
            "romaji": entry.title.romaji,
            "english": entry.title.english,
            "native": entry.title.native,
            "user_preferred": entry.title.user_preferred,
        },
        "status": entry.status,
        "progress": entry.progress,
        "score": entry.score,
        "episodes": entry.episodes,
        "updated_at": entry.updated_at,
        "next_airing": (
            {"airing_at": entry.next_airing.airing_at, "episode": entry.next_airing.episode}
            if entry.next_airing is not None
            else None
        ),
    }


def _cache_to_dict(cache: ListCache) -> dict[str, Any]:
    """Serialize a ListCache to a JSON-compatible dictionary."""
    return {
        "version": CACHE_FORMAT_VERSION,
        "user": {"id": cache.user_id, "name": cache.user_name},
        "token": cache.token,
        "refreshed_at": cache.refreshed_at,
        "entries": [_entry_to_dict(entry) for entry in cache.entries],
    }


def _dict_to_entry(data: Any) -> Entry | None:
    """Deserialize one entry. Returns None when identity fields are unusable."""
    if not isinstance(data, dict):
        return None
    list_id = _safe_get(data, "list_id", 0, int)
    media_id = _safe_get(data, "media_id", 0, int)
    if not list_id or not media_id:
        return None
    status = _safe_get(data, "status", "", str)
    if status not in ENTRY_STATUSES:
        logger.warning("Dropping cached entry %d with invalid status %r", list_id, status)
        return None

    raw_title = _safe_get(data, "title", {}, dict)
    title = MediaTitle(
        romaji=_safe_get(raw_title, "romaji", "", str),
        english=_safe_get(raw_title, "english", "", str),
        native=_safe_get(raw_title, "native", "", str),
        user_preferred=_safe_get(raw_title, "user_preferred", "", str),
    )

    next_airing = None
    raw_airing = data.get("next_airing")
    if isinstance(raw_airing, dict):
        next_airing = AiringInfo(
            airing_at=_safe_get(raw_airing, "airing_at", 0, int),
            episode=_safe_get(raw_airing, "episode", 0, int),
        )

    return Entry(
        list_id=list_id,
        media_id=media_id,
        mal_id=_safe_get(data, "mal_id", 0, int),
        title=title,
        status=status,
        progress=max(0, _safe_get(data, "progress", 0, int)),
        score=max(SCORE_MIN, min(_safe_get(data, "score", 0, int), SCORE_MAX)),
        episodes=max(0, _safe_get(data, "episodes", 0, int)),
        updated_at=_safe_get(data, "updated_at", 0, int),
        next_airing=next_airing,
    )


def _dict_to_cache(data: dict[str, Any]) -> ListCache:
    """Deserialize a snapshot dictionary with type validation."""
    user = _safe_get(data, "user", {}, dict)
    raw_entries = _safe_get(data, "entries", [], list)
    entries = [e for e in (_dict_to_entry(item) for item in raw_entries) if e is not None]
    refreshed_at = data.get("refreshed_at", 0.0)
    if isinstance(refreshed_at, bool) or not isinstance(refreshed_at, (int, float)):
        refreshed_at = 0.0
    return ListCache(
        entries=entries,
        user_id=_safe_get(user, "id", 0, int),
        user_name=_safe_get(user, "name", "", str),
        token=_safe_get(data, "token", "", str),
        refreshed_at=float(refreshed_at),
    )


# ============================================================================
# Persistence
# ============================================================================


def read_snapshot(path: Path | None = None) -> ListCache | None:
    """Read the snapshot from disk. Returns None if missing or unreadable."""
    cache_path = path or get_cache_path()
    if not cache_path.exists():
        return None
    try:
        data = json.loads(cache_path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning("List cache is not valid JSON, ignoring it: %s", e)
        return None
    except OSError as e:
        logger.warning("Could not read list cache, ignoring it: %s", e)
        return None
    if not isinstance(data, dict):
        logger.warning("List cache root is not an object, ignoring it")
        return None
    return _dict_to_cache(data)


def persist_cache(cache: ListCache, path: Path | None = None) -> None:
    """Write the whole snapshot atomically, replacing any prior one.

    Raises:
        PersistError: the snapshot could not be written; the old snapshot
            (if any) is still intact.
    """
    cache_path = path or get_cache_path()
    try:
        write_json_atomic(cache_path, _cache_to_dict(cache))
    except (OSError, TypeError, ValueError) as e:
        logger.error("Failed to save list cache: %s", e)
        raise PersistError(f"could not write {cache_path}: {e}", cache=cache) from e
    logger.debug("Persisted %d entries to %s", len(cache.entries), cache_path)


def refresh_cache(token: str, client_factory: ClientFactory = AniListClient) -> ListCache:
    """Fetch the viewer and their full list into a new ListCache."""
    if not token:
        raise AuthError("No AniList access token is available")
    client = client_factory(token)
    try:
        viewer = client.fetch_viewer()
        entries = client.fetch_anime_list(viewer.id)
    finally:
        client.close()
    return ListCache(
        entries=entries,
        user_id=viewer.id,
        user_name=viewer.name,
        token=token,
        refreshed_at=time.time(),
    )


def load_list_cache(
    *,
    force_refresh: bool,
    token: str = "",
    client_factory: ClientFactory = AniListClient,
    path: Path | None = None,
) -> ListCache:
    """Return the cached list, fetching it remotely when needed.

    A non-empty snapshot is returned unchanged unless ``force_refresh`` is
    set. Otherwise the list is fetched with ``token`` (falling back to the
    snapshot's token), stamped and persisted.

    Raises:
        AuthError: no usable token.
        TransportError: the remote fetch failed.
        PersistError: the fetch succeeded but the snapshot could not be
            written; ``error.cache`` carries the fresh data.
    """
    snapshot = read_snapshot(path)
    if snapshot is not None and snapshot.entries and not force_refresh:
        logger.debug("Using cached list with %d entries", len(snapshot.entries))
        return snapshot

    credential = token or (snapshot.token if snapshot is not None else "")
    if not credential:
        raise AuthError("You are not logged in to AniList")
    cache = refresh_cache(credential, client_factory)
    persist_cache(cache, path)
    return cache


__all__ = [
    "CACHE_FILENAME",
    "get_cache_path",
    "load_list_cache",
    "persist_cache",
    "read_snapshot",
    "refresh_cache",
]
