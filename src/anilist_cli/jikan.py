"""Jikan (MyAnimeList) client for supplementary descriptive fields."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from anilist_cli.errors import TransportError, ValidationError
from anilist_cli.models import Themes

logger = logging.getLogger(__name__)

JIKAN_API_BASE = "https://api.jikan.moe/v4"
JIKAN_REQUEST_TIMEOUT = 15  # seconds


def parse_themes_response(payload: Any) -> Themes:
    """Parse ``/anime/{id}/themes``. Missing or malformed sections become empty lists."""
    data = payload.get("data") if isinstance(payload, dict) else None
    if not isinstance(data, dict):
        return Themes()

    def _strings(key: str) -> list[str]:
        raw = data.get(key) or []
        if not isinstance(raw, list):
            return []
        return [t.strip() for t in raw if isinstance(t, str) and t.strip()]

    return Themes(openings=_strings("openings"), endings=_strings("endings"))


def fetch_themes(
    mal_id: int,
    *,
    client: httpx.Client | None = None,
    timeout: float = JIKAN_REQUEST_TIMEOUT,
) -> Themes:
    """Fetch opening/ending themes for a MyAnimeList id."""
    if not mal_id:
        raise ValidationError(
            "This entry has no MyAnimeList id",
            next_step="theme songs are only available for entries linked to MyAnimeList",
        )
    url = f"{JIKAN_API_BASE}/anime/{mal_id}/themes"
    try:
        if client is not None:
            response = client.get(url, timeout=timeout)
        else:
            with httpx.Client(timeout=timeout) as tmp_client:
                response = tmp_client.get(url)
        response.raise_for_status()
        return parse_themes_response(response.json())
    except httpx.HTTPStatusError as e:
        status_code = e.response.status_code
        logger.warning("Jikan themes for %d returned %d", mal_id, status_code)
        raise TransportError(
            f"MyAnimeList catalog returned HTTP {status_code}", status_code=status_code
        ) from e
    except httpx.HTTPError as e:
        logger.warning("Jikan themes for %d failed: %s", mal_id, e)
        raise TransportError(f"MyAnimeList catalog request failed: {e}") from e
    except ValueError as e:
        raise TransportError("MyAnimeList catalog returned invalid JSON") from e


__all__ = [
    "JIKAN_API_BASE",
    "fetch_themes",
    "parse_themes_response",
]
