"""Shared test fixtures for the AniList CLI tests."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import pytest

from anilist_cli.errors import TransportError
from anilist_cli.models import (
    STATUS_CURRENT,
    AiringSchedule,
    Entry,
    ListCache,
    MediaTitle,
    SavedEntry,
    Viewer,
)

# ── Factories ────────────────────────────────────────────────────────────────


@pytest.fixture
def make_entry():
    """Factory fixture for creating Entry instances with sensible defaults."""

    def _make(
        list_id: int = 100,
        media_id: int = 16498,
        mal_id: int = 16498,
        romaji: str = "Shingeki no Kyojin",
        english: str = "Attack on Titan",
        native: str = "進撃の巨人",
        status: str = STATUS_CURRENT,
        progress: int = 0,
        score: int = 0,
        episodes: int = 25,
        updated_at: int = 1_700_000_000,
    ) -> Entry:
        return Entry(
            list_id=list_id,
            media_id=media_id,
            mal_id=mal_id,
            title=MediaTitle(
                romaji=romaji, english=english, native=native, user_preferred=romaji
            ),
            status=status,
            progress=progress,
            score=score,
            episodes=episodes,
            updated_at=updated_at,
        )

    return _make


@pytest.fixture
def make_cache():
    """Factory fixture for creating a ListCache around some entries."""

    def _make(entries: list[Entry] | None = None, token: str = "cached-token") -> ListCache:
        return ListCache(
            entries=list(entries or []),
            user_id=1,
            user_name="tester",
            token=token,
            refreshed_at=1_700_000_000.0,
        )

    return _make


@pytest.fixture
def config_dir(tmp_path, monkeypatch) -> Path:
    """Point every platformdirs lookup at a temp directory."""
    target = tmp_path / "config"
    monkeypatch.setattr("anilist_cli.config.user_config_dir", lambda _name: str(target))
    return target


# ── Fake remote service ──────────────────────────────────────────────────────


class FakeAniListClient:
    """In-memory stand-in for AniListClient that records every call."""

    def __init__(
        self,
        entries: list[Entry] | None = None,
        *,
        viewer: Viewer | None = None,
        save_error: Exception | None = None,
        fetch_error: Exception | None = None,
        updated_at: int = 1_800_000_000,
    ) -> None:
        self.entries = list(entries or [])
        self.viewer = viewer or Viewer(id=1, name="tester")
        self.save_error = save_error
        self.fetch_error = fetch_error
        self.updated_at = updated_at
        self.tokens: list[str] = []
        self.saved: list[Entry] = []
        self.list_fetches = 0
        self.airing_requests: list[tuple[int, int]] = []
        self.closed = 0

    def factory(self, token: str) -> FakeAniListClient:
        self.tokens.append(token)
        return self

    def close(self) -> None:
        self.closed += 1

    def fetch_viewer(self) -> Viewer:
        if self.fetch_error is not None:
            raise self.fetch_error
        return self.viewer

    def fetch_anime_list(self, user_id: int) -> list[Entry]:
        self.list_fetches += 1
        return [replace(e) for e in self.entries]

    def save_entry(self, entry: Entry) -> SavedEntry:
        if self.save_error is not None:
            raise self.save_error
        self.saved.append(entry)
        return SavedEntry(
            list_id=entry.list_id,
            status=entry.status,
            progress=entry.progress,
            score=entry.score,
            updated_at=self.updated_at,
        )

    def fetch_airing_schedule(self, media_id: int, episode: int) -> AiringSchedule:
        self.airing_requests.append((media_id, episode))
        return AiringSchedule(airing_at=1_800_000_000, time_until_airing=3_660, episode=episode)


@pytest.fixture
def fake_api():
    return FakeAniListClient()


@pytest.fixture
def failing_transport():
    return TransportError("AniList entry update failed: HTTP 500", status_code=500)
