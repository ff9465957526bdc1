"""Sync controller: load the list, mutate one entry, push it, persist it.

Every update command runs the same sequence:

    load-or-refresh cache → resolve target → mutate a copy → status policy
    → push to AniList → write acknowledged fields → persist snapshot

The push and the persist are two separate fallible steps. A failed push
leaves both the in-memory cache and the snapshot untouched. A failed
persist after a successful push raises ``PartialSyncError``.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Callable
from contextlib import AbstractContextManager
from dataclasses import dataclass, field, replace
from pathlib import Path

from anilist_cli.anilist_api import AniListClient
from anilist_cli.config import save_config
from anilist_cli.errors import (
    AniListCliError,
    AuthError,
    PartialSyncError,
    PersistError,
    ValidationError,
)
from anilist_cli.list_cache import ClientFactory, load_list_cache, persist_cache, refresh_cache
from anilist_cli.models import (
    ENTRY_STATUSES,
    SCORE_MAX,
    SCORE_MIN,
    STATUS_CHOICES_HELP,
    AiringInfo,
    AiringSchedule,
    Entry,
    ListCache,
    UserConfig,
    parse_status,
)
from anilist_cli.selection import EntryChooser, resolve_selected, resolve_selection
from anilist_cli.status_policy import apply_status_policy, next_episode_to_air

logger = logging.getLogger(__name__)

# Wraps a blocking remote call, e.g. with a spinner; receives a short label
WaitIndicator = Callable[[str], AbstractContextManager[object]]


def _no_indicator(_label: str) -> AbstractContextManager[object]:
    return contextlib.nullcontext()


# ============================================================================
# Field validation
# ============================================================================


def parse_progress(text: str) -> int:
    """Parse an episode count argument."""
    try:
        value = int(text)
    except (TypeError, ValueError) as e:
        raise ValidationError(
            f"{text!r} is not a whole number",
            next_step="pass a non-negative episode count",
        ) from e
    validate_progress(value)
    return value


def validate_progress(value: int) -> None:
    if value < 0:
        raise ValidationError(
            f"episode count {value} is negative",
            next_step="pass a non-negative episode count",
        )


def parse_score(text: str) -> int:
    """Parse a score argument in the inclusive range 0-10."""
    try:
        value = int(text)
    except (TypeError, ValueError) as e:
        raise ValidationError(
            f"{text!r} is not a whole number",
            next_step=f"pass a score between {SCORE_MIN} and {SCORE_MAX}",
        ) from e
    validate_score(value)
    return value


def validate_score(value: int) -> None:
    if not SCORE_MIN <= value <= SCORE_MAX:
        raise ValidationError(
            f"score {value} is out of range",
            next_step=f"pass a score between {SCORE_MIN} and {SCORE_MAX}",
        )


def parse_entry_status(text: str) -> str:
    """Parse a status word into a storable status (never the ALL sentinel)."""
    status = parse_status(text)
    if status not in ENTRY_STATUSES:
        raise ValidationError(
            f"invalid status {text!r}",
            next_step=f"use one of {STATUS_CHOICES_HELP}",
        )
    return status


# ============================================================================
# Controller
# ============================================================================


@dataclass(slots=True)
class UpdateResult:
    """Outcome of a successful update: the cached entry and its prior state."""

    entry: Entry
    previous: Entry


@dataclass(slots=True)
class SyncController:
    """Orchestrates list loading, selection and entry updates for one command."""

    config: UserConfig
    token: str = ""
    force_refresh: bool = False
    client_factory: ClientFactory = AniListClient
    cache_path: Path | None = None
    chooser: EntryChooser | None = None
    wait: WaitIndicator = _no_indicator
    warnings: list[AniListCliError] = field(default_factory=list)
    _cache: ListCache | None = None

    # ── Loading ──────────────────────────────────────────────────────────

    def load(self) -> ListCache:
        """Load the list once per command (read-through unless forced).

        A snapshot write failure after a fresh fetch is recorded in
        ``warnings`` and the fetched data is used anyway.
        """
        if self._cache is not None:
            return self._cache
        try:
            with self.wait("Fetching your list"):
                cache = load_list_cache(
                    force_refresh=self.force_refresh,
                    token=self.token,
                    client_factory=self.client_factory,
                    path=self.cache_path,
                )
        except PersistError as e:
            if e.cache is None:
                raise
            logger.warning("Using fetched list without a durable cache: %s", e)
            self.warnings.append(e)
            cache = e.cache
        self._cache = cache
        return cache

    def login(self, token: str) -> ListCache:
        """Validate ``token``, fetch the list with it and persist the snapshot."""
        with self.wait("Logging in"):
            cache = refresh_cache(token, self.client_factory)
        self.token = token
        self._cache = cache
        try:
            persist_cache(cache, self.cache_path)
        except PersistError as e:
            self.warnings.append(e)
        return cache

    def _credential(self, cache: ListCache) -> str:
        credential = self.token or cache.token
        if not credential:
            raise AuthError("You are not logged in to AniList")
        return credential

    # ── Selection ────────────────────────────────────────────────────────

    def resolve_target(self, search_text: str | None = None) -> Entry:
        """Entry named by ``search_text``, else the saved selection."""
        cache = self.load()
        if search_text:
            return resolve_selection(search_text, cache, self.chooser)
        return resolve_selected(cache, self.config)

    def select(self, search_text: str) -> Entry:
        """Resolve ``search_text`` and store it as the selected entry."""
        cache = self.load()
        entry = resolve_selection(search_text, cache, self.chooser)
        self.config.selected_id = entry.list_id
        if not save_config(self.config):
            self.warnings.append(
                PersistError("the selection could not be saved to the config file")
            )
        return entry

    # ── Updates ──────────────────────────────────────────────────────────

    def update_entry(
        self,
        mutate: Callable[[Entry], Entry],
        *,
        search_text: str | None = None,
    ) -> UpdateResult:
        """Apply ``mutate`` to the target entry and propagate the change.

        Raises:
            ValidationError: the mutated entry is out of range.
            TransportError / AuthError: the push failed; nothing changed locally.
            PartialSyncError: the push succeeded but the snapshot write failed.
        """
        cache = self.load()
        entry = self.resolve_target(search_text)
        previous = replace(entry)

        updated = mutate(replace(entry))
        validate_progress(updated.progress)
        validate_score(updated.score)
        if updated.status not in ENTRY_STATUSES:
            raise ValidationError(f"invalid status {updated.status!r}")
        if updated.progress != previous.progress:
            updated = apply_status_policy(self.config.status_auto_update_mode, updated)

        client = self.client_factory(self._credential(cache))
        try:
            with self.wait("Updating entry"):
                saved = client.save_entry(updated)
        finally:
            client.close()

        entry.status = saved.status
        entry.progress = saved.progress
        entry.score = saved.score
        entry.updated_at = saved.updated_at
        logger.info(
            "Entry %d saved: status=%s progress=%d score=%d",
            entry.list_id,
            entry.status,
            entry.progress,
            entry.score,
        )

        try:
            persist_cache(cache, self.cache_path)
        except PersistError as e:
            raise PartialSyncError(
                f"AniList accepted the update but the local cache could not be written ({e})",
                entry=entry,
            ) from e
        return UpdateResult(entry=entry, previous=previous)

    def set_progress(self, value: int | None, *, search_text: str | None = None) -> UpdateResult:
        """Set watched episodes, or increment by one when ``value`` is None."""
        if value is not None:
            validate_progress(value)

        def _mutate(entry: Entry) -> Entry:
            entry.progress = entry.progress + 1 if value is None else value
            return entry

        return self.update_entry(_mutate, search_text=search_text)

    def set_status(self, status: str, *, search_text: str | None = None) -> UpdateResult:
        if status not in ENTRY_STATUSES:
            raise ValidationError(
                f"invalid status {status!r}", next_step=f"use one of {STATUS_CHOICES_HELP}"
            )

        def _mutate(entry: Entry) -> Entry:
            entry.status = status
            return entry

        return self.update_entry(_mutate, search_text=search_text)

    def set_score(self, score: int, *, search_text: str | None = None) -> UpdateResult:
        validate_score(score)

        def _mutate(entry: Entry) -> Entry:
            entry.score = score
            return entry

        return self.update_entry(_mutate, search_text=search_text)

    # ── Read-only remote lookups ─────────────────────────────────────────

    def next_airing(self, entry: Entry) -> AiringSchedule:
        """Fetch the schedule of the next relevant episode of ``entry``.

        The result refreshes ``entry.next_airing`` in memory only.
        """
        cache = self.load()
        episode = next_episode_to_air(self.config.status_auto_update_mode, entry)
        client = self.client_factory(self._credential(cache))
        try:
            with self.wait("Fetching airing schedule"):
                schedule = client.fetch_airing_schedule(entry.media_id, episode)
        finally:
            client.close()
        entry.next_airing = AiringInfo(airing_at=schedule.airing_at, episode=schedule.episode)
        return schedule


__all__ = [
    "SyncController",
    "UpdateResult",
    "WaitIndicator",
    "parse_entry_status",
    "parse_progress",
    "parse_score",
    "validate_progress",
    "validate_score",
]
