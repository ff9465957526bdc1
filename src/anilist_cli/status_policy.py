"""Status auto-update policy applied after progress changes."""

from __future__ import annotations

from dataclasses import replace

from anilist_cli.models import (
    AUTO_UPDATE_AFTER_THRESHOLD,
    AUTO_UPDATE_NORMAL,
    AUTO_UPDATE_OFF,
    STATUS_COMPLETED,
    STATUS_CURRENT,
    Entry,
)


def apply_status_policy(mode: str, entry: Entry) -> Entry:
    """Return a copy of ``entry`` with its status derived from progress.

    - ``normal``: progress reaching the total completes the entry.
    - ``after_threshold``: progress must exceed the total, for entries whose
      episode count is still provisional.
    - A completed entry whose progress falls below the total goes back to
      watching.

    Completion always clamps progress to the total. Entries with an unknown
    total (0) and mode ``off`` are returned unchanged.
    """
    if mode == AUTO_UPDATE_OFF or entry.episodes == 0:
        return replace(entry)

    if (mode == AUTO_UPDATE_NORMAL and entry.progress >= entry.episodes) or (
        mode == AUTO_UPDATE_AFTER_THRESHOLD and entry.progress > entry.episodes
    ):
        return replace(entry, status=STATUS_COMPLETED, progress=entry.episodes)

    if entry.status == STATUS_COMPLETED and entry.progress < entry.episodes:
        return replace(entry, status=STATUS_CURRENT)

    return replace(entry)


def next_episode_to_air(mode: str, entry: Entry) -> int:
    """Episode whose airing time is relevant to the user.

    The next unwatched episode, except under after-threshold mode or when
    progress has reached a known total (or the total is unknown), where the
    current progress is looked up as-is.
    """
    if mode != AUTO_UPDATE_AFTER_THRESHOLD and entry.progress < entry.episodes:
        return entry.progress + 1
    return entry.progress


__all__ = ["apply_status_policy", "next_episode_to_air"]
