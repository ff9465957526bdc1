"""Resolve user search text (or the saved selection) to exactly one entry."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from anilist_cli.errors import AmbiguousInput, NoMatch, NoSelection
from anilist_cli.models import Entry, ListCache, UserConfig

logger = logging.getLogger(__name__)

EntryChooser = Callable[[Sequence[Entry]], Entry | None]


def _default_chooser(entries: Sequence[Entry]) -> Entry | None:
    from anilist_cli.chooser import choose_entry

    return choose_entry(entries)


def find_matches(search_text: str, entries: Sequence[Entry]) -> list[Entry]:
    """Entries whose romaji/English/native titles contain ``search_text``.

    Matching is case-insensitive substring containment over the
    concatenated title variants.
    """
    needle = search_text.strip().casefold()
    if not needle:
        return []
    return [e for e in entries if needle in e.title.search_text().casefold()]


def match_unique(search_text: str, entries: Sequence[Entry]) -> Entry:
    """Return the single entry matching ``search_text``.

    Raises:
        NoMatch: nothing matched.
        AmbiguousInput: more than one entry matched; ``candidates`` holds them.
    """
    matches = find_matches(search_text, entries)
    if not matches:
        raise NoMatch(f'no entry title contains "{search_text.strip()}"')
    if len(matches) > 1:
        raise AmbiguousInput(
            f'"{search_text.strip()}" matches {len(matches)} entries',
            candidates=matches,
        )
    return matches[0]


def choose_interactively(entries: Sequence[Entry], chooser: EntryChooser) -> Entry:
    """Delegate to the interactive chooser; an abort is reported as NoMatch."""
    if not entries:
        raise NoMatch("the list is empty", next_step="run with --refresh to fetch your list")
    picked = chooser(entries)
    if picked is None:
        raise NoMatch("no entry was picked")
    return picked


def resolve_selection(
    search_text: str,
    cache: ListCache,
    chooser: EntryChooser | None = None,
) -> Entry:
    """Map search text to one entry, never guessing among several matches.

    Empty text goes straight to the interactive chooser over the whole list.
    A unique substring match is returned directly. Ambiguous input offers
    only the matching entries; no match offers the whole list.
    """
    chooser = chooser or _default_chooser
    if not search_text.strip():
        return choose_interactively(cache.entries, chooser)
    try:
        return match_unique(search_text, cache.entries)
    except AmbiguousInput as e:
        logger.debug("Ambiguous selection: %s", e)
        return choose_interactively(e.candidates, chooser)
    except NoMatch as e:
        logger.debug("No direct match: %s", e)
        return choose_interactively(cache.entries, chooser)


def resolve_selected(cache: ListCache, config: UserConfig) -> Entry:
    """Re-resolve the persisted selection id against the current list.

    Raises:
        NoSelection: nothing selected, or the selected entry left the list.
    """
    if not config.selected_id:
        raise NoSelection("no entry is selected")
    entry = cache.find_by_id(config.selected_id)
    if entry is None:
        raise NoSelection(f"the selected entry (id {config.selected_id}) is no longer on your list")
    return entry


__all__ = [
    "EntryChooser",
    "choose_interactively",
    "find_matches",
    "match_unique",
    "resolve_selected",
    "resolve_selection",
]
