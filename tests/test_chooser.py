"""Tests for the fuzzy chooser ranking and its Textual app."""

from __future__ import annotations

import asyncio

from textual.widgets import Input, OptionList

from anilist_cli.chooser import (
    FuzzyChooserApp,
    choose_entry,
    choose_string,
    entry_label,
    rank_choices,
)
from anilist_cli.models import STATUS_PAUSED

CHOICES = [
    ("Shingeki no Kyojin / Attack on Titan", "1"),
    ("Sousou no Frieren / Frieren", "2"),
    ("Mushishi", "3"),
]


async def _wait_for_option_count(pilot, option_list, expected: int, timeout: float = 2.0) -> None:
    """Poll until OptionList reaches expected count or timeout."""
    deadline = asyncio.get_running_loop().time() + timeout
    while option_list.option_count != expected and asyncio.get_running_loop().time() < deadline:
        await pilot.pause(0.05)
    assert option_list.option_count == expected


# ============================================================================
# Ranking
# ============================================================================


def test_empty_query_keeps_order() -> None:
    assert rank_choices("", CHOICES) == CHOICES


def test_fuzzy_query_ranks_best_match_first() -> None:
    ranked = rank_choices("frieren", CHOICES)
    assert ranked[0][1] == "2"


def test_weak_matches_stay_below_best_match() -> None:
    ranked = rank_choices("mushi", CHOICES)
    assert [key for _, key in ranked] == ["3", "1", "2"]


def test_unrelated_query_filters_everything() -> None:
    assert rank_choices("zzzzzzzz", CHOICES) == []


def test_entry_label_shows_progress(make_entry) -> None:
    label = entry_label(make_entry(progress=3, episodes=0, status=STATUS_PAUSED))
    assert "Attack on Titan" in label
    assert "Paused 3/?" in label


# ============================================================================
# App
# ============================================================================


class TestFuzzyChooserApp:
    async def test_enter_picks_first_choice(self) -> None:
        app = FuzzyChooserApp(CHOICES)
        async with app.run_test() as pilot:
            await pilot.press("enter")
        assert app.return_value == "1"

    async def test_typing_filters_and_picks(self) -> None:
        app = FuzzyChooserApp(CHOICES)
        async with app.run_test() as pilot:
            for ch in "mushi":
                await pilot.press(ch)
            option_list = app.query_one("#chooser-results", OptionList)
            await _wait_for_option_count(pilot, option_list, expected=3)
            await pilot.pause()
            assert option_list.get_option_at_index(0).id == "3"
            await pilot.press("enter")
        assert app.return_value == "3"

    async def test_cursor_moves_highlight(self) -> None:
        app = FuzzyChooserApp(CHOICES)
        async with app.run_test() as pilot:
            await pilot.press("down", "enter")
        assert app.return_value == "2"

    async def test_escape_cancels(self) -> None:
        app = FuzzyChooserApp(CHOICES)
        async with app.run_test() as pilot:
            await pilot.press("escape")
        assert app.return_value is None

    async def test_no_match_shows_placeholder(self) -> None:
        app = FuzzyChooserApp(CHOICES)
        async with app.run_test() as pilot:
            app.query_one("#chooser-search", Input).value = "zzzzzzzz"
            option_list = app.query_one("#chooser-results", OptionList)
            await _wait_for_option_count(pilot, option_list, expected=1)
            await pilot.press("enter")
            assert app.return_value is None
            await pilot.press("escape")


# ============================================================================
# Blocking helpers
# ============================================================================


def test_choose_entry_maps_key_back(monkeypatch, make_entry) -> None:
    entries = [make_entry(list_id=5), make_entry(list_id=6)]
    monkeypatch.setattr(FuzzyChooserApp, "run", lambda self: "6")
    assert choose_entry(entries) is entries[1]


def test_choose_entry_abort(monkeypatch, make_entry) -> None:
    monkeypatch.setattr(FuzzyChooserApp, "run", lambda self: None)
    assert choose_entry([make_entry()]) is None


def test_choose_entry_empty_list_skips_app(monkeypatch) -> None:
    def _fail(self):
        raise AssertionError("chooser should not start")

    monkeypatch.setattr(FuzzyChooserApp, "run", _fail)
    assert choose_entry([]) is None


def test_choose_string_returns_value(monkeypatch) -> None:
    monkeypatch.setattr(FuzzyChooserApp, "run", lambda self: "1")
    assert choose_string(["a", "b"]) == "b"
