"""Interactive fuzzy chooser used when a selection cannot be resolved directly."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from rapidfuzz import fuzz
from rich.markup import escape as escape_markup
from textual import on
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.widgets import Input, Label, OptionList, Static
from textual.widgets.option_list import Option

from anilist_cli.models import STATUS_LABELS, Entry

logger = logging.getLogger(__name__)

# Minimum partial_ratio for a choice to stay visible while filtering
FUZZY_SCORE_THRESHOLD = 40

# (label, key): the label is displayed and matched, the key is returned
Choice = tuple[str, str]


def rank_choices(query: str, choices: Sequence[Choice]) -> list[Choice]:
    """Filter and order choices by fuzzy similarity to ``query``.

    An empty query keeps the original order.
    """
    if not query:
        return list(choices)
    q = query.lower()
    scored: list[tuple[float, int, Choice]] = []
    for index, choice in enumerate(choices):
        score = fuzz.partial_ratio(q, choice[0].lower())
        if score >= FUZZY_SCORE_THRESHOLD:
            scored.append((score, index, choice))
    scored.sort(key=lambda x: (-x[0], x[1]))
    return [choice for _, _, choice in scored]


def entry_label(entry: Entry) -> str:
    """Single-line label used for an entry in the chooser."""
    names = " / ".join(entry.title.variants()) or f"#{entry.list_id}"
    total = entry.episodes or "?"
    return f"{names}  [{STATUS_LABELS.get(entry.status, entry.status)} {entry.progress}/{total}]"


class FuzzyChooserApp(App[str | None]):
    """Full-screen fuzzy picker over ``(label, key)`` choices.

    Exits with the key of the picked choice, or None when aborted.
    """

    BINDINGS = [
        Binding("escape", "cancel", "Cancel"),
        Binding("down", "cursor_down", "Next", show=False),
        Binding("up", "cursor_up", "Previous", show=False),
    ]

    CSS = """
    FuzzyChooserApp > Vertical {
        padding: 1 2;
    }

    #chooser-search {
        margin-bottom: 1;
    }

    #chooser-results {
        height: 1fr;
    }

    #chooser-footer {
        color: $text-muted;
        margin-top: 1;
    }
    """

    def __init__(self, choices: Sequence[Choice], *, prompt: str = "Select an entry") -> None:
        super().__init__()
        self._choices = list(choices)
        self._filtered: list[Choice] = list(self._choices)
        self._prompt = prompt

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Label(f"[bold]{escape_markup(self._prompt)}[/]", id="chooser-title")
            yield Input(placeholder="Type to filter...", id="chooser-search")
            yield OptionList(id="chooser-results")
            yield Static("Pick: Enter  Cancel: Esc", id="chooser-footer")

    def on_mount(self) -> None:
        self._populate_results("")
        self.query_one("#chooser-search", Input).focus()

    @on(Input.Changed, "#chooser-search")
    def _on_search_changed(self, event: Input.Changed) -> None:
        self._populate_results(event.value.strip())

    def _populate_results(self, query: str) -> None:
        option_list = self.query_one("#chooser-results", OptionList)
        option_list.clear_options()
        self._filtered = rank_choices(query, self._choices)

        if not self._filtered:
            option_list.add_option(
                Option(f'[dim]Nothing matches "{escape_markup(query)}".[/]', disabled=True)
            )
            return

        for label, key in self._filtered:
            option_list.add_option(Option(escape_markup(label), id=key))
        option_list.highlighted = 0

    @on(Input.Submitted, "#chooser-search")
    def _on_search_submitted(self) -> None:
        self.action_pick()

    @on(OptionList.OptionSelected, "#chooser-results")
    def _on_option_selected(self, event: OptionList.OptionSelected) -> None:
        if event.option_id is not None:
            self.exit(str(event.option_id))

    def action_cursor_down(self) -> None:
        self.query_one("#chooser-results", OptionList).action_cursor_down()

    def action_cursor_up(self) -> None:
        self.query_one("#chooser-results", OptionList).action_cursor_up()

    def action_pick(self) -> None:
        """Pick the currently highlighted choice."""
        option_list = self.query_one("#chooser-results", OptionList)
        idx = option_list.highlighted
        if idx is not None and 0 <= idx < len(self._filtered):
            self.exit(self._filtered[idx][1])

    def action_cancel(self) -> None:
        self.exit(None)


def choose_entry(entries: Sequence[Entry], *, prompt: str = "Select an entry") -> Entry | None:
    """Let the user pick one entry interactively. Returns None when aborted."""
    if not entries:
        return None
    by_key = {str(entry.list_id): entry for entry in entries}
    choices = [(entry_label(entry), str(entry.list_id)) for entry in entries]
    key = FuzzyChooserApp(choices, prompt=prompt).run()
    logger.debug("Chooser returned %r", key)
    return by_key.get(key) if key is not None else None


def choose_string(values: Sequence[str], *, prompt: str = "Select a value") -> str | None:
    """Let the user pick one string interactively. Returns None when aborted."""
    if not values:
        return None
    choices = [(value, str(index)) for index, value in enumerate(values)]
    key = FuzzyChooserApp(choices, prompt=prompt).run()
    return values[int(key)] if key is not None else None


__all__ = [
    "FUZZY_SCORE_THRESHOLD",
    "FuzzyChooserApp",
    "choose_entry",
    "choose_string",
    "entry_label",
    "rank_choices",
]
