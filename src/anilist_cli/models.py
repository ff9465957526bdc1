"""Data models and constants for the AniList command-line client."""

from __future__ import annotations

from dataclasses import dataclass, field

# Application name used for platformdirs paths
CONFIG_APP_NAME = "anilist-cli"

# List statuses as the remote service names them
STATUS_CURRENT = "CURRENT"
STATUS_PLANNING = "PLANNING"
STATUS_COMPLETED = "COMPLETED"
STATUS_REPEATING = "REPEATING"
STATUS_PAUSED = "PAUSED"
STATUS_DROPPED = "DROPPED"
# Filter sentinel, never stored on an entry
STATUS_ALL = "ALL"

ENTRY_STATUSES = (
    STATUS_CURRENT,
    STATUS_PLANNING,
    STATUS_COMPLETED,
    STATUS_REPEATING,
    STATUS_PAUSED,
    STATUS_DROPPED,
)

# User-facing status words → remote status names
STATUS_ALIASES: dict[str, str] = {
    "watching": STATUS_CURRENT,
    "current": STATUS_CURRENT,
    "planning": STATUS_PLANNING,
    "plan": STATUS_PLANNING,
    "completed": STATUS_COMPLETED,
    "repeating": STATUS_REPEATING,
    "rewatching": STATUS_REPEATING,
    "paused": STATUS_PAUSED,
    "on-hold": STATUS_PAUSED,
    "dropped": STATUS_DROPPED,
    "all": STATUS_ALL,
}
STATUS_CHOICES_HELP = "watching|planning|completed|repeating|paused|dropped"

STATUS_LABELS: dict[str, str] = {
    STATUS_CURRENT: "Watching",
    STATUS_PLANNING: "Planning",
    STATUS_COMPLETED: "Completed",
    STATUS_REPEATING: "Repeating",
    STATUS_PAUSED: "Paused",
    STATUS_DROPPED: "Dropped",
    STATUS_ALL: "All",
}

# Status auto-update policy modes
AUTO_UPDATE_OFF = "off"
AUTO_UPDATE_NORMAL = "normal"
AUTO_UPDATE_AFTER_THRESHOLD = "after_threshold"
AUTO_UPDATE_MODES = (AUTO_UPDATE_OFF, AUTO_UPDATE_NORMAL, AUTO_UPDATE_AFTER_THRESHOLD)

# App mode flag (which list service the CLI fronts)
APP_MODE_ANILIST = "anilist"
APP_MODE_MAL = "mal"
APP_MODES = (APP_MODE_ANILIST, APP_MODE_MAL)

SCORE_MIN = 0
SCORE_MAX = 10
DEFAULT_MAX_VISIBLE_ENTRIES = 10


def parse_status(text: str) -> str | None:
    """Map a user-supplied status word to a remote status name.

    Accepts aliases ("watching") as well as remote names ("CURRENT").
    Returns None for unknown input. May return the ``STATUS_ALL`` sentinel.
    """
    cleaned = text.strip().lower()
    if not cleaned:
        return None
    if cleaned in STATUS_ALIASES:
        return STATUS_ALIASES[cleaned]
    upper = cleaned.upper()
    if upper in ENTRY_STATUSES:
        return upper
    return None


@dataclass(slots=True)
class MediaTitle:
    """Name variants of a media item."""

    romaji: str = ""
    english: str = ""
    native: str = ""
    user_preferred: str = ""

    def variants(self) -> list[str]:
        """Return distinct non-empty variants, user-preferred first."""
        ordered = [self.user_preferred, self.romaji, self.english, self.native]
        return list(dict.fromkeys(t for t in ordered if t))

    def search_text(self) -> str:
        """Concatenated variants used for substring matching."""
        return f"{self.romaji} {self.english} {self.native}"

    def display(self) -> str:
        return self.user_preferred or self.romaji or self.english or self.native


@dataclass(slots=True)
class AiringInfo:
    """Snapshot of the next scheduled episode."""

    airing_at: int  # unix seconds
    episode: int


@dataclass(slots=True)
class Entry:
    """One list-membership record for an anime.

    Identity and title fields are fixed once created; ``status``,
    ``progress`` and ``score`` are the user-editable fields.
    """

    list_id: int
    media_id: int
    mal_id: int
    title: MediaTitle
    status: str = STATUS_PLANNING
    progress: int = 0
    score: int = 0
    episodes: int = 0  # 0 when the total is unknown
    updated_at: int = 0
    next_airing: AiringInfo | None = None


@dataclass(slots=True)
class Viewer:
    """Authenticated user profile."""

    id: int
    name: str


@dataclass(slots=True)
class SavedEntry:
    """Fields confirmed by the remote service after a save."""

    list_id: int
    status: str
    progress: int
    score: int
    updated_at: int


@dataclass(slots=True)
class AiringSchedule:
    """Remote airing schedule for one episode."""

    airing_at: int
    time_until_airing: int
    episode: int


@dataclass(slots=True)
class Themes:
    """Opening and ending theme songs from the secondary catalog."""

    openings: list[str] = field(default_factory=list)
    endings: list[str] = field(default_factory=list)


@dataclass(slots=True)
class ListCache:
    """Locally persisted copy of the user's full anime list."""

    entries: list[Entry] = field(default_factory=list)
    user_id: int = 0
    user_name: str = ""
    token: str = ""
    refreshed_at: float = 0.0  # unix seconds of the last remote fetch

    def find_by_id(self, list_id: int) -> Entry | None:
        for entry in self.entries:
            if entry.list_id == list_id:
                return entry
        return None

    def find_by_mal_id(self, mal_id: int) -> Entry | None:
        if not mal_id:
            return None
        for entry in self.entries:
            if entry.mal_id == mal_id:
                return entry
        return None

    def filter_by_status(self, status: str) -> list[Entry]:
        if status == STATUS_ALL:
            return list(self.entries)
        return [e for e in self.entries if e.status == status]


@dataclass(slots=True)
class UserConfig:
    """User configuration: selection, display and policy preferences."""

    selected_id: int = 0  # list_id of the selected entry, 0 = none
    max_visible_entries: int = DEFAULT_MAX_VISIBLE_ENTRIES
    status_filter: str = STATUS_CURRENT
    status_auto_update_mode: str = AUTO_UPDATE_NORMAL
    websites: dict[int, str] = field(default_factory=dict)  # mal_id -> url
    browser_path: str = ""  # Empty = system default browser
    mode: str = APP_MODE_ANILIST
    version: int = 1


__all__ = [
    "APP_MODES",
    "APP_MODE_ANILIST",
    "APP_MODE_MAL",
    "AUTO_UPDATE_AFTER_THRESHOLD",
    "AUTO_UPDATE_MODES",
    "AUTO_UPDATE_NORMAL",
    "AUTO_UPDATE_OFF",
    "CONFIG_APP_NAME",
    "DEFAULT_MAX_VISIBLE_ENTRIES",
    "ENTRY_STATUSES",
    "SCORE_MAX",
    "SCORE_MIN",
    "STATUS_ALIASES",
    "STATUS_ALL",
    "STATUS_CHOICES_HELP",
    "STATUS_COMPLETED",
    "STATUS_CURRENT",
    "STATUS_DROPPED",
    "STATUS_LABELS",
    "STATUS_PAUSED",
    "STATUS_PLANNING",
    "STATUS_REPEATING",
    "AiringInfo",
    "AiringSchedule",
    "Entry",
    "ListCache",
    "MediaTitle",
    "SavedEntry",
    "Themes",
    "UserConfig",
    "Viewer",
    "parse_status",
]
