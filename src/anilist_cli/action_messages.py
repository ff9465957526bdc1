"""User-facing copy builders for command confirmations and failures."""

from __future__ import annotations

from anilist_cli.errors import AniListCliError


def _ensure_sentence(text: str) -> str:
    """Return text with terminal sentence punctuation."""
    cleaned = text.strip()
    if not cleaned:
        return ""
    if cleaned.endswith((".", "!", "?")):
        return cleaned
    return f"{cleaned}."


def build_actionable_error(
    action: str,
    *,
    next_step: str,
    why: str | None = None,
) -> str:
    """Build a 2-3 line actionable error message."""
    lines = [f"Could not {action.strip()}."]
    if why:
        lines.append(f"Why: {_ensure_sentence(why)}")
    lines.append(build_next_step_hint(next_step))
    return "\n".join(lines)


def build_next_step_hint(next_step: str) -> str:
    """Build a canonical next-step guidance line."""
    return f"Next step: {_ensure_sentence(next_step)}"


def build_actionable_warning(
    message: str,
    *,
    next_step: str,
    why: str | None = None,
) -> str:
    """Build a 2-3 line actionable warning message."""
    lines = [_ensure_sentence(message)]
    if why:
        lines.append(f"Why: {_ensure_sentence(why)}")
    lines.append(build_next_step_hint(next_step))
    return "\n".join(lines)


def build_error_message(error: AniListCliError) -> str:
    """Render an application error as an actionable message."""
    return build_actionable_error(error.action, why=str(error), next_step=error.next_step)


def build_episode_change_summary(before: int, after: int) -> str:
    """Describe a progress change, e.g. ``11 -> 12 (+1)``."""
    delta = after - before
    sign = "+" if delta >= 0 else ""
    return f"{before} -> {after} ({sign}{delta})"


def build_time_distance(seconds: int) -> str:
    """Format a duration in seconds as ``2d 3h 4m 5s``."""
    seconds = abs(seconds)
    days, rem = divmod(seconds, 86400)
    hours, rem = divmod(rem, 3600)
    minutes, secs = divmod(rem, 60)
    parts = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if secs or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)


__all__ = [
    "build_actionable_error",
    "build_actionable_warning",
    "build_episode_change_summary",
    "build_error_message",
    "build_next_step_hint",
    "build_time_distance",
]
