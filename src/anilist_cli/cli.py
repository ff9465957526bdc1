"""Command-line entry point: argument parsing, command handlers, rendering."""

from __future__ import annotations

import argparse
import logging
import logging.handlers
import os
import sys
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markup import escape as escape_markup
from rich.table import Table

from anilist_cli.action_messages import (
    build_actionable_warning,
    build_episode_change_summary,
    build_error_message,
    build_time_distance,
)
from anilist_cli.anilist_api import build_authorize_url
from anilist_cli.chooser import choose_entry, choose_string
from anilist_cli.config import get_config_dir, load_config, save_config
from anilist_cli.errors import AniListCliError, AuthError, PartialSyncError, ValidationError
from anilist_cli.io_actions import build_nyaa_search_url, copy_to_clipboard, open_url
from anilist_cli.jikan import fetch_themes
from anilist_cli.models import (
    APP_MODE_MAL,
    STATUS_CHOICES_HELP,
    STATUS_LABELS,
    Entry,
    UserConfig,
    parse_status,
)
from anilist_cli.sync import SyncController, parse_entry_status, parse_progress, parse_score

logger = logging.getLogger(__name__)

TOKEN_ENV_VAR = "ANILIST_TOKEN"
CLIENT_ID_ENV_VAR = "ANILIST_CLIENT_ID"
AIRING_TIME_FORMAT = "%H:%M:%S %d-%m-%Y %Z"

ControllerFactory = Callable[..., SyncController]


@dataclass(slots=True)
class CommandContext:
    """Everything a command handler needs; built once per invocation."""

    args: argparse.Namespace
    config: UserConfig
    controller: SyncController
    console: Console


# ============================================================================
# Rendering
# ============================================================================


def _format_episodes(entry: Entry) -> str:
    return f"{entry.progress}/{entry.episodes or '?'}"


def print_entry_details(console: Console, entry: Entry) -> None:
    """Print the short summary shown after every command that touches an entry."""
    console.print(f"Title: [bright_yellow]{escape_markup(entry.title.display())}[/]")
    console.print(f"Status: [bright_cyan]{STATUS_LABELS.get(entry.status, entry.status)}[/]")
    console.print(f"Episodes: [bright_red]{_format_episodes(entry)}[/]")
    console.print(f"Score: [bright_magenta]{entry.score}[/]")


def render_list(
    console: Console, entries: list[Entry], selected_id: int, visible: int
) -> None:
    """Print the newest ``visible`` entries, most recently updated last."""
    table = Table(box=None, pad_edge=False)
    table.add_column("No", justify="right")
    table.add_column("Title", overflow="ellipsis", max_width=64)
    table.add_column("Eps", justify="right")
    table.add_column("Score", justify="right")
    for index in range(visible - 1, -1, -1):
        entry = entries[index]
        style = "bold bright_yellow" if entry.list_id == selected_id else None
        table.add_row(
            str(index + 1),
            escape_markup(entry.title.display()),
            _format_episodes(entry),
            str(entry.score),
            style=style,
        )
    console.print(table)


def _print_warnings(console: Console, warnings: list[AniListCliError]) -> None:
    for warning in warnings:
        console.print(
            build_actionable_warning(str(warning), next_step=warning.next_step),
            style="yellow",
            markup=False,
        )


# ============================================================================
# Command handlers
# ============================================================================


def _cmd_list(ctx: CommandContext) -> int:
    cache = ctx.controller.load()
    status = ctx.config.status_filter
    if ctx.args.status:
        parsed = parse_status(ctx.args.status)
        if parsed is None:
            raise ValidationError(
                f"invalid status filter {ctx.args.status!r}",
                next_step=f"use one of {STATUS_CHOICES_HELP}|all",
            )
        status = parsed
    entries = sorted(cache.filter_by_status(status), key=lambda e: e.updated_at, reverse=True)

    visible = ctx.args.max or ctx.config.max_visible_entries
    if ctx.args.all or visible < 0 or visible > len(entries):
        visible = len(entries)

    render_list(ctx.console, entries, ctx.config.selected_id, visible)
    return 0


def _cmd_episodes(ctx: CommandContext) -> int:
    value = parse_progress(ctx.args.n) if ctx.args.n is not None else None
    result = ctx.controller.set_progress(value, search_text=ctx.args.entry)
    ctx.console.print("Updated successfully")
    print_entry_details(ctx.console, result.entry)
    ctx.console.print(
        f"Progress: {build_episode_change_summary(result.previous.progress, result.entry.progress)}"
    )
    if result.entry.status != result.previous.status:
        ctx.console.print(
            f"Status changed to [bright_cyan]{STATUS_LABELS[result.entry.status]}[/]"
        )
    return 0


def _cmd_status(ctx: CommandContext) -> int:
    status = parse_entry_status(ctx.args.status_value)
    result = ctx.controller.set_status(status, search_text=ctx.args.entry)
    ctx.console.print("Updated successfully")
    print_entry_details(ctx.console, result.entry)
    return 0


def _cmd_score(ctx: CommandContext) -> int:
    score = parse_score(ctx.args.score_value)
    result = ctx.controller.set_score(score, search_text=ctx.args.entry)
    ctx.console.print("Updated successfully")
    print_entry_details(ctx.console, result.entry)
    return 0


def _cmd_select(ctx: CommandContext) -> int:
    entry = ctx.controller.select(" ".join(ctx.args.title))
    ctx.console.print("Selected entry:")
    print_entry_details(ctx.console, entry)
    return 0


def _search_title(ctx: CommandContext, entry: Entry) -> str:
    if not ctx.args.alt:
        return entry.title.romaji or entry.title.display()
    picked = choose_string(entry.title.variants(), prompt="Select desired title")
    if not picked:
        raise ValidationError("no alternative title was picked", next_step="re-run and pick a title")
    return picked


def _cmd_nyaa(ctx: CommandContext) -> int:
    entry = ctx.controller.resolve_target()
    url = build_nyaa_search_url(_search_title(ctx, entry))
    ctx.console.print(url, markup=False, soft_wrap=True)
    return 0


def _cmd_nyaa_web(ctx: CommandContext) -> int:
    entry = ctx.controller.resolve_target()
    url = build_nyaa_search_url(_search_title(ctx, entry))
    if not open_url(url, ctx.config.browser_path):
        ctx.console.print(f"Could not launch a browser; open manually: {url}", markup=False)
        return 1
    ctx.console.print("Searched for:")
    print_entry_details(ctx.console, entry)
    return 0


def _cmd_websites(ctx: CommandContext) -> int:
    cache = ctx.controller.load()
    if not ctx.config.websites:
        ctx.console.print("No URLs set")
        return 0
    for mal_id, url in ctx.config.websites.items():
        entry = cache.find_by_mal_id(mal_id)
        title = entry.title.display() if entry is not None else ""
        ctx.console.print(
            f"{mal_id:>6} ({escape_markup(title)}): [bright_red]{escape_markup(url)}[/]"
        )
    return 0


def _cmd_web(ctx: CommandContext) -> int:
    if ctx.args.url == "get-all":
        return _cmd_websites(ctx)

    entry = ctx.controller.resolve_target()
    if ctx.args.url:
        if not entry.mal_id:
            raise ValidationError(
                "this entry has no MyAnimeList id to attach a URL to",
                next_step="select another entry",
            )
        ctx.config.websites[entry.mal_id] = ctx.args.url
        if not save_config(ctx.config):
            raise ValidationError("the URL could not be saved", next_step="check the config directory")
        ctx.console.print(f"Entry: [bright_yellow]{escape_markup(entry.title.display())}[/]")
        ctx.console.print(f"URL: [bright_red]{escape_markup(ctx.args.url)}[/]")
        return 0

    if ctx.args.clear:
        ctx.config.websites.pop(entry.mal_id, None)
        if not save_config(ctx.config):
            raise ValidationError(
                "the URL could not be cleared", next_step="check the config directory"
            )
        ctx.console.print("Entry cleared")
        return 0

    url = ctx.config.websites.get(entry.mal_id)
    if url is None:
        ctx.console.print("Nothing to open")
        return 0
    open_url(url, ctx.config.browser_path)
    ctx.console.print("Opened website for:")
    print_entry_details(ctx.console, entry)
    ctx.console.print(f"URL: [cyan]{escape_markup(url)}[/]")
    return 0


def _cmd_airing(ctx: CommandContext) -> int:
    entry = ctx.controller.resolve_target()
    schedule = ctx.controller.next_airing(entry)
    airing_at = datetime.fromtimestamp(schedule.airing_at).astimezone()
    ctx.console.print(f"Title: [bright_yellow]{escape_markup(entry.title.display())}[/]")
    ctx.console.print(f"Episode: [bright_red]{schedule.episode}[/]")
    ctx.console.print(f"Airing at: [bright_cyan]{airing_at.strftime(AIRING_TIME_FORMAT)}[/]")
    distance = build_time_distance(schedule.time_until_airing)
    if schedule.time_until_airing < 0:
        ctx.console.print(f"Episode aired [bright_cyan]{distance}[/] ago")
    else:
        ctx.console.print(f"Time until airing: [bright_cyan]{distance}[/]")
    return 0


def _cmd_music(ctx: CommandContext) -> int:
    entry = ctx.controller.resolve_target()
    with ctx.console.status("Fetching themes..."):
        themes = fetch_themes(entry.mal_id)

    def _print_themes(label: str, items: list[str]) -> None:
        ctx.console.print(f"{label}:")
        for theme in items:
            ctx.console.print(f"  [bright_yellow]{escape_markup(theme)}[/]")

    _print_themes("Openings", themes.openings)
    ctx.console.print()
    _print_themes("Endings", themes.endings)
    return 0


def _cmd_copy(ctx: CommandContext) -> int:
    entry = ctx.controller.resolve_target()
    what = ctx.args.what.lower()
    if what == "title":
        text = choose_string(entry.title.variants(), prompt="Select desired title")
        if not text:
            raise ValidationError("no title was picked", next_step="re-run and pick a title")
    else:
        text = ctx.config.websites.get(entry.mal_id)
        if not text:
            raise ValidationError("no URL to copy", next_step="set one with `al web <url>`")
    if not copy_to_clipboard(text):
        ctx.console.print("Failed to copy to clipboard (install xclip or xsel on Linux)")
        return 1
    ctx.console.print(f"Text [bright_yellow]{escape_markup(text)}[/] copied into clipboard")
    return 0


def _cmd_switch_mode(ctx: CommandContext) -> int:
    ctx.config.mode = APP_MODE_MAL
    if not save_config(ctx.config):
        raise ValidationError("the app mode could not be saved", next_step="check the config directory")
    ctx.console.print("App mode switched to MyAnimeList")
    return 0


def _cmd_auth(ctx: CommandContext) -> int:
    token = ctx.args.token
    if not token:
        client_id = ctx.args.client_id or os.environ.get(CLIENT_ID_ENV_VAR, "")
        if not client_id:
            raise ValidationError(
                "an AniList API client id is required",
                next_step=(
                    "create a client at https://anilist.co/settings/developer and pass "
                    f"--client-id or set {CLIENT_ID_ENV_VAR}"
                ),
            )
        url = build_authorize_url(client_id)
        ctx.console.print("Authorize the application in your browser:")
        ctx.console.print(url, markup=False, soft_wrap=True)
        open_url(url, ctx.config.browser_path)
        try:
            token = input("Paste your access token: ").strip()
        except EOFError as e:
            raise AuthError(
                "no access token was entered",
                next_step="re-run `al auth` in an interactive terminal or pass --token",
            ) from e
    cache = ctx.controller.login(token)
    ctx.console.print(
        f"Logged in as [bright_yellow]{escape_markup(cache.user_name)}[/]; "
        f"{len(cache.entries)} entries cached"
    )
    return 0


# ============================================================================
# Bootstrap
# ============================================================================


def _configure_logging(debug: bool) -> None:
    """Configure logging. When debug=True, logs to file at DEBUG level."""
    if not debug:
        # Default: keep log records out of command output
        logging.disable(logging.CRITICAL)
        return

    log_dir = get_config_dir()
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "debug.log"

    handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=5 * 1024 * 1024,
        backupCount=3,
        encoding="utf-8",
    )
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s %(name)s %(levelname)s %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    logging.root.addHandler(handler)
    logging.root.setLevel(logging.DEBUG)


def _configure_color_mode(no_color: bool) -> None:
    """Configure environment hints for terminal color behavior."""
    if no_color:
        os.environ["NO_COLOR"] = "1"
        os.environ.pop("FORCE_COLOR", None)


def _build_controller(
    config: UserConfig, *, token: str, force_refresh: bool, console: Console
) -> SyncController:
    return SyncController(
        config=config,
        token=token,
        force_refresh=force_refresh,
        chooser=choose_entry,
        wait=lambda label: console.status(f"{label}..."),
    )


def _add_entry_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-e",
        "--entry",
        default=None,
        help="Target the entry matching this title instead of the selected one",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="al", description="Manage your AniList anime list from the terminal"
    )
    parser.add_argument("-r", "--refresh", action="store_true", help="Refresh the cached list")
    parser.add_argument("--max", type=int, default=None, help="Visible entries threshold")
    parser.add_argument(
        "-a", "--all", action="store_true", help="Display all entries; same as --max -1"
    )
    parser.add_argument(
        "--status",
        default=None,
        help=f"Display only entries with the given status [{STATUS_CHOICES_HELP}|all]",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging to file (~/.config/anilist-cli/debug.log)",
    )
    parser.add_argument("--no-color", action="store_true", help="Disable terminal colors")
    sub = parser.add_subparsers(dest="command", metavar="<command>")

    p = sub.add_parser(
        "eps",
        aliases=["episodes"],
        help="Set watched episodes; increases by one when n is omitted",
    )
    p.add_argument("n", nargs="?", default=None)
    _add_entry_option(p)
    p.set_defaults(handler=_cmd_episodes)

    p = sub.add_parser("status", help="Set your status for the selected entry")
    p.add_argument("status_value", metavar="status", help=STATUS_CHOICES_HELP)
    _add_entry_option(p)
    p.set_defaults(handler=_cmd_status)

    p = sub.add_parser("score", help="Set your rating for the selected entry")
    p.add_argument("score_value", metavar="score", help="0-10")
    _add_entry_option(p)
    p.set_defaults(handler=_cmd_score)

    p = sub.add_parser("sel", aliases=["select"], help="Select an entry")
    p.add_argument("title", nargs="*", help="Entry title (interactive choice when omitted)")
    p.set_defaults(handler=_cmd_select)

    p = sub.add_parser("nyaa", aliases=["n"], help="Print the torrent search URL")
    p.add_argument("--alt", action="store_true", help="Choose an alternative title")
    p.set_defaults(handler=_cmd_nyaa)

    p = sub.add_parser("nyaa-web", aliases=["nw"], help="Open torrent search in browser")
    p.add_argument("--alt", action="store_true", help="Choose an alternative title")
    p.set_defaults(handler=_cmd_nyaa_web)

    p = sub.add_parser(
        "web",
        aliases=["website", "open", "url"],
        help="Open the URL of the selected entry, set it, or `get-all` to list every URL",
    )
    p.add_argument("url", nargs="?", default=None)
    p.add_argument("--clear", action="store_true", help="Clear the URL for the selected entry")
    p.set_defaults(handler=_cmd_web)

    p = sub.add_parser("airing", aliases=["broadcast"], help="Print airing time of next episode")
    p.set_defaults(handler=_cmd_airing)

    p = sub.add_parser("music", help="Print opening and ending themes")
    p.set_defaults(handler=_cmd_music)

    p = sub.add_parser("copy", help="Copy a value into the system clipboard")
    p.add_argument("what", choices=["title", "url"])
    p.set_defaults(handler=_cmd_copy)

    p = sub.add_parser("mal", help="Switch app mode to MyAnimeList")
    p.set_defaults(handler=_cmd_switch_mode)

    p = sub.add_parser("auth", aliases=["login"], help="Log in to AniList")
    p.add_argument("--client-id", default=None, help="AniList API client id")
    p.add_argument("--token", default=None, help="Use this access token directly")
    p.set_defaults(handler=_cmd_auth)

    parser.set_defaults(handler=_cmd_list)
    return parser


def main(
    argv: list[str] | None = None,
    *,
    load_config_fn: Callable[[], UserConfig] = load_config,
    controller_factory: ControllerFactory = _build_controller,
    configure_logging_fn: Callable[[bool], None] = _configure_logging,
    console: Console | None = None,
    err_console: Console | None = None,
) -> int:
    """Main entry point. Returns exit code."""
    args = build_parser().parse_args(argv)
    _configure_color_mode(args.no_color)
    configure_logging_fn(args.debug)
    logger.debug("anilist-cli starting, cwd=%s", Path.cwd())

    console = console or Console()
    err_console = err_console or Console(stderr=True)

    config = load_config_fn()
    controller = controller_factory(
        config,
        token=os.environ.get(TOKEN_ENV_VAR, ""),
        force_refresh=args.refresh,
        console=console,
    )
    ctx = CommandContext(args=args, config=config, controller=controller, console=console)

    try:
        return args.handler(ctx)
    except PartialSyncError as e:
        logger.warning("Partial sync: %s", e)
        err_console.print(build_error_message(e), style="yellow", markup=False)
        print_entry_details(console, e.entry)
        return 1
    except AniListCliError as e:
        logger.info("Command failed: %s", e)
        err_console.print(build_error_message(e), style="red", markup=False)
        return 1
    except KeyboardInterrupt:
        err_console.print("Interrupted")
        return 130
    finally:
        _print_warnings(err_console, controller.warnings)


__all__ = [
    "build_parser",
    "main",
    "print_entry_details",
    "render_list",
]


if __name__ == "__main__":
    sys.exit(main())
