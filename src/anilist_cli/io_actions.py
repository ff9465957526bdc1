"""Helpers for browser, clipboard and torrent-search side effects."""

from __future__ import annotations

import logging
import os
import platform
import shlex
import subprocess
import webbrowser
from urllib.parse import urlencode

logger = logging.getLogger(__name__)

NYAA_SEARCH_URL = "https://nyaa.si/"
# f=0: no filter, c=1_2: Anime - English-translated
NYAA_DEFAULT_PARAMS = {"f": "0", "c": "1_2"}
SUBPROCESS_TIMEOUT = 5  # seconds


def build_nyaa_search_url(search_term: str) -> str:
    """Build a nyaa.si torrent search URL for a title."""
    return f"{NYAA_SEARCH_URL}?{urlencode({**NYAA_DEFAULT_PARAMS, 'q': search_term})}"


def build_viewer_args(viewer_cmd: str, url: str) -> list[str]:
    """Build subprocess argument list for a configured browser command."""
    args = shlex.split(viewer_cmd, posix=os.name != "nt")
    if os.name == "nt":
        # Windows split keeps wrapping quotes when posix=False.
        args = [
            arg[1:-1] if len(arg) >= 2 and arg.startswith('"') and arg.endswith('"') else arg
            for arg in args
        ]
    if not args:
        raise ValueError("Browser command is empty")
    if "{url}" in viewer_cmd:
        return [arg.replace("{url}", url) for arg in args]
    return [*args, url]


def open_url(url: str, browser_path: str = "") -> bool:
    """Open ``url`` in the configured browser command or the system default.

    Returns True when the browser was launched.
    """
    if not browser_path:
        try:
            return webbrowser.open(url)
        except webbrowser.Error as e:
            logger.warning("Could not open %s: %s", url, e)
            return False
    try:
        subprocess.Popen(build_viewer_args(browser_path, url), shell=False)  # nosec B603
        return True
    except (OSError, ValueError) as e:
        logger.warning("Browser command %r failed: %s", browser_path, e)
        return False


def get_clipboard_command_plan(system: str) -> tuple[list[list[str]], str] | None:
    """Return clipboard command candidates and input encoding for a platform."""
    if system == "Darwin":
        return ([["pbcopy"]], "utf-8")
    if system == "Linux":
        return ([["xclip", "-selection", "clipboard"], ["xsel", "--clipboard", "--input"]], "utf-8")
    if system == "Windows":
        return ([["clip"]], "utf-16")
    return None


def copy_to_clipboard(text: str) -> bool:
    """Copy text to system clipboard. Returns True on success.

    Uses platform-specific clipboard tools with timeout protection.
    Logs failures at warning level for troubleshooting.
    """
    try:
        system = platform.system()
        plan = get_clipboard_command_plan(system)
        if plan is None:
            logger.warning("Clipboard copy failed: unsupported platform %s", system)
            return False
        commands, encoding = plan
        payload = text.encode(encoding)
        for index, command in enumerate(commands):
            try:
                subprocess.run(  # nosec B603
                    command,
                    input=payload,
                    check=True,
                    shell=False,
                    timeout=SUBPROCESS_TIMEOUT,
                )
                break
            except (FileNotFoundError, subprocess.CalledProcessError):
                if index == len(commands) - 1:
                    raise
        return True
    except (
        subprocess.CalledProcessError,
        FileNotFoundError,
        subprocess.TimeoutExpired,
        OSError,
    ) as e:
        logger.warning("Clipboard copy failed: %s", e)
        return False


__all__ = [
    "build_nyaa_search_url",
    "build_viewer_args",
    "copy_to_clipboard",
    "get_clipboard_command_plan",
    "open_url",
]
