"""Configuration persistence: load, save and atomic JSON writes."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from platformdirs import user_config_dir

from anilist_cli.models import (
    APP_MODE_ANILIST,
    APP_MODES,
    AUTO_UPDATE_MODES,
    AUTO_UPDATE_NORMAL,
    CONFIG_APP_NAME,
    DEFAULT_MAX_VISIBLE_ENTRIES,
    ENTRY_STATUSES,
    STATUS_ALL,
    STATUS_CURRENT,
    UserConfig,
)

logger = logging.getLogger(__name__)

# ============================================================================
# Configuration Persistence
# ============================================================================
#
# Validation contract: _dict_to_config() guarantees valid output for any input:
#
#   Field                    Rule                               Handler
#   ───────────────────────  ─────────────────────────────────  ─────────────────
#   status_filter            in ENTRY_STATUSES or STATUS_ALL    _parse_choice
#   status_auto_update_mode  in AUTO_UPDATE_MODES               _parse_choice
#   mode                     in APP_MODES                       _parse_choice
#   websites                 int-like keys, str values          _parse_websites
#   scalar fields            type-checked via _safe_get()       _dict_to_config
#
CONFIG_FILENAME = "config.json"


def get_config_dir() -> Path:
    """Get the per-user configuration directory.

    Uses platformdirs for a cross-platform location:
    - Linux: ~/.config/anilist-cli/
    - macOS: ~/Library/Application Support/anilist-cli/
    - Windows: %APPDATA%/anilist-cli/
    """
    return Path(user_config_dir(CONFIG_APP_NAME))


def get_config_path() -> Path:
    """Get the path to the configuration file."""
    return get_config_dir() / CONFIG_FILENAME


def write_json_atomic(path: Path, data: Any) -> None:
    """Write JSON to ``path`` so readers see either old or new content.

    Uses write-to-tempfile + os.replace() in the target directory. Creates
    the directory if needed. Raises OSError on failure, leaving any previous
    file untouched.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    json_str = json.dumps(data, indent=2, ensure_ascii=False)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp", prefix=f".{path.stem}-")
    closed = False
    try:
        os.write(fd, json_str.encode("utf-8"))
        os.fsync(fd)
        os.close(fd)
        closed = True
        os.replace(tmp_path, path)
    except BaseException:
        if not closed:
            os.close(fd)
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def _config_to_dict(config: UserConfig) -> dict[str, Any]:
    """Serialize UserConfig to a JSON-compatible dictionary."""
    return {
        "version": config.version,
        "selected_id": config.selected_id,
        "max_visible_entries": config.max_visible_entries,
        "status_filter": config.status_filter,
        "status_auto_update_mode": config.status_auto_update_mode,
        "websites": {str(mal_id): url for mal_id, url in config.websites.items()},
        "browser_path": config.browser_path,
        "mode": config.mode,
    }


def _safe_get(data: dict, key: str, default: Any, expected_type: type) -> Any:
    """Safely get a value from dict with type validation.

    Returns the default if key is missing or value has wrong type.
    """
    value = data.get(key, default)
    # bool is an int subclass; never let true/false stand in for a number
    if expected_type is int and isinstance(value, bool):
        return default
    if not isinstance(value, expected_type):
        return default
    return value


def _parse_choice(data: dict[str, Any], key: str, choices: tuple[str, ...], default: str) -> str:
    """Read a string field restricted to ``choices``."""
    value = _safe_get(data, key, default, str)
    if value not in choices:
        logger.warning("Invalid %s %r, defaulting to %r", key, value, default)
        return default
    return value


def _parse_websites(data: dict[str, Any]) -> dict[int, str]:
    """Parse the websites section (JSON object keys are always strings)."""
    raw = _safe_get(data, "websites", {}, dict)
    result: dict[int, str] = {}
    for key, url in raw.items():
        if not isinstance(url, str) or not url:
            continue
        try:
            mal_id = int(key)
        except (TypeError, ValueError):
            logger.warning("Ignoring website override with non-numeric id %r", key)
            continue
        result[mal_id] = url
    return result


def _dict_to_config(data: dict[str, Any]) -> UserConfig:
    """Deserialize a dictionary to UserConfig with type validation."""
    return UserConfig(
        selected_id=_safe_get(data, "selected_id", 0, int),
        max_visible_entries=_safe_get(
            data, "max_visible_entries", DEFAULT_MAX_VISIBLE_ENTRIES, int
        ),
        status_filter=_parse_choice(
            data, "status_filter", (*ENTRY_STATUSES, STATUS_ALL), STATUS_CURRENT
        ),
        status_auto_update_mode=_parse_choice(
            data, "status_auto_update_mode", AUTO_UPDATE_MODES, AUTO_UPDATE_NORMAL
        ),
        websites=_parse_websites(data),
        browser_path=_safe_get(data, "browser_path", "", str),
        mode=_parse_choice(data, "mode", APP_MODES, APP_MODE_ANILIST),
        version=_safe_get(data, "version", 1, int),
    )


def load_config() -> UserConfig:
    """Load configuration from disk.

    Returns default config if file doesn't exist or is corrupted.
    Logs specific errors to help diagnose config issues.
    """
    config_path = get_config_path()

    if not config_path.exists():
        return UserConfig()

    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            logger.warning("Config file root is not an object, using defaults")
            return UserConfig()
        return _dict_to_config(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning("Config file is not valid JSON, using defaults: %s", e)
        return UserConfig()
    except (KeyError, TypeError) as e:
        logger.warning("Config file has invalid structure, using defaults: %s", e)
        return UserConfig()
    except OSError as e:
        logger.warning("Could not read config file, using defaults: %s", e)
        return UserConfig()


def save_config(config: UserConfig) -> bool:
    """Save configuration to disk atomically.

    Returns True on success, False on failure.
    """
    try:
        write_json_atomic(get_config_path(), _config_to_dict(config))
        return True
    except OSError as e:
        logger.error("Failed to save config: %s", e)
        return False


__all__ = [
    "CONFIG_APP_NAME",
    "CONFIG_FILENAME",
    "get_config_dir",
    "get_config_path",
    "load_config",
    "save_config",
    "write_json_atomic",
]
