from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from rimages.app.state import AppState, clamp_quality, parse_dimension
from rimages.core.models import OUTPUT_FORMATS, normalize_format

logger = logging.getLogger(__name__)

SETTINGS_FILE_NAME = "settings.json"
SETTINGS_VERSION = 1
APP_DIR_NAME = "Rimages"
PERSISTED_KEYS = ("output_dir", "format", "quality", "max_width", "max_height")


def _resolve_settings_dir() -> Path:
    if os.name == "nt":
        appdata = os.environ.get("APPDATA")
        if appdata:
            return Path(appdata) / APP_DIR_NAME
        return Path.home() / "AppData" / "Roaming" / APP_DIR_NAME

    xdg_config_home = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config_home:
        return Path(xdg_config_home) / APP_DIR_NAME.lower()
    return Path.home() / ".config" / APP_DIR_NAME.lower()


def get_settings_path() -> Path:
    return _resolve_settings_dir() / SETTINGS_FILE_NAME


def default_output_dir() -> str:
    downloads = Path.home() / "Downloads"
    return str(downloads if downloads.is_dir() else Path.home())


def load_app_settings(defaults: dict[str, Any] | None = None) -> dict[str, Any]:
    result: dict[str, Any] = dict(defaults or {})
    settings_path = get_settings_path()
    if not settings_path.is_file():
        return result

    try:
        payload = json.loads(settings_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Failed to load settings from %s: %s", settings_path, e)
        return result

    if not isinstance(payload, dict):
        return result

    raw_settings = payload.get("settings")
    if isinstance(raw_settings, dict):
        result.update(raw_settings)
    return result


def save_app_settings(settings: dict[str, Any]) -> bool:
    settings_path = get_settings_path()
    try:
        settings_path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "version": SETTINGS_VERSION,
            "settings": settings,
        }
        settings_path.write_text(
            json.dumps(payload, ensure_ascii=False, indent=2),
            encoding="utf-8",
        )
        return True
    except OSError as e:
        logger.error("Failed to save settings to %s: %s", settings_path, e)
        return False


def state_from_settings(settings: dict[str, Any]) -> AppState:
    """Build session state from loaded settings, ignoring values that no longer validate."""
    state = AppState()
    fmt = normalize_format(str(settings.get("format", state.format)))
    if fmt in OUTPUT_FORMATS:
        state.format = fmt
    state.quality = clamp_quality(settings.get("quality", state.quality))
    state.max_width = parse_dimension(settings.get("max_width"))
    state.max_height = parse_dimension(settings.get("max_height"))
    output_dir = settings.get("output_dir")
    state.output_dir = str(output_dir) if output_dir else default_output_dir()
    return state


def settings_from_state(state: AppState) -> dict[str, Any]:
    return {key: getattr(state, key) for key in PERSISTED_KEYS}
