"""Remembered preferences, stored as a flat JSON object.

The conversion core never reads this; the CLI and web layer look values up
here and pass plain booleans and paths in.
"""

import json
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

SETTINGS_STORE_FILE = "settings.json"

LAST_OUTPUT_DIR = "lastOutputDir"
ADVANCED_MODE = "advancedMode"
AUTO_REVEAL_AND_EXIT = "autoRevealAndExit"
ENABLE_CODEC_SELECTION = "enableCodecSelection"


def default_settings_path() -> Path:
    return Path.home() / ".config" / "clipwizard" / SETTINGS_STORE_FILE


class PreferenceStore:
    """Key/value preferences with explicit ``save``."""

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path) if path else default_settings_path()
        self._values: dict[str, Any] = {}
        self.load()

    def load(self) -> None:
        if not self.path.exists():
            self._values = {}
            return
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable settings file {self.path}: {e}")
            data = {}
        self._values = data if isinstance(data, dict) else {}

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self._values, indent=2), encoding="utf-8")

    def as_dict(self) -> dict[str, Any]:
        return dict(self._values)
