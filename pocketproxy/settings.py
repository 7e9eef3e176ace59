"""
Codec settings, read from a JSON file in the user config directory.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, TypeVar

from platformdirs import user_config_dir

T = TypeVar("T")

config_dir = Path(user_config_dir("pocketproxy"))
settings_file = config_dir / "codec.json"

log = logging.getLogger(__name__)


@dataclass
class CodecSettings:
    # per tag tree parse, in bytes
    nbt_allocation_limit: int = 2 * 1024 * 1024
    # keep decoded game rule values instead of dropping them
    retain_game_rule_values: bool = False
    log_level: str = "WARNING"


class SettingsStorage:
    """Handles persistent storage of setting values."""

    def __init__(self, storage_file: Path = settings_file):
        self.storage_file = Path(storage_file)
        self._data: Dict[str, Any] = {}
        self._load()

    def _load(self) -> None:
        if self.storage_file.exists():
            try:
                with open(self.storage_file, "r") as f:
                    self._data = json.load(f)
            except (json.JSONDecodeError, IOError) as e:
                log.warning("ignoring unreadable %s: %s", self.storage_file, e)
                self._data = {}

            if not isinstance(self._data, dict):
                log.warning("ignoring %s: not a JSON object", self.storage_file)
                self._data = {}

    def _save(self) -> None:
        try:
            self.storage_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.storage_file, "w") as f:
                json.dump(self._data, f, indent=2)
        except IOError as e:
            log.warning("could not save %s: %s", self.storage_file, e)

    def get_setting(self, key: str, default: T) -> T:
        return self._data.get(key, default)

    def set_setting(self, key: str, value: Any) -> None:
        self._data[key] = value
        self._save()


def load_settings(path: Path | str | None = None) -> CodecSettings:
    """Build CodecSettings from the config file; missing keys keep defaults."""
    storage = SettingsStorage(Path(path) if path is not None else settings_file)
    defaults = CodecSettings()

    values = {}
    for f in fields(CodecSettings):
        default = getattr(defaults, f.name)
        value = storage.get_setting(f.name, default)
        if type(value) is not type(default):
            log.warning(
                "setting %s should be %s, got %r; using %r",
                f.name,
                type(default).__name__,
                value,
                default,
            )
            value = default
        values[f.name] = value

    return CodecSettings(**values)


def configure_logging(settings: CodecSettings) -> None:
    logging.getLogger("pocketproxy").setLevel(settings.log_level.upper())
