from __future__ import annotations

import json
from copy import deepcopy
from pathlib import Path
from typing import Any, Mapping

from complementry.ai.settings_schema import default_complementry_settings


SETTINGS_SECTION = "complementry"


class SettingsStoreError(RuntimeError):
    """Raised when a settings file cannot be loaded."""


def deep_merge_defaults(data: Mapping[str, Any], defaults: Mapping[str, Any]) -> dict[str, Any]:
    """Merge defaults into data without overwriting explicitly provided values."""
    merged = deepcopy(dict(data))
    for key, default_value in defaults.items():
        if key not in merged:
            merged[key] = deepcopy(default_value)
            continue
        current = merged[key]
        if isinstance(current, dict) and isinstance(default_value, dict):
            merged[key] = deep_merge_defaults(current, default_value)
    return merged


def dot_get(data: Mapping[str, Any], key: str, default: Any = None) -> Any:
    if not key:
        return data
    current: Any = data
    for part in key.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return default
        current = current[part]
    return current


class JsonSettingsStore:
    """Read-only JSON settings file with defaults and dot-key lookup.

    The add-on never writes settings back; the host owns persistence.
    """

    def __init__(self, path: Path | str | None, defaults: Mapping[str, Any] | None = None) -> None:
        self.path = Path(path) if path else None
        if defaults is None:
            defaults = {SETTINGS_SECTION: dict(default_complementry_settings())}
        self.defaults: dict[str, Any] = deepcopy(dict(defaults))
        self.data: dict[str, Any] = deep_merge_defaults({}, self.defaults)
        self.last_error: str | None = None

    def load(self, *, strict: bool = False) -> dict[str, Any]:
        """Load the file, keeping the previous data when it is invalid.

        With ``strict=True`` an unreadable or malformed file raises
        ``SettingsStoreError`` instead.
        """
        self.last_error = None
        if self.path is None or not self.path.exists():
            self.data = deep_merge_defaults({}, self.defaults)
            return self.data

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            self.last_error = f"Could not read settings file '{self.path}': {exc}"
            if strict:
                raise SettingsStoreError(self.last_error) from exc
            return self.data

        if not isinstance(raw, dict):
            self.last_error = (
                f"Settings root in '{self.path}' must be a JSON object, "
                f"found {type(raw).__name__}."
            )
            if strict:
                raise SettingsStoreError(self.last_error)
            return self.data

        self.data = deep_merge_defaults(raw, self.defaults)
        return self.data

    def get(self, key: str, default: Any = None) -> Any:
        return dot_get(self.data, key, default)

    def section(self, name: str = SETTINGS_SECTION) -> dict[str, Any]:
        value = self.get(name, {})
        return deepcopy(value) if isinstance(value, dict) else {}
