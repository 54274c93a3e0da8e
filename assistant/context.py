"""Application context: single source of truth for all runtime paths.

Every service and router receives this object instead of individual path
strings.  Properties always return the *current* value, so updating
``data_dir`` at runtime propagates to every consumer that reads it.
"""

from __future__ import annotations

import json
import os
import threading


class AppContext:
    """Holds runtime directory paths and config access for the application."""

    def __init__(
        self,
        *,
        cwd: str,
        data_dir: str,
        default_data_dir: str,
        config_path: str,
    ) -> None:
        self._lock = threading.Lock()
        self._cwd = cwd
        self._data_dir = data_dir
        self._default_data_dir = default_data_dir
        self._config_path = config_path
        self._app_dir = os.path.dirname(__file__)

    # ── data_dir (hot-swappable) ───────────────────────────────────────

    @property
    def data_dir(self) -> str:
        with self._lock:
            return self._data_dir

    @data_dir.setter
    def data_dir(self, value: str) -> None:
        with self._lock:
            self._data_dir = value

    @property
    def default_data_dir(self) -> str:
        return self._default_data_dir

    @property
    def meetings_dir(self) -> str:
        return os.path.join(self.data_dir, "meetings")

    @property
    def uploads_dir(self) -> str:
        return os.path.join(self.data_dir, "uploads")

    # ── Config (always in the app-level default data dir) ──────────────

    @property
    def config_path(self) -> str:
        return self._config_path

    def read_config(self) -> dict:
        """Read config.json, returning an empty dict if it does not exist."""
        if not os.path.exists(self._config_path):
            return {}
        with open(self._config_path, "r", encoding="utf-8") as config_file:
            data = json.load(config_file)
        return data if isinstance(data, dict) else {}

    def update_config_section(self, section: str, values: dict) -> dict:
        """Replace one top-level section of config.json and return the full config."""
        with self._lock:
            data = self.read_config()
            data[section] = values
            os.makedirs(os.path.dirname(self._config_path), exist_ok=True)
            temp_path = f"{self._config_path}.tmp"
            with open(temp_path, "w", encoding="utf-8") as config_file:
                json.dump(data, config_file, indent=2)
            os.replace(temp_path, self._config_path)
            return data

    @property
    def version_path(self) -> str:
        return os.path.join(os.path.dirname(self._app_dir), "VERSION.txt")

    # ── Logs (stay in cwd, not in data_dir) ────────────────────────────

    @property
    def logs_dir(self) -> str:
        return os.path.join(self._cwd, "logs")

    def ensure_dirs(self) -> None:
        """Create all required directories if they don't exist."""
        for d in (
            self.data_dir,
            self.meetings_dir,
            self.uploads_dir,
            self.logs_dir,
        ):
            os.makedirs(d, exist_ok=True)
