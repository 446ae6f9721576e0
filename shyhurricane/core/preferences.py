"""
Persistent key/value preferences

A small typed store for operator settings. Values are kept in memory and
written back to a YAML file on every change so they survive restarts.
"""

import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Optional
import yaml
import structlog

logger = structlog.get_logger()


class YamlPreferences:
    """
    YAML-backed preferences store

    Provides typed getters that return None when a key is absent or holds a
    value of another type, and setters that persist immediately.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self.logger = logger.bind(component="preferences", file=str(self.path))
        self._lock = threading.Lock()
        self._values = self._load()

    def _load(self) -> Dict[str, Any]:
        """Load preferences from disk, starting empty if the file is missing or unreadable"""
        if not self.path.exists():
            return {}

        try:
            with open(self.path, 'r') as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            self.logger.error("Failed to load preferences", error=str(e))
            return {}

        if not isinstance(data, dict):
            self.logger.warning("Ignoring preferences file without a mapping at the top level")
            return {}

        return data

    def _save(self, values: Dict[str, Any]):
        """Write to a sibling temp file and swap it in, so readers never see a partial file"""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, 'w') as f:
                yaml.safe_dump(values, f, default_flow_style=False, sort_keys=True)
            os.replace(tmp_name, self.path)
        except Exception:
            os.unlink(tmp_name)
            raise

    def get_bool(self, key: str) -> Optional[bool]:
        value = self._values.get(key)
        return value if isinstance(value, bool) else None

    def get_string(self, key: str) -> Optional[str]:
        value = self._values.get(key)
        return value if isinstance(value, str) else None

    def set_bool(self, key: str, value: bool):
        self.set_many({key: bool(value)})

    def set_string(self, key: str, value: str):
        self.set_many({key: str(value)})

    def set_many(self, values: Dict[str, Any]):
        """
        Store several values with a single file write

        Memory is only updated once the file has been replaced.

        Raises:
            OSError: if the file cannot be written
        """
        with self._lock:
            updated = {**self._values, **values}
            self._save(updated)
            self._values = updated
        self.logger.debug("Preferences saved", keys=sorted(values))
