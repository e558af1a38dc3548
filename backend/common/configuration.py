# Copyright (c) 2025 Efstratios Goudelis
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.

"""
Persistent key-value configuration.

Keys are flat dotted names (``ddns.noip.username``, ``ppm.current``) stored
in a single YAML mapping. Values written with ``set_property`` become durable
only after ``update()``, which rewrites the file atomically.
"""

import logging
import os
import tempfile
import threading
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger("configuration")

_TRUE_VALUES = ("true", "1", "t", "yes", "on")


class Configuration:
    """Thread-safe YAML-backed key-value configuration."""

    def __init__(self, path: str, defaults: Optional[Dict[str, Any]] = None):
        self.path = path
        self._lock = threading.RLock()
        self._defaults: Dict[str, Any] = dict(defaults or {})
        self._values: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            logger.info(f"No configuration file found at {self.path}, using defaults")
            return {}

        with open(self.path, "r") as f:
            loaded = yaml.safe_load(f) or {}

        if not isinstance(loaded, dict):
            logger.warning(f"Ignoring malformed configuration file {self.path}")
            return {}

        logger.info(f"Loaded {len(loaded)} configuration keys from {self.path}")
        return {str(key): value for key, value in loaded.items()}

    def get_property(self, key: str, default: Any = None) -> Any:
        with self._lock:
            if key in self._values:
                return self._values[key]
            return self._defaults.get(key, default)

    def get_int(self, key: str, default: Optional[int] = None) -> Optional[int]:
        value = self.get_property(key)
        if value is None or value == "":
            return default
        try:
            return int(value)
        except (TypeError, ValueError):
            logger.warning(f"Invalid integer for '{key}': {value!r}")
            return default

    def get_float(self, key: str, default: Optional[float] = None) -> Optional[float]:
        value = self.get_property(key)
        if value is None or value == "":
            return default
        try:
            return float(value)
        except (TypeError, ValueError):
            logger.warning(f"Invalid number for '{key}': {value!r}")
            return default

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self.get_property(key)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        return str(value).lower() in _TRUE_VALUES

    def set_property(self, key: str, value: Any):
        with self._lock:
            self._values[key] = value

    def remove(self, key: str):
        with self._lock:
            self._values.pop(key, None)

    def update(self):
        """
        Persist the current values.

        The map is written to a temporary file next to the target and renamed
        over it, so readers never observe a partially written file.
        """
        with self._lock:
            snapshot = dict(self._values)
            directory = os.path.dirname(os.path.abspath(self.path))
            os.makedirs(directory, exist_ok=True)

            fd, tmp_path = tempfile.mkstemp(prefix=".config-", suffix=".yaml", dir=directory)
            try:
                with os.fdopen(fd, "w") as f:
                    yaml.safe_dump(snapshot, f, default_flow_style=False, sort_keys=True)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_path, self.path)
            except Exception:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise
