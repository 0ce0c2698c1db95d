"""
User Settings Store
===================

Small key/value store persisted as JSON, for per-user session state that
does not belong in a profile catalog (e.g. which printers are open).
"""

import json
import logging
import threading
from pathlib import Path
from typing import Dict, Optional, Union

from .utils import write_json_atomic

logger = logging.getLogger(__name__)


class UserSettings:
    """String key/value store backed by a single JSON file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = threading.Lock()
        self._values: Optional[Dict[str, str]] = None

    def _load(self) -> Dict[str, str]:
        if self._values is None:
            self._values = {}
            try:
                if self.path.exists():
                    with open(self.path, 'r', encoding='utf-8') as f:
                        data = json.load(f)
                    if isinstance(data, dict):
                        self._values = {str(k): str(v) for k, v in data.items()}
            except (OSError, ValueError) as e:
                logger.warning("Failed to load user settings from %s: %s", self.path, e)
        return self._values

    def get(self, key: str) -> Optional[str]:
        """Get a value, None when unset."""
        with self._lock:
            return self._load().get(key)

    def set(self, key: str, value: str):
        """Set a value and persist the store."""
        with self._lock:
            values = self._load()
            values[key] = value
            write_json_atomic(self.path, values)
