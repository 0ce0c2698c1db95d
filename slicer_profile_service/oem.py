"""
OEM Profiles
============

Index of public printer devices (make -> model -> device) and loading of
their OEM settings documents through the download cache.
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Any, List, Optional, Union

from .cache import cacheable_path, load_cacheable
from .config import PROFILE_EXTENSION, PROFILES_SUBDIR
from .models import PrinterSettings
from .utils import write_json_atomic

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PublicDevice:
    """A printer model with a public OEM profile."""

    make: str
    model: str
    cache_key: str
    profile_token: str = ''

    @classmethod
    def from_dict(cls, make: str, model: str, data: Dict[str, Any]) -> 'PublicDevice':
        return cls(
            make=make,
            model=model,
            cache_key=str(data.get('cache_key') or f'{model}{PROFILE_EXTENSION}'),
            profile_token=str(data.get('profile_token') or ''),
        )


class OemProfiles:
    """Public device index persisted as JSON."""

    def __init__(self, path: Union[str, Path, None] = None, devices: Dict[str, Dict[str, PublicDevice]] = None):
        self.path = Path(path) if path else None
        self.devices: Dict[str, Dict[str, PublicDevice]] = devices or {}

    @classmethod
    def load(cls, path: Union[str, Path]) -> 'OemProfiles':
        """Load the index; a missing or corrupt file gives an empty index."""
        index = cls(path)
        try:
            if index.path.exists():
                with open(index.path, 'r', encoding='utf-8') as f:
                    index.update(json.load(f))
        except (OSError, ValueError, AttributeError) as e:
            logger.warning("Failed to load OEM profile index %s: %s", path, e)
        return index

    def update(self, raw: Dict[str, Dict[str, Dict[str, Any]]]):
        """Replace the index from its JSON shape."""
        self.devices = {
            make: {
                model: PublicDevice.from_dict(make, model, data or {})
                for model, data in models.items()
            }
            for make, models in raw.items()
        }

    def save(self):
        if self.path is None:
            return
        write_json_atomic(self.path, {
            make: {
                model: {'cache_key': d.cache_key, 'profile_token': d.profile_token}
                for model, d in models.items()
            }
            for make, models in self.devices.items()
        })

    def get(self, make: str, model: str) -> Optional[PublicDevice]:
        return self.devices.get(make, {}).get(model)

    def makes(self) -> List[str]:
        return sorted(self.devices)

    def models(self, make: str) -> List[str]:
        return sorted(self.devices.get(make, {}))


def load_oem_settings(
    device: PublicDevice,
    make: str,
    model: str,
    downloader: Optional[Callable[[str], Optional[str]]] = None,
    cache_dir: Union[str, Path, None] = None,
    static_dir: Union[str, Path, None] = None,
) -> Optional[PrinterSettings]:
    """
    Load the OEM settings for a public device.

    Downloads only when no cached copy exists; a download yielding nothing
    falls back to the bundled `Profiles/<make>/<model>.printer`.
    """
    cache_scope = os.path.join('public-profiles', make)
    cache_path = cacheable_path(cache_scope, device.cache_key, cache_dir)

    def collector() -> Optional[str]:
        # None skips the cache write and lets the cache/static copy be used
        if cache_path.exists() or downloader is None:
            return None
        return downloader(device.profile_token)

    static_path = None
    if static_dir is not None:
        static_path = Path(static_dir) / PROFILES_SUBDIR / make / f'{model}{PROFILE_EXTENSION}'

    return load_cacheable(
        device.cache_key,
        cache_scope,
        collector,
        static_path=static_path,
        parser=lambda text: PrinterSettings.from_dict(json.loads(text)),
        cache_dir=cache_dir,
    )
