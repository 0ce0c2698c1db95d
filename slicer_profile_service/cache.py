"""
Cacheable Assets
================

Content fetched from the network is cached on disk under
`<CACHE_DIR>/<scope>/<cache_key>`. A collector supplies fresh content on a
cache miss; returning None from the collector means "nothing new, do not
write the cache" (e.g. HTTP 304), as opposed to writing an empty value.
"""

import json
import logging
from pathlib import Path
from typing import Any, Callable, Optional, Union

from . import config

logger = logging.getLogger(__name__)


def cacheable_path(scope: str, cache_key: str, cache_dir: Union[str, Path, None] = None) -> Path:
    """Get the cache file path for a key, creating the scope directory."""
    scope_dir = Path(cache_dir or config.CACHE_DIR) / scope
    scope_dir.mkdir(parents=True, exist_ok=True)
    return scope_dir / cache_key


def _read_parsed(path: Path, parser: Callable[[str], Any]) -> Optional[Any]:
    if not path.is_file():
        return None
    try:
        return parser(path.read_text(encoding='utf-8'))
    except (OSError, ValueError) as e:
        logger.warning("Ignoring unreadable cached content %s: %s", path, e)
        return None


def load_cacheable(
    cache_key: str,
    scope: str,
    collector: Callable[[], Optional[str]],
    static_path: Union[str, Path, None] = None,
    parser: Callable[[str], Any] = json.loads,
    cache_dir: Union[str, Path, None] = None,
) -> Optional[Any]:
    """
    Load content by cache key.

    Order: cache file (collector not invoked), collector result (written
    to the cache), static fallback. Returns the parsed content or None.
    """
    cache_path = cacheable_path(scope, cache_key, cache_dir)

    cached = _read_parsed(cache_path, parser)
    if cached is not None:
        logger.debug("Cache hit for %s/%s", scope, cache_key)
        return cached

    text = collector()
    if text is not None:
        try:
            result = parser(text)
        except ValueError as e:
            logger.warning("Collected content for %s/%s is invalid: %s", scope, cache_key, e)
        else:
            try:
                cache_path.write_text(text, encoding='utf-8')
            except OSError as e:
                logger.warning("Failed to write cache file %s: %s", cache_path, e)
            return result

    if static_path is not None:
        return _read_parsed(Path(static_path), parser)

    return None
