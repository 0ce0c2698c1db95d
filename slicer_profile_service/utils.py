"""
Shared helpers for naming and file persistence.
"""

import json
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Iterable, Union

_SUFFIX_PATTERN = re.compile(r'^(?P<base>.*?) \((?P<number>\d+)\)$')


def get_non_colliding_name(name: str, existing_names: Iterable[str]) -> str:
    """
    Return a name not present in existing_names.

    Collisions get a numeric suffix: "Ender3" -> "Ender3 (1)", and a name
    that already carries a suffix keeps counting from its base.
    """
    existing = set(existing_names)
    if name not in existing:
        return name

    match = _SUFFIX_PATTERN.match(name)
    base = match.group('base') if match else name

    counter = 1
    while True:
        candidate = f'{base} ({counter})'
        if candidate not in existing:
            return candidate
        counter += 1


def file_system_safe_name(name: str) -> str:
    """Convert a user name to a safe directory/file name component."""
    sanitized = re.sub(r'[<>:"/\\|?*\s]', '_', name or '')
    return sanitized.strip('. ')


def write_json_atomic(path: Union[str, Path], data: Any):
    """Write JSON to path by replacing the whole file in one step."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    # One temp file per write; concurrent writers must not share it
    tmp = tempfile.NamedTemporaryFile(
        'w', encoding='utf-8', dir=path.parent,
        prefix=path.name + '.', suffix='.tmp', delete=False,
    )
    try:
        with tmp as f:
            json.dump(data, f, indent=2)
            f.write('\n')
        os.replace(tmp.name, path)
    except Exception:
        Path(tmp.name).unlink(missing_ok=True)
        raise
