"""
Settings Layer Model
====================

One set of key -> value overrides in a printer's settings cascade.
"""

from pathlib import Path
from typing import Dict, Any, Optional, Union

LAYER_ID_KEY = 'layer_id'
LAYER_NAME_KEY = 'layer_name'


class PrinterSettingsLayer(dict):
    """
    Ordered mapping of setting key -> string value.

    `kind` names the layer's place in the cascade (oem, quality, material,
    user). Preset layers also carry a layer_id and layer_name, stored as
    entries so they round-trip with the layer.
    """

    def __init__(self, values: Optional[Dict[str, Any]] = None, kind: str = 'user'):
        super().__init__()
        self.kind = kind
        for key, value in (values or {}).items():
            self[key] = '' if value is None else str(value)

    @property
    def layer_id(self) -> Optional[str]:
        return self.get(LAYER_ID_KEY)

    @property
    def layer_name(self) -> str:
        return self.get(LAYER_NAME_KEY, '')

    def settings(self) -> Dict[str, str]:
        """Setting entries without the layer's own identity keys."""
        return {k: v for k, v in self.items() if k not in (LAYER_ID_KEY, LAYER_NAME_KEY)}

    def __repr__(self):
        return f'PrinterSettingsLayer(kind={self.kind!r}, {dict.__repr__(self)})'

    @classmethod
    def load_from_ini(cls, path: Union[str, Path], kind: str = 'oem') -> 'PrinterSettingsLayer':
        """
        Load a legacy flat settings file of `key = value` lines.

        Blank lines, comments (# or ;) and lines without '=' are skipped.
        Raises OSError when the file cannot be read.
        """
        layer = cls(kind=kind)
        with open(path, 'r', encoding='utf-8', errors='replace') as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith(('#', ';')) or '=' not in line:
                    continue
                key, value = line.split('=', 1)
                key = key.strip()
                if key:
                    layer[key] = value.strip()
        return layer
