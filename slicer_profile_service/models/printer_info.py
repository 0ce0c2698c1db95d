"""
Printer Info Model
==================

Represents a printer in the profile catalog. The full settings live in a
separate `<ID>.printer` document.
"""

import uuid
from dataclasses import dataclass, field, fields
from typing import Dict, Any

# Field name -> key in the catalog document
_JSON_KEYS = {
    'id': 'ID',
    'name': 'Name',
    'make': 'Make',
    'model': 'Model',
    'device_token': 'DeviceToken',
    'com_port': 'ComPort',
    'marked_for_delete': 'MarkedForDelete',
}


@dataclass
class PrinterInfo:
    """Catalog entry for one printer profile."""

    # Identification
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    name: str = ""
    make: str = "Other"
    model: str = "Other"

    # Pairing / connection
    device_token: str = ""
    com_port: str = ""

    # Flags
    marked_for_delete: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {_JSON_KEYS[f.name]: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PrinterInfo':
        """Create from a catalog record. Unknown keys are ignored."""
        if not isinstance(data, dict):
            raise ValueError(f'Printer record must be an object, got {type(data).__name__}')
        if not data.get('ID'):
            raise ValueError('Printer record without ID')

        kwargs = {}
        for name, key in _JSON_KEYS.items():
            if key in data and data[key] is not None:
                kwargs[name] = data[key]
        kwargs['marked_for_delete'] = bool(kwargs.get('marked_for_delete', False))
        return cls(**kwargs)
