"""
Printer Settings Model
======================

A printer's full configuration: a stack of settings layers resolved most
specific first (user -> material preset -> quality preset -> OEM), then the
global defaults.
"""

import json
import logging
from pathlib import Path
from typing import Dict, Any, Iterable, List, Optional, Tuple, Union

from ..events import Signal
from ..settings_keys import DEFAULT_BLACK_LIST, DEFAULT_SETTINGS, SettingsKey, is_known_setting
from ..utils import write_json_atomic
from .settings_layer import LAYER_ID_KEY, LAYER_NAME_KEY, PrinterSettingsLayer

logger = logging.getLogger(__name__)

LATEST_VERSION = 201606271

DEFAULT_LAYER_NAME = 'default'

# Fired as receiver(settings, key=...) whenever any document changes a value
any_setting_changed = Signal('any_setting_changed')


class PrinterSettings:
    """Layered settings document for a single printer."""

    def __init__(
        self,
        id: str = '',
        oem_layer: Optional[PrinterSettingsLayer] = None,
        user_layer: Optional[PrinterSettingsLayer] = None,
        quality_layers: Optional[List[PrinterSettingsLayer]] = None,
        material_layers: Optional[List[PrinterSettingsLayer]] = None,
        black_list: Optional[Iterable[str]] = None,
        document_version: int = LATEST_VERSION,
    ):
        self.id = id
        self.document_version = document_version
        self.oem_layer = oem_layer
        self.user_layer = user_layer if user_layer is not None else PrinterSettingsLayer(kind='user')
        self.quality_layers = quality_layers or []
        self.material_layers = material_layers or []
        self.black_list = set(DEFAULT_BLACK_LIST if black_list is None else black_list)
        self.is_dirty = False

    def __repr__(self):
        return f'PrinterSettings(id={self.id!r}, name={self.name!r})'

    # =========================================================================
    # Layer Cascade
    # =========================================================================

    @staticmethod
    def _find_layer(layers: List[PrinterSettingsLayer], layer_id: str) -> Optional[PrinterSettingsLayer]:
        if not layer_id:
            return None
        for layer in layers:
            if layer.layer_id == layer_id:
                return layer
        return None

    @property
    def active_quality_layer(self) -> Optional[PrinterSettingsLayer]:
        return self._find_layer(self.quality_layers, self.user_layer.get(SettingsKey.active_quality_key, ''))

    @property
    def active_material_layer(self) -> Optional[PrinterSettingsLayer]:
        return self._find_layer(self.material_layers, self.user_layer.get(SettingsKey.active_material_key, ''))

    def layer_cascade(self) -> List[PrinterSettingsLayer]:
        """Layers in resolution order, most specific first."""
        layers = [
            self.user_layer,
            self.active_material_layer,
            self.active_quality_layer,
            self.oem_layer,
        ]
        return [layer for layer in layers if layer is not None]

    def get_value_and_layer_name(self, key: str) -> Tuple[str, Optional[str]]:
        """
        Resolve a key and name the layer that supplied it.

        Returns ('', None) for black-listed and unknown keys.
        """
        if key in self.black_list or key in (LAYER_ID_KEY, LAYER_NAME_KEY):
            return '', None

        for layer in self.layer_cascade():
            if key in layer:
                return layer[key], layer.kind

        if key in DEFAULT_SETTINGS:
            return DEFAULT_SETTINGS[key], DEFAULT_LAYER_NAME

        return '', None

    def get_value(self, key: str) -> str:
        """Get the effective value of a setting."""
        return self.get_value_and_layer_name(key)[0]

    def contains(self, key: str) -> bool:
        """Check whether key is a known setting."""
        return is_known_setting(key)

    def set_value(self, key: str, value: Any):
        """Override a setting in the user layer."""
        value = '' if value is None else str(value)
        if key in self.user_layer and self.user_layer[key] == value:
            return

        self.user_layer[key] = value
        self.is_dirty = True
        any_setting_changed.send(self, key=key)

    def clear_value(self, key: str):
        """Remove a user override, exposing the inherited value again."""
        if key not in self.user_layer:
            return

        del self.user_layer[key]
        self.is_dirty = True
        any_setting_changed.send(self, key=key)

    def effective_settings(self) -> Dict[str, str]:
        """All resolvable settings with their effective values."""
        keys = list(DEFAULT_SETTINGS)
        for layer in reversed(self.layer_cascade()):
            keys.extend(k for k in layer.settings() if k not in DEFAULT_SETTINGS)

        result = {}
        for key in keys:
            value, layer_name = self.get_value_and_layer_name(key)
            if layer_name is not None:
                result[key] = value
        return result

    # =========================================================================
    # Helpers
    # =========================================================================

    @property
    def name(self) -> str:
        return self.get_value(SettingsKey.printer_name)

    def set_name(self, name: str):
        self.set_value(SettingsKey.printer_name, name)

    @property
    def com_port(self) -> str:
        return self.get_value(SettingsKey.com_port)

    @property
    def make(self) -> str:
        if self.oem_layer and self.oem_layer.get(SettingsKey.make):
            return self.oem_layer[SettingsKey.make]
        return self.get_value(SettingsKey.make)

    @property
    def model(self) -> str:
        if self.oem_layer and self.oem_layer.get(SettingsKey.model):
            return self.oem_layer[SettingsKey.model]
        return self.get_value(SettingsKey.model)

    def _all_layers(self) -> List[PrinterSettingsLayer]:
        layers = [self.oem_layer, self.user_layer, *self.quality_layers, *self.material_layers]
        return [layer for layer in layers if layer is not None]

    def purge_value(self, key: str):
        """Remove a key from every layer, not just the user layer."""
        for layer in self._all_layers():
            if key in layer:
                del layer[key]
                self.is_dirty = True

    def clear_black_list_settings(self):
        """Drop black-listed keys from every layer."""
        for layer in self._all_layers():
            for key in self.black_list.intersection(layer):
                del layer[key]

    # =========================================================================
    # Serialization
    # =========================================================================

    def _persistable(self, layer: Optional[PrinterSettingsLayer]) -> Optional[Dict[str, str]]:
        if layer is None:
            return None
        return {k: v for k, v in layer.items() if k not in self.black_list}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization. Black-listed keys are left out."""
        return {
            'ID': self.id,
            'DocumentVersion': self.document_version,
            'OemLayer': self._persistable(self.oem_layer),
            'QualityLayers': [self._persistable(layer) for layer in self.quality_layers],
            'MaterialLayers': [self._persistable(layer) for layer in self.material_layers],
            'UserLayer': self._persistable(self.user_layer),
            'BlackList': sorted(self.black_list),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PrinterSettings':
        """
        Create from a settings document, migrating older versions.

        Raises ValueError when the document has the wrong shape.
        """
        if not isinstance(data, dict):
            raise ValueError('Printer settings document must be an object')

        data = _migrate(data)

        def layer(value, kind):
            if value is None:
                return None
            if not isinstance(value, dict):
                raise ValueError(f'{kind} layer must be an object')
            return PrinterSettingsLayer(value, kind=kind)

        def layer_list(value, kind):
            if value is not None and not isinstance(value, list):
                raise ValueError(f'{kind} layers must be a list')
            return [layer(item, kind) for item in value or [] if item is not None]

        black_list = data.get('BlackList')
        if black_list is not None and not isinstance(black_list, list):
            raise ValueError('BlackList must be a list')

        return cls(
            id=str(data.get('ID') or ''),
            oem_layer=layer(data.get('OemLayer'), 'oem'),
            user_layer=layer(data.get('UserLayer'), 'user'),
            quality_layers=layer_list(data.get('QualityLayers'), 'quality'),
            material_layers=layer_list(data.get('MaterialLayers'), 'material'),
            black_list=black_list,
            document_version=data['DocumentVersion'],
        )

    @classmethod
    def load_file(cls, path: Union[str, Path]) -> 'PrinterSettings':
        """Load a settings document. Raises OSError or ValueError on failure."""
        with open(path, 'r', encoding='utf-8') as f:
            return cls.from_dict(json.load(f))

    def save(self, path: Union[str, Path], clear_black_list_settings: bool = False):
        """Write the whole document to path."""
        if clear_black_list_settings:
            self.clear_black_list_settings()

        write_json_atomic(path, self.to_dict())
        self.is_dirty = False


def _migrate(data: Dict[str, Any]) -> Dict[str, Any]:
    """Bring a document from an earlier version up to LATEST_VERSION."""
    try:
        version = int(data.get('DocumentVersion') or 0)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid DocumentVersion {data.get('DocumentVersion')!r}")

    if version >= LATEST_VERSION:
        return dict(data, DocumentVersion=version)

    data = dict(data)
    user_layer = data.get('UserLayer')
    if user_layer is not None and not isinstance(user_layer, dict):
        raise ValueError('user layer must be an object')
    user_layer = dict(user_layer or {})

    # Active preset keys moved from the document root into the user layer
    for legacy_key, key in (('ActiveQualityKey', SettingsKey.active_quality_key),
                            ('ActiveMaterialKey', SettingsKey.active_material_key)):
        value = data.pop(legacy_key, None)
        if value and key not in user_layer:
            user_layer[key] = value

    data['UserLayer'] = user_layer
    data['DocumentVersion'] = LATEST_VERSION
    logger.info("Migrated printer settings %s from version %s", data.get('ID'), version)
    return data
