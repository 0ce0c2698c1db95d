"""
Profile Manager
===============

The per-user profile catalog. Catalog records (PrinterInfo) are stored in
`<user>.profiles`; each printer's full settings live next to it in
`<ID>.printer`, so a settings document can only be saved once its printer
is part of the catalog.

Mutations of the record collection go through `ProfileCollection`, which
fires `collection_changed`; the owning ApplicationContext answers with a
save and a `profiles_list_changed` broadcast.
"""

import json
import logging
import shutil
import threading
from pathlib import Path
from typing import Callable, Dict, Any, Iterator, List, Optional, Union, TYPE_CHECKING

from . import config
from .events import Signal
from .exceptions import CatalogSaveError, ProfileError
from .models import (
    LATEST_VERSION,
    PrinterInfo,
    PrinterSettings,
    PrinterSettingsLayer,
    any_setting_changed,
)
from .oem import PublicDevice, load_oem_settings
from .recovery import recover_profile
from .settings_keys import SettingsKey
from .utils import get_non_colliding_name, write_json_atomic

if TYPE_CHECKING:
    from .context import ApplicationContext

logger = logging.getLogger(__name__)


class ProfileCollection:
    """Ordered PrinterInfo records. add/remove fire `collection_changed`."""

    def __init__(self, lock: threading.Lock, items: Optional[List[PrinterInfo]] = None):
        self._lock = lock
        self._items: List[PrinterInfo] = list(items or [])
        self.collection_changed = Signal('collection_changed')

    def __iter__(self) -> Iterator[PrinterInfo]:
        return iter(list(self._items))

    def __len__(self):
        return len(self._items)

    def __getitem__(self, index: int) -> PrinterInfo:
        return self._items[index]

    def append(self, info: PrinterInfo):
        with self._lock:
            self._items.append(info)
        self.collection_changed.send(self, action='add', item=info)

    def remove(self, info: PrinterInfo):
        with self._lock:
            self._items.remove(info)
        self.collection_changed.send(self, action='remove', item=info)


class ProfileManager:
    """Catalog of one user's printer profiles."""

    def __init__(
        self,
        context: 'ApplicationContext',
        user_name: str = config.GUEST_USER,
        profiles: Optional[List[PrinterInfo]] = None,
        printers_imported: bool = False,
    ):
        self.context = context
        self.user_name = user_name
        self.printers_imported = printers_imported

        self._write_lock = threading.Lock()
        self.profiles = ProfileCollection(self._write_lock, profiles)
        self._open_printer_ids: Optional[List[str]] = None

        any_setting_changed.connect(self._printer_settings_changed)

    def __repr__(self):
        return f'ProfileManager(user_name={self.user_name!r}, profiles={len(self.profiles)})'

    # =========================================================================
    # Paths
    # =========================================================================

    @staticmethod
    def profiles_directory_for_user(data_dir: Union[str, Path], user_name: str,
                                    environment_name: str = '') -> Path:
        """Get (and create) the profiles directory of a user."""
        if user_name == config.GUEST_USER:
            user_and_env = user_name
        else:
            user_and_env = f'{environment_name}{user_name}'

        directory = Path(data_dir) / config.PROFILES_SUBDIR / user_and_env
        directory.mkdir(parents=True, exist_ok=True)
        return directory

    @classmethod
    def profiles_doc_path_for_user(cls, data_dir: Union[str, Path], user_name: str,
                                   environment_name: str = '') -> Path:
        directory = cls.profiles_directory_for_user(data_dir, user_name, environment_name)
        return directory / f'{user_name}{config.PROFILE_DOC_EXTENSION}'

    @property
    def user_profiles_directory(self) -> Path:
        return self.profiles_directory_for_user(
            self.context.data_dir, self.user_name, self.context.environment_name
        )

    @property
    def profiles_doc_path(self) -> Path:
        return self.profiles_doc_path_for_user(
            self.context.data_dir, self.user_name, self.context.environment_name
        )

    @property
    def is_guest_profile(self) -> bool:
        return self.user_name == config.GUEST_USER

    def profile_path(self, printer: Union[str, PrinterInfo]) -> Optional[Path]:
        """Get the settings file of a printer, None when it is not in the catalog."""
        printer_id = printer.id if isinstance(printer, PrinterInfo) else printer
        if self.get(printer_id) is None:
            return None
        return self.user_profiles_directory / f'{printer_id}{config.PROFILE_EXTENSION}'

    # =========================================================================
    # Load / Save
    # =========================================================================

    @classmethod
    def load(cls, user_name: str, context: 'ApplicationContext') -> 'ProfileManager':
        """
        Load the catalog of a user.

        A missing document gives an empty catalog. So does a document that
        cannot be read or parsed; that file is copied aside for diagnosis.
        """
        user_name = user_name or config.GUEST_USER
        doc_path = cls.profiles_doc_path_for_user(context.data_dir, user_name, context.environment_name)

        if not doc_path.exists():
            return cls(context, user_name)

        try:
            with open(doc_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            manager = cls.from_dict(data, context)
        except (OSError, ValueError, TypeError) as e:
            logger.warning("Failed to load profiles for '%s' from %s: %s", user_name, doc_path, e)
            _preserve_corrupt(doc_path)
            return cls(context, user_name)

        manager.user_name = user_name
        logger.info("Loaded %d profile(s) for '%s'", len(manager.profiles), user_name)
        return manager

    @classmethod
    def from_dict(cls, data: Dict[str, Any], context: 'ApplicationContext') -> 'ProfileManager':
        """Create from a catalog document. Raises ValueError on a malformed document."""
        if not isinstance(data, dict):
            raise ValueError('Profiles document must be an object')

        records = data.get('Profiles') or []
        if not isinstance(records, list):
            raise ValueError('Profiles must be a list')

        profiles = [PrinterInfo.from_dict(record) for record in records]
        return cls(
            context,
            user_name=str(data.get('UserName') or config.GUEST_USER),
            profiles=profiles,
            printers_imported=bool(data.get('PrintersImported', False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'UserName': self.user_name,
            'PrintersImported': self.printers_imported,
            'Profiles': [p.to_dict() for p in self.profiles],
        }

    def save(self):
        """Write the whole catalog document. Raises CatalogSaveError on failure."""
        with self._write_lock:
            try:
                write_json_atomic(self.profiles_doc_path, self.to_dict())
            except OSError as e:
                raise CatalogSaveError(f"Failed to save profiles for '{self.user_name}': {e}") from e

    # =========================================================================
    # Records
    # =========================================================================

    def get(self, printer_id: str) -> Optional[PrinterInfo]:
        """Get a catalog record by printer ID."""
        for info in self.profiles:
            if info.id == printer_id:
                return info
        return None

    def __contains__(self, printer_id: str) -> bool:
        return self.get(printer_id) is not None

    @property
    def active_profiles(self) -> List[PrinterInfo]:
        """Records not marked for delete."""
        return [p for p in self.profiles if not p.marked_for_delete]

    def add_printer(self, info: PrinterInfo):
        self.profiles.append(info)

    def remove_printer(self, printer_id: str) -> bool:
        """Remove a record outright. Normal deletion uses delete_printer."""
        info = self.get(printer_id)
        if info is None:
            return False
        self.profiles.remove(info)
        return True

    def delete_printer(self, printer_id: str):
        """
        Mark a printer deleted.

        The record is flagged and saved immediately. Closing the printer,
        the list-changed broadcast and the sync run on the next idle tick.
        """
        info = self.get(printer_id)
        if info is not None:
            with self._write_lock:
                info.marked_for_delete = True
            self.save()
            logger.info("Marked printer %s (%s) for delete", printer_id, info.name)

        was_open = (self.context.active_printer(printer_id) is not None
                    or printer_id in self.open_printer_ids)
        if was_open:
            self.remove_open_printer(printer_id)

        self.context.idle.call_on_idle(self._finish_delete, printer_id, was_open)

    def _finish_delete(self, printer_id: str, was_open: bool):
        if was_open:
            self.context.close_printer(printer_id)

        self.context.profiles_list_changed.send(self)
        self.context.sync_printer_profiles('ProfileManager.delete_printer')

    # =========================================================================
    # Open Printers
    # =========================================================================

    @property
    def _open_printers_key(self) -> str:
        return f'ActiveProfileIDs-{self.user_name}'

    @property
    def open_printer_ids(self) -> List[str]:
        """IDs of printers open in the session, read lazily from user settings."""
        if self._open_printer_ids is None:
            raw = self.context.user_settings.get(self._open_printers_key)
            try:
                ids = json.loads(raw) if raw else []
                if not isinstance(ids, list):
                    raise ValueError(f'expected a list, got {type(ids).__name__}')
                self._open_printer_ids = [str(i) for i in ids]
            except (TypeError, ValueError) as e:
                logger.warning("Ignoring corrupt open printer list for '%s': %s", self.user_name, e)
                self._open_printer_ids = []

        return list(self._open_printer_ids)

    def _store_open_printer_ids(self, ids: List[str]):
        self._open_printer_ids = ids
        try:
            self.context.user_settings.set(self._open_printers_key, json.dumps(ids))
        except OSError as e:
            logger.warning("Failed to store open printers for '%s': %s", self.user_name, e)

    def add_open_printer(self, printer_id: str):
        ids = self.open_printer_ids
        if printer_id not in ids:
            self._store_open_printer_ids(ids + [printer_id])

    def remove_open_printer(self, printer_id: str):
        ids = self.open_printer_ids
        if printer_id in ids:
            self._store_open_printer_ids([i for i in ids if i != printer_id])

    # =========================================================================
    # Printer Settings
    # =========================================================================

    def save_settings(self, settings: PrinterSettings, clear_black_list_settings: bool = False) -> Path:
        """Persist a settings document at its catalog path."""
        path = self.profile_path(settings.id)
        if path is None:
            raise ProfileError(f'Printer {settings.id!r} is not in the profile catalog')

        settings.save(path, clear_black_list_settings=clear_black_list_settings)
        return path

    def load_settings_without_recovery(self, printer_id: str) -> Optional[PrinterSettings]:
        """Load a printer's settings from disk only."""
        info = self.get(printer_id)
        if info is None or info.marked_for_delete:
            return None

        path = self.profile_path(info)
        if not path.exists():
            return None

        try:
            settings = PrinterSettings.load_file(path)
        except (OSError, ValueError) as e:
            logger.warning("Failed to load printer settings %s: %s", path, e)
            return None

        if not settings.id:
            settings.id = printer_id
        return settings

    def load_settings(self, printer_id: str, use_active_instance: bool = True) -> Optional[PrinterSettings]:
        """
        Load a printer's settings, recovering if required.

        Tries the open instance (if accepted), the disk, the profile service
        and finally recovery. Returns None only for printers that are not
        (or no longer) in the catalog.
        """
        if use_active_instance:
            active = self.context.active_printer(printer_id)
            if active is not None:
                return active

        # Only profiles defined in the catalog are loaded by ID
        info = self.get(printer_id)
        if info is None or info.marked_for_delete:
            return None

        settings = self.load_settings_without_recovery(printer_id)
        if settings is not None:
            # Profiles pushed from the service may come without a name
            if settings.get_value(SettingsKey.printer_name) == '':
                settings.set_value(SettingsKey.printer_name, info.name)
            return settings

        settings = self.context.get_printer_profile(info)
        if settings is not None:
            settings.id = info.id
            try:
                self.save_settings(settings)
            except OSError as e:
                logger.warning("Failed to persist downloaded profile %s: %s", info.id, e)
            return settings

        return recover_profile(self, info)

    # =========================================================================
    # Create / Import
    # =========================================================================

    def load_oem_settings(self, device: PublicDevice, make: str, model: str) -> Optional[PrinterSettings]:
        return load_oem_settings(
            device,
            make,
            model,
            downloader=self.context.public_profile_downloader,
            cache_dir=self.context.cache_dir,
            static_dir=self.context.static_data_dir,
        )

    def create_printer(self, make: str, model: str, printer_name: str) -> Optional[PrinterSettings]:
        """Create a printer from its OEM profile and open it."""
        device = self.context.oem_profiles.get(make, model)
        if device is None:
            logger.warning("No public profile for %s %s", make, model)
            return None

        settings = self.load_oem_settings(device, make, model)
        if settings is None:
            logger.warning("OEM settings unavailable for %s %s", make, model)
            return None

        info = PrinterInfo(name=printer_name, make=make, model=model)
        settings.id = info.id
        settings.document_version = LATEST_VERSION
        settings.user_layer[SettingsKey.printer_name] = printer_name

        # Must precede saving the settings, whose path needs the record
        self.add_printer(info)
        self.save_settings(settings, clear_black_list_settings=True)
        logger.info("Created printer %s (%s %s)", info.id, make, model)

        return self.context.open_printer(info.id)

    def import_from_existing(self, settings_file_path: Union[str, Path, None]) -> bool:
        """
        Import a printer from a `.printer` document or a legacy `.ini` file.

        Returns False when the file is missing, of an unknown type, or holds
        no usable settings.
        """
        if not settings_file_path or not Path(settings_file_path).is_file():
            return False

        path = Path(settings_file_path)
        existing_names = [p.name for p in self.active_profiles]
        info = PrinterInfo(name=get_non_colliding_name(path.stem, existing_names))

        import_type = path.suffix.lower()
        if import_type == config.PROFILE_EXTENSION:
            imported = self._import_printer_document(path, info)
        elif import_type == config.LEGACY_INI_EXTENSION:
            imported = self._import_legacy_ini(path, info)
        else:
            logger.warning("Unsupported profile import type: %s", path)
            return False

        if imported:
            logger.info("Imported %s as printer %s (%s)", path.name, info.id, info.name)
        return imported

    def _import_printer_document(self, path: Path, info: PrinterInfo) -> bool:
        try:
            settings = PrinterSettings.load_file(path)
        except (OSError, ValueError) as e:
            logger.warning("Cannot import %s: %s", path, e)
            return False

        # Register before the document changes so its file path resolves
        self.add_printer(info)

        settings.id = info.id
        settings.purge_value(SettingsKey.device_token)
        info.device_token = ''

        settings.set_name(info.name)

        if settings.oem_layer is not None:
            if settings.oem_layer.get(SettingsKey.make):
                info.make = settings.oem_layer[SettingsKey.make]
            if settings.oem_layer.get(SettingsKey.model):
                info.model = settings.oem_layer[SettingsKey.model]

        try:
            self.save_settings(settings, clear_black_list_settings=True)
        except OSError as e:
            logger.warning("Cannot save imported profile %s: %s", info.id, e)
            self.remove_printer(info.id)
            return False

        self.save()
        return True

    def _import_legacy_ini(self, path: Path, info: PrinterInfo) -> bool:
        try:
            settings_to_import = PrinterSettingsLayer.load_from_ini(path)
        except OSError as e:
            logger.warning("Cannot read %s: %s", path, e)
            return False

        settings = PrinterSettings(
            id=info.id,
            oem_layer=PrinterSettingsLayer({
                SettingsKey.make: 'Other',
                SettingsKey.model: 'Other',
            }, kind='oem'),
        )

        contains_valid_setting = False
        for key, value in settings_to_import.items():
            if not settings.contains(key) or key in settings.black_list:
                continue
            contains_valid_setting = True
            # Only keep values that differ from what the cascade already yields
            if settings.get_value(key).strip() != value:
                settings.oem_layer[key] = value

        if not contains_valid_setting:
            logger.warning("%s is not a valid settings file", path)
            return False

        settings.user_layer[SettingsKey.printer_name] = info.name
        settings.purge_value(SettingsKey.device_token)
        info.device_token = ''
        info.make = settings.oem_layer.get(SettingsKey.make) or 'Other'
        info.model = settings.oem_layer.get(SettingsKey.model) or 'Other'

        self.add_printer(info)
        try:
            self.save_settings(settings, clear_black_list_settings=True)
        except OSError as e:
            logger.warning("Cannot save imported profile %s: %s", info.id, e)
            self.remove_printer(info.id)
            return False

        return True

    def ensure_printers_imported(self, importer: Optional[Callable[['ProfileManager', Path], None]] = None):
        """
        Run the one-time import of printers from an earlier install.

        Only applies to the guest catalog. `importer` receives the manager
        and its profiles directory.
        """
        if not self.is_guest_profile or self.printers_imported:
            return

        if importer is not None:
            importer(self, self.user_profiles_directory)

        self.printers_imported = True
        self.save()

    # =========================================================================
    # Change Tracking
    # =========================================================================

    def _printer_settings_changed(self, sender: PrinterSettings, key: str = None, **kwargs):
        if key not in (SettingsKey.printer_name, SettingsKey.com_port):
            return

        if sender is None or not self.open_printer_ids:
            return

        # Only open printers feed back into their catalog record
        if self.context.active_printer(sender.id) is not sender:
            return

        info = self.get(sender.id)
        if info is None:
            return

        if key == SettingsKey.printer_name:
            info.name = sender.name
        else:
            info.com_port = sender.com_port

        self.save()
        self.context.profiles_list_changed.send(self)

    def close(self):
        """Release listeners held by this catalog."""
        any_setting_changed.disconnect(self._printer_settings_changed)


def _preserve_corrupt(path: Path):
    """Copy an unreadable catalog aside so a later save cannot destroy it."""
    backup = path.with_name(path.name + '.corrupt')
    try:
        shutil.copy2(path, backup)
    except OSError as e:
        logger.warning("Could not preserve %s: %s", path, e)
