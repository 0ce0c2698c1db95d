"""
Application Context
===================

Owns the live ProfileManager of the signed-in user, the printers open in
the session, the idle queue and the `profiles_list_changed` signal.
Components receive the context instead of reaching for a global.
"""

import logging
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from . import config
from .client import ProfileServiceClient
from .events import Signal
from .idle import IdleQueue
from .models import PrinterInfo, PrinterSettings
from .oem import OemProfiles
from .profile_manager import ProfileManager
from .user_settings import UserSettings
from .utils import file_system_safe_name

logger = logging.getLogger(__name__)


class ApplicationContext:
    """Session state shared by the profile catalog and its consumers."""

    def __init__(
        self,
        data_dir: Union[str, Path, None] = None,
        cache_dir: Union[str, Path, None] = None,
        static_data_dir: Union[str, Path, None] = None,
        environment_name: Optional[str] = None,
        user_provider: Optional[Callable[[], Optional[str]]] = None,
        client: Optional[ProfileServiceClient] = None,
        oem_profiles: Optional[OemProfiles] = None,
        user_settings: Optional[UserSettings] = None,
    ):
        if data_dir is None:
            self.data_dir = Path(config.DATA_DIR)
            self.cache_dir = Path(cache_dir or config.CACHE_DIR)
            self.static_data_dir = Path(static_data_dir or config.STATIC_DATA_DIR)
        else:
            self.data_dir = Path(data_dir)
            self.cache_dir = Path(cache_dir or self.data_dir / 'data' / 'temp' / 'cache')
            self.static_data_dir = Path(static_data_dir or self.data_dir / 'StaticData')

        self.environment_name = config.ENVIRONMENT_NAME if environment_name is None else environment_name

        # Name of the signed-in user, read by the default user provider
        self.signed_in_user = config.INITIAL_USER
        self.user_provider = user_provider or (lambda: self.signed_in_user)

        self.client = client
        self.user_settings = user_settings or UserSettings(self.data_dir / config.USER_SETTINGS_FILE)
        self.oem_profiles = oem_profiles or OemProfiles.load(self.data_dir / config.OEM_INDEX_FILE)

        self.idle = IdleQueue()
        self.profiles_list_changed = Signal('profiles_list_changed')

        self.profile_manager: Optional[ProfileManager] = None
        self._active_printers: Dict[str, PrinterSettings] = {}
        self._reload_lock = threading.RLock()

    @classmethod
    def from_config(cls) -> 'ApplicationContext':
        """Build a context from environment configuration."""
        client = None
        if config.PROFILE_SERVICE_URL:
            client = ProfileServiceClient(config.PROFILE_SERVICE_URL, token=config.PROFILE_SERVICE_TOKEN or None)
        return cls(client=client)

    # =========================================================================
    # Active User
    # =========================================================================

    def reload_active_user(self) -> ProfileManager:
        """
        Make the profile manager reflect the signed-in user.

        Does nothing when that user's catalog is already loaded. Otherwise
        the previous catalog is released along with its open printers.
        """
        user_name = file_system_safe_name(self.user_provider() or '') or config.GUEST_USER

        with self._reload_lock:
            current = self.profile_manager
            if current is not None and current.user_name == user_name:
                return current

            if current is not None:
                current.profiles.collection_changed.disconnect(self._profiles_collection_changed)
                # Keep edits; the open set stays stored for the user's next session
                for printer_id, settings in self._active_printers.items():
                    self._save_if_dirty(current, printer_id, settings)
                current.close()
                self._active_printers.clear()

            manager = ProfileManager.load(user_name, self)
            manager.profiles.collection_changed.connect(self._profiles_collection_changed)
            self.profile_manager = manager

        logger.info("Active user is now '%s'", user_name)
        return manager

    def sign_in(self, user_name: Optional[str]) -> ProfileManager:
        """Switch the signed-in user and reload the catalog."""
        self.signed_in_user = user_name or ''
        return self.reload_active_user()

    def _profiles_collection_changed(self, sender, **kwargs):
        manager = self.profile_manager
        if manager is None or sender is not manager.profiles:
            return

        # Persist, then notify once the write lock is released
        manager.save()
        self.profiles_list_changed.send(manager)
        self.sync_printer_profiles('ProfileManager.profiles_collection_changed')

    # =========================================================================
    # Open Printers
    # =========================================================================

    @property
    def active_printers(self) -> List[PrinterSettings]:
        return list(self._active_printers.values())

    def active_printer(self, printer_id: str) -> Optional[PrinterSettings]:
        return self._active_printers.get(printer_id)

    def open_printer(self, printer_id: str) -> Optional[PrinterSettings]:
        """Load a printer into the session."""
        manager = self.profile_manager
        if manager is None:
            return None

        settings = manager.load_settings(printer_id)
        if settings is None:
            return None

        self._active_printers[printer_id] = settings
        manager.add_open_printer(printer_id)
        return settings

    def close_printer(self, printer_id: str):
        """Remove a printer from the session, saving unsaved changes."""
        settings = self._active_printers.pop(printer_id, None)
        manager = self.profile_manager
        if manager is None:
            return

        if settings is not None:
            self._save_if_dirty(manager, printer_id, settings)

        manager.remove_open_printer(printer_id)

    @staticmethod
    def _save_if_dirty(manager: ProfileManager, printer_id: str, settings: PrinterSettings):
        if not settings.is_dirty or printer_id not in manager:
            return
        try:
            manager.save_settings(settings)
        except OSError as e:
            logger.warning("Failed to save printer %s on close: %s", printer_id, e)

    # =========================================================================
    # Profile Service
    # =========================================================================

    def get_printer_profile(self, printer_info: PrinterInfo) -> Optional[PrinterSettings]:
        """Fetch a printer's settings from the profile service."""
        if self.client is None:
            return None

        data = self.client.get_printer_profile(printer_info.id)
        if data is None:
            return None

        try:
            settings = PrinterSettings.from_dict(data)
        except ValueError as e:
            logger.warning("Profile service returned an invalid profile for %s: %s", printer_info.id, e)
            return None

        settings.id = printer_info.id
        return settings

    @property
    def public_profile_downloader(self) -> Optional[Callable[[str], Optional[str]]]:
        if self.client is None:
            return None
        return self.client.download_public_profile

    def refresh_oem_profiles(self) -> bool:
        """Replace the public device index with the service's copy."""
        if self.client is None:
            return False

        devices = self.client.list_public_devices()
        if not devices:
            return False

        self.oem_profiles.update(devices)
        try:
            self.oem_profiles.save()
        except OSError as e:
            logger.warning("Failed to save OEM profile index: %s", e)
        return True

    def sync_printer_profiles(self, reason: str):
        """Push the catalog to the profile service, if one is configured."""
        manager = self.profile_manager
        if self.client is None or manager is None:
            return

        profiles = [p.to_dict() for p in manager.profiles]
        try:
            synced = self.client.sync_printer_profiles(reason, profiles)
        except Exception as e:
            logger.warning("Profile sync raised (%s): %s", reason, e)
            return

        if not synced:
            logger.warning("Profile sync failed (%s)", reason)

    def close(self):
        """Release the current catalog."""
        with self._reload_lock:
            if self.profile_manager is not None:
                self.profile_manager.profiles.collection_changed.disconnect(self._profiles_collection_changed)
                for printer_id, settings in self._active_printers.items():
                    self._save_if_dirty(self.profile_manager, printer_id, settings)
                self.profile_manager.close()
                self.profile_manager = None
            self._active_printers.clear()
