"""
Profile Recovery
================

Last resort when a printer's settings cannot be loaded from disk or the
profile service: rebuild a minimally working document from what the
catalog knows about the printer.
"""

import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import Optional, TYPE_CHECKING

from .models import PrinterInfo, PrinterSettings, PrinterSettingsLayer
from .settings_keys import SettingsKey

if TYPE_CHECKING:
    from .profile_manager import ProfileManager

logger = logging.getLogger(__name__)


def _preserve_unreadable(path: Path):
    """Keep a copy of a profile we are about to overwrite."""
    if not path.exists():
        return
    stamp = datetime.now().strftime('%Y%m%d%H%M%S')
    backup = path.with_name(f'{path.name}.{stamp}.bak')
    try:
        shutil.copy2(path, backup)
        logger.warning("Preserved unreadable profile %s as %s", path, backup)
    except OSError as e:
        logger.warning("Could not preserve unreadable profile %s: %s", path, e)


def recover_profile(manager: 'ProfileManager', printer_info: PrinterInfo) -> Optional[PrinterSettings]:
    """
    Rebuild and persist settings for a catalog entry.

    Returns None only when the printer is not part of the catalog.
    """
    profile_path = manager.profile_path(printer_info)
    if profile_path is None:
        return None

    _preserve_unreadable(Path(profile_path))

    settings = None
    device = manager.context.oem_profiles.get(printer_info.make, printer_info.model)
    if device is not None:
        settings = manager.load_oem_settings(device, printer_info.make, printer_info.model)

    if settings is None:
        settings = PrinterSettings(oem_layer=PrinterSettingsLayer({
            SettingsKey.make: printer_info.make or 'Other',
            SettingsKey.model: printer_info.model or 'Other',
        }, kind='oem'))

    settings.id = printer_info.id
    settings.user_layer[SettingsKey.printer_name] = printer_info.name
    if printer_info.device_token:
        settings.user_layer[SettingsKey.device_token] = printer_info.device_token

    try:
        manager.save_settings(settings)
    except OSError as e:
        logger.warning("Recovered profile %s could not be saved: %s", printer_info.id, e)

    logger.info("Recovered profile %s (%s)", printer_info.id, printer_info.name)
    return settings
