"""
Slicer Profile Service Models
"""

from .printer_info import PrinterInfo
from .settings_layer import PrinterSettingsLayer
from .printer_settings import PrinterSettings, LATEST_VERSION, any_setting_changed

__all__ = ['PrinterInfo', 'PrinterSettingsLayer', 'PrinterSettings', 'LATEST_VERSION', 'any_setting_changed']
