"""
Slicer Profile Service Configuration
"""

import os

# =============================================================================
# Server Configuration
# =============================================================================

PORT = int(os.environ.get('SLICER_PROFILE_PORT', 5200))
HOST = os.environ.get('SLICER_PROFILE_HOST', '127.0.0.1')
DEBUG = os.environ.get('SLICER_PROFILE_DEBUG', 'false').lower() == 'true'

# API Key for mutating requests
API_KEY = os.environ.get('SLICER_PROFILE_API_KEY', 'slicer-profiles-2026')

LOG_LEVEL = os.environ.get('SLICER_PROFILE_LOG_LEVEL', 'INFO').upper()

# =============================================================================
# Users
# =============================================================================

GUEST_USER = 'guest'

# User loaded at startup (empty means guest)
INITIAL_USER = os.environ.get('SLICER_PROFILE_USER', '')

# Prefix for non-guest profile directories, keeps staging/production apart
ENVIRONMENT_NAME = os.environ.get('SLICER_PROFILE_ENVIRONMENT', '')

# =============================================================================
# Storage Configuration
# =============================================================================

DATA_DIR = os.environ.get(
    'SLICER_PROFILE_DATA_DIR', os.path.expanduser('~/.slicer_profile_service')
)

CACHE_DIR = os.environ.get(
    'SLICER_PROFILE_CACHE_DIR', os.path.join(DATA_DIR, 'data', 'temp', 'cache')
)

# Bundled OEM profiles, used when neither cache nor download yields one
STATIC_DATA_DIR = os.environ.get(
    'SLICER_PROFILE_STATIC_DIR', os.path.join(DATA_DIR, 'StaticData')
)

PROFILES_SUBDIR = 'Profiles'
USER_SETTINGS_FILE = 'user_settings.json'
OEM_INDEX_FILE = 'oem_profiles.json'

PROFILE_EXTENSION = '.printer'
PROFILE_DOC_EXTENSION = '.profiles'
LEGACY_INI_EXTENSION = '.ini'

# =============================================================================
# Remote Profile Service
# =============================================================================

# Empty disables the remote tier, downloads and sync
PROFILE_SERVICE_URL = os.environ.get('SLICER_PROFILE_SERVICE_URL', '')
PROFILE_SERVICE_TOKEN = os.environ.get('SLICER_PROFILE_SERVICE_TOKEN', '')

DEFAULT_TIMEOUT = 30  # seconds
