"""
Slicer Profile Service
======================

Per-user printer profile catalog with layered printer settings.

Supports:
- Profile catalog per user (<user>.profiles) with soft delete
- Layered printer settings (OEM -> quality -> material -> user)
- Import of .printer documents and legacy .ini files
- OEM profile download with on-disk cache
- Load recovery (disk -> profile service -> rebuild)

Usage:
    python -m slicer_profile_service

API Endpoints:
    GET    /api/profiles                     - List profiles
    POST   /api/profiles                     - Create printer from OEM profile
    POST   /api/profiles/import              - Import .printer/.ini file
    DELETE /api/profiles/{id}                - Mark printer deleted
    GET    /api/profiles/{id}/settings       - Effective settings
    PUT    /api/profiles/{id}/settings/{key} - Override a setting
"""

__version__ = '1.0.0'
__author__ = 'Slicer Profile Service Contributors'
