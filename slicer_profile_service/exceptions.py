"""
Slicer Profile Service Errors
"""


class ProfileError(Exception):
    """Base error for profile and settings persistence."""


class CatalogSaveError(ProfileError):
    """The profile catalog document could not be written."""
