"""
Profile Service Client
======================

Client for the remote profile service: per-user profile backup, public OEM
profile downloads and catalog sync.

Usage:
    from slicer_profile_service.client import ProfileServiceClient

    client = ProfileServiceClient('https://profiles.example.com', token='user-token')

    # Fetch a user's stored profile document
    document = client.get_printer_profile('PRINTER-ID')

    # Download a public OEM profile (None on 304 Not Modified)
    text = client.download_public_profile('PROFILE-TOKEN')
"""

import logging
from typing import Dict, Any, Optional, List

import requests

from .config import DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)


class ProfileServiceClient:
    """Client for the remote profile service."""

    def __init__(self, base_url: str, token: str = None, timeout: int = DEFAULT_TIMEOUT):
        """
        Initialize client.

        Args:
            base_url: Base URL of the profile service
            token: Bearer token of the signed-in user
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip('/')
        self.token = token
        self.timeout = timeout
        self.session = requests.Session()

    def _headers(self) -> Dict[str, str]:
        """Get request headers."""
        headers = {'Accept': 'application/json'}
        if self.token:
            headers['Authorization'] = f'Bearer {self.token}'
        return headers

    def _request(self, method: str, endpoint: str, data: Dict = None) -> Dict[str, Any]:
        """Make API request."""
        url = f'{self.base_url}{endpoint}'

        try:
            response = self.session.request(
                method, url, json=data, headers=self._headers(), timeout=self.timeout
            )
            response.raise_for_status()
            return response.json()

        except requests.exceptions.Timeout:
            logger.warning("Request timeout: %s %s", method, url)
            return {'success': False, 'error': 'Request timeout'}
        except requests.exceptions.ConnectionError:
            logger.warning("Cannot connect to %s", self.base_url)
            return {'success': False, 'error': f'Cannot connect to {self.base_url}'}
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.warning("Request failed: %s %s: %s", method, url, e)
            return {'success': False, 'error': str(e)}

    # =========================================================================
    # User Profiles
    # =========================================================================

    def get_printer_profile(self, printer_id: str) -> Optional[Dict[str, Any]]:
        """Get the stored settings document of a printer, None if unavailable."""
        result = self._request('GET', f'/api/profiles/{printer_id}')
        if not result.get('success'):
            return None
        return result.get('profile')

    def sync_printer_profiles(self, reason: str, profiles: List[Dict[str, Any]]) -> bool:
        """Push the catalog records to the service."""
        result = self._request('POST', '/api/profiles/sync', {
            'reason': reason,
            'profiles': profiles,
        })
        return bool(result.get('success'))

    # =========================================================================
    # Public OEM Profiles
    # =========================================================================

    def list_public_devices(self) -> Optional[Dict[str, Any]]:
        """
        Get the public device index.

        Returns:
            Dict of make -> model -> {'cache_key', 'profile_token'}, or None
        """
        result = self._request('GET', '/api/public-profiles')
        if not result.get('success'):
            return None
        return result.get('devices')

    def download_public_profile(self, profile_token: str, etag: str = None) -> Optional[str]:
        """
        Download a public OEM settings document.

        Args:
            profile_token: Token identifying the public profile
            etag: Entity tag of a cached copy, if any

        Returns:
            Document text, or None when not modified or unavailable
        """
        url = f'{self.base_url}/api/public-profiles/{profile_token}'
        headers = self._headers()
        if etag:
            headers['If-None-Match'] = etag

        try:
            response = self.session.get(url, headers=headers, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.warning("Failed to download public profile %s: %s", profile_token, e)
            return None

        if response.status_code == 304:
            return None
        if response.status_code != 200:
            logger.warning("Public profile %s returned HTTP %s", profile_token, response.status_code)
            return None

        return response.text
