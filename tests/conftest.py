"""
Shared fixtures: every test gets its own data directory and a fake
profile service instead of the network.
"""

import json

import pytest

from slicer_profile_service.context import ApplicationContext
from slicer_profile_service.oem import OemProfiles, PublicDevice


OEM_DOCUMENT = {
    'ID': 'oem-prusa-mk3s',
    'DocumentVersion': 201606271,
    'OemLayer': {
        'make': 'Prusa',
        'model': 'MK3S',
        'layer_height': '0.15',
        'bed_size': '250,210',
        'build_height': '210',
    },
    'QualityLayers': [],
    'MaterialLayers': [],
    'UserLayer': {},
}


class FakeProfileService:
    """Stands in for ProfileServiceClient."""

    def __init__(self):
        self.profiles = {}
        self.public_profiles = {}
        self.downloads = []
        self.syncs = []
        self.sync_error = None
        self.devices = None

    def get_printer_profile(self, printer_id):
        return self.profiles.get(printer_id)

    def download_public_profile(self, profile_token, etag=None):
        self.downloads.append(profile_token)
        return self.public_profiles.get(profile_token)

    def sync_printer_profiles(self, reason, profiles):
        if self.sync_error is not None:
            raise self.sync_error
        self.syncs.append((reason, profiles))
        return True

    def list_public_devices(self):
        return self.devices


def write_json(path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding='utf-8')
    return path


@pytest.fixture
def oem_profiles():
    return OemProfiles(devices={
        'Prusa': {
            'MK3S': PublicDevice('Prusa', 'MK3S', cache_key='mk3s-v1.printer', profile_token='tok-mk3s'),
        },
    })


@pytest.fixture
def profile_service():
    return FakeProfileService()


@pytest.fixture
def context(tmp_path, oem_profiles):
    ctx = ApplicationContext(
        data_dir=tmp_path / 'data',
        environment_name='',
        oem_profiles=oem_profiles,
    )
    ctx.signed_in_user = ''
    yield ctx
    ctx.close()


@pytest.fixture
def remote_context(tmp_path, oem_profiles, profile_service):
    ctx = ApplicationContext(
        data_dir=tmp_path / 'data',
        environment_name='',
        oem_profiles=oem_profiles,
        client=profile_service,
    )
    ctx.signed_in_user = ''
    yield ctx
    ctx.close()


@pytest.fixture
def manager(context):
    return context.reload_active_user()


@pytest.fixture
def remote_manager(remote_context):
    return remote_context.reload_active_user()
