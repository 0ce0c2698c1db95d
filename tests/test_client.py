"""
Tests for the profile service client, with the HTTP session faked out.
"""

import requests

from slicer_profile_service.client import ProfileServiceClient


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=''):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError('No JSON body')
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f'HTTP {self.status_code}')


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def _respond(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response

    def request(self, method, url, **kwargs):
        return self._respond(method, url, **kwargs)

    def get(self, url, **kwargs):
        return self._respond('GET', url, **kwargs)


def make_client(response=None, error=None, token='user-token'):
    client = ProfileServiceClient('https://profiles.example.com/', token=token, timeout=5)
    client.session = FakeSession(response, error)
    return client


class TestUserProfiles:

    def test_get_printer_profile(self):
        document = {'ID': 'p1', 'UserLayer': {}}
        client = make_client(FakeResponse(payload={'success': True, 'profile': document}))

        assert client.get_printer_profile('p1') == document

        method, url, kwargs = client.session.calls[0]
        assert (method, url) == ('GET', 'https://profiles.example.com/api/profiles/p1')
        assert kwargs['headers']['Authorization'] == 'Bearer user-token'
        assert kwargs['timeout'] == 5

    def test_get_printer_profile_not_found(self):
        client = make_client(FakeResponse(status_code=404))
        assert client.get_printer_profile('p1') is None

    def test_get_printer_profile_unreachable(self):
        client = make_client(error=requests.exceptions.ConnectionError('refused'))
        assert client.get_printer_profile('p1') is None

    def test_sync(self):
        client = make_client(FakeResponse(payload={'success': True}))

        assert client.sync_printer_profiles('test', [{'ID': 'p1'}])

        method, url, kwargs = client.session.calls[0]
        assert method == 'POST'
        assert url.endswith('/api/profiles/sync')
        assert kwargs['json'] == {'reason': 'test', 'profiles': [{'ID': 'p1'}]}

    def test_sync_timeout(self):
        client = make_client(error=requests.exceptions.Timeout())
        assert not client.sync_printer_profiles('test', [])

    def test_no_token_no_authorization_header(self):
        client = make_client(FakeResponse(payload={'success': True}), token=None)
        client.sync_printer_profiles('test', [])
        assert 'Authorization' not in client.session.calls[0][2]['headers']


class TestPublicProfiles:

    def test_download(self):
        client = make_client(FakeResponse(text='{"ID": "oem"}'))

        assert client.download_public_profile('tok', etag='"v1"') == '{"ID": "oem"}'

        _, url, kwargs = client.session.calls[0]
        assert url == 'https://profiles.example.com/api/public-profiles/tok'
        assert kwargs['headers']['If-None-Match'] == '"v1"'

    def test_not_modified(self):
        client = make_client(FakeResponse(status_code=304))
        assert client.download_public_profile('tok') is None

    def test_server_error(self):
        client = make_client(FakeResponse(status_code=500, text='oops'))
        assert client.download_public_profile('tok') is None

    def test_connection_error(self):
        client = make_client(error=requests.exceptions.ConnectionError('refused'))
        assert client.download_public_profile('tok') is None

    def test_list_public_devices(self):
        devices = {'Prusa': {'MK3S': {'cache_key': 'mk3s.printer', 'profile_token': 't'}}}
        client = make_client(FakeResponse(payload={'success': True, 'devices': devices}))
        assert client.list_public_devices() == devices
