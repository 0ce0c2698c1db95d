"""
Tests for the Flask API.
"""

import io

import pytest

from slicer_profile_service.app import create_app

from .conftest import OEM_DOCUMENT, write_json

API_KEY = 'test-key'
AUTH = {'Authorization': f'Bearer {API_KEY}'}


@pytest.fixture
def app(context):
    app = create_app(context, api_key=API_KEY)
    app.config['TESTING'] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


def upload(client, filename, content):
    return client.post(
        '/api/profiles/import',
        data={'file': (io.BytesIO(content.encode('utf-8')), filename)},
        content_type='multipart/form-data',
        headers=AUTH,
    )


@pytest.fixture
def printer_id(client):
    response = upload(client, 'Workshop.ini', "bed_temperature = 70\nmake = Creality\n")
    assert response.status_code == 201
    return response.get_json()['printer']['ID']


class TestInfo:

    def test_health(self, client):
        data = client.get('/health').get_json()
        assert data['status'] == 'online'

    def test_api_info(self, client):
        assert client.get('/api').get_json()['endpoints']['profiles'] == '/api/profiles'

    def test_session_defaults_to_guest(self, client):
        data = client.get('/api/session').get_json()
        assert data['user'] == 'guest'
        assert data['is_guest']
        assert data['open_printers'] == []


class TestAuth:

    def test_missing_key(self, client):
        response = client.post('/api/profiles', json={'make': 'Prusa', 'model': 'MK3S', 'name': 'x'})
        assert response.status_code == 401

    def test_key_in_body(self, client):
        response = client.post('/api/session/user', json={'api_key': API_KEY, 'user_name': 'alice'})
        assert response.status_code == 200
        assert response.get_json()['user'] == 'alice'

    def test_wrong_bearer(self, client):
        response = client.delete('/api/profiles/x', headers={'Authorization': 'Bearer nope'})
        assert response.status_code == 401


class TestProfiles:

    def test_import_and_list(self, client, printer_id):
        data = client.get('/api/profiles').get_json()

        assert data['count'] == 1
        profile = data['profiles'][0]
        assert profile['ID'] == printer_id
        assert profile['Name'] == 'Workshop'
        assert profile['Make'] == 'Creality'
        assert profile['is_open'] is False

    def test_import_rejects_invalid_file(self, client):
        response = upload(client, 'notes.ini', "colour = blue\n")
        assert response.status_code == 400
        assert client.get('/api/profiles').get_json()['count'] == 0

    def test_import_requires_file(self, client):
        response = client.post('/api/profiles/import', headers=AUTH)
        assert response.status_code == 400

    def test_get_profile(self, client, printer_id):
        data = client.get(f'/api/profiles/{printer_id}').get_json()
        assert data['printer']['Name'] == 'Workshop'
        assert client.get('/api/profiles/missing').status_code == 404

    def test_delete_hides_profile(self, client, context, printer_id):
        client.post(f'/api/profiles/{printer_id}/open', headers=AUTH)

        response = client.delete(f'/api/profiles/{printer_id}', headers=AUTH)

        assert response.status_code == 200
        # the deferred close ran after the request
        assert context.active_printer(printer_id) is None
        assert client.get('/api/profiles').get_json()['count'] == 0
        assert client.get(f'/api/profiles/{printer_id}').status_code == 404
        assert client.get(f'/api/profiles/{printer_id}/settings').status_code == 404

    def test_delete_unknown(self, client):
        assert client.delete('/api/profiles/missing', headers=AUTH).status_code == 404

    def test_open_and_close(self, client, printer_id):
        opened = client.post(f'/api/profiles/{printer_id}/open', headers=AUTH).get_json()
        assert opened['open_printers'] == [printer_id]
        assert client.get('/api/profiles').get_json()['profiles'][0]['is_open']

        closed = client.post(f'/api/profiles/{printer_id}/close', headers=AUTH).get_json()
        assert closed['open_printers'] == []

    def test_open_unknown(self, client):
        assert client.post('/api/profiles/missing/open', headers=AUTH).status_code == 404

    def test_create_from_bundled_oem_profile(self, client, context):
        write_json(context.static_data_dir / 'Profiles' / 'Prusa' / 'MK3S.printer', OEM_DOCUMENT)

        response = client.post('/api/profiles', json={'make': 'Prusa', 'model': 'MK3S', 'name': 'Desk'},
                               headers=AUTH)

        assert response.status_code == 201
        printer = response.get_json()['printer']
        assert (printer['Name'], printer['Make'], printer['Model']) == ('Desk', 'Prusa', 'MK3S')

        setting = client.get(f"/api/profiles/{printer['ID']}/settings/layer_height").get_json()
        assert (setting['value'], setting['layer']) == ('0.15', 'oem')

    def test_create_unknown_model(self, client):
        response = client.post('/api/profiles', json={'make': 'Acme', 'model': 'X', 'name': 'y'}, headers=AUTH)
        assert response.status_code == 404

    def test_create_requires_fields(self, client):
        response = client.post('/api/profiles', json={'make': 'Prusa'}, headers=AUTH)
        assert response.status_code == 400


class TestSettings:

    def test_effective_settings(self, client, printer_id):
        data = client.get(f'/api/profiles/{printer_id}/settings').get_json()

        assert data['name'] == 'Workshop'
        assert data['settings']['bed_temperature'] == '70'
        assert data['settings']['layer_height'] == '0.2'

    def test_set_and_clear_override(self, client, printer_id):
        url = f'/api/profiles/{printer_id}/settings/bed_temperature'

        response = client.put(url, json={'value': '55'}, headers=AUTH)
        assert (response.get_json()['value'], response.get_json()['layer']) == ('55', 'user')
        assert client.get(url).get_json()['value'] == '55'

        response = client.delete(url, headers=AUTH)
        assert (response.get_json()['value'], response.get_json()['layer']) == ('70', 'oem')
        assert client.get(url).get_json()['value'] == '70'

    def test_black_listed_setting_is_not_stored(self, client, printer_id):
        url = f'/api/profiles/{printer_id}/settings/print_leveling_enabled'

        client.put(url, json={'value': '1'}, headers=AUTH)

        data = client.get(url).get_json()
        assert data['value'] == ''
        assert data['layer'] is None

    def test_set_requires_value(self, client, printer_id):
        response = client.put(f'/api/profiles/{printer_id}/settings/bed_temperature', json={}, headers=AUTH)
        assert response.status_code == 400


class TestSession:

    def test_switch_user_isolates_catalogs(self, client, printer_id):
        switched = client.post('/api/session/user', json={'user_name': 'alice'}, headers=AUTH).get_json()
        assert switched['user'] == 'alice'
        assert switched['profiles'] == []
        assert client.get('/api/profiles').get_json()['count'] == 0

        back = client.post('/api/session/user', json={'user_name': ''}, headers=AUTH).get_json()
        assert back['user'] == 'guest'
        assert [p['ID'] for p in back['profiles']] == [printer_id]


class TestOem:

    def test_list(self, client):
        assert client.get('/api/oem').get_json()['makes'] == {'Prusa': ['MK3S']}

    def test_refresh_without_service(self, client):
        assert client.post('/api/oem/refresh', headers=AUTH).status_code == 503
