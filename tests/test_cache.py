"""
Tests for cacheable assets and OEM settings loading.
"""

import json

from slicer_profile_service.cache import cacheable_path, load_cacheable
from slicer_profile_service.oem import OemProfiles, PublicDevice, load_oem_settings

from .conftest import OEM_DOCUMENT, write_json


class Collector:
    def __init__(self, result=None):
        self.result = result
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return self.result


class TestLoadCacheable:

    def test_cache_hit_skips_collector(self, tmp_path):
        cacheable_path('scope', 'key.json', tmp_path).write_text('{"a": 1}')
        collector = Collector('{"a": 2}')

        assert load_cacheable('key.json', 'scope', collector, cache_dir=tmp_path) == {'a': 1}
        assert collector.calls == 0

    def test_collected_result_is_cached(self, tmp_path):
        collector = Collector('{"a": 2}')

        assert load_cacheable('key.json', 'scope', collector, cache_dir=tmp_path) == {'a': 2}
        assert (tmp_path / 'scope' / 'key.json').read_text() == '{"a": 2}'

    def test_no_result_falls_back_to_static(self, tmp_path):
        static = tmp_path / 'static.json'
        static.write_text('{"static": true}')
        collector = Collector(None)

        result = load_cacheable('key.json', 'scope', collector, static_path=static, cache_dir=tmp_path)

        assert result == {'static': True}
        assert collector.calls == 1
        assert not (tmp_path / 'scope' / 'key.json').exists()

    def test_nothing_available(self, tmp_path):
        assert load_cacheable('key.json', 'scope', Collector(None), cache_dir=tmp_path) is None

    def test_corrupt_cache_is_ignored(self, tmp_path):
        cacheable_path('scope', 'key.json', tmp_path).write_text('{broken')
        collector = Collector('{"fresh": 1}')

        assert load_cacheable('key.json', 'scope', collector, cache_dir=tmp_path) == {'fresh': 1}
        assert collector.calls == 1

    def test_invalid_collected_content_is_not_cached(self, tmp_path):
        result = load_cacheable('key.json', 'scope', Collector('<html>'), cache_dir=tmp_path)
        assert result is None
        assert not (tmp_path / 'scope' / 'key.json').exists()


class TestOemSettings:

    DEVICE = PublicDevice('Prusa', 'MK3S', cache_key='mk3s-v1.printer', profile_token='tok')

    def test_downloads_when_not_cached(self, tmp_path):
        downloads = []

        def downloader(token):
            downloads.append(token)
            return json.dumps(OEM_DOCUMENT)

        settings = load_oem_settings(self.DEVICE, 'Prusa', 'MK3S', downloader, cache_dir=tmp_path)

        assert settings.get_value('layer_height') == '0.15'
        assert downloads == ['tok']
        assert (tmp_path / 'public-profiles' / 'Prusa' / 'mk3s-v1.printer').exists()

        again = load_oem_settings(self.DEVICE, 'Prusa', 'MK3S', downloader, cache_dir=tmp_path)
        assert again.make == 'Prusa'
        assert downloads == ['tok']

    def test_not_modified_uses_static_profile(self, tmp_path):
        static_dir = tmp_path / 'static'
        write_json(static_dir / 'Profiles' / 'Prusa' / 'MK3S.printer', OEM_DOCUMENT)

        settings = load_oem_settings(
            self.DEVICE, 'Prusa', 'MK3S', lambda token: None,
            cache_dir=tmp_path / 'cache', static_dir=static_dir,
        )

        assert settings.model == 'MK3S'
        assert not (tmp_path / 'cache' / 'public-profiles' / 'Prusa' / 'mk3s-v1.printer').exists()

    def test_without_downloader_or_copies(self, tmp_path):
        assert load_oem_settings(self.DEVICE, 'Prusa', 'MK3S', None, cache_dir=tmp_path) is None


class TestOemProfiles:

    def test_round_trip(self, tmp_path):
        path = tmp_path / 'oem_profiles.json'
        index = OemProfiles(path)
        index.update({'Creality': {'Ender3': {'cache_key': 'e3.printer', 'profile_token': 't'}}})
        index.save()

        loaded = OemProfiles.load(path)

        assert loaded.get('Creality', 'Ender3') == PublicDevice('Creality', 'Ender3', 'e3.printer', 't')
        assert loaded.makes() == ['Creality']
        assert loaded.models('Creality') == ['Ender3']
        assert loaded.get('Creality', 'Ender5') is None

    def test_corrupt_index_is_empty(self, tmp_path):
        path = tmp_path / 'oem_profiles.json'
        path.write_text('[1, 2')
        assert OemProfiles.load(path).makes() == []

    def test_default_cache_key(self):
        device = PublicDevice.from_dict('Prusa', 'MINI', {})
        assert device.cache_key == 'MINI.printer'
