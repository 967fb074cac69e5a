"""Unit tests for the settings manager."""

import json

import pytest

from dockerlink.docker_api.exceptions import DockerConfigError
from dockerlink.settings_manager import DEFAULT_SETTINGS, SettingsManager


@pytest.fixture
def settings_path(tmp_path):
    return str(tmp_path / 'dockerlink' / 'settings.json')


class TestSettingsManager:
    """Tests for loading and saving settings."""

    def test_defaults_without_file(self, settings_path):
        manager = SettingsManager(settings_path, environ={})

        assert manager.get_all() == DEFAULT_SETTINGS

    def test_save_and_reload(self, settings_path):
        manager = SettingsManager(settings_path, environ={})
        manager.set('docker_host', 'tcp://build-host:2375')

        reloaded = SettingsManager(settings_path, environ={})

        assert reloaded.get('docker_host') == 'tcp://build-host:2375'
        assert reloaded.get('timeout') == DEFAULT_SETTINGS['timeout']

    def test_invalid_json_keeps_defaults(self, tmp_path):
        path = tmp_path / 'settings.json'
        path.write_text('{not json', encoding='utf-8')

        manager = SettingsManager(str(path), environ={})

        assert manager.get_all() == DEFAULT_SETTINGS

    def test_non_object_keeps_defaults(self, tmp_path):
        path = tmp_path / 'settings.json'
        path.write_text(json.dumps(['docker_host']), encoding='utf-8')

        assert SettingsManager(str(path), environ={}).get_all() == DEFAULT_SETTINGS

    def test_update_without_save(self, settings_path):
        manager = SettingsManager(settings_path, environ={})

        manager.update({'api_version': '1.43', 'log_level': 'DEBUG'}, save=False)

        assert manager.get('api_version') == '1.43'
        assert SettingsManager(settings_path, environ={}).get('api_version') == ''

    def test_reset_to_defaults(self, settings_path):
        manager = SettingsManager(settings_path, environ={})
        manager.set('cert_path', '/certs')

        manager.reset_to_defaults()

        assert SettingsManager(settings_path, environ={}).get('cert_path') == ''

    def test_environment_overrides_file(self, settings_path):
        manager = SettingsManager(settings_path, environ={'DOCKER_HOST': 'unix:///tmp/alt.sock'})
        manager.set('docker_host', 'tcp://build-host:2375', save=False)

        assert manager.get('docker_host') == 'unix:///tmp/alt.sock'

    def test_unknown_key_default(self, settings_path):
        assert SettingsManager(settings_path, environ={}).get('missing', 'x') == 'x'


class TestClientConfig:
    """Tests for building a ClientConfig from settings."""

    def test_defaults(self, settings_path):
        config = SettingsManager(settings_path, environ={}).client_config()

        assert config.docker_host is None
        assert config.api_version is None
        assert config.tls is False
        assert config.timeout == 60

    def test_environment_values(self, settings_path):
        environ = {
            'DOCKER_HOST': 'tcp://10.0.0.5:2376',
            'DOCKER_TLS_VERIFY': '1',
            'DOCKER_CERT_PATH': '/certs',
            'DOCKER_API_VERSION': 'v1.44',
            'DOCKER_CLIENT_TIMEOUT': '5',
        }

        config = SettingsManager(settings_path, environ=environ).client_config()

        assert config.docker_host == 'tcp://10.0.0.5:2376'
        assert config.tls_verify is True
        assert config.tls is True
        assert config.cert_path == '/certs'
        assert config.api_version == '1.44'
        assert config.timeout == 5.0

    def test_tls_verify_false_string(self, settings_path):
        manager = SettingsManager(settings_path, environ={'DOCKER_TLS_VERIFY': 'false'})

        assert manager.client_config().tls_verify is False

    def test_cert_path_alone_enables_tls(self, settings_path):
        manager = SettingsManager(settings_path, environ={})
        manager.update({'cert_path': '/certs', 'docker_host': 'tcp://remote:2376'}, save=False)

        config = manager.client_config()

        assert config.tls is True
        assert config.tls_verify is False

    def test_overrides_win_and_none_ignored(self, settings_path):
        manager = SettingsManager(settings_path, environ={'DOCKER_HOST': 'tcp://env-host:2375'})

        config = manager.client_config(docker_host='unix:///run/user/1000/docker.sock',
                                       api_version=None, timeout=None)

        assert config.docker_host == 'unix:///run/user/1000/docker.sock'
        assert config.timeout == 60

    def test_invalid_timeout(self, settings_path):
        manager = SettingsManager(settings_path, environ={'DOCKER_CLIENT_TIMEOUT': 'soon'})

        with pytest.raises(DockerConfigError, match='timeout'):
            manager.client_config()

    def test_invalid_api_version(self, settings_path):
        manager = SettingsManager(settings_path, environ={'DOCKER_API_VERSION': 'latest'})

        with pytest.raises(DockerConfigError):
            manager.client_config()
