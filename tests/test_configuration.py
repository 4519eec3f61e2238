"""Tests for ConfigurationManager persistence and validation."""

import json

import pytest

from camviewer.managers import ConfigurationManager, DependencyContainer, ErrorHandler
from camviewer.models import IndexSettings


@pytest.fixture
def config(tmp_path):
    container = DependencyContainer()
    container.register_service('error_handler', ErrorHandler())
    manager = ConfigurationManager(container, base_dir=tmp_path)
    container.register_service('configuration', manager)
    assert manager.initialize()
    return manager


class TestDefaults:
    def test_defaults_written_on_first_run(self, config) -> None:
        assert config.settings_file.exists()
        stored = json.loads(config.settings_file.read_text(encoding="utf-8"))
        assert stored['cameras']['primary'] == 'front'
        assert config.get_setting('storage.auto_detect') is True

    def test_unknown_key_returns_default(self, config) -> None:
        assert config.get_setting('storage.nothing', 'x') == 'x'
        assert config.get_setting('nothing.at.all') is None

    def test_directories_created(self, config, tmp_path) -> None:
        assert (tmp_path / 'config').is_dir()
        assert (tmp_path / 'logs').is_dir()
        assert config.get_logs_directory() == tmp_path / 'logs'


class TestSetSetting:
    def test_persisted_across_instances(self, config, tmp_path) -> None:
        assert config.set_setting('renderer.padding', 12)

        other = ConfigurationManager(None, base_dir=tmp_path)
        assert other.initialize()
        assert other.get_setting('renderer.padding') == 12

    def test_change_signal(self, config) -> None:
        changes = []
        config.signals.setting_changed.connect(lambda key, value: changes.append((key, value)))

        config.set_setting('cameras.primary', 'back', save=False)
        config.set_setting('cameras.primary', 'back', save=False)

        assert changes == [('cameras.primary', 'back')]

    @pytest.mark.parametrize("key, value", [
        ('renderer.padding', -1),
        ('renderer.padding', "30"),
        ('renderer.duration_s', True),
        ('renderer.container', 'avi'),
        ('cameras.feeds', []),
        ('cameras.feeds', ['front', 3]),
        ('logging.default_level', 'LOUD'),
    ])
    def test_invalid_values_rejected(self, config, key, value) -> None:
        before = config.get_setting(key)
        failures = []
        config.signals.validation_failed.connect(lambda k, msg: failures.append(k))

        assert not config.set_setting(key, value, save=False)
        assert config.get_setting(key) == before
        assert failures == [key]

    def test_reset_setting(self, config) -> None:
        config.set_setting('renderer.timeout_s', 5, save=False)
        config.reset_setting('renderer.timeout_s', save=False)
        assert config.get_setting('renderer.timeout_s') == 30

    def test_get_all_settings_is_a_copy(self, config) -> None:
        snapshot = config.get_all_settings()
        snapshot['cameras']['primary'] = 'back'
        assert config.get_setting('cameras.primary') == 'front'


class TestLoading:
    def test_corrupt_file_falls_back_to_defaults(self, tmp_path) -> None:
        (tmp_path / 'config').mkdir()
        (tmp_path / 'config' / 'settings.json').write_text("{not json", encoding="utf-8")
        manager = ConfigurationManager(None, base_dir=tmp_path)
        corrupted = []
        manager.signals.configuration_corrupted.connect(corrupted.append)

        assert manager.initialize()

        assert len(corrupted) == 1
        assert manager.get_setting('cameras.primary') == 'front'

    def test_invalid_stored_value_resets_everything(self, tmp_path) -> None:
        (tmp_path / 'config').mkdir()
        (tmp_path / 'config' / 'settings.json').write_text(
            json.dumps({'renderer': {'padding': -5}, 'cameras': {'primary': 'back'}}), encoding="utf-8")
        manager = ConfigurationManager(None, base_dir=tmp_path)

        assert manager.initialize()

        assert manager.get_setting('renderer.padding') == 30
        assert manager.get_setting('cameras.primary') == 'front'

    def test_partial_file_merged_over_defaults(self, tmp_path) -> None:
        (tmp_path / 'config').mkdir()
        (tmp_path / 'config' / 'settings.json').write_text(
            json.dumps({'storage': {'roots': ['/media/usb/TeslaCam']}}), encoding="utf-8")
        manager = ConfigurationManager(None, base_dir=tmp_path)

        assert manager.initialize()

        assert manager.get_storage_roots() == ['/media/usb/TeslaCam']
        assert manager.get_setting('storage.metadata_file') == 'event.json'


class TestCoreValues:
    def test_feeds_put_primary_first(self, config) -> None:
        config.set_setting('cameras.primary', 'back', save=False)
        assert config.get_feeds() == ['back', 'front', 'left_repeater', 'right_repeater']

    def test_primary_added_when_not_listed(self, config) -> None:
        config.set_setting('cameras.feeds', ['left_repeater'], save=False)
        assert config.get_feeds() == ['front', 'left_repeater']

    def test_indexing_settings(self, config) -> None:
        config.set_setting('storage.metadata_file', 'meta.json', save=False)

        settings = config.indexing_settings()

        assert settings == IndexSettings(mandatory_camera='front', metadata_file='meta.json',
                                         thumbnail_file='thumb.png')

    def test_composition_spec(self, config) -> None:
        config.set_setting('renderer.resolution', '320x240', save=False)
        config.set_setting('renderer.duration_s', 45, save=False)

        spec = config.composition_spec()

        assert spec.tile_size == (320, 240)
        assert spec.duration_s == 45
        assert spec.label_for('back') == 'Back'
