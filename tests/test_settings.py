"""Tests for midi_autoplay.settings: initialization, persistence and validation."""

import json

import pytest

from midi_autoplay.errors import SettingsNotReadyError
from midi_autoplay.settings import DEFAULT_SHORTCUTS, AppSettings, Settings


@pytest.fixture
def settings(tmp_path):
    s = Settings(str(tmp_path))
    s.initialize()
    return s


class TestSettings:
    """Test load/update/save round trips."""

    def test_not_ready_before_initialize(self, tmp_path):
        s = Settings(str(tmp_path))
        with pytest.raises(SettingsNotReadyError):
            s.get_settings()
        assert not s.ready.is_set()

    def test_defaults_without_file(self, settings):
        current = settings.get_settings()
        assert current == AppSettings()
        assert (current.min_note, current.max_note) == (48, 83)
        assert current.shortcuts == DEFAULT_SHORTCUTS
        assert current.bindings[60] == 'a'
        assert settings.ready.is_set()

    def test_initialize_is_idempotent(self, settings):
        settings.update(min_note=36)
        assert settings.initialize().min_note == 36

    def test_update_persists(self, settings, tmp_path):
        settings.update(min_note=36, max_note=95, trim_long_notes=True)
        reloaded = Settings(str(tmp_path))
        reloaded.initialize()
        current = reloaded.get_settings()
        assert (current.min_note, current.max_note) == (36, 95)
        assert current.trim_long_notes

    def test_note_tables_keep_int_keys(self, settings, tmp_path):
        settings.update(input_mode='mouse', note_to_mouse={60: '10,20'})
        reloaded = Settings(str(tmp_path))
        reloaded.initialize()
        assert reloaded.get_settings().bindings == {60: '10,20'}

    def test_shortcuts_merged(self, settings):
        settings.update(shortcuts={'STOP': '<f12>'})
        shortcuts = settings.get_settings().shortcuts
        assert shortcuts['STOP'] == '<f12>'
        assert shortcuts['START_PAUSE'] == '<f9>'

    def test_unknown_field_raises(self, settings):
        with pytest.raises(TypeError):
            settings.update(volume=3)

    def test_corrupt_file_gives_defaults(self, tmp_path):
        (tmp_path / 'config.json').write_text('{not json', encoding='utf-8')
        s = Settings(str(tmp_path))
        assert s.initialize() == AppSettings()

    def test_invalid_values_fall_back(self, tmp_path):
        data = {'input_mode': 'gamepad', 'black_key_mode': 'flat', 'min_note': 90, 'max_note': 40, 'extra': 1}
        (tmp_path / 'config.json').write_text(json.dumps(data), encoding='utf-8')
        s = Settings(str(tmp_path))
        current = s.initialize()
        assert current.input_mode == 'keyboard'
        assert current.black_key_mode == 'off'
        assert (current.min_note, current.max_note) == (48, 83)

    def test_inverted_window_rejected(self, settings, tmp_path):
        with pytest.raises(ValueError, match='min_note'):
            settings.update(min_note=90)
        assert settings.get_settings().min_note == 48
        assert not (tmp_path / 'config.json').exists()

    def test_unknown_modes_rejected(self, settings):
        with pytest.raises(ValueError, match='input_mode'):
            settings.update(input_mode='gamepad')
        with pytest.raises(ValueError, match='black_key_mode'):
            settings.update(black_key_mode='flat')
        assert settings.get_settings() == AppSettings()

    def test_window_can_move_past_old_bounds(self, settings):
        settings.update(min_note=90, max_note=100)
        assert (settings.get_settings().min_note, settings.get_settings().max_note) == (90, 100)

    def test_save_failure_keeps_memory(self, tmp_path):
        blocker = tmp_path / 'blocker'
        blocker.write_text('', encoding='utf-8')
        s = Settings(str(blocker / 'sub'))
        s.initialize()
        s.update(min_note=40)
        assert s.get_settings().min_note == 40
