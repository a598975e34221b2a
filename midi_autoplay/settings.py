"""Application settings persisted as JSON (no UI).

Settings is constructed explicitly and passed to whoever needs it. Call
initialize() once; get_settings() then returns an immutable snapshot.
"""

import json
import logging
import os
import threading
from dataclasses import asdict, dataclass, field, fields, replace

from midi_autoplay.errors import SettingsNotReadyError
from midi_autoplay.keymap import default_note_to_key, normalize_table
from midi_autoplay.midi import BLACK_KEY_MODES

log = logging.getLogger('midi_autoplay.settings')

DEFAULT_SHORTCUTS = {
    'START_PAUSE': '<f9>',
    'STOP': '<f10>',
    'PREV_SONG': '<f7>',
    'NEXT_SONG': '<f8>',
}

INPUT_MODES = ('keyboard', 'mouse')

# Merged key-by-key on update instead of being replaced
_MERGED_FIELDS = ('shortcuts', 'note_to_key', 'note_to_mouse')


@dataclass(frozen=True)
class AppSettings:
    min_note: int = 48
    max_note: int = 83
    black_key_mode: str = 'off'
    trim_long_notes: bool = False
    input_mode: str = 'keyboard'
    note_to_key: dict[int, str] = field(default_factory=default_note_to_key)
    note_to_mouse: dict[int, str] = field(default_factory=dict)
    shortcuts: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_SHORTCUTS))
    midi_folder_path: str | None = None
    focus_process: str | None = None

    @property
    def bindings(self) -> dict[int, str]:
        return dict(self.note_to_mouse if self.input_mode == 'mouse' else self.note_to_key)


def _check(settings: AppSettings) -> None:
    """Raise ValueError for settings the rest of the app cannot work with."""
    if settings.input_mode not in INPUT_MODES:
        raise ValueError(f'input_mode must be one of {INPUT_MODES}, not {settings.input_mode!r}')
    if settings.black_key_mode not in BLACK_KEY_MODES:
        raise ValueError(f'black_key_mode must be one of {BLACK_KEY_MODES}, not {settings.black_key_mode!r}')
    if settings.min_note > settings.max_note:
        raise ValueError(f'min_note {settings.min_note} > max_note {settings.max_note}')


def _from_json(data: dict) -> AppSettings:
    """Build settings from a JSON object, ignoring unknown keys and keeping defaults for missing ones."""
    defaults = AppSettings()
    known = {f.name for f in fields(AppSettings)}
    values = {k: v for k, v in data.items() if k in known}
    for name in ('note_to_key', 'note_to_mouse'):
        if isinstance(values.get(name), dict):
            values[name] = normalize_table(values[name])
        else:
            values.pop(name, None)
    if isinstance(values.get('shortcuts'), dict):
        values['shortcuts'] = {**defaults.shortcuts, **values['shortcuts']}
    else:
        values.pop('shortcuts', None)
    settings = replace(defaults, **values)
    if settings.input_mode not in INPUT_MODES:
        log.warning('Unknown input_mode %r; using keyboard', settings.input_mode)
        settings = replace(settings, input_mode='keyboard')
    if settings.black_key_mode not in BLACK_KEY_MODES:
        log.warning('Unknown black_key_mode %r; using off', settings.black_key_mode)
        settings = replace(settings, black_key_mode='off')
    if settings.min_note > settings.max_note:
        log.warning('min_note > max_note in settings; using defaults')
        settings = replace(settings, min_note=defaults.min_note, max_note=defaults.max_note)
    return settings


class Settings:
    """Load/save AppSettings at <settings_dir>/config.json."""

    def __init__(self, settings_dir: str = ""):
        self._dir = settings_dir or os.path.join(os.path.expanduser("~"), ".midi_autoplay")
        self._path = os.path.join(self._dir, "config.json")
        self._settings = AppSettings()
        self._init_lock = threading.Lock()
        self.ready = threading.Event()

    @property
    def settings_dir(self) -> str:
        return self._dir

    @property
    def path(self) -> str:
        return self._path

    def initialize(self) -> AppSettings:
        """Load from disk once; later calls return the already loaded settings."""
        with self._init_lock:
            if not self.ready.is_set():
                self._settings = self._load()
                self.ready.set()
                log.info('Settings loaded from %s', self._path)
        return self._settings

    def get_settings(self) -> AppSettings:
        if not self.ready.is_set():
            raise SettingsNotReadyError('Settings.initialize() has not been called')
        return self._settings

    def update(self, **changes) -> AppSettings:
        """Merge changes into the current settings and save.

        Unknown names raise TypeError; invalid values raise ValueError and leave
        the current settings untouched.
        """
        current = self.get_settings()
        for name in _MERGED_FIELDS:
            if name in changes and changes[name] is not None:
                merged = dict(getattr(current, name))
                merged.update(changes[name])
                changes[name] = merged
        updated = replace(current, **changes)
        _check(updated)
        self._settings = updated
        self.save()
        return self._settings

    def save(self) -> None:
        """Write to disk. On failure the in-memory settings stay in effect."""
        data = asdict(self._settings)
        for name in ('note_to_key', 'note_to_mouse'):
            data[name] = {str(k): v for k, v in data[name].items()}
        try:
            os.makedirs(self._dir, exist_ok=True)
            with open(self._path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
        except OSError:
            log.exception('Could not save settings to %s; keeping them in memory', self._path)

    def _load(self) -> AppSettings:
        if not os.path.isfile(self._path):
            return AppSettings()
        try:
            with open(self._path, encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError):
            log.exception('Could not read %s; using defaults', self._path)
            return AppSettings()
        if not isinstance(data, dict):
            return AppSettings()
        try:
            return _from_json(data)
        except (TypeError, ValueError):
            log.exception('Invalid settings in %s; using defaults', self._path)
            return AppSettings()
