"""Session layer between a front end and the playback core.

Owns the loaded song, its tracks and the window. Front ends call intent
methods (load_song, set_transpose, apply_suggestion, play, ...) and read
tracks()/snapshot(); the controller only ever sees immutable snapshots.
"""

from __future__ import annotations

import logging
from typing import Callable

from midi_autoplay.controller import PlaybackController, PlaybackState
from midi_autoplay.library import SongLibrary
from midi_autoplay.midi import parse_midi
from midi_autoplay.models import ParseResult, SongSnapshot, Window
from midi_autoplay.settings import Settings
from midi_autoplay.shortcuts import ShortcutHandlers
from midi_autoplay.tracks import Track, TrackAnalysisStore
from midi_autoplay.window_focus import focus_process_window

log = logging.getLogger('midi_autoplay.session')


class AutoplaySession:
    def __init__(
        self,
        settings: Settings,
        controller: PlaybackController,
        parser: Callable[..., ParseResult] = parse_midi,
        library: SongLibrary | None = None,
        focus_window: Callable[[str], bool] = focus_process_window,
        on_message: Callable[[str], None] | None = None,
    ):
        self._settings = settings
        self._controller = controller
        self._parser = parser
        self._focus_window = focus_window
        self.library = library or SongLibrary()
        self.on_message = on_message
        self.store = TrackAnalysisStore()
        self.path: str | None = None
        self.result = ParseResult()

    @property
    def controller(self) -> PlaybackController:
        return self._controller

    @property
    def state(self) -> PlaybackState:
        return self._controller.state

    @property
    def window(self) -> Window:
        s = self._settings.get_settings()
        return Window(s.min_note, s.max_note)

    # --- song ---

    def load_song(self, path: str) -> bool:
        """Stop whatever is active, then parse `path` and analyze its tracks."""
        self._controller.stop()
        self.path = path
        self.library.select(path)
        result = self._parse(path)
        if result is None:
            self.result = ParseResult()
            self.store.clear()
            return False
        self.result = result
        self.store.load(result, self.window)
        return True

    def set_window(self, min_note: int, max_note: int) -> bool:
        """Change the playable window; re-parses and re-analyzes the current song."""
        window = Window(min_note, max_note)
        self._settings.update(min_note=window.min_note, max_note=window.max_note)
        if self.path is None:
            return True
        result = self._parse(self.path)
        if result is None:
            self.result = ParseResult()
            self.store.clear()
            return False
        self.result = result
        self.store.reload(result, window)
        return True

    def next_song(self) -> bool:
        path = self.library.next()
        return self.load_song(path) if path else False

    def prev_song(self) -> bool:
        path = self.library.prev()
        return self.load_song(path) if path else False

    def open_folder(self, folder: str) -> int:
        count = self.library.scan(folder)
        self._settings.update(midi_folder_path=folder)
        return count

    # --- tracks ---

    def tracks(self) -> list[Track]:
        return self.store.tracks()

    def set_selected(self, track_id: int, selected: bool) -> None:
        self.store.set_selected(track_id, selected)

    def select_only(self, track_ids) -> None:
        wanted = set(track_ids)
        for track in self.store.tracks():
            self.store.set_selected(track.id, track.id in wanted)

    def set_transpose(self, track_id: int, transpose: int) -> None:
        self.store.set_transpose(track_id, transpose)

    def set_octave(self, track_id: int, octave: int) -> None:
        self.store.set_octave(track_id, octave)

    def apply_suggestion(self, track_id: int, extreme: str) -> bool:
        return self.store.apply_suggestion(track_id, extreme)

    def snapshot(self) -> SongSnapshot:
        return SongSnapshot(
            events=self.result.events,
            tracks=self.store.views(),
            window=self.window,
            bindings=self._settings.get_settings().bindings,
        )

    # --- playback intents ---

    def play(self) -> bool:
        self._controller.stop()
        focus = self._settings.get_settings().focus_process
        if focus:
            self._focus_window(focus)
        return self._controller.start_playback(self.snapshot())

    def preview(self) -> bool:
        self._controller.stop()
        return self._controller.start_preview(self.snapshot())

    def audio_preview(self) -> bool:
        self._controller.stop()
        return self._controller.start_audio_preview(self.snapshot())

    def stop(self) -> None:
        self._controller.stop()

    def toggle_play(self) -> None:
        if self._controller.is_idle():
            self.play()
        else:
            self.stop()

    def shortcut_handlers(self, wrap: Callable[[Callable[[], None]], Callable[[], None]] = lambda f: f) -> ShortcutHandlers:
        """Handlers for ShortcutService; `wrap` moves each call onto the caller's event loop."""
        return ShortcutHandlers(
            on_start_pause=wrap(self.toggle_play),
            on_stop=wrap(self.stop),
            on_prev_song=wrap(self.prev_song),
            on_next_song=wrap(self.next_song),
        )

    def _parse(self, path: str) -> ParseResult | None:
        s = self._settings.get_settings()
        try:
            return self._parser(
                path,
                min_note=s.min_note,
                max_note=s.max_note,
                black_key_mode=s.black_key_mode,
                trim_long_notes=s.trim_long_notes,
            )
        except Exception as e:
            log.exception('Failed to parse %s', path)
            self._report(f'Could not load {path}: {e}')
            return None

    def _report(self, message: str) -> None:
        if self.on_message:
            self.on_message(message)
