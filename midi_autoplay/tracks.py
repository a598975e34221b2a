"""Per-track transpose/octave state and its analysis, kept in sync with the window."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace

from midi_autoplay.analysis import TrackAnalysis, analyze_notes
from midi_autoplay.models import ParseResult, TrackView, Window
from midi_autoplay.notes import DEFAULT_NOTE_GROUPS

log = logging.getLogger('midi_autoplay.tracks')


@dataclass
class Track:
    id: int
    name: str
    note_count: int
    selected: bool = True
    transpose: int = 0
    octave: int = 0
    analysis: TrackAnalysis | None = None

    @property
    def shift(self) -> int:
        return self.transpose + 12 * self.octave

    def view(self) -> TrackView:
        return TrackView(
            id=self.id,
            name=self.name,
            selected=self.selected,
            transpose=self.transpose,
            octave=self.octave,
        )


class TrackAnalysisStore:
    """Holds the loaded song's tracks and one analysis per track.

    Analyses are always computed from the cached original note-on values, never
    from already shifted ones, so repeated transpose edits do not compound.
    """

    def __init__(self, groups=DEFAULT_NOTE_GROUPS) -> None:
        self._groups = groups
        self._tracks: dict[int, Track] = {}
        self._original_notes: dict[int, list[int]] = {}
        self._window = Window()

    @property
    def window(self) -> Window:
        return self._window

    def load(self, result: ParseResult, window: Window) -> None:
        """Replace everything with a freshly parsed song."""
        self._window = window
        self._original_notes = self._collect_notes(result)
        self._tracks = {
            info.id: Track(id=info.id, name=info.name, note_count=info.note_count)
            for info in result.tracks
        }
        for track in self._tracks.values():
            self._reanalyze(track)
        log.info('Loaded %d track(s) for window %d..%d', len(self._tracks), window.min_note, window.max_note)

    def reload(self, result: ParseResult, window: Window) -> None:
        """Re-analyze after a window change, keeping user edits for tracks that still exist."""
        previous = self._tracks
        self.load(result, window)
        for track_id, track in self._tracks.items():
            old = previous.get(track_id)
            if old is None:
                continue
            track.selected = old.selected
            track.transpose = old.transpose
            track.octave = old.octave
            self._reanalyze(track)

    def clear(self) -> None:
        self._tracks = {}
        self._original_notes = {}

    def tracks(self) -> list[Track]:
        return [replace(t) for t in self._tracks.values()]

    def views(self) -> tuple[TrackView, ...]:
        return tuple(t.view() for t in self._tracks.values())

    def track(self, track_id: int) -> Track:
        return replace(self._tracks[track_id])

    def __len__(self) -> int:
        return len(self._tracks)

    def set_selected(self, track_id: int, selected: bool) -> None:
        self._tracks[track_id].selected = selected

    def select_all(self, selected: bool = True) -> None:
        for track in self._tracks.values():
            track.selected = selected

    def set_transpose(self, track_id: int, transpose: int) -> TrackAnalysis | None:
        track = self._tracks[track_id]
        track.transpose = int(transpose)
        return self._reanalyze(track)

    def set_octave(self, track_id: int, octave: int) -> TrackAnalysis | None:
        track = self._tracks[track_id]
        track.octave = int(octave)
        return self._reanalyze(track)

    def apply_suggestion(self, track_id: int, extreme: str) -> bool:
        """Write the suggested transpose/octave for 'max' or 'min' and re-analyze.

        Returns False when the track has no suggestion for that extreme.
        """
        track = self._tracks[track_id]
        if track.analysis is None:
            return False
        suggestion = track.analysis.suggestion(extreme)
        if suggestion is None:
            return False
        track.transpose, track.octave = suggestion
        log.info('Track %d (%s): applied %s suggestion transpose=%d octave=%d',
                 track.id, track.name, extreme, track.transpose, track.octave)
        self._reanalyze(track)
        return True

    def _reanalyze(self, track: Track) -> TrackAnalysis | None:
        notes = self._original_notes.get(track.id)
        if not notes:
            track.analysis = None
            return None
        track.analysis = analyze_notes(notes, self._window, track.transpose, track.octave, self._groups)
        return track.analysis

    @staticmethod
    def _collect_notes(result: ParseResult) -> dict[int, list[int]]:
        notes: dict[int, list[int]] = {}
        for ev in result.events:
            if ev.is_note_on:
                notes.setdefault(ev.track, []).append(ev.note)
        return notes
