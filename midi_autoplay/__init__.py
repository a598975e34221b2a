"""MIDI autoplay: analyze a song against a playable range and play it as key presses."""

from midi_autoplay.analysis import analyze_notes, optimize_transpose
from midi_autoplay.controller import PlaybackController, PlaybackState
from midi_autoplay.midi import parse_midi
from midi_autoplay.models import KeyEvent, NoteEvent, NoteType, SongSnapshot, Window
from midi_autoplay.tracks import Track, TrackAnalysisStore
from midi_autoplay.version import __version__

__all__ = [
    'KeyEvent',
    'NoteEvent',
    'NoteType',
    'PlaybackController',
    'PlaybackState',
    'SongSnapshot',
    'Track',
    'TrackAnalysisStore',
    'Window',
    '__version__',
    'analyze_notes',
    'optimize_transpose',
    'parse_midi',
]
