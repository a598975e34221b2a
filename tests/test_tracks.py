"""Tests for midi_autoplay.tracks: per-track edits and re-analysis from original notes."""

import pytest

from conftest import note, parse_result
from midi_autoplay.models import Window
from midi_autoplay.tracks import TrackAnalysisStore

WINDOW = Window(48, 83)


@pytest.fixture
def store():
    s = TrackAnalysisStore()
    s.load(parse_result({
        0: [note(0, 40, 0.0), note(0, 44, 0.5), note(0, 47, 1.0)],
        1: [note(1, 60, 0.0), note(1, 72, 1.0)],
    }, names={0: 'Bass', 1: 'Melody'}), WINDOW)
    return s


class TestTrackAnalysisStore:
    """Test loading, editing and re-analysis."""

    def test_load(self, store):
        tracks = store.tracks()
        assert [t.id for t in tracks] == [0, 1]
        assert tracks[0].name == 'Bass'
        assert tracks[0].note_count == 3
        assert all(t.selected for t in tracks)
        assert tracks[0].analysis.is_min_over_limit
        assert not tracks[1].analysis.is_over_limit
        assert len(store) == 2

    def test_transpose_does_not_compound(self, store):
        store.set_transpose(0, 8)
        store.set_transpose(0, 8)
        a = store.track(0).analysis
        assert a.min_note == 48
        assert a.max_note == 55

    def test_octave_edit(self, store):
        store.set_octave(1, 1)
        a = store.track(1).analysis
        assert a.max_note == 84
        assert a.is_max_over_limit

    def test_apply_suggestion(self, store):
        assert store.apply_suggestion(0, 'min')
        t = store.track(0)
        assert (t.transpose, t.octave) == (-4, 1)
        assert not t.analysis.is_over_limit

    def test_apply_suggestion_without_one(self, store):
        assert not store.apply_suggestion(1, 'max')
        assert store.track(1).transpose == 0

    def test_returned_tracks_are_copies(self, store):
        t = store.track(0)
        t.transpose = 99
        assert store.track(0).transpose == 0

    def test_unknown_track_raises(self, store):
        with pytest.raises(KeyError):
            store.set_transpose(42, 1)

    def test_views_carry_shift(self, store):
        store.set_selected(1, False)
        store.set_transpose(0, 2)
        store.set_octave(0, 1)
        views = {v.id: v for v in store.views()}
        assert views[0].shift == 14
        assert not views[1].selected

    def test_select_all(self, store):
        store.select_all(False)
        assert not any(t.selected for t in store.tracks())

    def test_reload_keeps_edits_and_uses_new_window(self, store):
        store.set_transpose(0, 8)
        store.set_selected(1, False)
        result = parse_result({
            0: [note(0, 40, 0.0), note(0, 44, 0.5), note(0, 47, 1.0)],
            1: [note(1, 60, 0.0), note(1, 72, 1.0)],
        })
        store.reload(result, Window(60, 71))
        assert store.window == Window(60, 71)
        assert store.track(0).transpose == 8
        assert not store.track(1).selected
        assert store.track(1).analysis.is_max_over_limit

    def test_clear(self, store):
        store.clear()
        assert len(store) == 0
        assert store.views() == ()
