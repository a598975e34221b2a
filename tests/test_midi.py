"""Tests for midi_autoplay.midi: tempo map, note pairing, options and analysis."""

import mido
import pytest

from conftest import write_midi
from midi_autoplay.midi import TempoMap, parse_midi
from midi_autoplay.models import NoteType


def note_ons(result):
    return [e for e in result.events if e.type is NoteType.NOTE_ON]


class TestTempoMap:
    """Test tick -> seconds conversion."""

    def test_default_tempo(self):
        tm = TempoMap([], 480)
        assert tm.seconds(480) == pytest.approx(0.5)

    def test_tempo_change(self):
        # 120 BPM for one beat, then 60 BPM
        tm = TempoMap([(0, 500_000), (480, 1_000_000)], 480)
        assert tm.seconds(480) == pytest.approx(0.5)
        assert tm.seconds(960) == pytest.approx(1.5)

    def test_same_tick_later_wins(self):
        tm = TempoMap([(0, 500_000), (0, 1_000_000)], 480)
        assert tm.seconds(480) == pytest.approx(1.0)


class TestParseMidi:
    """Test parse_midi on generated files."""

    def test_basic(self, tmp_path):
        path = write_midi(tmp_path / 'song.mid', [
            ('Piano', [(60, 0, 480, 100), (64, 480, 960, 90)]),
        ])
        result = parse_midi(path)
        ons = note_ons(result)
        assert [e.note for e in ons] == [60, 64]
        assert ons[1].time == pytest.approx(0.5)
        assert ons[1].duration == pytest.approx(0.5)
        assert ons[1].end == pytest.approx(1.0)
        assert ons[0].velocity == 100
        assert len(result.events) == 4
        assert [t.name for t in result.tracks] == ['Piano']
        assert result.tracks[0].id == 1
        assert result.tracks[0].note_count == 2

    def test_events_sorted_by_time(self, tmp_path):
        path = write_midi(tmp_path / 'song.mid', [
            ('A', [(60, 480, 960, 100)]),
            ('B', [(62, 0, 240, 100)]),
        ])
        times = [e.time for e in parse_midi(path).events]
        assert times == sorted(times)

    def test_tempo_change_applies_to_all_tracks(self, tmp_path):
        path = write_midi(
            tmp_path / 'song.mid',
            [('Piano', [(60, 960, 1440, 100)])],
            tempos=((0, 500_000), (480, 1_000_000)),
        )
        ev = note_ons(parse_midi(path))[0]
        assert ev.time == pytest.approx(1.5)
        assert ev.duration == pytest.approx(1.0)

    def test_velocity_zero_note_on_ends_note(self, tmp_path):
        mid = mido.MidiFile(ticks_per_beat=480)
        track = mido.MidiTrack()
        track.append(mido.Message('note_on', note=60, velocity=80, time=0))
        track.append(mido.Message('note_on', note=60, velocity=0, time=240))
        mid.tracks.append(track)
        path = tmp_path / 'zero.mid'
        mid.save(str(path))
        ons = note_ons(parse_midi(str(path)))
        assert len(ons) == 1
        assert ons[0].duration == pytest.approx(0.25)

    def test_unterminated_note_dropped(self, tmp_path):
        mid = mido.MidiFile(ticks_per_beat=480)
        track = mido.MidiTrack()
        track.append(mido.Message('note_on', note=60, velocity=80, time=0))
        mid.tracks.append(track)
        path = tmp_path / 'open.mid'
        mid.save(str(path))
        result = parse_midi(str(path))
        assert result.events == ()
        assert result.tracks == ()

    def test_unnamed_track(self, tmp_path):
        path = write_midi(tmp_path / 'song.mid', [(None, [(60, 0, 480, 100)])])
        assert parse_midi(path).tracks[0].name == 'Track 1'

    def test_analysis_uses_window(self, tmp_path):
        path = write_midi(tmp_path / 'song.mid', [('Low', [(40, 0, 480, 100), (47, 480, 960, 100)])])
        result = parse_midi(path, min_note=48, max_note=83)
        a = result.tracks[0].analysis
        assert a.is_min_over_limit
        assert a.suggestion('min') == (-4, 1)
        assert result.analysis.under_min_count == 2
        assert parse_midi(path, min_note=36, max_note=59).tracks[0].analysis.is_over_limit is False

    def test_black_key_mode_auto_sharp(self, tmp_path):
        path = write_midi(tmp_path / 'song.mid', [('Piano', [(61, 0, 480, 100), (66, 480, 960, 100)])])
        assert [e.note for e in note_ons(parse_midi(path, black_key_mode='auto_sharp'))] == [60, 65]
        assert [e.note for e in note_ons(parse_midi(path))] == [61, 66]

    def test_unknown_black_key_mode(self, tmp_path):
        path = write_midi(tmp_path / 'song.mid', [('Piano', [(61, 0, 480, 100)])])
        with pytest.raises(ValueError):
            parse_midi(path, black_key_mode='flat')

    def test_trim_long_notes(self, tmp_path):
        path = write_midi(tmp_path / 'song.mid', [('Piano', [(60, 0, 1920, 100), (64, 480, 960, 100)])])
        held = note_ons(parse_midi(path))[0]
        trimmed = note_ons(parse_midi(path, trim_long_notes=True))[0]
        assert held.duration == pytest.approx(2.0)
        assert trimmed.duration == pytest.approx(0.5)
        offs = [e for e in parse_midi(path, trim_long_notes=True).events if e.type is NoteType.NOTE_OFF]
        assert min(e.time for e in offs) == pytest.approx(0.5)

    def test_parse_midi_invalid_path_raises(self):
        with pytest.raises((FileNotFoundError, OSError)):
            parse_midi('nonexistent_file_12345.mid')

    def test_smpte_timing_rejected(self, tmp_path):
        path = tmp_path / 'smpte.mid'
        # Division 0xE728: 25 fps, 40 ticks per frame
        header = b'MThd' + b'\x00\x00\x00\x06' + b'\x00\x00' + b'\x00\x01' + b'\xe7\x28'
        track = b'MTrk' + b'\x00\x00\x00\x04' + b'\x00\xff\x2f\x00'
        path.write_bytes(header + track)
        with pytest.raises(ValueError, match='SMPTE'):
            parse_midi(str(path))
