"""Shared fakes: a manual clock timer source, spy backends and a MIDI file builder."""

import itertools

import mido
import pytest

from midi_autoplay.errors import PlaybackBackendError
from midi_autoplay.models import NoteEvent, NoteType, ParseResult, TrackInfo


class FakeTimers:
    """TimerSource driven by advance(seconds) instead of a real loop."""

    def __init__(self):
        self.now = 0.0
        self._ids = itertools.count()
        self._pending = {}

    def after(self, ms, func):
        timer_id = next(self._ids)
        self._pending[timer_id] = (self.now + ms / 1000.0, timer_id, func)
        return timer_id

    def after_cancel(self, timer_id):
        self._pending.pop(timer_id, None)

    def call_soon(self, func):
        self.after(0, func)

    def time(self):
        return self.now

    def pending(self):
        return len(self._pending)

    def advance(self, seconds):
        end = self.now + seconds
        while True:
            due = [p for p in self._pending.values() if p[0] <= end + 1e-9]
            if not due:
                break
            when, timer_id, func = min(due, key=lambda p: (p[0], p[1]))
            del self._pending[timer_id]
            self.now = max(self.now, when)
            func()
        self.now = end


class SpyBackend:
    """Records start/stop calls; optionally fails either."""

    def __init__(self, fail_start=False, fail_stop=False):
        self.fail_start = fail_start
        self.fail_stop = fail_stop
        self.started = []
        self.stop_calls = 0
        self.on_error = None

    def start_playback(self, events):
        if self.fail_start:
            raise PlaybackBackendError('device unavailable')
        self.started.append(list(events))

    def stop_playback(self):
        self.stop_calls += 1
        if self.fail_stop:
            raise RuntimeError('stop failed')


class SpyAudio:
    def __init__(self, now=10.0):
        self.now = now
        self.triggered = []
        self.stop_calls = 0

    def current_time(self):
        return self.now

    def trigger(self, note, velocity, when, duration):
        self.triggered.append((note, velocity, when, duration))

    def stop_all(self):
        self.stop_calls += 1


def note(track, value, time, duration=0.5, velocity=100):
    return NoteEvent(
        track=track, type=NoteType.NOTE_ON, note=value, time=time,
        duration=duration, end=time + duration, velocity=velocity,
    )


def parse_result(notes_by_track, names=None):
    """ParseResult from {track_id: [NoteEvent, ...]} with matching note-offs."""
    names = names or {}
    events = []
    tracks = []
    for track_id, notes in sorted(notes_by_track.items()):
        for ev in notes:
            events.append(ev)
            events.append(NoteEvent(track=ev.track, type=NoteType.NOTE_OFF, note=ev.note, time=ev.end, end=ev.end))
        tracks.append(TrackInfo(id=track_id, name=names.get(track_id, f'Track {track_id}'), note_count=len(notes)))
    events.sort(key=lambda e: e.time)
    return ParseResult(events=tuple(events), tracks=tuple(tracks))


def write_midi(path, tracks, ticks_per_beat=480, tempos=((0, 500_000),)):
    """Write a type-1 file: a conductor track with `tempos`, then one track per (name, notes).

    notes are (note, start_tick, end_tick, velocity).
    """
    mid = mido.MidiFile(type=1, ticks_per_beat=ticks_per_beat)
    conductor = mido.MidiTrack()
    last = 0
    for tick, tempo in tempos:
        conductor.append(mido.MetaMessage('set_tempo', tempo=tempo, time=tick - last))
        last = tick
    mid.tracks.append(conductor)
    for name, notes in tracks:
        track = mido.MidiTrack()
        if name:
            track.append(mido.MetaMessage('track_name', name=name, time=0))
        messages = []
        for value, start, end, velocity in notes:
            messages.append((start, 1, mido.Message('note_on', note=value, velocity=velocity)))
            messages.append((end, 0, mido.Message('note_off', note=value, velocity=0)))
        messages.sort(key=lambda m: (m[0], m[1]))
        last = 0
        for tick, _, msg in messages:
            track.append(msg.copy(time=tick - last))
            last = tick
        mid.tracks.append(track)
    mid.save(str(path))
    return str(path)


@pytest.fixture
def timers():
    return FakeTimers()


@pytest.fixture
def backend():
    return SpyBackend()


@pytest.fixture
def audio():
    return SpyAudio()
