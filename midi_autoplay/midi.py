"""Parse MIDI into timed note events and per-track range analysis."""

import bisect
import logging
from dataclasses import replace

import mido

from midi_autoplay.analysis import analyze_notes, summarize_events
from midi_autoplay.models import NoteEvent, NoteType, ParseResult, TrackInfo, Window
from midi_autoplay.notes import is_black_key, nearest_white

log = logging.getLogger('midi_autoplay.midi')

DEFAULT_TEMPO = 500_000  # microseconds per beat (120 BPM)

BLACK_KEY_MODES = ('off', 'auto_sharp')


class TempoMap:
    """Tick -> seconds conversion over a list of (tick, tempo) changes."""

    def __init__(self, changes: list[tuple[int, int]], ticks_per_beat: int):
        unique: list[tuple[int, int]] = []
        for tick, tempo in sorted(changes, key=lambda c: c[0]):
            # Same tick: the later change wins
            if unique and unique[-1][0] == tick:
                unique[-1] = (tick, tempo)
            else:
                unique.append((tick, tempo))
        if not unique or unique[0][0] > 0:
            unique.insert(0, (0, DEFAULT_TEMPO))
        self.ticks_per_beat = ticks_per_beat
        self._ticks = [t for t, _ in unique]
        self._tempos = [tempo for _, tempo in unique]
        # Seconds elapsed at each change
        self._seconds = [0.0]
        for i in range(1, len(unique)):
            delta = self._ticks[i] - self._ticks[i - 1]
            self._seconds.append(
                self._seconds[-1] + mido.tick2second(delta, ticks_per_beat, self._tempos[i - 1])
            )

    def seconds(self, tick: int) -> float:
        i = bisect.bisect_right(self._ticks, tick) - 1
        return self._seconds[i] + mido.tick2second(tick - self._ticks[i], self.ticks_per_beat, self._tempos[i])


def _track_name(track, index: int) -> str:
    for msg in track:
        if msg.type == 'track_name' and msg.name:
            return msg.name
    return f'Track {index}'


def _collect_tempo_changes(mid: mido.MidiFile) -> list[tuple[int, int]]:
    changes = []
    for track in mid.tracks:
        tick = 0
        for msg in track:
            tick += msg.time
            if msg.type == 'set_tempo':
                changes.append((tick, msg.tempo))
    return changes


def _track_notes(track, track_index: int, tempo_map: TempoMap) -> list[NoteEvent]:
    """Sounding notes of one track as note-on events with duration/end filled in.

    Note-on/note-off are paired per (channel, note); velocity 0 counts as
    note-off. Notes that never end are dropped.
    """
    notes: list[NoteEvent] = []
    active: dict[tuple[int, int], tuple[int, int]] = {}
    tick = 0
    for msg in track:
        tick += msg.time
        if msg.type not in ('note_on', 'note_off'):
            continue
        key = (msg.channel, msg.note)
        if msg.type == 'note_on' and msg.velocity > 0:
            active[key] = (tick, msg.velocity)
            continue
        started = active.pop(key, None)
        if started is None:
            continue
        start_tick, velocity = started
        start = tempo_map.seconds(start_tick)
        end = tempo_map.seconds(tick)
        notes.append(NoteEvent(
            track=track_index, type=NoteType.NOTE_ON, note=msg.note, time=start,
            duration=end - start, end=end, velocity=velocity, channel=msg.channel,
        ))
    return notes


def _trim_long_notes(notes: list[NoteEvent]) -> list[NoteEvent]:
    """Cap each note so it ends no later than the next later onset in its track."""
    onsets: dict[int, list[float]] = {}
    for ev in notes:
        onsets.setdefault(ev.track, []).append(ev.time)
    for times in onsets.values():
        times.sort()

    trimmed = []
    for ev in notes:
        times = onsets[ev.track]
        i = bisect.bisect_right(times, ev.time)
        if i < len(times) and times[i] < ev.end:
            ev = replace(ev, duration=times[i] - ev.time, end=times[i])
        trimmed.append(ev)
    return trimmed


def _apply_black_key_mode(notes: list[NoteEvent], mode: str) -> list[NoteEvent]:
    if mode == 'off':
        return notes
    if mode != 'auto_sharp':
        raise ValueError(f'Unknown black key mode {mode!r}; expected one of {BLACK_KEY_MODES}')
    return [replace(ev, note=nearest_white(ev.note)) if is_black_key(ev.note) else ev for ev in notes]


def _with_note_offs(notes: list[NoteEvent]) -> list[NoteEvent]:
    events: list[NoteEvent] = []
    for ev in notes:
        events.append(ev)
        events.append(NoteEvent(
            track=ev.track, type=NoteType.NOTE_OFF, note=ev.note, time=ev.end,
            duration=0.0, end=ev.end, velocity=0, channel=ev.channel,
        ))
    events.sort(key=lambda e: e.time)
    return events


def parse_midi(
    path: str,
    min_note: int = 48,
    max_note: int = 83,
    black_key_mode: str = 'off',
    trim_long_notes: bool = False,
) -> ParseResult:
    """Parse a MIDI file into note events, per-track info and range analysis.

    Raises whatever mido raises for unreadable files (OSError, EOFError, ValueError).
    SMPTE-timed files raise ValueError.
    """
    window = Window(min_note, max_note)
    mid = mido.MidiFile(path)
    if mid.ticks_per_beat <= 0:
        raise ValueError(f'{path}: SMPTE timing is not supported')
    tempo_map = TempoMap(_collect_tempo_changes(mid), mid.ticks_per_beat)

    notes: list[NoteEvent] = []
    names: dict[int, str] = {}
    for i, track in enumerate(mid.tracks):
        names[i] = _track_name(track, i)
        notes.extend(_track_notes(track, i, tempo_map))

    if trim_long_notes:
        notes = _trim_long_notes(notes)
    notes = _apply_black_key_mode(notes, black_key_mode)
    events = _with_note_offs(notes)

    notes_by_track: dict[int, list[int]] = {}
    for ev in notes:
        notes_by_track.setdefault(ev.track, []).append(ev.note)

    tracks = tuple(
        TrackInfo(
            id=i,
            name=names[i],
            note_count=len(notes_by_track[i]),
            analysis=analyze_notes(notes_by_track[i], window),
        )
        for i in sorted(notes_by_track)
    )
    log.info('Parsed %s: %d note(s) in %d track(s)', path, len(notes), len(tracks))
    return ParseResult(events=tuple(events), tracks=tracks, analysis=summarize_events(events, window))
