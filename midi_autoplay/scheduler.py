"""Turn note events into dispatch plans for the input backends and the audio engine."""

from __future__ import annotations

import logging
from typing import Iterable, Protocol, Sequence

from midi_autoplay.errors import NoBindableNotesError, NoEligibleEventsError, NoSongLoadedError
from midi_autoplay.models import KeyEvent, NoteEvent, SongSnapshot, TrackView, Window

log = logging.getLogger('midi_autoplay.scheduler')

# Audio preview starts this far after "now" to absorb scheduling latency
AUDIO_LEAD_IN_SECONDS = 0.1
MIN_AUDIO_VELOCITY = 0.1

# (event, note after the track's transpose/octave)
Eligible = tuple[NoteEvent, int]


class AudioEngine(Protocol):
    def current_time(self) -> float: ...

    def trigger(self, note: int, velocity: float, when: float, duration: float) -> None: ...

    def stop_all(self) -> None: ...


def eligible_events(
    events: Iterable[NoteEvent],
    tracks: Sequence[TrackView],
    window: Window,
    respect_selection: bool = True,
) -> list[Eligible]:
    """Note-on events that fall inside the window after their track's shift.

    Notes outside the window are dropped, never moved. With respect_selection,
    events of unselected tracks are dropped too.
    """
    by_id = {t.id: t for t in tracks}
    eligible: list[Eligible] = []
    for ev in events:
        if not ev.is_note_on:
            continue
        track = by_id.get(ev.track)
        if respect_selection and (track is None or not track.selected):
            continue
        note = ev.note + (track.shift if track is not None else 0)
        if window.contains(note):
            eligible.append((ev, note))
    return eligible


def build_dispatch_plan(eligible: Iterable[Eligible], bindings: dict[int, str]) -> list[KeyEvent]:
    """Map eligible notes to bindings, keeping song time; unbound notes are dropped."""
    plan: list[KeyEvent] = []
    unbound = 0
    for ev, note in eligible:
        key = bindings.get(note)
        if key is None:
            unbound += 1
            log.debug('No binding for note %d at %.3fs; dropped', note, ev.time)
            continue
        plan.append(KeyEvent(time=ev.time, key=key, duration=ev.duration))
    if unbound:
        log.info('%d note(s) without a binding were dropped', unbound)
    plan.sort(key=lambda k: k.time)
    return plan


def plan_span(plan: Sequence[KeyEvent]) -> float:
    """Song time at which the last action ends."""
    return max((k.time + k.duration for k in plan), default=0.0)


def _plan(snapshot: SongSnapshot, respect_selection: bool) -> list[KeyEvent]:
    if not snapshot.loaded:
        raise NoSongLoadedError()
    eligible = eligible_events(snapshot.events, snapshot.tracks, snapshot.window, respect_selection)
    if not eligible:
        raise NoEligibleEventsError()
    plan = build_dispatch_plan(eligible, snapshot.bindings)
    if not plan:
        raise NoBindableNotesError()
    return plan


def plan_playback(snapshot: SongSnapshot) -> list[KeyEvent]:
    """Dispatch plan for real playback: selected tracks, inside the window, bound."""
    return _plan(snapshot, respect_selection=True)


def plan_preview(snapshot: SongSnapshot) -> list[KeyEvent]:
    """Dispatch plan for simulated-key preview: every track, inside the window, bound."""
    return _plan(snapshot, respect_selection=False)


def plan_audio_preview(snapshot: SongSnapshot) -> list[Eligible]:
    if not snapshot.loaded:
        raise NoSongLoadedError()
    eligible = eligible_events(snapshot.events, snapshot.tracks, snapshot.window, respect_selection=False)
    if not eligible:
        raise NoEligibleEventsError('No notes inside the playable range')
    return eligible


def normalize_velocity(velocity: int) -> float:
    """MIDI velocity 0..127 -> gain 0.1..1.0."""
    return max(MIN_AUDIO_VELOCITY, min(1.0, velocity / 127))


def schedule_audio_preview(
    eligible: Iterable[Eligible],
    engine: AudioEngine,
    lead_in: float = AUDIO_LEAD_IN_SECONDS,
) -> float:
    """Queue every note on the engine. Returns the preview length in seconds, lead-in included."""
    start = engine.current_time() + lead_in
    span = 0.0
    for ev, note in eligible:
        engine.trigger(note, normalize_velocity(ev.velocity), start + ev.time, ev.duration)
        span = max(span, ev.time + ev.duration)
    return lead_in + span
