"""Note-range analysis against the playable window, and transpose suggestions.

Both functions here are pure: they take original (unshifted) note values plus
the track's transpose/octave and never touch shared state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from midi_autoplay.models import NoteEvent, Window
from midi_autoplay.notes import DEFAULT_NOTE_GROUPS, note_group, note_name

# Octave shifts tried by optimize_transpose: -2..+2
OCTAVE_SEARCH_RANGE = 2
# Added to the score of transposes of 5..7 semitones (musically disruptive)
TRANSPOSE_PENALTY = 0.5
TRANSPOSE_PENALTY_RANGE = (5, 7)


@dataclass(frozen=True)
class TrackAnalysis:
    max_note: int
    min_note: int
    max_note_name: str
    min_note_name: str
    max_note_group: str
    min_note_group: str
    upper_over_limit: int
    lower_over_limit: int
    is_max_over_limit: bool
    is_min_over_limit: bool
    suggested_max_transpose: int | None = None
    suggested_max_octave: int | None = None
    suggested_min_transpose: int | None = None
    suggested_min_octave: int | None = None

    @property
    def is_over_limit(self) -> bool:
        return self.is_max_over_limit or self.is_min_over_limit

    def suggestion(self, extreme: str) -> tuple[int, int] | None:
        """(transpose, octave) suggested for 'max' or 'min', or None."""
        if extreme == 'max':
            t, o = self.suggested_max_transpose, self.suggested_max_octave
        elif extreme == 'min':
            t, o = self.suggested_min_transpose, self.suggested_min_octave
        else:
            raise ValueError(f'extreme must be "max" or "min", not {extreme!r}')
        if t is None or o is None:
            return None
        return (t, o)


@dataclass(frozen=True)
class SongAnalysis:
    min_note: int | None
    max_note: int | None
    under_min_count: int
    over_max_count: int
    min_note_name: str
    max_note_name: str
    total_over_limit_count: int


def optimize_transpose(
    diff: int,
    current_transpose: int,
    current_octave: int,
) -> tuple[int, int] | None:
    """Pick the least disruptive (transpose, octave) that moves an extreme note by `diff` semitones.

    Every octave shift s in [-2, 2] is tried; the semitone part is whatever is
    left over (diff - 12*s). Candidates are scored by |transpose| + |octave|,
    with a small penalty for 5..7 semitone transposes. Ties keep the
    enumeration order, so the smaller octave shift wins.
    """
    candidates: list[tuple[int, int, float]] = []
    for shift in range(-OCTAVE_SEARCH_RANGE, OCTAVE_SEARCH_RANGE + 1):
        final_transpose = current_transpose + diff - 12 * shift
        final_octave = current_octave + shift
        score = float(abs(final_transpose) + abs(final_octave))
        lo, hi = TRANSPOSE_PENALTY_RANGE
        if lo <= abs(final_transpose) <= hi:
            score += TRANSPOSE_PENALTY
        candidates.append((final_transpose, final_octave, score))
    if not candidates:
        return None
    # sorted() is stable: equal scores keep enumeration order
    best = sorted(candidates, key=lambda c: c[2])[0]
    return (best[0], best[1])


def analyze_notes(
    notes: Sequence[int],
    window: Window,
    transpose: int = 0,
    octave: int = 0,
    groups=DEFAULT_NOTE_GROUPS,
) -> TrackAnalysis | None:
    """Analyze one track's original note-on values after applying transpose/octave.

    Returns None when there are no notes.
    """
    if not notes:
        return None
    delta = transpose + 12 * octave
    adjusted = [n + delta for n in notes]
    hi_note = max(adjusted)
    lo_note = min(adjusted)
    lo, hi = window.min_note, window.max_note

    upper = sum(1 for n in adjusted if n > hi)
    lower = sum(1 for n in adjusted if n < lo)
    # A track lying wholly outside the window trips both flags
    max_over = hi_note > hi or hi_note < lo
    min_over = lo_note < lo or lo_note > hi

    max_suggestion = optimize_transpose(hi - hi_note, transpose, octave) if max_over else None
    min_suggestion = optimize_transpose(lo - lo_note, transpose, octave) if min_over else None

    return TrackAnalysis(
        max_note=hi_note,
        min_note=lo_note,
        max_note_name=note_name(hi_note),
        min_note_name=note_name(lo_note),
        max_note_group=note_group(hi_note, groups),
        min_note_group=note_group(lo_note, groups),
        upper_over_limit=upper,
        lower_over_limit=lower,
        is_max_over_limit=max_over,
        is_min_over_limit=min_over,
        suggested_max_transpose=max_suggestion[0] if max_suggestion else None,
        suggested_max_octave=max_suggestion[1] if max_suggestion else None,
        suggested_min_transpose=min_suggestion[0] if min_suggestion else None,
        suggested_min_octave=min_suggestion[1] if min_suggestion else None,
    )


def summarize_events(events: Iterable[NoteEvent], window: Window) -> SongAnalysis:
    """Whole-song min/max and over-limit counts over note-on events."""
    lo_note = hi_note = None
    under = over = 0
    for ev in events:
        if not ev.is_note_on:
            continue
        if lo_note is None or ev.note < lo_note:
            lo_note = ev.note
        if hi_note is None or ev.note > hi_note:
            hi_note = ev.note
        if ev.note < window.min_note:
            under += 1
        if ev.note > window.max_note:
            over += 1
    return SongAnalysis(
        min_note=lo_note,
        max_note=hi_note,
        under_min_count=under,
        over_max_count=over,
        min_note_name=note_name(lo_note) if lo_note is not None else '',
        max_note_name=note_name(hi_note) if hi_note is not None else '',
        total_over_limit_count=under + over,
    )
