"""Plain data records shared by the parser, analyzer, scheduler and controller."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from midi_autoplay.analysis import SongAnalysis, TrackAnalysis


class NoteType(str, enum.Enum):
    NOTE_ON = 'note_on'
    NOTE_OFF = 'note_off'


@dataclass(frozen=True)
class NoteEvent:
    """One note-on or note-off. Times are in seconds from song start."""

    track: int
    type: NoteType
    note: int
    time: float
    duration: float = 0.0
    end: float = 0.0
    velocity: int = 0
    channel: int = 0

    @property
    def is_note_on(self) -> bool:
        return self.type is NoteType.NOTE_ON


@dataclass(frozen=True)
class Window:
    """Inclusive playable pitch range [min_note, max_note]."""

    min_note: int = 48
    max_note: int = 83

    def __post_init__(self) -> None:
        if self.min_note > self.max_note:
            raise ValueError(f'min_note {self.min_note} > max_note {self.max_note}')

    def contains(self, note: int) -> bool:
        return self.min_note <= note <= self.max_note


@dataclass(frozen=True)
class KeyEvent:
    """One dispatch action: press `key` at `time` seconds for `duration` seconds."""

    time: float
    key: str
    duration: float


@dataclass(frozen=True)
class TrackInfo:
    id: int
    name: str
    note_count: int
    analysis: TrackAnalysis | None = None


@dataclass(frozen=True)
class ParseResult:
    events: tuple[NoteEvent, ...] = ()
    tracks: tuple[TrackInfo, ...] = ()
    analysis: SongAnalysis | None = None


@dataclass(frozen=True)
class TrackView:
    """Read-only view of a track as handed to the playback controller."""

    id: int
    name: str
    selected: bool
    transpose: int = 0
    octave: int = 0

    @property
    def shift(self) -> int:
        return self.transpose + 12 * self.octave


@dataclass(frozen=True)
class SongSnapshot:
    """Immutable song state the controller plans from."""

    events: tuple[NoteEvent, ...] = ()
    tracks: tuple[TrackView, ...] = ()
    window: Window = field(default_factory=Window)
    bindings: dict[int, str] = field(default_factory=dict)

    @property
    def loaded(self) -> bool:
        return bool(self.events) or bool(self.tracks)
