"""Note names and octave-group labels."""

NOTE_NAMES = ('C', 'C#', 'D', 'D#', 'E', 'F', 'F#', 'G', 'G#', 'A', 'A#', 'B')

# Black key pitch classes (C#, D#, F#, G#, A#)
BLACK_PCS = (1, 3, 6, 8, 10)
WHITE_PCS = (0, 2, 4, 5, 7, 9, 11)

# (lowest note, highest note, label); Helmholtz octave groups of an 88-key piano
DEFAULT_NOTE_GROUPS: tuple[tuple[int, int, str], ...] = (
    (21, 23, 'Sub-contra (A₂-B₂)'),
    (24, 35, 'Contra (C₁-B₁)'),
    (36, 47, 'Great (C-B)'),
    (48, 59, 'Small (c-b)'),
    (60, 71, 'One-line (c¹-b¹)'),
    (72, 83, 'Two-line (c²-b²)'),
    (84, 95, 'Three-line (c³-b³)'),
    (96, 107, 'Four-line (c⁴-b⁴)'),
    (108, 108, 'Five-line (c⁵)'),
)

UNKNOWN_GROUP = 'Unknown'


def note_name(note: int) -> str:
    """Scientific pitch name, e.g. 60 -> 'C4'."""
    return f'{NOTE_NAMES[note % 12]}{note // 12 - 1}'


def note_group(note: int, groups=DEFAULT_NOTE_GROUPS) -> str:
    for lo, hi, label in groups:
        if lo <= note <= hi:
            return label
    return UNKNOWN_GROUP


def is_black_key(note: int) -> bool:
    return note % 12 in BLACK_PCS


def nearest_white(note: int) -> int:
    """Move a black key to the nearest white key of the same octave (lower one on a tie)."""
    pc = note % 12
    if pc in WHITE_PCS:
        return note
    best = min(WHITE_PCS, key=lambda w: abs(w - pc))
    return note - pc + best
