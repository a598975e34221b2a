"""Note -> input binding tables.

Keyboard bindings are strings like 'a' or 'shift+a'; mouse bindings are 'x,y'.
"""

# Keys per octave row: 7 naturals; black keys reuse the natural below with a modifier
LOW_KEYS = ['z', 'x', 'c', 'v', 'b', 'n', 'm']
MID_KEYS = ['a', 's', 'd', 'f', 'g', 'h', 'j']
HIGH_KEYS = ['q', 'w', 'e', 'r', 't', 'y', 'u']
ROWS = (LOW_KEYS, MID_KEYS, HIGH_KEYS)

# 12 semitones -> 7 key indices (C,C#=0; D,D#=1; E=2; F,F#=3; G,G#=4; A,A#=5; B=6)
KEY_INDEX = (0, 0, 1, 1, 2, 3, 3, 4, 4, 5, 5, 6)
BLACK = (1, 3, 6, 8, 10)

MODIFIERS = {
    'shift': 'shift',
    'ctrl': 'ctrl',
    'control': 'ctrl',
    'alt': 'alt',
    'meta': 'cmd',
    'cmd': 'cmd',
    'command': 'cmd',
    'win': 'cmd',
    'super': 'cmd',
}


def binding_for_note(note: int, base_note: int = 48) -> str | None:
    """Default 36-key binding for `note`, or None outside base_note..base_note+35.

    Rows by octave above base_note: low (z..m), mid (a..j), high (q..u).
    Black keys use SHIFT, except D# on the low row which uses CTRL.
    """
    offset = note - base_note
    if offset < 0 or offset >= 12 * len(ROWS):
        return None
    row = offset // 12
    semitone = note % 12
    key = ROWS[row][KEY_INDEX[semitone]]
    if semitone not in BLACK:
        return key
    if row == 0 and KEY_INDEX[semitone] == 1:
        return f'ctrl+{key}'
    return f'shift+{key}'


def default_note_to_key(base_note: int = 48) -> dict[int, str]:
    table: dict[int, str] = {}
    for note in range(base_note, base_note + 12 * len(ROWS)):
        binding = binding_for_note(note, base_note)
        if binding is not None:
            table[note] = binding
    return table


def parse_binding(binding: str) -> tuple[list[str], str]:
    """Split 'shift+a' into (['shift'], 'a'). Modifiers are normalized (ctrl, alt, cmd, shift)."""
    parts = [p.strip() for p in binding.split('+')]
    if not parts or not parts[-1]:
        raise ValueError(f'Empty key in binding {binding!r}')
    mods: list[str] = []
    for part in parts[:-1]:
        mod = MODIFIERS.get(part.lower())
        if mod is None:
            raise ValueError(f'Unknown modifier {part!r} in binding {binding!r}')
        mods.append(mod)
    key = parts[-1]
    if len(key) != 1:
        raise ValueError(f'Main key must be a single character in binding {binding!r}')
    return mods, key.lower()


def parse_coordinate(binding: str) -> tuple[int, int]:
    """'120,340' -> (120, 340)."""
    x, _, y = binding.partition(',')
    try:
        return int(x.strip()), int(y.strip())
    except ValueError:
        raise ValueError(f'Invalid mouse binding {binding!r}; expected "x,y"') from None


def format_coordinate(x: int, y: int) -> str:
    return f'{int(x)},{int(y)}'


def normalize_table(table: dict) -> dict[int, str]:
    """JSON object keys are strings; turn them back into note numbers."""
    return {int(k): str(v) for k, v in table.items()}
