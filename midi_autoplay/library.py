"""Song library: the MIDI files of one folder with a current position (no UI)."""

import logging
import os

log = logging.getLogger('midi_autoplay.library')

MIDI_EXTENSIONS = ('.mid', '.midi')


class SongLibrary:
    """Sorted MIDI files of a folder; next/prev wrap around."""

    def __init__(self) -> None:
        self._items: list[str] = []
        self._index = 0

    def scan(self, folder: str) -> int:
        """Replace the list with the MIDI files in `folder`. Returns how many were found."""
        try:
            names = os.listdir(folder)
        except OSError:
            log.exception('Cannot list %s', folder)
            names = []
        self._items = sorted(
            os.path.join(folder, n)
            for n in names
            if n.lower().endswith(MIDI_EXTENSIONS) and os.path.isfile(os.path.join(folder, n))
        )
        self._index = 0
        log.info('Found %d MIDI file(s) in %s', len(self._items), folder)
        return len(self._items)

    def items(self) -> list[str]:
        return list(self._items)

    def current(self) -> str | None:
        if 0 <= self._index < len(self._items):
            return self._items[self._index]
        return None

    def select(self, path: str) -> bool:
        """Make `path` current. Returns False if it is not in the library."""
        target = os.path.normcase(os.path.abspath(path))
        for i, item in enumerate(self._items):
            if os.path.normcase(os.path.abspath(item)) == target:
                self._index = i
                return True
        return False

    def next(self) -> str | None:
        if not self._items:
            return None
        self._index = (self._index + 1) % len(self._items)
        return self._items[self._index]

    def prev(self) -> str | None:
        if not self._items:
            return None
        self._index = (self._index - 1) % len(self._items)
        return self._items[self._index]

    def __len__(self) -> int:
        return len(self._items)
