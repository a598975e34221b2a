"""Global hotkeys (start/stop/prev/next) with per-action debouncing, using pynput."""

import logging
import time
from dataclasses import dataclass
from typing import Callable

try:
    from pynput import keyboard as _keyboard
    HOTKEYS_AVAILABLE = True
except ImportError:
    _keyboard = None
    HOTKEYS_AVAILABLE = False

log = logging.getLogger('midi_autoplay.shortcuts')

SHORTCUT_DEBOUNCE_SECONDS = 0.3


@dataclass
class ShortcutHandlers:
    on_start_pause: Callable[[], None]
    on_stop: Callable[[], None]
    on_prev_song: Callable[[], None]
    on_next_song: Callable[[], None]


class ShortcutService:
    """Registers hotkeys in pynput format ('<f9>', '<ctrl>+<alt>+p').

    Handlers run on the listener thread; callers that drive an event loop
    should wrap them to hop back onto it.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, listener_factory=None):
        self._clock = clock
        self._listener_factory = listener_factory
        self._listener = None
        self._registered: dict[str, str] = {}
        self._last_trigger: dict[str, float] = {}

    @property
    def registered(self) -> dict[str, str]:
        return dict(self._registered)

    def register(self, shortcuts: dict[str, str], handlers: ShortcutHandlers) -> None:
        actions = {
            'START_PAUSE': handlers.on_start_pause,
            'STOP': handlers.on_stop,
            'PREV_SONG': handlers.on_prev_song,
            'NEXT_SONG': handlers.on_next_song,
        }
        hotkeys: dict[str, Callable[[], None]] = {}
        for name, handler in actions.items():
            combo = shortcuts.get(name)
            if not combo:
                continue
            if combo in hotkeys:
                log.warning('Shortcut %s for %s is already used; skipped', combo, name)
                continue
            hotkeys[combo] = self._debounced(name, handler)
            self._registered[name] = combo
        if not hotkeys:
            return
        factory = self._listener_factory
        if factory is None:
            if not HOTKEYS_AVAILABLE:
                log.warning('pynput not available; global shortcuts disabled')
                self._registered.clear()
                return
            factory = _keyboard.GlobalHotKeys
        self._listener = factory(hotkeys)
        self._listener.start()
        log.info('Registered %d global shortcut(s): %s', len(hotkeys), self._registered)

    def unregister_all(self) -> None:
        if self._listener is not None:
            try:
                self._listener.stop()
            except Exception:
                log.exception('Error stopping shortcut listener')
            self._listener = None
        self._registered.clear()
        self._last_trigger.clear()

    def reregister(self, shortcuts: dict[str, str], handlers: ShortcutHandlers) -> None:
        self.unregister_all()
        self.register(shortcuts, handlers)

    def _debounced(self, name: str, handler: Callable[[], None]) -> Callable[[], None]:
        def fire():
            now = self._clock()
            last = self._last_trigger.get(name)
            if last is not None and now - last < SHORTCUT_DEBOUNCE_SECONDS:
                log.debug('Shortcut %s ignored (%.0f ms since last)', name, (now - last) * 1000)
                return
            self._last_trigger[name] = now
            log.info('Shortcut triggered: %s', name)
            handler()
        return fire
