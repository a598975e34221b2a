"""Send dispatch plans as keyboard input using pynput."""

import logging
import threading
import time
from typing import Callable

from midi_autoplay.errors import PlaybackBackendError
from midi_autoplay.keymap import parse_binding
from midi_autoplay.models import KeyEvent

try:
    from pynput.keyboard import Controller, Key
    KEYBOARD_AVAILABLE = True
except ImportError:
    Controller = None
    Key = None
    KEYBOARD_AVAILABLE = False

log = logging.getLogger('midi_autoplay.playback')

MODIFIER_GAP_SEC = 0.005
MODIFIER_SETTLE_SEC = 0.010
KEY_HOLD_SEC = 0.001
STOP_JOIN_TIMEOUT_SEC = 1.0


class ThreadedBackend:
    """Runs a plan on a daemon thread, waiting until each event's time before dispatching it.

    on_error(exc) is called from the playback thread if the run dies; the
    controller hands it back to its own loop.
    """

    name = 'backend'

    def __init__(self) -> None:
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._lock = threading.Lock()
        self.on_error: Callable[[Exception], None] | None = None

    def is_playing(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def start_playback(self, events: list[KeyEvent]) -> None:
        with self._lock:
            if self.is_playing():
                raise PlaybackBackendError('Playback already in progress')
            self._check_available()
            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._run, args=(list(events),), name=f'{self.name}-playback', daemon=True
            )
            self._thread.start()
        log.info('%s: started %d event(s)', self.name, len(events))

    def stop_playback(self) -> None:
        """Idempotent; safe to call when nothing is playing."""
        self._stop_event.set()
        with self._lock:
            thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=STOP_JOIN_TIMEOUT_SEC)
            if thread.is_alive():
                log.warning('%s: playback thread did not stop within %.1fs', self.name, STOP_JOIN_TIMEOUT_SEC)

    def join(self, timeout: float | None = None) -> None:
        thread = self._thread
        if thread is not None:
            thread.join(timeout)

    def _run(self, events: list[KeyEvent]) -> None:
        try:
            self._open()
            t0 = time.perf_counter()
            for i, ev in enumerate(events):
                wait = ev.time - (time.perf_counter() - t0)
                if wait > 0 and self._stop_event.wait(wait):
                    return
                if self._stop_event.is_set():
                    return
                time_to_next = events[i + 1].time - ev.time if i + 1 < len(events) else float('inf')
                try:
                    self._dispatch(ev, time_to_next)
                except ValueError as e:
                    log.warning('%s: skipped %r: %s', self.name, ev.key, e)
        except Exception as e:
            log.exception('%s: playback failed', self.name)
            if self.on_error:
                self.on_error(e)
        finally:
            self._close()

    def _check_available(self) -> None:
        pass

    def _open(self) -> None:
        pass

    def _close(self) -> None:
        pass

    def _dispatch(self, ev: KeyEvent, time_to_next: float) -> None:
        raise NotImplementedError


class KeyboardBackend(ThreadedBackend):
    """Presses bindings like 'a' or 'shift+a' with pynput."""

    name = 'keyboard'

    def __init__(self, controller=None) -> None:
        super().__init__()
        self._controller = controller

    def _check_available(self) -> None:
        if self._controller is None and not KEYBOARD_AVAILABLE:
            raise PlaybackBackendError('pynput not available')

    def _open(self) -> None:
        if self._controller is None:
            self._controller = Controller()

    def _modifier(self, name: str):
        return getattr(Key, name) if Key is not None else name

    def _dispatch(self, ev: KeyEvent, time_to_next: float) -> None:
        mods, char = parse_binding(ev.key)
        ctrl = self._controller
        log.debug('keyboard: %.3fs %s', ev.time, ev.key)
        held = []
        try:
            for m in mods:
                ctrl.press(self._modifier(m))
                held.append(m)
                time.sleep(MODIFIER_GAP_SEC)
            if mods:
                time.sleep(MODIFIER_SETTLE_SEC)
            ctrl.press(char)
            try:
                time.sleep(KEY_HOLD_SEC)
            finally:
                ctrl.release(char)
            if mods:
                time.sleep(MODIFIER_SETTLE_SEC)
        finally:
            # Modifiers must never stay down, even when the key press failed
            for m in reversed(held):
                ctrl.release(self._modifier(m))


class DryRunBackend(ThreadedBackend):
    """Same timing as a real backend, but only logs what it would press."""

    name = 'dry-run'

    def __init__(self, on_key: Callable[[KeyEvent], None] | None = None) -> None:
        super().__init__()
        self.on_key = on_key

    def _dispatch(self, ev: KeyEvent, time_to_next: float) -> None:
        log.debug('dry-run: %.3fs %s', ev.time, ev.key)
        if self.on_key:
            self.on_key(ev)
