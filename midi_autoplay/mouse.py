"""Mouse-click playback and coordinate picking using pynput.

Mouse bindings are 'x,y' screen coordinates. Each click travels along a
slightly randomized curve so consecutive clicks do not look robotic.
"""

import logging
import math
import random
import threading
import time

from midi_autoplay.errors import PlaybackBackendError
from midi_autoplay.keymap import parse_coordinate
from midi_autoplay.models import KeyEvent
from midi_autoplay.playback import ThreadedBackend

try:
    from pynput import mouse as _mouse
    MOUSE_AVAILABLE = True
except ImportError:
    _mouse = None
    MOUSE_AVAILABLE = False

log = logging.getLogger('midi_autoplay.mouse')

JITTER_PX = 5
CLICK_HOLD_SEC = 0.01


def bezier_path(start: tuple[int, int], end: tuple[int, int], steps: int, rng=random) -> list[tuple[int, int]]:
    """Quadratic Bezier from start to end through a random control point near the midpoint."""
    (sx, sy), (ex, ey) = start, end
    distance = math.hypot(ex - sx, ey - sy)
    spread = max(10, int(distance * 0.2))
    cx = (sx + ex) // 2 + rng.randint(-spread, spread)
    cy = (sy + ey) // 2 + rng.randint(-spread, spread)
    steps = max(1, steps)
    path = []
    for i in range(steps + 1):
        t = i / steps
        u = 1.0 - t
        x = u * u * sx + 2 * u * t * cx + t * t * ex
        y = u * u * sy + 2 * u * t * cy + t * t * ey
        path.append((int(x), int(y)))
    return path


def movement_profile(distance: float, time_to_next: float) -> tuple[int, tuple[int, int], float]:
    """(steps, per-step delay range in ms, reaction delay in s) for the gap before the next click."""
    if time_to_next < 0.05:
        return 1, (0, 0), 0.0
    if time_to_next < 0.15:
        return 5, (0, 1), 0.005
    steps = min(30, max(5, int(distance / 20)))
    return steps, (1, 3), 0.02


def jitter(x: int, y: int, rng=random) -> tuple[int, int]:
    return x + rng.randint(-JITTER_PX, JITTER_PX), y + rng.randint(-JITTER_PX, JITTER_PX)


class MouseBackend(ThreadedBackend):
    """Moves to each 'x,y' binding and left-clicks."""

    name = 'mouse'

    def __init__(self, controller=None, rng=None) -> None:
        super().__init__()
        self._controller = controller
        self._rng = rng or random.Random()

    def _check_available(self) -> None:
        if self._controller is None and not MOUSE_AVAILABLE:
            raise PlaybackBackendError('pynput not available')

    def _open(self) -> None:
        if self._controller is None:
            self._controller = _mouse.Controller()

    def _left_button(self):
        return _mouse.Button.left if _mouse is not None else 'left'

    def _dispatch(self, ev: KeyEvent, time_to_next: float) -> None:
        x, y = parse_coordinate(ev.key)
        ctrl = self._controller
        start = ctrl.position
        target = jitter(x, y, self._rng)
        steps, (dmin, dmax), reaction = movement_profile(
            math.hypot(target[0] - start[0], target[1] - start[1]), time_to_next
        )
        for point in bezier_path(start, target, steps, self._rng):
            ctrl.position = point
            if dmax > 0:
                delay_ms = self._rng.randint(dmin, dmax)
                if delay_ms:
                    time.sleep(delay_ms / 1000.0)
        if reaction:
            time.sleep(reaction)
        log.debug('mouse: %.3fs click at %s', ev.time, target)
        button = self._left_button()
        ctrl.press(button)
        try:
            time.sleep(CLICK_HOLD_SEC)
        finally:
            ctrl.release(button)


def pick_mouse_coordinate(timeout: float | None = None) -> tuple[int, int] | None:
    """Block until the next left click and return its position (None on timeout)."""
    if not MOUSE_AVAILABLE:
        raise PlaybackBackendError('pynput not available')
    picked: list[tuple[int, int]] = []
    done = threading.Event()

    def on_click(x, y, button, pressed):
        if pressed and button == _mouse.Button.left:
            picked.append((int(x), int(y)))
            done.set()
            return False
        return None

    with _mouse.Listener(on_click=on_click):
        done.wait(timeout)
    if picked:
        log.info('Picked mouse coordinate %s', picked[0])
        return picked[0]
    return None
