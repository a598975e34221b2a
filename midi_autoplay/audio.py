"""Local audio preview: play notes through a MIDI output port with mido."""

import heapq
import itertools
import logging
import threading
import time

import mido

from midi_autoplay.errors import PlaybackBackendError

log = logging.getLogger('midi_autoplay.audio')

PREVIEW_CHANNEL = 0


class MidoSynth:
    """Schedules note-on/note-off messages on a worker thread.

    Times are on the time.monotonic() timebase returned by current_time().
    """

    def __init__(self, port_name: str | None = None, port=None, channel: int = PREVIEW_CHANNEL):
        self._port_name = port_name
        self._port = port
        self._channel = channel
        self._queue: list[tuple[float, int, mido.Message]] = []
        self._seq = itertools.count()
        self._cond = threading.Condition()
        # Held across pop+send and across the panic so no note_on lands after a panic
        self._send_lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self._closed = False

    def _ensure_open(self) -> None:
        if self._port is None:
            try:
                self._port = mido.open_output(self._port_name)
            except (OSError, ImportError) as e:
                raise PlaybackBackendError(f'Cannot open MIDI output: {e}') from e
            log.info('Audio preview on MIDI output %s', getattr(self._port, 'name', self._port_name))
        if self._thread is None or not self._thread.is_alive():
            self._closed = False
            self._thread = threading.Thread(target=self._run, name='audio-preview', daemon=True)
            self._thread.start()

    def current_time(self) -> float:
        return time.monotonic()

    def trigger(self, note: int, velocity: float, when: float, duration: float) -> None:
        self._ensure_open()
        vel = max(1, min(127, round(velocity * 127)))
        on = mido.Message('note_on', note=note, velocity=vel, channel=self._channel)
        off = mido.Message('note_off', note=note, velocity=0, channel=self._channel)
        with self._cond:
            heapq.heappush(self._queue, (when, next(self._seq), on))
            heapq.heappush(self._queue, (when + max(0.0, duration), next(self._seq), off))
            self._cond.notify()

    def pending(self) -> int:
        with self._cond:
            return len(self._queue)

    def stop_all(self) -> None:
        with self._send_lock:
            with self._cond:
                self._queue.clear()
                self._cond.notify()
            if self._port is None:
                return
            for ch in range(16):
                # Sustain off, All Sound Off, All Notes Off
                self._port.send(mido.Message('control_change', control=64, value=0, channel=ch))
                self._port.send(mido.Message('control_change', control=120, value=0, channel=ch))
                self._port.send(mido.Message('control_change', control=123, value=0, channel=ch))

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._queue.clear()
            self._cond.notify()
        if self._thread is not None:
            self._thread.join(timeout=1.0)
            self._thread = None
        if self._port is not None and hasattr(self._port, 'close'):
            self._port.close()
        self._port = None

    def _run(self) -> None:
        while True:
            with self._cond:
                while not self._closed:
                    if not self._queue:
                        self._cond.wait()
                        continue
                    wait = self._queue[0][0] - time.monotonic()
                    if wait <= 0:
                        break
                    self._cond.wait(wait)
                if self._closed:
                    return
            with self._send_lock:
                with self._cond:
                    if self._closed:
                        return
                    # stop_all may have emptied the queue while we waited for the lock
                    if not self._queue or self._queue[0][0] > time.monotonic():
                        continue
                    _, _, msg = heapq.heappop(self._queue)
                try:
                    self._port.send(msg)
                except Exception:
                    log.exception('Audio preview: failed to send %s', msg)
