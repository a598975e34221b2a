"""Playback state machine: one mode at a time, pre-roll countdown, remaining-time ticker.

States::

    IDLE -> COUNTING_DOWN -> PLAYING -> IDLE
    IDLE -> PREVIEWING -> IDLE
    IDLE -> AUDIO_PREVIEWING -> IDLE

The state is derived from the single active PlaybackSession (None is IDLE),
so there is no way to be "playing" and "previewing" at once. Every way out of
a mode (user stop, countdown cancel, time running out, backend failure) goes
through stop().
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from midi_autoplay.errors import PlaybackStateError, PreconditionError
from midi_autoplay.models import SongSnapshot
from midi_autoplay.playback import DryRunBackend
from midi_autoplay.scheduler import (
    AudioEngine,
    plan_audio_preview,
    plan_playback,
    plan_preview,
    plan_span,
    schedule_audio_preview,
)
from midi_autoplay.timing import (
    COUNTDOWN_INTERVAL_MS,
    COUNTDOWN_TICKS,
    CancellationToken,
    Countdown,
    CountdownOutcome,
    RemainingTimeTicker,
    TimerSource,
)

log = logging.getLogger('midi_autoplay.controller')


class PlaybackState(enum.Enum):
    IDLE = 'idle'
    COUNTING_DOWN = 'counting_down'
    PLAYING = 'playing'
    PREVIEWING = 'previewing'
    AUDIO_PREVIEWING = 'audio_previewing'


@dataclass
class PlaybackSession:
    mode: PlaybackState
    plan: list = field(default_factory=list)
    backend: Any = None
    token: CancellationToken = field(default_factory=CancellationToken)
    countdown: Countdown | None = None
    ticker: RemainingTimeTicker | None = None
    started_at: float | None = None
    dispatch_started: bool = False


class PlaybackController:
    def __init__(
        self,
        timers: TimerSource,
        backend,
        preview_backend=None,
        audio: AudioEngine | None = None,
        countdown_ticks: int = COUNTDOWN_TICKS,
        countdown_interval_ms: int = COUNTDOWN_INTERVAL_MS,
        on_state_changed: Callable[[PlaybackState], None] | None = None,
        on_countdown: Callable[[int], None] | None = None,
        on_remaining: Callable[[int], None] | None = None,
        on_error: Callable[[str], None] | None = None,
    ):
        self._timers = timers
        self._backend = backend
        self._preview_backend = preview_backend if preview_backend is not None else DryRunBackend()
        self._audio = audio
        self._countdown_ticks = countdown_ticks
        self._countdown_interval_ms = countdown_interval_ms
        self.on_state_changed = on_state_changed
        self.on_countdown = on_countdown
        self.on_remaining = on_remaining
        self.on_error = on_error
        self._session: PlaybackSession | None = None

    @property
    def state(self) -> PlaybackState:
        return self._session.mode if self._session is not None else PlaybackState.IDLE

    @property
    def session(self) -> PlaybackSession | None:
        return self._session

    def is_idle(self) -> bool:
        return self._session is None

    def elapsed(self) -> float | None:
        """Seconds since dispatch began, or None before then."""
        session = self._session
        if session is None or session.started_at is None:
            return None
        return self._timers.time() - session.started_at

    # --- start ---

    def start_playback(self, snapshot: SongSnapshot) -> bool:
        """Count down, then hand the plan to the backend. False if the request was rejected."""
        self._require_idle()
        try:
            plan = plan_playback(snapshot)
        except PreconditionError as e:
            self._reject(e)
            return False
        session = PlaybackSession(mode=PlaybackState.COUNTING_DOWN, plan=plan, backend=self._backend)
        session.countdown = Countdown(
            self._timers,
            on_done=lambda outcome: self._on_countdown_done(session, outcome),
            on_tick=self._emit_countdown,
            ticks=self._countdown_ticks,
            interval_ms=self._countdown_interval_ms,
            token=session.token,
        )
        self._enter(session)
        log.info('Countdown started: %d action(s) queued', len(plan))
        session.countdown.start()
        return True

    def start_preview(self, snapshot: SongSnapshot) -> bool:
        """Simulated-key preview of every track; no countdown."""
        self._require_idle()
        try:
            plan = plan_preview(snapshot)
        except PreconditionError as e:
            self._reject(e)
            return False
        session = PlaybackSession(mode=PlaybackState.PREVIEWING, plan=plan, backend=self._preview_backend)
        self._enter(session)
        return self._begin_dispatch(session)

    def start_audio_preview(self, snapshot: SongSnapshot) -> bool:
        """Play every in-window note through the local audio engine; no countdown."""
        self._require_idle()
        if self._audio is None:
            self._report('Audio preview is not available')
            return False
        try:
            eligible = plan_audio_preview(snapshot)
        except PreconditionError as e:
            self._reject(e)
            return False
        session = PlaybackSession(mode=PlaybackState.AUDIO_PREVIEWING)
        self._enter(session)
        session.dispatch_started = True
        try:
            span = schedule_audio_preview(eligible, self._audio)
        except Exception as e:
            log.exception('Audio preview failed to start')
            self._fail(session, f'Audio preview failed: {e}')
            return False
        session.started_at = self._timers.time()
        log.info('Audio preview started: %d note(s), %.1fs', len(eligible), span)
        self._start_ticker(session, span)
        return True

    # --- stop ---

    def stop(self) -> None:
        """Return to IDLE from any state. Best-effort: backend errors are logged, never raised."""
        session = self._session
        if session is None:
            return
        self._session = None
        session.token.cancel()
        if session.countdown is not None:
            session.countdown.cancel()
        if session.ticker is not None:
            session.ticker.cancel()
        if session.dispatch_started:
            if session.mode is PlaybackState.AUDIO_PREVIEWING:
                self._stop_quietly('audio preview', self._audio.stop_all)
            else:
                self._stop_quietly('backend', session.backend.stop_playback)
        if session.started_at is not None:
            log.info('Stopped (%s) after %.1fs', session.mode.value, self._timers.time() - session.started_at)
        else:
            log.info('Stopped (%s)', session.mode.value)
        self._notify_state()

    # --- internals ---

    def _require_idle(self) -> None:
        if self._session is not None:
            raise PlaybackStateError(f'Cannot start while {self.state.value}; stop first')

    def _enter(self, session: PlaybackSession) -> None:
        self._session = session
        self._notify_state()

    def _on_countdown_done(self, session: PlaybackSession, outcome: CountdownOutcome) -> None:
        if outcome is CountdownOutcome.CANCELLED:
            log.info('Countdown cancelled')
            return
        # Checked synchronously before the backend is ever called
        if session.token.cancelled or session is not self._session:
            return
        session.mode = PlaybackState.PLAYING
        self._begin_dispatch(session)

    def _begin_dispatch(self, session: PlaybackSession) -> bool:
        backend = session.backend
        backend.on_error = lambda exc: self._timers.call_soon(
            lambda: self._fail(session, f'Playback failed: {exc}')
        )
        try:
            backend.start_playback(session.plan)
        except Exception as e:
            log.exception('%s backend failed to start', session.mode.value)
            self._fail(session, f'Playback failed to start: {e}')
            return False
        session.dispatch_started = True
        session.started_at = self._timers.time()
        if session.mode is PlaybackState.PLAYING:
            self._notify_state()
        log.info('%s started: %d action(s)', session.mode.value, len(session.plan))
        self._start_ticker(session, plan_span(session.plan))
        return True

    def _start_ticker(self, session: PlaybackSession, span: float) -> None:
        session.ticker = RemainingTimeTicker(
            self._timers,
            span,
            on_expired=lambda: self._on_expired(session),
            on_tick=self._emit_remaining,
        )
        session.ticker.start()

    def _on_expired(self, session: PlaybackSession) -> None:
        if session is self._session:
            log.info('%s finished', session.mode.value)
            self.stop()

    def _fail(self, session: PlaybackSession, message: str) -> None:
        if session is not self._session:
            return
        self._report(message)
        self.stop()

    def _reject(self, error: PreconditionError) -> None:
        log.warning('Start rejected: %s', error)
        self._report(str(error))

    def _report(self, message: str) -> None:
        if self.on_error:
            self.on_error(message)

    def _stop_quietly(self, what: str, stop: Callable[[], None]) -> None:
        try:
            stop()
        except Exception:
            log.exception('Error stopping %s', what)

    def _notify_state(self) -> None:
        if self.on_state_changed:
            self.on_state_changed(self.state)

    def _emit_countdown(self, n: int) -> None:
        log.info('Starting in %d…', n)
        if self.on_countdown:
            self.on_countdown(n)

    def _emit_remaining(self, n: int) -> None:
        if self.on_remaining:
            self.on_remaining(n)

