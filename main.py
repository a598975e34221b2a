"""Entry point: analyze a MIDI file, or play it as key presses / mouse clicks."""

import argparse
import asyncio
import logging
import os
import sys

from midi_autoplay import log_config
from midi_autoplay.audio import MidoSynth
from midi_autoplay.controller import PlaybackController, PlaybackState
from midi_autoplay.keymap import format_coordinate
from midi_autoplay.log_config import setup_logging
from midi_autoplay.mouse import MouseBackend, pick_mouse_coordinate
from midi_autoplay.notes import note_name
from midi_autoplay.playback import KeyboardBackend
from midi_autoplay.session import AutoplaySession
from midi_autoplay.settings import Settings
from midi_autoplay.shortcuts import ShortcutHandlers, ShortcutService
from midi_autoplay.timing import AsyncioTimers
from midi_autoplay.version import APP_NAME, __version__


def parse_assignment(value: str) -> tuple[int, int]:
    """'2=-5' -> (2, -5)"""
    track, sep, amount = value.partition('=')
    if not sep:
        raise argparse.ArgumentTypeError(f'expected TRACK=N, got {value!r}')
    try:
        return int(track), int(amount)
    except ValueError:
        raise argparse.ArgumentTypeError(f'expected integers in {value!r}') from None


def parse_track_ids(value: str) -> list[int]:
    try:
        return [int(v) for v in value.split(',') if v.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(f'expected comma-separated track ids, got {value!r}') from None


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog='midi-autoplay', description=f'{APP_NAME} {__version__}')
    p.add_argument('path', nargs='?', help='MIDI file to load')
    p.add_argument('--min-note', type=int, help='lowest playable MIDI note (saved to settings)')
    p.add_argument('--max-note', type=int, help='highest playable MIDI note (saved to settings)')
    p.add_argument('--tracks', type=parse_track_ids, help='comma-separated track ids to play (default: all)')
    p.add_argument('--transpose', type=parse_assignment, action='append', default=[], metavar='TRACK=N')
    p.add_argument('--octave', type=parse_assignment, action='append', default=[], metavar='TRACK=N')
    p.add_argument('--apply-suggestions', choices=('max', 'min'),
                   help='apply the suggested transpose/octave for this extreme to every over-limit track')
    mode = p.add_mutually_exclusive_group()
    mode.add_argument('--analyze', action='store_true', help='print track analysis and exit')
    mode.add_argument('--preview', action='store_true', help='simulated-key preview (nothing is pressed)')
    mode.add_argument('--audio-preview', action='store_true', help='listen through a MIDI output port')
    p.add_argument('--mouse', action='store_true', help='click mouse bindings instead of pressing keys')
    p.add_argument('--port', help='MIDI output port for --audio-preview (default: first available)')
    p.add_argument('--bind-mouse', type=int, metavar='NOTE',
                   help='click a screen position to bind NOTE for --mouse playback, then exit')
    p.add_argument('--settings-dir', default='', help='directory holding config.json')
    p.add_argument('-v', '--verbose', action='store_true')
    return p


def print_analysis(session: AutoplaySession) -> None:
    w = session.window
    print(f'{session.path}  window {w.min_note}..{w.max_note}')
    for t in session.tracks():
        a = t.analysis
        flag = ' ' if t.selected else 'x'
        header = f'[{flag}] {t.id:>2} {t.name} ({t.note_count} notes) transpose={t.transpose} octave={t.octave}'
        print(header)
        if a is None:
            continue
        print(f'      max {a.max_note_name} ({a.max_note_group}) over={a.upper_over_limit}'
              f'{"  !" if a.is_max_over_limit else ""}')
        print(f'      min {a.min_note_name} ({a.min_note_group}) under={a.lower_over_limit}'
              f'{"  !" if a.is_min_over_limit else ""}')
        for extreme in ('max', 'min'):
            s = a.suggestion(extreme)
            if s is not None:
                print(f'      suggest ({extreme}): transpose={s[0]} octave={s[1]}')


def apply_track_options(session: AutoplaySession, args) -> None:
    if args.tracks is not None:
        session.select_only(args.tracks)
    for track_id, amount in args.transpose:
        session.set_transpose(track_id, amount)
    for track_id, amount in args.octave:
        session.set_octave(track_id, amount)
    if args.apply_suggestions:
        for t in session.tracks():
            session.apply_suggestion(t.id, args.apply_suggestions)


def bind_mouse(settings: Settings, note: int, timeout: float = 30.0) -> int:
    print(f'Click where {note_name(note)} should be played...')
    point = pick_mouse_coordinate(timeout)
    if point is None:
        print('No click within the timeout', file=sys.stderr)
        return 1
    settings.update(note_to_mouse={note: format_coordinate(*point)})
    print(f'{note_name(note)} -> {point[0]},{point[1]}')
    return 0


def run(args, log: logging.Logger) -> int:
    settings = Settings(args.settings_dir)
    settings.initialize()
    changes = {}
    if args.min_note is not None:
        changes['min_note'] = args.min_note
    if args.max_note is not None:
        changes['max_note'] = args.max_note
    if args.mouse:
        changes['input_mode'] = 'mouse'
    if changes:
        try:
            settings.update(**changes)
        except ValueError as e:
            print(f'Error: {e}', file=sys.stderr)
            return 1
    if args.bind_mouse is not None:
        return bind_mouse(settings, args.bind_mouse)

    loop = asyncio.new_event_loop()
    timers = AsyncioTimers(loop)
    backend = MouseBackend() if settings.get_settings().input_mode == 'mouse' else KeyboardBackend()
    audio = MidoSynth(args.port) if args.audio_preview else None
    errors: list[str] = []

    def on_error(message: str) -> None:
        errors.append(message)
        print(f'Error: {message}', file=sys.stderr)

    def on_state_changed(state: PlaybackState) -> None:
        log.debug('State: %s', state.value)
        if state is PlaybackState.IDLE:
            # A shortcut may start the next song right after a stop
            loop.call_soon(lambda: loop.stop() if controller.is_idle() else None)

    controller = PlaybackController(
        timers,
        backend,
        audio=audio,
        on_state_changed=on_state_changed,
        on_countdown=lambda n: print(f'Starting in {n}…'),
        on_remaining=lambda n: print(f'\r{n // 60:02d}:{n % 60:02d} remaining', end='', flush=True),
        on_error=on_error,
    )
    session = AutoplaySession(settings, controller, on_message=on_error)
    session.open_folder(os.path.dirname(os.path.abspath(args.path)))
    if not session.load_song(args.path):
        loop.close()
        return 1
    apply_track_options(session, args)

    if args.analyze:
        print_analysis(session)
        loop.close()
        return 0

    if args.preview:
        start = session.preview
    elif args.audio_preview:
        start = session.audio_preview
    else:
        start = session.play

    def next_and_play(step):
        def go():
            if step():
                session.play()
        return go

    on_loop = lambda f: (lambda: timers.call_soon(f))
    handlers = session.shortcut_handlers(wrap=on_loop)
    handlers = ShortcutHandlers(
        on_start_pause=handlers.on_start_pause,
        on_stop=handlers.on_stop,
        on_prev_song=on_loop(next_and_play(session.prev_song)),
        on_next_song=on_loop(next_and_play(session.next_song)),
    )
    shortcuts = ShortcutService()
    shortcuts.register(settings.get_settings().shortcuts, handlers)

    try:
        if not start():
            return 1
        loop.run_forever()
    except KeyboardInterrupt:
        log.info('Interrupted')
        session.stop()
    finally:
        shortcuts.unregister_all()
        if audio is not None:
            audio.close()
        loop.close()
        print()
    return 1 if errors else 0


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.path is None and args.bind_mouse is None:
        parser.error('path is required')
    setup_logging(verbose=args.verbose)
    log = logging.getLogger("midi_autoplay.main")
    try:
        return run(args, log)
    except Exception:
        log.exception("Startup error")
        if log_config.LOG_FILE_PATH:
            print(f"Details in {log_config.LOG_FILE_PATH}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
