"""Exception types raised by the playback core and its collaborators."""


class MidiAutoplayError(Exception):
    """Base class for all errors raised by midi_autoplay."""


class PlaybackError(MidiAutoplayError):
    pass


class PlaybackStateError(PlaybackError):
    """A mode was started while another one is still active."""


class PlaybackBackendError(PlaybackError):
    """The input-simulation or audio backend failed."""


class PreconditionError(PlaybackError):
    """Start request rejected; fixable by changing selection or window."""


class NoSongLoadedError(PreconditionError):
    def __init__(self, message: str = 'No song loaded') -> None:
        super().__init__(message)


class NoEligibleEventsError(PreconditionError):
    def __init__(self, message: str = 'No notes inside the playable range for the selected tracks') -> None:
        super().__init__(message)


class NoBindableNotesError(PreconditionError):
    def __init__(self, message: str = 'None of the playable notes has an input binding') -> None:
        super().__init__(message)


class SettingsNotReadyError(MidiAutoplayError):
    """get_settings() called before initialize()."""
