"""Exception types for onkey.

Only resource acquisition (audio devices, the filesystem) raises. Pitch
uncertainty is reported through detector confidence instead.
"""


class OnkeyError(Exception):
    """Base class for onkey errors."""


class DeviceUnavailableError(OnkeyError):
    """No usable audio input or output device."""


class CorruptedStateError(OnkeyError):
    """A session or config file could not be read or validated."""

    def __init__(self, path, reason: str):
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class PersistenceError(OnkeyError):
    """A session could not be written to disk."""
