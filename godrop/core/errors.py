# godrop/core/errors.py

"""
Error taxonomy for the session client.

IoError and StartupError never escape a controller command; they are turned
into session log lines. VerificationError is viewer-local feedback and
TransportOffline only degrades the viewer display until the next poll.
"""


class GodropError(Exception):
    """Base class for every error raised by the godrop client."""


class IoError(GodropError):
    """A directory or file could not be accessed."""

    def __init__(self, path, detail: str = ""):
        self.path = str(path)
        self.detail = detail
        message = f"Cannot access '{self.path}'"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class StartupError(GodropError):
    """The transfer service rejected a start request (bad port, bind failure...)."""

    def __init__(self, message: str, mode=None):
        self.mode = mode
        super().__init__(message)


class VerificationError(GodropError):
    """The viewer's one-time code was refused."""


class TransportOffline(GodropError):
    """The viewer's status endpoint could not be reached."""
