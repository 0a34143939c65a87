"""
Exception types raised by the remote file client.

Every error derives from RemoteFileError (itself an OSError) and, where one
fits, from the closest builtin so callers can catch either.
"""


class RemoteFileError(OSError):
    """Base class for all remote file client errors."""


class RemoteConnectionError(RemoteFileError, ConnectionError):
    """The TCP session to the media server could not be established."""


class HandshakeError(RemoteFileError):
    """The server rejected the transcode setup or the open request."""

    def __init__(self, message: str, response: str | None = None):
        super().__init__(message)
        self.response = response


class ProtocolError(RemoteFileError):
    """The server answered a command with something other than what was expected."""

    def __init__(self, message: str, response: str | None = None):
        super().__init__(message)
        self.response = response


class TransportError(RemoteFileError):
    """An I/O failure that persisted after reconnecting and retrying once."""


class ReadOnlyError(RemoteFileError, PermissionError):
    """A write or truncate was attempted on a read-only handle."""
