"""
Replication-specific exceptions for the monitor replicator.

This module defines all exceptions that can be raised while
replicating a monitor feed to a destination Redis.
"""


class ReplicationError(Exception):
    """Base exception for all replication errors."""
    pass


class ConnectionError(ReplicationError):
    """Raised when the destination backend cannot be reached."""

    def __init__(self, message, host=None, port=None):
        self.message = message
        self.host = host
        self.port = port
        super().__init__(self.message)

    def __str__(self):
        if self.host and self.port:
            return f"{self.message} (host={self.host}, port={self.port})"
        return self.message


class ProtocolError(ReplicationError):
    """Raised when a monitor line cannot be decoded."""

    def __init__(self, message, line=None, position=None):
        self.message = message
        self.line = line
        self.position = position
        super().__init__(self.message)


class TruncatedEscapeError(ProtocolError):
    """Raised when an escape sequence runs past the end of the line."""

    def __init__(self, sequence, line=None):
        self.sequence = sequence
        message = f"Truncated escape sequence {sequence!r} at end of line"
        super().__init__(message, line)


class ChannelClosedError(ReplicationError):
    """Raised when putting a command on a closed channel."""

    def __init__(self, message="Cannot put a command on a closed channel"):
        self.message = message
        super().__init__(self.message)
