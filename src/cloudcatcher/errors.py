"""Exception taxonomy for the client."""

from __future__ import annotations


class CloudCatcherError(Exception):
    """Base exception for client errors."""

    pass


class ConnectionLost(CloudCatcherError):
    """The link could not be established, or it closed under us."""

    pass


class ProtocolDecodeError(CloudCatcherError, ValueError):
    """A single packet does not match the shape its type code requires."""

    pass


class FileAccessError(CloudCatcherError):
    """A path cannot be edited: directory, read-only, outside the root, unreadable."""

    pass


class SizeLimitExceeded(CloudCatcherError):
    """A packet would exceed the maximum message size."""

    pass


class SessionFailed(CloudCatcherError):
    """The local task ended with an unrecovered failure."""

    pass
