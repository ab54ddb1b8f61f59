# Copyright (c) 2023, Menno Smits
# Released subject to the New BSD License
# Please see http://en.wikipedia.org/wiki/BSD_licenses


# Base class allowing to catch any IMAPWatch related exceptions
class IMAPWatchError(RuntimeError):
    pass


class ConfigError(IMAPWatchError, ValueError):
    """
    The connection parameters are missing or invalid. Raised before
    any connection attempt is made and never retried.
    """


class ConnectError(IMAPWatchError):
    """
    Connecting, logging in or opening the folder failed. The listener
    retries after a delay.
    """


class SessionFault(IMAPWatchError):
    """
    The connection was lost or the folder was closed by the server
    while waiting for notifications. The listener reconnects.
    """


class DecodeError(IMAPWatchError):
    """A message body could not be decoded."""


class StopRequested(IMAPWatchError):
    # Raised out of blocking waits interrupted by IMAPListener.stop().
    # Not a failure: it must never lead to a reconnect.
    pass
