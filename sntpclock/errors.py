"""Exceptions raised by the SNTP client."""

from __future__ import annotations


class SntpError(Exception):
    """Base class for every error raised by this package."""


class InvalidArgument(SntpError, ValueError):
    pass


class IllegalState(SntpError, RuntimeError):
    pass


class MalformedPacket(SntpError, ValueError):
    pass


class NetworkError(SntpError, OSError):
    pass


class Timeout(SntpError, TimeoutError):
    pass


class NotSynchronized(SntpError, RuntimeError):
    pass
