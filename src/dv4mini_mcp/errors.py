"""Exception types raised by the DV4mini driver."""

from __future__ import annotations


class DV4MiniError(Exception):
    """Base class for all driver errors."""


class TransportError(DV4MiniError, ConnectionError):
    """The serial link failed to open, write or read, or a read timed out.

    Short reads are always reported with this error, never handed back
    as protocol data.
    """


class InvalidArgument(DV4MiniError, ValueError):
    """A command parameter is outside its documented range."""


class InvalidLength(InvalidArgument):
    """A parameter block does not fit the single-byte length field."""


class RandomnessUnavailable(DV4MiniError):
    """The operating system entropy source could not supply random bytes."""
