"""DV4mini - protocol driver for the DV4mini digital-voice USB dongle.

Frames commands for the dongle's serial protocol, runs request/response
exchanges over the serial link, and paces transmit audio to the dongle's
buffer drain rate.
"""

from .errors import (
    DV4MiniError,
    InvalidArgument,
    InvalidLength,
    RandomnessUnavailable,
    TransportError,
)
from .protocol.commands import Command, Mode, TxPower, frequency_bytes
from .session import DV4Mini

__version__ = "0.1.0"
