"""Protocol layer: message framing, command builders, and response parsing."""

from .framing import build_frame, parse_frame, parse_header
from .commands import Command, Mode, TxPower, build_command
