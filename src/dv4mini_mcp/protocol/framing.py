"""Frame builder and parser for the DV4mini serial protocol.

Frame layout (identical in both directions)::

    +-------------+---------+---------+------------------+
    |  Preamble   | Command | Length  |    Parameters    |
    |  4 bytes    | 1 byte  | 1 byte  |  Length bytes    |
    +-------------+---------+---------+------------------+

- Preamble: 0x71 0xFE 0x39 0x1D
- Length: number of parameter bytes (0-255)

Responses are read in two stages: the 6-byte header first, then exactly
``Length`` more bytes. There is no checksum and no resynchronisation
marker other than the preamble itself.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import InvalidArgument, InvalidLength

PREAMBLE = b"\x71\xFE\x39\x1D"
HEADER_SIZE = 6  # preamble(4) + command(1) + length(1)
MAX_PARAMS = 255


@dataclass
class Frame:
    """A parsed protocol frame."""

    command: int
    params: bytes

    def __repr__(self) -> str:
        return (
            f"Frame(command=0x{self.command:02X}, "
            f"params={self.params.hex(' ') if self.params else '(empty)'})"
        )


def build_frame(command: int, params: bytes = b"") -> bytes:
    """Build a wire frame for a command.

    The command byte is not checked against the known opcode table, so
    undocumented opcodes can be sent as-is.

    Args:
        command: Single-byte opcode.
        params: Command parameters, at most 255 bytes.

    Raises:
        InvalidArgument: If ``command`` does not fit one byte.
        InvalidLength: If ``params`` is longer than 255 bytes.
    """
    if not 0 <= command <= 0xFF:
        raise InvalidArgument(f"Command must fit in one byte, got {command}")
    if len(params) > MAX_PARAMS:
        raise InvalidLength(
            f"Parameter block must be at most {MAX_PARAMS} bytes, got {len(params)}"
        )
    return PREAMBLE + bytes([command, len(params)]) + bytes(params)


def parse_header(header: bytes) -> tuple[int, int]:
    """Extract ``(command, body_length)`` from a 6-byte response header.

    No validation is done beyond the size: the caller has already read
    exactly :data:`HEADER_SIZE` bytes from the link.
    """
    if len(header) != HEADER_SIZE:
        raise ValueError(f"Header must be {HEADER_SIZE} bytes, got {len(header)}")
    return header[4], header[5]


def parse_frame(data: bytes) -> Frame | None:
    """Parse a complete response (header + body) into a Frame.

    Returns:
        A ``Frame``, or ``None`` if the preamble is missing or the
        announced length does not match the data.
    """
    if len(data) < HEADER_SIZE:
        return None

    if data[:4] != PREAMBLE:
        return None

    command, length = parse_header(data[:HEADER_SIZE])
    params = data[HEADER_SIZE:]
    if len(params) != length:
        return None

    return Frame(command=command, params=bytes(params))
