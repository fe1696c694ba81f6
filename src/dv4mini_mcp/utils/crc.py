"""CRC-9 calculation.

Generator polynomial G(x) = x^9 + x^6 + x^4 + x^3 + 1, run as a 9-bit
shift register without initial value or final inversion. A message is
finalized by clocking 8 zero bits through the register.

The 8-bit variant, G(x) = x^8 + x^2 + x + 1 by the device notes, has
never been confirmed against the hardware and is left unimplemented.
"""

from __future__ import annotations

CRC9_POLY = 0x059
CRC9_MASK = 0x1FF
CRC9_TOP_BIT = 0x100


def _clock(crc: int, bit: bool) -> int:
    xor = crc & CRC9_TOP_BIT
    crc = (crc << 1) & CRC9_MASK
    if bit:
        crc += 1
    if xor:
        crc ^= CRC9_POLY
    return crc


def crc9_update(crc: int, byte: int, bits: int = 8) -> int:
    """Clock the top ``bits`` bits of ``byte`` into the register, MSB first.

    Args:
        crc: Current register value.
        byte: Input byte.
        bits: Number of high-order bits to consume (1-8).

    Returns:
        Updated register value.
    """
    if not 1 <= bits <= 8:
        raise ValueError(f"bits must be 1-8, got {bits}")
    mask = 0x80
    for _ in range(bits):
        crc = _clock(crc, byte & mask)
        mask >>= 1
    return crc


def crc9_finish(crc: int, bits: int = 8) -> int:
    """Flush ``bits`` zero bits through the register and return the result."""
    for _ in range(bits):
        crc = _clock(crc, False)
    return crc


def crc9(data: bytes, bits: int = 8) -> int:
    """Calculate the CRC-9 for an entire buffer.

    Args:
        data: bytes or bytearray
        bits: Bits consumed per input byte.

    Returns:
        int: CRC value (0-511)
    """
    crc = 0
    for byte in data:
        crc = crc9_update(crc, byte, bits)
    return crc9_finish(crc)


def crc8(data: bytes) -> int:
    raise NotImplementedError(
        "CRC-8 generator polynomial has not been confirmed for this device"
    )


def checksum(data: bytes, width: int = 9) -> int:
    """Calculate a checksum of the given register width (8 or 9 bits)."""
    if width == 9:
        return crc9(data)
    if width == 8:
        return crc8(data)
    raise ValueError(f"Checksum width must be 8 or 9, got {width}")


class CRC9:
    """Running CRC-9 accumulator.

    Usage::

        crc = CRC9()
        crc.update(b"hello ")
        crc.update(b"world")
        value = crc.digest()
    """

    def __init__(self, bits: int = 8) -> None:
        self._bits = bits
        self._register = 0

    def reset(self) -> None:
        self._register = 0

    def update(self, data: bytes) -> None:
        for byte in data:
            self._register = crc9_update(self._register, byte, self._bits)

    def digest(self) -> int:
        """Return the finalized value without disturbing the running register."""
        return crc9_finish(self._register)
