"""Opcode table and command builders.

Each command is identified by a single-byte opcode used for both
host-to-device requests and device-to-host responses.
"""

from __future__ import annotations

from enum import IntEnum

from ..errors import InvalidArgument
from .framing import build_frame


class Command(IntEnum):
    """Command opcodes."""

    SET_FREQUENCY = 0x01
    SET_MODE = 0x02
    FLUSH_TX_BUFFER = 0x03
    WRITE_TX_DATA = 0x04
    WATCHDOG = 0x05
    READ_RX_BUFFER = 0x07
    SET_LED = 0x08
    SET_TX_POWER = 0x09
    # Captured from USB traffic of the vendor software, meaning unknown
    CAPTURED_0B = 0x0B
    CAPTURED_0C = 0x0C
    CAPTURED_0D = 0x0D
    CAPTURED_0E = 0x0E
    CAPTURED_0F = 0x0F
    DEBUG_TOGGLE = 0x10
    CAPTURED_11 = 0x11
    CAPTURED_12 = 0x12
    CAPTURED_13 = 0x13
    CAPTURED_14 = 0x14
    SET_SEED = 0x17
    GET_VERSION = 0x18
    SET_TX_BUFFER_SIZE = 0x19


class Mode(IntEnum):
    """Operating mode bytes for :data:`Command.SET_MODE`.

    DMR, dPMR and P25 share one wire value. Whether the device tells them
    apart elsewhere is unconfirmed, so ``Mode.DPMR`` and ``Mode.P25`` are
    aliases of ``Mode.DMR``.
    """

    DSTAR = 0x44
    C4FM = 0x46
    DMR = 0x4D
    DPMR = 0x4D
    P25 = 0x4D


class TxPower(IntEnum):
    """Transmit power levels."""

    MIN = 0
    LEVEL_1 = 1
    LEVEL_2 = 2
    LEVEL_3 = 3
    LEVEL_4 = 4
    LEVEL_5 = 5
    LEVEL_6 = 6
    LEVEL_7 = 7
    LEVEL_8 = 8
    MAX = 9


LED_OFF = 0x00
LED_ON = 0x01

# TX buffer size in 100 ms units
TX_BUFFER_MIN = 1
TX_BUFFER_MAX = 15

SEED_SIZE = 4


def _byte(name: str, value: int) -> bytes:
    if not 0 <= value <= 0xFF:
        raise InvalidArgument(f"{name} must fit in one byte, got {value}")
    return bytes([value])


def build_command(command: int, params: bytes = b"") -> bytes:
    """Build a wire frame for a command."""
    return build_frame(int(command), params)


def frequency_bytes(hz: int) -> bytes:
    """Encode a frequency in Hz as the 4-byte big-endian value the dongle expects.

    >>> frequency_bytes(435_999_600).hex()
    '19fcd370'
    """
    if not 0 <= hz <= 0xFFFFFFFF:
        raise InvalidArgument(f"Frequency must fit in 32 bits, got {hz}")
    return hz.to_bytes(4, "big")


def build_set_frequency(tx: bytes, rx: bytes) -> bytes:
    """Build a SetFrequency command carrying the TX then RX frequency bytes."""
    return build_command(Command.SET_FREQUENCY, bytes(tx) + bytes(rx))


def build_set_mode(mode: int) -> bytes:
    """Build a SetMode command. See :class:`Mode` for known values."""
    return build_command(Command.SET_MODE, _byte("Mode", mode))


def build_flush_tx_buffer() -> bytes:
    return build_command(Command.FLUSH_TX_BUFFER)


def build_write_tx_data(chunk: bytes) -> bytes:
    """Build a WriteTXData command for one chunk of transmit payload."""
    return build_command(Command.WRITE_TX_DATA, chunk)


def build_watchdog() -> bytes:
    return build_command(Command.WATCHDOG)


def build_read_rx_buffer() -> bytes:
    return build_command(Command.READ_RX_BUFFER)


def build_set_led(on: bool) -> bytes:
    """Build a SetLED command switching the green LED."""
    return build_command(Command.SET_LED, bytes([LED_ON if on else LED_OFF]))


def build_set_power(level: int) -> bytes:
    """Build a SetTXPower command.

    Args:
        level: Power level, nominally 0-9 (see :class:`TxPower`).
    """
    return build_command(Command.SET_TX_POWER, _byte("Power level", level))


def build_set_seed(seed: bytes) -> bytes:
    """Build a SetSeed command for the scrambler seed."""
    return build_command(Command.SET_SEED, seed)


def build_get_version() -> bytes:
    return build_command(Command.GET_VERSION)


def build_set_tx_buffer_size(size: int) -> bytes:
    """Build a SetTXBufferSize command.

    Args:
        size: Buffer depth 1-15 (100 ms to 1500 ms).

    Raises:
        InvalidArgument: If ``size`` is outside 1-15.
    """
    if not TX_BUFFER_MIN <= size <= TX_BUFFER_MAX:
        raise InvalidArgument(
            f"TX buffer size must be {TX_BUFFER_MIN}-{TX_BUFFER_MAX} "
            f"(100ms to 1500ms), got {size}"
        )
    return build_command(Command.SET_TX_BUFFER_SIZE, bytes([size]))
