"""DV4mini session: the command vocabulary over one exclusively owned link."""

from __future__ import annotations

import logging
import os

from .errors import RandomnessUnavailable
from .protocol.commands import (
    SEED_SIZE,
    build_flush_tx_buffer,
    build_get_version,
    build_read_rx_buffer,
    build_set_frequency,
    build_set_led,
    build_set_mode,
    build_set_power,
    build_set_seed,
    build_set_tx_buffer_size,
    build_watchdog,
)
from .protocol.framing import parse_frame
from .protocol.parser import parse_version, parse_watchdog
from .transport.exchange import Exchanger
from .transport.pacer import TX_PACKET_INTERVAL_S, TX_PACKET_SIZE, TxPacer
from .transport.serial_link import Link, SerialLink

logger = logging.getLogger(__name__)


def random_bytes(size: int) -> bytes:
    """Return ``size`` bytes from the OS entropy source.

    Raises:
        RandomnessUnavailable: If the entropy source fails.
    """
    try:
        return os.urandom(size)
    except (OSError, NotImplementedError) as e:
        raise RandomnessUnavailable(f"Could not read {size} random bytes: {e}") from e


class DV4Mini:
    """A session with one DV4mini dongle.

    The session owns its link for its whole lifetime and closes it on
    :meth:`close`. Use :meth:`connect` to open a serial device::

        with DV4Mini.connect("/dev/ttyACM0") as dv:
            dv.set_mode(Mode.DMR)
            dv.set_frequency(frequency_bytes(tx_hz), frequency_bytes(rx_hz))
            dv.write_tx_data(payload)

    Set-style commands are fire-and-forget: the dongle does not
    acknowledge them. Query commands return the raw response bytes
    (header and parameters).
    """

    def __init__(
        self,
        link: Link,
        debug: bool = False,
        packet_size: int = TX_PACKET_SIZE,
        interval: float = TX_PACKET_INTERVAL_S,
    ) -> None:
        self._link = link
        self._debug = debug
        self._exchanger = Exchanger(link, debug=debug)
        self._pacer = TxPacer(self._exchanger, packet_size=packet_size, interval=interval)
        self._closed = False

        self._rssi_msb = 0
        self._rssi_lsb = 0
        self._rssi = 0
        self._firmware_version = ""
        self._dongle_id = ""

    @classmethod
    def connect(cls, device: str, debug: bool = False, **kwargs) -> DV4Mini:
        """Open the serial device and start a session on it.

        Raises:
            TransportError: If the serial device cannot be opened.
        """
        link = SerialLink(device)
        link.open()
        return cls(link, debug=debug, **kwargs)

    def __enter__(self) -> DV4Mini:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ─── STATE ──────────────────────────────────────────────────────

    @property
    def debug(self) -> bool:
        return self._debug

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def rssi(self) -> int:
        """Last signal strength reported by a watchdog exchange."""
        return self._rssi

    @property
    def rssi_msb(self) -> int:
        return self._rssi_msb

    @property
    def rssi_lsb(self) -> int:
        return self._rssi_lsb

    @property
    def firmware_version(self) -> str:
        return self._firmware_version

    @property
    def dongle_id(self) -> str:
        return self._dongle_id

    @property
    def packet_size(self) -> int:
        return self._pacer.packet_size

    # ─── LIFECYCLE ──────────────────────────────────────────────────

    def close(self) -> None:
        """Flush the TX buffer, flush the link, then close it.

        All three steps run even if an earlier one fails.
        """
        with self._exchanger.lock:
            if self._closed:
                return
            self._closed = True
            try:
                self.flush_tx_buffer()
            finally:
                try:
                    self._exchanger.flush()
                finally:
                    self._exchanger.close()

    def flush_serial(self) -> None:
        """Discard all pending bytes in the link buffers."""
        self._exchanger.flush()

    # ─── FIRE-AND-FORGET COMMANDS ───────────────────────────────────

    def set_frequency(self, tx: bytes, rx: bytes) -> None:
        """Set TX and RX frequency (see :func:`frequency_bytes`)."""
        self._exchanger.send(build_set_frequency(tx, rx))

    def set_mode(self, mode: int) -> None:
        self._exchanger.send(build_set_mode(mode))

    def set_power(self, level: int) -> None:
        self._exchanger.send(build_set_power(level))

    def set_tx_buffer_size(self, size: int) -> None:
        """Set the device TX buffer depth, 1-15 (100 ms to 1500 ms).

        Raises:
            InvalidArgument: If ``size`` is out of range.
        """
        self._exchanger.send(build_set_tx_buffer_size(size))

    def led_on(self) -> None:
        self._exchanger.send(build_set_led(True))

    def led_off(self) -> None:
        self._exchanger.send(build_set_led(False))

    def flush_tx_buffer(self) -> None:
        self._exchanger.send(build_flush_tx_buffer())

    def set_initial_seed(self) -> bytes:
        """Send a fresh random scrambler seed and return it.

        Raises:
            RandomnessUnavailable: If no random bytes could be read.
        """
        seed = random_bytes(SEED_SIZE)
        self._exchanger.send(build_set_seed(seed))
        return seed

    # ─── QUERIES ────────────────────────────────────────────────────

    def watchdog(self) -> bytes:
        """Ping the dongle and update the RSSI from its reply."""
        response = self._exchanger.exchange(build_watchdog())
        frame = parse_frame(response)
        parsed = parse_watchdog(frame) if frame else None
        if parsed is not None:
            self._rssi_msb = parsed.rssi_msb
            self._rssi_lsb = parsed.rssi_lsb
            self._rssi = parsed.rssi
        return response

    def version(self) -> bytes:
        """Query firmware version and dongle ID, updating the session state."""
        response = self._exchanger.exchange(build_get_version())
        frame = parse_frame(response)
        parsed = parse_version(frame) if frame else None
        if parsed is not None:
            self._firmware_version = parsed.firmware
            self._dongle_id = parsed.dongle_id
            logger.info(
                "DV4mini firmware %s, id %s", parsed.firmware, parsed.dongle_id
            )
        return response

    def read_rx_buffer(self) -> bytes:
        return self._exchanger.exchange(build_read_rx_buffer())

    # ─── TRANSMIT ───────────────────────────────────────────────────

    def write_tx_data(self, payload: bytes) -> int:
        """Stream a transmit payload in paced packets, then flush the TX buffer.

        Returns:
            Number of TX data packets written.
        """
        return self._pacer.stream(payload)

    # ─── RAW ACCESS ─────────────────────────────────────────────────

    def send_raw(self, data: bytes) -> None:
        """Write an already framed command as-is.

        Example, set TX and RX frequency::

            dv.send_raw(bytes([
                0x71, 0xFE, 0x39, 0x1D,  # preamble
                0x01,                    # command
                0x08,                    # length
                0x19, 0xFC, 0xD3, 0x70,  # TX frequency
                0x19, 0xFC, 0xD3, 0x70,  # RX frequency
            ]))
        """
        self._exchanger.send(bytes(data))

    def exchange_raw(self, data: bytes) -> bytes:
        """Write an already framed command and read back the response.

        Example, get the dongle version::

            dv.exchange_raw(bytes([0x71, 0xFE, 0x39, 0x1D, 0x18, 0x00]))
        """
        return self._exchanger.exchange(bytes(data))

    def read_serial(self, size: int) -> bytes:
        """Read exactly ``size`` bytes already pending on the link.

        Raises:
            TransportError: If fewer bytes arrive before the read timeout.
        """
        return self._exchanger.read(size)
