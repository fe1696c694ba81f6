"""Serial connection to the DV4mini dongle.

The dongle presents as a USB CDC serial device. The link is opened with a
fixed configuration (115200 baud, 8N1, 250 ms read timeout) and exposes
four operations to the rest of the driver: ``write``, ``read_exact``,
``flush`` and ``close``.
"""

from __future__ import annotations

import logging
from typing import Protocol

import serial

from ..errors import TransportError

logger = logging.getLogger(__name__)

BAUD_RATE = 115200
BYTE_SIZE = serial.EIGHTBITS
PARITY = serial.PARITY_NONE
STOP_BITS = serial.STOPBITS_ONE
READ_TIMEOUT_S = 0.25


class Link(Protocol):
    """Byte-stream duplex link consumed by the exchange engine."""

    def write(self, data: bytes) -> None: ...

    def read_exact(self, size: int, timeout: float | None = None) -> bytes: ...

    def flush(self) -> None: ...

    def close(self) -> None: ...


class SerialLink:
    """Manages the serial connection to the dongle.

    Usage::

        link = SerialLink("/dev/ttyACM0")
        link.open()
        link.write(frame_bytes)
        header = link.read_exact(6)
        link.close()
    """

    def __init__(self, device: str, timeout: float = READ_TIMEOUT_S) -> None:
        self._device = device
        self._timeout = timeout
        self._port: serial.Serial | None = None

    @property
    def device(self) -> str:
        return self._device

    @property
    def connected(self) -> bool:
        return self._port is not None and self._port.is_open

    def open(self) -> None:
        """Open the serial port.

        Raises:
            TransportError: If the device cannot be found or opened.
        """
        try:
            self._port = serial.Serial(
                port=self._device,
                baudrate=BAUD_RATE,
                bytesize=BYTE_SIZE,
                parity=PARITY,
                stopbits=STOP_BITS,
                timeout=self._timeout,
            )
        except (serial.SerialException, OSError) as e:
            self._port = None
            raise TransportError(f"Serial device {self._device} not found") from e

        logger.info("Opened %s @ %d", self._device, BAUD_RATE)

    def close(self) -> None:
        """Close the serial port."""
        if self._port is None:
            return

        try:
            self._port.close()
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"Error closing {self._device}: {e}") from e
        finally:
            self._port = None
            logger.info("Closed %s", self._device)

    def write(self, data: bytes) -> None:
        """Write raw bytes to the port.

        Raises:
            TransportError: If not connected or the write fails.
        """
        port = self._require_port()
        try:
            port.write(data)
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"Write to {self._device} failed: {e}") from e

    def read_exact(self, size: int, timeout: float | None = None) -> bytes:
        """Read exactly ``size`` bytes.

        Args:
            size: Number of bytes to read.
            timeout: Read timeout in seconds, or ``None`` for the link's
                configured timeout.

        Raises:
            TransportError: If the read fails or fewer than ``size`` bytes
                arrive before the timeout.
        """
        port = self._require_port()
        try:
            if timeout is None:
                data = port.read(size)
            else:
                previous = port.timeout
                port.timeout = timeout
                try:
                    data = port.read(size)
                finally:
                    port.timeout = previous
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"Read from {self._device} failed: {e}") from e

        if len(data) < size:
            raise TransportError(
                f"Short read from {self._device}: expected {size} bytes, "
                f"got {len(data)}"
            )
        return bytes(data)

    def flush(self) -> None:
        """Discard everything pending in the input and output buffers."""
        port = self._require_port()
        try:
            port.reset_input_buffer()
            port.reset_output_buffer()
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"Flush of {self._device} failed: {e}") from e

    def _require_port(self) -> serial.Serial:
        if self._port is None or not self._port.is_open:
            raise TransportError(f"{self._device} is not open")
        return self._port
