"""Request/response exchange over a link.

The protocol is strictly half-duplex: one frame out, at most one frame
back. All traffic on a link goes through one :class:`Exchanger`, which
holds a lock for the duration of every write or exchange.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager

import serial

from ..errors import TransportError
from ..protocol.framing import HEADER_SIZE, parse_header
from .serial_link import Link

logger = logging.getLogger(__name__)


class Exchanger:
    """Serializes frames and responses on a single link.

    Args:
        link: The link to drive. The exchanger never opens it; :meth:`close`
            closes it under the lock.
        debug: Trace every write and read at INFO instead of DEBUG.
    """

    def __init__(self, link: Link, debug: bool = False) -> None:
        self._link = link
        self._lock = threading.RLock()
        self._trace_level = logging.INFO if debug else logging.DEBUG

    @property
    def link(self) -> Link:
        return self._link

    @property
    def lock(self) -> threading.RLock:
        """Lock held while a frame or a paced burst is on the wire."""
        return self._lock

    def send(self, frame: bytes) -> None:
        """Write a frame without waiting for a response.

        Raises:
            TransportError: If the write fails.
        """
        with self._lock, self._link_errors("write"):
            self._write(frame)

    def exchange(self, frame: bytes) -> bytes:
        """Write a frame and read back the complete response.

        The header is read first and announces the body length; the body
        is read next. Anything else left in the link buffers is discarded
        before returning.

        Returns:
            Header and body concatenated.

        Raises:
            TransportError: If the write fails, or either read fails or
                comes back short.
        """
        with self._lock, self._link_errors("exchange"):
            self._write(frame)

            header = self._link.read_exact(HEADER_SIZE)
            self._trace("serial.read", header)

            _, length = parse_header(header)
            body = b""
            if length:
                body = self._link.read_exact(length)
                self._trace("serial.read", body)

            # Drop unsolicited device traffic before the next exchange
            self._link.flush()

            return header + body

    def close(self) -> None:
        with self._lock, self._link_errors("close"):
            self._link.close()

    def read(self, size: int) -> bytes:
        """Read exactly ``size`` pending bytes without sending anything.

        Raises:
            TransportError: If the read fails or comes back short.
        """
        with self._lock, self._link_errors("read"):
            data = self._link.read_exact(size)
            self._trace("serial.read", data)
            return data

    def flush(self) -> None:
        with self._lock, self._link_errors("flush"):
            self._link.flush()

    @contextmanager
    def _link_errors(self, op: str):
        """Re-raise link failures as TransportError."""
        try:
            yield
        except TransportError:
            raise
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"Link {op} failed: {e}") from e

    def _write(self, frame: bytes) -> None:
        self._trace("serial.write", frame)
        self._link.write(frame)

    def _trace(self, op: str, data: bytes) -> None:
        logger.log(
            self._trace_level, "[*] %s: %s (len: %d)", op, data.hex(" "), len(data)
        )
