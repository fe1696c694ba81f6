"""Paced transmit of audio payloads.

The dongle accepts TX data in small packets and drains its internal
buffer at a fixed rate. Payloads are split into packets of at most
:data:`TX_PACKET_SIZE` bytes and written one every
:data:`TX_PACKET_INTERVAL_S` seconds; writing faster makes the device
drop data silently. PTT is engaged by the device while data arrives.
"""

from __future__ import annotations

import logging
import time

from ..protocol.commands import build_flush_tx_buffer, build_write_tx_data
from .exchange import Exchanger

logger = logging.getLogger(__name__)

TX_PACKET_SIZE = 34
TX_PACKET_SIZE_FULL = 36  # capacity reported for some firmware variants
TX_PACKET_INTERVAL_S = 0.030


def split_payload(payload: bytes, packet_size: int = TX_PACKET_SIZE) -> list[bytes]:
    """Split a payload into consecutive chunks of at most ``packet_size`` bytes."""
    if packet_size < 1:
        raise ValueError(f"Packet size must be positive, got {packet_size}")
    return [
        payload[offset : offset + packet_size]
        for offset in range(0, len(payload), packet_size)
    ]


class TxPacer:
    """Drives transmit chunks through an exchanger at a fixed cadence.

    Args:
        exchanger: Exchanger owning the link.
        packet_size: Maximum TX data bytes per packet.
        interval: Seconds to wait before each packet.
    """

    def __init__(
        self,
        exchanger: Exchanger,
        packet_size: int = TX_PACKET_SIZE,
        interval: float = TX_PACKET_INTERVAL_S,
    ) -> None:
        if packet_size < 1:
            raise ValueError(f"Packet size must be positive, got {packet_size}")
        self._exchanger = exchanger
        self._packet_size = packet_size
        self._interval = interval

    @property
    def packet_size(self) -> int:
        return self._packet_size

    def stream(self, payload: bytes) -> int:
        """Write ``payload`` as paced TX data packets, then flush the TX buffer.

        The exchanger lock is held for the whole burst so no exchange can
        land between packets. An empty payload sends only the flush.

        Returns:
            Number of TX data packets written.

        Raises:
            TransportError: If any write fails. Packets already sent are
                not retried.
        """
        chunks = split_payload(payload, self._packet_size)
        with self._exchanger.lock:
            for chunk in chunks:
                time.sleep(self._interval)
                logger.debug("[>>>] %s", chunk.hex(" "))
                self._exchanger.send(build_write_tx_data(chunk))
            self._exchanger.send(build_flush_tx_buffer())
        return len(chunks)
