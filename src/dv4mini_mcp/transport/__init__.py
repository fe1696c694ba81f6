"""Transport layer: serial link, request/response exchange, and TX pacing."""

from .serial_link import Link, SerialLink
from .exchange import Exchanger
from .pacer import TxPacer
