"""Response parsing for device messages.

The dongle's payload layouts are only partly known. Parsers here extract
what the driver keeps as session state and always carry the raw
parameters along.
"""

from __future__ import annotations

from dataclasses import dataclass

from .commands import Command
from .framing import Frame

DONGLE_ID_SIZE = 4


@dataclass
class VersionResponse:
    """Parsed GetVersion (0x18) response."""

    firmware: str
    dongle_id: str
    raw: bytes

    def __repr__(self) -> str:
        return (
            f"VersionResponse(firmware={self.firmware!r}, "
            f"dongle_id={self.dongle_id!r})"
        )


@dataclass
class WatchdogResponse:
    """Parsed Watchdog (0x05) response."""

    rssi_msb: int
    rssi_lsb: int
    rssi: int
    raw: bytes


def parse_version(frame: Frame) -> VersionResponse | None:
    """Parse a GetVersion response frame.

    The parameters hold an ASCII firmware version followed by a 4-byte
    dongle identifier. Payloads shorter than the identifier are treated
    as version text only.
    """
    if frame.command != Command.GET_VERSION:
        return None

    params = frame.params
    if len(params) <= DONGLE_ID_SIZE:
        text, ident = params, b""
    else:
        text, ident = params[:-DONGLE_ID_SIZE], params[-DONGLE_ID_SIZE:]

    firmware = text.split(b"\x00")[0].decode("ascii", errors="replace").strip()
    return VersionResponse(
        firmware=firmware or "unknown",
        dongle_id=ident.hex().upper(),
        raw=params,
    )


def parse_watchdog(frame: Frame) -> WatchdogResponse | None:
    """Parse a Watchdog response frame.

    The last two parameter bytes carry the signal strength, most
    significant byte first. The signed value of the low byte is reported
    as RSSI.
    """
    if frame.command != Command.WATCHDOG:
        return None
    if len(frame.params) < 2:
        return None

    msb, lsb = frame.params[-2], frame.params[-1]
    rssi = lsb - 0x100 if lsb & 0x80 else lsb
    return WatchdogResponse(rssi_msb=msb, rssi_lsb=lsb, rssi=rssi, raw=frame.params)


def parse_response(frame: Frame):
    """Auto-dispatch a frame to the appropriate response parser.

    Returns the parsed response dataclass, or the raw Frame if no
    specific parser matches.
    """
    parsers = {
        Command.GET_VERSION: parse_version,
        Command.WATCHDOG: parse_watchdog,
    }
    parser = parsers.get(frame.command)
    if parser:
        result = parser(frame)
        if result is not None:
            return result
    return frame
