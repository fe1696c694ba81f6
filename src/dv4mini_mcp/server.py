"""MCP server entry point for the DV4mini dongle.

Exposes tools and resources via the Model Context Protocol using the
official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any

from mcp.server.fastmcp import FastMCP

from .errors import DV4MiniError
from .protocol.commands import Command, Mode, TxPower, frequency_bytes
from .protocol.framing import parse_frame
from .protocol.parser import VersionResponse, WatchdogResponse, parse_response
from .session import DV4Mini
from .transport.pacer import TX_PACKET_SIZE, TX_PACKET_SIZE_FULL
from .utils.crc import checksum as compute_checksum

logger = logging.getLogger(__name__)

DEFAULT_DEVICE = "/dev/ttyACM0"

mcp = FastMCP(
    "dv4mini",
    instructions="Control a DV4mini digital-voice USB dongle over its serial link",
)

# Global session state
_session: DV4Mini | None = None


def _get_session() -> DV4Mini:
    """Get the active session, raising if not connected."""
    if _session is None or _session.closed:
        raise RuntimeError(
            "Not connected to device. Use the 'connect' tool first."
        )
    return _session


def _env_debug() -> bool:
    return os.environ.get("DV4MINI_DEBUG", "").lower() in ("1", "true", "yes")


def _parse_hex(data: str) -> bytes:
    """Parse a hex string such as '71 fe 39 1d 18 00'."""
    return bytes.fromhex(data.replace(":", " "))


def _response_dict(response: bytes) -> dict[str, Any]:
    result: dict[str, Any] = {"raw_hex": response.hex(" ")}
    frame = parse_frame(response)
    if frame is not None:
        result["command"] = f"0x{frame.command:02X}"
        result["params_hex"] = frame.params.hex(" ")
        parsed = parse_response(frame)
        if isinstance(parsed, VersionResponse):
            result["firmware"] = parsed.firmware
            result["dongle_id"] = parsed.dongle_id
        elif isinstance(parsed, WatchdogResponse):
            result["rssi"] = parsed.rssi
    return result


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(
    device: str = "",
    debug: bool | None = None,
    full_packets: bool = False,
) -> dict[str, Any]:
    """Open the DV4mini serial device and query its firmware version.

    Args:
        device: Serial device path. Defaults to $DV4MINI_DEVICE or /dev/ttyACM0.
        debug: Trace every frame. Defaults to $DV4MINI_DEBUG.
        full_packets: Send 36-byte TX data packets instead of 34 (firmware
            variants with the larger buffer).
    """
    global _session
    if _session is not None and not _session.closed:
        return {
            "connected": True,
            "message": "Already connected",
            "firmware": _session.firmware_version,
        }

    device = device or os.environ.get("DV4MINI_DEVICE", DEFAULT_DEVICE)
    if debug is None:
        debug = _env_debug()

    packet_size = TX_PACKET_SIZE_FULL if full_packets else TX_PACKET_SIZE
    try:
        _session = DV4Mini.connect(device, debug=debug, packet_size=packet_size)
    except DV4MiniError as e:
        return {"connected": False, "error": str(e)}

    result: dict[str, Any] = {"connected": True, "device": device}
    try:
        _session.version()
        result["firmware"] = _session.firmware_version
        result["dongle_id"] = _session.dongle_id
    except DV4MiniError as e:
        logger.warning("Version query failed: %s", e)
        result["warning"] = f"No version response: {e}"
    return result


@mcp.tool()
def disconnect() -> dict[str, Any]:
    """Flush the TX buffer and close the serial connection."""
    global _session
    if _session is None:
        return {"disconnected": True}
    session, _session = _session, None
    try:
        session.close()
    except DV4MiniError as e:
        return {"disconnected": True, "error": str(e)}
    return {"disconnected": True}


@mcp.tool()
def get_device_info() -> dict[str, Any]:
    """Retrieve firmware version and dongle ID (command 0x18)."""
    session = _get_session()
    try:
        response = session.version()
    except DV4MiniError as e:
        return {"error": str(e)}
    return {
        "firmware": session.firmware_version,
        "dongle_id": session.dongle_id,
        **_response_dict(response),
    }


@mcp.tool()
def watchdog() -> dict[str, Any]:
    """Send a keep-alive ping (command 0x05) and report the RSSI."""
    session = _get_session()
    try:
        response = session.watchdog()
    except DV4MiniError as e:
        return {"error": str(e)}
    return {"rssi": session.rssi, **_response_dict(response)}


# ─── RADIO SETTINGS ──────────────────────────────────────────────────

@mcp.tool()
def set_mode(mode: str) -> dict[str, Any]:
    """Set the operating mode.

    Args:
        mode: One of dstar, c4fm, dmr, dpmr, p25. DMR, dPMR and P25 share
            the same mode byte.
    """
    try:
        value = Mode[mode.upper().replace("-", "")]
    except KeyError:
        return {"error": f"Unknown mode '{mode}'. Valid: {[m.lower() for m in Mode.__members__]}"}
    session = _get_session()
    try:
        session.set_mode(value)
    except DV4MiniError as e:
        return {"error": str(e)}
    return {"mode": mode.lower(), "value": f"0x{int(value):02X}"}


@mcp.tool()
def set_frequency(tx_hz: int, rx_hz: int) -> dict[str, Any]:
    """Set the TX and RX frequencies.

    Args:
        tx_hz: Transmit frequency in Hz.
        rx_hz: Receive frequency in Hz.
    """
    session = _get_session()
    try:
        session.set_frequency(frequency_bytes(tx_hz), frequency_bytes(rx_hz))
    except DV4MiniError as e:
        return {"error": str(e)}
    return {"tx_hz": tx_hz, "rx_hz": rx_hz}


@mcp.tool()
def set_power(level: int) -> dict[str, Any]:
    """Set the transmit power level.

    Args:
        level: Power level 0-9.
    """
    if not TxPower.MIN <= level <= TxPower.MAX:
        return {"error": f"Power level must be {int(TxPower.MIN)}-{int(TxPower.MAX)}"}
    session = _get_session()
    try:
        session.set_power(level)
    except DV4MiniError as e:
        return {"error": str(e)}
    return {"power": level}


@mcp.tool()
def set_led(on: bool) -> dict[str, Any]:
    """Switch the green LED on or off."""
    session = _get_session()
    try:
        if on:
            session.led_on()
        else:
            session.led_off()
    except DV4MiniError as e:
        return {"error": str(e)}
    return {"led": on}


@mcp.tool()
def set_tx_buffer_size(size: int) -> dict[str, Any]:
    """Set the dongle TX buffer depth.

    Args:
        size: 1-15, in 100 ms steps.
    """
    session = _get_session()
    try:
        session.set_tx_buffer_size(size)
    except DV4MiniError as e:
        return {"error": str(e)}
    return {"tx_buffer_size": size, "milliseconds": size * 100}


@mcp.tool()
def set_initial_seed() -> dict[str, Any]:
    """Send a fresh random 4-byte scrambler seed."""
    session = _get_session()
    try:
        seed = session.set_initial_seed()
    except DV4MiniError as e:
        return {"error": str(e)}
    return {"seed_hex": seed.hex(" ")}


# ─── DATA TOOLS ──────────────────────────────────────────────────────

@mcp.tool()
def read_rx_buffer() -> dict[str, Any]:
    """Read the dongle RX buffer (command 0x07)."""
    session = _get_session()
    try:
        response = session.read_rx_buffer()
    except DV4MiniError as e:
        return {"error": str(e)}
    return _response_dict(response)


@mcp.tool()
def transmit(payload_hex: str) -> dict[str, Any]:
    """Transmit a payload as paced TX data packets.

    PTT engages automatically while data arrives. The TX buffer is
    flushed after the last packet.

    Args:
        payload_hex: Payload bytes as hex.
    """
    try:
        payload = _parse_hex(payload_hex)
    except ValueError:
        return {"error": "Invalid hex payload"}
    session = _get_session()
    try:
        packets = session.write_tx_data(payload)
    except DV4MiniError as e:
        return {"error": str(e)}
    return {"bytes": len(payload), "packets": packets}


@mcp.tool()
def send_raw(frame_hex: str) -> dict[str, Any]:
    """Write a hand-crafted frame (preamble, command, length, params) as-is.

    Args:
        frame_hex: Complete frame as hex, e.g. '71 fe 39 1d 08 01 01'.
    """
    try:
        data = _parse_hex(frame_hex)
    except ValueError:
        return {"error": "Invalid hex frame"}
    session = _get_session()
    try:
        session.send_raw(data)
    except DV4MiniError as e:
        return {"error": str(e)}
    return {"sent": len(data)}


@mcp.tool()
def read_serial(size: int) -> dict[str, Any]:
    """Read bytes already pending on the serial link without sending anything.

    Args:
        size: Number of bytes to read (1-4096).
    """
    if not 1 <= size <= 4096:
        return {"error": "Size must be 1-4096"}
    session = _get_session()
    try:
        data = session.read_serial(size)
    except DV4MiniError as e:
        return {"error": str(e)}
    return {"raw_hex": data.hex(" "), "length": len(data)}


@mcp.tool()
def exchange_raw(frame_hex: str) -> dict[str, Any]:
    """Write a hand-crafted frame and read back the response.

    Args:
        frame_hex: Complete frame as hex, e.g. '71 fe 39 1d 18 00'.
    """
    try:
        data = _parse_hex(frame_hex)
    except ValueError:
        return {"error": "Invalid hex frame"}
    session = _get_session()
    try:
        response = session.exchange_raw(data)
    except DV4MiniError as e:
        return {"error": str(e)}
    return _response_dict(response)


@mcp.tool()
def checksum(data_hex: str, width: int = 9) -> dict[str, Any]:
    """Calculate the CRC of a byte sequence.

    Args:
        data_hex: Input bytes as hex.
        width: Register width, 9 (CRC-9) or 8 (not available yet).
    """
    try:
        data = _parse_hex(data_hex)
    except ValueError:
        return {"error": "Invalid hex data"}
    try:
        value = compute_checksum(data, width)
    except (ValueError, NotImplementedError) as e:
        return {"error": str(e)}
    return {"width": width, "checksum": f"0x{value:04X}"}


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("dv4mini://device/info")
def resource_device_info() -> str:
    """Connection state, firmware and last RSSI."""
    if _session is None or _session.closed:
        return json.dumps({"connected": False})

    return json.dumps({
        "connected": True,
        "firmware": _session.firmware_version,
        "dongle_id": _session.dongle_id,
        "rssi": _session.rssi,
        "debug": _session.debug,
    })


@mcp.resource("dv4mini://protocol/opcodes")
def resource_opcodes() -> str:
    """Opcode table and mode bytes."""
    opcodes = [{"name": c.name, "opcode": f"0x{c.value:02X}"} for c in Command]
    modes = [
        {"name": name, "value": f"0x{m.value:02X}"}
        for name, m in Mode.__members__.items()
    ]
    return json.dumps({"opcodes": opcodes, "modes": modes})


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
