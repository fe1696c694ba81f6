"""Tests for the DV4mini session facade."""

import threading
from unittest.mock import MagicMock, patch

import pytest

from dv4mini_mcp import DV4Mini, Mode
from dv4mini_mcp.errors import (
    DV4MiniError,
    InvalidArgument,
    RandomnessUnavailable,
    TransportError,
)
from dv4mini_mcp.protocol.commands import (
    Command,
    build_flush_tx_buffer,
    build_get_version,
    build_set_led,
    frequency_bytes,
)
from dv4mini_mcp.protocol.framing import build_frame, parse_frame
from dv4mini_mcp.transport.pacer import TX_PACKET_INTERVAL_S, TX_PACKET_SIZE


def _commands(link):
    return [parse_frame(w).command for w in link.writes]


def test_set_commands_are_fire_and_forget(link):
    dv = DV4Mini(link)
    dv.set_mode(Mode.DSTAR)
    dv.set_power(5)
    dv.led_on()
    dv.led_off()

    assert _commands(link) == [
        Command.SET_MODE,
        Command.SET_TX_POWER,
        Command.SET_LED,
        Command.SET_LED,
    ]
    assert all(event[0] == "write" for event in link.events)


def test_set_frequency(link):
    tx, rx = frequency_bytes(439_000_000), frequency_bytes(431_400_000)
    DV4Mini(link).set_frequency(tx, rx)
    assert parse_frame(link.writes[0]).params == tx + rx


@pytest.mark.parametrize("size", [1, 15])
def test_set_tx_buffer_size_accepts_bounds(link, size):
    DV4Mini(link).set_tx_buffer_size(size)
    assert parse_frame(link.writes[0]).params == bytes([size])


@pytest.mark.parametrize("size", [0, 16])
def test_set_tx_buffer_size_rejects_out_of_range(link, size):
    with pytest.raises(InvalidArgument):
        DV4Mini(link).set_tx_buffer_size(size)
    assert link.writes == []


def test_set_initial_seed(link):
    with patch("dv4mini_mcp.session.os.urandom", return_value=b"\x01\x02\x03\x04"):
        seed = DV4Mini(link).set_initial_seed()

    assert seed == b"\x01\x02\x03\x04"
    parsed = parse_frame(link.writes[0])
    assert parsed.command == Command.SET_SEED
    assert parsed.params == seed


def test_set_initial_seed_without_entropy(link):
    with patch("dv4mini_mcp.session.os.urandom", side_effect=NotImplementedError):
        with pytest.raises(RandomnessUnavailable):
            DV4Mini(link).set_initial_seed()
    assert link.writes == []


def test_version_updates_state(link):
    response = build_frame(Command.GET_VERSION, b"1.52\x00\x12\x34\x56\x78")
    link.feed(response)
    dv = DV4Mini(link)

    assert dv.version() == response
    assert link.writes == [build_get_version()]
    assert dv.firmware_version == "1.52"
    assert dv.dongle_id == "12345678"


def test_watchdog_updates_rssi(link):
    response = build_frame(Command.WATCHDOG, b"\x00\x00\xC4")
    link.feed(response)
    dv = DV4Mini(link)

    assert dv.watchdog() == response
    assert dv.rssi == 0xC4 - 0x100
    assert dv.rssi_lsb == 0xC4


def test_watchdog_failure_leaves_state(link):
    link.feed(b"\x71\xFE")
    dv = DV4Mini(link)
    with pytest.raises(TransportError):
        dv.watchdog()
    assert dv.rssi == 0


def test_read_rx_buffer(link):
    response = build_frame(Command.READ_RX_BUFFER, bytes(range(20)))
    link.feed(response)
    assert DV4Mini(link).read_rx_buffer() == response


def test_send_raw_bypasses_framing(link):
    raw = b"\x01\x02\x03"
    DV4Mini(link).send_raw(raw)
    assert link.writes == [raw]


def test_exchange_raw(link):
    response = build_frame(Command.GET_VERSION, b"1.52abcd")
    link.feed(response)
    raw = bytes([0x71, 0xFE, 0x39, 0x1D, 0x18, 0x00])
    assert DV4Mini(link).exchange_raw(raw) == response
    assert link.writes == [raw]


def test_write_failure_propagates(link):
    link.write_error = TransportError("Write failed")
    with pytest.raises(TransportError):
        DV4Mini(link).led_on()


def test_flush_serial(link):
    link.feed(b"\x00\x01\x02")
    DV4Mini(link).flush_serial()
    assert link.events == [("flush",)]
    assert link.writes == []


def test_out_of_range_byte_values_raise_driver_error(link):
    dv = DV4Mini(link)
    with pytest.raises(DV4MiniError):
        dv.set_power(256)
    with pytest.raises(DV4MiniError):
        dv.set_mode(-1)
    assert link.writes == []


def test_read_serial(link):
    link.feed(b"\x71\xFE\x39")
    assert DV4Mini(link).read_serial(3) == b"\x71\xFE\x39"
    assert link.writes == []


def test_read_serial_short(link):
    with pytest.raises(TransportError):
        DV4Mini(link).read_serial(1)


def test_flush_tx_buffer(link):
    DV4Mini(link).flush_tx_buffer()
    assert link.writes == [build_flush_tx_buffer()]


def test_close_order(link):
    dv = DV4Mini(link)
    dv.close()
    assert link.events == [
        ("write", build_flush_tx_buffer()),
        ("flush",),
        ("close",),
    ]
    assert dv.closed


def test_close_twice_is_noop(link):
    dv = DV4Mini(link)
    dv.close()
    dv.close()
    assert len(link.writes) == 1


def test_close_still_closes_link_on_write_failure(link):
    link.write_error = TransportError("Write failed")
    dv = DV4Mini(link)
    with pytest.raises(TransportError):
        dv.close()
    assert link.flush_count == 1
    assert link.closed


def test_context_manager_closes(link):
    with DV4Mini(link) as dv:
        dv.led_on()
    assert link.writes == [build_set_led(True), build_flush_tx_buffer()]
    assert link.closed


def test_context_manager_closes_on_error(link):
    with pytest.raises(RuntimeError):
        with DV4Mini(link):
            raise RuntimeError("boom")
    assert link.closed


def test_debug_is_per_session(link):
    assert DV4Mini(link, debug=True).debug
    assert not DV4Mini(link).debug


def test_connect_opens_serial_link():
    with patch("dv4mini_mcp.session.SerialLink") as link_cls:
        link_cls.return_value = MagicMock()
        dv = DV4Mini.connect("/dev/ttyACM0", debug=True)

    link_cls.assert_called_once_with("/dev/ttyACM0")
    link_cls.return_value.open.assert_called_once()
    assert dv.debug


def test_end_to_end_transmit(link):
    """Frequency, power, paced TX data, then close."""
    dv = DV4Mini(link)
    tx, rx = frequency_bytes(438_000_000), frequency_bytes(438_000_000)

    dv.set_frequency(tx, rx)
    dv.set_power(5)
    dv.write_tx_data(bytes(100))
    dv.close()

    packets = -(-100 // TX_PACKET_SIZE)
    assert _commands(link) == (
        [Command.SET_FREQUENCY, Command.SET_TX_POWER]
        + [Command.WRITE_TX_DATA] * packets
        + [Command.FLUSH_TX_BUFFER, Command.FLUSH_TX_BUFFER]
    )

    # Each TX data packet waits at least the pacing interval after the
    # previous write.
    times = link.write_times
    for i in range(2, 2 + packets):
        assert times[i] - times[i - 1] >= TX_PACKET_INTERVAL_S - 0.001

    assert link.events[-2:] == [("flush",), ("close",)]


def test_close_holds_lock_for_whole_sequence(link):
    """No other thread can write between the TX flush and the link close."""
    dv = DV4Mini(link)
    flushed = threading.Event()
    release = threading.Event()
    original_flush = link.flush

    def slow_flush():
        flushed.set()
        release.wait(1.0)
        original_flush()

    link.flush = slow_flush
    closer = threading.Thread(target=dv.close)
    closer.start()
    assert flushed.wait(1.0)

    writer = threading.Thread(target=_led_on_ignoring_errors, args=(dv,))
    writer.start()
    writer.join(0.05)
    # the writer is still blocked on the session lock
    assert writer.is_alive()

    release.set()
    closer.join(1.0)
    writer.join(1.0)
    assert link.events[:3] == [
        ("write", build_flush_tx_buffer()),
        ("flush",),
        ("close",),
    ]


def _led_on_ignoring_errors(dv):
    try:
        dv.led_on()
    except TransportError:
        pass
