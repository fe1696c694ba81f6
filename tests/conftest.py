"""Shared test doubles."""

from __future__ import annotations

import time

import pytest

from dv4mini_mcp.errors import TransportError


class FakeLink:
    """In-memory link: records writes, serves scripted reads."""

    def __init__(self, rx: bytes = b"") -> None:
        self.writes: list[bytes] = []
        self.write_times: list[float] = []
        self.events: list[tuple] = []
        self.flush_count = 0
        self.closed = False
        self.write_error: Exception | None = None
        self._rx = bytearray(rx)

    def feed(self, data: bytes) -> None:
        self._rx.extend(data)

    def write(self, data: bytes) -> None:
        if self.write_error is not None:
            raise self.write_error
        self.writes.append(bytes(data))
        self.write_times.append(time.monotonic())
        self.events.append(("write", bytes(data)))

    def read_exact(self, size: int, timeout: float | None = None) -> bytes:
        data = bytes(self._rx[:size])
        del self._rx[:size]
        self.events.append(("read", data))
        if len(data) < size:
            raise TransportError(f"Short read: expected {size} bytes, got {len(data)}")
        return data

    def flush(self) -> None:
        self.flush_count += 1
        self._rx.clear()
        self.events.append(("flush",))

    def close(self) -> None:
        self.closed = True
        self.events.append(("close",))


@pytest.fixture
def link() -> FakeLink:
    return FakeLink()
