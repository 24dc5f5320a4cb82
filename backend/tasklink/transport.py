"""
Transport layer - moves frames to the task supervisor.

Provides:
- Transport protocol (interface)
- MockTransport for controller tests without hardware
- FakeSerialPort, an in-memory stand-in for serial.Serial
- (SerialTransport in separate file for production)
"""

from __future__ import annotations

import threading
import time
from typing import List, Protocol

import serial


class Transport(Protocol):
    """Protocol for frame delivery."""

    def write_frame(self, frame: bytes) -> int:
        """
        Send every byte of the frame.

        Returns the number of bytes actually written.
        """
        ...

    @property
    def is_connected(self) -> bool:
        """Check if transport is connected."""
        ...


class MockTransport:
    """
    Mock transport for testing without hardware.

    Records every frame handed to it.
    """

    def __init__(self):
        self.frames: List[bytes] = []
        self._connected: bool = True

    @property
    def frame_count(self) -> int:
        """Number of frames written."""
        return len(self.frames)

    @property
    def last_frame(self) -> bytes:
        return self.frames[-1]

    def write_frame(self, frame: bytes) -> int:
        if not self._connected:
            raise ConnectionError("Not connected")
        self.frames.append(bytes(frame))
        return len(frame)

    @property
    def is_connected(self) -> bool:
        return self._connected

    def disconnect(self) -> None:
        """Simulate disconnection (for testing error handling)."""
        self._connected = False


class FakeSerialPort:
    """
    In-memory serial port with the subset of the serial.Serial API
    SerialTransport uses.

    Bytes written land in `written`; bytes queued with `feed()` are
    returned by `read()`. Overlapping calls from two threads are
    counted in `overlaps`, which must stay 0 behind a correct arbiter.
    """

    def __init__(self, port: str = "fake", baudrate: int = 115200, op_delay: float = 0.0, **kwargs):
        self.port = port
        self.baudrate = baudrate
        self.timeout = kwargs.get("timeout")
        self.write_timeout = kwargs.get("write_timeout")
        self.op_delay = op_delay
        self.written = bytearray()
        self.write_calls: List[bytes] = []
        self.flush_count = 0
        self.read_count = 0
        self.overlaps = 0
        self.fail_writes = 0
        self.fail_reads = 0
        self.is_open = True
        self._incoming = bytearray()
        self._busy = False
        self._guard = threading.Lock()

    def feed(self, data: bytes) -> None:
        """Queue bytes as if the device had sent them."""
        with self._guard:
            self._incoming.extend(data)

    def _enter(self) -> None:
        with self._guard:
            if self._busy:
                self.overlaps += 1
            self._busy = True
        if self.op_delay:
            time.sleep(self.op_delay)

    def _leave(self) -> None:
        with self._guard:
            self._busy = False

    @property
    def in_waiting(self) -> int:
        with self._guard:
            return len(self._incoming)

    def write(self, data: bytes) -> int:
        self._enter()
        try:
            if self.fail_writes:
                self.fail_writes -= 1
                raise serial.SerialTimeoutException("Write timeout")
            self.write_calls.append(bytes(data))
            self.written.extend(data)
            return len(data)
        finally:
            self._leave()

    def flush(self) -> None:
        self._enter()
        try:
            self.flush_count += 1
        finally:
            self._leave()

    def read(self, size: int = 1) -> bytes:
        self._enter()
        try:
            if self.fail_reads:
                self.fail_reads -= 1
                raise serial.SerialException("device reports readiness to read but returned no data")
            self.read_count += 1
            with self._guard:
                chunk = bytes(self._incoming[:size])
                del self._incoming[:size]
            return chunk
        finally:
            self._leave()

    def close(self) -> None:
        self.is_open = False
