"""
Serial Transport - Single responsibility: serial communication

One connection, two activities: the foreground writes frames, a background
drain surfaces everything the device prints. Every single-byte read or
write goes through the PortArbiter, which holds its lock for exactly one
byte, so a frame may interleave with drain reads between bytes but no
byte is ever torn.
"""

import queue
import sys
import threading
import time
from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Optional

import serial
import serial.tools.list_ports

from .errors import DeviceOpenFailed, TransientIoError
from .logger import log_ok, log_serial, log_warn


BAUD_RATE = 115200
DEFAULT_POLL_INTERVAL = 0.01
DEFAULT_WRITE_TIMEOUT = 1.0
WARMUP_DELAY = 2.0


@dataclass
class RetryPolicy:
    """Bounded retries with exponential backoff for transient I/O errors."""
    max_attempts: int = 3
    initial_backoff: float = 0.01
    max_backoff: float = 0.5

    def delay(self, attempt: int) -> float:
        """Backoff before retry number `attempt` (1-based)."""
        return min(self.initial_backoff * (2 ** (attempt - 1)), self.max_backoff)


@dataclass
class SerialConfig:
    baud_rate: int = BAUD_RATE
    poll_interval: float = DEFAULT_POLL_INTERVAL
    write_timeout: Optional[float] = DEFAULT_WRITE_TIMEOUT
    connect_delay: float = WARMUP_DELAY
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    error_capacity: int = 64


class ErrorChannel:
    """
    Bounded report queue for transient I/O errors.

    When full, the oldest report is discarded and counted in `dropped`.
    """

    def __init__(self, capacity: int = 64):
        self._queue: "queue.Queue[TransientIoError]" = queue.Queue(maxsize=capacity)
        self._lock = threading.Lock()
        self.dropped = 0

    def publish(self, error: TransientIoError) -> None:
        with self._lock:
            while True:
                try:
                    self._queue.put_nowait(error)
                    return
                except queue.Full:
                    try:
                        self._queue.get_nowait()
                        self.dropped += 1
                    except queue.Empty:
                        pass

    def drain(self) -> List[TransientIoError]:
        """Remove and return every pending report."""
        reports = []
        while True:
            try:
                reports.append(self._queue.get_nowait())
            except queue.Empty:
                return reports

    def __len__(self) -> int:
        return self._queue.qsize()


class PortArbiter:
    """
    Mutual exclusion for the shared port.

    Held for one byte operation at a time. Tracks the current owner and
    how many operations each owner completed.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._owner: Optional[str] = None
        self._counts: Counter = Counter()

    @contextmanager
    def exclusive(self, owner: str):
        with self._lock:
            self._owner = owner
            try:
                yield
            finally:
                self._counts[owner] += 1
                self._owner = None

    @property
    def owner(self) -> Optional[str]:
        return self._owner

    def count(self, owner: str) -> int:
        return self._counts[owner]


class SerialTransport:
    """
    Handles raw serial communication with the task supervisor.

    Thread-safe: every byte read and byte write is serialized by the
    PortArbiter. Open failures are fatal; I/O failures after open are
    retried and reported on `errors`, never raised out of write_frame.
    """

    def __init__(
        self,
        config: Optional[SerialConfig] = None,
        serial_factory: Callable[..., serial.Serial] = serial.Serial,
    ):
        self.config = config or SerialConfig()
        self.errors = ErrorChannel(self.config.error_capacity)
        self.arbiter = PortArbiter()
        self._serial_factory = serial_factory
        self._serial: Optional[serial.Serial] = None
        self._connected = False

    @staticmethod
    def available_ports() -> List[str]:
        """Device paths of every serial port the OS reports, sorted."""
        return sorted(info.device for info in serial.tools.list_ports.comports())

    def connect(self, port: str) -> None:
        """Open the port, then wait out the device's boot/reset window."""
        try:
            self._serial = self._serial_factory(
                port,
                self.config.baud_rate,
                timeout=0,
                write_timeout=self.config.write_timeout,
            )
        except (serial.SerialException, OSError, ValueError) as e:
            self._connected = False
            raise DeviceOpenFailed(f"Failed to open {port}: {e}") from e
        log_serial("---", f"opened {port} @ {self.config.baud_rate}")
        time.sleep(self.config.connect_delay)
        self._connected = True

    def disconnect(self) -> None:
        """Disconnect from serial port"""
        self._connected = False
        if self._serial:
            with self.arbiter.exclusive("close"):
                self._serial.close()
            self._serial = None

    @property
    def is_connected(self) -> bool:
        return self._connected

    def _port(self) -> serial.Serial:
        if not self._serial or not self._connected:
            raise ConnectionError("Not connected")
        return self._serial

    # =========================================================================
    # Write path
    # =========================================================================

    def write_byte(self, value: int) -> None:
        """Write and flush a single byte under the arbiter."""
        port = self._port()
        with self.arbiter.exclusive("write"):
            try:
                port.write(bytes((value,)))
                port.flush()
            except (serial.SerialException, OSError) as e:
                raise TransientIoError("write", e) from e

    def write_frame(self, frame: bytes) -> int:
        """
        Send a frame one byte at a time, flushing after every byte.

        A failing byte is retried per the RetryPolicy. If it still fails,
        the error is published and the rest of the frame is abandoned.
        Returns the number of bytes written.
        """
        self._port()
        policy = self.config.retry
        written = 0
        for value in frame:
            attempt = 1
            while True:
                try:
                    self.write_byte(value)
                    break
                except TransientIoError as e:
                    if attempt >= policy.max_attempts:
                        self.errors.publish(e)
                        log_warn(f"Frame abandoned after {written}/{len(frame)} bytes", {"error": str(e)})
                        return written
                    time.sleep(policy.delay(attempt))
                    attempt += 1
            written += 1
        log_serial(">>>", f"{written} bytes")
        return written

    # =========================================================================
    # Read path
    # =========================================================================

    def read_byte(self) -> Optional[bytes]:
        """
        Read one byte if the device has sent one.

        Never blocks while holding the arbiter: returns None when
        nothing is waiting.
        """
        port = self._port()
        with self.arbiter.exclusive("read"):
            try:
                if not port.in_waiting:
                    return None
                data = port.read(1)
            except (serial.SerialException, OSError) as e:
                raise TransientIoError("read", e) from e
        return data or None

    def stream(self, cancel: threading.Event) -> Iterator[bytes]:
        """
        Yield device bytes as they arrive until `cancel` is set.

        Waits at most poll_interval between polls. Read errors are
        published and retried after the policy backoff.
        """
        policy = self.config.retry
        failures = 0
        while not cancel.is_set():
            try:
                data = self.read_byte()
            except TransientIoError as e:
                self.errors.publish(e)
                failures += 1
                cancel.wait(policy.delay(min(failures, policy.max_attempts)))
                continue
            except ConnectionError:
                return
            failures = 0
            if data is None:
                cancel.wait(self.config.poll_interval)
                continue
            yield data


class ConsoleSink:
    """Forwards device bytes to a binary stream (stdout by default)."""

    def __init__(self, stream=None):
        self._stream = stream if stream is not None else sys.stdout.buffer

    def __call__(self, data: bytes) -> None:
        self._stream.write(data)
        self._stream.flush()


class DeviceDrain:
    """
    Background activity that surfaces every byte the device sends.

    Runs on a daemon thread until stop() is called.
    """

    def __init__(self, transport: SerialTransport, sink: Optional[Callable[[bytes], None]] = None):
        self._transport = transport
        self._sink = sink or ConsoleSink()
        self._cancel = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.bytes_drained = 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._cancel.clear()
        self._thread = threading.Thread(target=self._run, name="device-drain", daemon=True)
        self._thread.start()
        log_ok("Drain started")

    def stop(self, timeout: float = 1.0) -> None:
        self._cancel.set()
        if self._thread:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _run(self) -> None:
        for data in self._transport.stream(self._cancel):
            self.bytes_drained += len(data)
            try:
                self._sink(data)
            except OSError as e:
                self._transport.errors.publish(TransientIoError("sink", e))
