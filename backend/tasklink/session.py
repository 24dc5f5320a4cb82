"""
Link session - run-until-cancelled lifecycle.

open() connects and starts the drain, run() dispatches one command and
then waits for a shutdown signal while the drain keeps printing device
output. shutdown() may be called from a signal handler or another thread.
"""

import signal
import threading
from typing import Callable, Optional

from .controller import DispatchResult, TaskLinkController
from .dump_store import DumpStore
from .logger import log_info, log_warn
from .serial_transport import DeviceDrain, SerialTransport
from .types import AnyCommand


class LinkSession:
    """Owns the transport, the drain and the shutdown event for one run."""

    def __init__(
        self,
        transport: SerialTransport,
        dump_store: Optional[DumpStore] = None,
        sink: Optional[Callable[[bytes], None]] = None,
    ):
        self.transport = transport
        self.controller = TaskLinkController(transport, dump_store)
        self.drain = DeviceDrain(transport, sink)
        self._shutdown = threading.Event()

    @property
    def is_shutting_down(self) -> bool:
        return self._shutdown.is_set()

    def open(self, port: str) -> None:
        """Connect (fatal on failure) and start draining device output."""
        self.transport.connect(port)
        self.drain.start()

    def install_signal_handlers(self) -> None:
        """SIGINT and SIGTERM request shutdown. Main thread only."""
        def _handler(signum, frame):
            log_info(f"Received signal {signum}, shutting down")
            self.shutdown()

        signal.signal(signal.SIGINT, _handler)
        signal.signal(signal.SIGTERM, _handler)

    def prepare(self, command: AnyCommand) -> Optional[bytes]:
        """Build the frame before the port is opened, so fatal image errors touch no device."""
        return self.controller.build_frame(command)

    def run(
        self,
        command: AnyCommand,
        frame: Optional[bytes] = None,
        linger: Optional[float] = None,
    ) -> DispatchResult:
        """
        Send once, then block until shutdown.

        `frame` comes from prepare(); when omitted the command is built here.
        With `linger`, the session ends on its own after that many seconds.
        """
        if frame is None:
            frame = self.prepare(command)
        result = self.controller.send(command, frame)
        self.wait(linger)
        return result

    def wait(self, timeout: Optional[float] = None) -> None:
        """Wait for shutdown, reporting transient errors as they arrive."""
        remaining = timeout
        while not self._shutdown.is_set():
            step = 0.5 if remaining is None else min(0.5, remaining)
            if self._shutdown.wait(step):
                break
            self.report_errors()
            if remaining is not None:
                remaining -= step
                if remaining <= 0:
                    break
        self.report_errors()

    def report_errors(self) -> None:
        for error in self.transport.errors.drain():
            log_warn(f"Transient I/O error: {error}")
        if self.transport.errors.dropped:
            log_warn(f"{self.transport.errors.dropped} error reports dropped")
            self.transport.errors.dropped = 0

    def shutdown(self) -> None:
        self._shutdown.set()

    def close(self) -> None:
        """Stop the drain and release the port."""
        self.shutdown()
        self.drain.stop()
        self.transport.disconnect()
