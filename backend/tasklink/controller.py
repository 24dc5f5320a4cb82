"""
TaskLink Controller - Command dispatcher.

Maps a command to symbol resolution and frame encoding, persists the
frame to the diagnostic dump, then hands it to the transport. A command
either encodes completely and is handed over, or nothing is sent:
every fatal error is raised before the first byte goes out.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, TYPE_CHECKING

from .dump_store import DumpStore, IDumpStore
from .elf_symbols import describe_image, read_image, resolve_symbol
from .frames import encode_command
from .logger import log_elf, log_frame, log_info, log_ok, log_warn
from .types import AnyCommand, LoadCommand, LogAttachCommand, ProgramImage

if TYPE_CHECKING:
    from .transport import Transport


@dataclass
class DispatchResult:
    """
    Result of dispatching one command.

    Immutable record for the session history.
    """
    command: AnyCommand
    frame_size: int
    bytes_written: int
    dumped: bool
    timestamp: datetime

    @property
    def kind(self) -> str:
        return self.command.kind

    @property
    def success(self) -> bool:
        return self.bytes_written == self.frame_size

    def __str__(self) -> str:
        status = "✓" if self.success else "✗"
        return f"[{self.timestamp:%H:%M:%S}] {status} {self.kind} {self.bytes_written}/{self.frame_size} bytes"


class TaskLinkController:
    """
    Dispatches commands to the task supervisor.

    LogAttach builds no frame and writes nothing; the drain is the
    only active path for it.
    """

    def __init__(
        self,
        transport: "Transport",
        dump_store: Optional[IDumpStore] = None,
        image_reader: Callable[[Path], ProgramImage] = read_image,
    ):
        self._transport = transport
        self._dump = dump_store or DumpStore()
        self._read_image = image_reader
        self._history: List[DispatchResult] = []

    def build_frame(self, command: AnyCommand) -> Optional[bytes]:
        """Encode a command, resolving the symbol first for Load."""
        if isinstance(command, LoadCommand):
            image = self._read_image(command.image_path)
            info = describe_image(image.data)
            log_elf(f"Loaded {image.path}", {"size": image.size, **info.to_dict()})
            address = resolve_symbol(image.data, command.symbol_name)
            frame = encode_command(command, image=image, address=address)
        else:
            frame = encode_command(command)

        if frame is not None:
            log_frame(f"{command.kind} frame", {"size": len(frame), "magic": frame[:8].decode("ascii")})
        return frame

    def dispatch(self, command: AnyCommand) -> DispatchResult:
        """Build, persist and send one command."""
        return self.send(command, self.build_frame(command))

    def send(self, command: AnyCommand, frame: Optional[bytes]) -> DispatchResult:
        """Persist and send a frame already built by build_frame()."""
        if frame is None or isinstance(command, LogAttachCommand):
            log_info("Attached to device log")
            result = DispatchResult(command, 0, 0, False, datetime.now())
            self._history.append(result)
            return result

        dumped = self._dump.save(frame)
        written = self._transport.write_frame(frame)

        result = DispatchResult(
            command=command,
            frame_size=len(frame),
            bytes_written=written,
            dumped=dumped,
            timestamp=datetime.now(),
        )
        self._history.append(result)
        if result.success:
            log_ok(f"Sent {command.kind} frame ({written} bytes)")
        else:
            log_warn(f"{command.kind} frame incomplete", {"written": written, "size": len(frame)})
        return result

    def get_history(self, limit: int | None = None) -> List[DispatchResult]:
        """
        Get dispatch history.

        Args:
            limit: Optional max number of recent entries to return.
        """
        if limit is None:
            return list(self._history)
        return list(self._history[-limit:])

    def get_last_result(self) -> DispatchResult | None:
        return self._history[-1] if self._history else None
