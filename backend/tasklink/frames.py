"""
Frame Encoder - Single responsibility: building wire frames

Every frame starts with an 8-byte ASCII magic tag naming its kind,
followed by a kind-specific payload. Multi-byte integers are
little-endian u64. Encoding is pure: no I/O, no clock, no randomness.

  Load      LOADPROG | size:u64 | symbol_addr:u64 | task_id[8] | image
  Kill      KILLTASK | task_id[8]
  Relaunch  RELAUNCH | task_id[8]
  List      LISTTASK
  Log       (no frame)
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Optional

from .errors import FrameDecodeError
from .types import (
    AnyCommand,
    KillCommand,
    ListCommand,
    LoadCommand,
    LogAttachCommand,
    ProgramImage,
    RelaunchCommand,
    TASK_ID_WIDTH,
    normalize_task_id,
    validate_address,
)


MAGIC_WIDTH = 8

LOAD_MAGIC = b"LOADPROG"
KILL_MAGIC = b"KILLTASK"
RELAUNCH_MAGIC = b"RELAUNCH"
LIST_MAGIC = b"LISTTASK"
# Older supervisor builds used this tag for the list request.
LEGACY_LIST_MAGIC = b"LISTPROG"

_U64 = struct.Struct("<Q")
_LOAD_HEADER = struct.Struct(f"<{MAGIC_WIDTH}sQQ{TASK_ID_WIDTH}s")


# =============================================================================
# Encoding
# =============================================================================


def encode_task_id(task_id: str) -> bytes:
    """Exactly 8 bytes: truncated or space-padded."""
    return normalize_task_id(task_id)


def encode_load(image: bytes, address: int, task_id: str) -> bytes:
    """LOADPROG | size | address | task_id | image"""
    validate_address(address)
    header = _LOAD_HEADER.pack(LOAD_MAGIC, len(image), address, encode_task_id(task_id))
    return header + image


def encode_kill(task_id: str) -> bytes:
    return KILL_MAGIC + encode_task_id(task_id)


def encode_relaunch(task_id: str) -> bytes:
    return RELAUNCH_MAGIC + encode_task_id(task_id)


def encode_list() -> bytes:
    return LIST_MAGIC


def encode_legacy_dump(image: bytes, address: int) -> bytes:
    """
    Batch payload written by the one-shot packer.

    Same as a Load frame without the task id field:
    LOADPROG | size | address | image
    """
    validate_address(address)
    return LOAD_MAGIC + _U64.pack(len(image)) + _U64.pack(address) + image


def encode_command(
    command: AnyCommand,
    image: Optional[ProgramImage] = None,
    address: Optional[int] = None,
) -> Optional[bytes]:
    """
    Encode a command into its frame.

    Load needs the image and the resolved symbol address.
    LogAttach produces no frame and returns None.
    """
    if isinstance(command, LoadCommand):
        if image is None or address is None:
            raise ValueError("Load frame requires an image and a symbol address")
        return encode_load(image.data, address, command.task_id)
    if isinstance(command, KillCommand):
        return encode_kill(command.task_id)
    if isinstance(command, RelaunchCommand):
        return encode_relaunch(command.task_id)
    if isinstance(command, ListCommand):
        return encode_list()
    if isinstance(command, LogAttachCommand):
        return None
    raise TypeError(f"Unknown command type: {type(command).__name__}")


# =============================================================================
# Decoding (diagnostics)
# =============================================================================


@dataclass(frozen=True)
class DecodedFrame:
    """Fields recovered from a frame. Absent fields are None."""
    kind: str
    magic: bytes
    task_id: Optional[bytes] = None
    size: Optional[int] = None
    address: Optional[int] = None
    image: Optional[bytes] = None

    def describe(self) -> dict:
        d = {"kind": self.kind, "magic": self.magic.decode("ascii")}
        if self.task_id is not None:
            d["task_id"] = self.task_id.decode("utf-8", errors="replace")
        if self.size is not None:
            d["size"] = self.size
        if self.address is not None:
            d["address"] = f"0x{self.address:X}"
        return d


def decode_frame(frame: bytes) -> DecodedFrame:
    """Parse a frame produced by one of the encoders above."""
    if len(frame) < MAGIC_WIDTH:
        raise FrameDecodeError(f"frame too short for a magic tag: {len(frame)} bytes")

    magic = bytes(frame[:MAGIC_WIDTH])
    payload = bytes(frame[MAGIC_WIDTH:])

    if magic == LOAD_MAGIC:
        if len(frame) < _LOAD_HEADER.size:
            raise FrameDecodeError("truncated Load header")
        _, size, address, task_id = _LOAD_HEADER.unpack_from(frame)
        image = bytes(frame[_LOAD_HEADER.size:])
        if len(image) != size:
            raise FrameDecodeError(f"Load frame declares {size} image bytes, carries {len(image)}")
        return DecodedFrame("load", magic, task_id=task_id, size=size, address=address, image=image)

    if magic in (KILL_MAGIC, RELAUNCH_MAGIC):
        if len(payload) != TASK_ID_WIDTH:
            raise FrameDecodeError(f"expected {TASK_ID_WIDTH}-byte task id, got {len(payload)}")
        kind = "kill" if magic == KILL_MAGIC else "relaunch"
        return DecodedFrame(kind, magic, task_id=payload)

    if magic in (LIST_MAGIC, LEGACY_LIST_MAGIC):
        if payload:
            raise FrameDecodeError("List frame carries no payload")
        return DecodedFrame("list", magic)

    raise FrameDecodeError(f"unknown magic {magic!r}")


def decode_legacy_dump(dump: bytes) -> DecodedFrame:
    """Parse the packer's LOADPROG | size | address | image payload."""
    header = MAGIC_WIDTH + 2 * _U64.size
    if len(dump) < header or dump[:MAGIC_WIDTH] != LOAD_MAGIC:
        raise FrameDecodeError("not a packed Load payload")
    (size,) = _U64.unpack_from(dump, MAGIC_WIDTH)
    (address,) = _U64.unpack_from(dump, MAGIC_WIDTH + _U64.size)
    image = bytes(dump[header:])
    if len(image) != size:
        raise FrameDecodeError(f"payload declares {size} image bytes, carries {len(image)}")
    return DecodedFrame("load", LOAD_MAGIC, size=size, address=address, image=image)
